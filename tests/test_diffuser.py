"""Tests for the serialized task executor."""

import asyncio
import threading

import pytest

from neo_fuzzy.search.diffuser import Diffuser
from neo_fuzzy.search.messages import Line, TaskResult
from neo_fuzzy.search.state import SearchStateCell


class Recorder:
    """Executes string tasks, recording their order; "boom" raises."""

    def __init__(self, delay: float = 0):
        self.delay = delay
        self.started = []
        self.finished = []
        self.active = 0
        self.max_active = 0

    async def __call__(self, task: str) -> TaskResult:
        self.started.append(task)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
            if task == "boom":
                raise RuntimeError("task failed")
            return TaskResult(lines=[Line(task)], changed=True)
        finally:
            self.active -= 1
            self.finished.append(task)


class TestDiffuser:
    """Ordering, exclusivity and failure isolation."""

    @pytest.mark.asyncio
    async def test_runs_tasks_in_fifo_order(self):
        recorder = Recorder()
        diffuser = Diffuser(SearchStateCell(), recorder)

        diffuser.enqueue(["a", "b"])
        diffuser.enqueue(["c"])
        await diffuser.wait_idle()

        assert recorder.finished == ["a", "b", "c"]
        assert not diffuser.is_running

    @pytest.mark.asyncio
    async def test_enqueue_never_runs_inline(self):
        recorder = Recorder()
        diffuser = Diffuser(SearchStateCell(), recorder)

        diffuser.enqueue(["a"])
        assert recorder.started == []
        assert diffuser.is_running

        await diffuser.wait_idle()
        assert recorder.started == ["a"]

    @pytest.mark.asyncio
    async def test_one_task_at_a_time(self):
        recorder = Recorder(delay=0.01)
        diffuser = Diffuser(SearchStateCell(), recorder)

        diffuser.enqueue(["a", "b"])
        await asyncio.sleep(0.005)
        diffuser.enqueue(["c", "d"])
        await diffuser.wait_idle()

        assert recorder.max_active == 1
        assert recorder.finished == ["a", "b", "c", "d"]

    @pytest.mark.asyncio
    async def test_failed_task_does_not_stop_the_queue(self):
        recorder = Recorder()
        state = SearchStateCell()
        diffuser = Diffuser(state, recorder)

        diffuser.enqueue(["a", "boom", "c"])
        await diffuser.wait_idle()

        assert recorder.finished == ["a", "boom", "c"]
        assert state.snapshot.lines == (Line("c"),)

    @pytest.mark.asyncio
    async def test_results_merged_after_each_task(self):
        state = SearchStateCell()
        seen = []

        async def execute(task):
            seen.append(state.snapshot.lines)
            return TaskResult(lines=[Line(task)], changed=True)

        diffuser = Diffuser(state, execute)
        diffuser.enqueue(["a", "b"])
        await diffuser.wait_idle()

        assert seen == [(), (Line("a"),)]

    @pytest.mark.asyncio
    async def test_restarts_after_going_idle(self):
        recorder = Recorder()
        diffuser = Diffuser(SearchStateCell(), recorder)

        diffuser.enqueue(["a"])
        await diffuser.wait_idle()
        diffuser.enqueue(["b"])
        await diffuser.wait_idle()

        assert recorder.finished == ["a", "b"]

    @pytest.mark.asyncio
    async def test_empty_enqueue_is_noop(self):
        diffuser = Diffuser(SearchStateCell(), Recorder())
        diffuser.enqueue([])
        assert not diffuser.is_running
        await diffuser.wait_idle()

    @pytest.mark.asyncio
    async def test_enqueue_from_another_thread(self):
        recorder = Recorder()
        diffuser = Diffuser(SearchStateCell(), recorder, asyncio.get_running_loop())

        thread = threading.Thread(target=diffuser.enqueue, args=(["a", "b"],))
        thread.start()
        thread.join()
        await diffuser.wait_idle()

        assert recorder.finished == ["a", "b"]

    @pytest.mark.asyncio
    async def test_stop_drops_pending_tasks(self):
        recorder = Recorder(delay=0.01)
        diffuser = Diffuser(SearchStateCell(), recorder)

        diffuser.enqueue(["a"])
        await asyncio.sleep(0)
        diffuser.enqueue(["b", "c"])
        await diffuser.stop()

        assert recorder.finished == ["a"]
        assert diffuser.pending() == 0

    def test_enqueue_without_loop_raises(self):
        diffuser = Diffuser(SearchStateCell(), Recorder())
        with pytest.raises(RuntimeError):
            diffuser.enqueue(["a"])
