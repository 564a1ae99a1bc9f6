"""Tests for the corpus watcher debounce."""

import asyncio

import pytest

from neo_fuzzy.search.watcher import CorpusWatcher


class FakeSession:
    def __init__(self, cwd):
        self.cwd = cwd
        self.refreshes = 0

    def refresh(self):
        self.refreshes += 1


class TestCorpusWatcher:
    @pytest.mark.asyncio
    async def test_burst_of_events_refreshes_once(self, tmp_path):
        session = FakeSession(tmp_path)
        watcher = CorpusWatcher(session, tmp_path, asyncio.get_running_loop(), debounce=0.01)

        for _ in range(5):
            watcher.notify()
        await asyncio.sleep(0.1)

        assert session.refreshes == 1

    @pytest.mark.asyncio
    async def test_ignores_changes_after_cwd_moved(self, tmp_path):
        session = FakeSession(tmp_path / "elsewhere")
        watcher = CorpusWatcher(session, tmp_path, asyncio.get_running_loop(), debounce=0.01)

        watcher.notify()
        await asyncio.sleep(0.1)

        assert session.refreshes == 0

    @pytest.mark.asyncio
    async def test_file_creation_triggers_refresh(self, tmp_path):
        session = FakeSession(tmp_path)
        watcher = CorpusWatcher(session, tmp_path, asyncio.get_running_loop(), debounce=0.05)
        watcher.start()
        try:
            await asyncio.sleep(0.2)
            (tmp_path / "new.txt").write_text("x")
            for _ in range(50):
                if session.refreshes:
                    break
                await asyncio.sleep(0.1)
        finally:
            watcher.stop()

        assert session.refreshes >= 1
