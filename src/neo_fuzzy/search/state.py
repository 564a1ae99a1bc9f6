"""Shared view model of a search session and the merge protocol for task patches.

The diffuser merges every task result into a ``SearchStateCell``. The cell publishes an
immutable ``StateSnapshot`` after each merge, so the renderer polls the latest snapshot
without ever waiting on the merge lock.
"""

import threading
from collections.abc import Sequence
from dataclasses import dataclass, field

from neo_fuzzy.search.messages import Line, Tab, TaskResult


@dataclass
class SearchState:
    lines: list[Line] = field(default_factory=list)
    total_count: int = 0
    selected_index: int = 0
    selected_tab: int = 0
    tabs: list[Tab] = field(default_factory=list)
    preview_lines: list[str] = field(default_factory=list)
    preview_source_path: str | None = None
    dirty: bool = False


@dataclass(frozen=True)
class StateSnapshot:
    """Read-only copy of a ``SearchState`` handed to the renderer."""

    revision: int = 0
    lines: tuple[Line, ...] = ()
    total_count: int = 0
    selected_index: int = 0
    selected_tab: int = 0
    tabs: tuple[Tab, ...] = ()
    preview_lines: tuple[str, ...] = ()
    preview_source_path: str | None = None

    @property
    def selected_line(self) -> Line | None:
        if 0 <= self.selected_index < len(self.lines):
            return self.lines[self.selected_index]
        return None


def merge(state: SearchState, patch: TaskResult):
    """
    Apply a task result to the state.

    Fields set on the patch overwrite the state, unset fields are left alone. ``dirty`` is
    only ever raised here; clearing it is up to whoever renders the state.
    """
    if patch.total_count is not None:
        state.total_count = patch.total_count
    if patch.lines is not None:
        state.lines = list(patch.lines)
    if patch.selected_index is not None:
        state.selected_index = patch.selected_index
    if patch.selected_tab is not None:
        state.selected_tab = patch.selected_tab
    if patch.tabs is not None:
        state.tabs = list(patch.tabs)
    if patch.preview_lines is not None:
        state.preview_lines = list(patch.preview_lines)
    if patch.preview_source_path is not None:
        state.preview_source_path = patch.preview_source_path

    state.dirty = patch.changed or state.dirty


def _clamp(index: int, items: Sequence) -> int:
    if not items:
        return 0
    return max(0, min(index, len(items) - 1))


class SearchStateCell:
    """
    Owner of the session ``SearchState``.

    Writers merge under a short lock and publish a new snapshot. Readers only ever read the
    published snapshot reference, which never blocks.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._state = SearchState()
        self._revision = 0
        self._consumed_revision = 0
        self._snapshot = self._freeze()

    def _freeze(self) -> StateSnapshot:
        state = self._state
        return StateSnapshot(
            revision=self._revision,
            lines=tuple(state.lines),
            total_count=state.total_count,
            selected_index=_clamp(state.selected_index, state.lines),
            selected_tab=_clamp(state.selected_tab, state.tabs),
            tabs=tuple(state.tabs),
            preview_lines=tuple(state.preview_lines),
            preview_source_path=state.preview_source_path,
        )

    def apply(self, patch: TaskResult):
        """Merge a patch and publish the result."""
        with self._lock:
            merge(self._state, patch)
            if patch.changed:
                self._revision += 1
            self._state.dirty = self._revision != self._consumed_revision
            self._snapshot = self._freeze()

    def update(self, **fields):
        """Merge a patch built from keyword fields, always marking the state changed."""
        self.apply(TaskResult(changed=True, **fields))

    @property
    def snapshot(self) -> StateSnapshot:
        """The latest published state."""
        return self._snapshot

    @property
    def dirty(self) -> bool:
        return self._snapshot.revision != self._consumed_revision

    def poll(self) -> StateSnapshot | None:
        """
        Return the latest snapshot if it has not been rendered yet, else None.

        Returning a snapshot marks it as consumed, which clears the dirty flag.
        """
        snapshot = self._snapshot
        if snapshot.revision == self._consumed_revision:
            return None
        self._consumed_revision = snapshot.revision
        return snapshot

    def state(self) -> SearchState:
        """A copy of the mutable state, mostly for inspection in tests."""
        with self._lock:
            state = self._state
            return SearchState(
                lines=list(state.lines),
                total_count=state.total_count,
                selected_index=state.selected_index,
                selected_tab=state.selected_tab,
                tabs=list(state.tabs),
                preview_lines=list(state.preview_lines),
                preview_source_path=state.preview_source_path,
                dirty=self.dirty,
            )
