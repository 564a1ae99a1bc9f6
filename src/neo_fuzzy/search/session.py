"""Host facing entry points of the fuzzy finder.

A ``FinderSession`` is the explicit context object of one finder: it owns the database,
the shared search state and the diffuser. Every host callback (query changed, selection
moved, tab changed, ...) goes through a session method, which turns it into tasks for the
diffuser and returns immediately. The host renders whatever ``poll`` hands back.
"""

import asyncio
from collections.abc import Sequence
from pathlib import Path

from neo_fuzzy.config import (
    SUPPORTED_SEARCHES,
    FinderSettings,
    SearchKindConfig,
    get_search_config,
)
from neo_fuzzy.logger import logging
from neo_fuzzy.search.database import Database
from neo_fuzzy.search.diffuser import Diffuser
from neo_fuzzy.search.messages import Line
from neo_fuzzy.search.preview import get_preview
from neo_fuzzy.search.process import spawn
from neo_fuzzy.search.state import SearchStateCell, StateSnapshot
from neo_fuzzy.search.tasks import (
    BufferPopulation,
    ClearResults,
    DeleteEntry,
    GeneratePreview,
    GrepSearch,
    IncrementalQuery,
    InitialIndexPopulation,
    PersistRecentDirectory,
    PreviewFn,
    SpawnFn,
    Task,
    TaskContext,
    execute,
)

logger = logging.getLogger(__name__)

BUFFERS_MODE = "buffers"
GREP_MODE = "grep"

RECENT_TAB = 1


class FinderSession:
    settings: FinderSettings
    database: Database
    state: SearchStateCell
    diffuser: Diffuser[Task]
    context: TaskContext

    mode: str
    search_config: SearchKindConfig
    cwd: Path
    query: str
    buffers: list[Path]

    def __init__(
        self,
        settings: FinderSettings | None = None,
        database: Database | None = None,
        spawn_fn: SpawnFn = spawn,
        preview_fn: PreviewFn = get_preview,
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        self.settings = settings if settings else FinderSettings()
        self._owns_database = database is None
        self.database = (
            database
            if database is not None
            else Database(
                self.settings.database_path,
                max_results=self.settings.max_results,
                history_count=self.settings.history_count,
                insert_chunk_size=self.settings.insert_chunk_size,
            )
        )
        self.state = SearchStateCell()
        self.context = TaskContext(self.database, spawn_fn, preview_fn)
        self.diffuser = Diffuser(self.state, self._execute, loop)

        self.search_config = get_search_config()
        self.mode = self.search_config.name
        self.cwd = Path.cwd()
        self.query = ""
        self.buffers = []

    async def _execute(self, task: Task):
        return await execute(task, self.context)

    @property
    def snapshot(self) -> StateSnapshot:
        return self.state.snapshot

    def _is_directory_search(self) -> bool:
        return self.mode not in (BUFFERS_MODE, GREP_MODE) and self.search_config.directories

    def _in_recent_tab(self) -> bool:
        return self._is_directory_search() and self.snapshot.selected_tab == RECENT_TAB

    def _population_task(self, tab: int) -> Task | None:
        if self.mode == BUFFERS_MODE:
            return BufferPopulation(list(self.buffers), self.cwd)
        if self.mode == GREP_MODE:
            return None
        if self.search_config.directories:
            listing = SUPPORTED_SEARCHES["directories"]
            return InitialIndexPopulation(
                cwd=self.cwd,
                cmd=listing.cmd,
                args=tuple(listing.args),
                directories=True,
                history=tab == RECENT_TAB,
            )
        return InitialIndexPopulation.from_config(self.search_config, self.cwd)

    def _query_task(self) -> Task:
        if self.mode == GREP_MODE:
            return GrepSearch(self.query, self.cwd)
        if self.mode == BUFFERS_MODE:
            snapshot = self.snapshot
            path_prefix = snapshot.tabs[snapshot.selected_tab].full if snapshot.tabs else None
            return IncrementalQuery(self.query, path_prefix)
        return IncrementalQuery(self.query)

    def _repopulate(self, tab: int):
        tasks: list[Task] = [ClearResults()]
        population = self._population_task(tab)
        if population is not None:
            tasks.append(population)
        if self.query or self.mode == GREP_MODE:
            tasks.append(self._query_task())
        self.diffuser.enqueue(tasks)

    # Opening

    def open(self, kind: str | SearchKindConfig | None, cwd: Path):
        """Start a search of the given kind rooted at ``cwd``."""
        config = kind if isinstance(kind, SearchKindConfig) else get_search_config(kind)
        self.search_config = config
        self.mode = config.name
        self.cwd = cwd
        self.query = ""
        logger.info("Opening %s search in %s", config.name, cwd)
        self._repopulate(RECENT_TAB if config.history else 0)

    def open_buffers(self, buffers: Sequence[Path], cwd: Path):
        """Search the buffers the host has open, grouped by git root."""
        self.mode = BUFFERS_MODE
        self.buffers = list(buffers)
        self.cwd = cwd
        self.query = ""
        self._repopulate(0)

    def open_grep(self, cwd: Path):
        """Search file contents; every query change runs the grep tool again."""
        self.mode = GREP_MODE
        self.cwd = cwd
        self.query = ""
        self._repopulate(0)

    # Host callbacks

    def set_query(self, text: str):
        """The query text changed."""
        self.query = text
        self.diffuser.enqueue([self._query_task()])

    def move_selection(self, delta: int):
        """Move the highlighted result and preview the new one."""
        snapshot = self.snapshot
        if not snapshot.lines:
            return

        index = max(0, min(snapshot.selected_index + delta, len(snapshot.lines) - 1))
        if index == snapshot.selected_index:
            return

        self.state.update(selected_index=index)
        line = snapshot.lines[index]
        self.diffuser.enqueue([GeneratePreview(line.path_prefix, line.path_suffix)])

    def change_tab(self, delta: int):
        """Switch to the next (``delta=1``) or previous (``delta=-1``) tab, wrapping around."""
        snapshot = self.snapshot
        if not snapshot.tabs:
            return

        tab = (snapshot.selected_tab + delta) % len(snapshot.tabs)
        self.state.update(selected_tab=tab)

        if self.mode == BUFFERS_MODE:
            self.diffuser.enqueue([self._query_task()])
        elif self._is_directory_search():
            self._repopulate(tab)

    def change_cwd(self, cwd: Path):
        """Search another root. The current corpus is dropped before the new one is built."""
        self.cwd = cwd
        self.refresh()

    def refresh(self):
        """Rebuild the corpus of the current tab, e.g. after the file system changed."""
        if self.mode == BUFFERS_MODE:
            return
        self._repopulate(self.snapshot.selected_tab)

    # Selection

    def selected_line(self) -> Line | None:
        return self.snapshot.selected_line

    def selected_path(self) -> Path | None:
        line = self.selected_line()
        return line.full_path if line else None

    def accept(self) -> Path | None:
        """
        The user picked the highlighted result.

        Directories are remembered in the recent history. Returns the path to open.
        """
        line = self.selected_line()
        if line is None:
            return None

        if self._is_directory_search():
            self.diffuser.enqueue([PersistRecentDirectory(line.path_prefix, line.path_suffix)])

        return line.full_path

    def remove_selected_recent(self):
        """Forget the highlighted recent directory and refresh the list."""
        if not self._in_recent_tab():
            return

        line = self.selected_line()
        if line is None:
            return

        self.diffuser.enqueue([DeleteEntry(line.path_suffix)])
        self._repopulate(RECENT_TAB)

    # Rendering and lifetime

    def poll(self) -> StateSnapshot | None:
        """Non-blocking read for the host render loop, None when nothing changed."""
        return self.state.poll()

    async def wait_idle(self):
        await self.diffuser.wait_idle()

    async def close(self):
        """End the search: drop pending work and empty the corpus."""
        await self.diffuser.stop()
        self.query = ""
        self.diffuser.enqueue([ClearResults()])
        await self.diffuser.wait_idle()

    def shutdown(self):
        """Release the database if this session opened it."""
        if self._owns_database:
            self.database.close()
