"""Units of work run by the diffuser.

Every task is a plain dataclass. ``execute`` dispatches on the task type, reads the
index, the file system or an external tool, and returns a ``TaskResult`` patch for the
search state. Storage and I/O failures are logged here and turned into empty patches.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from neo_fuzzy.config import SearchKindConfig
from neo_fuzzy.logger import logging
from neo_fuzzy.search.database import Database, IndexStoreError
from neo_fuzzy.search.fuzzy import smart_case_pattern
from neo_fuzzy.search.icons import get_icon
from neo_fuzzy.search.messages import Line, PreviewResult, Tab, TaskResult
from neo_fuzzy.search.preview import get_preview
from neo_fuzzy.search.process import SpawnOutput, parse_grep_line, spawn

logger = logging.getLogger(__name__)

DIRECTORY_TABS = (Tab(" All directories "), Tab(" Recent directories "))
OTHER_TAB = Tab(" other ")

SpawnFn = Callable[[str, Sequence[str], Path], Awaitable[SpawnOutput]]
PreviewFn = Callable[[Path], Awaitable[PreviewResult]]


@dataclass
class TaskContext:
    """Collaborators a task may use while executing."""

    database: Database
    spawn: SpawnFn = spawn
    preview: PreviewFn = get_preview


@dataclass
class InitialIndexPopulation:
    """Fill the empty corpus from an external listing command or the recent history."""

    cwd: Path
    cmd: str = "fd"
    args: Sequence[str] = ()
    directories: bool = False
    history: bool = False

    @classmethod
    def from_config(cls, config: SearchKindConfig, cwd: Path) -> "InitialIndexPopulation":
        return cls(
            cwd=cwd,
            cmd=config.cmd,
            args=tuple(config.args),
            directories=config.directories,
            history=config.history,
        )


@dataclass
class IncrementalQuery:
    """Re-filter the populated corpus for a new query."""

    query: str
    path_prefix: str | None = None


@dataclass
class HistoryLookup:
    query: str = ""


@dataclass
class DeleteEntry:
    """Forget a recent directory."""

    path_suffix: str


@dataclass
class ClearResults:
    """Empty the corpus, e.g. before searching another root."""


@dataclass
class GeneratePreview:
    path_prefix: str
    path_suffix: str


@dataclass
class PersistRecentDirectory:
    path_prefix: str
    path_suffix: str


@dataclass
class BufferPopulation:
    """Fill the corpus with the open buffers, one tab per git root."""

    buffers: Sequence[Path]
    cwd: Path


@dataclass
class GrepSearch:
    """Replace the corpus with the files whose content matches the query."""

    query: str
    cwd: Path
    cmd: str = "rg"
    args: Sequence[str] = ("--no-heading", "--line-number", "--color", "never")


Task = (
    InitialIndexPopulation
    | IncrementalQuery
    | HistoryLookup
    | DeleteEntry
    | ClearResults
    | GeneratePreview
    | PersistRecentDirectory
    | BufferPopulation
    | GrepSearch
)


def to_line(raw: str, path_prefix: str, directories: bool = False) -> Line:
    """Turn one line of tool output into an icon annotated ``Line``."""
    if directories or raw.endswith("/"):
        return Line.directory(path_prefix, raw)

    icon = get_icon(raw)
    return Line(
        path_suffix=raw,
        path_prefix=path_prefix,
        icon=icon.glyph,
        highlight_group=icon.highlight,
    )


def find_git_root(path: Path) -> Path | None:
    """Nearest ancestor of ``path`` (or itself) holding a ``.git`` entry."""
    for candidate in (path, *path.parents):
        if (candidate / ".git").exists():
            return candidate
    return None


async def _preview_first(lines: Sequence[Line], ctx: TaskContext) -> PreviewResult:
    if not lines:
        return PreviewResult()
    return await ctx.preview(lines[0].full_path)


async def _run_listing(
    cmd: str, args: Sequence[str], cwd: Path, ctx: TaskContext
) -> list[str] | None:
    try:
        output = await ctx.spawn(cmd, args, cwd)
    except OSError as e:
        logger.warning("Failed to run %s in %s: %s", cmd, cwd, e)
        return None

    if not output.success:
        logger.warning("%s exited with status %d in %s", cmd, output.returncode, cwd)
        return None

    return output.lines()


async def _populate(task: InitialIndexPopulation, ctx: TaskContext) -> TaskResult:
    database = ctx.database
    path_prefix = str(task.cwd)

    if task.history:
        new_lines = await asyncio.to_thread(database.query_recent, "")
    else:
        raw_lines = await _run_listing(task.cmd, task.args, task.cwd, ctx)
        if raw_lines is None:
            return TaskResult()
        new_lines = [to_line(raw, path_prefix, task.directories) for raw in raw_lines if raw]

    logger.info("Indexing %d lines from %s", len(new_lines), task.cwd)
    await asyncio.to_thread(database.insert_all, new_lines)

    lines = await asyncio.to_thread(database.query, "")
    total_count = await asyncio.to_thread(database.count)
    preview = await _preview_first(lines, ctx)

    return TaskResult(
        total_count=total_count,
        lines=lines,
        selected_index=0,
        selected_tab=1 if task.history else 0,
        tabs=list(DIRECTORY_TABS) if task.directories else [],
        preview_lines=preview.lines,
        preview_source_path=preview.source_path,
        changed=True,
    )


async def _incremental_query(task: IncrementalQuery, ctx: TaskContext) -> TaskResult:
    database = ctx.database

    if await asyncio.to_thread(database.is_empty):
        logger.debug("Corpus not populated yet, skipping query %r", task.query)
        return TaskResult()

    pattern = smart_case_pattern(task.query) if task.query else None
    lines = await asyncio.to_thread(database.query, task.query, pattern, task.path_prefix)
    preview = await _preview_first(lines, ctx)

    return TaskResult(
        lines=lines,
        selected_index=0,
        preview_lines=preview.lines,
        preview_source_path=preview.source_path,
        changed=True,
    )


async def _history_lookup(task: HistoryLookup, ctx: TaskContext) -> TaskResult:
    lines = await asyncio.to_thread(ctx.database.query_recent, task.query)
    preview = await _preview_first(lines, ctx)

    return TaskResult(
        total_count=len(lines),
        lines=lines,
        selected_index=0,
        selected_tab=1,
        tabs=list(DIRECTORY_TABS),
        preview_lines=preview.lines,
        preview_source_path=preview.source_path,
        changed=True,
    )


def _empty_results() -> TaskResult:
    """Patch for an empty corpus: no lines, no preview."""
    return TaskResult(
        total_count=0,
        lines=[],
        selected_index=0,
        preview_lines=[],
        preview_source_path="",
        changed=True,
    )


async def _clear_results(ctx: TaskContext) -> TaskResult:
    await asyncio.to_thread(ctx.database.clear)
    return _empty_results()


async def _generate_preview(task: GeneratePreview, ctx: TaskContext) -> TaskResult:
    preview = await ctx.preview(Path(task.path_prefix) / task.path_suffix)

    return TaskResult(
        preview_lines=preview.lines,
        preview_source_path=preview.source_path,
        changed=True,
    )


def _group_buffers(buffers: Sequence[Path], cwd: Path) -> tuple[list[Line], list[Tab]]:
    new_lines = []
    tabs: list[Tab] = []

    cwd_root = find_git_root(cwd)
    if cwd_root is not None:
        tabs.append(Tab(cwd_root.name, str(cwd_root)))

    for path in buffers:
        root = find_git_root(path.parent)
        if root is None:
            new_lines.append(to_line(str(path), ""))
            continue

        new_lines.append(to_line(str(path.relative_to(root)), str(root)))
        tab = Tab(root.name, str(root))
        if tab not in tabs:
            tabs.append(tab)

    tabs.append(OTHER_TAB)
    return new_lines, tabs


async def _populate_buffers(task: BufferPopulation, ctx: TaskContext) -> TaskResult:
    database = ctx.database
    new_lines, tabs = await asyncio.to_thread(_group_buffers, task.buffers, task.cwd)

    await asyncio.to_thread(database.insert_all, new_lines)

    lines = await asyncio.to_thread(database.query, "", None, tabs[0].full)
    total_count = await asyncio.to_thread(database.count)
    preview = await _preview_first(lines, ctx)

    return TaskResult(
        total_count=total_count,
        lines=lines,
        selected_index=0,
        selected_tab=0,
        tabs=tabs,
        preview_lines=preview.lines,
        preview_source_path=preview.source_path,
        changed=True,
    )


async def _grep(task: GrepSearch, ctx: TaskContext) -> TaskResult:
    database = ctx.database
    await asyncio.to_thread(database.clear)

    new_lines: list[Line] = []
    if task.query:
        try:
            output = await ctx.spawn(task.cmd, [*task.args, task.query], task.cwd)
        except OSError as e:
            logger.warning("Failed to run %s in %s: %s", task.cmd, task.cwd, e)
            return _empty_results()

        # rg exits with 1 when nothing matched
        if output.returncode not in (0, 1):
            logger.warning("%s exited with status %d", task.cmd, output.returncode)
            return _empty_results()

        seen = set()
        path_prefix = str(task.cwd)
        for raw in output.lines():
            hit = parse_grep_line(raw)
            if hit is None or hit.path in seen:
                continue
            seen.add(hit.path)
            icon = get_icon(hit.path)
            new_lines.append(
                Line(
                    path_suffix=hit.path,
                    path_prefix=path_prefix,
                    icon=icon.glyph,
                    highlight_group=icon.highlight,
                    line_nr=hit.line_nr,
                )
            )

    await asyncio.to_thread(database.insert_all, new_lines)
    lines = await asyncio.to_thread(database.query, "")
    preview = await _preview_first(lines, ctx)

    return TaskResult(
        total_count=len(new_lines),
        lines=lines,
        selected_index=0,
        preview_lines=preview.lines,
        preview_source_path=preview.source_path,
        changed=True,
    )


async def execute(task: Task, ctx: TaskContext) -> TaskResult:
    """Run a task and return its patch. Storage failures degrade to an empty patch."""
    try:
        match task:
            case InitialIndexPopulation():
                return await _populate(task, ctx)
            case IncrementalQuery():
                return await _incremental_query(task, ctx)
            case HistoryLookup():
                return await _history_lookup(task, ctx)
            case DeleteEntry(path_suffix=path_suffix):
                await asyncio.to_thread(ctx.database.delete_recent, path_suffix)
                return TaskResult()
            case ClearResults():
                return await _clear_results(ctx)
            case GeneratePreview():
                return await _generate_preview(task, ctx)
            case PersistRecentDirectory(path_prefix=path_prefix, path_suffix=path_suffix):
                await asyncio.to_thread(ctx.database.insert_recent, path_prefix, path_suffix)
                return TaskResult()
            case BufferPopulation():
                return await _populate_buffers(task, ctx)
            case GrepSearch():
                return await _grep(task, ctx)
            case _:
                raise TypeError(f"Unknown task: {task!r}")
    except IndexStoreError as e:
        logger.warning("Failed to run %s: %s", type(task).__name__, e)
        return TaskResult()
