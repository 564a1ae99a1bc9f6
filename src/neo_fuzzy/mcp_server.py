import asyncio
from collections.abc import Sequence
from pathlib import Path
from urllib.parse import unquote

import mcp.server.stdio
import mcp.types as types
import pydantic
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from neo_fuzzy.config import SUPPORTED_SEARCHES, FinderSettings
from neo_fuzzy.logger import logging
from neo_fuzzy.search.database import split_recent_path
from neo_fuzzy.search.messages import Line
from neo_fuzzy.search.session import FinderSession
from neo_fuzzy.search.state import StateSnapshot
from neo_fuzzy.search.tasks import DeleteEntry, GeneratePreview, PersistRecentDirectory
from neo_fuzzy.search.watcher import CorpusWatcher

logger = logging.getLogger(__name__)


def format_lines(lines: Sequence[Line], total_count: int) -> str:
    """Render result lines as text, one path per line, grep hits with their line number."""
    rendered = []
    for line in lines:
        if line.line_nr is not None:
            rendered.append(f"{line.full_path}:{line.line_nr}")
        else:
            rendered.append(str(line.full_path))
    header = f"{len(lines)} of {total_count} entries"
    return "\n".join([header, *rendered])


class FinderTools:
    """
    The MCP tools, backed by one finder session.

    Requests are served one at a time. Only ``fuzzy-find`` moves the session to another
    search; the history tools talk to the history store without touching the search state.
    """

    session: FinderSession
    cwd: Path
    default_kind: str

    def __init__(self, session: FinderSession, cwd: Path, default_kind: str = "files"):
        self.session = session
        self.cwd = cwd
        self.default_kind = default_kind
        self.lock = asyncio.Lock()
        self._opened_kind: str | None = None

    async def _run_tasks(self, tasks) -> StateSnapshot:
        self.session.diffuser.enqueue(tasks)
        await self.session.wait_idle()
        return self.session.snapshot

    async def fuzzy_find(self, query: str, kind: str | None = None) -> str:
        kind = kind or self.default_kind
        if kind not in SUPPORTED_SEARCHES:
            raise ValueError(f"Unknown kind: {kind}")

        if self._opened_kind != kind:
            self.session.open(kind, self.cwd)
            self._opened_kind = kind
        self.session.set_query(query)
        await self.session.wait_idle()

        snapshot = self.session.snapshot
        return format_lines(snapshot.lines, snapshot.total_count)

    async def preview(self, path: Path) -> str:
        path = self.cwd / path
        snapshot = await self._run_tasks([GeneratePreview(str(path.parent), path.name)])
        return "\n".join(snapshot.preview_lines)

    async def recent_directories(self, query: str = "") -> str:
        lines = await asyncio.to_thread(self.session.database.query_recent, query)
        return format_lines(lines, len(lines))

    async def remember_directory(self, directory: Path) -> str:
        prefix, suffix = split_recent_path(directory, Path.home())
        await self._run_tasks([PersistRecentDirectory(prefix, suffix)])
        return f"Remembered {directory}"

    async def forget_directory(self, directory: Path) -> str:
        _, suffix = split_recent_path(directory, Path.home())
        await self._run_tasks([DeleteEntry(suffix)])
        return f"Forgot {directory}"

    async def call(self, name: str, arguments: dict | None) -> str:
        """Validate the arguments of a tool call and run it."""
        arguments = arguments or {}

        async with self.lock:
            if name == "fuzzy-find":
                query = arguments.get("query")
                if query is None:
                    raise ValueError("Missing query")
                return await self.fuzzy_find(query, arguments.get("kind"))

            if name == "preview":
                path = arguments.get("path")
                if not path:
                    raise ValueError("Missing path")
                return await self.preview(Path(path))

            if name == "recent-directories":
                return await self.recent_directories(arguments.get("query") or "")

            if name in ("remember-directory", "forget-directory"):
                path = arguments.get("path")
                if not path:
                    raise ValueError("Missing path")
                directory = Path(path)
                if not directory.is_absolute():
                    raise ValueError(f"Not an absolute path: {path}")
                if name == "remember-directory":
                    return await self.remember_directory(directory)
                return await self.forget_directory(directory)

        raise ValueError(f"Unknown tool: {name}")

    async def read_preview(self, path: Path) -> str:
        async with self.lock:
            snapshot = await self._run_tasks([GeneratePreview(str(path.parent), path.name)])
        return "\n".join(snapshot.preview_lines)

    async def list_recent(self) -> list[Line]:
        async with self.lock:
            return await asyncio.to_thread(self.session.database.query_recent, "")


def run_server(
    cwd: Path,
    settings: FinderSettings,
    default_kind: str = "files",
    watch_directory: bool = False,
):
    server = Server("neo-fuzzy")
    session = FinderSession(settings)
    tools = FinderTools(session, cwd, default_kind)

    @server.list_tools()
    async def handle_list_tools() -> list[types.Tool]:
        """
        List available tools.
        Each tool specifies its arguments using JSON Schema validation.
        """
        return [
            types.Tool(
                name="fuzzy-find",
                description="Fuzzy find files or directories below the working directory",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "query": {"type": "string"},
                        "kind": {"type": "string", "enum": list(SUPPORTED_SEARCHES.keys())},
                    },
                    "required": ["query"],
                },
            ),
            types.Tool(
                name="preview",
                description="Preview a file or directory relative to the working directory",
                inputSchema={
                    "type": "object",
                    "properties": {"path": {"type": "string"}},
                    "required": ["path"],
                },
            ),
            types.Tool(
                name="recent-directories",
                description="Search the recently used directories",
                inputSchema={
                    "type": "object",
                    "properties": {"query": {"type": "string"}},
                },
            ),
            types.Tool(
                name="remember-directory",
                description="Add an absolute directory to the recent directories",
                inputSchema={
                    "type": "object",
                    "properties": {"path": {"type": "string"}},
                    "required": ["path"],
                },
            ),
            types.Tool(
                name="forget-directory",
                description="Remove an absolute directory from the recent directories",
                inputSchema={
                    "type": "object",
                    "properties": {"path": {"type": "string"}},
                    "required": ["path"],
                },
            ),
        ]

    @server.call_tool()
    async def handle_call_tool(name: str, arguments: dict | None) -> list[types.TextContent]:
        """
        Handle tool execution requests.
        Every request goes through the session diffuser, one request at a time.
        """
        text = await tools.call(name, arguments)
        return [types.TextContent(type="text", text=text)]

    @server.list_resources()
    async def handle_list_resources() -> list[types.Resource]:
        """
        List the recent directories as resources.
        """
        return [
            types.Resource(
                uri=pydantic.networks.FileUrl("file://" + str(line.full_path)),
                name=line.full_path.name or str(line.full_path),
                description=f"Recent directory: {line.full_path}",
                mimeType="text/plain",
            )
            for line in await tools.list_recent()
        ]

    @server.read_resource()
    async def handle_read_resource(uri: pydantic.networks.AnyUrl) -> str:
        """
        Read a resource: the preview of a file or directory.
        """
        logger.info("Reading resource: %s", uri)
        if uri.scheme != "file":
            raise ValueError(f"Unsupported scheme: {uri.scheme}")

        if not uri.path:
            raise ValueError("Missing path")

        return await tools.read_preview(Path(unquote(uri.path)))

    async def run_server():
        watcher = None
        if watch_directory:
            watcher = CorpusWatcher(session, cwd, asyncio.get_running_loop())
            watcher.start()

        try:
            # Run the server using stdin/stdout streams
            async with mcp.server.stdio.stdio_server() as (read_stream, write_stream):
                await server.run(
                    read_stream,
                    write_stream,
                    InitializationOptions(
                        server_name="neo-fuzzy",
                        server_version="0.1.0",
                        capabilities=server.get_capabilities(
                            notification_options=NotificationOptions(),
                            experimental_capabilities={},
                        ),
                    ),
                )
        finally:
            if watcher:
                watcher.stop()
            await session.close()
            session.shutdown()

    logger.info("Starting server in %s", cwd)

    asyncio.run(run_server())
