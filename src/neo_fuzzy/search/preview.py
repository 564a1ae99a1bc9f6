import asyncio
import time
from pathlib import Path

from neo_fuzzy.logger import logging
from neo_fuzzy.search.messages import PreviewResult

logger = logging.getLogger(__name__)

EMPTY_DIRECTORY = "> Empty directory"
BINARY_FILE = "> File is a binary"

BINARY_EXTENSIONS = frozenset(
    {"bin", "so", "mkv", "mp4", "blend", "jpg", "png", "jpeg", "webp"}
)


def is_binary(path: Path) -> bool:
    """Binary detection by extension only, the file is never opened."""
    return path.suffix[1:].lower() in BINARY_EXTENSIONS


def preview_directory(path: Path) -> list[str]:
    """
    List the immediate children of a directory.

    Directories get a trailing slash and come first, then both groups are sorted by name.
    """
    items = []
    for child in path.iterdir():
        try:
            items.append(f"{child.name}/" if child.is_dir() else child.name)
        except OSError as e:
            logger.debug("Skipping %s: %s", child, e)

    items.sort(key=lambda item: (not item.endswith("/"), item))

    if not items:
        items.append(EMPTY_DIRECTORY)

    return items


def preview_file(path: Path) -> PreviewResult:
    if is_binary(path):
        return PreviewResult([BINARY_FILE])

    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        return PreviewResult([BINARY_FILE])

    return PreviewResult(content.splitlines(), str(path.resolve()))


def generate_preview(path: Path) -> PreviewResult:
    """Blocking preview of a path. Unreadable or missing paths give an empty preview."""
    try:
        if path.is_dir():
            return PreviewResult(preview_directory(path))
        if path.is_file():
            return preview_file(path)
    except OSError as e:
        logger.warning("Failed to preview %s: %s", path, e)
        return PreviewResult()

    logger.debug("Nothing to preview at %s", path)
    return PreviewResult()


async def get_preview(path: Path) -> PreviewResult:
    """Preview a path without blocking the event loop."""
    start = time.perf_counter()
    result = await asyncio.to_thread(generate_preview, path)
    logger.debug("Elapsed preview: %.1fms", (time.perf_counter() - start) * 1000)
    return result
