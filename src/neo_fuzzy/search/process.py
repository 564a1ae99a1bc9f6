"""Thin wrappers around the external tools used to enumerate and grep the corpus."""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from neo_fuzzy.logger import logging

logger = logging.getLogger(__name__)


class SpawnError(OSError):
    """The command could not be started at all."""


@dataclass
class SpawnOutput:
    returncode: int
    stdout: bytes

    @property
    def success(self) -> bool:
        return self.returncode == 0

    def lines(self) -> list[str]:
        """Stdout as newline-delimited text, decoding invalid UTF-8 lossily."""
        return self.stdout.decode("utf-8", errors="replace").splitlines()


async def spawn(cmd: str, args: Sequence[str], cwd: Path) -> SpawnOutput:
    """Run a command to completion and collect its stdout."""
    try:
        process = await asyncio.create_subprocess_exec(
            cmd,
            *args,
            cwd=cwd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise SpawnError(f"Failed to spawn {cmd}: {e}") from e

    stdout, stderr = await process.communicate()
    if process.returncode != 0 and stderr:
        logger.debug("%s exited with %d: %s", cmd, process.returncode, stderr.decode(errors="replace"))

    return SpawnOutput(process.returncode or 0, stdout)


@dataclass
class GrepHit:
    path: str
    line_nr: int
    text: str


def parse_grep_line(line: str) -> GrepHit | None:
    """Parse one ``path:line:text`` line of ``rg --no-heading --line-number`` output."""
    parts = line.split(":", 2)
    if len(parts) != 3:
        return None

    path, line_nr, text = parts
    if not path or not line_nr.isdigit():
        return None

    return GrepHit(path, int(line_nr), text)
