"""Shared fixtures for the finder tests."""

from pathlib import Path

import pytest

from neo_fuzzy.config import FinderSettings
from neo_fuzzy.search.database import Database
from neo_fuzzy.search.messages import PreviewResult
from neo_fuzzy.search.process import SpawnOutput


class FakeSpawn:
    """Records spawned commands and answers with canned output."""

    def __init__(self, stdout: bytes = b"", returncode: int = 0):
        self.stdout = stdout
        self.returncode = returncode
        self.calls = []

    async def __call__(self, cmd, args, cwd):
        self.calls.append((cmd, list(args), Path(cwd)))
        return SpawnOutput(self.returncode, self.stdout)


class FakePreview:
    """Returns a one-line preview naming the previewed path."""

    def __init__(self):
        self.paths = []

    async def __call__(self, path):
        self.paths.append(Path(path))
        return PreviewResult([f"preview of {Path(path).name}"], str(path))


@pytest.fixture
def settings(tmp_path):
    return FinderSettings(database_path=tmp_path / "state" / "fuzzy.db")


@pytest.fixture
def database(settings):
    db = Database(
        settings.database_path,
        max_results=settings.max_results,
        history_count=settings.history_count,
        insert_chunk_size=settings.insert_chunk_size,
    )
    yield db
    db.close()


@pytest.fixture
def fake_preview():
    return FakePreview()
