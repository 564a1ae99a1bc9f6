"""Tests for the MCP tools."""

import pytest
from conftest import FakeSpawn

from neo_fuzzy.mcp_server import FinderTools, format_lines
from neo_fuzzy.search.messages import Line
from neo_fuzzy.search.session import FinderSession


def test_format_lines():
    lines = (Line("a.txt", "/p"), Line("b.py", "/p", line_nr=7))
    assert format_lines(lines, 10) == "2 of 10 entries\n/p/a.txt\n/p/b.py:7"


def test_format_no_lines():
    assert format_lines((), 0) == "0 of 0 entries"


@pytest.fixture
def spawn():
    return FakeSpawn("\n".join(f"f{i}.txt" for i in range(50)).encode())


@pytest.fixture
def tools(settings, database, spawn, fake_preview, tmp_path):
    session = FinderSession(settings, database=database, spawn_fn=spawn, preview_fn=fake_preview)
    return FinderTools(session, tmp_path)


class TestFinderTools:
    """Tool calls against one shared session."""

    @pytest.mark.asyncio
    async def test_fuzzy_find(self, tools, spawn):
        text = await tools.call("fuzzy-find", {"query": "f49"})

        header, *paths = text.splitlines()
        assert header == "1 of 50 entries"
        assert paths == [str(tools.cwd / "f49.txt")]

    @pytest.mark.asyncio
    async def test_search_is_opened_once_per_kind(self, tools, spawn):
        await tools.call("fuzzy-find", {"query": "f1"})
        await tools.call("fuzzy-find", {"query": "f2"})
        assert len(spawn.calls) == 1

        await tools.call("fuzzy-find", {"query": "f2", "kind": "directories"})
        assert len(spawn.calls) == 2

    @pytest.mark.asyncio
    async def test_history_lookup_leaves_search_alone(self, tools, database):
        for i in range(14):
            database.insert_recent("/home/u", f"dir{i}")

        await tools.call("fuzzy-find", {"query": "f1"})
        recent = await tools.call("recent-directories", {})
        text = await tools.call("fuzzy-find", {"query": "f29"})

        assert recent.splitlines()[0] == "14 of 14 entries"
        assert text.splitlines()[0] == "1 of 50 entries"
        snapshot = tools.session.snapshot
        assert snapshot.total_count == 50
        assert snapshot.tabs == ()
        assert snapshot.selected_tab == 0

    @pytest.mark.asyncio
    async def test_remember_and_forget(self, tools, tmp_path):
        directory = tmp_path / "project"

        assert await tools.call("remember-directory", {"path": str(directory)}) == (
            f"Remembered {directory}"
        )
        recent = await tools.call("recent-directories", {"query": "project"})
        assert recent.splitlines() == ["1 of 1 entries", str(directory)]

        await tools.call("forget-directory", {"path": str(directory)})
        recent = await tools.call("recent-directories", {})
        assert recent == "0 of 0 entries"

    @pytest.mark.asyncio
    async def test_preview_relative_to_cwd(self, tools, fake_preview):
        text = await tools.call("preview", {"path": "docs/readme.md"})

        assert text == "preview of readme.md"
        assert fake_preview.paths == [tools.cwd / "docs" / "readme.md"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "name, arguments",
        [
            ("fuzzy-find", {}),
            ("fuzzy-find", {"query": "x", "kind": "nope"}),
            ("preview", {}),
            ("remember-directory", {"path": "relative/dir"}),
            ("forget-directory", None),
            ("unknown-tool", {}),
        ],
    )
    async def test_invalid_calls(self, tools, name, arguments):
        with pytest.raises(ValueError):
            await tools.call(name, arguments)
