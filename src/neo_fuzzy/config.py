"""Search kind registry and finder settings."""

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class SearchKindConfig:
    """How the corpus for one kind of search is populated."""

    name: str  # Short name: "files"
    cmd: str  # Executable used to enumerate the corpus: "fd"
    args: list[str] = field(default_factory=list)
    directories: bool = False  # Entries are directories (directory icon, recent history)
    history: bool = False  # Populate from the recent directories store instead of cmd


SUPPORTED_SEARCHES: dict[str, SearchKindConfig] = {
    "files": SearchKindConfig(
        name="files",
        cmd="fd",
        args=["--type", "file"],
    ),
    "directories": SearchKindConfig(
        name="directories",
        cmd="fd",
        args=["--type", "directory"],
        directories=True,
    ),
    "git_files": SearchKindConfig(
        name="git_files",
        cmd="git",
        args=["ls-files"],
    ),
    "recent_directories": SearchKindConfig(
        name="recent_directories",
        cmd="",
        directories=True,
        history=True,
    ),
}

DEFAULT_SEARCH = "files"

ENV_VAR_NAME = "NEO_FUZZY_SEARCH"
DATABASE_ENV_VAR_NAME = "NEO_FUZZY_DATABASE"

MAX_RESULTS = 300
HISTORY_COUNT = 30
INSERT_CHUNK_SIZE = 500


def get_search_config(search_name: str | None = None) -> SearchKindConfig:
    """
    Get the configuration for the specified search kind.

    Args:
        search_name: The name of the search kind. If None, uses the environment variable
                     NEO_FUZZY_SEARCH, falling back to DEFAULT_SEARCH.

    Returns:
        The search kind configuration.

    Raises:
        ValueError: If the search kind is not supported.
    """
    if search_name is None:
        search_name = os.environ.get(ENV_VAR_NAME, DEFAULT_SEARCH)

    if search_name not in SUPPORTED_SEARCHES:
        supported = ", ".join(SUPPORTED_SEARCHES.keys())
        raise ValueError(f"Unsupported search: {search_name}. Supported searches: {supported}")

    return SUPPORTED_SEARCHES[search_name]


def default_database_path() -> Path:
    value = os.environ.get(DATABASE_ENV_VAR_NAME)
    if value:
        return Path(value)
    return Path(tempfile.gettempdir()) / "neo-fuzzy" / "fuzzy.db"


@dataclass
class FinderSettings:
    """Settings for one finder session."""

    database_path: Path = field(default_factory=default_database_path)
    max_results: int = MAX_RESULTS
    history_count: int = HISTORY_COUNT
    insert_chunk_size: int = INSERT_CHUNK_SIZE
