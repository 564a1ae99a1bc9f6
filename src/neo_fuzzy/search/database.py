"""SQLite storage for the fuzzy finder.

Two stores are kept:

- an in-memory ``all_lines`` table holding the corpus of the current search session
- an on-disk database holding the ``recent_directories`` history and ``settings``

Both connections get the ``fuzzy_score`` and ``regexp`` functions registered so ranking
happens inside the ``ORDER BY`` of a single query.
"""

import sqlite3
from collections.abc import Iterable
from itertools import islice
from pathlib import Path

from neo_fuzzy.config import HISTORY_COUNT, INSERT_CHUNK_SIZE, MAX_RESULTS
from neo_fuzzy.logger import logging
from neo_fuzzy.search.fuzzy import fuzzy_score, regexp
from neo_fuzzy.search.messages import Line

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1"


class IndexStoreError(Exception):
    """Base class for storage failures. Callers log these and degrade to empty results."""


class ConnectionFailed(IndexStoreError):
    pass


class QueryFailed(IndexStoreError):
    def __init__(self, cause: Exception):
        super().__init__(f"Query failed: {cause}")
        self.cause = cause


class WriteFailed(IndexStoreError):
    def __init__(self, cause: Exception):
        super().__init__(f"Write failed: {cause}")
        self.cause = cause


def _register_functions(connection: sqlite3.Connection):
    connection.create_function("fuzzy_score", 2, fuzzy_score, deterministic=True)
    connection.create_function("regexp", 2, regexp, deterministic=True)


def _chunks(items: Iterable, size: int):
    iterator = iter(items)
    while chunk := list(islice(iterator, size)):
        yield chunk


def split_recent_path(directory: Path, home: Path) -> tuple[str, str]:
    """Split an absolute directory into the (prefix, suffix) pair stored in the history."""
    if directory.is_relative_to(home):
        return str(home), str(directory.relative_to(home))
    return directory.anchor, str(directory.relative_to(directory.anchor))


def _row_to_line(row: tuple) -> Line:
    icon, hl_group, path_prefix, path_suffix, line_nr = row
    return Line(
        path_suffix=path_suffix,
        path_prefix=path_prefix,
        icon=icon,
        highlight_group=hl_group,
        line_nr=line_nr,
    )


class Database:
    """Transient corpus plus durable recent directory history."""

    memory: sqlite3.Connection
    connection: sqlite3.Connection
    database_path: Path
    max_results: int
    history_count: int
    insert_chunk_size: int

    def __init__(
        self,
        database_path: Path,
        max_results: int = MAX_RESULTS,
        history_count: int = HISTORY_COUNT,
        insert_chunk_size: int = INSERT_CHUNK_SIZE,
    ):
        self.database_path = database_path
        self.max_results = max_results
        self.history_count = history_count
        self.insert_chunk_size = insert_chunk_size

        try:
            database_path.parent.mkdir(parents=True, exist_ok=True)
            self.connection = sqlite3.connect(database_path, check_same_thread=False)
            # Enable WAL mode so several editor instances can share the history
            self.connection.execute("PRAGMA journal_mode=WAL")
            self.connection.execute("PRAGMA synchronous=NORMAL")
            self.connection.execute("PRAGMA busy_timeout=5000")
            _register_functions(self.connection)

            self.memory = sqlite3.connect(":memory:", check_same_thread=False)
            _register_functions(self.memory)

            self.initialize()
        except (OSError, sqlite3.Error) as e:
            raise ConnectionFailed(f"Failed to open database at {database_path}: {e}") from e

    def initialize(self):
        """Create the tables of both stores."""
        self.connection.execute("""
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT
            )
        """)
        self.connection.execute("""
            CREATE TABLE IF NOT EXISTS recent_directories (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                path_prefix TEXT NOT NULL,
                path_suffix TEXT NOT NULL,
                UNIQUE(path_prefix, path_suffix)
            )
        """)
        self.connection.commit()

        stored_version = self.get_setting("schema_version")
        if stored_version is None:
            self.set_setting("schema_version", SCHEMA_VERSION)
        elif stored_version != SCHEMA_VERSION:
            logger.warning(
                "Database schema version %s differs from %s", stored_version, SCHEMA_VERSION
            )

        self.memory.execute("""
            CREATE TABLE IF NOT EXISTS all_lines (
                icon TEXT NOT NULL,
                hl_group TEXT NOT NULL,
                path_prefix TEXT NOT NULL,
                path_suffix TEXT PRIMARY KEY,
                line_nr INTEGER
            )
        """)
        self.memory.commit()

    # Settings

    def get_setting(self, key: str) -> str | None:
        result = self.connection.execute(
            "SELECT value FROM settings WHERE key = ?", (key,)
        ).fetchone()
        return result[0] if result else None

    def set_setting(self, key: str, value: str):
        self.connection.execute(
            "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
            (key, value),
        )
        self.connection.commit()

    # Transient corpus

    def insert_all(self, lines: Iterable[Line]):
        """
        Upsert lines into the corpus.

        Rows are written in chunks inside one transaction. An existing ``path_suffix`` is
        updated in place so the original insertion order is kept.
        """
        rows = (
            (line.icon, line.highlight_group, line.path_prefix, line.path_suffix, line.line_nr)
            for line in lines
        )
        try:
            with self.memory:
                for chunk in _chunks(rows, self.insert_chunk_size):
                    self.memory.executemany(
                        """INSERT INTO all_lines (icon, hl_group, path_prefix, path_suffix, line_nr)
                           VALUES (?, ?, ?, ?, ?)
                           ON CONFLICT(path_suffix) DO UPDATE SET
                               icon = excluded.icon,
                               hl_group = excluded.hl_group,
                               path_prefix = excluded.path_prefix,
                               line_nr = excluded.line_nr""",
                        chunk,
                    )
        except sqlite3.Error as e:
            raise WriteFailed(e) from e

    def query(
        self, text: str, pattern: str | None = None, path_prefix: str | None = None
    ) -> list[Line]:
        """
        Search the corpus.

        Without a pattern, rows must contain ``text`` as a case-sensitive substring. With a
        pattern, rows must match it instead. ``path_prefix`` restricts the search to one root.
        Matches are ordered by edit distance to ``text``, closest first, and capped at
        ``max_results``.
        """
        if pattern is None:
            where = "(? = '' OR instr(path_suffix, ?) > 0)"
            params: tuple = (text, text)
        else:
            where = "path_suffix REGEXP ?"
            params = (pattern,)

        if path_prefix is not None:
            where += " AND path_prefix = ?"
            params = (*params, path_prefix)

        try:
            rows = self.memory.execute(
                f"""SELECT icon, hl_group, path_prefix, path_suffix, line_nr
                    FROM all_lines
                    WHERE {where}
                    ORDER BY fuzzy_score(?, path_suffix), rowid
                    LIMIT ?""",
                (*params, text, self.max_results),
            ).fetchall()
        except sqlite3.Error as e:
            raise QueryFailed(e) from e

        return [_row_to_line(row) for row in rows]

    def is_empty(self) -> bool:
        try:
            result = self.memory.execute("SELECT EXISTS (SELECT 1 FROM all_lines)").fetchone()
        except sqlite3.Error as e:
            raise QueryFailed(e) from e
        return not result[0]

    def count(self) -> int:
        result = self.memory.execute("SELECT COUNT(*) FROM all_lines").fetchone()
        return result[0]

    def clear(self):
        """Remove the whole corpus, e.g. when the search root changes."""
        try:
            with self.memory:
                self.memory.execute("DELETE FROM all_lines")
        except sqlite3.Error as e:
            raise WriteFailed(e) from e

    # Recent directories

    def insert_recent(self, path_prefix: str, path_suffix: str):
        """Remember a directory. Already known directories are left as they are."""
        try:
            with self.connection:
                self.connection.execute(
                    """INSERT INTO recent_directories (path_prefix, path_suffix)
                       VALUES (?, ?)
                       ON CONFLICT(path_prefix, path_suffix) DO NOTHING""",
                    (path_prefix, path_suffix),
                )
                self.connection.execute(
                    """DELETE FROM recent_directories
                       WHERE id NOT IN (
                           SELECT id FROM recent_directories ORDER BY id DESC LIMIT ?
                       )""",
                    (self.history_count,),
                )
        except sqlite3.Error as e:
            raise WriteFailed(e) from e

    def delete_recent(self, path_suffix: str):
        try:
            with self.connection:
                self.connection.execute(
                    "DELETE FROM recent_directories WHERE path_suffix = ?", (path_suffix,)
                )
        except sqlite3.Error as e:
            raise WriteFailed(e) from e

    def query_recent(self, text: str) -> list[Line]:
        """Search the history. An empty query lists the newest directories first."""
        try:
            rows = self.connection.execute(
                """SELECT path_prefix, path_suffix
                   FROM recent_directories
                   WHERE (? = '' OR instr(path_suffix, ?) > 0)
                   ORDER BY fuzzy_score(?, path_suffix), id DESC
                   LIMIT ?""",
                (text, text, text, self.max_results),
            ).fetchall()
        except sqlite3.Error as e:
            raise QueryFailed(e) from e

        return [Line.directory(path_prefix, path_suffix) for path_prefix, path_suffix in rows]

    def import_recent_file(self, path: Path, home: Path | None = None) -> int:
        """
        Seed the history from a newline-delimited file of absolute directory paths.

        Paths under ``home`` are stored relative to it, others relative to their anchor.
        Returns the number of lines read.
        """
        home = home if home is not None else Path.home()
        content = path.read_bytes().decode("utf-8", errors="replace")

        count = 0
        for raw in content.splitlines():
            raw = raw.strip()
            if not raw:
                continue
            directory = Path(raw)
            if not directory.is_absolute():
                logger.debug("Skipping relative recent directory %s", raw)
                continue
            prefix, suffix = split_recent_path(directory, home)
            if suffix == ".":
                continue
            self.insert_recent(prefix, suffix)
            count += 1

        logger.info("Imported %d recent directories from %s", count, path)
        return count

    def close(self):
        """Close both connections."""
        self.memory.close()
        self.connection.close()
