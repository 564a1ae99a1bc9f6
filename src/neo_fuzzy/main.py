import asyncio
from pathlib import Path

import click

from neo_fuzzy.config import SUPPORTED_SEARCHES, FinderSettings, default_database_path
from neo_fuzzy.search.database import Database, split_recent_path
from neo_fuzzy.search.session import GREP_MODE

database_option = click.option(
    "--database",
    "-d",
    "database_path",
    help="Path to the history database. Overrides NEO_FUZZY_DATABASE env var.",
    type=click.Path(dir_okay=False, file_okay=True, path_type=Path),
    default=None,
)


def _settings(database_path: Path | None) -> FinderSettings:
    return FinderSettings(database_path=database_path or default_database_path())


@click.group("neo-fuzzy")
def main():
    """
    CLI for the neo-fuzzy finder.
    """
    pass


@main.command("find")
@click.argument("query", default="")
@click.option(
    "--kind",
    "-k",
    help=f"Search kind. Overrides NEO_FUZZY_SEARCH env var. Supported: {', '.join(SUPPORTED_SEARCHES.keys())}, {GREP_MODE}",
    type=click.Choice([*SUPPORTED_SEARCHES.keys(), GREP_MODE]),
    default=None,
)
@click.option(
    "--cwd",
    "-c",
    help="Directory to search in.",
    type=click.Path(exists=True, dir_okay=True, file_okay=False, path_type=Path),
    default=None,
)
@database_option
@click.option("--preview", is_flag=True, help="Also print the preview of the top result.")
def find_cmd(
    query: str,
    kind: str | None,
    cwd: Path | None,
    database_path: Path | None,
    preview: bool,
):
    """
    Run a single query and print the matching entries, best match first.
    """
    from neo_fuzzy.search.session import FinderSession

    cwd = (cwd or Path.cwd()).resolve()

    async def run():
        session = FinderSession(_settings(database_path))
        try:
            if kind == GREP_MODE:
                session.open_grep(cwd)
            else:
                session.open(kind, cwd)
            session.set_query(query)
            await session.wait_idle()
            return session.snapshot
        finally:
            await session.close()
            session.shutdown()

    snapshot = asyncio.run(run())

    for line in snapshot.lines:
        # Entries outside the search root (recent directories) are printed in full
        path = line.path_suffix if line.path_prefix == str(cwd) else str(line.full_path)
        if line.line_nr is not None:
            click.echo(f"{path}:{line.line_nr}")
        else:
            click.echo(path)

    if preview and snapshot.lines:
        click.echo("")
        for preview_line in snapshot.preview_lines:
            click.echo(preview_line)


@main.group("recent")
def recent():
    """
    Manage the recent directories history.
    """
    pass


@recent.command("add")
@click.argument(
    "directories",
    nargs=-1,
    type=click.Path(exists=True, dir_okay=True, file_okay=False, path_type=Path),
)
@database_option
def recent_add_cmd(directories: tuple[Path, ...], database_path: Path | None):
    """
    Remember directories.
    """
    database = Database(_settings(database_path).database_path)
    try:
        for directory in directories:
            prefix, suffix = split_recent_path(directory.resolve(), Path.home())
            database.insert_recent(prefix, suffix)
    finally:
        database.close()


@recent.command("remove")
@click.argument("directories", nargs=-1, type=click.Path(path_type=Path))
@database_option
def recent_remove_cmd(directories: tuple[Path, ...], database_path: Path | None):
    """
    Forget directories.
    """
    database = Database(_settings(database_path).database_path)
    try:
        for directory in directories:
            _, suffix = split_recent_path(directory.absolute(), Path.home())
            database.delete_recent(suffix)
    finally:
        database.close()


@recent.command("list")
@click.argument("query", default="")
@database_option
def recent_list_cmd(query: str, database_path: Path | None):
    """
    Print the remembered directories, newest first.
    """
    database = Database(_settings(database_path).database_path)
    try:
        for line in database.query_recent(query):
            click.echo(str(line.full_path))
    finally:
        database.close()


@recent.command("import")
@click.argument(
    "history_file",
    type=click.Path(exists=True, dir_okay=False, file_okay=True, path_type=Path),
)
@database_option
def recent_import_cmd(history_file: Path, database_path: Path | None):
    """
    Seed the history from a file with one absolute directory per line.
    """
    database = Database(_settings(database_path).database_path)
    try:
        count = database.import_recent_file(history_file)
    finally:
        database.close()
    click.echo(f"Imported {count} directories")


@main.command("mcp")
@click.option(
    "--cwd",
    "-c",
    help="Directory to search in.",
    required=True,
    type=click.Path(exists=True, dir_okay=True, file_okay=False, path_type=Path),
)
@database_option
@click.option("--watch", is_flag=True, help="Rebuild the corpus when files change.")
@click.option(
    "--kind",
    "-k",
    help=f"Default search kind. Overrides NEO_FUZZY_SEARCH env var. Supported: {', '.join(SUPPORTED_SEARCHES.keys())}",
    type=click.Choice(list(SUPPORTED_SEARCHES.keys())),
    default=None,
)
def mcp_cmd(cwd: Path, database_path: Path | None, watch: bool, kind: str | None):
    """
    Run the neo-fuzzy MCP server.
    """
    from neo_fuzzy.config import get_search_config
    from neo_fuzzy.mcp_server import run_server

    run_server(
        cwd.resolve(),
        _settings(database_path),
        default_kind=get_search_config(kind).name,
        watch_directory=watch,
    )


if __name__ == "__main__":
    main()
