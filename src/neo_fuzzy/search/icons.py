"""Minimal devicon lookup keyed by file name and extension."""

from dataclasses import dataclass
from pathlib import PurePath

DIRECTORY_ICON = ""
DIRECTORY_HIGHLIGHT = "Directory"


@dataclass(frozen=True)
class Icon:
    glyph: str
    highlight: str


DEFAULT_ICON = Icon("", "DevIconDefault")

# (glyph, devicon name)
_FROM_FILE_NAME: dict[str, tuple[str, str]] = {
    ".gitignore": ("", "GitIgnore"),
    ".gitattributes": ("", "GitAttributes"),
    ".gitmodules": ("", "GitModules"),
    "Dockerfile": ("", "Dockerfile"),
    "Makefile": ("", "Makefile"),
    "Cargo.toml": ("", "Cargo"),
    "Cargo.lock": ("", "CargoLock"),
    "pyproject.toml": ("", "PyProject"),
    "package.json": ("", "PackageJson"),
    "LICENSE": ("", "License"),
    "README.md": ("", "Readme"),
}

_FROM_EXTENSION: dict[str, tuple[str, str]] = {
    "py": ("", "Py"),
    "rs": ("", "Rs"),
    "lua": ("", "Lua"),
    "js": ("", "Js"),
    "ts": ("", "Ts"),
    "json": ("", "Json"),
    "toml": ("", "Toml"),
    "yaml": ("", "Yaml"),
    "yml": ("", "Yml"),
    "md": ("", "Md"),
    "txt": ("", "Txt"),
    "sh": ("", "Sh"),
    "c": ("", "C"),
    "h": ("", "H"),
    "cpp": ("", "Cpp"),
    "go": ("", "Go"),
    "html": ("", "Html"),
    "css": ("", "Css"),
    "sql": ("", "Sql"),
    "png": ("", "Png"),
    "jpg": ("", "Jpg"),
    "jpeg": ("", "Jpeg"),
    "webp": ("", "Webp"),
    "mp4": ("", "Mp4"),
    "mkv": ("", "Mkv"),
}


def get_icon(path: str | PurePath) -> Icon:
    """Icon for a path: exact file name first, then the extension, then the default."""
    path = PurePath(path)

    found = _FROM_FILE_NAME.get(path.name)
    if found is None and path.suffix:
        found = _FROM_EXTENSION.get(path.suffix[1:].lower())

    if found is None:
        return DEFAULT_ICON

    glyph, name = found
    return Icon(glyph, f"DevIcon{name}")
