from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from neo_fuzzy.search.icons import DIRECTORY_HIGHLIGHT, DIRECTORY_ICON


@dataclass(frozen=True)
class Line:
    """One searchable entry of the corpus."""

    path_suffix: str  # relative path or text, unique within a prefix
    path_prefix: str = ""  # root the entry was found under
    icon: str = ""
    highlight_group: str = ""
    line_nr: int | None = None

    @property
    def full_path(self) -> Path:
        return Path(self.path_prefix) / self.path_suffix

    @classmethod
    def directory(cls, path_prefix: str, path_suffix: str) -> "Line":
        return cls(
            path_suffix=path_suffix,
            path_prefix=path_prefix,
            icon=DIRECTORY_ICON,
            highlight_group=DIRECTORY_HIGHLIGHT,
        )


@dataclass(frozen=True)
class Tab:
    """A named result category, e.g. "All directories" vs "Recent directories"."""

    name: str
    full: str = field(default="", compare=False)


@dataclass
class TaskResult:
    """
    A sparse patch for the search state.

    ``None`` leaves the state field untouched, anything else overwrites it.
    ``changed`` marks the state dirty for the renderer.
    """

    total_count: int | None = None
    lines: Sequence[Line] | None = None
    selected_index: int | None = None
    selected_tab: int | None = None
    tabs: Sequence[Tab] | None = None
    preview_lines: Sequence[str] | None = None
    preview_source_path: str | None = None  # "" when the preview has no source file
    changed: bool = False

    def has_changes(self) -> bool:
        return self.changed or any(
            value is not None
            for value in (
                self.total_count,
                self.lines,
                self.selected_index,
                self.selected_tab,
                self.tabs,
                self.preview_lines,
                self.preview_source_path,
            )
        )


@dataclass
class PreviewResult:
    lines: list[str] = field(default_factory=list)
    source_path: str = ""  # resolved file path, used by the host for filetype detection
