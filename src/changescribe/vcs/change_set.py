"""
Data models for collected repository changes.

A :class:`ChangeSet` is everything the commit prompt needs to know about
the staged changes. It is built once by
:meth:`changescribe.vcs.git_client.GitClient.collect_change_set` and is
immutable afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Tuple


MAX_FILE_CHANGE_CHARS = 2000
UNKNOWN_FILE_TYPE = "Code"

FILE_TYPES = {
    ".tsx": "React TypeScript Component",
    ".ts": "TypeScript",
    ".jsx": "React JavaScript Component",
    ".js": "JavaScript",
    ".py": "Python",
    ".css": "Stylesheet",
    ".scss": "Stylesheet",
    ".json": "Configuration",
    ".toml": "Configuration",
    ".yml": "Configuration",
    ".yaml": "Configuration",
    ".md": "Documentation",
    ".rst": "Documentation",
}


def describe_file_type(file_path: str) -> str:
    """Return a human label for the kind of file at ``file_path``.

    Unrecognized extensions give ``"Code"``. Those files are left out of
    the per-file analysis since they are usually binary or generated.
    """
    return FILE_TYPES.get(PurePosixPath(file_path).suffix.lower(), UNKNOWN_FILE_TYPE)


@dataclass(frozen=True)
class FileAnalysis:
    """Staged diff of a single file, capped for the prompt."""

    file: str
    changes: str
    type: str


@dataclass(frozen=True)
class ChangeSet:
    """Staged changes of a repository.

    Attributes
    ----------
    has_changes : bool
        False when the working tree is clean; all other fields are then
        empty.
    file_changes : str
        ``git diff --staged --name-status`` output.
    detailed_diff : str
        Full staged diff, truncated or replaced by a notice when too
        large.
    modified_files : Tuple[str, ...]
        Staged paths in ``git`` order.
    diff_stats : str
        ``git diff --staged --stat`` output.
    last_commit : str
        One-line summary of ``HEAD``.
    current_branch : str
        Name of the checked-out branch.
    file_analysis : Tuple[FileAnalysis, ...]
        Per-file diffs for the first few files of known type.
    """

    has_changes: bool
    file_changes: str = ""
    detailed_diff: str = ""
    modified_files: Tuple[str, ...] = ()
    diff_stats: str = ""
    last_commit: str = ""
    current_branch: str = ""
    file_analysis: Tuple[FileAnalysis, ...] = ()

    @classmethod
    def empty(cls) -> "ChangeSet":
        return cls(has_changes=False)
