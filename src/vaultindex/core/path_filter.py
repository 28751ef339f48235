"""
Include/exclude filtering of vault paths and folder helpers.

Patterns use gitignore-style wildmatch semantics (via pathspec) anchored at
the vault root: ``*.md`` matches root-level notes only, ``**/*.md`` matches
notes at any depth, and a bare folder name such as ``notes`` matches
everything beneath it.
"""

import logging
import re
from collections.abc import Iterable
from typing import List, Optional

import pathspec

logger = logging.getLogger(__name__)

ROOT_FOLDER = ""


def normalize_folder(path: Optional[str]) -> str:
    """Strip leading/trailing slashes; ``None``, ``""`` and ``"/"`` are the root."""
    if not path or path == "/":
        return ROOT_FOLDER
    return path.strip("/")


def folder_of(path: str) -> str:
    """Return the parent folder of a document path (``""`` for root-level documents)."""
    head, sep, _ = path.rpartition("/")
    return head if sep else ROOT_FOLDER


def ancestor_folders(folder: str) -> List[str]:
    """
    Return ``folder`` and every ancestor up to and including the root.

    ``ancestor_folders("a/b")`` is ``["a/b", "a", ""]``.
    """
    folder = normalize_folder(folder)
    chain = []
    while folder:
        chain.append(folder)
        folder = folder_of(folder)
    chain.append(ROOT_FOLDER)
    return chain


def is_under_folder(path: str, folder: str) -> bool:
    """True when ``path`` lies anywhere beneath ``folder`` (always for the root)."""
    folder = normalize_folder(folder)
    return folder == ROOT_FOLDER or path.startswith(folder + "/")


def list_folder_paths(paths: Iterable[str]) -> List[str]:
    """Derive every folder containing at least one of ``paths``, root included, sorted."""
    folders = {ROOT_FOLDER}
    for path in paths:
        folders.update(ancestor_folders(folder_of(path)))
    return sorted(folders)


def _anchor(pattern: str) -> str:
    negated = pattern.startswith("!")
    body = pattern[1:] if negated else pattern
    if not body.startswith("/") and not body.startswith("**"):
        body = "/" + body
    return ("!" if negated else "") + body


def _compile(patterns: Iterable[str]) -> Optional[pathspec.PathSpec]:
    lines = [_anchor(p.strip()) for p in patterns if p and p.strip()]
    if not lines:
        return None
    return pathspec.PathSpec.from_lines("gitwildmatch", lines)


class PathFilter:
    """
    Include/exclude filter over vault-relative POSIX paths.

    A path is selected when it matches no exclude pattern and, if include
    patterns are given, matches at least one of them. Exclusion wins.

    Matching follows gitignore rules, not minimatch: a bare folder name such
    as ``notes`` also selects every note beneath that folder, where a
    minimatch glob would only match a file literally named ``notes``.
    """

    def __init__(
        self,
        include_patterns: Optional[Iterable[str]] = None,
        exclude_patterns: Optional[Iterable[str]] = None,
    ):
        self.include_patterns = list(include_patterns or [])
        self.exclude_patterns = list(exclude_patterns or [])
        self._include = _compile(self.include_patterns)
        self._exclude = _compile(self.exclude_patterns)

    def matches(self, path: str) -> bool:
        """Return True if ``path`` is selected by this filter."""
        if self._exclude is not None and self._exclude.match_file(path):
            return False
        if self._include is None:
            return True
        return self._include.match_file(path)

    def filter(self, paths: Iterable[str]) -> List[str]:
        """Return the selected paths, preserving order."""
        return [p for p in paths if self.matches(p)]

    def __repr__(self) -> str:
        return (
            f"PathFilter(include={self.include_patterns!r}, exclude={self.exclude_patterns!r})"
        )


def folder_paths_to_include_patterns(folders: Iterable[str]) -> List[str]:
    """
    Convert selected folders into include patterns.

    Each folder yields a recursive pattern and a direct-children pattern;
    the root folder yields ``**/*.md`` and ``*.md``.
    """
    patterns: List[str] = []
    for raw in folders:
        folder = normalize_folder(raw)
        base = f"{folder}/" if folder else ""
        for pattern in (f"{base}**/*.md", f"{base}*.md"):
            if pattern not in patterns:
                patterns.append(pattern)
    return patterns


_FOLDER_PATTERN_FORMS = [
    re.compile(r"^(.*)/\*\*/\*\.md$"),
    re.compile(r"^(.*)/\*\*$"),
    re.compile(r"^(.*)/\*\.md$"),
    re.compile(r"^(.*)/$"),
]


def include_patterns_to_folder_paths(patterns: Iterable[str]) -> List[str]:
    """
    Best-effort inverse of folder_paths_to_include_patterns.

    Patterns that do not name a folder are ignored.
    """
    folders: List[str] = []
    for pattern in patterns:
        folder: Optional[str] = None
        if pattern in ("**/*.md", "**", "*.md"):
            folder = ROOT_FOLDER
        else:
            for form in _FOLDER_PATTERN_FORMS:
                match = form.match(pattern)
                if match:
                    folder = normalize_folder(match.group(1))
                    break
        if folder is not None and folder not in folders:
            folders.append(folder)
    return folders
