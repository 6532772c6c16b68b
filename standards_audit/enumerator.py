"""Deterministic candidate file enumeration."""

from __future__ import annotations

import fnmatch
import os
import stat
from collections.abc import Sequence
from pathlib import Path

from standards_audit.rules.filtering import ActiveRuleSet
from standards_audit.rules.models import match_file_pattern

SCAN_MODES = ("quick", "full")
DEFAULT_QUICK_LIMIT = 10
TEXT_SNIFF_BYTES = 8192

IGNORED_DIRECTORIES = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        ".idea",
        ".vscode",
        ".venv",
        "venv",
        "env",
        "__pycache__",
        ".mypy_cache",
        ".pytest_cache",
        ".ruff_cache",
        ".tox",
        "node_modules",
        ".next",
        "vendor",
        "build",
        "dist",
        ".dart_tool",
        "storage",
        "coverage",
    }
)


def enumerate_files(
    root: Path,
    mode: str,
    active: ActiveRuleSet,
    *,
    quick_limit: int = DEFAULT_QUICK_LIMIT,
    include: Sequence[str] = (),
    exclude: Sequence[str] = (),
) -> list[str]:
    """Return candidate paths relative to ``root`` in lexicographic order.

    ``full`` returns every regular file matched by ``active.file_patterns``, or
    every text file when an active rule has no pattern. ``quick`` keeps only
    the first ``quick_limit`` candidates of each directory.
    """
    if mode not in SCAN_MODES:
        raise ValueError(f"mode must be one of: {', '.join(SCAN_MODES)}")
    if quick_limit <= 0:
        raise ValueError("quick_limit must be > 0")

    root = root.resolve()
    patterns = active.file_patterns
    wants_text_files = active.wants_text_files

    selected: list[str] = []
    for directory, names in _walk_sorted(root):
        per_directory = 0
        for name in names:
            rel_path = f"{directory}/{name}" if directory else name
            if not _passes_filters(rel_path, include=include, exclude=exclude):
                continue
            if not _is_regular_file(root / rel_path):
                continue
            if any(match_file_pattern(pattern, rel_path) for pattern in patterns) or (
                wants_text_files and is_text_file(root / rel_path)
            ):
                selected.append(rel_path)
                per_directory += 1
                if mode == "quick" and per_directory >= quick_limit:
                    break
    return sorted(selected)


def is_text_file(path: Path) -> bool:
    """Best-effort binary sniff: no NUL byte in the first few KiB.

    Unreadable files count as text so evaluation records why they were skipped.
    """
    try:
        with path.open("rb") as file_obj:
            head = file_obj.read(TEXT_SNIFF_BYTES)
    except OSError:
        return True
    return b"\0" not in head


def _walk_sorted(root: Path) -> list[tuple[str, list[str]]]:
    walked: list[tuple[str, list[str]]] = []
    for current, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(name for name in dirnames if name not in IGNORED_DIRECTORIES)
        rel_dir = Path(current).relative_to(root).as_posix()
        if rel_dir == ".":
            rel_dir = ""
        walked.append((rel_dir, sorted(filenames)))
    walked.sort(key=lambda item: item[0])
    return walked


def _passes_filters(path: str, *, include: Sequence[str], exclude: Sequence[str]) -> bool:
    if include and not any(fnmatch.fnmatch(path, pattern) for pattern in include):
        return False
    if exclude and any(fnmatch.fnmatch(path, pattern) for pattern in exclude):
        return False
    return True


def _is_regular_file(path: Path) -> bool:
    """False for FIFOs, sockets and devices. Stat failures are left to the reader."""
    try:
        mode = path.stat().st_mode
    except OSError:
        return True
    return stat.S_ISREG(mode)
