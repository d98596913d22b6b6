"""Reading spec artifacts and task lists from a project's spec directory."""

from __future__ import annotations

import os
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from .models import ArtifactStatus, FileInfo, TaskSummary

_TASK_ID = re.compile(r"T\d{3,4}:")
_ASCII_DIGITS = frozenset("0123456789")

_OPEN_CHECKBOXES = ("- [ ]", "* [ ]")
_DONE_CHECKBOXES = ("- [x]", "- [X]", "* [x]", "* [X]")
_CHECKBOX_PREFIXES = ("- [", "* [")
_PARALLEL_MARKERS = ("[P]", "(P)", "||")
_BLOCKED_MARKERS = ("[BLOCKED]", "🚫", "⛔")
_ID_DONE_MARKERS = ("✅", "DONE", "[COMPLETE]", "[x]", "[X]")
_ID_PARALLEL_MARKERS = ("[P]", "||")
_ID_BLOCKED_MARKERS = ("[BLOCKED]", "🚫")
_EMOJI_DONE = ("✅", "☑")
_EMOJI_OPEN = ("⬜", "☐", "❌", "🔄")


def _debug(message: str) -> None:
    if "SKM_DEBUG" in os.environ:
        print(f"[DEBUG] {message}", file=sys.stderr)


def _lines(content: str) -> Iterator[str]:
    pieces = content.split("\n")
    if pieces and pieces[-1] == "":
        pieces.pop()
    for piece in pieces:
        yield piece.removesuffix("\r")


def _contains_any(text: str, markers: tuple[str, ...]) -> bool:
    return any(marker in text for marker in markers)


def _modified(path: Path) -> datetime:
    return datetime.fromtimestamp(path.stat().st_mtime, timezone.utc)


def _is_valid(path: Path) -> bool:
    try:
        return bool(path.read_text(encoding="utf-8").strip())
    except (OSError, UnicodeDecodeError):
        return False


def _file_info(path: Path) -> FileInfo:
    stat = path.stat()
    return FileInfo(
        path=path,
        size=stat.st_size,
        modified=datetime.fromtimestamp(stat.st_mtime, timezone.utc),
        valid=_is_valid(path),
    )


def _direct_artifacts(path: Path) -> ArtifactStatus:
    status = ArtifactStatus()
    for candidate in (path / "constitution.md", path / "memory" / "constitution.md"):
        if candidate.exists():
            status.constitution = _file_info(candidate)
            break
    for name in ("spec", "plan", "tasks"):
        candidate = path / f"{name}.md"
        if candidate.exists():
            setattr(status, name, _file_info(candidate))
    return status


def _is_feature_name(name: str) -> bool:
    return all(char in _ASCII_DIGITS for char in name[:3])


def parse_artifacts(specify_path: str | Path) -> ArtifactStatus:
    """Artifacts of a .specify or specs directory.

    Artifacts lying directly in the directory win. Otherwise numbered feature
    directories (001-name, 002-name, ...) are searched from the latest down,
    taking the latest spec, plan and tasks file, with the constitution taken
    from the sibling .specify/memory directory.
    """
    specify_path = Path(specify_path)
    direct = _direct_artifacts(specify_path)
    if direct.has_any():
        return direct

    try:
        feature_dirs = sorted(
            (
                entry
                for entry in specify_path.iterdir()
                if entry.is_dir() and _is_feature_name(entry.name)
            ),
            key=lambda entry: entry.name,
        )
    except OSError:
        return ArtifactStatus()

    if feature_dirs:
        _debug(f"Found {len(feature_dirs)} numbered feature directories in {specify_path}")
        for directory in feature_dirs:
            _debug(f"  - {directory.name}")

    aggregated = ArtifactStatus()
    constitution = specify_path.parent / ".specify" / "memory" / "constitution.md"
    if constitution.exists():
        aggregated.constitution = _file_info(constitution)

    for directory in reversed(feature_dirs):
        feature = _direct_artifacts(directory)
        if aggregated.spec is None:
            aggregated.spec = feature.spec
        if aggregated.plan is None:
            aggregated.plan = feature.plan
        if aggregated.tasks is None:
            aggregated.tasks = feature.tasks

    return aggregated if aggregated.has_any() else ArtifactStatus()


def count_tasks(content: str) -> TaskSummary:
    """Task counts of a task list in any of the supported notations."""
    summary = TaskSummary()
    for line in _lines(content):
        trimmed = line.strip()
        if trimmed.startswith(_OPEN_CHECKBOXES):
            summary.total += 1
            if _contains_any(line, _PARALLEL_MARKERS):
                summary.parallel_marked += 1
            if _contains_any(line, _BLOCKED_MARKERS):
                summary.blocked += 1
        elif trimmed.startswith(_DONE_CHECKBOXES):
            summary.total += 1
            summary.completed += 1
            if _contains_any(line, _PARALLEL_MARKERS):
                summary.parallel_marked += 1
        elif ":" in trimmed and not trimmed.startswith(_CHECKBOX_PREFIXES):
            if _TASK_ID.search(trimmed):
                summary.total += 1
                if _contains_any(line, _ID_DONE_MARKERS):
                    summary.completed += 1
                if _contains_any(line, _ID_PARALLEL_MARKERS):
                    summary.parallel_marked += 1
                if _contains_any(line, _ID_BLOCKED_MARKERS):
                    summary.blocked += 1
        elif trimmed.startswith(_EMOJI_DONE):
            summary.total += 1
            summary.completed += 1
        elif trimmed.startswith(_EMOJI_OPEN):
            summary.total += 1
    return summary


def parse_tasks_file(path: str | Path) -> TaskSummary:
    """Task counts of a tasks.md file, with its modification time as last activity."""
    path = Path(path)
    _debug(f"Parsing tasks from: {path}")
    summary = count_tasks(path.read_text(encoding="utf-8"))
    summary.last_activity = _modified(path)
    _debug(
        f"Tasks parsed: total={summary.total}, completed={summary.completed}, "
        f"parallel={summary.parallel_marked}, blocked={summary.blocked}"
    )
    return summary


def extract_title(content: str) -> str | None:
    """Text of the first level-one heading, if any."""
    for line in _lines(content):
        if line.startswith("# "):
            while line.startswith("# "):
                line = line.removeprefix("# ")
            return line.strip()
    return None


def count_sections(content: str) -> int:
    """Number of level-two headings."""
    return sum(1 for line in _lines(content) if line.startswith("## "))