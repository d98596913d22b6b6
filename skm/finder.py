"""Discovery of spec-driven projects in a directory tree."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Iterator

from .models import ProjectType

_SPEC_DIR_NAMES = (".specify", "specs")
_INSIDE_SPECIFY = "/.specify/"
_IGNORED_DIRS = frozenset(
    {"node_modules", "target", ".git", "dist", "build", "__pycache__"}
)


def _posix(path: str) -> str:
    return path.replace(os.sep, "/")


def _is_spec_dir(path: str) -> bool:
    name = os.path.basename(path)
    if name == ".specify":
        return True
    if name == "specs":
        return _INSIDE_SPECIFY not in _posix(path)
    return False


@dataclass
class ProjectScanner:
    """Walks a directory tree looking for .specify or specs directories."""

    root: Path
    max_depth: int = 5
    glob_pattern: str = "*/{.specify,specs}"

    def __post_init__(self) -> None:
        self.root = Path(self.root)

    def with_max_depth(self, depth: int) -> ProjectScanner:
        """A copy of this scanner with another depth limit."""
        return replace(self, max_depth=depth)

    def with_pattern(self, pattern: str) -> ProjectScanner:
        """A copy of this scanner with another pattern."""
        return replace(self, glob_pattern=pattern)

    def find_projects(self) -> list[Path]:
        """Directories holding a .specify or specs directory, each once."""
        projects: list[Path] = []
        seen: set[str] = set()
        for path, is_dir in self._walk():
            if not is_dir or not _is_spec_dir(path):
                continue
            project = os.path.dirname(path)
            if _INSIDE_SPECIFY in _posix(project):
                continue
            if project not in seen:
                seen.add(project)
                projects.append(Path(project))
        return projects

    def _walk(self) -> Iterator[tuple[str, bool]]:
        root = os.fspath(self.root)
        if not os.path.exists(root):
            return
        is_dir = os.path.isdir(root)
        yield root, is_dir
        if is_dir and self.max_depth > 0:
            yield from self._descend(root, 1)

    def _descend(self, directory: str, depth: int) -> Iterator[tuple[str, bool]]:
        try:
            with os.scandir(directory) as listing:
                entries = sorted(listing, key=lambda entry: entry.name)
        except OSError:
            return
        for entry in entries:
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError:
                is_dir = False
            yield entry.path, is_dir
            if is_dir and depth < self.max_depth:
                yield from self._descend(entry.path, depth + 1)


def detect_project_type(path: str | Path) -> ProjectType:
    """Project type judged from language-specific marker files."""
    path = Path(path)
    if (path / "Cargo.toml").exists():
        return ProjectType.RUST
    if (path / "package.json").exists():
        return ProjectType.NODE
    if (path / "pyproject.toml").exists() or (path / "setup.py").exists():
        return ProjectType.PYTHON
    if (path / "go.mod").exists():
        return ProjectType.GO
    if (path / "src").exists() or (path / "lib").exists():
        return ProjectType.GENERIC
    return ProjectType.UNKNOWN


def should_ignore(path: str | Path) -> bool:
    """Whether a directory is build output or tooling that scans skip."""
    return Path(path).name in _IGNORED_DIRS