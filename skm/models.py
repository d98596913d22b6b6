"""Core data model for the project portfolio and its JSON form."""

from __future__ import annotations

import contextlib
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from pathlib import Path
from typing import Any, Iterator


class SKMError(Exception):
    """Base error raised by the package."""


class ProjectNotFoundError(SKMError):
    """A project directory does not exist."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        super().__init__(f"Project not found: {self.path}")


class ConfigError(SKMError):
    """Configuration or metadata is missing or invalid."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Configuration error: {message}")


class Stage(StrEnum):
    """Lifecycle stage of a spec-driven project, in workflow order."""

    BOOTSTRAP = "Bootstrap"
    SPECIFY = "Specify"
    PLAN = "Plan"
    TASKS = "Tasks"
    IMPLEMENT = "Implement"
    TEST = "Test"
    REVIEW = "Review"
    DONE = "Done"


class HumanRequirement(StrEnum):
    """Kind of human involvement a project needs."""

    REVIEW = "Review"
    INPUT = "Input"
    FIX = "Fix"
    TEST = "Test"
    DEPLOY = "Deploy"
    DECISION = "Decision"


class ProjectType(StrEnum):
    """Language or ecosystem a project is written in."""

    RUST = "Rust"
    NODE = "Node"
    PYTHON = "Python"
    GO = "Go"
    GENERIC = "Generic"
    UNKNOWN = "Unknown"


class AutomationLevel(StrEnum):
    """Risk level of an automated action, from read-only to high risk."""

    L0 = "L0"
    L1 = "L1"
    L2 = "L2"
    L3 = "L3"


_FRACTION = re.compile(r"\.(\d+)")


def _format_timestamp(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_timestamp(text: str) -> datetime:
    if not isinstance(text, str):
        raise TypeError(f"expected a timestamp string, got {text!r}")
    normalised = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    moment = datetime.fromisoformat(normalised)
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _optional_timestamp(moment: datetime | None) -> str | None:
    return None if moment is None else _format_timestamp(moment)


def _optional_parse(text: str | None) -> datetime | None:
    return None if text is None else _parse_timestamp(text)


@contextlib.contextmanager
def _decoding() -> Iterator[None]:
    try:
        yield
    except (KeyError, TypeError, ValueError) as exc:
        raise SKMError(f"Serialization error: {exc}") from exc


@dataclass
class NextAction:
    """The next step recommended for a project."""

    command: str
    description: str
    automated: bool
    risk_level: AutomationLevel


@dataclass
class TaskSummary:
    """Counts taken from a project's task list."""

    total: int = 0
    completed: int = 0
    parallel_marked: int = 0
    blocked: int = 0
    last_activity: datetime | None = None


@dataclass
class GitStatus:
    """State of a project's git working tree."""

    is_repo: bool = False
    branch: str | None = None
    clean: bool = True
    last_commit: datetime | None = None
    ahead: int = 0
    behind: int = 0


@dataclass
class FileInfo:
    """A discovered artifact file."""

    path: Path
    size: int
    modified: datetime
    valid: bool


_ARTIFACT_NAMES = ("constitution", "spec", "plan", "tasks")


@dataclass
class ArtifactStatus:
    """Which spec artifacts a project has."""

    constitution: FileInfo | None = None
    spec: FileInfo | None = None
    plan: FileInfo | None = None
    tasks: FileInfo | None = None

    def has_any(self) -> bool:
        """Whether at least one artifact was found."""
        return any(getattr(self, name) is not None for name in _ARTIFACT_NAMES)


def _next_action_to_dict(action: NextAction) -> dict[str, Any]:
    return {
        "command": action.command,
        "description": action.description,
        "automated": action.automated,
        "risk_level": action.risk_level.value,
    }


def _next_action_from_dict(data: dict[str, Any]) -> NextAction:
    return NextAction(
        command=str(data["command"]),
        description=str(data["description"]),
        automated=bool(data["automated"]),
        risk_level=AutomationLevel(data["risk_level"]),
    )


def _tasks_to_dict(tasks: TaskSummary) -> dict[str, Any]:
    return {
        "total": tasks.total,
        "completed": tasks.completed,
        "parallel_marked": tasks.parallel_marked,
        "blocked": tasks.blocked,
        "last_activity": _optional_timestamp(tasks.last_activity),
    }


def _tasks_from_dict(data: dict[str, Any]) -> TaskSummary:
    return TaskSummary(
        total=int(data["total"]),
        completed=int(data["completed"]),
        parallel_marked=int(data["parallel_marked"]),
        blocked=int(data["blocked"]),
        last_activity=_optional_parse(data.get("last_activity")),
    )


def _git_to_dict(git: GitStatus) -> dict[str, Any]:
    return {
        "is_repo": git.is_repo,
        "branch": git.branch,
        "clean": git.clean,
        "last_commit": _optional_timestamp(git.last_commit),
        "ahead": git.ahead,
        "behind": git.behind,
    }


def _git_from_dict(data: dict[str, Any]) -> GitStatus:
    branch = data.get("branch")
    return GitStatus(
        is_repo=bool(data["is_repo"]),
        branch=None if branch is None else str(branch),
        clean=bool(data["clean"]),
        last_commit=_optional_parse(data.get("last_commit")),
        ahead=int(data["ahead"]),
        behind=int(data["behind"]),
    )


def _file_info_to_dict(info: FileInfo | None) -> dict[str, Any] | None:
    if info is None:
        return None
    return {
        "path": str(info.path),
        "size": info.size,
        "modified": _format_timestamp(info.modified),
        "valid": info.valid,
    }


def _file_info_from_dict(data: dict[str, Any] | None) -> FileInfo | None:
    if data is None:
        return None
    return FileInfo(
        path=Path(data["path"]),
        size=int(data["size"]),
        modified=_parse_timestamp(data["modified"]),
        valid=bool(data["valid"]),
    )


def _artifacts_to_dict(artifacts: ArtifactStatus) -> dict[str, Any]:
    return {name: _file_info_to_dict(getattr(artifacts, name)) for name in _ARTIFACT_NAMES}


def _artifacts_from_dict(data: dict[str, Any]) -> ArtifactStatus:
    return ArtifactStatus(
        **{name: _file_info_from_dict(data.get(name)) for name in _ARTIFACT_NAMES}
    )


@dataclass
class Project:
    """A scanned project with its analysis."""

    id: str
    path: Path
    stage: Stage
    next: NextAction
    requires_human: list[HumanRequirement]
    priority: float
    tasks: TaskSummary
    updated: datetime
    git: GitStatus
    project_type: ProjectType
    artifacts: ArtifactStatus

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation."""
        return {
            "id": self.id,
            "path": str(self.path),
            "stage": self.stage.value,
            "next": _next_action_to_dict(self.next),
            "requires_human": [req.value for req in self.requires_human],
            "priority": self.priority,
            "tasks": _tasks_to_dict(self.tasks),
            "updated": _format_timestamp(self.updated),
            "git": _git_to_dict(self.git),
            "project_type": self.project_type.value,
            "artifacts": _artifacts_to_dict(self.artifacts),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Project:
        """Build a project from its JSON representation."""
        with _decoding():
            return cls(
                id=str(data["id"]),
                path=Path(data["path"]),
                stage=Stage(data["stage"]),
                next=_next_action_from_dict(data["next"]),
                requires_human=[HumanRequirement(req) for req in data["requires_human"]],
                priority=float(data["priority"]),
                tasks=_tasks_from_dict(data["tasks"]),
                updated=_parse_timestamp(data["updated"]),
                git=_git_from_dict(data["git"]),
                project_type=ProjectType(data["project_type"]),
                artifacts=_artifacts_from_dict(data["artifacts"]),
            )


@dataclass
class ScanStats:
    """Statistics gathered during a scan."""

    directories_scanned: int = 0
    projects_found: int = 0
    scan_time_ms: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class StatusSummary:
    """Portfolio-wide totals."""

    needs_attention: int = 0
    total_projects: int = 0
    by_stage: dict[Stage, int] = field(default_factory=dict)
    total_tasks: int = 0
    completed_tasks: int = 0
    avg_priority: float = 0.0


@dataclass
class PortfolioStatus:
    """The result of scanning a directory tree of projects."""

    generated_at: datetime
    scan_stats: ScanStats
    projects: list[Project]
    summary: StatusSummary

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation."""
        stats = self.scan_stats
        summary = self.summary
        return {
            "generated_at": _format_timestamp(self.generated_at),
            "scan_stats": {
                "directories_scanned": stats.directories_scanned,
                "projects_found": stats.projects_found,
                "scan_time_ms": stats.scan_time_ms,
                "errors": list(stats.errors),
            },
            "projects": [project.to_dict() for project in self.projects],
            "summary": {
                "needs_attention": summary.needs_attention,
                "total_projects": summary.total_projects,
                "by_stage": {stage.value: count for stage, count in summary.by_stage.items()},
                "total_tasks": summary.total_tasks,
                "completed_tasks": summary.completed_tasks,
                "avg_priority": summary.avg_priority,
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PortfolioStatus:
        """Build a portfolio status from its JSON representation."""
        with _decoding():
            stats = data["scan_stats"]
            summary = data["summary"]
            return cls(
                generated_at=_parse_timestamp(data["generated_at"]),
                scan_stats=ScanStats(
                    directories_scanned=int(stats["directories_scanned"]),
                    projects_found=int(stats["projects_found"]),
                    scan_time_ms=int(stats["scan_time_ms"]),
                    errors=[str(error) for error in stats["errors"]],
                ),
                projects=[Project.from_dict(item) for item in data["projects"]],
                summary=StatusSummary(
                    needs_attention=int(summary["needs_attention"]),
                    total_projects=int(summary["total_projects"]),
                    by_stage={
                        Stage(name): int(count) for name, count in summary["by_stage"].items()
                    },
                    total_tasks=int(summary["total_tasks"]),
                    completed_tasks=int(summary["completed_tasks"]),
                    avg_priority=float(summary["avg_priority"]),
                ),
            )