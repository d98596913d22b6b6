"""Per-root project metadata and the cached portfolio status."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from .models import AutomationLevel, ConfigError, SKMError, _format_timestamp, _parse_timestamp

_STATE_DIR = ".skm"
_META_FILE = "meta.json"
_STATUS_FILE = "status.json"
_CACHE_LIFETIME = timedelta(minutes=5)
_UNSIGNED = re.compile(r"\+?\d+")


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SKMError(f"Serialization error: {exc}") from exc


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")


@dataclass
class ProjectMeta:
    """User-provided settings for one project."""

    impact: int | None = None
    approved_by_human: bool = False
    custom_commands: dict[str, str] = field(default_factory=dict)
    agent_command: str | None = None
    automation_level: AutomationLevel | None = None
    auto_approve: list[str] = field(default_factory=list)

    def _to_json(self) -> dict[str, Any]:
        return {
            "impact": self.impact,
            "approved_by_human": self.approved_by_human,
            "custom_commands": dict(self.custom_commands),
            "agent_command": self.agent_command,
            "automation_level": None
            if self.automation_level is None
            else self.automation_level.value,
            "auto_approve": list(self.auto_approve),
        }

    @classmethod
    def _from_json(cls, data: dict[str, Any]) -> ProjectMeta:
        approved = data.get("approved_by_human", False)
        if not isinstance(approved, bool):
            raise TypeError("approved_by_human must be a boolean")
        impact = data.get("impact")
        level = data.get("automation_level")
        agent = data.get("agent_command")
        return cls(
            impact=None if impact is None else int(impact),
            approved_by_human=approved,
            custom_commands={str(k): str(v) for k, v in data.get("custom_commands", {}).items()},
            agent_command=None if agent is None else str(agent),
            automation_level=None if level is None else AutomationLevel(level),
            auto_approve=[str(item) for item in data.get("auto_approve", [])],
        )


@dataclass
class ProjectMetaStore:
    """Metadata of all projects under a root, kept in .skm/meta.json."""

    version: str = "1.0.0"
    projects: dict[str, ProjectMeta] = field(default_factory=dict)

    @classmethod
    def load(cls, root: str | Path) -> ProjectMetaStore:
        """Read the store, or return an empty one when the file is absent."""
        path = Path(root) / _STATE_DIR / _META_FILE
        if not path.exists():
            return cls()
        data = _read_json(path)
        try:
            return cls(
                version=str(data["version"]),
                projects={
                    str(name): ProjectMeta._from_json(meta)
                    for name, meta in data["projects"].items()
                },
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise SKMError(f"Serialization error: {exc}") from exc

    def save(self, root: str | Path) -> None:
        """Write the store to .skm/meta.json under root."""
        payload = {
            "version": self.version,
            "projects": {name: meta._to_json() for name, meta in self.projects.items()},
        }
        _write_json(Path(root) / _STATE_DIR / _META_FILE, payload)

    def get_project(self, project_id: str) -> ProjectMeta | None:
        """Metadata of a project, if any is recorded."""
        return self.projects.get(project_id)

    def project_entry(self, project_id: str) -> ProjectMeta:
        """Metadata of a project, created empty when missing."""
        return self.projects.setdefault(project_id, ProjectMeta())

    def set_value(self, project_id: str, key: str, value: str) -> None:
        """Set one metadata key of a project from its text form."""
        meta = self.project_entry(project_id)
        if key == "impact":
            if not _UNSIGNED.fullmatch(value) or int(value) > 0xFF:
                raise ConfigError(f"invalid impact value: {value!r}")
            meta.impact = int(value)
        elif key == "approved_by_human":
            if value not in ("true", "false"):
                raise ConfigError(f"invalid boolean value: {value!r}")
            meta.approved_by_human = value == "true"
        elif key == "agent_command":
            meta.agent_command = value
        elif key.startswith("command."):
            meta.custom_commands[key.removeprefix("command.")] = value
        else:
            raise ConfigError(f"Unknown key: {key}")


@dataclass
class StatusCache:
    """Cached portfolio status kept in .skm/status.json."""

    last_updated: datetime
    data: Any

    @classmethod
    def load(cls, root: str | Path) -> StatusCache | None:
        """Read the cache, returning None when it is missing or older than five minutes."""
        path = Path(root) / _STATE_DIR / _STATUS_FILE
        if not path.exists():
            return None
        raw = _read_json(path)
        try:
            cache = cls(last_updated=_parse_timestamp(raw["last_updated"]), data=raw["data"])
        except (KeyError, TypeError, ValueError) as exc:
            raise SKMError(f"Serialization error: {exc}") from exc
        age = datetime.now(timezone.utc) - cache.last_updated
        return cache if age < _CACHE_LIFETIME else None

    def save(self, root: str | Path) -> None:
        """Write the cache to .skm/status.json under root."""
        payload = {"last_updated": _format_timestamp(self.last_updated), "data": self.data}
        _write_json(Path(root) / _STATE_DIR / _STATUS_FILE, payload)