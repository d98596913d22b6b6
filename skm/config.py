"""Global user configuration stored as TOML in the home directory."""

from __future__ import annotations

import os
import tomllib
from dataclasses import asdict, dataclass, field, fields
from datetime import timedelta
from pathlib import Path
from typing import Any

import tomli_w

from .models import AutomationLevel, ConfigError


@dataclass
class PriorityWeights:
    """Weights of the priority formula."""

    needs_human: float = 40.0
    risk: float = 25.0
    staleness: float = 15.0
    impact: float = 15.0
    confidence: float = 10.0


def _number(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{key} must be a number")
    return float(value)


def _integer(value: Any, key: str, upper: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{key} must be an integer")
    if not 0 <= value <= upper:
        raise ValueError(f"{key} out of range: {value}")
    return value


def _string(value: Any, key: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{key} must be a string")
    return value


def _boolean(value: Any, key: str) -> bool:
    if not isinstance(value, bool):
        raise TypeError(f"{key} must be a boolean")
    return value


@dataclass
class GlobalConfig:
    """User-wide settings for scanning and prioritising projects."""

    weights: PriorityWeights = field(default_factory=PriorityWeights)
    attention_threshold: float = 50.0
    agent_priority: list[str] = field(
        default_factory=lambda: ["claude", "cursor", "nvim", "bash"]
    )
    default_editor: str = "nvim"
    qdrant_url: str = "http://localhost:6333"
    automation_level: AutomationLevel = AutomationLevel.L1
    dry_run_default: bool = True
    scan_depth: int = 5
    watch_interval_secs: int = 5
    max_projects: int | None = None

    @classmethod
    def config_path(cls) -> Path:
        """Location of the configuration file."""
        home = os.environ.get("HOME")
        if not home:
            raise ConfigError("HOME environment variable is not set")
        return Path(home) / ".config" / "skm" / "config.toml"

    @classmethod
    def load(cls) -> GlobalConfig:
        """Read the configuration file, or return defaults when it is absent."""
        path = cls.config_path()
        if not path.exists():
            return cls()
        try:
            with path.open("rb") as handle:
                data = tomllib.load(handle)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"invalid TOML in {path}: {exc}") from exc
        return cls._from_mapping(data)

    @classmethod
    def _from_mapping(cls, data: dict[str, Any]) -> GlobalConfig:
        try:
            weights = data["weights"]
            if not isinstance(weights, dict):
                raise TypeError("weights must be a table")
            agents = data["agent_priority"]
            if not isinstance(agents, list):
                raise TypeError("agent_priority must be an array")
            max_projects = data.get("max_projects")
            return cls(
                weights=PriorityWeights(
                    **{f.name: _number(weights[f.name], f.name) for f in fields(PriorityWeights)}
                ),
                attention_threshold=_number(data["attention_threshold"], "attention_threshold"),
                agent_priority=[_string(agent, "agent_priority") for agent in agents],
                default_editor=_string(data["default_editor"], "default_editor"),
                qdrant_url=_string(data["qdrant_url"], "qdrant_url"),
                automation_level=AutomationLevel(
                    _string(data["automation_level"], "automation_level")
                ),
                dry_run_default=_boolean(data["dry_run_default"], "dry_run_default"),
                scan_depth=_integer(data["scan_depth"], "scan_depth", 0xFF),
                watch_interval_secs=_integer(
                    data["watch_interval_secs"], "watch_interval_secs", 2**64 - 1
                ),
                max_projects=None
                if max_projects is None
                else _integer(max_projects, "max_projects", 2**32 - 1),
            )
        except KeyError as exc:
            raise ConfigError(f"missing field {exc.args[0]}") from exc
        except (TypeError, ValueError) as exc:
            raise ConfigError(str(exc)) from exc

    def _to_mapping(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "weights": asdict(self.weights),
            "attention_threshold": self.attention_threshold,
            "agent_priority": list(self.agent_priority),
            "default_editor": self.default_editor,
            "qdrant_url": self.qdrant_url,
            "automation_level": self.automation_level.value,
            "dry_run_default": self.dry_run_default,
            "scan_depth": self.scan_depth,
            "watch_interval_secs": self.watch_interval_secs,
        }
        if self.max_projects is not None:
            data["max_projects"] = self.max_projects
        return data

    def save(self) -> None:
        """Write the configuration file, creating its directory."""
        path = self.config_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(tomli_w.dumps(self._to_mapping()), encoding="utf-8")

    def watch_interval(self) -> timedelta:
        """Interval between watch cycles."""
        return timedelta(seconds=self.watch_interval_secs)