"""Priority scoring, risk estimation and detection of needed human input."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

from .config import PriorityWeights
from .models import GitStatus, HumanRequirement, Stage, TaskSummary

_MAX_RISK = 3
_STALE_AFTER_DAYS = 7.0
_IMPACT_SCALE = {1: 0.33, 2: 0.66, 3: 1.0}
_DEFAULT_IMPACT = 0.5
_INPUT_STAGES = frozenset({Stage.BOOTSTRAP, Stage.SPECIFY, Stage.PLAN})


def _normalize_risk(risk: int) -> float:
    return risk / _MAX_RISK


def _staleness(last_updated: datetime) -> float:
    if last_updated.tzinfo is None:
        last_updated = last_updated.replace(tzinfo=timezone.utc)
    days = (datetime.now(timezone.utc) - last_updated).days
    return min(max(days / _STALE_AFTER_DAYS, 0.0), 1.0)


def _normalize_impact(impact: int) -> float:
    return _IMPACT_SCALE.get(impact, _DEFAULT_IMPACT)


def _normalize_confidence(confidence: int) -> float:
    return confidence / 2.0


@dataclass
class PriorityCalculator:
    """Scores projects so the ones needing attention sort first."""

    weights: PriorityWeights = field(default_factory=PriorityWeights)

    def calculate(
        self,
        requires_human: Sequence[HumanRequirement],
        risk_level: int,
        last_updated: datetime,
        impact: int,
        confidence: int,
    ) -> float:
        """Weighted sum of human need, risk, staleness and impact, less confidence."""
        weights = self.weights
        needs_human = 1.0 if requires_human else 0.0
        return (
            weights.needs_human * needs_human
            + weights.risk * _normalize_risk(risk_level)
            + weights.staleness * _staleness(last_updated)
            + weights.impact * _normalize_impact(impact)
            - weights.confidence * _normalize_confidence(confidence)
        )


def calculate_risk(
    stage: Stage,
    git_status: GitStatus,
    tasks: TaskSummary,
    has_errors: bool,
) -> int:
    """Risk level from 0 to 3; each warning sign adds one."""
    signs = (
        has_errors,
        tasks.parallel_marked > 3,
        tasks.blocked > 0,
        not git_status.clean,
    )
    return min(sum(signs), _MAX_RISK)


def detect_human_requirements(
    stage: Stage,
    git_status: GitStatus,
    tasks: TaskSummary,
) -> list[HumanRequirement]:
    """The kinds of human involvement a project currently needs."""
    requirements: list[HumanRequirement] = []
    if stage in _INPUT_STAGES:
        requirements.append(HumanRequirement.INPUT)
    elif stage is Stage.REVIEW:
        requirements.append(HumanRequirement.REVIEW)
    elif stage is Stage.TEST and tasks.completed < tasks.total:
        requirements.append(HumanRequirement.TEST)

    if not git_status.clean:
        requirements.append(HumanRequirement.FIX)
    if tasks.blocked > 0:
        requirements.append(HumanRequirement.DECISION)
    return requirements


def has_error_markers(project_path: str | Path) -> bool:
    """Whether build or test output shows errors.

    Build output is deliberately not inspected to avoid false positives, so
    this always reports no markers.
    """
    return False