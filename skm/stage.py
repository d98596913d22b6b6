"""Stage detection and recommended next actions."""

from __future__ import annotations

from .models import ArtifactStatus, AutomationLevel, NextAction, ProjectType, Stage

_NEXT_ACTIONS: dict[Stage, tuple[str, str, bool, AutomationLevel]] = {
    Stage.BOOTSTRAP: (
        "/speckit.constitution",
        "Create project constitution to establish core values and principles",
        False,
        AutomationLevel.L2,
    ),
    Stage.SPECIFY: (
        "/speckit.specify",
        "Create specification with user stories and requirements",
        False,
        AutomationLevel.L2,
    ),
    Stage.PLAN: (
        "/speckit.plan",
        "Create implementation plan with technical design",
        False,
        AutomationLevel.L2,
    ),
    Stage.TASKS: (
        "/speckit.tasks",
        "Generate task breakdown for implementation",
        True,
        AutomationLevel.L1,
    ),
    Stage.IMPLEMENT: (
        "/speckit.implement",
        "Begin implementation of tasks",
        False,
        AutomationLevel.L3,
    ),
    Stage.TEST: (
        "Run tests and verify implementation",
        "Execute test suite and validate functionality",
        True,
        AutomationLevel.L1,
    ),
    Stage.REVIEW: (
        "Review code and documentation",
        "Perform code review and quality checks",
        False,
        AutomationLevel.L1,
    ),
    Stage.DONE: (
        "Project complete",
        "All stages completed successfully",
        False,
        AutomationLevel.L0,
    ),
}

_DESCRIPTIONS: dict[Stage, str] = {
    Stage.BOOTSTRAP: "Needs constitution - establish project identity",
    Stage.SPECIFY: "Needs specification - define requirements",
    Stage.PLAN: "Needs plan - design technical approach",
    Stage.TASKS: "Needs tasks - break down work items",
    Stage.IMPLEMENT: "In implementation - coding in progress",
    Stage.TEST: "In testing - validating functionality",
    Stage.REVIEW: "In review - awaiting approval",
    Stage.DONE: "Complete - all stages finished",
}

_HUMAN_STAGES = frozenset({Stage.BOOTSTRAP, Stage.SPECIFY, Stage.PLAN, Stage.REVIEW})


def detect_stage(artifacts: ArtifactStatus, project_type: ProjectType) -> Stage:
    """Stage of a project judged from which artifacts exist.

    Artifacts alone do not reveal implementation progress, so a project that
    has every artifact is considered to be in implementation whatever its type.
    """
    if artifacts.constitution is None:
        return Stage.BOOTSTRAP
    if artifacts.spec is None:
        return Stage.SPECIFY
    if artifacts.plan is None:
        return Stage.PLAN
    if artifacts.tasks is None:
        return Stage.TASKS
    return Stage.IMPLEMENT


def get_next_action(stage: Stage) -> NextAction:
    """The recommended next step for a stage."""
    command, description, automated, risk_level = _NEXT_ACTIONS[stage]
    return NextAction(command, description, automated, risk_level)


def needs_human_attention(stage: Stage) -> bool:
    """Whether a stage cannot progress without a person."""
    return stage in _HUMAN_STAGES


def stage_description(stage: Stage) -> str:
    """Human-readable description of a stage."""
    return _DESCRIPTIONS[stage]