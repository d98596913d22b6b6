from datetime import datetime, timezone
from pathlib import Path

from skm.markdown import generate_markdown_report, save_markdown_report
from skm.models import (
    ArtifactStatus,
    GitStatus,
    HumanRequirement,
    PortfolioStatus,
    Project,
    ProjectType,
    ScanStats,
    Stage,
    StatusSummary,
    TaskSummary,
)
from skm.stage import get_next_action

WHEN = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def _project(name, priority, stage=Stage.BOOTSTRAP, reqs=(), git=None, tasks=None):
    return Project(
        id=name,
        path=Path("/work") / name,
        stage=stage,
        next=get_next_action(stage),
        requires_human=list(reqs),
        priority=priority,
        tasks=tasks or TaskSummary(),
        updated=WHEN,
        git=git or GitStatus(),
        project_type=ProjectType.RUST,
        artifacts=ArtifactStatus(),
    )


def _status(projects, errors=(), by_stage=None, total=0, done=0):
    return PortfolioStatus(
        generated_at=WHEN,
        scan_stats=ScanStats(len(projects), len(projects), 12, list(errors)),
        projects=projects,
        summary=StatusSummary(0, len(projects), by_stage or {}, total, done, 0.0),
    )


def test_empty_portfolio():
    report = generate_markdown_report(_status([]))
    assert report.startswith("# SKM Portfolio Status Report\n\n")
    assert "Generated: 2024-01-02 03:04:05 UTC" in report
    assert "No projects found." in report
    assert "| Bootstrap | 0 |" in report
    assert "## Errors Encountered" not in report
    assert report.endswith("*Generated by SKM (Spec-Kit Manager)*\n")


def test_stage_counts_and_progress():
    report = generate_markdown_report(
        _status([], by_stage={Stage.PLAN: 3}, total=4, done=1)
    )
    assert "| Plan | 3 |" in report
    assert "1/4 completed (25%)" in report


def test_projects_sorted_by_priority():
    report = generate_markdown_report(
        _status([_project("low", 10.0), _project("high", 80.0), _project("mid", 50.0)])
    )
    positions = [report.index(f"### /work/{name}") for name in ("high", "mid", "low")]
    assert positions == sorted(positions)
    assert "| 80.0 🔴 | high |" in report
    assert "| 50.0 🟡 | mid |" in report
    assert "| 10.0 🟢 | low |" in report


def test_long_description_truncated():
    report = generate_markdown_report(_status([_project("p", 1.0)]))
    description = get_next_action(Stage.BOOTSTRAP).description
    assert f"| {description[:37]}... |" in report
    assert f"- **Next Action**: {description}\n" in report


def test_git_and_requirements_details():
    project = _project(
        "p",
        60.0,
        reqs=[HumanRequirement.INPUT, HumanRequirement.FIX],
        git=GitStatus(is_repo=True, branch=None, clean=False),
        tasks=TaskSummary(total=5, completed=2, parallel_marked=1, blocked=2),
    )
    report = generate_markdown_report(_status([project], errors=["boom"]))
    assert "Yes (Input, Fix)" in report
    assert "- **Git Branch**: unknown" in report
    assert "⚠️ Uncommitted changes" in report
    assert "- **Tasks**: 2/5 completed (1 parallel) (2 blocked)\n" in report
    assert "## Errors Encountered\n\n- boom\n" in report


def test_save_creates_directories(tmp_path):
    status = _status([_project("p", 5.0)])
    target = tmp_path / "nested" / ".skm" / "STATUS.md"
    save_markdown_report(status, target)
    assert target.read_text(encoding="utf-8") == generate_markdown_report(status)