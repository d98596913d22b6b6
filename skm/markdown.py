"""Markdown rendering of a portfolio status report."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

from .models import HumanRequirement, PortfolioStatus, Stage

_TOP_PROJECTS = 10
_DESCRIPTION_WIDTH = 40


def _utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _format_requirements(requirements: Sequence[HumanRequirement]) -> str:
    return ", ".join(req.value for req in requirements)


def _truncate(text: str, max_len: int) -> str:
    raw = text.encode("utf-8")
    if len(raw) <= max_len:
        return text
    return raw[: max_len - 3].decode("utf-8", "ignore") + "..."


def _priority_emoji(priority: float) -> str:
    if priority > 70.0:
        return "🔴"
    if priority > 40.0:
        return "🟡"
    return "🟢"


def generate_markdown_report(status: PortfolioStatus) -> str:
    """The full Markdown report for a portfolio status."""
    summary = status.summary
    out: list[str] = ["# SKM Portfolio Status Report\n\n"]
    out.append(f"Generated: {_utc(status.generated_at):%Y-%m-%d %H:%M:%S} UTC\n\n")

    percent = (
        summary.completed_tasks / summary.total_tasks * 100.0 if summary.total_tasks > 0 else 0.0
    )
    out.append("## Summary\n\n")
    out.append(f"- **Total Projects**: {summary.total_projects}\n")
    out.append(f"- **Need Attention**: {summary.needs_attention} 🚨\n")
    out.append(
        f"- **Tasks Progress**: {summary.completed_tasks}/{summary.total_tasks} "
        f"completed ({percent:.0f}%)\n"
    )
    out.append(f"- **Average Priority**: {summary.avg_priority:.1f}\n")
    out.append(f"- **Scan Time**: {status.scan_stats.scan_time_ms}ms\n\n")

    out.append("## Stage Distribution\n\n")
    out.append("| Stage | Count |\n")
    out.append("|-------|-------|\n")
    for stage in Stage:
        out.append(f"| {stage.value} | {summary.by_stage.get(stage, 0)} |\n")
    out.append("\n")

    out.append("## High Priority Projects\n\n")
    ranked = sorted(status.projects, key=lambda project: project.priority, reverse=True)
    if not ranked:
        out.append("No projects found.\n\n")
    else:
        out.append("| Priority | Project | Stage | Next Action | Human Needed |\n")
        out.append("|----------|---------|-------|-------------|---------------|\n")
        for project in ranked[:_TOP_PROJECTS]:
            human = (
                f"Yes ({_format_requirements(project.requires_human)})"
                if project.requires_human
                else "No"
            )
            out.append(
                f"| {project.priority:.1f} {_priority_emoji(project.priority)} "
                f"| {Path(project.path).name or 'unknown'} | {project.stage.value} "
                f"| {_truncate(project.next.description, _DESCRIPTION_WIDTH)} | {human} |\n"
            )
        out.append("\n")

    out.append("## Project Details\n\n")
    for project in ranked:
        out.append(f"### {project.path}\n\n")
        out.append(f"- **Stage**: {project.stage.value}\n")
        out.append(f"- **Priority**: {project.priority:.1f}\n")
        out.append(f"- **Type**: {project.project_type.value}\n")
        out.append(f"- **Last Updated**: {_utc(project.updated):%Y-%m-%d %H:%M} UTC\n")
        if project.git.is_repo:
            out.append(f"- **Git Branch**: {project.git.branch or 'unknown'}\n")
            state = "✅ Clean" if project.git.clean else "⚠️ Uncommitted changes"
            out.append(f"- **Git Status**: {state}\n")
        tasks = project.tasks
        out.append(f"- **Tasks**: {tasks.completed}/{tasks.total} completed")
        if tasks.parallel_marked > 0:
            out.append(f" ({tasks.parallel_marked} parallel)")
        if tasks.blocked > 0:
            out.append(f" ({tasks.blocked} blocked)")
        out.append("\n")
        out.append(f"- **Next Action**: {project.next.description}\n")
        out.append(f"  - Command: `{project.next.command}`\n")
        out.append(f"  - Automated: {'Yes' if project.next.automated else 'No'}\n")
        if project.requires_human:
            out.append(f"- **Requires Human**: {_format_requirements(project.requires_human)}\n")
        out.append("\n")

    if status.scan_stats.errors:
        out.append("## Errors Encountered\n\n")
        out.extend(f"- {error}\n" for error in status.scan_stats.errors)
        out.append("\n")

    out.append("---\n")
    out.append("*Generated by SKM (Spec-Kit Manager)*\n")
    return "".join(out)


def save_markdown_report(status: PortfolioStatus, path: str | Path) -> None:
    """Write the report to a file, creating its directory."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(generate_markdown_report(status), encoding="utf-8")