"""Command-line entry point: scanning, status display and reports."""

from __future__ import annotations

import argparse
import json
import os
import sys
import time
from collections import Counter
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

from . import git, parser, priority, stage
from .config import GlobalConfig
from .finder import ProjectScanner, detect_project_type
from .markdown import save_markdown_report
from .models import (
    PortfolioStatus,
    Project,
    ScanStats,
    SKMError,
    StatusSummary,
    TaskSummary,
)
from .state import ProjectMetaStore, StatusCache

_VERSION = "1.0.0"
_SHOWN_PROJECTS = 10
_DEFAULT_IMPACT = 2


def _is_debug() -> bool:
    return "SKM_DEBUG" in os.environ


def _debug(message: str) -> None:
    if _is_debug():
        print(f"[DEBUG] {message}", file=sys.stderr)


def _utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _ranked(projects: Sequence[Project]) -> list[Project]:
    return sorted(projects, key=lambda project: project.priority, reverse=True)


def process_project(
    project_path: str | Path,
    config: GlobalConfig,
    meta_store: ProjectMetaStore,
) -> Project:
    """Analyse one project directory into a scored project."""
    project_path = Path(project_path)
    specify_path = project_path / ".specify"
    specs_path = project_path / "specs"

    _debug(f"Processing project: {project_path}")
    _debug(f"  .specify exists: {str(specify_path.exists()).lower()}")
    _debug(f"  specs exists: {str(specs_path.exists()).lower()}")

    if specs_path.exists():
        artifacts = parser.parse_artifacts(specs_path)
        if artifacts.has_any():
            _debug("  Using artifacts from specs")
        elif specify_path.exists():
            _debug("  specs has no artifacts, trying .specify")
            artifacts = parser.parse_artifacts(specify_path)
    elif specify_path.exists():
        _debug("  Using artifacts from .specify")
        artifacts = parser.parse_artifacts(specify_path)
    else:
        _debug("  No artifacts found")
        artifacts = parser.parse_artifacts(specify_path)

    tasks = (
        parser.parse_tasks_file(artifacts.tasks.path)
        if artifacts.tasks is not None
        else TaskSummary()
    )

    git_status = git.get_git_status(project_path)
    project_type = detect_project_type(project_path)
    current_stage = stage.detect_stage(artifacts, project_type)

    has_errors = git.has_recent_errors(project_path)
    risk_level = priority.calculate_risk(current_stage, git_status, tasks, has_errors)
    human_reqs = priority.detect_human_requirements(current_stage, git_status, tasks)

    project_id = project_path.name or "unknown"
    meta = meta_store.get_project(project_id)
    impact = _DEFAULT_IMPACT
    if meta is not None and meta.impact is not None:
        impact = meta.impact
    confidence = 2 if meta is not None and meta.approved_by_human else 1

    calculator = priority.PriorityCalculator(replace(config.weights))
    last_updated = (
        artifacts.spec.modified if artifacts.spec is not None else datetime.now(timezone.utc)
    )
    score = calculator.calculate(human_reqs, risk_level, last_updated, impact, confidence)

    return Project(
        id=project_id,
        path=project_path,
        stage=current_stage,
        next=stage.get_next_action(current_stage),
        requires_human=human_reqs,
        priority=score,
        tasks=tasks,
        updated=last_updated,
        git=git_status,
        project_type=project_type,
        artifacts=artifacts,
    )


def scan_projects(root: str | Path) -> PortfolioStatus:
    """Scan a tree, cache the result and write the Markdown status report."""
    root = Path(root)
    started = time.monotonic()

    config = GlobalConfig.load()
    meta_store = ProjectMetaStore.load(root)
    found = ProjectScanner(root, config.scan_depth).find_projects()

    projects: list[Project] = []
    errors: list[str] = []
    stage_counts: Counter = Counter()
    for project_path in found:
        try:
            project = process_project(project_path, config, meta_store)
        except (SKMError, OSError, ValueError) as exc:
            errors.append(f"Error processing {project_path}: {exc}")
            continue
        stage_counts[project.stage] += 1
        print(f"Found: {project.path} [{project.stage.value}] Priority: {project.priority:.1f}")
        projects.append(project)

    avg_priority = sum(p.priority for p in projects) / len(projects) if projects else 0.0
    needs_attention = sum(1 for p in projects if p.priority > config.attention_threshold)

    portfolio = PortfolioStatus(
        generated_at=datetime.now(timezone.utc),
        scan_stats=ScanStats(
            directories_scanned=len(found),
            projects_found=len(projects),
            scan_time_ms=int((time.monotonic() - started) * 1000),
            errors=errors,
        ),
        projects=projects,
        summary=StatusSummary(
            needs_attention=needs_attention,
            total_projects=len(projects),
            by_stage=dict(stage_counts),
            total_tasks=sum(p.tasks.total for p in projects),
            completed_tasks=sum(p.tasks.completed for p in projects),
            avg_priority=avg_priority,
        ),
    )

    StatusCache(last_updated=datetime.now(timezone.utc), data=portfolio.to_dict()).save(root)
    save_markdown_report(portfolio, root / ".skm" / "STATUS.md")

    summary = portfolio.summary
    print("\n=== Scan Complete ===")
    print(f"Projects found: {summary.total_projects}")
    print(f"Need attention: {summary.needs_attention}")
    print(f"Tasks: {summary.completed_tasks}/{summary.total_tasks} completed")
    print(f"Average priority: {summary.avg_priority:.1f}")
    print(f"Scan time: {portfolio.scan_stats.scan_time_ms}ms")
    if errors:
        print("\nErrors encountered:")
        for error in errors:
            print(f"  - {error}")
    return portfolio


def _apply_filter(portfolio: PortfolioStatus, only: str | None) -> PortfolioStatus:
    if only is None:
        return portfolio
    projects = portfolio.projects
    if only == "needs-attention":
        threshold = GlobalConfig.load().attention_threshold
        projects = [p for p in projects if p.priority > threshold]
    elif only == "incomplete":
        projects = [p for p in projects if p.tasks.completed < p.tasks.total]
    elif only.startswith("stage:"):
        wanted = only.removeprefix("stage:").lower()
        projects = [p for p in projects if p.stage.value.lower() == wanted]
    return replace(portfolio, projects=projects)


def show_status(root: str | Path, json_output: bool = False, only: str | None = None) -> None:
    """Show the cached portfolio status, rescanning when the cache is stale or missing."""
    try:
        cached = StatusCache.load(Path(root))
    except (SKMError, OSError, ValueError):
        cached = None

    if cached is None:
        print("Cache is stale or missing, rescanning...")
        scan_projects(root)
        return

    portfolio = _apply_filter(PortfolioStatus.from_dict(cached.data), only)
    if json_output:
        print(json.dumps(portfolio.to_dict(), indent=2, ensure_ascii=False))
    else:
        display_portfolio_status(portfolio)


def _status_icon(project: Project) -> str:
    if project.tasks.total > 0 and project.tasks.completed == project.tasks.total:
        return "✅"
    if project.priority > 50.0:
        return "🔴"
    if project.priority > 30.0:
        return "🟡"
    return "🟢"


def display_portfolio_status(portfolio: PortfolioStatus) -> None:
    """Print a human-readable overview of a portfolio."""
    summary = portfolio.summary
    percent = (
        summary.completed_tasks / summary.total_tasks * 100.0 if summary.total_tasks > 0 else 0.0
    )
    print("=== Portfolio Status ===")
    print(f"Generated: {_utc(portfolio.generated_at):%Y-%m-%d %H:%M} UTC")
    print()
    print(f"Total Projects: {summary.total_projects}")
    print(f"Need Attention: {summary.needs_attention}")
    print(f"Tasks: {summary.completed_tasks}/{summary.total_tasks} completed ({percent:.0f}%)")
    print(f"Average Priority: {summary.avg_priority:.1f}")
    print()

    print("Projects (by priority):")
    for project in _ranked(portfolio.projects)[:_SHOWN_PROJECTS]:
        name = Path(project.path).name or "?"
        print(
            f"  {_status_icon(project)} [{project.priority:>5.1f}] {name} - "
            f"{project.stage.value} - {project.tasks.completed}/{project.tasks.total} tasks"
        )
    if len(portfolio.projects) > _SHOWN_PROJECTS:
        print(f"  ... and {len(portfolio.projects) - _SHOWN_PROJECTS} more projects")


def _build_parser() -> argparse.ArgumentParser:
    cli = argparse.ArgumentParser(
        prog="skm",
        description="SKM (Spec-Kit Manager) - Intelligent meta-agent for project portfolio management",
    )
    cli.add_argument("--version", action="version", version=f"skm {_VERSION}")
    commands = cli.add_subparsers(dest="command", required=True)

    scan = commands.add_parser("scan", help="Scan for Spec-Kit projects in current directory")
    scan.add_argument("--root", default=".")
    scan.add_argument("--glob", default="*/.specify")

    status = commands.add_parser("status", help="Show status of all projects")
    status.add_argument("--root", default=".")
    status.add_argument("--json", action="store_true")
    status.add_argument("--only")

    report = commands.add_parser("report", help="Generate reports")
    report.add_argument("--out", default="./.skm/STATUS.md")
    report.add_argument("--format", default="md")

    digest = commands.add_parser("digest", help="Generate digest summaries")
    digest.add_argument("--project")
    digest.add_argument("mode")
    digest.add_argument("--out", default="DIGEST.md")
    return cli


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line; returns the process exit status."""
    args = _build_parser().parse_args(argv)
    try:
        if args.command == "scan":
            scan_projects(args.root)
        elif args.command == "status":
            show_status(args.root, args.json, args.only)
        elif args.command == "report":
            print(f"Generating {args.format} report to {args.out}")
        elif args.command == "digest":
            project = "None" if args.project is None else f'Some("{args.project}")'
            print(f"Generating {args.mode} digest for {project} to {args.out}")
    except (SKMError, OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())