"""
Daily Report Workflow

Collects a user's commits for a date range and aggregates them into
statistics, with an optional AI-written summary.
"""

import asyncio
import json
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import List, Optional

from ..i18n import t
from ..integrations import git
from ..integrations.ai import AIError
from ..models import CommitInfo, CommitStats
from ..utils.logger import get_logger
from .context import WorkflowContext, WorkflowError

logger = get_logger(__name__)


@dataclass
class DailyReport:
    """Commits and statistics for one user over a date range."""

    username: str
    since: date
    until: date
    commits: List[CommitInfo] = field(default_factory=list)
    stats: CommitStats = field(default_factory=CommitStats)
    summary: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "username": self.username,
            "since": self.since.isoformat(),
            "until": self.until.isoformat(),
            "stats": self.stats.to_dict(),
            "commits": [c.model_dump(mode="json") for c in self.commits],
            "summary": self.summary,
        }


def parse_date(value: Optional[str], default: date) -> date:
    """Parse ``YYYY-MM-DD``; None yields ``default``.

    Raises:
        WorkflowError: If the value is not a valid date
    """
    if value is None:
        return default
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise WorkflowError(f"Invalid date '{value}', expected YYYY-MM-DD")


async def daily_report_workflow(
    ctx: WorkflowContext,
    username: Optional[str] = None,
    since: Optional[date] = None,
    until: Optional[date] = None,
    use_ai: bool = False,
) -> DailyReport:
    """
    Build the daily commit report.

    Args:
        ctx: Workflow context
        username: GitHub login (defaults to the authenticated user)
        since: First day (defaults to today)
        until: Last day, inclusive (defaults to ``since``)
        use_ai: Add an AI summary when AI is configured

    Returns:
        Report with commits and statistics

    Raises:
        WorkflowError: If the range is inverted
        GitHubGatewayError: If commits cannot be listed
    """
    today = datetime.now(timezone.utc).date()
    since = since or today
    until = until or since
    if until < since:
        raise WorkflowError(f"End date {until} is before start date {since}")

    if not username:
        username = await asyncio.to_thread(ctx.gateway.get_authenticated_login)

    start = datetime.combine(since, time.min, tzinfo=timezone.utc)
    end = datetime.combine(until, time(23, 59, 59), tzinfo=timezone.utc)
    logger.info(f"Fetching commits by {username} from {since} to {until}")

    commits = await asyncio.to_thread(ctx.gateway.list_commits, ctx.repo, username, start, end)
    report = DailyReport(username=username, since=since, until=until, commits=commits)
    if not commits:
        return report

    branches = await asyncio.gather(*(git.branches_containing(c.sha, ctx.root) for c in commits))
    for commit, commit_branches in zip(commits, branches):
        report.stats.add_commit(commit, commit_branches)

    if use_ai and ctx.ai is not None:
        try:
            report.summary = await asyncio.to_thread(ctx.ai.summarize_daily_commits, username, commits)
        except AIError as e:
            logger.warning(f"AI summary skipped: {e}")

    return report


def render_json(report: DailyReport) -> str:
    return json.dumps(report.to_dict(), indent=2, ensure_ascii=False)


def render_markdown(report: DailyReport) -> str:
    """Render the report as Markdown."""
    stats = report.stats
    lines = [
        f"# {t('report.title', username=report.username, since=report.since, until=report.until)}",
        "",
    ]

    if not report.commits:
        lines.append(t("report.no_commits"))
        return "\n".join(lines) + "\n"

    lines += [
        f"## {t('report.summary')}",
        "",
        f"- {t('report.total_commits')}: {stats.total_commits}",
        f"- {t('report.files_changed')}: {stats.files_changed}",
        f"- {t('report.additions')}: +{stats.additions}",
        f"- {t('report.deletions')}: -{stats.deletions}",
        "",
    ]

    if report.summary:
        lines += [report.summary, ""]

    if stats.branches:
        lines += [f"## {t('report.branches')}", ""]
        lines += [f"- {name}: {count}" for name, count in sorted(stats.branches.items())]
        lines.append("")

    if stats.file_types:
        lines += [f"## {t('report.file_types')}", ""]
        lines += [
            f"- {ext}: {count}"
            for ext, count in sorted(stats.file_types.items(), key=lambda item: (-item[1], item[0]))
        ]
        lines.append("")

    lines += [f"## {t('report.hourly')}", ""]
    lines += [f"- {hour}:00 {count}" for hour, count in sorted(stats.hourly_commits.items())]
    lines.append("")

    lines += [f"## {t('report.commits')}", ""]
    for commit in report.commits:
        subject = commit.message.splitlines()[0] if commit.message else ""
        lines.append(f"- `{commit.sha[:7]}` {commit.date:%H:%M} {subject}")

    return "\n".join(lines) + "\n"
