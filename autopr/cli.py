"""Click CLI interface for autopr."""

import asyncio
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, NoReturn, Optional

import click
from rich.console import Console
from rich.table import Table

from autopr import __version__
from autopr.config import ConfigError, config_manager
from autopr.core.templates import (
    TemplateError,
    builtin_template_names,
    delete_template,
    list_templates,
    load_template,
    save_template,
)
from autopr.i18n import get_language, set_language, t
from autopr.integrations import git
from autopr.integrations.ai import AIError
from autopr.integrations.git import GitError
from autopr.integrations.github import GitHubGatewayError
from autopr.integrations.oauth import DeviceFlow, OAuthError
from autopr.models import (
    CollaboratorPermission,
    Language,
    MergeMethod,
    PullRequest,
    RotationStrategy,
)
from autopr.utils.logger import enable_verbose_logging, get_logger
from autopr.utils.shell import ShellError, get_current_branch, get_git_root
from autopr.workflows import (
    WorkflowError,
    create_context,
    create_pr_workflow,
    daily_report_workflow,
    merge_pr_workflow,
    parse_date,
    post_checkout_skip_reason,
    post_checkout_workflow,
    render_json,
    render_markdown,
)

logger = get_logger(__name__)
console = Console()

COMMAND_ERRORS = (
    ConfigError,
    WorkflowError,
    GitHubGatewayError,
    GitError,
    AIError,
    TemplateError,
    ShellError,
)
STRATEGY_CHOICES = [s.value for s in RotationStrategy]


def _fail(error: Any) -> NoReturn:
    console.print(f"[red]{t('common.error')}:[/red] {error}")
    sys.exit(1)


def _split_members(value: str) -> List[str]:
    return [m.strip() for m in value.split(",") if m.strip()]


def _parse_value(value: str) -> Any:
    """Convert a command line string to bool, int, float, JSON or str."""
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    if value.isdigit():
        return int(value)
    if value[:1] in ("[", "{"):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    try:
        return float(value)
    except ValueError:
        return value


def _repo_root() -> Path:
    return get_git_root() or Path.cwd()


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version and exit")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, version: bool, verbose: bool) -> None:
    """autopr - GitHub pull request automation.

    Creates pull requests from branch naming conventions, assigns reviewers
    by rotation, surfaces merge conflicts, and manages collaborators.
    """
    if version:
        click.echo(f"autopr version {__version__}")
        sys.exit(0)

    if verbose:
        enable_verbose_logging()

    try:
        set_language(config_manager.load_global_config().language)
    except ConfigError as e:
        logger.debug(f"Using default language: {e}")

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.option("--token", help="GitHub token to store in the user configuration")
@click.option(
    "--language", type=click.Choice([lang.value for lang in Language]), help="Message language"
)
def init(token: Optional[str], language: Optional[str]) -> None:
    """Initialize autopr configuration for the current project."""
    try:
        global_path = config_manager.global_config_path
        if not global_path.exists():
            config_manager.create_default_config(project=False)
            console.print(f"[green]✓[/green] {t('init.global_created', path=global_path)}")

        updates = {}
        if token:
            updates["github_token"] = token
        if language:
            updates["language"] = language
        if updates:
            config_manager.update_global_config(updates)
            if language:
                set_language(language)
            if token:
                console.print(f"[green]✓[/green] {t('init.token_saved')}")

        project_path = config_manager.create_default_config(project=True)
        console.print(f"[green]✓[/green] {t('init.project_created', path=project_path)}")

        console.print(f"\n[bold]{t('init.next_steps')}[/bold]")
        steps = [t("init.step_edit"), t("init.step_help")]
        if not token:
            steps.insert(0, t("init.step_token"))
        for i, step in enumerate(steps, 1):
            console.print(f"{i}. {step}")

    except ConfigError as e:
        _fail(e)


@cli.command()
@click.option("--title", help="PR title (skips title generation)")
@click.option("--body", help="PR body (skips body generation)")
@click.option("--draft/--ready", default=None, help="Override the branch pattern's draft setting")
@click.option("--no-ai", is_flag=True, help="Do not use AI to generate title and description")
@click.option("--review", is_flag=True, help="Post an AI code review on the PR")
def new(
    title: Optional[str], body: Optional[str], draft: Optional[bool], no_ai: bool, review: bool
) -> None:
    """Create or update the pull request for the current branch."""
    try:
        ctx = create_context(use_ai=not no_ai or review)
        result = asyncio.run(create_pr_workflow(
            ctx, title=title, body=body, draft=draft, use_ai=not no_ai, ai_review=review,
        ))

        if not result.matched:
            console.print(f"[yellow]{t('new.no_pattern', branch=result.branch)}[/yellow]")
            return

        pattern = result.pattern
        console.print(
            f"[blue]{t('new.pattern_matched', pattern=pattern.pattern, type=pattern.type.value, draft=pattern.draft)}[/blue]"
        )
        if result.draft_downgraded:
            console.print(f"[yellow]{t('new.draft_unavailable')}[/yellow]")

        pr = result.pull_request
        message = "new.created" if result.created else "new.updated"
        console.print(f"[green]✓[/green] {t(message, number=pr.number, url=pr.url)}")

        if result.reviewers.reviewers:
            console.print(
                f"[green]✓[/green] {t('new.reviewers_requested', reviewers=', '.join(result.reviewers.reviewers))}"
            )
        if result.reviewers.dropped:
            console.print(
                f"[yellow]{t('new.reviewers_dropped', reviewers=', '.join(result.reviewers.dropped))}[/yellow]"
            )
        if result.labels:
            console.print(f"[green]✓[/green] {t('new.labels_added', labels=', '.join(result.labels))}")
        if result.status is not None:
            console.print(t("merge.pr_status", status=result.status.value))
        if result.ai_review_posted:
            console.print(f"[green]✓[/green] {t('new.ai_review_posted', number=pr.number)}")
        for warning in result.warnings:
            console.print(f"[yellow]Warning:[/yellow] {warning}")

    except COMMAND_ERRORS as e:
        logger.error(f"New PR command failed: {e}")
        _fail(e)


def _print_pr_summary(pr: PullRequest) -> None:
    console.print(f"[bold]{t('merge.pr_info', number=pr.number, title=pr.title)}[/bold]")
    console.print(f"[dim]{t('merge.pr_branches', head=pr.head_ref, base=pr.base_ref)}[/dim]")


@cli.command()
@click.argument("number", type=int)
@click.option(
    "--method",
    type=click.Choice([m.value for m in MergeMethod]),
    default=MergeMethod.MERGE.value,
    help="Merge method (default: merge)",
)
@click.option("--base", help="Change the PR's base branch before merging")
@click.option("--delete-branch", is_flag=True, help="Delete the head branch after merging")
@click.option("--title", "commit_title", help="Merge commit title")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
def merge(
    number: int,
    method: str,
    base: Optional[str],
    delete_branch: bool,
    commit_title: Optional[str],
    yes: bool,
) -> None:
    """Merge a pull request after checking conflicts and mergeability.

    NUMBER: Pull request number
    """
    def confirm(pr: PullRequest) -> bool:
        _print_pr_summary(pr)
        if yes:
            return True
        return click.confirm(t("merge.confirm", number=pr.number, base=pr.base_ref, method=method))

    try:
        ctx = create_context()
        result = asyncio.run(merge_pr_workflow(
            ctx,
            number,
            method=MergeMethod(method),
            base=base,
            delete_branch=delete_branch,
            confirm=confirm,
            commit_title=commit_title,
        ))
    except COMMAND_ERRORS as e:
        logger.error(f"Merge command failed: {e}")
        _fail(e)

    pr = result.pull_request
    if result.conflicts.has_conflicts:
        _print_pr_summary(pr)
        files = result.conflicts.conflicts
        console.print(f"[red]{t('merge.conflicts_found', number=pr.number, count=len(files))}[/red]")
        for conflict in files:
            console.print(t("merge.conflict_file", filename=conflict.filename))
        if result.resolved_locally:
            console.print(
                f"\n[green]✓[/green] {t('merge.no_local_conflicts', head=pr.head_ref, base=pr.base_ref)}"
            )
            return
        console.print(f"\n[blue]{t('merge.checkout_head', branch=pr.head_ref)}[/blue]")
        for filename, blocks in result.local_conflicts.items():
            console.print(t("merge.conflict_markers", filename=filename, count=len(blocks)))
        if result.ai_suggestions:
            console.print(f"\n[bold]{t('merge.ai_suggestions')}[/bold]")
            console.print(result.ai_suggestions)
        console.print(f"\n{t('merge.resolution_steps', head=pr.head_ref, number=pr.number)}")
        return

    if result.cancelled:
        console.print(f"[yellow]{t('common.cancelled')}[/yellow]")
        return

    if result.base_changed:
        console.print(f"[green]✓[/green] {t('merge.base_changed', number=pr.number, base=pr.base_ref)}")
    console.print(f"[green]✓[/green] {t('merge.merged', number=pr.number)}")
    if result.branch_deleted:
        console.print(f"[green]✓[/green] {t('merge.branch_deleted', branch=pr.head_ref)}")
    if result.local_cleanup:
        console.print(f"[green]✓[/green] {t('merge.local_cleanup', branch=pr.base_ref)}")
    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")


@cli.command("list")
@click.option(
    "--state", "-s", default="open", type=click.Choice(["open", "closed", "all"]),
    help="Filter by state (default: open)",
)
def list_prs(state: str) -> None:
    """List pull requests."""
    try:
        ctx = create_context(use_ai=False)
        pulls = ctx.gateway.list_pull_requests(ctx.repo, state)
    except COMMAND_ERRORS as e:
        _fail(e)

    if not pulls:
        console.print(f"[yellow]{t('list.empty')}[/yellow]")
        return

    table = Table(title=t("list.title", state=state))
    table.add_column("#", style="cyan", width=6)
    table.add_column("Title", min_width=30, max_width=60)
    table.add_column("Branch", style="blue")
    table.add_column("Author", style="magenta")
    table.add_column("State", style="green")

    for pr in pulls:
        pr_state = "merged" if pr.merged else pr.state
        if pr.draft:
            pr_state += " (draft)"
        table.add_row(
            str(pr.number), pr.title, f"{pr.head_ref} -> {pr.base_ref}", pr.author or "", pr_state
        )

    console.print(table)


@cli.command()
@click.argument("number", type=int)
@click.option("--title", help="New title")
@click.option("--body", help="New body")
@click.option("--base", help="New base branch")
@click.option("--draft/--ready", default=None, help="Convert to draft or mark ready for review")
def update(
    number: int,
    title: Optional[str],
    body: Optional[str],
    base: Optional[str],
    draft: Optional[bool],
) -> None:
    """Update a pull request.

    NUMBER: Pull request number
    """
    fields = {
        key: value
        for key, value in {"title": title, "body": body, "base": base, "draft": draft}.items()
        if value is not None
    }
    if not fields:
        console.print(f"[yellow]{t('update.nothing')}[/yellow]")
        return

    try:
        ctx = create_context(use_ai=False)
        pr = asyncio.run(ctx.resolver.update_pull_request(ctx.repo, number, **fields))
    except COMMAND_ERRORS as e:
        _fail(e)

    console.print(f"[green]✓[/green] {t('update.done', number=pr.number)}")
    if pr.url:
        console.print(f"[dim]{pr.url}[/dim]")


@cli.command()
@click.argument("number", type=int)
def reopen(number: int) -> None:
    """Reopen a closed pull request.

    NUMBER: Pull request number
    """
    try:
        ctx = create_context(use_ai=False)
        pr = ctx.gateway.get_pull_request(ctx.repo, number)
        if pr.is_open:
            console.print(f"[yellow]{t('reopen.not_closed', number=number)}[/yellow]")
            return
        if pr.merged:
            console.print(f"[yellow]{t('reopen.merged', number=number)}[/yellow]")
            return
        asyncio.run(ctx.resolver.update_pull_request(ctx.repo, number, state="open"))
    except COMMAND_ERRORS as e:
        _fail(e)

    console.print(f"[green]✓[/green] {t('reopen.done', number=number)}")


@cli.command()
@click.argument("number", type=int)
def review(number: int) -> None:
    """Post an AI code review on a pull request.

    NUMBER: Pull request number
    """
    try:
        ctx = create_context()
        if ctx.ai is None:
            _fail(t("review.ai_disabled"))

        pr = ctx.gateway.get_pull_request(ctx.repo, number)
        files = ctx.gateway.list_pull_request_files(ctx.repo, number)
        console.print(f"[blue]{t('merge.pr_info', number=pr.number, title=pr.title)}[/blue]")
        body = ctx.ai.review_pull_request(pr.title, files)
        ctx.gateway.create_review(ctx.repo, number, body)
    except COMMAND_ERRORS as e:
        logger.error(f"Review command failed: {e}")
        _fail(e)

    console.print(f"[green]✓[/green] {t('review.posted', number=number)}")


@cli.group("reviewer-group")
def reviewer_group() -> None:
    """Reviewer group management."""
    pass


@reviewer_group.command("add")
@click.argument("name")
@click.option("--members", "-m", required=True, help="Comma-separated GitHub logins")
@click.option(
    "--strategy", "-s",
    type=click.Choice(STRATEGY_CHOICES),
    default=RotationStrategy.ROUND_ROBIN.value,
    help="Rotation strategy (default: round-robin)",
)
def reviewer_group_add(name: str, members: str, strategy: str) -> None:
    """Add a reviewer group.

    NAME: Unique group name
    """
    try:
        config_manager.add_reviewer_group(name, _split_members(members), RotationStrategy(strategy))
    except ConfigError as e:
        _fail(e)
    console.print(f"[green]✓[/green] {t('reviewer_group.added', name=name)}")


@reviewer_group.command("remove")
@click.argument("name")
def reviewer_group_remove(name: str) -> None:
    """Remove a reviewer group."""
    try:
        removed = config_manager.remove_reviewer_group(name)
    except ConfigError as e:
        _fail(e)
    if not removed:
        _fail(t("reviewer_group.not_found", name=name))
    console.print(f"[green]✓[/green] {t('reviewer_group.removed', name=name)}")


@reviewer_group.command("update")
@click.argument("name")
@click.option("--members", "-m", help="Comma-separated GitHub logins")
@click.option("--strategy", "-s", type=click.Choice(STRATEGY_CHOICES), help="Rotation strategy")
def reviewer_group_update(name: str, members: Optional[str], strategy: Optional[str]) -> None:
    """Update members or rotation strategy of a reviewer group."""
    if members is None and strategy is None:
        console.print(f"[yellow]{t('reviewer_group.nothing')}[/yellow]")
        return

    try:
        group = config_manager.update_reviewer_group(
            name,
            members=_split_members(members) if members is not None else None,
            strategy=RotationStrategy(strategy) if strategy else None,
        )
    except ConfigError as e:
        _fail(e)
    if group is None:
        _fail(t("reviewer_group.not_found", name=name))
    console.print(f"[green]✓[/green] {t('reviewer_group.updated', name=name)}")


@reviewer_group.command("list")
def reviewer_group_list() -> None:
    """List reviewer groups."""
    try:
        groups = config_manager.list_reviewer_groups()
    except ConfigError as e:
        _fail(e)

    if not groups:
        console.print(f"[yellow]{t('reviewer_group.empty')}[/yellow]")
        return

    table = Table(title="Reviewer Groups")
    table.add_column("Name", style="cyan")
    table.add_column("Members")
    table.add_column("Strategy", style="green")
    for group in groups:
        table.add_row(group.name, ", ".join(group.members), group.rotation_strategy.value)
    console.print(table)


@cli.group()
def collaborator() -> None:
    """Repository collaborator management."""
    pass


@collaborator.command("invite")
@click.argument("username")
@click.option(
    "--permission", "-p",
    type=click.Choice([p.value for p in CollaboratorPermission]),
    default=CollaboratorPermission.PUSH.value,
    help="Permission level (default: push)",
)
def collaborator_invite(username: str, permission: str) -> None:
    """Invite a user to the repository."""
    try:
        ctx = create_context(use_ai=False)
        ctx.gateway.invite_collaborator(ctx.repo, username, CollaboratorPermission(permission))
    except COMMAND_ERRORS as e:
        _fail(e)
    console.print(f"[green]✓[/green] {t('collaborator.invited', username=username, permission=permission)}")


@collaborator.command("list")
def collaborator_list() -> None:
    """List repository collaborators."""
    try:
        ctx = create_context(use_ai=False)
        collaborators = ctx.gateway.get_collaborators(ctx.repo)
    except COMMAND_ERRORS as e:
        _fail(e)

    if not collaborators:
        console.print(f"[yellow]{t('collaborator.empty')}[/yellow]")
        return

    table = Table(title=f"Collaborators ({ctx.repo.full_name})")
    table.add_column("Login", style="cyan")
    table.add_column("Role", style="green")
    for user in collaborators:
        table.add_row(user.login, user.role.value)
    console.print(table)


@collaborator.command("remove")
@click.argument("username")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
def collaborator_remove(username: str, yes: bool) -> None:
    """Remove a collaborator from the repository."""
    if not yes and not click.confirm(f"Remove {username} from the repository?"):
        console.print(f"[yellow]{t('common.cancelled')}[/yellow]")
        return

    try:
        ctx = create_context(use_ai=False)
        ctx.gateway.remove_collaborator(ctx.repo, username)
    except COMMAND_ERRORS as e:
        _fail(e)
    console.print(f"[green]✓[/green] {t('collaborator.removed', username=username)}")


@collaborator.command("status")
@click.argument("username", required=False)
def collaborator_status(username: Optional[str]) -> None:
    """Show invitation status for one user or all invitations."""
    try:
        ctx = create_context(use_ai=False)
        if username:
            status = ctx.gateway.get_invitation_status(ctx.repo, username)
            statuses = [status] if status is not None else []
        else:
            statuses = ctx.gateway.list_invitation_statuses(ctx.repo)
    except COMMAND_ERRORS as e:
        _fail(e)

    if not statuses:
        if username:
            console.print(f"[yellow]{t('collaborator.no_invitation', username=username)}[/yellow]")
        else:
            console.print(f"[yellow]{t('collaborator.no_invitations')}[/yellow]")
        return

    styles = {"pending": "yellow", "accepted": "green", "expired": "red"}
    table = Table(title="Invitations")
    table.add_column("User", style="cyan")
    table.add_column("Status")
    table.add_column("Invited", style="dim")
    table.add_column("Expires", style="dim")
    for status in statuses:
        style = styles.get(status.status.value, "white")
        table.add_row(
            status.username,
            f"[{style}]{status.status.value}[/{style}]",
            f"{status.invited_at:%Y-%m-%d %H:%M}",
            f"{status.expires_at:%Y-%m-%d %H:%M}",
        )
    console.print(table)


@cli.command()
@click.argument("subcommand", required=False)
@click.argument("message", required=False)
@click.option("--all", "-a", "stage", is_flag=True, help="Stage all changes and push after committing")
@click.option("--yes", "-y", is_flag=True, help="Accept the AI suggestion without asking")
def commit(subcommand: Optional[str], message: Optional[str], stage: bool, yes: bool) -> None:
    """Commit staged changes with an AI-written message.

    \b
    autopr commit                  suggest a message for the staged changes
    autopr commit improve          improve the last commit message
    autopr commit improve "msg"    improve the given message
    autopr commit -a               stage everything, commit, and push
    """
    if subcommand is not None and subcommand != "improve":
        _fail(t("commit.invalid_subcommand", subcommand=subcommand))

    try:
        ctx = create_context()
        if subcommand == "improve" and ctx.ai is None:
            _fail(t("commit.ai_required"))

        if stage:
            git.stage_all()
        diff = git.get_staged_diff()
        if not diff.strip():
            _fail(t("commit.no_changes"))

        if subcommand == "improve":
            console.print(f"[blue]{t('commit.improving')}[/blue]")
            current = message or git.get_last_commit_message()
            commit_message = ctx.ai.improve_commit_message(current, diff)
        elif ctx.ai is not None:
            console.print(f"[blue]{t('commit.analyzing')}[/blue]")
            commit_message = ctx.ai.improve_commit_message("", diff)
        else:
            commit_message = click.edit("\n# Enter the commit message above.\n") or ""
            commit_message = "\n".join(
                line for line in commit_message.splitlines() if not line.startswith("#")
            )

        commit_message = commit_message.strip()
        if not commit_message:
            _fail(t("commit.no_message"))

        if ctx.ai is not None:
            console.print(f"\n[bold]{t('commit.suggestion')}[/bold]")
            console.print(commit_message)
            if not yes and not click.confirm(t("commit.confirm"), default=True):
                console.print(f"[yellow]{t('common.cancelled')}[/yellow]")
                return

        git.commit(commit_message)
        console.print(f"[green]✓[/green] {t('commit.committed')}")

        if stage:
            branch = get_current_branch() or ctx.repo.current_branch
            git.push_branch(branch)
            console.print(f"[green]✓[/green] {t('commit.pushed', branch=branch)}")

    except COMMAND_ERRORS as e:
        logger.error(f"Commit command failed: {e}")
        _fail(e)


def _print_report_table(report) -> None:
    stats = report.stats
    console.print(
        f"[bold]{t('report.title', username=report.username, since=report.since, until=report.until)}[/bold]"
    )
    if not report.commits:
        console.print(f"[yellow]{t('report.no_commits')}[/yellow]")
        return

    summary = Table(title=t("report.summary"), show_header=False)
    summary.add_column("Metric", style="cyan")
    summary.add_column("Value", justify="right")
    summary.add_row(t("report.total_commits"), str(stats.total_commits))
    summary.add_row(t("report.files_changed"), str(stats.files_changed))
    summary.add_row(t("report.additions"), f"[green]+{stats.additions}[/green]")
    summary.add_row(t("report.deletions"), f"[red]-{stats.deletions}[/red]")
    console.print(summary)

    if stats.branches:
        branches = Table(title=t("report.branches"))
        branches.add_column("Branch", style="blue")
        branches.add_column(t("report.commits"), justify="right")
        for name, count in sorted(stats.branches.items()):
            branches.add_row(name, str(count))
        console.print(branches)

    if stats.file_types:
        types = Table(title=t("report.file_types"))
        types.add_column("Type", style="magenta")
        types.add_column("Files", justify="right")
        for ext, count in sorted(stats.file_types.items(), key=lambda item: (-item[1], item[0])):
            types.add_row(ext, str(count))
        console.print(types)

    hourly = Table(title=t("report.hourly"))
    hourly.add_column("Hour", style="cyan")
    hourly.add_column(t("report.commits"), justify="right")
    for hour, count in sorted(stats.hourly_commits.items()):
        hourly.add_row(f"{hour}:00", str(count))
    console.print(hourly)

    commits = Table(title=t("report.commits"))
    commits.add_column("SHA", style="cyan", width=8)
    commits.add_column("Time", style="dim")
    commits.add_column("Message")
    for c in report.commits:
        commits.add_row(c.sha[:7], f"{c.date:%Y-%m-%d %H:%M}", c.message.splitlines()[0] if c.message else "")
    console.print(commits)

    if report.summary:
        console.print(f"\n[bold]{t('report.summary')}[/bold]")
        console.print(report.summary)


@cli.command("daily-report")
@click.option("--username", "-u", help="GitHub login (default: the authenticated user)")
@click.option("--since", help="First day, YYYY-MM-DD (default: today)")
@click.option("--until", help="Last day, YYYY-MM-DD (default: --since)")
@click.option(
    "--format", "-f", "output_format",
    type=click.Choice(["console", "json", "markdown"]),
    default="console",
    help="Output format (default: console)",
)
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write the report to a file")
@click.option("--ai", "use_ai", is_flag=True, help="Add an AI-written summary")
def daily_report(
    username: Optional[str],
    since: Optional[str],
    until: Optional[str],
    output_format: str,
    output: Optional[str],
    use_ai: bool,
) -> None:
    """Report a user's commits for a day or date range."""
    try:
        today = datetime.now(timezone.utc).date()
        since_date = parse_date(since, today)
        until_date = parse_date(until, since_date)

        ctx = create_context(use_ai=use_ai)
        report = asyncio.run(daily_report_workflow(
            ctx, username=username, since=since_date, until=until_date, use_ai=use_ai,
        ))
    except COMMAND_ERRORS as e:
        logger.error(f"Daily report failed: {e}")
        _fail(e)

    if output_format == "console" and not output:
        _print_report_table(report)
        return

    text = render_json(report) if output_format == "json" else render_markdown(report)
    if output:
        try:
            Path(output).write_text(text, encoding="utf-8")
        except OSError as e:
            _fail(e)
        console.print(f"[green]✓[/green] {t('report.saved', path=output)}")
    else:
        click.echo(text)


@cli.group()
def config() -> None:
    """Configuration management."""
    pass


def _add_config_rows(table: Table, data: dict, prefix: str = "") -> None:
    for key, value in data.items():
        full_key = f"{prefix}.{key}" if prefix else key

        if isinstance(value, dict):
            table.add_row(f"[bold cyan]{full_key}[/bold cyan]", "", "")
            _add_config_rows(table, value, full_key)
        elif isinstance(value, list):
            if value:
                table.add_row(full_key, f"[{len(value)} items]", json.dumps(value, default=str))
            else:
                table.add_row(full_key, "[empty list]", "[]")
        else:
            if value is None:
                display_value = "[dim]None[/dim]"
            elif isinstance(value, bool):
                display_value = f"[{'green' if value else 'red'}]{value}[/]"
            elif isinstance(value, str) and not value:
                display_value = "[dim](empty)[/dim]"
            else:
                display_value = str(value)
            table.add_row(full_key, type(value).__name__, display_value)


@config.command("show")
@click.option(
    "--format", "-f", "output_format",
    type=click.Choice(["table", "yaml", "json"]),
    default="table",
    help="Output format (default: table)",
)
def config_show(output_format: str) -> None:
    """Show current configuration values."""
    try:
        config_dict = config_manager.get_config().model_dump(mode="json")
    except ConfigError as e:
        _fail(e)

    if config_dict.get("github_token"):
        config_dict["github_token"] = "********"
    if config_dict.get("ai", {}).get("api_key"):
        config_dict["ai"]["api_key"] = "********"

    if output_format == "yaml":
        import yaml
        click.echo(yaml.safe_dump(config_dict, default_flow_style=False, sort_keys=True, allow_unicode=True))
    elif output_format == "json":
        click.echo(json.dumps(config_dict, indent=2, sort_keys=True, ensure_ascii=False))
    else:
        table = Table(title="Current Configuration")
        table.add_column("Setting", style="cyan", min_width=20)
        table.add_column("Type", style="dim", width=10)
        table.add_column("Value", min_width=30)
        _add_config_rows(table, config_dict)
        console.print(table)

        console.print("\n[bold]Configuration Sources:[/bold]")
        for config_type, path in config_manager.list_config_files().items():
            if path:
                console.print(f"  [green]✓[/green] {config_type}: {path}")
            else:
                console.print(f"  [dim]✗ {config_type}: Not found[/dim]")


@config.command("get")
@click.argument("key")
def config_get(key: str) -> None:
    """Get configuration value by key.

    KEY: Dot-separated configuration key (e.g., 'default_branch', 'ai.model')
    """
    try:
        value = config_manager.get_config_value(key)
    except ConfigError as e:
        _fail(e)

    if isinstance(value, (dict, list)):
        value = json.dumps(value, ensure_ascii=False)
    console.print(f"{key}: {value}")


@config.command("set")
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str) -> None:
    """Set configuration value.

    The file is chosen by the key: user settings (language, github_token, ai)
    go to ~/.autopr/config.json, everything else to .autopr.json.

    KEY: Dot-separated configuration key
    VALUE: Value to set
    """
    try:
        config_manager.set_config_value(key, _parse_value(value))
    except ConfigError as e:
        _fail(e)
    shown = "********" if "token" in key or "api_key" in key else value
    console.print(f"[green]✓[/green] {t('config.set', key=key, value=shown)}")


@cli.group()
def lang() -> None:
    """Message language settings."""
    pass


@lang.command("set")
@click.argument("language", type=click.Choice([lang.value for lang in Language]))
def lang_set(language: str) -> None:
    """Set the message language."""
    try:
        config_manager.update_global_config({"language": language})
    except ConfigError as e:
        _fail(e)
    set_language(language)
    console.print(f"[green]✓[/green] {t('lang.set', language=language)}")


@lang.command("current")
def lang_current() -> None:
    """Show the current message language."""
    console.print(t("lang.current", language=get_language().value))


@cli.group()
def template() -> None:
    """PR body template management."""
    pass


@template.command("list")
def template_list() -> None:
    """List built-in and custom templates."""
    custom = list_templates(_repo_root())

    table = Table(title="PR Templates")
    table.add_column("Name", style="cyan")
    table.add_column("Source", style="green")
    for name in builtin_template_names():
        table.add_row(name, "custom (overrides built-in)" if name in custom else "built-in")
    for name in custom:
        if name not in builtin_template_names():
            table.add_row(name, "custom")
    console.print(table)


@template.command("show")
@click.argument("name")
def template_show(name: str) -> None:
    """Show a template's content."""
    root = _repo_root()
    if name not in builtin_template_names() and name not in list_templates(root):
        _fail(t("template.not_found", name=name))
    try:
        content = load_template(name, get_language(), root)
    except TemplateError as e:
        _fail(e)
    click.echo(content)


@template.command("create")
@click.argument("name")
@click.option("--file", "source", type=click.Path(exists=True, dir_okay=False), help="Read content from a file")
@click.option("--content", help="Template content")
def template_create(name: str, source: Optional[str], content: Optional[str]) -> None:
    """Create or replace a custom template in .github/PULL_REQUEST_TEMPLATE."""
    try:
        if source:
            content = Path(source).read_text(encoding="utf-8")
        elif content is None:
            content = click.edit(load_template(name, get_language(), _repo_root()))
            if content is None:
                console.print(f"[yellow]{t('common.cancelled')}[/yellow]")
                return
        path = save_template(name, content, _repo_root())
    except TemplateError as e:
        _fail(e)
    console.print(f"[green]✓[/green] {t('template.saved', name=name, path=path)}")


@template.command("delete")
@click.argument("name")
def template_delete(name: str) -> None:
    """Delete a custom template."""
    try:
        deleted = delete_template(name, _repo_root())
    except TemplateError as e:
        _fail(e)
    if not deleted:
        _fail(t("template.not_found", name=name))
    console.print(f"[green]✓[/green] {t('template.deleted', name=name)}")


@cli.group()
def auth() -> None:
    """GitHub authentication."""
    pass


@auth.command("login")
@click.option("--client-id", help="OAuth app client ID (defaults to github_client_id)")
@click.option("--no-browser", is_flag=True, help="Print the verification URL without opening it")
def auth_login(client_id: Optional[str], no_browser: bool) -> None:
    """Log in with the GitHub device flow and store the token."""
    try:
        client_id = client_id or config_manager.load_global_config().github_client_id
        if not client_id:
            _fail(t("auth.client_id_required"))

        flow = DeviceFlow(client_id)
        code = flow.request_device_code()
        console.print(t("auth.open_url", url=code.verification_uri))
        console.print(f"[bold]{t('auth.enter_code', code=code.user_code)}[/bold]")
        if not no_browser:
            click.launch(code.verification_uri)
        console.print(t("auth.waiting", minutes=code.expires_in // 60))

        token = flow.poll_for_token(code)
        config_manager.update_global_config({"github_token": token, "github_client_id": client_id})
    except (OAuthError, ConfigError) as e:
        logger.error(f"Device flow login failed: {e}")
        _fail(e)
    console.print(f"[green]✓[/green] {t('auth.success')}")


@cli.group()
def hook() -> None:
    """Git hook entry points."""
    pass


@hook.command("post-checkout")
@click.argument("branch")
def hook_post_checkout(branch: str) -> None:
    """Create the PR for BRANCH after a checkout.

    Install as .git/hooks/post-checkout running
    `autopr hook post-checkout "$(git rev-parse --abbrev-ref HEAD)"`.
    Failures are reported but never fail the checkout.
    """
    try:
        config = config_manager.get_config()
        reason = post_checkout_skip_reason(config, branch)
        if reason:
            logger.debug(f"post-checkout: skipping {branch}: {reason}")
            return
        result = asyncio.run(post_checkout_workflow(create_context(config), branch))
    except COMMAND_ERRORS as e:
        logger.error(f"post-checkout hook failed: {e}")
        console.print(f"[yellow]{t('hook.failed', error=e)}[/yellow]")
        return

    if not result.on_remote:
        console.print(f"[blue]{t('hook.new_branch', branch=branch)}[/blue]")
        console.print(t("hook.push_instruction", branch=branch))
        return
    pr = result.pr.pull_request if result.pr else None
    if pr is None:
        return
    message = "hook.pr_created" if result.pr.created else "hook.pr_exists"
    console.print(f"[green]✓[/green] {t(message, number=pr.number, branch=branch, url=pr.url)}")
    for warning in result.pr.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")


def main() -> None:
    """Console script entry point."""
    cli()


if __name__ == "__main__":
    main()
