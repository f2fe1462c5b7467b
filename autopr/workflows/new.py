"""
Pull Request Creation Workflow

Matches the current branch against the configured branch patterns and creates
or updates its pull request with generated title, body, reviewers and labels.
"""

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional

from ..core.branch_pattern import find_matching_pattern, generate_pr_body, generate_pr_title
from ..integrations import git
from ..integrations.ai import AIError
from ..integrations.git import GitError
from ..integrations.github import GitHubGatewayError
from ..models import BranchPattern, PRType, PullRequest, PullRequestStatus, ReviewerSelection
from ..i18n import t
from ..utils.logger import get_logger
from .context import WorkflowContext, WorkflowError

logger = get_logger(__name__)

MAX_REVIEW_FILE_SIZE = 1024 * 1024
UPDATE_SEPARATOR = "\n\n---\n\n"


@dataclass
class NewPRResult:
    """Outcome of ``autopr new``."""

    branch: str
    pattern: Optional[BranchPattern] = None
    pull_request: Optional[PullRequest] = None
    created: bool = False
    draft_downgraded: bool = False
    status: Optional[PullRequestStatus] = None
    reviewers: ReviewerSelection = field(default_factory=ReviewerSelection)
    labels: List[str] = field(default_factory=list)
    ai_review_posted: bool = False
    warnings: List[str] = field(default_factory=list)

    @property
    def matched(self) -> bool:
        return self.pattern is not None


def resolve_base_branch(pattern: BranchPattern, default_branch: str, development_branch: str) -> str:
    """Release branches target production; everything else targets development."""
    if pattern.type == PRType.RELEASE:
        return default_branch
    return development_branch or default_branch


def merge_labels(pattern: BranchPattern, default_labels: List[str]) -> List[str]:
    labels: List[str] = []
    for label in [*pattern.labels, *default_labels]:
        if label and label not in labels:
            labels.append(label)
    return labels


async def _collect_changes(base: str) -> "tuple[List[str], str]":
    ref = f"origin/{base}"
    try:
        files, diff = await asyncio.gather(
            asyncio.to_thread(git.get_changed_files, ref),
            asyncio.to_thread(git.get_diff, ref),
        )
    except GitError as e:
        logger.warning(f"Could not read changes against {ref}: {e}")
        return [], ""
    return files, diff


async def _read_review_files(ctx: WorkflowContext, files: List[str]) -> List[dict]:
    """Working tree contents of ``files``, skipping unreadable and oversized ones."""
    contents = await asyncio.gather(*(asyncio.to_thread(git.read_file, f, ctx.root) for f in files))
    result = []
    for path, content in zip(files, contents):
        if content is None:
            continue
        if len(content.encode("utf-8")) > MAX_REVIEW_FILE_SIZE:
            logger.warning(f"Skipping {path} in review: file larger than 1MB")
            continue
        result.append({"path": path, "content": content})
    return result


async def _generate_with_ai(
    ctx: WorkflowContext,
    result: NewPRResult,
    pattern: BranchPattern,
    files: List[str],
    diff: str,
    title: Optional[str],
    body: str,
    need_title: bool,
    need_body: bool,
) -> "tuple[Optional[str], str]":
    if need_title:
        try:
            logger.info(t("new.ai_title"))
            title = await asyncio.to_thread(ctx.ai.generate_pr_title, files, diff, pattern.type)
        except AIError as e:
            logger.warning(f"AI title generation failed: {e}")
            result.warnings.append(t("new.ai_failed", error=e))

    if need_body and diff.strip():
        try:
            logger.info(t("new.ai_description"))
            body = await asyncio.to_thread(ctx.ai.generate_pr_description, files, diff, body)
        except AIError as e:
            logger.warning(f"AI description generation failed: {e}")
            result.warnings.append(t("new.ai_failed", error=e))

    return title, body


async def create_pr_workflow(
    ctx: WorkflowContext,
    title: Optional[str] = None,
    body: Optional[str] = None,
    draft: Optional[bool] = None,
    use_ai: bool = True,
    ai_review: bool = False,
) -> NewPRResult:
    """
    Create or update the pull request for the current branch.

    Args:
        ctx: Workflow context
        title: Explicit title (skips generation)
        body: Explicit body (skips generation)
        draft: Draft override; defaults to the pattern's draft flag
        use_ai: Generate title and description with AI when configured
        ai_review: Post an AI code review on the PR

    Returns:
        Result describing what happened; ``matched`` is False when no branch
        pattern applies and nothing was done

    Raises:
        WorkflowError: If run on the default or development branch
        GitError: If a release branch cannot be pushed
        GitHubGatewayError: If the PR cannot be created or updated
    """
    config = ctx.config
    branch = ctx.repo.current_branch

    if not branch or branch in (config.default_branch, config.development_branch):
        raise WorkflowError(t("new.protected_branch", branch=branch or "HEAD"))

    result = NewPRResult(branch=branch)
    pattern = find_matching_pattern(branch, config.branch_patterns)
    if pattern is None:
        return result
    result.pattern = pattern

    base = resolve_base_branch(pattern, config.default_branch, config.development_branch)

    if pattern.type == PRType.RELEASE:
        logger.info(t("new.pushing", branch=branch))
        await asyncio.to_thread(git.push_branch, branch)

    pr_title = title or generate_pr_title(branch, pattern)
    pr_body = body if body is not None else generate_pr_body(pattern, config.language, ctx.root)

    files, diff = await _collect_changes(base)

    if use_ai and ctx.ai is not None and (title is None or body is None):
        pr_title, pr_body = await _generate_with_ai(
            ctx, result, pattern, files, diff, pr_title, pr_body,
            need_title=title is None, need_body=body is None,
        )

    want_draft = pattern.draft if draft is None else draft
    if want_draft and not await asyncio.to_thread(ctx.gateway.is_draft_available, ctx.repo):
        logger.warning(t("new.draft_unavailable"))
        want_draft = False
        result.draft_downgraded = True

    existing = await asyncio.to_thread(ctx.gateway.find_open_pull_request, ctx.repo, branch)
    if existing is not None:
        logger.info(t("new.existing_pr", branch=branch, number=existing.number))
        new_body = f"{existing.body}{UPDATE_SEPARATOR}{pr_body}" if existing.body else pr_body
        pr = await ctx.resolver.update_pull_request(
            ctx.repo, existing.number, title=pr_title, body=new_body
        )
    else:
        pr = await asyncio.to_thread(
            ctx.gateway.create_pull_request, ctx.repo, pr_title, pr_body, branch, base, want_draft
        )
        result.created = True
    result.pull_request = pr

    try:
        result.reviewers = await ctx.selector.select_reviewers(pattern, config, ctx.repo, exclude=pr.author)
        await asyncio.to_thread(ctx.gateway.request_reviewers, ctx.repo, pr.number, result.reviewers.reviewers)
    except GitHubGatewayError as e:
        logger.warning(f"Reviewer assignment failed: {e}")
        result.warnings.append(str(e))

    labels = merge_labels(pattern, config.default_labels)
    try:
        await asyncio.to_thread(ctx.gateway.add_labels, ctx.repo, pr.number, labels)
        result.labels = labels
    except GitHubGatewayError as e:
        logger.warning(f"Adding labels failed: {e}")
        result.warnings.append(str(e))

    try:
        result.status = await ctx.resolver.get_pull_request_status(ctx.repo, pr.number)
        if result.status == PullRequestStatus.CONFLICTING:
            logger.warning(f"PR #{pr.number} has merge conflicts")
        elif result.status == PullRequestStatus.CHECKING:
            logger.warning(f"Mergeability of PR #{pr.number} is still being computed")
    except GitHubGatewayError as e:
        logger.warning(f"Could not check PR status: {e}")

    if ai_review and ctx.ai is not None and files:
        try:
            contents = await _read_review_files(ctx, files)
            if contents:
                review = await asyncio.to_thread(ctx.ai.review_code, contents)
                await asyncio.to_thread(ctx.gateway.create_review, ctx.repo, pr.number, review)
                result.ai_review_posted = True
        except (AIError, GitHubGatewayError) as e:
            logger.warning(f"AI review skipped: {e}")
            result.warnings.append(t("new.ai_failed", error=e))

    logger.info(f"PR #{pr.number} ready: {pr.url}")
    return result
