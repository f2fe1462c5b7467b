"""
Pull Request Merge Workflow

Checks conflicts and mergeability, optionally retargets the base branch,
merges, and cleans up branches.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from ..core.status import find_conflict_markers
from ..i18n import t
from ..integrations import git
from ..integrations.ai import AIError
from ..integrations.git import GitError
from ..integrations.github import GitHubGatewayError, NotMergeableError, PullRequestClosedError
from ..models import ConflictBlock, ConflictReport, MergeMethod, PullRequest, PullRequestStatus
from ..utils.logger import get_logger
from .context import WorkflowContext

logger = get_logger(__name__)


@dataclass
class MergeResult:
    """Outcome of ``autopr merge``."""

    pull_request: PullRequest
    conflicts: ConflictReport = field(default_factory=ConflictReport)
    local_conflicts: Dict[str, List[ConflictBlock]] = field(default_factory=dict)
    ai_suggestions: Optional[str] = None
    stashed: bool = False
    base_merged_cleanly: Optional[bool] = None
    resolved_locally: bool = False
    status: Optional[PullRequestStatus] = None
    base_changed: bool = False
    cancelled: bool = False
    merged: bool = False
    sha: Optional[str] = None
    branch_deleted: bool = False
    local_cleanup: bool = False
    warnings: List[str] = field(default_factory=list)


async def inspect_local_conflicts(ctx: WorkflowContext, filenames: List[str]) -> Dict[str, List[ConflictBlock]]:
    """Read each file from the working tree and parse its conflict markers."""
    contents = await asyncio.gather(*(asyncio.to_thread(git.read_file, f, ctx.root) for f in filenames))
    return {
        filename: find_conflict_markers(content) if content is not None else []
        for filename, content in zip(filenames, contents)
    }


async def _suggest_resolution(ctx: WorkflowContext, pr: PullRequest, filenames: List[str]) -> Optional[str]:
    try:
        contents = await asyncio.gather(*(asyncio.to_thread(git.read_file, f, ctx.root) for f in filenames))
        changed = await asyncio.to_thread(ctx.gateway.list_pull_request_files, ctx.repo, pr.number)
        entries = [{"file": f, "conflict": c or ""} for f, c in zip(filenames, contents)]
        return await asyncio.to_thread(
            ctx.ai.suggest_conflict_resolution, entries, pr.title, pr.body or "", changed
        )
    except (AIError, GitHubGatewayError) as e:
        logger.warning(f"AI conflict suggestions skipped: {e}")
        return None


async def _restore_previous(ctx: WorkflowContext, result: MergeResult, previous: Optional[str]) -> None:
    if previous and previous not in ("HEAD", result.pull_request.head_ref):
        await asyncio.to_thread(git.checkout, previous, ctx.root)
    if result.stashed:
        await asyncio.to_thread(git.stash_pop, ctx.root)
        result.stashed = False


async def _handle_conflicts(ctx: WorkflowContext, result: MergeResult) -> MergeResult:
    pr = result.pull_request
    filenames = [c.filename for c in result.conflicts.conflicts]
    logger.warning(t("merge.conflicts_found", number=pr.number, count=len(filenames)))

    previous = await asyncio.to_thread(git.get_current_branch, ctx.root)
    result.stashed = await asyncio.to_thread(git.stash, f"autopr: before resolving #{pr.number}", ctx.root)
    await asyncio.to_thread(git.fetch, "origin", pr.head_ref, ctx.root)
    await asyncio.to_thread(git.checkout, pr.head_ref, ctx.root)
    logger.info(t("merge.checkout_head", branch=pr.head_ref))

    await asyncio.to_thread(git.fetch, "origin", pr.base_ref, ctx.root)
    result.base_merged_cleanly = await asyncio.to_thread(git.merge, f"origin/{pr.base_ref}", ctx.root)

    unmerged = await asyncio.to_thread(git.list_unmerged_files, ctx.root)
    candidates = filenames + [f for f in unmerged if f not in filenames]
    found = await inspect_local_conflicts(ctx, candidates)
    result.local_conflicts = {f: blocks for f, blocks in found.items() if blocks}

    if not result.local_conflicts:
        # GitHub's view was stale or the merge resolved cleanly; nothing to fix by hand.
        logger.info(t("merge.no_local_conflicts", head=pr.head_ref, base=pr.base_ref))
        result.resolved_locally = True
        await _restore_previous(ctx, result, previous)
        return result

    if ctx.ai is not None:
        result.ai_suggestions = await _suggest_resolution(ctx, pr, list(result.local_conflicts))
    return result


async def _cleanup_local(ctx: WorkflowContext, result: MergeResult, delete_branch: bool) -> None:
    pr = result.pull_request
    try:
        local_branches = await asyncio.to_thread(git.list_local_branches)
        if pr.base_ref not in local_branches:
            logger.warning(f"Base branch {pr.base_ref} not found locally, skipping local cleanup")
            return

        await asyncio.to_thread(git.checkout, pr.base_ref)
        await asyncio.to_thread(git.pull, "origin", pr.base_ref)
        if delete_branch and pr.head_ref in local_branches:
            await asyncio.to_thread(git.delete_local_branch, pr.head_ref)
        result.local_cleanup = True
    except GitError as e:
        logger.warning(f"Local cleanup failed, clean up manually: {e}")
        result.warnings.append(str(e))


async def merge_pr_workflow(
    ctx: WorkflowContext,
    number: int,
    method: MergeMethod = MergeMethod.MERGE,
    base: Optional[str] = None,
    delete_branch: bool = False,
    confirm: Callable[[PullRequest], bool] = lambda pr: True,
    commit_title: Optional[str] = None,
) -> MergeResult:
    """
    Merge a pull request, or surface its conflicts.

    With conflicts, local changes are stashed, the head branch is checked out
    and ``origin/<base>`` is merged into it, and the result carries the files
    left with conflict markers plus any AI suggestions. When the local merge
    leaves no markers, the previous branch and stash are restored instead.
    Nothing is merged on GitHub in either case.

    Args:
        ctx: Workflow context
        number: PR number
        method: Merge method
        base: New base branch to retarget the PR to before merging
        delete_branch: Delete the head branch after merging
        confirm: Called with the PR right before merging; False cancels
        commit_title: Merge commit title

    Returns:
        Merge result

    Raises:
        PullRequestClosedError: If the PR is not open
        NotMergeableError: If the PR is not mergeable
        GitHubGatewayError: If a GitHub call fails
        GitError: If a local git step of conflict handling fails
    """
    pr = await asyncio.to_thread(ctx.gateway.get_pull_request, ctx.repo, number)
    if not pr.is_open:
        raise PullRequestClosedError(t("merge.closed", number=number))

    result = MergeResult(pull_request=pr)
    result.conflicts = await ctx.resolver.get_pull_request_conflicts(ctx.repo, number)
    if result.conflicts.has_conflicts:
        return await _handle_conflicts(ctx, result)

    if base and base != pr.base_ref:
        pr = await ctx.resolver.update_pull_request(ctx.repo, number, base=base)
        result.pull_request = pr
        result.base_changed = True
        logger.info(t("merge.base_changed", number=number, base=base))

    result.status = await ctx.resolver.get_pull_request_status(ctx.repo, number)
    if result.status == PullRequestStatus.CHECKING:
        raise NotMergeableError(t("merge.checking"))
    if result.status != PullRequestStatus.MERGEABLE:
        raise NotMergeableError(t("merge.not_mergeable", number=number, status=result.status.value))

    if not confirm(pr):
        result.cancelled = True
        return result

    result.sha = await asyncio.to_thread(
        ctx.gateway.merge_pull_request, ctx.repo, number, method, commit_title
    )
    result.merged = True
    ctx.resolver.invalidate(ctx.repo, number)
    logger.info(t("merge.merged", number=number))

    if delete_branch:
        try:
            await asyncio.to_thread(ctx.gateway.delete_branch, ctx.repo, pr.head_ref)
            result.branch_deleted = True
        except GitHubGatewayError as e:
            logger.warning(f"Remote branch deletion failed: {e}")
            result.warnings.append(str(e))

    await _cleanup_local(ctx, result, delete_branch)
    return result
