"""
Post-checkout Hook Workflow

Creates the pull request for a freshly checked-out branch when the branch is
automated and already exists on the remote.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

from ..core.branch_pattern import match_branch_pattern
from ..integrations import git
from ..models import Config
from ..utils.logger import get_logger
from .context import WorkflowContext
from .new import NewPRResult, create_pr_workflow

logger = get_logger(__name__)


@dataclass
class HookResult:
    """Outcome of ``autopr hook post-checkout``."""

    branch: str
    on_remote: bool = False
    pr: Optional[NewPRResult] = None


def post_checkout_skip_reason(config: Config, branch: str) -> Optional[str]:
    """Why the hook should leave ``branch`` alone, or None to proceed.

    Checked before any GitHub client is built, so a checkout of an
    unautomated branch never needs a token.
    """
    if not branch or branch == "HEAD":
        return "detached HEAD"
    if branch in (config.default_branch, config.development_branch):
        return f"{branch} is a protected branch"
    if not config.auto_pr_enabled:
        return "auto_pr_enabled is off"
    if not any(match_branch_pattern(branch, p.pattern) for p in config.branch_patterns):
        return f"{branch} matches no branch pattern"
    return None


async def post_checkout_workflow(ctx: WorkflowContext, branch: str) -> HookResult:
    """
    Create or update the PR for ``branch`` once it is on ``origin``.

    A branch that exists only locally is reported back so the caller can
    print push instructions; nothing is pushed from a hook.

    Raises:
        GitError: If the remote cannot be queried
        WorkflowError: If PR creation refuses the branch
        GitHubGatewayError: If a GitHub call fails
    """
    result = HookResult(branch=branch)
    result.on_remote = await asyncio.to_thread(git.remote_branch_exists, branch, "origin", ctx.root)
    if not result.on_remote:
        logger.info(f"{branch} is not on origin yet, skipping PR creation")
        return result

    ctx.repo = ctx.repo.model_copy(update={"current_branch": branch})
    result.pr = await create_pr_workflow(ctx)
    return result
