"""Shared wiring for command workflows."""

from pathlib import Path
from typing import Optional

from autopr.config import config_manager, get_config, require_github_token
from autopr.core.reviewers import ReviewerSelector, RotationStateStore
from autopr.core.status import PullRequestStatusResolver
from autopr.i18n import t
from autopr.integrations.ai import AIFeatures, create_ai_features
from autopr.integrations.git import get_current_repo_info
from autopr.integrations.github import GitHubGateway
from autopr.models import Config, RepoInfo
from autopr.utils.logger import get_logger
from autopr.utils.shell import get_git_root

logger = get_logger(__name__)


class WorkflowError(Exception):
    """Command workflow error."""
    pass


class WorkflowContext:
    """Everything a workflow needs, built once per command invocation."""

    def __init__(
        self,
        config: Config,
        repo: RepoInfo,
        gateway: GitHubGateway,
        resolver: PullRequestStatusResolver,
        selector: ReviewerSelector,
        ai: Optional[AIFeatures] = None,
        root: Optional[Path] = None,
    ):
        self.config = config
        self.repo = repo
        self.gateway = gateway
        self.resolver = resolver
        self.selector = selector
        self.ai = ai
        self.root = root or Path.cwd()


def resolve_repo(config: Config) -> RepoInfo:
    """Current repository, with owner/repo overridden from the project config.

    Raises:
        WorkflowError: If no repository can be determined
    """
    detected = get_current_repo_info()
    if detected is None:
        if config.owner and config.repo:
            return RepoInfo(owner=config.owner, repo=config.repo)
        raise WorkflowError(t("common.not_git_repo"))

    return RepoInfo(
        owner=config.owner or detected.owner,
        repo=config.repo or detected.repo,
        current_branch=detected.current_branch,
    )


def create_context(config: Optional[Config] = None, use_ai: bool = True) -> WorkflowContext:
    """Build a context from the stored configuration.

    Raises:
        NotConfiguredError: If no GitHub token is stored
        WorkflowError: If not inside a GitHub repository
    """
    config = config or get_config()
    token = require_github_token(config)
    repo = resolve_repo(config)

    gateway = GitHubGateway(token)
    ai = create_ai_features(config.ai, config.language.value) if use_ai else None
    logger.debug(f"Workflow context for {repo.full_name} (branch={repo.current_branch}, ai={ai is not None})")

    return WorkflowContext(
        config=config,
        repo=repo,
        gateway=gateway,
        resolver=PullRequestStatusResolver(gateway),
        selector=ReviewerSelector(gateway, RotationStateStore(config_manager.reviewer_state_path)),
        ai=ai,
        root=get_git_root(),
    )
