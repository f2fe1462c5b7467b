"""GitHub integration via PyGithub."""

from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from github import Auth, Github, GithubException, UnknownObjectException

from autopr.models import (
    ChangedFile,
    Collaborator,
    CollaboratorPermission,
    CommitFile,
    CommitInfo,
    InvitationState,
    InvitationStatus,
    Mergeability,
    MergeMethod,
    PullRequest,
    RepoInfo,
)
from autopr.utils.cache import TTLCache
from autopr.utils.logger import get_logger

logger = get_logger(__name__)

COLLABORATORS_TTL_SECONDS = 15 * 60
INVITATION_EXPIRY = timedelta(days=7)


class GitHubGatewayError(Exception):
    """GitHub API error."""
    pass


class NotFoundError(GitHubGatewayError):
    """Requested GitHub object does not exist."""
    pass


class PullRequestExistsError(GitHubGatewayError):
    """A pull request already exists for the head branch."""
    pass


class NoCommitsError(GitHubGatewayError):
    """Head and base branches have no commits between them."""
    pass


class BaseBranchModifiedError(GitHubGatewayError):
    """Base branch changed while the request was in flight."""
    pass


class PullRequestClosedError(GitHubGatewayError):
    """Operation requires an open pull request."""
    pass


class NotMergeableError(GitHubGatewayError):
    """GitHub refused the merge."""
    pass


class MergeConflictError(GitHubGatewayError):
    """Merging one branch into another produced conflicts."""
    pass


def _error_message(e: GithubException) -> str:
    data = e.data if isinstance(e.data, dict) else {}
    parts = [str(data.get("message", "")).strip()]
    for error in data.get("errors", []) or []:
        if isinstance(error, dict):
            parts.append(str(error.get("message", "")).strip())
        else:
            parts.append(str(error).strip())
    message = "; ".join(p for p in parts if p)
    return message or str(e)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class GitHubGateway:
    """Typed operations over the GitHub REST API.

    Holds the collaborator cache for its lifetime; construct one per process
    and pass it to the components that need GitHub.
    """

    def __init__(
        self,
        token: str,
        github: Optional[Github] = None,
        collaborators_cache: Optional[TTLCache] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        """Initialize gateway.

        Args:
            token: GitHub access token
            github: Preconstructed client (tests inject a mock)
            collaborators_cache: Cache for collaborator lists
            clock: Current time provider for invitation expiry
        """
        if not token and github is None:
            raise GitHubGatewayError("GitHub token is required")

        self._github = github or Github(auth=Auth.Token(token))
        self._repos: Dict[str, object] = {}
        self.collaborators_cache = collaborators_cache or TTLCache(COLLABORATORS_TTL_SECONDS)
        self._clock = clock

    def _repo(self, repo: RepoInfo):
        if repo.full_name not in self._repos:
            try:
                self._repos[repo.full_name] = self._github.get_repo(repo.full_name)
            except UnknownObjectException:
                raise NotFoundError(f"Repository {repo.full_name} not found or not accessible")
            except GithubException as e:
                raise GitHubGatewayError(f"Failed to access {repo.full_name}: {_error_message(e)}")
        return self._repos[repo.full_name]

    def _pull(self, repo: RepoInfo, number: int):
        try:
            return self._repo(repo).get_pull(number)
        except UnknownObjectException:
            raise NotFoundError(f"Pull request #{number} not found in {repo.full_name}")
        except GithubException as e:
            raise GitHubGatewayError(f"Failed to fetch PR #{number}: {_error_message(e)}")

    @staticmethod
    def _to_pull_request(pr) -> PullRequest:
        return PullRequest(
            number=pr.number,
            title=pr.title,
            body=pr.body,
            state=pr.state,
            draft=bool(pr.draft),
            author=pr.user.login if pr.user else None,
            head_ref=pr.head.ref,
            head_sha=pr.head.sha,
            base_ref=pr.base.ref,
            url=pr.html_url,
            mergeable=pr.mergeable,
            mergeable_state=pr.mergeable_state,
            merged=bool(pr.merged),
            requested_reviewers=[user.login for user in pr.requested_reviewers or []],
            labels=[label.name for label in pr.labels or []],
            created_at=pr.created_at,
            updated_at=pr.updated_at,
        )

    # Pull requests

    def get_pull_request(self, repo: RepoInfo, number: int) -> PullRequest:
        """Fetch one pull request.

        Raises:
            NotFoundError: If the PR does not exist
            GitHubGatewayError: On any other API failure
        """
        return self._to_pull_request(self._pull(repo, number))

    def get_mergeability(self, repo: RepoInfo, number: int) -> Mergeability:
        pr = self._pull(repo, number)
        return Mergeability(mergeable=pr.mergeable, mergeable_state=pr.mergeable_state)

    def list_pull_requests(self, repo: RepoInfo, state: str = "open") -> List[PullRequest]:
        try:
            return [self._to_pull_request(pr) for pr in self._repo(repo).get_pulls(state=state)]
        except GithubException as e:
            raise GitHubGatewayError(f"Failed to list pull requests: {_error_message(e)}")

    def find_open_pull_request(self, repo: RepoInfo, head: str) -> Optional[PullRequest]:
        """Return the open PR whose head is ``head``, or None."""
        try:
            pulls = self._repo(repo).get_pulls(state="open", head=f"{repo.owner}:{head}")
            for pr in pulls:
                return self._to_pull_request(pr)
        except GithubException as e:
            raise GitHubGatewayError(f"Failed to search pull requests: {_error_message(e)}")
        return None

    def create_pull_request(
        self,
        repo: RepoInfo,
        title: str,
        body: str,
        head: str,
        base: str,
        draft: bool = False,
    ) -> PullRequest:
        """Create a pull request.

        Raises:
            NoCommitsError: If head has nothing to merge into base
            PullRequestExistsError: If a PR for head already exists
            BaseBranchModifiedError: If base moved during creation
            GitHubGatewayError: On any other API failure
        """
        logger.info(f"Creating PR {head} -> {base} in {repo.full_name} (draft={draft})")
        try:
            pr = self._repo(repo).create_pull(
                base=base,
                head=head,
                title=title,
                body=body,
                draft=draft,
                maintainer_can_modify=True,
            )
        except GithubException as e:
            message = _error_message(e)
            if e.status == 422:
                if "No commits between" in message:
                    raise NoCommitsError(f"No commits between {base} and {head}")
                if "A pull request already exists" in message:
                    raise PullRequestExistsError(f"A pull request already exists for {head}")
                if "Base branch was modified" in message:
                    raise BaseBranchModifiedError("Base branch was modified. Review and try again.")
            raise GitHubGatewayError(f"Failed to create pull request: {message}")

        return self._to_pull_request(pr)

    def update_pull_request(
        self,
        repo: RepoInfo,
        number: int,
        title: Optional[str] = None,
        body: Optional[str] = None,
        state: Optional[str] = None,
        base: Optional[str] = None,
        draft: Optional[bool] = None,
    ) -> PullRequest:
        """Update fields of a pull request.

        A base change first merges the new base into the head branch so the PR
        stays mergeable.

        Raises:
            MergeConflictError: If the new base cannot be merged into head
            GitHubGatewayError: On any other API failure
        """
        pr = self._pull(repo, number)

        try:
            if base:
                self._merge_base_into_head(repo, pr.head.ref, base)
                pr.edit(base=base)
                logger.info(f"Changed base of PR #{number} to {base}")

            if draft is not None and draft != pr.draft:
                if draft:
                    pr.convert_to_draft()
                else:
                    pr.mark_ready_for_review()
                logger.info(f"Set draft={draft} on PR #{number}")

            fields = {k: v for k, v in (("title", title), ("body", body), ("state", state)) if v}
            if fields:
                pr.edit(**fields)
        except GithubException as e:
            raise GitHubGatewayError(f"Failed to update PR #{number}: {_error_message(e)}")

        return self.get_pull_request(repo, number)

    def _merge_base_into_head(self, repo: RepoInfo, head: str, base: str) -> None:
        try:
            self._repo(repo).merge(head, base, f"Merge {base} into {head}")
        except GithubException as e:
            if e.status == 409:
                raise MergeConflictError(
                    f"Merging {base} into {head} produced conflicts. Resolve them locally first."
                )
            if e.status == 422:
                raise GitHubGatewayError(f"Failed to change base branch to {base}")
            raise GitHubGatewayError(f"Failed to merge {base} into {head}: {_error_message(e)}")

    def merge_pull_request(
        self,
        repo: RepoInfo,
        number: int,
        method: MergeMethod = MergeMethod.MERGE,
        commit_title: Optional[str] = None,
        commit_message: Optional[str] = None,
    ) -> str:
        """Merge an open pull request.

        Returns:
            Merge commit SHA

        Raises:
            PullRequestClosedError: If the PR is not open
            NotMergeableError: If GitHub refuses the merge
        """
        pr = self._pull(repo, number)
        if pr.state != "open":
            raise PullRequestClosedError(f"Pull request #{number} is not open")

        kwargs = {"merge_method": MergeMethod(method).value}
        if commit_title:
            kwargs["commit_title"] = commit_title
        if commit_message:
            kwargs["commit_message"] = commit_message

        logger.info(f"Merging PR #{number} using {kwargs['merge_method']}")
        try:
            status = pr.merge(**kwargs)
        except GithubException as e:
            if e.status in (405, 409):
                raise NotMergeableError(f"Pull request #{number} cannot be merged: {_error_message(e)}")
            raise GitHubGatewayError(f"Failed to merge PR #{number}: {_error_message(e)}")

        if not status.merged:
            raise NotMergeableError(f"Pull request #{number} was not merged: {status.message}")
        return status.sha

    def delete_branch(self, repo: RepoInfo, branch: str) -> None:
        try:
            self._repo(repo).get_git_ref(f"heads/{branch}").delete()
        except GithubException as e:
            raise GitHubGatewayError(f"Failed to delete branch {branch}: {_error_message(e)}")
        logger.info(f"Deleted remote branch {branch}")

    def request_reviewers(self, repo: RepoInfo, number: int, reviewers: List[str]) -> None:
        if not reviewers:
            return
        try:
            self._pull(repo, number).create_review_request(reviewers=reviewers)
        except GithubException as e:
            raise GitHubGatewayError(f"Failed to request reviewers: {_error_message(e)}")

    def add_labels(self, repo: RepoInfo, number: int, labels: List[str]) -> None:
        if not labels:
            return
        try:
            self._pull(repo, number).add_to_labels(*labels)
        except GithubException as e:
            raise GitHubGatewayError(f"Failed to add labels: {_error_message(e)}")

    def list_pull_request_files(self, repo: RepoInfo, number: int) -> List[ChangedFile]:
        try:
            return [
                ChangedFile(
                    filename=f.filename,
                    status=f.status,
                    additions=f.additions,
                    deletions=f.deletions,
                    changes=f.changes,
                    patch=f.patch,
                )
                for f in self._pull(repo, number).get_files()
            ]
        except GithubException as e:
            raise GitHubGatewayError(f"Failed to list files of PR #{number}: {_error_message(e)}")

    def list_open_pull_request_reviewers(self, repo: RepoInfo) -> List[List[str]]:
        """Requested reviewer logins of every open PR."""
        try:
            return [
                [user.login for user in pr.requested_reviewers or []]
                for pr in self._repo(repo).get_pulls(state="open")
            ]
        except GithubException as e:
            raise GitHubGatewayError(f"Failed to list open pull requests: {_error_message(e)}")

    def create_review(self, repo: RepoInfo, number: int, body: str, event: str = "COMMENT") -> None:
        try:
            self._pull(repo, number).create_review(body=body, event=event)
        except GithubException as e:
            raise GitHubGatewayError(f"Failed to post review on PR #{number}: {_error_message(e)}")

    # Repository

    def is_draft_available(self, repo: RepoInfo) -> bool:
        """Draft PRs are assumed available on public repositories only."""
        try:
            return not self._repo(repo).private
        except GitHubGatewayError as e:
            logger.warning(f"Could not check draft PR availability: {e}")
            return False

    def list_commits(
        self,
        repo: RepoInfo,
        author: str,
        since: datetime,
        until: datetime,
    ) -> List[CommitInfo]:
        try:
            commits = self._repo(repo).get_commits(author=author, since=since, until=until)
            return [
                CommitInfo(
                    sha=commit.sha,
                    message=commit.commit.message,
                    date=commit.commit.author.date,
                    files=[
                        CommitFile(filename=f.filename, additions=f.additions, deletions=f.deletions)
                        for f in commit.files or []
                    ],
                )
                for commit in commits
            ]
        except GithubException as e:
            raise GitHubGatewayError(f"Failed to list commits: {_error_message(e)}")

    def get_authenticated_login(self) -> str:
        try:
            return self._github.get_user().login
        except GithubException as e:
            raise GitHubGatewayError(f"Failed to get authenticated user: {_error_message(e)}")

    # Collaborators

    def get_collaborators(self, repo: RepoInfo) -> List[Collaborator]:
        """Collaborators of the repository, cached for 15 minutes."""
        cached = self.collaborators_cache.get(repo.full_name)
        if cached is not None:
            logger.debug(f"Collaborators cache hit: {repo.full_name}")
            return cached

        logger.debug(f"Collaborators cache miss: {repo.full_name}")
        try:
            collaborators = []
            for user in self._repo(repo).get_collaborators(affiliation="all"):
                perms = user.permissions
                collaborators.append(
                    Collaborator(
                        login=user.login,
                        permissions={
                            "admin": bool(getattr(perms, "admin", False)),
                            "push": bool(getattr(perms, "push", False)),
                            "pull": bool(getattr(perms, "pull", False)),
                        },
                    )
                )
        except GithubException as e:
            raise GitHubGatewayError(f"Failed to list collaborators: {_error_message(e)}")

        self.collaborators_cache.set(repo.full_name, collaborators)
        return collaborators

    def validate_reviewers(self, repo: RepoInfo, reviewers: List[str]) -> "tuple[List[str], List[str]]":
        """Split ``reviewers`` into collaborators and non-collaborators.

        Returns:
            Tuple of (valid, invalid), each in input order
        """
        logins = {c.login for c in self.get_collaborators(repo)}
        valid = [r for r in reviewers if r in logins]
        invalid = [r for r in reviewers if r not in logins]
        if invalid:
            logger.warning(f"Not collaborators, skipping: {', '.join(invalid)}")
        return valid, invalid

    def invite_collaborator(
        self,
        repo: RepoInfo,
        username: str,
        permission: CollaboratorPermission = CollaboratorPermission.PUSH,
    ) -> None:
        try:
            self._repo(repo).add_to_collaborators(username, CollaboratorPermission(permission).value)
        except GithubException as e:
            raise GitHubGatewayError(f"Failed to invite {username}: {_error_message(e)}")
        self.collaborators_cache.invalidate(repo.full_name)
        logger.info(f"Invited {username} to {repo.full_name}")

    def remove_collaborator(self, repo: RepoInfo, username: str) -> None:
        try:
            self._repo(repo).remove_from_collaborators(username)
        except GithubException as e:
            raise GitHubGatewayError(f"Failed to remove {username}: {_error_message(e)}")
        self.collaborators_cache.invalidate(repo.full_name)
        logger.info(f"Removed {username} from {repo.full_name}")

    def _invitation_status(self, invitation, collaborator_logins: "set[str]") -> InvitationStatus:
        invited_at = _as_utc(invitation.created_at)
        expires_at = invited_at + INVITATION_EXPIRY
        login = invitation.invitee.login if invitation.invitee else "unknown"

        if self._clock() > expires_at:
            status = InvitationState.EXPIRED
        elif login in collaborator_logins:
            status = InvitationState.ACCEPTED
        else:
            status = InvitationState.PENDING

        return InvitationStatus(
            username=login, status=status, invited_at=invited_at, expires_at=expires_at
        )

    def list_invitation_statuses(self, repo: RepoInfo) -> List[InvitationStatus]:
        """Status of every invitation; invitations expire seven days after creation."""
        try:
            invitations = list(self._repo(repo).get_pending_invitations())
        except GithubException as e:
            raise GitHubGatewayError(f"Failed to list invitations: {_error_message(e)}")

        logins = {c.login for c in self.get_collaborators(repo)}
        return [self._invitation_status(inv, logins) for inv in invitations]

    def get_invitation_status(self, repo: RepoInfo, username: str) -> Optional[InvitationStatus]:
        """Status of the invitation for ``username``, or None if there is none."""
        for status in self.list_invitation_statuses(repo):
            if status.username == username:
                return status
        return None
