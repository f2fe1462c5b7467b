"""Tests for the GitHub gateway."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, Mock

import pytest
from github import GithubException, UnknownObjectException

from autopr.integrations.github import (
    GitHubGateway,
    GitHubGatewayError,
    MergeConflictError,
    NoCommitsError,
    NotFoundError,
    NotMergeableError,
    PullRequestClosedError,
    PullRequestExistsError,
)
from autopr.models import InvitationState, MergeMethod


def make_pr(**overrides):
    """PyGithub-like pull request object."""
    attrs = dict(
        number=12,
        title="[FEAT] Add Login",
        body="body",
        state="open",
        draft=False,
        user=SimpleNamespace(login="author"),
        head=SimpleNamespace(ref="feat/add-login", sha="abc123"),
        base=SimpleNamespace(ref="dev"),
        html_url="https://github.com/octo/widgets/pull/12",
        mergeable=True,
        mergeable_state="clean",
        merged=False,
        requested_reviewers=[SimpleNamespace(login="alice")],
        labels=[SimpleNamespace(name="feature")],
        created_at=None,
        updated_at=None,
    )
    attrs.update(overrides)
    pr = Mock(**{k: v for k, v in attrs.items()})
    return pr


def make_user(login, admin=False, push=True):
    return SimpleNamespace(login=login, permissions=SimpleNamespace(admin=admin, push=push, pull=True))


@pytest.fixture
def github_repo():
    return MagicMock()


@pytest.fixture
def gateway(github_repo):
    client = MagicMock()
    client.get_repo.return_value = github_repo
    return GitHubGateway("token", github=client)


class TestRepositoryAccess:
    """Test repository lookup."""

    def test_repo_is_cached(self, gateway, github_repo, repo_info):
        github_repo.get_pull.return_value = make_pr()

        gateway.get_pull_request(repo_info, 12)
        gateway.get_pull_request(repo_info, 12)

        gateway._github.get_repo.assert_called_once_with("octo/widgets")

    def test_missing_repo(self, gateway, repo_info):
        gateway._github.get_repo.side_effect = UnknownObjectException(404, {"message": "Not Found"})

        with pytest.raises(NotFoundError):
            gateway.get_pull_request(repo_info, 1)

    def test_token_required(self):
        with pytest.raises(GitHubGatewayError):
            GitHubGateway("")


class TestPullRequests:
    """Test pull request operations."""

    def test_get_pull_request_maps_fields(self, gateway, github_repo, repo_info):
        github_repo.get_pull.return_value = make_pr()

        pr = gateway.get_pull_request(repo_info, 12)

        assert pr.number == 12
        assert pr.author == "author"
        assert pr.head_ref == "feat/add-login"
        assert pr.base_ref == "dev"
        assert pr.requested_reviewers == ["alice"]
        assert pr.labels == ["feature"]
        assert pr.is_open

    def test_missing_pull_request(self, gateway, github_repo, repo_info):
        github_repo.get_pull.side_effect = UnknownObjectException(404, {"message": "Not Found"})

        with pytest.raises(NotFoundError):
            gateway.get_pull_request(repo_info, 99)

    def test_get_mergeability(self, gateway, github_repo, repo_info):
        github_repo.get_pull.return_value = make_pr(mergeable=None, mergeable_state="unknown")

        result = gateway.get_mergeability(repo_info, 12)

        assert result.mergeable is None
        assert result.mergeable_state == "unknown"

    def test_find_open_pull_request_filters_by_head(self, gateway, github_repo, repo_info):
        github_repo.get_pulls.return_value = [make_pr()]

        pr = gateway.find_open_pull_request(repo_info, "feat/add-login")

        assert pr.number == 12
        github_repo.get_pulls.assert_called_once_with(state="open", head="octo:feat/add-login")

    def test_find_open_pull_request_none(self, gateway, github_repo, repo_info):
        github_repo.get_pulls.return_value = []
        assert gateway.find_open_pull_request(repo_info, "feat/x") is None

    def test_create_pull_request(self, gateway, github_repo, repo_info):
        github_repo.create_pull.return_value = make_pr(draft=True)

        pr = gateway.create_pull_request(repo_info, "T", "B", "feat/add-login", "dev", draft=True)

        assert pr.draft is True
        github_repo.create_pull.assert_called_once_with(
            base="dev", head="feat/add-login", title="T", body="B", draft=True, maintainer_can_modify=True
        )

    @pytest.mark.parametrize("message,error", [
        ("No commits between dev and feat/x", NoCommitsError),
        ("A pull request already exists for octo:feat/x.", PullRequestExistsError),
    ])
    def test_create_pull_request_422_mapping(self, gateway, github_repo, repo_info, message, error):
        github_repo.create_pull.side_effect = GithubException(
            422, {"message": "Validation Failed", "errors": [{"message": message}]}
        )

        with pytest.raises(error):
            gateway.create_pull_request(repo_info, "T", "B", "feat/x", "dev")

    def test_update_pull_request_fields(self, gateway, github_repo, repo_info):
        pr = make_pr()
        github_repo.get_pull.return_value = pr

        gateway.update_pull_request(repo_info, 12, title="New", state="closed")

        pr.edit.assert_called_once_with(title="New", state="closed")
        github_repo.merge.assert_not_called()

    def test_update_base_merges_base_into_head_first(self, gateway, github_repo, repo_info):
        pr = make_pr()
        github_repo.get_pull.return_value = pr

        gateway.update_pull_request(repo_info, 12, base="main")

        github_repo.merge.assert_called_once_with("feat/add-login", "main", "Merge main into feat/add-login")
        pr.edit.assert_called_once_with(base="main")

    def test_update_base_conflict(self, gateway, github_repo, repo_info):
        pr = make_pr()
        github_repo.get_pull.return_value = pr
        github_repo.merge.side_effect = GithubException(409, {"message": "Merge conflict"})

        with pytest.raises(MergeConflictError):
            gateway.update_pull_request(repo_info, 12, base="main")
        pr.edit.assert_not_called()

    def test_update_draft_toggle(self, gateway, github_repo, repo_info):
        pr = make_pr(draft=True)
        github_repo.get_pull.return_value = pr

        gateway.update_pull_request(repo_info, 12, draft=False)

        pr.mark_ready_for_review.assert_called_once()
        pr.convert_to_draft.assert_not_called()

    def test_merge_pull_request(self, gateway, github_repo, repo_info):
        pr = make_pr()
        pr.merge.return_value = SimpleNamespace(merged=True, sha="deadbeef", message="ok")
        github_repo.get_pull.return_value = pr

        sha = gateway.merge_pull_request(repo_info, 12, MergeMethod.SQUASH, commit_title="Title")

        assert sha == "deadbeef"
        pr.merge.assert_called_once_with(merge_method="squash", commit_title="Title")

    def test_merge_closed_pull_request(self, gateway, github_repo, repo_info):
        github_repo.get_pull.return_value = make_pr(state="closed")

        with pytest.raises(PullRequestClosedError):
            gateway.merge_pull_request(repo_info, 12)

    def test_merge_refused(self, gateway, github_repo, repo_info):
        pr = make_pr()
        pr.merge.side_effect = GithubException(405, {"message": "Pull Request is not mergeable"})
        github_repo.get_pull.return_value = pr

        with pytest.raises(NotMergeableError):
            gateway.merge_pull_request(repo_info, 12)

    def test_request_reviewers_skips_empty(self, gateway, github_repo, repo_info):
        gateway.request_reviewers(repo_info, 12, [])
        github_repo.get_pull.assert_not_called()

    def test_list_open_pull_request_reviewers(self, gateway, github_repo, repo_info):
        github_repo.get_pulls.return_value = [
            make_pr(requested_reviewers=[SimpleNamespace(login="alice"), SimpleNamespace(login="bob")]),
            make_pr(requested_reviewers=[]),
        ]

        assert gateway.list_open_pull_request_reviewers(repo_info) == [["alice", "bob"], []]

    def test_is_draft_available(self, gateway, github_repo, repo_info):
        github_repo.private = False
        assert gateway.is_draft_available(repo_info) is True

        gateway._repos.clear()
        github_repo.private = True
        assert gateway.is_draft_available(repo_info) is False


class TestCollaborators:
    """Test collaborator operations."""

    def test_collaborators_are_cached(self, gateway, github_repo, repo_info):
        github_repo.get_collaborators.return_value = [make_user("alice", admin=True), make_user("bob")]

        first = gateway.get_collaborators(repo_info)
        second = gateway.get_collaborators(repo_info)

        assert [c.login for c in first] == ["alice", "bob"]
        assert first[0].role.value == "admin"
        assert first[1].role.value == "push"
        assert second is first
        github_repo.get_collaborators.assert_called_once()

    def test_validate_reviewers(self, gateway, github_repo, repo_info):
        github_repo.get_collaborators.return_value = [make_user("alice"), make_user("bob")]

        valid, invalid = gateway.validate_reviewers(repo_info, ["bob", "ghost", "alice"])

        assert valid == ["bob", "alice"]
        assert invalid == ["ghost"]

    def test_invite_invalidates_cache(self, gateway, github_repo, repo_info):
        github_repo.get_collaborators.return_value = [make_user("alice")]
        gateway.get_collaborators(repo_info)

        gateway.invite_collaborator(repo_info, "bob", "admin")
        gateway.get_collaborators(repo_info)

        github_repo.add_to_collaborators.assert_called_once_with("bob", "admin")
        assert github_repo.get_collaborators.call_count == 2

    def test_remove_failure(self, gateway, github_repo, repo_info):
        github_repo.remove_from_collaborators.side_effect = GithubException(403, {"message": "Forbidden"})

        with pytest.raises(GitHubGatewayError, match="Forbidden"):
            gateway.remove_collaborator(repo_info, "bob")

    def test_invitation_statuses(self, github_repo, repo_info):
        now = datetime(2024, 5, 20, 12, 0, tzinfo=timezone.utc)
        client = MagicMock()
        client.get_repo.return_value = github_repo
        gateway = GitHubGateway("token", github=client, clock=lambda: now)

        github_repo.get_collaborators.return_value = [make_user("joined")]
        github_repo.get_pending_invitations.return_value = [
            SimpleNamespace(invitee=SimpleNamespace(login="waiting"), created_at=now - timedelta(days=1)),
            SimpleNamespace(invitee=SimpleNamespace(login="joined"), created_at=now - timedelta(days=2)),
            SimpleNamespace(invitee=SimpleNamespace(login="late"), created_at=now - timedelta(days=8)),
        ]

        statuses = {s.username: s for s in gateway.list_invitation_statuses(repo_info)}

        assert statuses["waiting"].status == InvitationState.PENDING
        assert statuses["joined"].status == InvitationState.ACCEPTED
        assert statuses["late"].status == InvitationState.EXPIRED
        assert statuses["waiting"].expires_at == now + timedelta(days=6)

        assert gateway.get_invitation_status(repo_info, "late").status == InvitationState.EXPIRED
        assert gateway.get_invitation_status(repo_info, "nobody") is None
