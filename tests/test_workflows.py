"""Tests for the command workflows."""

import json
import shutil
import subprocess
from datetime import date, datetime, timezone
from unittest.mock import Mock, patch

import pytest

from autopr.config import NotConfiguredError
from autopr.core.reviewers import ReviewerSelector, RotationStateStore
from autopr.core.status import PullRequestStatusResolver
from autopr.integrations import git
from autopr.integrations.ai import AIError
from autopr.integrations.github import GitHubGatewayError, NotMergeableError, PullRequestClosedError
from autopr.models import (
    ChangedFile,
    CommitFile,
    CommitInfo,
    Config,
    Mergeability,
    MergeMethod,
    PullRequest,
    PullRequestStatus,
    RepoInfo,
)
from autopr.workflows import (
    WorkflowContext,
    WorkflowError,
    create_context,
    create_pr_workflow,
    daily_report_workflow,
    merge_labels,
    merge_pr_workflow,
    parse_date,
    post_checkout_skip_reason,
    post_checkout_workflow,
    render_json,
    render_markdown,
    resolve_base_branch,
    resolve_repo,
)


requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git executable not available")


def run_git(cwd, *args):
    return subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True, text=True).stdout


def commit_files(repo, files, message):
    for name, content in files.items():
        (repo / name).write_text(content)
    run_git(repo, "add", "-A")
    run_git(repo, "commit", "-m", message)


def configure_identity(repo):
    run_git(repo, "config", "user.name", "Test User")
    run_git(repo, "config", "user.email", "test@example.com")
    run_git(repo, "config", "commit.gpgsign", "false")


def build_diverged_clone(tmp_path, feature, dev):
    """Bare origin whose ``dev`` and ``feat/x`` diverged, cloned on ``dev``."""
    origin = tmp_path / "origin.git"
    seed = tmp_path / "seed"
    clone = tmp_path / "clone"
    run_git(tmp_path, "init", "--bare", str(origin))
    run_git(tmp_path, "init", str(seed))
    configure_identity(seed)
    run_git(seed, "checkout", "-b", "dev")
    commit_files(seed, {"app.py": "value = 1\n"}, "initial")
    run_git(seed, "remote", "add", "origin", str(origin))
    run_git(seed, "push", "origin", "dev")
    run_git(origin, "symbolic-ref", "HEAD", "refs/heads/dev")

    run_git(seed, "checkout", "-b", "feat/x")
    commit_files(seed, feature, "feature work")
    run_git(seed, "push", "origin", "feat/x")
    run_git(seed, "checkout", "dev")
    commit_files(seed, dev, "dev work")
    run_git(seed, "push", "origin", "dev")

    run_git(tmp_path, "clone", str(origin), str(clone))
    configure_identity(clone)
    return clone


def current_branch(repo):
    return run_git(repo, "rev-parse", "--abbrev-ref", "HEAD").strip()


def make_pull(number=1, head="feat/add-login", base="dev", **kwargs):
    data = dict(
        number=number,
        title="[FEAT] Add Login",
        body=None,
        head_ref=head,
        base_ref=base,
        author="me",
        url=f"https://github.com/octo/widgets/pull/{number}",
    )
    data.update(kwargs)
    return PullRequest(**data)


@pytest.fixture
def ctx(test_config, repo_info, mock_gateway, tmp_path):
    mock_gateway.get_mergeability.return_value = Mergeability(mergeable=True, mergeable_state="clean")
    mock_gateway.create_pull_request.side_effect = (
        lambda repo, title, body, head, base, draft: make_pull(title=title, body=body, head=head, base=base, draft=draft)
    )
    return WorkflowContext(
        config=test_config,
        repo=repo_info,
        gateway=mock_gateway,
        resolver=PullRequestStatusResolver(mock_gateway, retry_delay=0),
        selector=ReviewerSelector(mock_gateway, RotationStateStore(tmp_path / "state.json")),
        root=tmp_path,
    )


@pytest.fixture
def no_changes():
    with patch("autopr.integrations.git.get_changed_files", return_value=[]), \
         patch("autopr.integrations.git.get_diff", return_value=""):
        yield


class TestHelpers:
    """Test base branch and label resolution."""

    def test_release_targets_default_branch(self, test_config):
        release = next(p for p in test_config.branch_patterns if p.pattern == "release/*")
        feat = test_config.branch_patterns[0]

        assert resolve_base_branch(release, "main", "dev") == "main"
        assert resolve_base_branch(feat, "main", "dev") == "dev"
        assert resolve_base_branch(feat, "main", "") == "main"

    def test_merge_labels(self, test_config):
        pattern = test_config.branch_patterns[0]
        assert merge_labels(pattern, ["autopr", "feature"]) == ["feature", "autopr"]


class TestResolveRepo:
    """Test repository resolution."""

    def test_detected_repo_with_overrides(self):
        detected = RepoInfo(owner="octo", repo="widgets", current_branch="feat/x")
        with patch("autopr.workflows.context.get_current_repo_info", return_value=detected):
            repo = resolve_repo(Config(owner="acme"))

        assert repo.full_name == "acme/widgets"
        assert repo.current_branch == "feat/x"

    def test_no_repo(self):
        with patch("autopr.workflows.context.get_current_repo_info", return_value=None):
            with pytest.raises(WorkflowError):
                resolve_repo(Config())

    def test_create_context_requires_token(self):
        with pytest.raises(NotConfiguredError):
            create_context(Config())


class TestCreatePRWorkflow:
    """Test `autopr new`."""

    @pytest.mark.asyncio
    async def test_creates_pull_request(self, ctx, mock_gateway, repo_info, no_changes):
        result = await create_pr_workflow(ctx)

        assert result.matched
        assert result.created
        args = mock_gateway.create_pull_request.call_args.args
        assert args[1] == "[FEAT] Add Login"
        assert args[2].startswith("## Feature Description")
        assert args[3:] == ("feat/add-login", "dev", True)

        mock_gateway.request_reviewers.assert_called_once_with(repo_info, 1, ["carol"])
        mock_gateway.add_labels.assert_called_once_with(repo_info, 1, ["feature", "autopr"])
        assert result.status == PullRequestStatus.MERGEABLE
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_refuses_protected_branches(self, ctx):
        for branch in ("main", "dev"):
            ctx.repo = RepoInfo(owner="octo", repo="widgets", current_branch=branch)
            with pytest.raises(WorkflowError):
                await create_pr_workflow(ctx)

    @pytest.mark.asyncio
    async def test_unmatched_branch_does_nothing(self, ctx, mock_gateway):
        ctx.repo = RepoInfo(owner="octo", repo="widgets", current_branch="experiment")

        result = await create_pr_workflow(ctx)

        assert not result.matched
        mock_gateway.create_pull_request.assert_not_called()
        mock_gateway.find_open_pull_request.assert_not_called()

    @pytest.mark.asyncio
    async def test_existing_pull_request_is_updated(self, ctx, mock_gateway, no_changes):
        mock_gateway.find_open_pull_request.return_value = make_pull(number=4, body="Old body")
        mock_gateway.update_pull_request.return_value = make_pull(number=4)

        result = await create_pr_workflow(ctx, body="New body")

        assert not result.created
        mock_gateway.create_pull_request.assert_not_called()
        kwargs = mock_gateway.update_pull_request.call_args.kwargs
        assert kwargs["body"] == "Old body\n\n---\n\nNew body"
        assert kwargs["title"] == "[FEAT] Add Login"

    @pytest.mark.asyncio
    async def test_draft_downgraded_when_unavailable(self, ctx, mock_gateway, no_changes):
        mock_gateway.is_draft_available.return_value = False

        result = await create_pr_workflow(ctx)

        assert result.draft_downgraded
        assert mock_gateway.create_pull_request.call_args.args[5] is False

    @pytest.mark.asyncio
    async def test_ready_flag_overrides_pattern(self, ctx, mock_gateway, no_changes):
        await create_pr_workflow(ctx, draft=False)

        assert mock_gateway.create_pull_request.call_args.args[5] is False
        mock_gateway.is_draft_available.assert_not_called()

    @pytest.mark.asyncio
    async def test_release_branch_pushed_and_targets_main(self, ctx, mock_gateway, no_changes):
        ctx.repo = RepoInfo(owner="octo", repo="widgets", current_branch="release/1.2.0")

        with patch("autopr.integrations.git.push_branch") as push:
            await create_pr_workflow(ctx)

        push.assert_called_once_with("release/1.2.0")
        assert mock_gateway.create_pull_request.call_args.args[4] == "main"

    @pytest.mark.asyncio
    async def test_reviewer_failure_is_a_warning(self, ctx, mock_gateway, no_changes):
        mock_gateway.validate_reviewers.side_effect = GitHubGatewayError("forbidden")

        result = await create_pr_workflow(ctx)

        assert result.created
        assert result.warnings == ["forbidden"]
        mock_gateway.request_reviewers.assert_not_called()
        mock_gateway.add_labels.assert_called_once()

    @pytest.mark.asyncio
    async def test_ai_generates_title_and_body(self, ctx, mock_gateway):
        ctx.ai = Mock()
        ctx.ai.generate_pr_title.return_value = "[FEAT] Login form"
        ctx.ai.generate_pr_description.return_value = "AI body"

        with patch("autopr.integrations.git.get_changed_files", return_value=["login.py"]), \
             patch("autopr.integrations.git.get_diff", return_value="diff --git a/login.py b/login.py\n+x\n"):
            await create_pr_workflow(ctx)

        args = mock_gateway.create_pull_request.call_args.args
        assert args[1] == "[FEAT] Login form"
        assert args[2] == "AI body"

    @pytest.mark.asyncio
    async def test_ai_failure_keeps_generated_title(self, ctx, mock_gateway):
        ctx.ai = Mock()
        ctx.ai.generate_pr_title.side_effect = AIError("down")
        ctx.ai.generate_pr_description.side_effect = AIError("down")

        with patch("autopr.integrations.git.get_changed_files", return_value=["login.py"]), \
             patch("autopr.integrations.git.get_diff", return_value="+x\n"):
            result = await create_pr_workflow(ctx)

        assert mock_gateway.create_pull_request.call_args.args[1] == "[FEAT] Add Login"
        assert len(result.warnings) == 2


class TestMergePRWorkflow:
    """Test `autopr merge`."""

    @pytest.fixture
    def local_git(self):
        with patch("autopr.integrations.git.list_local_branches", return_value=["dev", "feat/add-login"]), \
             patch("autopr.integrations.git.checkout") as checkout, \
             patch("autopr.integrations.git.pull") as pull, \
             patch("autopr.integrations.git.delete_local_branch") as delete_local:
            yield Mock(checkout=checkout, pull=pull, delete_local=delete_local)

    @pytest.mark.asyncio
    async def test_merges_mergeable_pull_request(self, ctx, mock_gateway, repo_info, local_git):
        mock_gateway.get_pull_request.return_value = make_pull(number=9)
        mock_gateway.merge_pull_request.return_value = "abc123"
        confirm = Mock(return_value=True)

        result = await merge_pr_workflow(ctx, 9, MergeMethod.SQUASH, delete_branch=True, confirm=confirm)

        assert result.merged
        assert result.sha == "abc123"
        assert result.branch_deleted
        assert result.local_cleanup
        confirm.assert_called_once()
        mock_gateway.merge_pull_request.assert_called_once_with(repo_info, 9, MergeMethod.SQUASH, None)
        mock_gateway.delete_branch.assert_called_once_with(repo_info, "feat/add-login")
        local_git.checkout.assert_called_once_with("dev")
        local_git.delete_local.assert_called_once_with("feat/add-login")

    @pytest.mark.asyncio
    async def test_closed_pull_request(self, ctx, mock_gateway):
        mock_gateway.get_pull_request.return_value = make_pull(state="closed")

        with pytest.raises(PullRequestClosedError):
            await merge_pr_workflow(ctx, 1)

    @pytest.mark.asyncio
    @requires_git
    async def test_conflicts_found_by_merging_base_locally(self, ctx, mock_gateway, tmp_path):
        clone = build_diverged_clone(tmp_path, feature={"app.py": "value = 2\n"}, dev={"app.py": "value = 3\n"})
        ctx.root = clone
        ctx.ai = Mock()
        ctx.ai.suggest_conflict_resolution.return_value = "Keep both values."
        mock_gateway.get_pull_request.return_value = make_pull(number=3, head="feat/x", base="dev")
        mock_gateway.get_mergeability.return_value = Mergeability(mergeable=False, mergeable_state="dirty")
        mock_gateway.list_pull_request_files.return_value = [
            ChangedFile(filename="app.py", status="modified"),
            ChangedFile(filename="gone.py", status="removed"),
        ]

        result = await merge_pr_workflow(ctx, 3)

        assert not result.merged
        assert [c.filename for c in result.conflicts.conflicts] == ["app.py"]
        assert result.base_merged_cleanly is False
        assert len(result.local_conflicts["app.py"]) == 1
        assert not result.resolved_locally
        assert current_branch(clone) == "feat/x"
        entries = ctx.ai.suggest_conflict_resolution.call_args.args[0]
        assert entries[0]["file"] == "app.py"
        assert "<<<<<<<" in entries[0]["conflict"]
        assert result.ai_suggestions == "Keep both values."
        mock_gateway.merge_pull_request.assert_not_called()

    @pytest.mark.asyncio
    @requires_git
    async def test_clean_local_merge_restores_branch_and_stash(self, ctx, mock_gateway, tmp_path):
        clone = build_diverged_clone(tmp_path, feature={"feature.py": "x = 1\n"}, dev={"app.py": "value = 3\n"})
        (clone / "notes.txt").write_text("work in progress\n")
        ctx.root = clone
        mock_gateway.get_pull_request.return_value = make_pull(number=4, head="feat/x", base="dev")
        mock_gateway.get_mergeability.return_value = Mergeability(mergeable=False, mergeable_state="dirty")
        mock_gateway.list_pull_request_files.return_value = [ChangedFile(filename="app.py", status="modified")]

        result = await merge_pr_workflow(ctx, 4)

        assert result.base_merged_cleanly is True
        assert result.resolved_locally
        assert result.local_conflicts == {}
        assert not result.stashed
        assert current_branch(clone) == "dev"
        assert (clone / "notes.txt").read_text() == "work in progress\n"
        mock_gateway.merge_pull_request.assert_not_called()

    @pytest.mark.asyncio
    async def test_not_mergeable(self, ctx, mock_gateway):
        mock_gateway.get_pull_request.return_value = make_pull()
        mock_gateway.get_mergeability.return_value = Mergeability(mergeable=False, mergeable_state="blocked")

        with pytest.raises(NotMergeableError):
            await merge_pr_workflow(ctx, 1)
        mock_gateway.merge_pull_request.assert_not_called()

    @pytest.mark.asyncio
    async def test_still_checking(self, ctx, mock_gateway):
        mock_gateway.get_pull_request.return_value = make_pull()
        mock_gateway.get_mergeability.return_value = Mergeability(mergeable=None)

        with pytest.raises(NotMergeableError):
            await merge_pr_workflow(ctx, 1)

    @pytest.mark.asyncio
    async def test_cancelled(self, ctx, mock_gateway):
        mock_gateway.get_pull_request.return_value = make_pull()

        result = await merge_pr_workflow(ctx, 1, confirm=lambda pr: False)

        assert result.cancelled
        assert not result.merged
        mock_gateway.merge_pull_request.assert_not_called()

    @pytest.mark.asyncio
    async def test_base_change_before_merge(self, ctx, mock_gateway, repo_info, local_git):
        mock_gateway.get_pull_request.return_value = make_pull()
        mock_gateway.update_pull_request.return_value = make_pull(base="main")
        mock_gateway.merge_pull_request.return_value = "sha"

        result = await merge_pr_workflow(ctx, 1, base="main")

        assert result.base_changed
        assert result.pull_request.base_ref == "main"
        mock_gateway.update_pull_request.assert_called_once_with(repo_info, 1, base="main")

    @pytest.mark.asyncio
    async def test_branch_delete_failure_is_a_warning(self, ctx, mock_gateway, local_git):
        mock_gateway.get_pull_request.return_value = make_pull()
        mock_gateway.merge_pull_request.return_value = "sha"
        mock_gateway.delete_branch.side_effect = GitHubGatewayError("protected branch")

        result = await merge_pr_workflow(ctx, 1, delete_branch=True)

        assert result.merged
        assert not result.branch_deleted
        assert "protected branch" in result.warnings


class TestPostCheckoutHook:
    """Test `autopr hook post-checkout`."""

    @pytest.mark.parametrize("branch, reason", [
        ("HEAD", "detached HEAD"),
        ("main", "main is a protected branch"),
        ("dev", "dev is a protected branch"),
        ("experiment", "experiment matches no branch pattern"),
    ])
    def test_skip_reasons(self, test_config, branch, reason):
        assert post_checkout_skip_reason(test_config, branch) == reason

    def test_disabled_by_config(self, test_config):
        config = test_config.model_copy(update={"auto_pr_enabled": False})
        assert post_checkout_skip_reason(config, "feat/login-form") == "auto_pr_enabled is off"

    def test_automated_branch_proceeds(self, test_config):
        assert post_checkout_skip_reason(test_config, "feat/login-form") is None

    @pytest.mark.asyncio
    async def test_local_only_branch_is_left_alone(self, ctx, mock_gateway):
        with patch("autopr.integrations.git.remote_branch_exists", return_value=False) as exists:
            result = await post_checkout_workflow(ctx, "feat/login-form")

        assert not result.on_remote
        assert result.pr is None
        exists.assert_called_once_with("feat/login-form", "origin", ctx.root)
        mock_gateway.create_pull_request.assert_not_called()

    @pytest.mark.asyncio
    async def test_pushed_branch_gets_pull_request(self, ctx, mock_gateway, no_changes):
        with patch("autopr.integrations.git.remote_branch_exists", return_value=True):
            result = await post_checkout_workflow(ctx, "feat/login-form")

        assert result.on_remote
        assert result.pr.created
        assert ctx.repo.current_branch == "feat/login-form"
        args = mock_gateway.create_pull_request.call_args.args
        assert args[1] == "[FEAT] Login Form"
        assert args[3:] == ("feat/login-form", "dev", True)

    @pytest.mark.asyncio
    @requires_git
    async def test_remote_lookup_against_real_origin(self, ctx, mock_gateway, tmp_path):
        clone = build_diverged_clone(tmp_path, feature={"feature.py": "x = 1\n"}, dev={"app.py": "value = 3\n"})
        ctx.root = clone
        run_git(clone, "checkout", "-b", "feat/unpushed")

        result = await post_checkout_workflow(ctx, "feat/unpushed")

        assert not result.on_remote
        assert git.remote_branch_exists("feat/x", cwd=clone)
        mock_gateway.create_pull_request.assert_not_called()


class TestDailyReport:
    """Test `autopr daily-report`."""

    @pytest.fixture
    def commits(self):
        return [
            CommitInfo(
                sha="a" * 40,
                message="feat: login\n\nbody",
                date=datetime(2024, 5, 20, 9, 15, tzinfo=timezone.utc),
                files=[
                    CommitFile(filename="login.py", additions=10, deletions=2),
                    CommitFile(filename="README.md", additions=1, deletions=0),
                ],
            ),
            CommitInfo(
                sha="b" * 40,
                message="fix: typo",
                date=datetime(2024, 5, 20, 14, 5, tzinfo=timezone.utc),
                files=[CommitFile(filename="Makefile", additions=1, deletions=1)],
            ),
        ]

    @pytest.mark.asyncio
    async def test_aggregates_commits(self, ctx, mock_gateway, repo_info, commits):
        mock_gateway.get_authenticated_login.return_value = "me"
        mock_gateway.list_commits.return_value = commits

        async def branches(sha, cwd=None):
            return ["main", "feat/login"] if sha.startswith("a") else ["main"]

        with patch("autopr.integrations.git.branches_containing", branches):
            report = await daily_report_workflow(ctx, since=date(2024, 5, 20))

        assert report.username == "me"
        assert report.until == date(2024, 5, 20)
        stats = report.stats
        assert stats.total_commits == 2
        assert stats.files_changed == 3
        assert (stats.additions, stats.deletions) == (12, 3)
        assert stats.branches == {"main": 2, "feat/login": 1}
        assert stats.hourly_commits == {"09": 1, "14": 1}
        assert stats.file_types == {"py": 1, "md": 1, "unknown": 1}

        _, author, start, end = mock_gateway.list_commits.call_args.args
        assert author == "me"
        assert start == datetime(2024, 5, 20, 0, 0, tzinfo=timezone.utc)
        assert end == datetime(2024, 5, 20, 23, 59, 59, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_inverted_range(self, ctx):
        with pytest.raises(WorkflowError):
            await daily_report_workflow(ctx, username="me", since=date(2024, 5, 2), until=date(2024, 5, 1))

    @pytest.mark.asyncio
    async def test_no_commits(self, ctx, mock_gateway):
        mock_gateway.list_commits.return_value = []

        report = await daily_report_workflow(ctx, username="me", since=date(2024, 5, 20))

        assert report.commits == []
        assert "No commits found." in render_markdown(report)
        mock_gateway.get_authenticated_login.assert_not_called()

    @pytest.mark.asyncio
    async def test_renderers(self, ctx, mock_gateway, commits):
        mock_gateway.list_commits.return_value = commits

        async def branches(sha, cwd=None):
            return ["main"]

        with patch("autopr.integrations.git.branches_containing", branches):
            report = await daily_report_workflow(ctx, username="me", since=date(2024, 5, 20))

        data = json.loads(render_json(report))
        assert data["stats"]["total_commits"] == 2
        assert data["since"] == "2024-05-20"
        assert len(data["commits"]) == 2

        markdown = render_markdown(report)
        assert markdown.startswith("# Daily report for me (2024-05-20 - 2024-05-20)")
        assert "- Additions: +12" in markdown
        assert "`aaaaaaa` 09:15 feat: login" in markdown

    def test_parse_date(self):
        default = date(2024, 1, 1)
        assert parse_date(None, default) == default
        assert parse_date("2024-02-29", default) == date(2024, 2, 29)
        with pytest.raises(WorkflowError):
            parse_date("yesterday", default)
