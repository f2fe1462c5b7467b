"""Tests for local git operations."""

from unittest.mock import patch

import pytest

from autopr.integrations import git
from autopr.integrations.git import GitError, parse_github_remote
from autopr.utils.shell import ShellResult


class FakeGit:
    """Stand-in for run_command answering by argument prefix."""

    def __init__(self, responses=None):
        self.responses = responses or {}
        self.calls = []

    def __call__(self, command, cwd=None, check=False, **kwargs):
        args = command.split() if isinstance(command, str) else list(command)
        self.calls.append(args)
        returncode, stdout, stderr = 0, "", ""
        for prefix, response in self.responses.items():
            if " ".join(args).startswith(prefix):
                returncode, stdout, stderr = response
                break
        result = ShellResult(returncode, stdout, stderr, " ".join(args), cwd)
        if check:
            result.check()
        return result


class TestParseGithubRemote:
    """Test remote URL parsing."""

    @pytest.mark.parametrize("url", [
        "https://github.com/octo/widgets.git",
        "https://github.com/octo/widgets",
        "https://token@github.com/octo/widgets.git",
        "git@github.com:octo/widgets.git",
        "ssh://git@github.com/octo/widgets.git",
    ])
    def test_supported_urls(self, url):
        assert parse_github_remote(url + "\n") == ("octo", "widgets")

    def test_non_github_remote(self):
        assert parse_github_remote("https://gitlab.com/octo/widgets.git") is None


class TestRepoInfo:
    """Test repository detection."""

    def test_current_repo_info(self):
        fake = FakeGit({"git remote get-url origin": (0, "git@github.com:octo/widgets.git\n", "")})
        with patch("autopr.integrations.git.run_command", fake), \
             patch("autopr.integrations.git.get_current_branch", return_value="feat/x"):
            info = git.get_current_repo_info()

        assert info.full_name == "octo/widgets"
        assert info.current_branch == "feat/x"

    def test_no_origin(self):
        fake = FakeGit({"git remote get-url origin": (2, "", "error: No such remote")})
        with patch("autopr.integrations.git.run_command", fake):
            assert git.get_current_repo_info() is None


class TestGitCommands:
    """Test git command wrappers."""

    def test_changed_files(self):
        fake = FakeGit({"git diff --name-only": (0, "a.py\n\nb/c.md\n", "")})
        with patch("autopr.integrations.git.run_command", fake):
            assert git.get_changed_files("origin/dev") == ["a.py", "b/c.md"]
        assert fake.calls[0] == ["git", "diff", "--name-only", "origin/dev...HEAD"]

    def test_commit_passes_message_as_one_argument(self):
        fake = FakeGit()
        with patch("autopr.integrations.git.run_command", fake):
            git.commit("feat: add login page")
        assert fake.calls[0] == ["git", "commit", "-m", "feat: add login page"]

    def test_failure_raises_git_error(self):
        fake = FakeGit({"git push": (1, "", "rejected")})
        with patch("autopr.integrations.git.run_command", fake):
            with pytest.raises(GitError, match="rejected"):
                git.push_branch("feat/x")

    def test_merge_conflict_returns_false(self):
        fake = FakeGit({"git merge": (1, "CONFLICT (content): Merge conflict in a.py", "")})
        with patch("autopr.integrations.git.run_command", fake):
            assert git.merge("origin/dev") is False

    def test_merge_other_failure_raises(self):
        fake = FakeGit({"git merge": (128, "", "not something we can merge")})
        with patch("autopr.integrations.git.run_command", fake):
            with pytest.raises(GitError):
                git.merge("origin/nope")

    def test_stash_skips_clean_tree(self):
        fake = FakeGit({"git status --porcelain": (0, "", "")})
        with patch("autopr.integrations.git.run_command", fake):
            assert git.stash() is False
        assert len(fake.calls) == 1

    def test_stash_dirty_tree(self):
        fake = FakeGit({"git status --porcelain": (0, " M a.py\n", "")})
        with patch("autopr.integrations.git.run_command", fake):
            assert git.stash("before merge") is True
        assert fake.calls[1][:3] == ["git", "stash", "push"]

    def test_remote_branch_exists(self):
        fake = FakeGit({"git ls-remote": (0, "3f2a9c1d\trefs/heads/feat/x\n", "")})
        with patch("autopr.integrations.git.run_command", fake):
            assert git.remote_branch_exists("feat/x") is True
        assert fake.calls[0] == ["git", "ls-remote", "--heads", "origin", "feat/x"]

    def test_remote_branch_missing(self):
        fake = FakeGit({"git ls-remote": (0, "", "")})
        with patch("autopr.integrations.git.run_command", fake):
            assert git.remote_branch_exists("feat/new") is False

    def test_remote_branch_suffix_is_not_a_match(self):
        fake = FakeGit({"git ls-remote": (0, "3f2a9c1d\trefs/heads/old/feat/x\n", "")})
        with patch("autopr.integrations.git.run_command", fake):
            assert git.remote_branch_exists("feat/x") is False

    def test_read_file(self, tmp_path):
        (tmp_path / "a.txt").write_text("hello")
        assert git.read_file("a.txt", tmp_path) == "hello"
        assert git.read_file("missing.txt", tmp_path) is None


class TestBranchesContaining:
    """Test branch lookup for commits."""

    @pytest.mark.asyncio
    async def test_parses_local_and_remote(self):
        output = "* main\n  feat/x\n  remotes/origin/HEAD -> origin/main\n  remotes/origin/feat/x\n"

        async def fake_async(command, cwd=None, **kwargs):
            return ShellResult(0, output, "", " ".join(command), cwd)

        with patch("autopr.integrations.git.run_command_async", fake_async):
            branches = await git.branches_containing("abc1234")

        assert branches == ["main", "feat/x"]

    @pytest.mark.asyncio
    async def test_unknown_commit(self):
        async def fake_async(command, cwd=None, **kwargs):
            return ShellResult(129, "", "error: malformed object name", " ".join(command), cwd)

        with patch("autopr.integrations.git.run_command_async", fake_async):
            assert await git.branches_containing("zzz") == []
