"""Shared test configuration and fixtures."""

import os
from pathlib import Path
from unittest.mock import Mock

import pytest

from autopr.config import ConfigManager
from autopr.i18n import set_language
from autopr.models import Config, RepoInfo


@pytest.fixture
def temp_home(tmp_path):
    """Create a temporary home directory for tests."""
    home = tmp_path / "home"
    home.mkdir()
    return home


@pytest.fixture
def mock_git_root(tmp_path):
    """Temporary directory standing in for the repository root."""
    git_root = tmp_path / "git_repo"
    git_root.mkdir()
    return git_root


@pytest.fixture
def isolated_config_manager(temp_home, mock_git_root, monkeypatch):
    """Create an isolated ConfigManager that doesn't touch real config files."""
    monkeypatch.setattr(Path, "home", lambda: temp_home)
    monkeypatch.setattr("autopr.config.get_git_root", lambda: mock_git_root)

    for key in list(os.environ):
        if key.startswith("AUTOPR_"):
            monkeypatch.delenv(key)

    manager = ConfigManager()
    manager._global_config_path = temp_home / ".autopr" / "config.json"
    manager._project_config_path = None
    manager._config = None
    return manager


@pytest.fixture(autouse=True)
def mock_global_config_manager(isolated_config_manager, monkeypatch):
    """Automatically replace the global config_manager for all tests."""
    import autopr.cli
    import autopr.config
    import autopr.workflows.context

    monkeypatch.setattr(autopr.config, "config_manager", isolated_config_manager)
    monkeypatch.setattr(autopr.cli, "config_manager", isolated_config_manager)
    monkeypatch.setattr(autopr.workflows.context, "config_manager", isolated_config_manager)
    return isolated_config_manager


@pytest.fixture(autouse=True)
def reset_language():
    set_language("en")
    yield
    set_language("en")


@pytest.fixture
def test_config():
    """Configuration with a token, a reviewer group and default patterns."""
    return Config.model_validate({
        "github_token": "ghp_test",
        "default_reviewers": ["carol"],
        "default_labels": ["autopr"],
        "reviewer_groups": [
            {"name": "backend", "members": ["alice", "bob", "dave"], "rotation_strategy": "round-robin"},
        ],
    })


@pytest.fixture
def repo_info():
    return RepoInfo(owner="octo", repo="widgets", current_branch="feat/add-login")


@pytest.fixture
def mock_gateway():
    """Gateway double with permissive defaults."""
    gateway = Mock()
    gateway.validate_reviewers.side_effect = lambda repo, reviewers: (list(reviewers), [])
    gateway.list_open_pull_request_reviewers.return_value = []
    gateway.is_draft_available.return_value = True
    gateway.find_open_pull_request.return_value = None
    return gateway


@pytest.fixture
def runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner
    return CliRunner()
