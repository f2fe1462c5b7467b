"""Tests for branch pattern matching and title/body generation."""

import pytest

from autopr.core.branch_pattern import (
    default_pr_body,
    find_matching_pattern,
    generate_pr_body,
    generate_pr_title,
    humanize_branch_description,
    match_branch_pattern,
)
from autopr.models import BranchPattern, Language, PRType, ProjectConfig


def _pattern(glob, pr_type=PRType.FEAT, **kwargs):
    return BranchPattern(pattern=glob, type=pr_type, **kwargs)


class TestMatchBranchPattern:
    """Test glob matching of branch names."""

    def test_simple_glob(self):
        assert match_branch_pattern("feat/login", "feat/*")
        assert not match_branch_pattern("fix/login", "feat/*")

    def test_star_crosses_slashes(self):
        assert match_branch_pattern("feat/ui/button", "feat/*")

    def test_case_sensitive(self):
        assert not match_branch_pattern("Feat/login", "feat/*")

    def test_question_mark_and_classes(self):
        assert match_branch_pattern("v1", "v?")
        assert match_branch_pattern("hotfix-2", "hotfix-[0-9]")
        assert not match_branch_pattern("hotfix-x", "hotfix-[0-9]")


class TestFindMatchingPattern:
    """Test pattern selection order."""

    def test_first_match_wins(self):
        patterns = [
            _pattern("feat/ui-*", PRType.FEAT, labels=["ui"]),
            _pattern("feat/*", PRType.FEAT, labels=["feature"]),
        ]

        matched = find_matching_pattern("feat/ui-button", patterns)
        assert matched is patterns[0]

        matched = find_matching_pattern("feat/api", patterns)
        assert matched is patterns[1]

    def test_no_match_returns_none(self):
        patterns = [_pattern("feat/*")]
        assert find_matching_pattern("main", patterns) is None
        assert find_matching_pattern("experiment", []) is None

    def test_default_patterns(self):
        patterns = ProjectConfig().branch_patterns

        assert find_matching_pattern("fix/crash", patterns).type == PRType.FIX
        assert find_matching_pattern("release/1.2.0", patterns).type == PRType.RELEASE
        assert find_matching_pattern("docs/readme", patterns).draft is False


class TestGeneratePRTitle:
    """Test title generation from branch names."""

    @pytest.mark.parametrize("branch,pr_type,expected", [
        ("feat/add-login", PRType.FEAT, "[FEAT] Add Login"),
        ("fix/addUserLogin", PRType.FIX, "[FIX] Add User Login"),
        ("docs/update-README", PRType.DOCS, "[DOCS] Update Readme"),
        ("feat/ui/button-color", PRType.FEAT, "[FEAT] Ui/Button Color"),
    ])
    def test_title_from_branch(self, branch, pr_type, expected):
        assert generate_pr_title(branch, _pattern("*", pr_type)) == expected

    def test_branch_without_slash_is_unchanged(self):
        assert generate_pr_title("hotfix-login", _pattern("hotfix-*", PRType.FIX)) == "hotfix-login"

    def test_humanize(self):
        assert humanize_branch_description("improve-cacheHitRate") == "Improve Cache Hit Rate"


class TestGeneratePRBody:
    """Test body generation."""

    def test_default_body_has_checklist(self):
        body = default_pr_body(Language.EN)
        assert body.startswith("## Changes")
        assert "## Reviewer Checklist" in body
        assert "- [ ] Unit tests added" in body

    def test_default_body_localized(self):
        assert default_pr_body(Language.KO) != default_pr_body(Language.EN)

    def test_pattern_template_is_used(self, tmp_path):
        template_dir = tmp_path / ".github" / "PULL_REQUEST_TEMPLATE"
        template_dir.mkdir(parents=True)
        (template_dir / "feature.md").write_text("## Custom feature body\n")

        body = generate_pr_body(_pattern("feat/*", template="feature"), Language.EN, tmp_path)
        assert body == "## Custom feature body\n"

    def test_no_template_uses_default(self, tmp_path):
        body = generate_pr_body(_pattern("feat/*"), Language.EN, tmp_path)
        assert body == default_pr_body(Language.EN)
