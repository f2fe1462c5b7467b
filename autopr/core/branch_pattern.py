"""Branch pattern matching and PR title/body generation."""

import fnmatch
import re
from pathlib import Path
from typing import List, Optional

from autopr.core.templates import load_template
from autopr.i18n import t
from autopr.models import BranchPattern, Language
from autopr.utils.logger import get_logger

logger = get_logger(__name__)

_CAMEL_BOUNDARY = re.compile(r"([a-z])([A-Z])")
_WORD_START = re.compile(r"\b\w")

DEFAULT_BODY_KEYS = [
    "pr_body.changes",
    "pr_body.changes_placeholder",
    None,
    "pr_body.tests",
    "pr_body.unit_test",
    "pr_body.integration_test",
    None,
    "pr_body.reviewer_checklist",
    "pr_body.code_clarity",
    "pr_body.test_coverage",
    "pr_body.performance",
]


def match_branch_pattern(branch: str, pattern: str) -> bool:
    """Check whether ``branch`` matches the glob ``pattern``.

    ``*`` matches across ``/``, so ``feat/*`` matches ``feat/ui/button``.
    Matching is case-sensitive.
    """
    return fnmatch.fnmatchcase(branch, pattern)


def find_matching_pattern(branch: str, patterns: List[BranchPattern]) -> Optional[BranchPattern]:
    """Return the first pattern in declaration order that matches ``branch``.

    Returns:
        The matching pattern, or None when the branch is not automated
    """
    for pattern in patterns:
        if match_branch_pattern(branch, pattern.pattern):
            logger.info(
                f"Branch '{branch}' matched pattern '{pattern.pattern}' "
                f"(type={pattern.type.value}, draft={pattern.draft}, "
                f"labels={', '.join(pattern.labels) or 'none'}, "
                f"template={pattern.template or 'default'})"
            )
            return pattern

    logger.warning(f"No branch pattern matches '{branch}'")
    return None


def humanize_branch_description(description: str) -> str:
    text = description.replace("-", " ")
    text = _CAMEL_BOUNDARY.sub(r"\1 \2", text)
    return _WORD_START.sub(lambda m: m.group(0).upper(), text.lower())


def generate_pr_title(branch: str, pattern: BranchPattern) -> str:
    """Build a PR title from the branch name.

    ``feat/add-login`` becomes ``[FEAT] Add Login``. A branch without ``/``
    is returned unchanged.
    """
    parts = branch.split("/")
    if len(parts) < 2:
        return branch

    description = "/".join(parts[1:])
    return f"[{pattern.type.value.upper()}] {humanize_branch_description(description)}"


def default_pr_body(language: Language = Language.EN) -> str:
    """Localized default checklist body."""
    return "\n".join(t(key, language=language) if key else "" for key in DEFAULT_BODY_KEYS)


def generate_pr_body(
    pattern: BranchPattern,
    language: Language = Language.EN,
    root: Optional[Path] = None,
) -> str:
    """PR body from the pattern's template, or the default checklist."""
    if pattern.template:
        return load_template(pattern.template, language, root)
    return default_pr_body(language)
