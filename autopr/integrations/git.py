"""Local git operations."""

import re
from pathlib import Path
from typing import List, Optional, Union

from autopr.models import RepoInfo
from autopr.utils.logger import get_logger
from autopr.utils.shell import ShellError, get_current_branch, run_command, run_command_async

logger = get_logger(__name__)

GITHUB_REMOTE_PATTERNS = [
    re.compile(r"^https://(?:[^@/]+@)?github\.com/([^/]+)/([^/]+?)(?:\.git)?/?$"),
    re.compile(r"^git@github\.com:([^/]+)/([^/]+?)(?:\.git)?$"),
    re.compile(r"^ssh://git@github\.com/([^/]+)/([^/]+?)(?:\.git)?/?$"),
]


class GitError(Exception):
    """Git operation error."""
    pass


def _git(args: List[str], cwd: Optional[Path] = None, action: str = "") -> str:
    try:
        result = run_command(["git", *args], cwd=cwd, check=True)
    except ShellError as e:
        detail = e.stderr.strip() or str(e)
        raise GitError(f"Failed to {action or 'run git ' + args[0]}: {detail}")
    return result.stdout


def parse_github_remote(url: str) -> Optional["tuple[str, str]"]:
    """Extract (owner, repo) from a GitHub remote URL, or None."""
    url = url.strip()
    for pattern in GITHUB_REMOTE_PATTERNS:
        match = pattern.match(url)
        if match:
            return match.group(1), match.group(2)
    return None


def get_current_repo_info(cwd: Optional[Path] = None) -> Optional[RepoInfo]:
    """Repository coordinates from the ``origin`` remote and the current branch.

    Returns:
        Repository info, or None outside a git repository with a GitHub origin
    """
    try:
        remote = run_command("git remote get-url origin", cwd=cwd, check=True).stdout
    except ShellError:
        logger.debug("No origin remote found")
        return None

    parsed = parse_github_remote(remote)
    if parsed is None:
        logger.debug(f"Origin is not a GitHub remote: {remote.strip()}")
        return None

    owner, repo = parsed
    return RepoInfo(owner=owner, repo=repo, current_branch=get_current_branch(cwd) or "")


def get_changed_files(base: str, cwd: Optional[Path] = None) -> List[str]:
    """Files changed on the current branch relative to ``base``."""
    output = _git(["diff", "--name-only", f"{base}...HEAD"], cwd, f"list changes against {base}")
    return [line for line in output.splitlines() if line.strip()]


def get_diff(base: str, cwd: Optional[Path] = None) -> str:
    return _git(["diff", f"{base}...HEAD"], cwd, f"diff against {base}")


def get_staged_diff(cwd: Optional[Path] = None) -> str:
    return _git(["diff", "--cached"], cwd, "read staged changes")


def get_last_commit_message(cwd: Optional[Path] = None) -> str:
    return _git(["log", "-1", "--pretty=%B"], cwd, "read last commit message").strip()


def stage_all(cwd: Optional[Path] = None) -> None:
    _git(["add", "-A"], cwd, "stage changes")


def commit(message: str, cwd: Optional[Path] = None) -> None:
    _git(["commit", "-m", message], cwd, "commit")
    logger.info("Committed changes")


def push_branch(branch: str, remote: str = "origin", cwd: Optional[Path] = None) -> None:
    """Push ``branch`` and set its upstream."""
    logger.info(f"Pushing {branch} to {remote}")
    _git(["push", "-u", remote, branch], cwd, f"push {branch}")


def fetch(remote: str = "origin", branch: Optional[str] = None, cwd: Optional[Path] = None) -> None:
    args = ["fetch", remote]
    if branch:
        args.append(branch)
    _git(args, cwd, f"fetch {remote}")


def checkout(branch: str, cwd: Optional[Path] = None) -> None:
    _git(["checkout", branch], cwd, f"check out {branch}")


def pull(remote: str = "origin", branch: Optional[str] = None, cwd: Optional[Path] = None) -> None:
    args = ["pull", remote]
    if branch:
        args.append(branch)
    _git(args, cwd, "pull")


def merge(ref: str, cwd: Optional[Path] = None) -> bool:
    """Merge ``ref`` into the current branch.

    Returns:
        True on a clean merge, False when the merge stopped on conflicts
    """
    result = run_command(["git", "merge", "--no-edit", ref], cwd=cwd)
    if result.success:
        return True
    if "CONFLICT" in result.stdout or "CONFLICT" in result.stderr:
        logger.warning(f"Merging {ref} produced conflicts")
        return False
    raise GitError(f"Failed to merge {ref}: {result.stderr.strip() or result.stdout.strip()}")


def list_unmerged_files(cwd: Optional[Path] = None) -> List[str]:
    """Paths git still marks as conflicted after a merge."""
    output = _git(["diff", "--name-only", "--diff-filter=U"], cwd, "list unmerged files")
    return [line for line in output.splitlines() if line.strip()]


def has_uncommitted_changes(cwd: Optional[Path] = None) -> bool:
    return bool(_git(["status", "--porcelain"], cwd, "read status").strip())


def stash(message: str = "autopr", cwd: Optional[Path] = None) -> bool:
    """Stash local changes.

    Returns:
        True if anything was stashed
    """
    if not has_uncommitted_changes(cwd):
        return False
    _git(["stash", "push", "--include-untracked", "-m", message], cwd, "stash changes")
    logger.info("Stashed local changes")
    return True


def stash_pop(cwd: Optional[Path] = None) -> None:
    _git(["stash", "pop"], cwd, "restore stashed changes")


def delete_local_branch(branch: str, cwd: Optional[Path] = None) -> None:
    _git(["branch", "-D", branch], cwd, f"delete local branch {branch}")


def list_local_branches(cwd: Optional[Path] = None) -> List[str]:
    output = _git(["branch", "--format=%(refname:short)"], cwd, "list local branches")
    return [line.strip() for line in output.splitlines() if line.strip()]


def remote_branch_exists(branch: str, remote: str = "origin", cwd: Optional[Path] = None) -> bool:
    """Whether ``remote`` currently has a head named ``branch``."""
    output = _git(["ls-remote", "--heads", remote, branch], cwd, f"query {remote} for {branch}")
    return any(line.endswith(f"refs/heads/{branch}") for line in output.splitlines())


def read_file(path: Union[str, Path], cwd: Optional[Path] = None) -> Optional[str]:
    """Working tree content of ``path``, or None if it cannot be read."""
    full_path = (cwd or Path.cwd()) / path
    try:
        return full_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.debug(f"Could not read {full_path}: {e}")
        return None


async def branches_containing(sha: str, cwd: Optional[Path] = None) -> List[str]:
    """Local and remote branches containing commit ``sha``.

    Returns an empty list when the commit is not known locally.
    """
    result = await run_command_async(["git", "branch", "-a", "--contains", sha], cwd=cwd)
    if not result.success:
        logger.debug(f"No branches found containing {sha[:7]}")
        return []

    branches = []
    for line in result.stdout.splitlines():
        name = line.strip().lstrip("* ").strip()
        if not name or "->" in name:
            continue
        if name.startswith("remotes/"):
            name = name.split("/", 2)[-1]
        if name not in branches:
            branches.append(name)
    return branches
