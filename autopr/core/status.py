"""Pull request mergeability status and conflict detection."""

import asyncio
from typing import List, Optional

from autopr.models import ConflictBlock, ConflictFile, ConflictReport, Mergeability, PullRequestStatus, RepoInfo
from autopr.utils.cache import TTLCache
from autopr.utils.logger import get_logger

logger = get_logger(__name__)

STATUS_TTL_SECONDS = 5 * 60
DIRTY_STATE = "dirty"


def classify_mergeability(mergeability: Mergeability) -> PullRequestStatus:
    """Map GitHub's mergeable flag and state onto a status."""
    if mergeability.mergeable is None:
        return PullRequestStatus.CHECKING
    if mergeability.mergeable_state == DIRTY_STATE:
        return PullRequestStatus.CONFLICTING
    if mergeability.mergeable:
        return PullRequestStatus.MERGEABLE
    return PullRequestStatus.UNKNOWN


def status_key(repo: RepoInfo, number: int) -> str:
    return f"{repo.owner}/{repo.repo}/{number}"


class PullRequestStatusResolver:
    """Resolves and caches the mergeability status of pull requests."""

    def __init__(self, gateway, cache: Optional[TTLCache] = None, retry_delay: float = 1.0):
        """Initialize resolver.

        Args:
            gateway: GitHub gateway
            cache: Status cache (defaults to a five minute TTL)
            retry_delay: Seconds to wait before re-querying a null mergeable flag
        """
        self.gateway = gateway
        self.cache = cache if cache is not None else TTLCache(STATUS_TTL_SECONDS)
        self.retry_delay = retry_delay

    async def check_mergeability(self, repo: RepoInfo, number: int) -> Mergeability:
        """Fetch mergeability, re-querying once if GitHub is still computing it."""
        result = await asyncio.to_thread(self.gateway.get_mergeability, repo, number)
        if result.mergeable is None:
            logger.debug(f"Mergeability of #{number} not computed yet, retrying in {self.retry_delay}s")
            await asyncio.sleep(self.retry_delay)
            result = await asyncio.to_thread(self.gateway.get_mergeability, repo, number)
        return result

    async def get_pull_request_status(self, repo: RepoInfo, number: int) -> PullRequestStatus:
        """Status of a pull request, served from cache while fresh."""
        key = status_key(repo, number)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Status cache hit: {key} = {cached.value}")
            return cached

        logger.debug(f"Status cache miss: {key}")
        status = classify_mergeability(await self.check_mergeability(repo, number))
        self.cache.set(key, status)
        return status

    def invalidate(self, repo: RepoInfo, number: int) -> None:
        self.cache.invalidate(status_key(repo, number))

    async def refresh_pull_request_status(self, repo: RepoInfo, number: int) -> PullRequestStatus:
        """Drop any cached status and resolve it again."""
        self.invalidate(repo, number)
        return await self.get_pull_request_status(repo, number)

    async def update_pull_request(self, repo: RepoInfo, number: int, **fields):
        """Update a PR through the gateway, invalidating its cached status first."""
        self.invalidate(repo, number)
        return await asyncio.to_thread(self.gateway.update_pull_request, repo, number, **fields)

    async def get_pull_request_conflicts(self, repo: RepoInfo, number: int) -> ConflictReport:
        """Conflicting files of a pull request.

        When GitHub reports a dirty merge state, every changed file that was
        not removed is treated as conflicting. Otherwise the report is empty.
        """
        mergeability = await asyncio.to_thread(self.gateway.get_mergeability, repo, number)
        if not mergeability.has_conflicts:
            return ConflictReport()

        files = await asyncio.to_thread(self.gateway.list_pull_request_files, repo, number)
        conflicts = [
            ConflictFile(
                filename=f.filename,
                additions=f.additions,
                deletions=f.deletions,
                changes=f.changes,
            )
            for f in files
            if f.status != "removed"
        ]
        logger.info(f"PR #{number} has {len(conflicts)} conflicting file(s)")
        return ConflictReport(conflicts=conflicts)


def find_conflict_markers(text: str) -> List[ConflictBlock]:
    """Parse ``<<<<<<<`` / ``=======`` / ``>>>>>>>`` blocks from file content.

    Line numbers are 1-based. An unterminated block is ignored.
    """
    blocks: List[ConflictBlock] = []
    current = None

    for number, line in enumerate(text.split("\n"), start=1):
        if line.startswith("<<<<<<<"):
            current = {"start_line": number, "middle_line": None, "head": [], "base": []}
        elif current is None:
            continue
        elif line.startswith("=======") and current["middle_line"] is None:
            current["middle_line"] = number
        elif line.startswith(">>>>>>>"):
            blocks.append(
                ConflictBlock(
                    start_line=current["start_line"],
                    middle_line=current["middle_line"],
                    end_line=number,
                    head_content="".join(f"{row}\n" for row in current["head"]),
                    base_content="".join(f"{row}\n" for row in current["base"]),
                )
            )
            current = None
        elif current["middle_line"] is None:
            current["head"].append(line)
        else:
            current["base"].append(line)

    return blocks
