"""Reviewer selection and rotation."""

import asyncio
import json
import math
import random
from pathlib import Path
from typing import Dict, List, Optional

from autopr.config import write_json_atomic
from autopr.models import BranchPattern, Config, RepoInfo, ReviewerGroup, ReviewerSelection, RotationStrategy
from autopr.utils.logger import get_logger

logger = get_logger(__name__)


class RotationStateStore:
    """Last-selected member index per reviewer group, persisted as a flat JSON object.

    Writes go through a temporary file and a rename, so a crash never leaves a
    partial file. Concurrent invocations may still lose a rotation step.
    """

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> Dict[str, int]:
        """Read the whole state.

        Raises:
            OSError: If the file exists but cannot be read
            ValueError: If the file is not a JSON object of integers
        """
        if not self.path.exists():
            return {}

        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)

        if not isinstance(data, dict) or not all(
            isinstance(v, int) and not isinstance(v, bool) for v in data.values()
        ):
            raise ValueError(f"Invalid rotation state in {self.path}")
        return data

    def get(self, group: str) -> int:
        """Last index used for ``group``, or -1 if the group never rotated."""
        return self.load().get(group, -1)

    def set(self, group: str, index: int) -> None:
        state = self.load()
        state[group] = index
        write_json_atomic(self.path, state)


class ReviewerSelector:
    """Computes the reviewer set for a branch pattern."""

    def __init__(self, gateway, state_store: RotationStateStore, rng: Optional[random.Random] = None):
        """Initialize selector.

        Args:
            gateway: GitHub gateway used for collaborator and open-PR lookups
            state_store: Round-robin state persistence
            rng: Random source (tests pass a seeded or mocked instance)
        """
        self.gateway = gateway
        self.state_store = state_store
        self.rng = rng or random.Random()

    def _select_random(self, group: ReviewerGroup) -> str:
        index = math.floor(self.rng.random() * len(group.members))
        return group.members[index]

    def _select_round_robin(self, group: ReviewerGroup) -> str:
        try:
            last = self.state_store.get(group.name)
            index = (last + 1) % len(group.members)
            self.state_store.set(group.name, index)
        except (OSError, ValueError) as e:
            logger.warning(f"Rotation state unavailable for group '{group.name}', choosing randomly: {e}")
            return self._select_random(group)

        logger.debug(f"Round-robin for '{group.name}': index {index}")
        return group.members[index]

    async def _select_least_busy(self, group: ReviewerGroup, repo: RepoInfo) -> str:
        try:
            open_reviewers = await asyncio.to_thread(self.gateway.list_open_pull_request_reviewers, repo)
        except Exception as e:
            logger.warning(f"Could not count open reviews for group '{group.name}', choosing randomly: {e}")
            return self._select_random(group)

        counts = {member: 0 for member in group.members}
        for reviewers in open_reviewers:
            for login in reviewers:
                if login in counts:
                    counts[login] += 1

        # min() keeps the first member among equal counts
        selected = min(group.members, key=lambda member: counts[member])
        logger.debug(f"Least-busy for '{group.name}': {counts} -> {selected}")
        return selected

    async def select_from_group(self, group: ReviewerGroup, repo: RepoInfo) -> str:
        """Choose one member of ``group`` according to its rotation strategy."""
        strategy = group.rotation_strategy
        if strategy == RotationStrategy.ROUND_ROBIN:
            selected = self._select_round_robin(group)
        elif strategy == RotationStrategy.LEAST_BUSY:
            selected = await self._select_least_busy(group, repo)
        else:
            selected = self._select_random(group)

        logger.info(f"Selected {selected} from reviewer group '{group.name}' ({strategy.value})")
        return selected

    async def _select_isolated(self, group: ReviewerGroup, repo: RepoInfo) -> str:
        try:
            return await self.select_from_group(group, repo)
        except Exception as e:
            logger.warning(f"Selection failed for group '{group.name}', choosing randomly: {e}")
            return self._select_random(group)

    async def select_reviewers(
        self,
        pattern: BranchPattern,
        config: Config,
        repo: RepoInfo,
        exclude: Optional[str] = None,
    ) -> ReviewerSelection:
        """Compute the reviewers to request for a PR.

        The set is the union of the pattern's reviewers, one member drawn from
        each referenced group, and the default reviewers when the pattern
        auto-assigns. Names that are not collaborators are dropped and reported.

        Args:
            pattern: Matched branch pattern
            config: Merged configuration holding groups and default reviewers
            repo: Target repository
            exclude: Login to leave out, usually the PR author

        Returns:
            Reviewers to request and the names dropped as non-collaborators

        Raises:
            GitHubGatewayError: If the collaborator list cannot be fetched
        """
        candidates: List[str] = list(pattern.reviewers)

        groups = []
        for name in pattern.reviewer_groups:
            group = config.get_reviewer_group(name)
            if group is None:
                logger.warning(f"Reviewer group '{name}' referenced by '{pattern.pattern}' does not exist")
                continue
            groups.append(group)

        if groups:
            candidates.extend(await asyncio.gather(*(self._select_isolated(g, repo) for g in groups)))

        if pattern.auto_assign_reviewers:
            candidates.extend(config.default_reviewers)

        if exclude and exclude in candidates:
            logger.info(f"Excluded PR author {exclude} from reviewers")

        reviewers: List[str] = []
        for name in candidates:
            if name and name != exclude and name not in reviewers:
                reviewers.append(name)

        if not reviewers:
            return ReviewerSelection()

        valid, dropped = await asyncio.to_thread(self.gateway.validate_reviewers, repo, reviewers)
        if dropped:
            logger.warning(f"Dropped reviewers who are not collaborators: {', '.join(dropped)}")
        return ReviewerSelection(reviewers=valid, dropped=dropped)
