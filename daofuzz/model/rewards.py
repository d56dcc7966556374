"""
Reward Accounting

Per-epoch vote counts and the point-weighted reward share derived from them.
A staker's points for an epoch are `vote_count * total_voting_power`; its
reward percentage is its points over the epoch's total, in PRECISION units.
"""

from typing import Dict, List

from ..fixed_point import percentage
from ..logger import get_logger
from .ledger import StakeLedger

logger = get_logger(__name__)


class RewardAccounting:
    """Tracks distinct-campaign vote counts per (staker, epoch)."""

    def __init__(self, ledger: StakeLedger):
        self.ledger = ledger
        self._vote_counts: Dict[int, Dict[str, int]] = {}

    def on_vote_cast(self, staker: str, epoch: int) -> None:
        """Count one more campaign voted in by `staker` during `epoch`."""
        per_epoch = self._vote_counts.setdefault(epoch, {})
        per_epoch[staker] = per_epoch.get(staker, 0) + 1

    def vote_count(self, staker: str, epoch: int) -> int:
        return self._vote_counts.get(epoch, {}).get(staker, 0)

    def voters(self, epoch: int) -> List[str]:
        return list(self._vote_counts.get(epoch, {}).keys())

    def points(self, staker: str, epoch: int) -> int:
        return self.vote_count(staker, epoch) * self.ledger.total_voting_power(staker, epoch)

    def total_points(self, epoch: int) -> int:
        return sum(self.points(staker, epoch) for staker in self.voters(epoch))

    def reward_percentage(self, staker: str, epoch: int) -> int:
        """
        `points` as a PRECISION-scaled share of the epoch total, or 0 when the
        staker did not vote, has no voting power, or nobody earned points in `epoch`.
        """
        points = self.points(staker, epoch)
        if points == 0:
            return 0
        total = self.total_points(epoch)
        return percentage(points, total)
