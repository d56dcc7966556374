"""
Reference Model

Wires the ledger, campaign registry, reward accounting and parameter tracking
together and exposes them through timestamp-based operations, the same shape
as the commands sent to the authoritative system.
"""

from typing import Optional, Sequence

from ..constants import DEFAULT_NETWORK_FEE_BPS, DEFAULT_REBATE_BPS, DEFAULT_REWARD_BPS
from .campaigns import CampaignRegistry, CampaignType
from .epochs import EpochClock
from .ledger import StakeLedger, StakerData
from .parameters import ProtocolParameters
from .rewards import RewardAccounting


class ReferenceModel:
    """
    Independent re-derivation of the protocol's observable state.

    Deposits and delegations become visible in the next epoch; withdrawals
    affect the current and the next epoch and correct votes already cast in
    the current epoch.
    """

    def __init__(
        self,
        clock: EpochClock,
        min_campaign_duration: int = 0,
        network_fee_bps: int = DEFAULT_NETWORK_FEE_BPS,
        reward_bps: int = DEFAULT_REWARD_BPS,
        rebate_bps: int = DEFAULT_REBATE_BPS,
    ):
        self.clock = clock
        self.ledger = StakeLedger(on_withdrawal=self._on_withdrawal)
        self.rewards = RewardAccounting(self.ledger)
        self.registry = CampaignRegistry(clock, self.rewards, min_campaign_duration)
        self.parameters = ProtocolParameters(self.registry, network_fee_bps, reward_bps, rebate_bps)
        self._now: Optional[int] = None

    def _on_withdrawal(self, representative: str, reduction: int, epoch: int) -> None:
        at_time = self._now if self._now is not None else self.clock.epoch_start(epoch)
        self.registry.handle_withdrawal(representative, reduction, at_time)

    # =========================================================================
    # COMMANDS
    # =========================================================================

    def deposit(self, staker: str, amount: int, at_time: int) -> None:
        self.ledger.deposit(staker, amount, self.clock.epoch_of(at_time) + 1)

    def withdraw(self, staker: str, amount: int, at_time: int) -> int:
        self._now = at_time
        try:
            return self.ledger.withdraw(staker, amount, self.clock.epoch_of(at_time))
        finally:
            self._now = None

    def delegate(self, staker: str, representative: str, at_time: int) -> bool:
        return self.ledger.delegate(staker, representative, self.clock.epoch_of(at_time) + 1)

    def submit_campaign(
        self,
        campaign_type: CampaignType,
        start_time: int,
        end_time: int,
        min_percentage: int,
        c_param: int,
        t_param: int,
        options: Sequence[int],
        total_voting_power_snapshot: int,
        at_time: int,
    ) -> int:
        return self.registry.submit(
            campaign_type, start_time, end_time, min_percentage, c_param, t_param,
            options, total_voting_power_snapshot, at_time,
        )

    def cancel_campaign(self, campaign_id: int, at_time: int) -> None:
        self.registry.cancel(campaign_id, at_time)

    def vote(self, staker: str, campaign_id: int, option: int, at_time: int) -> bool:
        """Vote with the staker's current-epoch voting power. Returns True on a first vote."""
        weight = self.ledger.total_voting_power(staker, self.clock.epoch_of(at_time))
        _, first_vote = self.registry.vote(campaign_id, option, staker, weight, at_time)
        return first_vote

    # =========================================================================
    # QUERIES
    # =========================================================================

    def staker_data(self, staker: str, epoch: int) -> StakerData:
        return self.ledger.resolve(staker, epoch)

    def latest_staker_data(self, staker: str) -> StakerData:
        return self.ledger.latest(staker)

    def reward_percentage(self, staker: str, epoch: int) -> int:
        return self.rewards.reward_percentage(staker, epoch)

    def total_points(self, epoch: int) -> int:
        return self.rewards.total_points(epoch)
