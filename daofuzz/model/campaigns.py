"""
Campaign Registry

Reference model of the campaign lifecycle: submission with parameter
validation, cancellation before start, per-option vote tallies with re-vote
semantics, retroactive weight correction on withdrawal, and winning-option
resolution with the quorum plus sliding-threshold rule.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional, Sequence, Tuple

from ..constants import (
    BPS,
    MAX_CAMPAIGN_OPTIONS,
    MAX_EPOCH_CAMPAIGNS,
    MAX_NETWORK_FEE_BPS,
    MIN_CAMPAIGN_OPTIONS,
    POWER_128,
    PRECISION,
)
from ..exceptions import ErrorKind, ValidationError
from ..fixed_point import checked_sub, decode_brr, mul_div, percentage
from ..logger import get_logger
from .epochs import EpochClock

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
# EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class CampaignError(ValidationError):
    """Campaign registry rejected an operation."""
    pass


# ══════════════════════════════════════════════════════════════════════
# ENUMS & DATA TYPES
# ══════════════════════════════════════════════════════════════════════

class CampaignType(IntEnum):
    """Campaign type; at most one NETWORK_FEE and one FEE_BRR per epoch."""
    GENERAL = 0
    NETWORK_FEE = 1
    FEE_BRR = 2


@dataclass
class Campaign:
    """
    A governance campaign.

    Attributes:
        campaign_id: Sequential id, starting at 1 and never reused
        campaign_type: General, network fee or fee/BRR
        start_time: First timestamp votes are accepted
        end_time: Last timestamp votes are accepted
        options: Option values; option ids are 1-based positions
        min_percentage: Quorum in PRECISION units
        c_param: Sliding threshold intercept in PRECISION units
        t_param: Sliding threshold slope in PRECISION units
        total_voting_power_snapshot: Total supply recorded at submission
        epoch: Epoch of start_time
    """
    campaign_id: int
    campaign_type: CampaignType
    start_time: int
    end_time: int
    options: Tuple[int, ...]
    min_percentage: int
    c_param: int
    t_param: int
    total_voting_power_snapshot: int
    epoch: int
    vote_per_option: List[int] = field(default_factory=list)
    total_votes: int = 0
    cancelled: bool = False

    def __post_init__(self):
        if not self.vote_per_option:
            self.vote_per_option = [0] * len(self.options)

    def votes_for(self, option: int) -> int:
        return self.vote_per_option[option - 1]

    def is_open(self, at_time: int) -> bool:
        return self.start_time <= at_time <= self.end_time

    def to_dict(self) -> dict:
        return {
            'campaign_id': self.campaign_id,
            'campaign_type': self.campaign_type.name,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'options': list(self.options),
            'min_percentage': self.min_percentage,
            'c_param': self.c_param,
            't_param': self.t_param,
            'total_voting_power_snapshot': self.total_voting_power_snapshot,
            'epoch': self.epoch,
            'vote_per_option': list(self.vote_per_option),
            'total_votes': self.total_votes,
            'cancelled': self.cancelled,
        }


@dataclass
class VoteReceipt:
    """One staker's vote on one campaign. `weight` shrinks on withdrawal."""
    staker: str
    campaign_id: int
    option: int
    weight: int
    epoch: int


# ══════════════════════════════════════════════════════════════════════
# REGISTRY
# ══════════════════════════════════════════════════════════════════════

class CampaignRegistry:
    """
    Tracks campaigns and their vote tallies.

    Args:
        clock: Epoch clock shared with the ledger
        rewards: Notified once per (staker, campaign) on first vote
        min_campaign_duration: Minimum `end - start` in seconds
    """

    def __init__(self, clock: EpochClock, rewards=None, min_campaign_duration: int = 0):
        self.clock = clock
        self.rewards = rewards
        self.min_campaign_duration = min_campaign_duration
        self._campaigns: Dict[int, Campaign] = {}
        self._epoch_campaigns: Dict[int, List[int]] = {}
        self._network_fee_campaigns: Dict[int, int] = {}
        self._brr_campaigns: Dict[int, int] = {}
        self._receipts: Dict[Tuple[str, int], VoteReceipt] = {}
        self._next_id = 1

    # =========================================================================
    # QUERIES
    # =========================================================================

    @property
    def number_of_campaigns(self) -> int:
        return self._next_id - 1

    def campaign(self, campaign_id: int) -> Optional[Campaign]:
        return self._campaigns.get(campaign_id)

    def active_campaign(self, campaign_id: int) -> Optional[Campaign]:
        """The campaign unless missing or cancelled."""
        campaign = self._campaigns.get(campaign_id)
        if campaign is None or campaign.cancelled:
            return None
        return campaign

    def campaign_ids(self, epoch: int) -> List[int]:
        """Ids of non-cancelled campaigns starting in `epoch`, ascending."""
        return sorted(self._epoch_campaigns.get(epoch, []))

    def network_fee_campaign(self, epoch: int) -> int:
        return self._network_fee_campaigns.get(epoch, 0)

    def brr_campaign(self, epoch: int) -> int:
        return self._brr_campaigns.get(epoch, 0)

    def receipt(self, staker: str, campaign_id: int) -> Optional[VoteReceipt]:
        return self._receipts.get((staker, campaign_id))

    def vote_counts(self, campaign_id: int) -> Tuple[List[int], int]:
        campaign = self.active_campaign(campaign_id)
        if campaign is None:
            return [], 0
        return list(campaign.vote_per_option), campaign.total_votes

    # =========================================================================
    # SUBMISSION
    # =========================================================================

    def validate_submission(
        self,
        campaign_type: CampaignType,
        start_time: int,
        end_time: int,
        min_percentage: int,
        c_param: int,
        t_param: int,
        options: Sequence[int],
        at_time: int,
    ) -> Optional[ErrorKind]:
        """Returns the first rejection reason for a submission, or None if it would be accepted."""
        if start_time < at_time:
            return ErrorKind.START_IN_PAST
        if end_time <= start_time or end_time - start_time < self.min_campaign_duration:
            return ErrorKind.INVALID_WINDOW

        start_epoch = self.clock.epoch_of(start_time)
        if len(self._epoch_campaigns.get(start_epoch, [])) >= MAX_EPOCH_CAMPAIGNS:
            return ErrorKind.EPOCH_OUT_OF_RANGE
        if not self.clock.same_epoch(start_time, end_time):
            return ErrorKind.CROSS_EPOCH_WINDOW
        current_epoch = self.clock.epoch_of(at_time)
        if start_epoch > current_epoch + 1 or start_epoch < current_epoch:
            return ErrorKind.EPOCH_OUT_OF_RANGE

        if len(options) > MAX_CAMPAIGN_OPTIONS:
            return ErrorKind.TOO_MANY_OPTIONS
        if len(options) < MIN_CAMPAIGN_OPTIONS:
            return ErrorKind.TOO_FEW_OPTIONS

        if campaign_type == CampaignType.GENERAL:
            if any(option <= 0 for option in options):
                return ErrorKind.INVALID_OPTION_VALUE
        elif campaign_type == CampaignType.NETWORK_FEE:
            if self._network_fee_campaigns.get(start_epoch):
                return ErrorKind.DUPLICATE_TYPE_FOR_EPOCH
            if any(option >= MAX_NETWORK_FEE_BPS for option in options):
                return ErrorKind.INVALID_OPTION_VALUE
        else:
            if self._brr_campaigns.get(start_epoch):
                return ErrorKind.DUPLICATE_TYPE_FOR_EPOCH
            for option in options:
                brr = decode_brr(option)
                if brr.reward_bps + brr.rebate_bps > BPS:
                    return ErrorKind.INVALID_OPTION_VALUE

        if min_percentage > PRECISION or c_param >= POWER_128 or t_param >= POWER_128:
            return ErrorKind.INVALID_PARAMETER
        return None

    def submit(
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
        """
        Register a new campaign.

        Returns:
            The new campaign id.

        Raises:
            CampaignError: With the first failing check's ErrorKind
        """
        kind = self.validate_submission(
            campaign_type, start_time, end_time,
            min_percentage, c_param, t_param, options, at_time,
        )
        if kind is not None:
            raise CampaignError(kind)

        campaign_type = CampaignType(campaign_type)
        epoch = self.clock.epoch_of(start_time)
        campaign_id = self._next_id
        self._next_id += 1

        self._campaigns[campaign_id] = Campaign(
            campaign_id=campaign_id,
            campaign_type=campaign_type,
            start_time=start_time,
            end_time=end_time,
            options=tuple(options),
            min_percentage=min_percentage,
            c_param=c_param,
            t_param=t_param,
            total_voting_power_snapshot=total_voting_power_snapshot,
            epoch=epoch,
        )
        self._epoch_campaigns.setdefault(epoch, []).append(campaign_id)
        if campaign_type == CampaignType.NETWORK_FEE:
            self._network_fee_campaigns[epoch] = campaign_id
        elif campaign_type == CampaignType.FEE_BRR:
            self._brr_campaigns[epoch] = campaign_id

        logger.debug(f"Submitted campaign #{campaign_id} ({campaign_type.name}) for epoch {epoch}")
        return campaign_id

    # =========================================================================
    # CANCELLATION
    # =========================================================================

    def validate_cancel(self, campaign_id: int, at_time: int) -> Optional[ErrorKind]:
        campaign = self.active_campaign(campaign_id)
        if campaign is None:
            return ErrorKind.CAMPAIGN_NOT_FOUND
        if at_time >= campaign.start_time:
            return ErrorKind.ALREADY_STARTED
        return None

    def cancel(self, campaign_id: int, at_time: int) -> None:
        """Cancel a campaign that has not started; frees its per-type slot."""
        kind = self.validate_cancel(campaign_id, at_time)
        if kind is not None:
            raise CampaignError(kind)

        campaign = self._campaigns[campaign_id]
        campaign.cancelled = True
        self._epoch_campaigns[campaign.epoch].remove(campaign_id)
        if self._network_fee_campaigns.get(campaign.epoch) == campaign_id:
            del self._network_fee_campaigns[campaign.epoch]
        if self._brr_campaigns.get(campaign.epoch) == campaign_id:
            del self._brr_campaigns[campaign.epoch]

        logger.debug(f"Cancelled campaign #{campaign_id}")

    # =========================================================================
    # VOTING
    # =========================================================================

    def validate_vote(self, campaign_id: int, option: int, at_time: int) -> Optional[ErrorKind]:
        campaign = self.active_campaign(campaign_id)
        if campaign is None:
            return ErrorKind.CAMPAIGN_NOT_FOUND
        if at_time < campaign.start_time:
            return ErrorKind.NOT_STARTED
        if at_time > campaign.end_time:
            return ErrorKind.ALREADY_ENDED
        if option <= 0 or option > len(campaign.options):
            return ErrorKind.OPTION_OUT_OF_RANGE
        return None

    def vote(
        self,
        campaign_id: int,
        option: int,
        staker: str,
        weight: int,
        at_time: int,
    ) -> Tuple[VoteReceipt, bool]:
        """
        Record or replace `staker`'s vote.

        A first vote adds `weight` to the option and to the total and notifies
        reward accounting. A re-vote moves the recorded weight from the old
        option to the new one; re-voting the same option changes nothing.

        Returns:
            (receipt, first_vote)
        """
        kind = self.validate_vote(campaign_id, option, at_time)
        if kind is not None:
            raise CampaignError(kind)

        campaign = self._campaigns[campaign_id]
        key = (staker, campaign_id)
        receipt = self._receipts.get(key)

        if receipt is None:
            receipt = VoteReceipt(
                staker=staker,
                campaign_id=campaign_id,
                option=option,
                weight=weight,
                epoch=campaign.epoch,
            )
            self._receipts[key] = receipt
            campaign.vote_per_option[option - 1] += weight
            campaign.total_votes += weight
            if self.rewards is not None:
                self.rewards.on_vote_cast(staker, campaign.epoch)
            logger.debug(f"{staker} voted option {option} on campaign #{campaign_id} with {weight}")
            return receipt, True

        if receipt.option != option:
            campaign.vote_per_option[receipt.option - 1] = checked_sub(
                campaign.vote_per_option[receipt.option - 1], receipt.weight
            )
            campaign.vote_per_option[option - 1] += receipt.weight
            logger.debug(
                f"{staker} moved vote on campaign #{campaign_id} "
                f"from option {receipt.option} to {option}"
            )
            receipt.option = option
        return receipt, False

    def adjust_weight_on_withdrawal(self, staker: str, campaign_id: int, delta: int, at_time: int) -> bool:
        """
        Subtract `delta` from `staker`'s recorded vote while the campaign is still open.

        Returns:
            True if a tally changed.
        """
        campaign = self.active_campaign(campaign_id)
        receipt = self._receipts.get((staker, campaign_id))
        if campaign is None or receipt is None or delta <= 0:
            return False
        if campaign.end_time < at_time:
            return False

        campaign.vote_per_option[receipt.option - 1] = checked_sub(
            campaign.vote_per_option[receipt.option - 1], delta
        )
        campaign.total_votes = checked_sub(campaign.total_votes, delta)
        receipt.weight = checked_sub(receipt.weight, delta)
        return True

    def handle_withdrawal(self, staker: str, delta: int, at_time: int) -> List[int]:
        """Apply a withdrawal reduction to every open campaign of the current epoch."""
        epoch = self.clock.epoch_of(at_time)
        adjusted = [
            campaign_id
            for campaign_id in self.campaign_ids(epoch)
            if self.adjust_weight_on_withdrawal(staker, campaign_id, delta, at_time)
        ]
        if adjusted:
            logger.debug(f"Withdrawal of {delta} by {staker} adjusted campaigns {adjusted}")
        return adjusted

    # =========================================================================
    # RESOLUTION
    # =========================================================================

    def resolve_winner(self, campaign_id: int, at_time: Optional[int] = None) -> Tuple[int, int]:
        """
        Winning (option, value) of a campaign, or (0, 0) for no winner.

        An option wins when it holds a strict plurality, turnout
        (`total_votes / snapshot`) reaches `min_percentage`, and, when
        `t * turnout <= c`, its share of the votes is at least
        `c - t * turnout`.
        """
        campaign = self.active_campaign(campaign_id)
        if campaign is None:
            return 0, 0
        if at_time is not None and campaign.end_time > at_time:
            return 0, 0
        return winning_option(campaign)


def winning_option(campaign: Campaign) -> Tuple[int, int]:
    """Pure winner computation over a campaign's tallies."""
    snapshot = campaign.total_voting_power_snapshot
    if snapshot == 0:
        return 0, 0

    votes = campaign.vote_per_option
    max_votes = max(votes) if votes else 0
    if max_votes == 0 or votes.count(max_votes) > 1:
        return 0, 0
    option = votes.index(max_votes) + 1

    total_votes = campaign.total_votes
    voted_percentage = percentage(total_votes, snapshot)
    if campaign.min_percentage > voted_percentage:
        return 0, 0

    x = mul_div(campaign.t_param, voted_percentage, PRECISION)
    if x <= campaign.c_param:
        y = campaign.c_param - x
        if max_votes * PRECISION < y * total_votes:
            return 0, 0

    return option, campaign.options[option - 1]
