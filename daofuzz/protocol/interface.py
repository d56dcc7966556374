"""
Authoritative System Boundary

The harness talks to the system under test only through `DaoProtocol`.
Every call is a blocking request/response: commands either return or raise
`ProtocolRevert` with the system's reason string, queries have no side
effects, and time only moves through the time-control methods.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Tuple

from ..fixed_point import BrrData
from ..model.campaigns import CampaignType
from ..model.ledger import StakerData


@dataclass(frozen=True)
class CampaignDetails:
    """Static campaign fields as reported by the authoritative system."""
    campaign_type: CampaignType
    start_time: int
    end_time: int
    total_voting_power_snapshot: int
    min_percentage: int
    c_param: int
    t_param: int
    options: Tuple[int, ...]

    def to_dict(self) -> dict:
        return {
            'campaign_type': CampaignType(self.campaign_type).name,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'total_voting_power_snapshot': self.total_voting_power_snapshot,
            'min_percentage': self.min_percentage,
            'c_param': self.c_param,
            't_param': self.t_param,
            'options': list(self.options),
        }


class DaoProtocol(ABC):
    """
    Abstract interface of the authoritative staking and governance system.

    Commands are issued as `sender`. Implementations raise `ProtocolRevert`
    when the system rejects a command.
    """

    # =========================================================================
    # COMMANDS
    # =========================================================================

    @abstractmethod
    def deposit(self, sender: str, amount: int) -> None:
        pass

    @abstractmethod
    def withdraw(self, sender: str, amount: int) -> None:
        pass

    @abstractmethod
    def delegate(self, sender: str, representative: str) -> None:
        pass

    @abstractmethod
    def submit_campaign(
        self,
        sender: str,
        campaign_type: CampaignType,
        start_time: int,
        end_time: int,
        min_percentage: int,
        c_param: int,
        t_param: int,
        options: List[int],
    ) -> int:
        """Returns the id of the new campaign."""
        pass

    @abstractmethod
    def cancel_campaign(self, sender: str, campaign_id: int) -> None:
        pass

    @abstractmethod
    def vote(self, sender: str, campaign_id: int, option: int) -> None:
        pass

    # =========================================================================
    # QUERIES
    # =========================================================================

    @abstractmethod
    def current_epoch(self) -> int:
        pass

    @abstractmethod
    def campaign_ids(self, epoch: int) -> List[int]:
        """Ids of the live campaigns of `epoch`, in no particular order."""
        pass

    @abstractmethod
    def campaign_details(self, campaign_id: int) -> CampaignDetails:
        pass

    @abstractmethod
    def campaign_vote_counts(self, campaign_id: int) -> Tuple[List[int], int]:
        """Per-option tallies and total votes."""
        pass

    @abstractmethod
    def staker_data(self, staker: str, epoch: int) -> StakerData:
        pass

    @abstractmethod
    def latest_staker_data(self, staker: str) -> StakerData:
        pass

    @abstractmethod
    def winning_option(self, campaign_id: int) -> Tuple[int, int]:
        pass

    @abstractmethod
    def total_epoch_points(self, epoch: int) -> int:
        pass

    @abstractmethod
    def current_reward_percentage(self, staker: str) -> int:
        pass

    @abstractmethod
    def past_reward_percentage(self, staker: str, epoch: int) -> int:
        pass

    @abstractmethod
    def network_fee_data(self) -> int:
        pass

    @abstractmethod
    def network_fee_data_with_cache(self) -> int:
        pass

    @abstractmethod
    def brr_data(self) -> BrrData:
        pass

    @abstractmethod
    def brr_data_with_cache(self) -> BrrData:
        pass

    @abstractmethod
    def total_supply(self) -> int:
        """Total voting power snapshot recorded on new campaigns."""
        pass

    # =========================================================================
    # TIME CONTROL
    # =========================================================================

    @abstractmethod
    def block_time(self) -> int:
        """Timestamp of the latest mined block."""
        pass

    @abstractmethod
    def set_next_block_timestamp(self, timestamp: int) -> None:
        """The next state-changing call executes at `timestamp`."""
        pass

    @abstractmethod
    def mine_block_at(self, timestamp: int) -> None:
        pass
