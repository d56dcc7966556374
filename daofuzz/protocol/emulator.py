"""
In-Process DAO Emulator

A single-process stand-in for the authoritative staking and DAO contracts,
used as the system under test by the CLI and the test suite.

It keeps state the way the contracts do rather than the way the reference
model does: per-epoch `has_inited` flags with a separate "latest" record per
staker, incrementally maintained epoch points, swap-and-pop campaign lists,
token balances, and revert strings. Every command validates fully before it
mutates, so a revert leaves state untouched, and every command (reverted or
not) mines one block at its timestamp.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from eth_utils import is_address, to_checksum_address

from ..constants import (
    BPS,
    MAX_CAMPAIGN_OPTIONS,
    MAX_EPOCH_CAMPAIGNS,
    POWER_128,
    PRECISION,
    ZERO_ADDRESS,
)
from ..exceptions import ErrorKind, ProtocolRevert
from ..fixed_point import BrrData
from ..logger import get_logger
from ..model.campaigns import CampaignType
from ..model.ledger import StakerData
from .interface import CampaignDetails, DaoProtocol

logger = get_logger(__name__)


def require(condition: bool, kind: ErrorKind) -> None:
    if not condition:
        raise ProtocolRevert(kind.value)


@dataclass
class _StakerRecord:
    stake: int = 0
    delegated_stake: int = 0
    representative: str = ZERO_ADDRESS

    def copy(self) -> "_StakerRecord":
        return _StakerRecord(self.stake, self.delegated_stake, self.representative)


@dataclass
class _CampaignRecord:
    campaign_type: CampaignType
    start_time: int
    end_time: int
    total_supply: int
    min_percentage: int
    c_param: int
    t_param: int
    options: List[int]
    votes: List[int]  # index 0 unused, options are 1-based
    total_votes: int = 0


class InProcessDao(DaoProtocol):
    """
    Emulated staking + DAO contracts.

    Args:
        start_time: Timestamp epoch 1 starts at
        epoch_period: Epoch length in seconds
        balances: Initial token balance per address
        total_supply: Voting power snapshot recorded on every campaign
        campaign_creator: Only address allowed to submit and cancel campaigns
        block_time: Timestamp of the genesis block
        min_campaign_duration: Minimum campaign length in seconds
        network_fee_bps, reward_bps, rebate_bps: Initial fee parameters
    """

    def __init__(
        self,
        start_time: int,
        epoch_period: int,
        balances: Dict[str, int],
        total_supply: int,
        campaign_creator: str,
        block_time: int,
        min_campaign_duration: int = 0,
        network_fee_bps: int = 25,
        reward_bps: int = 3000,
        rebate_bps: int = 2000,
    ):
        self.start_time = start_time
        self.epoch_period = epoch_period
        self.min_campaign_duration = min_campaign_duration
        self.campaign_creator = to_checksum_address(campaign_creator)
        self._total_supply = total_supply
        self._balances = {to_checksum_address(a): b for a, b in balances.items()}

        self._block_time = block_time
        self._pending_time: Optional[int] = None

        # Staking storage
        self._has_inited: Dict[int, Dict[str, bool]] = {}
        self._epoch_data: Dict[int, Dict[str, _StakerRecord]] = {}
        self._latest: Dict[str, _StakerRecord] = {}

        # DAO storage
        self._campaigns: Dict[int, _CampaignRecord] = {}
        self._epoch_campaigns: Dict[int, List[int]] = {}
        self._network_fee_campaigns: Dict[int, int] = {}
        self._brr_campaigns: Dict[int, int] = {}
        self._number_campaigns = 0
        self._voted_option: Dict[Tuple[str, int], int] = {}
        self._number_votes: Dict[Tuple[str, int], int] = {}
        self._total_epoch_points: Dict[int, int] = {}
        self._latest_network_fee = network_fee_bps
        self._latest_brr = (reward_bps, rebate_bps)

    # =========================================================================
    # TIME
    # =========================================================================

    def block_time(self) -> int:
        return self._block_time

    def set_next_block_timestamp(self, timestamp: int) -> None:
        if timestamp <= self._block_time:
            raise ValueError(f"timestamp {timestamp} is not after block time {self._block_time}")
        self._pending_time = timestamp

    def mine_block_at(self, timestamp: int) -> None:
        if timestamp < self._block_time:
            raise ValueError(f"timestamp {timestamp} is before block time {self._block_time}")
        self._block_time = timestamp
        self._pending_time = None

    def _begin_tx(self) -> int:
        tx_time = self._pending_time if self._pending_time is not None else self._block_time + 1
        self.mine_block_at(tx_time)
        return tx_time

    def _epoch_at(self, timestamp: int) -> int:
        if timestamp < self.start_time:
            return 0
        return (timestamp - self.start_time) // self.epoch_period + 1

    def current_epoch(self) -> int:
        return self._epoch_at(self._block_time)

    # =========================================================================
    # STAKING
    # =========================================================================

    def _init_if_needed(self, staker: str, epoch: int) -> None:
        latest = self._latest.get(staker)
        if latest is None:
            latest = _StakerRecord(representative=staker)
            self._latest[staker] = latest
        for e in (epoch, epoch + 1):
            inited = self._has_inited.setdefault(e, {})
            if not inited.get(staker):
                inited[staker] = True
                self._epoch_data.setdefault(e, {})[staker] = latest.copy()

    def _record(self, staker: str, epoch: int) -> _StakerRecord:
        return self._epoch_data[epoch][staker]

    def deposit(self, sender: str, amount: int) -> None:
        staker = to_checksum_address(sender)
        now = self._begin_tx()
        require(amount > 0, ErrorKind.INVALID_AMOUNT)
        require(self._balances.get(staker, 0) >= amount, ErrorKind.INSUFFICIENT_BALANCE)

        cur = self._epoch_at(now)
        self._init_if_needed(staker, cur)
        self._balances[staker] -= amount
        self._record(staker, cur + 1).stake += amount
        self._latest[staker].stake += amount

        rep = self._record(staker, cur + 1).representative
        if rep != staker:
            self._init_if_needed(rep, cur)
            self._record(rep, cur + 1).delegated_stake += amount
            self._latest[rep].delegated_stake += amount

    def withdraw(self, sender: str, amount: int) -> None:
        staker = to_checksum_address(sender)
        now = self._begin_tx()
        require(amount > 0, ErrorKind.INVALID_AMOUNT)
        latest = self._latest.get(staker)
        require(latest is not None and latest.stake >= amount, ErrorKind.INSUFFICIENT_STAKE)

        cur = self._epoch_at(now)
        self._init_if_needed(staker, cur)
        self._record(staker, cur + 1).stake -= amount
        self._latest[staker].stake -= amount

        rep = self._record(staker, cur + 1).representative
        if rep != staker:
            self._init_if_needed(rep, cur)
            self._record(rep, cur + 1).delegated_stake -= amount
            self._latest[rep].delegated_stake -= amount

        cur_record = self._record(staker, cur)
        new_latest = self._latest[staker].stake
        if new_latest < cur_record.stake:
            reduce_amount = cur_record.stake - new_latest
            cur_record.stake = new_latest
            cur_rep = cur_record.representative
            if cur_rep != staker:
                self._init_if_needed(cur_rep, cur)
                self._record(cur_rep, cur).delegated_stake -= reduce_amount
            self._handle_withdrawal(cur_rep, reduce_amount, cur, now)

        self._balances[staker] = self._balances.get(staker, 0) + amount

    def delegate(self, sender: str, representative: str) -> None:
        staker = to_checksum_address(sender)
        now = self._begin_tx()
        require(
            is_address(representative) and representative.lower() != ZERO_ADDRESS,
            ErrorKind.ZERO_ADDRESS,
        )
        new_rep = to_checksum_address(representative)

        cur = self._epoch_at(now)
        self._init_if_needed(staker, cur)
        old_rep = self._record(staker, cur + 1).representative
        if old_rep == new_rep:
            return

        updated_stake = self._record(staker, cur + 1).stake
        if old_rep != staker:
            self._init_if_needed(old_rep, cur)
            self._record(old_rep, cur + 1).delegated_stake -= updated_stake
            self._latest[old_rep].delegated_stake -= updated_stake

        self._record(staker, cur + 1).representative = new_rep
        self._latest[staker].representative = new_rep

        if new_rep != staker:
            self._init_if_needed(new_rep, cur)
            self._record(new_rep, cur + 1).delegated_stake += updated_stake
            self._latest[new_rep].delegated_stake += updated_stake

    def staker_data(self, staker: str, epoch: int) -> StakerData:
        staker = to_checksum_address(staker)
        if epoch > self.current_epoch() + 1:
            return StakerData(0, 0, ZERO_ADDRESS)
        for e in range(epoch, -1, -1):
            if self._has_inited.get(e, {}).get(staker):
                record = self._epoch_data[e][staker]
                return StakerData(record.stake, record.delegated_stake, record.representative)
        return StakerData(0, 0, staker)

    def latest_staker_data(self, staker: str) -> StakerData:
        staker = to_checksum_address(staker)
        record = self._latest.get(staker)
        if record is None:
            return StakerData(0, 0, staker)
        return StakerData(record.stake, record.delegated_stake, record.representative)

    def balance_of(self, account: str) -> int:
        return self._balances.get(to_checksum_address(account), 0)

    # =========================================================================
    # CAMPAIGNS
    # =========================================================================

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
        creator = to_checksum_address(sender)
        now = self._begin_tx()
        require(creator == self.campaign_creator, ErrorKind.NOT_CAMPAIGN_CREATOR)
        self._validate_campaign_params(
            CampaignType(campaign_type), start_time, end_time,
            min_percentage, c_param, t_param, list(options), now,
        )

        self._number_campaigns += 1
        campaign_id = self._number_campaigns
        epoch = self._epoch_at(start_time)
        self._epoch_campaigns.setdefault(epoch, []).append(campaign_id)
        if campaign_type == CampaignType.NETWORK_FEE:
            self._network_fee_campaigns[epoch] = campaign_id
        elif campaign_type == CampaignType.FEE_BRR:
            self._brr_campaigns[epoch] = campaign_id

        self._campaigns[campaign_id] = _CampaignRecord(
            campaign_type=CampaignType(campaign_type),
            start_time=start_time,
            end_time=end_time,
            total_supply=self._total_supply,
            min_percentage=min_percentage,
            c_param=c_param,
            t_param=t_param,
            options=list(options),
            votes=[0] * (len(options) + 1),
        )
        return campaign_id

    def _validate_campaign_params(
        self,
        campaign_type: CampaignType,
        start_time: int,
        end_time: int,
        min_percentage: int,
        c_param: int,
        t_param: int,
        options: List[int],
        now: int,
    ) -> None:
        require(start_time >= now, ErrorKind.START_IN_PAST)
        require(
            end_time > start_time and end_time >= start_time + self.min_campaign_duration,
            ErrorKind.INVALID_WINDOW,
        )
        start_epoch = self._epoch_at(start_time)
        require(
            len(self._epoch_campaigns.get(start_epoch, [])) < MAX_EPOCH_CAMPAIGNS,
            ErrorKind.EPOCH_OUT_OF_RANGE,
        )
        require(start_epoch == self._epoch_at(end_time), ErrorKind.CROSS_EPOCH_WINDOW)
        require(start_epoch <= self._epoch_at(now) + 1, ErrorKind.EPOCH_OUT_OF_RANGE)
        require(len(options) <= MAX_CAMPAIGN_OPTIONS, ErrorKind.TOO_MANY_OPTIONS)
        require(len(options) > 1, ErrorKind.TOO_FEW_OPTIONS)

        if campaign_type == CampaignType.GENERAL:
            for option in options:
                require(option > 0, ErrorKind.INVALID_OPTION_VALUE)
        elif campaign_type == CampaignType.NETWORK_FEE:
            require(
                self._network_fee_campaigns.get(start_epoch, 0) == 0,
                ErrorKind.DUPLICATE_TYPE_FOR_EPOCH,
            )
            for option in options:
                require(option < BPS // 2, ErrorKind.INVALID_OPTION_VALUE)
        else:
            require(
                self._brr_campaigns.get(start_epoch, 0) == 0,
                ErrorKind.DUPLICATE_TYPE_FOR_EPOCH,
            )
            for option in options:
                rebate, reward = option >> 128, option & (POWER_128 - 1)
                require(rebate + reward <= BPS, ErrorKind.INVALID_OPTION_VALUE)

        require(min_percentage <= PRECISION, ErrorKind.INVALID_PARAMETER)
        require(c_param < POWER_128, ErrorKind.INVALID_PARAMETER)
        require(t_param < POWER_128, ErrorKind.INVALID_PARAMETER)

    def cancel_campaign(self, sender: str, campaign_id: int) -> None:
        creator = to_checksum_address(sender)
        now = self._begin_tx()
        require(creator == self.campaign_creator, ErrorKind.NOT_CAMPAIGN_CREATOR)
        campaign = self._campaigns.get(campaign_id)
        require(campaign is not None, ErrorKind.CAMPAIGN_NOT_FOUND)
        require(campaign.start_time > now, ErrorKind.ALREADY_STARTED)

        epoch = self._epoch_at(campaign.start_time)
        if campaign.campaign_type == CampaignType.NETWORK_FEE:
            self._network_fee_campaigns.pop(epoch, None)
        elif campaign.campaign_type == CampaignType.FEE_BRR:
            self._brr_campaigns.pop(epoch, None)
        del self._campaigns[campaign_id]

        ids = self._epoch_campaigns[epoch]
        for i in range(len(ids)):
            if ids[i] == campaign_id:
                ids[i] = ids[-1]
                ids.pop()
                break

    def vote(self, sender: str, campaign_id: int, option: int) -> None:
        staker = to_checksum_address(sender)
        now = self._begin_tx()
        campaign = self._campaigns.get(campaign_id)
        require(campaign is not None, ErrorKind.CAMPAIGN_NOT_FOUND)
        require(campaign.start_time <= now, ErrorKind.NOT_STARTED)
        require(campaign.end_time >= now, ErrorKind.ALREADY_ENDED)
        require(0 < option <= len(campaign.options), ErrorKind.OPTION_OUT_OF_RANGE)

        cur = self._epoch_at(now)
        self._init_if_needed(staker, cur)
        record = self._record(staker, cur)
        if record.representative == staker:
            total_stake = record.stake + record.delegated_stake
        else:
            total_stake = record.delegated_stake

        last_option = self._voted_option.get((staker, campaign_id), 0)
        if last_option == 0:
            key = (staker, cur)
            self._number_votes[key] = self._number_votes.get(key, 0) + 1
            self._total_epoch_points[cur] = self._total_epoch_points.get(cur, 0) + total_stake
            campaign.votes[option] += total_stake
            campaign.total_votes += total_stake
        elif last_option != option:
            campaign.votes[last_option] -= total_stake
            campaign.votes[option] += total_stake
        self._voted_option[(staker, campaign_id)] = option

    def _handle_withdrawal(self, staker: str, reduce_amount: int, cur: int, now: int) -> None:
        if reduce_amount == 0:
            return
        num_votes = self._number_votes.get((staker, cur), 0)
        if num_votes == 0:
            return
        self._total_epoch_points[cur] -= num_votes * reduce_amount
        for campaign_id in self._epoch_campaigns.get(cur, []):
            voted = self._voted_option.get((staker, campaign_id), 0)
            if voted == 0:
                continue
            campaign = self._campaigns[campaign_id]
            if campaign.end_time >= now:
                campaign.votes[voted] -= reduce_amount
                campaign.total_votes -= reduce_amount

    def campaign_ids(self, epoch: int) -> List[int]:
        return list(self._epoch_campaigns.get(epoch, []))

    def campaign_details(self, campaign_id: int) -> CampaignDetails:
        campaign = self._campaigns.get(campaign_id)
        require(campaign is not None, ErrorKind.CAMPAIGN_NOT_FOUND)
        return CampaignDetails(
            campaign_type=campaign.campaign_type,
            start_time=campaign.start_time,
            end_time=campaign.end_time,
            total_voting_power_snapshot=campaign.total_supply,
            min_percentage=campaign.min_percentage,
            c_param=campaign.c_param,
            t_param=campaign.t_param,
            options=tuple(campaign.options),
        )

    def campaign_vote_counts(self, campaign_id: int) -> Tuple[List[int], int]:
        campaign = self._campaigns.get(campaign_id)
        if campaign is None:
            return [], 0
        return list(campaign.votes[1:]), campaign.total_votes

    def winning_option(self, campaign_id: int) -> Tuple[int, int]:
        campaign = self._campaigns.get(campaign_id)
        if campaign is None:
            return 0, 0
        if campaign.end_time > self._block_time:
            return 0, 0
        total_supply = campaign.total_supply
        if total_supply == 0:
            return 0, 0

        option_id = 0
        winning_count = 0
        for i in range(1, len(campaign.votes)):
            if campaign.votes[i] > winning_count:
                winning_count = campaign.votes[i]
                option_id = i
            elif campaign.votes[i] == winning_count:
                option_id = 0
        if option_id == 0:
            return 0, 0

        total_votes = campaign.total_votes
        voted_percentage = total_votes * PRECISION // total_supply
        if campaign.min_percentage > voted_percentage:
            return 0, 0
        x = campaign.t_param * voted_percentage // PRECISION
        if x <= campaign.c_param:
            y = campaign.c_param - x
            if winning_count * PRECISION < y * total_votes:
                return 0, 0
        return option_id, campaign.options[option_id - 1]

    # =========================================================================
    # REWARDS & PARAMETERS
    # =========================================================================

    def total_epoch_points(self, epoch: int) -> int:
        return self._total_epoch_points.get(epoch, 0)

    def _reward_percentage(self, staker: str, epoch: int) -> int:
        num_votes = self._number_votes.get((staker, epoch), 0)
        if num_votes == 0:
            return 0
        data = self.staker_data(staker, epoch)
        total_stake = data.stake + data.delegated_stake if data.representative == staker else data.delegated_stake
        if total_stake == 0:
            return 0
        points = num_votes * total_stake
        total_points = self._total_epoch_points.get(epoch, 0)
        if total_points == 0 or points > total_points:
            return 0
        return points * PRECISION // total_points

    def current_reward_percentage(self, staker: str) -> int:
        return self._reward_percentage(to_checksum_address(staker), self.current_epoch())

    def past_reward_percentage(self, staker: str, epoch: int) -> int:
        if epoch >= self.current_epoch():
            return 0
        return self._reward_percentage(to_checksum_address(staker), epoch)

    def _previous_epoch_value(self, campaigns: Dict[int, int]) -> Optional[int]:
        cur = self.current_epoch()
        if cur == 0:
            return None
        campaign_id = campaigns.get(cur - 1, 0)
        if campaign_id == 0:
            return None
        option, value = self.winning_option(campaign_id)
        return value if option != 0 else None

    def network_fee_data(self) -> int:
        value = self._previous_epoch_value(self._network_fee_campaigns)
        return self._latest_network_fee if value is None else value

    def network_fee_data_with_cache(self) -> int:
        fee = self.network_fee_data()
        self._latest_network_fee = fee
        return fee

    def brr_data(self) -> BrrData:
        value = self._previous_epoch_value(self._brr_campaigns)
        if value is None:
            reward, rebate = self._latest_brr
        else:
            reward, rebate = value & (POWER_128 - 1), value >> 128
        return BrrData(reward_bps=reward, rebate_bps=rebate)

    def brr_data_with_cache(self) -> BrrData:
        brr = self.brr_data()
        self._latest_brr = (brr.reward_bps, brr.rebate_bps)
        return brr

    def total_supply(self) -> int:
        return self._total_supply
