"""
In-Process DAO Emulator Test Suite

Coverage:
  - Token balances, deposit/withdraw/delegate with revert strings
  - Reverted transactions still mine a block and leave state untouched
  - Campaign submission access control and swap-and-pop removal
  - Votes, withdrawal correction, epoch points and reward percentages
  - Winning option and fee parameter outputs after an epoch boundary
"""

import sys
import os

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

# ── Emulator ──────────────────────────────────────────────────────────
from daofuzz.protocol import CampaignDetails, DaoProtocol, InProcessDao
from daofuzz.harness.runner import derive_address

# ── Shared ────────────────────────────────────────────────────────────
from daofuzz.constants import PRECISION, ZERO_ADDRESS
from daofuzz.exceptions import ErrorKind, ProtocolRevert
from daofuzz.fixed_point import BrrData, encode_brr
from daofuzz.model.campaigns import CampaignType
from daofuzz.model.ledger import StakerData


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

ALICE = derive_address("alice")
BOB = derive_address("bob")
CREATOR = derive_address("creator")

START = 1000
PERIOD = 100


def make_dao(**kwargs):
    return InProcessDao(
        start_time=START,
        epoch_period=PERIOD,
        balances={ALICE: 1000, BOB: 1000},
        total_supply=2000,
        campaign_creator=CREATOR,
        block_time=990,
        **kwargs,
    )


def at(dao, timestamp):
    dao.set_next_block_timestamp(timestamp)
    return dao


def expect_revert(kind, fn, *args):
    with pytest.raises(ProtocolRevert) as exc:
        fn(*args)
    assert exc.value.reason == kind.value
    assert exc.value.kind == kind


def submit(dao, timestamp, campaign_type=CampaignType.GENERAL, start=1020, end=1090,
           options=(1, 2), min_percentage=0, c_param=0, t_param=PRECISION):
    return at(dao, timestamp).submit_campaign(
        CREATOR, campaign_type, start, end, min_percentage, c_param, t_param, list(options),
    )


# ══════════════════════════════════════════════════════════════════════
#  TIME
# ══════════════════════════════════════════════════════════════════════

class TestBlockTime:

    def test_is_a_dao_protocol(self):
        assert isinstance(make_dao(), DaoProtocol)

    def test_epochs_follow_block_time(self):
        dao = make_dao()
        assert dao.current_epoch() == 0
        dao.mine_block_at(1000)
        assert dao.current_epoch() == 1
        dao.mine_block_at(1100)
        assert dao.current_epoch() == 2

    def test_next_timestamp_must_advance(self):
        dao = make_dao()
        with pytest.raises(ValueError):
            dao.set_next_block_timestamp(990)
        with pytest.raises(ValueError):
            dao.mine_block_at(980)

    def test_transaction_without_timestamp_mines_next_second(self):
        dao = make_dao()
        dao.deposit(ALICE, 10)
        assert dao.block_time() == 991

    def test_reverted_transaction_still_mines(self):
        dao = make_dao()
        expect_revert(ErrorKind.INVALID_AMOUNT, at(dao, 995).deposit, ALICE, 0)
        assert dao.block_time() == 995
        assert dao.latest_staker_data(ALICE) == StakerData(0, 0, ALICE)
        assert dao.balance_of(ALICE) == 1000


# ══════════════════════════════════════════════════════════════════════
#  STAKING
# ══════════════════════════════════════════════════════════════════════

class TestStaking:

    def test_deposit_visible_next_epoch(self):
        dao = make_dao()
        at(dao, 995).deposit(ALICE, 100)
        assert dao.staker_data(ALICE, 0).stake == 0
        assert dao.staker_data(ALICE, 1).stake == 100
        assert dao.latest_staker_data(ALICE).stake == 100
        assert dao.balance_of(ALICE) == 900

    def test_deposit_beyond_balance(self):
        dao = make_dao()
        expect_revert(ErrorKind.INSUFFICIENT_BALANCE, at(dao, 995).deposit, ALICE, 1001)

    def test_addresses_are_case_insensitive(self):
        dao = make_dao()
        at(dao, 995).deposit(ALICE.lower(), 100)
        assert dao.staker_data(ALICE, 1).stake == 100

    def test_withdraw_returns_tokens(self):
        dao = make_dao()
        at(dao, 995).deposit(ALICE, 100)
        at(dao, 1010).withdraw(ALICE, 30)
        assert dao.staker_data(ALICE, 1).stake == 70
        assert dao.staker_data(ALICE, 2).stake == 70
        assert dao.balance_of(ALICE) == 930

    def test_withdraw_more_than_latest(self):
        dao = make_dao()
        at(dao, 995).deposit(ALICE, 100)
        expect_revert(ErrorKind.INSUFFICIENT_STAKE, at(dao, 1010).withdraw, ALICE, 101)
        expect_revert(ErrorKind.INSUFFICIENT_STAKE, dao.withdraw, BOB, 1)

    def test_delegate(self):
        dao = make_dao()
        at(dao, 995).deposit(ALICE, 100)
        at(dao, 1010).delegate(ALICE, BOB)
        assert dao.staker_data(ALICE, 1).representative == ALICE
        assert dao.staker_data(ALICE, 2).representative == BOB
        assert dao.staker_data(BOB, 2) == StakerData(0, 100, BOB)
        assert dao.latest_staker_data(BOB).delegated_stake == 100

    def test_delegate_to_zero_address(self):
        dao = make_dao()
        expect_revert(ErrorKind.ZERO_ADDRESS, at(dao, 995).delegate, ALICE, ZERO_ADDRESS)

    def test_view_beyond_next_epoch_is_empty(self):
        dao = make_dao()
        at(dao, 995).deposit(ALICE, 100)
        assert dao.staker_data(ALICE, 5) == StakerData(0, 0, ZERO_ADDRESS)


# ══════════════════════════════════════════════════════════════════════
#  CAMPAIGNS
# ══════════════════════════════════════════════════════════════════════

class TestCampaigns:

    def test_only_creator_submits(self):
        dao = make_dao()
        expect_revert(
            ErrorKind.NOT_CAMPAIGN_CREATOR,
            at(dao, 1005).submit_campaign,
            ALICE, CampaignType.GENERAL, 1020, 1090, 0, 0, 0, [1, 2],
        )

    def test_submit_records_details(self):
        dao = make_dao()
        campaign_id = submit(dao, 1005)
        assert campaign_id == 1
        assert dao.campaign_details(campaign_id) == CampaignDetails(
            campaign_type=CampaignType.GENERAL,
            start_time=1020,
            end_time=1090,
            total_voting_power_snapshot=2000,
            min_percentage=0,
            c_param=0,
            t_param=PRECISION,
            options=(1, 2),
        )
        assert dao.campaign_vote_counts(campaign_id) == ([0, 0], 0)

    def test_submission_reasons(self):
        dao = make_dao()
        expect_revert(ErrorKind.START_IN_PAST, submit, dao, 1030)
        expect_revert(ErrorKind.INVALID_WINDOW, submit, dao, 1031, CampaignType.GENERAL, 1050, 1050)
        expect_revert(ErrorKind.CROSS_EPOCH_WINDOW, submit, dao, 1032, CampaignType.GENERAL, 1050, 1150)
        expect_revert(ErrorKind.EPOCH_OUT_OF_RANGE, submit, dao, 1033, CampaignType.GENERAL, 1210, 1220)
        expect_revert(ErrorKind.TOO_FEW_OPTIONS, submit, dao, 1034, CampaignType.GENERAL, 1050, 1060, (1,))
        expect_revert(
            ErrorKind.INVALID_OPTION_VALUE, submit, dao, 1035, CampaignType.FEE_BRR, 1050, 1060,
            (encode_brr(6000, 5000), 1),
        )
        assert dao.campaign_ids(1) == []

    def test_cancel_swaps_last_into_place(self):
        dao = make_dao()
        for t in (1001, 1002, 1003):
            submit(dao, t)
        at(dao, 1004).cancel_campaign(CREATOR, 1)
        assert dao.campaign_ids(1) == [3, 2]
        expect_revert(ErrorKind.CAMPAIGN_NOT_FOUND, dao.campaign_details, 1)
        assert submit(dao, 1005) == 4

    def test_cancel_after_start(self):
        dao = make_dao()
        campaign_id = submit(dao, 1005)
        expect_revert(ErrorKind.ALREADY_STARTED, at(dao, 1020).cancel_campaign, CREATOR, campaign_id)


# ══════════════════════════════════════════════════════════════════════
#  VOTING & REWARDS
# ══════════════════════════════════════════════════════════════════════

class TestVoting:

    def _voted(self):
        dao = make_dao()
        at(dao, 995).deposit(ALICE, 100)
        at(dao, 996).deposit(BOB, 300)
        campaign_id = submit(dao, 1005, CampaignType.NETWORK_FEE, options=(10, 50))
        at(dao, 1030).vote(ALICE, campaign_id, 1)
        at(dao, 1031).vote(BOB, campaign_id, 2)
        return dao, campaign_id

    def test_tallies_and_points(self):
        dao, campaign_id = self._voted()
        assert dao.campaign_vote_counts(campaign_id) == ([100, 300], 400)
        assert dao.total_epoch_points(1) == 400
        assert dao.current_reward_percentage(ALICE) == PRECISION // 4
        assert dao.past_reward_percentage(ALICE, 1) == 0

    def test_vote_reasons(self):
        dao, campaign_id = self._voted()
        expect_revert(ErrorKind.OPTION_OUT_OF_RANGE, at(dao, 1040).vote, ALICE, campaign_id, 3)
        expect_revert(ErrorKind.OPTION_OUT_OF_RANGE, dao.vote, ALICE, campaign_id, 0)
        expect_revert(ErrorKind.CAMPAIGN_NOT_FOUND, dao.vote, ALICE, 99, 1)
        expect_revert(ErrorKind.ALREADY_ENDED, at(dao, 1091).vote, ALICE, campaign_id, 1)

    def test_revote_moves_weight_without_points(self):
        dao, campaign_id = self._voted()
        at(dao, 1040).vote(ALICE, campaign_id, 2)
        at(dao, 1041).vote(ALICE, campaign_id, 2)
        assert dao.campaign_vote_counts(campaign_id) == ([0, 400], 400)
        assert dao.total_epoch_points(1) == 400

    def test_withdraw_corrects_votes_and_points(self):
        dao, campaign_id = self._voted()
        at(dao, 1050).withdraw(BOB, 100)
        assert dao.campaign_vote_counts(campaign_id) == ([100, 200], 300)
        assert dao.total_epoch_points(1) == 300
        assert dao.staker_data(BOB, 1).stake == 200

    def test_outcomes_after_epoch(self):
        dao, campaign_id = self._voted()
        assert dao.winning_option(campaign_id) == (0, 0)
        dao.mine_block_at(1100)

        assert dao.winning_option(campaign_id) == (2, 50)
        assert dao.network_fee_data() == 50
        assert dao.network_fee_data_with_cache() == 50
        assert dao.brr_data() == BrrData(reward_bps=3000, rebate_bps=2000)
        assert dao.past_reward_percentage(BOB, 1) == PRECISION * 3 // 4
        assert dao.current_reward_percentage(BOB) == 0

    def test_brr_from_previous_epoch(self):
        dao = make_dao()
        at(dao, 995).deposit(ALICE, 100)
        campaign_id = submit(
            dao, 1005, CampaignType.FEE_BRR,
            options=(encode_brr(4000, 1000), encode_brr(2500, 2500)),
        )
        at(dao, 1030).vote(ALICE, campaign_id, 2)
        dao.mine_block_at(1100)
        assert dao.brr_data_with_cache() == BrrData(reward_bps=2500, rebate_bps=2500)
        # No BRR campaign in epoch 2: the cached value carries into epoch 3
        dao.mine_block_at(1200)
        assert dao.brr_data() == BrrData(reward_bps=2500, rebate_bps=2500)
