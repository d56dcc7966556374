"""
Action Generator Test Suite

Coverage:
  - Cumulative weight tables and phase selection
  - Seeded determinism
  - Valid/invalid variants of every parameterized action
  - Predicted outcomes agree with what the reference model then does
"""

import random
import sys
import os

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

# ── Actions ───────────────────────────────────────────────────────────
from daofuzz.actions.generator import (
    EARLY_WEIGHTS,
    LATE_WEIGHTS,
    STAKING_WEIGHTS,
    ActionGenerator,
    pick_from_weights,
)
from daofuzz.actions.types import (
    ActionKind,
    ClaimRewardAction,
    DepositAction,
    NoAction,
    Outcome,
    VoteAction,
)

# ── Model & config ────────────────────────────────────────────────────
from daofuzz.config.loader import FuzzRunConfig
from daofuzz.constants import MAX_CAMPAIGN_OPTIONS, PRECISION, ZERO_ADDRESS
from daofuzz.exceptions import ErrorKind, ValidationError
from daofuzz.model.campaigns import CampaignType
from daofuzz.model.epochs import EpochClock
from daofuzz.model.reference import ReferenceModel


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20
CREATOR = "0x" + "cc" * 20

BALANCE = 1000 * PRECISION
START = 1000
PERIOD = 100
NOW = 1010


def make_generator(seed=7, invalid_ratio=0.1, mode="dao", num_runs=1000, model=None):
    run_config = FuzzRunConfig(
        num_runs=num_runs,
        seed=seed,
        mode=mode,
        invalid_ratio=invalid_ratio,
    )
    model = model or ReferenceModel(EpochClock(START, PERIOD))
    return ActionGenerator(run_config, model, [ALICE, BOB], CREATOR, BALANCE)


def add_campaign(model, start=1020, end=1090):
    return model.submit_campaign(
        CampaignType.GENERAL, start, end, 0, 0, 0, (5, 6, 7), BALANCE * 2, at_time=NOW,
    )


# ══════════════════════════════════════════════════════════════════════
#  WEIGHTS
# ══════════════════════════════════════════════════════════════════════

class TestWeights:

    @pytest.mark.parametrize("draw,expected", [
        (0, ActionKind.DEPOSIT),
        (69, ActionKind.DEPOSIT),
        (70, ActionKind.WITHDRAW),
        (75, ActionKind.DELEGATE),
        (90, ActionKind.SUBMIT_CAMPAIGN),
        (99, ActionKind.SUBMIT_CAMPAIGN),
    ])
    def test_early_table(self, draw, expected):
        assert pick_from_weights(draw, EARLY_WEIGHTS) == expected

    @pytest.mark.parametrize("draw,expected", [
        (9, ActionKind.DEPOSIT),
        (10, ActionKind.WITHDRAW),
        (20, ActionKind.DELEGATE),
        (30, ActionKind.SUBMIT_CAMPAIGN),
        (44, ActionKind.CANCEL_CAMPAIGN),
        (45, ActionKind.VOTE),
        (90, ActionKind.CLAIM_REWARD),
        (95, ActionKind.NO_ACTION),
    ])
    def test_late_table(self, draw, expected):
        assert pick_from_weights(draw, LATE_WEIGHTS) == expected

    def test_staking_table_has_no_governance(self):
        kinds = {kind for _, kind in STAKING_WEIGHTS}
        assert kinds == {
            ActionKind.DEPOSIT, ActionKind.WITHDRAW, ActionKind.DELEGATE, ActionKind.NO_ACTION,
        }

    def test_tables_are_cumulative(self):
        for table in (EARLY_WEIGHTS, LATE_WEIGHTS, STAKING_WEIGHTS):
            bounds = [bound for bound, _ in table]
            assert bounds == sorted(bounds)
            assert bounds[-1] == 100

    def test_phase_selection(self):
        generator = make_generator(num_runs=1000)
        assert generator.weights_for(0) is EARLY_WEIGHTS
        assert generator.weights_for(2) is EARLY_WEIGHTS
        assert generator.weights_for(3) is LATE_WEIGHTS
        assert make_generator(mode="staking").weights_for(0) is STAKING_WEIGHTS


# ══════════════════════════════════════════════════════════════════════
#  DETERMINISM
# ══════════════════════════════════════════════════════════════════════

class TestDeterminism:

    def test_same_seed_same_actions(self):
        first = make_generator(seed=42)
        second = make_generator(seed=42)
        assert [first.next_action(i, NOW) for i in range(50)] == \
               [second.next_action(i, NOW) for i in range(50)]

    def test_explicit_rng_wins_over_seed(self):
        model = ReferenceModel(EpochClock(START, PERIOD))
        run_config = FuzzRunConfig(seed=1)
        a = ActionGenerator(run_config, model, [ALICE], CREATOR, BALANCE, rng=random.Random(99))
        b = ActionGenerator(run_config, model, [ALICE], CREATOR, BALANCE, rng=random.Random(99))
        assert a.gen_deposit() == b.gen_deposit()

    def test_requires_stakers(self):
        model = ReferenceModel(EpochClock(START, PERIOD))
        with pytest.raises(ValueError):
            ActionGenerator(FuzzRunConfig(), model, [], CREATOR, BALANCE)


# ══════════════════════════════════════════════════════════════════════
#  STAKING ACTIONS
# ══════════════════════════════════════════════════════════════════════

class TestStakingActions:

    def test_valid_deposit_within_balance(self):
        generator = make_generator(invalid_ratio=0.0)
        for _ in range(20):
            action = generator.gen_deposit()
            assert action.outcome.valid
            assert 1 <= action.amount <= BALANCE

    def test_invalid_deposit_is_zero(self):
        action = make_generator(invalid_ratio=1.0).gen_deposit()
        assert action.amount == 0
        assert action.outcome == Outcome.fail(ErrorKind.INVALID_AMOUNT)

    def test_fully_staked_deposit_is_invalid(self):
        model = ReferenceModel(EpochClock(START, PERIOD))
        model.deposit(ALICE, BALANCE, at_time=NOW)
        model.deposit(BOB, BALANCE, at_time=NOW)
        action = make_generator(invalid_ratio=0.0, model=model).gen_deposit()
        assert not action.outcome.valid

    def test_withdraw_without_stake_is_invalid(self):
        action = make_generator(invalid_ratio=0.0).gen_withdraw()
        assert action.outcome == Outcome.fail(ErrorKind.INSUFFICIENT_STAKE)
        assert action.amount > 0

    def test_valid_withdraw_within_latest_stake(self):
        model = ReferenceModel(EpochClock(START, PERIOD))
        model.deposit(ALICE, 500, at_time=NOW)
        model.deposit(BOB, 500, at_time=NOW)
        generator = make_generator(invalid_ratio=0.0, model=model)
        for _ in range(20):
            action = generator.gen_withdraw()
            assert action.outcome.valid
            assert 1 <= action.amount <= 500

    def test_invalid_withdraw_exceeds_stake(self):
        model = ReferenceModel(EpochClock(START, PERIOD))
        model.deposit(ALICE, 500, at_time=NOW)
        generator = make_generator(invalid_ratio=1.0, model=model)
        action = generator.gen_withdraw()
        assert action.amount > model.latest_staker_data(action.staker).stake

    def test_delegate_variants(self):
        valid = make_generator(invalid_ratio=0.0).gen_delegate()
        assert valid.outcome.valid
        assert valid.representative in (ALICE, BOB)

        invalid = make_generator(invalid_ratio=1.0).gen_delegate()
        assert invalid.representative == ZERO_ADDRESS
        assert invalid.outcome.reason == ErrorKind.ZERO_ADDRESS


# ══════════════════════════════════════════════════════════════════════
#  CAMPAIGN ACTIONS
# ══════════════════════════════════════════════════════════════════════

class TestCampaignActions:

    def test_submission_predictions_match_model(self):
        model = ReferenceModel(EpochClock(START, PERIOD))
        generator = make_generator(seed=3, model=model)
        seen = set()
        for _ in range(300):
            action = generator.gen_submit_campaign(NOW)
            assert action.staker == CREATOR
            assert 2 <= len(action.options) <= MAX_CAMPAIGN_OPTIONS + 1
            args = (
                action.campaign_type, action.start_time, action.end_time,
                action.min_percentage, action.c_param, action.t_param,
                action.options, BALANCE * 2, NOW,
            )
            if action.outcome.valid:
                assert model.submit_campaign(*args) == model.registry.number_of_campaigns
            else:
                with pytest.raises(ValidationError) as exc:
                    model.submit_campaign(*args)
                assert exc.value.kind == action.outcome.reason
            seen.add(action.outcome.reason)
        assert None in seen
        assert ErrorKind.EPOCH_OUT_OF_RANGE in seen

    def test_cancel_needs_a_campaign(self):
        generator = make_generator()
        assert generator.gen_cancel_campaign(NOW) is None
        assert generator.build(ActionKind.CANCEL_CAMPAIGN, NOW) is None

    def test_cancel_prediction(self):
        model = ReferenceModel(EpochClock(START, PERIOD))
        campaign_id = add_campaign(model)
        valid = make_generator(invalid_ratio=0.0, model=model).gen_cancel_campaign(NOW)
        assert valid.campaign_id == campaign_id
        assert valid.outcome.valid

        started = make_generator(invalid_ratio=0.0, model=model).gen_cancel_campaign(1030)
        assert started.outcome.reason == ErrorKind.ALREADY_STARTED

        missing = make_generator(invalid_ratio=1.0, model=model).gen_cancel_campaign(NOW)
        assert missing.campaign_id == campaign_id + 1
        assert missing.outcome.reason == ErrorKind.CAMPAIGN_NOT_FOUND

    def test_vote_without_current_epoch_campaign_targets_unknown_id(self):
        model = ReferenceModel(EpochClock(START, PERIOD))
        campaign_id = add_campaign(model, start=1120, end=1190)
        generator = make_generator(invalid_ratio=0.0, model=model)

        vote = generator.gen_vote(1030)
        assert vote.campaign_id == campaign_id + 1
        assert vote.option == 1
        assert vote.outcome == Outcome.fail(ErrorKind.CAMPAIGN_NOT_FOUND)
        assert model.registry.validate_vote(vote.campaign_id, vote.option, 1030) == ErrorKind.CAMPAIGN_NOT_FOUND
        assert generator.build(ActionKind.VOTE, 1030).kind == ActionKind.VOTE

    def test_vote_predictions(self):
        model = ReferenceModel(EpochClock(START, PERIOD))
        campaign_id = add_campaign(model)

        valid = make_generator(invalid_ratio=0.0, model=model).gen_vote(1030)
        assert valid.campaign_id == campaign_id
        assert 1 <= valid.option <= 3
        assert valid.outcome.valid

        generator = make_generator(invalid_ratio=1.0, model=model)
        for _ in range(20):
            action = generator.gen_vote(1030)
            assert action.outcome.reason in (
                ErrorKind.OPTION_OUT_OF_RANGE, ErrorKind.CAMPAIGN_NOT_FOUND,
            )

        early = make_generator(invalid_ratio=0.0, model=model).gen_vote(1015)
        assert early.outcome.reason == ErrorKind.NOT_STARTED

    def test_claim_reward_and_no_action(self):
        generator = make_generator()
        claim = generator.build(ActionKind.CLAIM_REWARD, NOW)
        assert isinstance(claim, ClaimRewardAction)
        assert claim.outcome.valid
        assert isinstance(generator.build(ActionKind.NO_ACTION, NOW), NoAction)


# ══════════════════════════════════════════════════════════════════════
#  ACTION TYPES
# ══════════════════════════════════════════════════════════════════════

class TestActionTypes:

    def test_describe(self):
        action = DepositAction(staker=ALICE, outcome=Outcome.ok(), amount=5)
        assert action.kind == ActionKind.DEPOSIT
        assert str(action) == f"Deposit 5 by {ALICE} [valid]"

    def test_invalid_outcome_str(self):
        outcome = Outcome.fail(ErrorKind.INVALID_AMOUNT)
        assert str(outcome) == "invalid (INVALID_AMOUNT)"
        assert Outcome.from_check(None) == Outcome.ok()
        assert Outcome.from_check(ErrorKind.INVALID_AMOUNT) == outcome

    def test_actions_are_immutable(self):
        action = VoteAction(staker=ALICE, outcome=Outcome.ok(), campaign_id=1, option=2)
        with pytest.raises(AttributeError):
            action.option = 3
