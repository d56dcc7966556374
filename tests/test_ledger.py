"""
Stake Ledger Test Suite

Coverage:
  - Deposits become visible in the next epoch and carry forward
  - Withdrawals reduce the next epoch fully and the current epoch partially
  - Delegation moves voting power between representatives
  - Delegated stake stays equal to the stake of delegators in every epoch
  - Fixed-point helpers and fee/BRR packing
"""

import random
import sys
import os

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

# ── Ledger ────────────────────────────────────────────────────────────
from daofuzz.model.ledger import StakeError, StakeLedger, StakerData
from daofuzz.model.epochs import EpochClock

# ── Shared ────────────────────────────────────────────────────────────
from daofuzz.constants import BPS, POWER_128, PRECISION, ZERO_ADDRESS
from daofuzz.exceptions import ErrorKind, FixedPointError
from daofuzz.fixed_point import (
    BrrData,
    checked_sub,
    decode_brr,
    encode_brr,
    mul_div,
    percentage,
)


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20
CAROL = "0x" + "c3" * 20
DAVE = "0x" + "d4" * 20


class WithdrawalRecorder:
    """Collects (representative, reduction, epoch) callbacks."""

    def __init__(self):
        self.calls = []

    def __call__(self, representative, reduction, epoch):
        self.calls.append((representative, reduction, epoch))


def make_ledger():
    recorder = WithdrawalRecorder()
    return StakeLedger(on_withdrawal=recorder), recorder


# ══════════════════════════════════════════════════════════════════════
#  EPOCH CLOCK
# ══════════════════════════════════════════════════════════════════════

class TestEpochClock:

    def test_before_start_is_epoch_zero(self):
        clock = EpochClock(start_time=1000, epoch_period=100)
        assert clock.epoch_of(0) == 0
        assert clock.epoch_of(999) == 0

    def test_epoch_boundaries(self):
        clock = EpochClock(start_time=1000, epoch_period=100)
        assert clock.epoch_of(1000) == 1
        assert clock.epoch_of(1099) == 1
        assert clock.epoch_of(1100) == 2
        assert clock.epoch_start(2) == 1100
        assert clock.epoch_end(2) == 1199

    def test_same_epoch(self):
        clock = EpochClock(start_time=1000, epoch_period=100)
        assert clock.same_epoch(1000, 1099)
        assert not clock.same_epoch(1099, 1100)

    def test_epoch_zero_has_no_start(self):
        clock = EpochClock(start_time=1000, epoch_period=100)
        with pytest.raises(ValueError):
            clock.epoch_start(0)

    def test_non_positive_period_rejected(self):
        with pytest.raises(ValueError, match="positive"):
            EpochClock(start_time=1000, epoch_period=0)


# ══════════════════════════════════════════════════════════════════════
#  DEPOSIT
# ══════════════════════════════════════════════════════════════════════

class TestDeposit:

    def test_deposit_visible_at_effective_epoch(self):
        ledger, _ = make_ledger()
        ledger.deposit(ALICE, 100, at_epoch=1)
        assert ledger.resolved_stake(ALICE, 1) == 100
        assert ledger.total_voting_power(ALICE, 1) == 100
        assert ledger.resolved_stake(ALICE, 0) == 0

    def test_deposit_carries_forward(self):
        ledger, _ = make_ledger()
        ledger.deposit(ALICE, 100, at_epoch=2)
        assert ledger.resolved_stake(ALICE, 1) == 0
        assert ledger.resolved_stake(ALICE, 2) == 100
        assert ledger.resolved_stake(ALICE, 7) == 100
        assert ledger.latest(ALICE).stake == 100

    def test_deposits_accumulate(self):
        ledger, _ = make_ledger()
        ledger.deposit(ALICE, 100, at_epoch=2)
        ledger.deposit(ALICE, 40, at_epoch=3)
        assert ledger.resolved_stake(ALICE, 2) == 100
        assert ledger.resolved_stake(ALICE, 3) == 140

    def test_deposit_credits_representative(self):
        ledger, _ = make_ledger()
        ledger.delegate(ALICE, BOB, at_epoch=1)
        ledger.deposit(ALICE, 50, at_epoch=1)
        assert ledger.resolved_delegated_received(BOB, 1) == 50
        assert ledger.total_voting_power(BOB, 1) == 50
        assert ledger.total_voting_power(ALICE, 1) == 0

    @pytest.mark.parametrize("amount", [0, -5])
    def test_non_positive_amount_rejected(self, amount):
        ledger, _ = make_ledger()
        with pytest.raises(StakeError) as exc:
            ledger.deposit(ALICE, amount, at_epoch=1)
        assert exc.value.kind == ErrorKind.INVALID_AMOUNT
        assert list(ledger.stakers()) == []

    def test_unknown_staker_has_genesis_view(self):
        ledger, _ = make_ledger()
        assert ledger.resolve(CAROL, 5) == StakerData.genesis(CAROL)
        assert ledger.latest(CAROL) == StakerData(0, 0, CAROL)


# ══════════════════════════════════════════════════════════════════════
#  WITHDRAW
# ══════════════════════════════════════════════════════════════════════

class TestWithdraw:

    def test_withdraw_covered_by_pending_deposit(self):
        ledger, recorder = make_ledger()
        ledger.deposit(ALICE, 100, at_epoch=1)
        ledger.deposit(ALICE, 50, at_epoch=2)

        reduction = ledger.withdraw(ALICE, 30, at_epoch=1)

        assert reduction == 0
        assert ledger.resolved_stake(ALICE, 1) == 100
        assert ledger.resolved_stake(ALICE, 2) == 120
        assert ledger.latest(ALICE).stake == 120
        assert recorder.calls == []

    def test_withdraw_reduces_current_epoch(self):
        ledger, recorder = make_ledger()
        ledger.deposit(ALICE, 100, at_epoch=1)
        ledger.deposit(ALICE, 50, at_epoch=2)
        ledger.withdraw(ALICE, 30, at_epoch=1)

        reduction = ledger.withdraw(ALICE, 70, at_epoch=1)

        assert reduction == 50
        assert ledger.resolved_stake(ALICE, 1) == 50
        assert ledger.resolved_stake(ALICE, 2) == 50
        assert recorder.calls == [(ALICE, 50, 1)]

    def test_withdraw_reduces_current_representative(self):
        ledger, recorder = make_ledger()
        ledger.delegate(ALICE, BOB, at_epoch=1)
        ledger.deposit(ALICE, 100, at_epoch=1)

        reduction = ledger.withdraw(ALICE, 40, at_epoch=1)

        assert reduction == 40
        assert ledger.resolved_delegated_received(BOB, 1) == 60
        assert ledger.resolved_delegated_received(BOB, 2) == 60
        assert ledger.latest(BOB).delegated_stake == 60
        assert recorder.calls == [(BOB, 40, 1)]

    def test_withdraw_after_redelegation_splits_representatives(self):
        ledger, recorder = make_ledger()
        ledger.delegate(ALICE, BOB, at_epoch=1)
        ledger.deposit(ALICE, 100, at_epoch=1)
        # Effective next epoch: BOB keeps epoch 1, CAROL gets epoch 2
        ledger.delegate(ALICE, CAROL, at_epoch=2)

        ledger.withdraw(ALICE, 100, at_epoch=1)

        assert ledger.resolved_delegated_received(BOB, 1) == 0
        assert ledger.resolved_delegated_received(BOB, 2) == 0
        assert ledger.resolved_delegated_received(CAROL, 2) == 0
        assert recorder.calls == [(BOB, 100, 1)]

    def test_withdraw_more_than_latest_rejected(self):
        ledger, _ = make_ledger()
        ledger.deposit(ALICE, 100, at_epoch=1)
        with pytest.raises(StakeError) as exc:
            ledger.withdraw(ALICE, 101, at_epoch=1)
        assert exc.value.kind == ErrorKind.INSUFFICIENT_STAKE
        assert ledger.latest(ALICE).stake == 100

    def test_withdraw_pending_deposit_before_it_is_visible(self):
        ledger, recorder = make_ledger()
        ledger.deposit(ALICE, 100, at_epoch=2)

        assert ledger.withdraw(ALICE, 100, at_epoch=1) == 0
        assert ledger.resolved_stake(ALICE, 2) == 0
        assert recorder.calls == []

    def test_zero_withdraw_rejected(self):
        ledger, _ = make_ledger()
        with pytest.raises(StakeError) as exc:
            ledger.withdraw(ALICE, 0, at_epoch=1)
        assert exc.value.kind == ErrorKind.INVALID_AMOUNT


# ══════════════════════════════════════════════════════════════════════
#  DELEGATE
# ══════════════════════════════════════════════════════════════════════

class TestDelegate:

    def test_delegation_effective_next_epoch(self):
        ledger, _ = make_ledger()
        ledger.deposit(ALICE, 100, at_epoch=1)

        assert ledger.delegate(ALICE, BOB, at_epoch=2) is True

        assert ledger.resolved_representative(ALICE, 1) == ALICE
        assert ledger.resolved_representative(ALICE, 2) == BOB
        assert ledger.resolved_delegated_received(BOB, 1) == 0
        assert ledger.resolved_delegated_received(BOB, 2) == 100
        assert ledger.total_voting_power(ALICE, 1) == 100
        assert ledger.total_voting_power(ALICE, 2) == 0

    def test_redelegation_moves_stake(self):
        ledger, _ = make_ledger()
        ledger.deposit(ALICE, 100, at_epoch=1)
        ledger.delegate(ALICE, BOB, at_epoch=2)
        ledger.delegate(ALICE, CAROL, at_epoch=3)

        assert ledger.resolved_delegated_received(BOB, 2) == 100
        assert ledger.resolved_delegated_received(BOB, 3) == 0
        assert ledger.resolved_delegated_received(CAROL, 3) == 100

    def test_delegate_back_to_self(self):
        ledger, _ = make_ledger()
        ledger.deposit(ALICE, 100, at_epoch=1)
        ledger.delegate(ALICE, BOB, at_epoch=2)
        ledger.delegate(ALICE, ALICE, at_epoch=3)

        assert ledger.resolved_delegated_received(BOB, 3) == 0
        assert ledger.total_voting_power(ALICE, 3) == 100

    def test_same_representative_is_noop(self):
        ledger, _ = make_ledger()
        ledger.deposit(ALICE, 100, at_epoch=1)
        assert ledger.delegate(ALICE, ALICE, at_epoch=2) is False
        ledger.delegate(ALICE, BOB, at_epoch=2)
        assert ledger.delegate(ALICE, BOB, at_epoch=2) is False
        assert ledger.resolved_delegated_received(BOB, 2) == 100

    def test_zero_address_rejected(self):
        ledger, _ = make_ledger()
        with pytest.raises(StakeError) as exc:
            ledger.delegate(ALICE, ZERO_ADDRESS, at_epoch=1)
        assert exc.value.kind == ErrorKind.ZERO_ADDRESS

    def test_delegation_conservation(self):
        """Delegated stake equals the stake of delegators in every epoch."""
        rng = random.Random(1234)
        stakers = [ALICE, BOB, CAROL, DAVE]
        ledger, _ = make_ledger()
        last_epoch = 12

        for epoch in range(1, last_epoch + 1):
            for _ in range(8):
                staker = rng.choice(stakers)
                draw = rng.randrange(3)
                if draw == 0:
                    ledger.deposit(staker, rng.randint(1, 1000), at_epoch=epoch + 1)
                elif draw == 1:
                    ledger.delegate(staker, rng.choice(stakers), at_epoch=epoch + 1)
                else:
                    latest = ledger.latest(staker).stake
                    if latest > 0:
                        ledger.withdraw(staker, rng.randint(1, latest), at_epoch=epoch)

        for epoch in range(1, last_epoch + 2):
            delegated = sum(ledger.resolved_delegated_received(s, epoch) for s in stakers)
            delegating = sum(
                ledger.resolved_stake(s, epoch)
                for s in stakers
                if ledger.resolved_representative(s, epoch) != s
            )
            assert delegated == delegating, f"epoch {epoch}"
            for s in stakers:
                assert ledger.resolved_stake(s, epoch) >= 0


# ══════════════════════════════════════════════════════════════════════
#  FIXED POINT
# ══════════════════════════════════════════════════════════════════════

class TestFixedPoint:

    def test_checked_sub(self):
        assert checked_sub(10, 4) == 6
        with pytest.raises(FixedPointError, match="underflow"):
            checked_sub(4, 10)

    def test_mul_div_floors(self):
        assert mul_div(10, 3, 4) == 7
        with pytest.raises(FixedPointError):
            mul_div(1, 1, 0)

    def test_percentage(self):
        assert percentage(1, 4) == PRECISION // 4
        assert percentage(5, 0) == 0

    def test_brr_packing(self):
        value = encode_brr(reward_bps=3000, rebate_bps=2000)
        assert value == 2000 * POWER_128 + 3000
        brr = decode_brr(value)
        assert brr == BrrData(reward_bps=3000, rebate_bps=2000)
        assert brr.burn_bps == BPS - 5000

    def test_brr_decode_of_plain_reward(self):
        assert decode_brr(1234) == BrrData(reward_bps=1234, rebate_bps=0)

    def test_brr_encode_rejects_out_of_range(self):
        with pytest.raises(FixedPointError):
            encode_brr(-1, 0)
        with pytest.raises(FixedPointError):
            encode_brr(0, POWER_128)
