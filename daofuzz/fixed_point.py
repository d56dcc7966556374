"""
Scaled-integer arithmetic shared by the reference model and the emulator.

All values are Python ints. Division floors, matching unsigned integer division
on the authoritative system; subtraction that would go below zero raises
instead of wrapping.
"""

from dataclasses import dataclass

from .constants import BPS, POWER_128, PRECISION
from .exceptions import FixedPointError


def checked_sub(a: int, b: int) -> int:
    """`a - b`, raising FixedPointError on unsigned underflow."""
    if b > a:
        raise FixedPointError(f"subtraction underflow: {a} - {b}")
    return a - b


def mul_div(a: int, b: int, denominator: int) -> int:
    """`a * b // denominator` with the product computed exactly."""
    if denominator == 0:
        raise FixedPointError("division by zero")
    return a * b // denominator


def percentage(part: int, whole: int) -> int:
    """`part` as a PRECISION-scaled share of `whole`, 0 when `whole` is 0."""
    if whole == 0:
        return 0
    return part * PRECISION // whole


# ══════════════════════════════════════════════════════════════════════
# FEE / BRR PACKING
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class BrrData:
    """Burn, reward and rebate split in basis points."""
    reward_bps: int
    rebate_bps: int

    @property
    def burn_bps(self) -> int:
        return BPS - self.reward_bps - self.rebate_bps

    def to_dict(self) -> dict:
        return {
            "burn_bps": self.burn_bps,
            "reward_bps": self.reward_bps,
            "rebate_bps": self.rebate_bps,
        }


def encode_brr(reward_bps: int, rebate_bps: int) -> int:
    """Pack a reward/rebate pair into one option value (rebate in the upper 128 bits)."""
    if reward_bps < 0 or rebate_bps < 0:
        raise FixedPointError("negative basis points")
    if reward_bps >= POWER_128 or rebate_bps >= POWER_128:
        raise FixedPointError("basis points exceed 128 bits")
    return rebate_bps * POWER_128 + reward_bps


def decode_brr(value: int) -> BrrData:
    """Inverse of `encode_brr`."""
    rebate = value // POWER_128
    reward = value - rebate * POWER_128
    return BrrData(reward_bps=reward, rebate_bps=rebate)
