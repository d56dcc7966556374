"""
Differential fuzz harness.
"""

from .scoreboard import Score, ScoreBoard
from .snapshot import StateDump, StateSnapshot
from .runner import (
    CAMPAIGN_CREATOR,
    DifferentialHarness,
    FuzzReport,
    derive_address,
    staker_addresses,
)

__all__ = [
    'Score',
    'ScoreBoard',
    'StateDump',
    'StateSnapshot',
    'CAMPAIGN_CREATOR',
    'DifferentialHarness',
    'FuzzReport',
    'derive_address',
    'staker_addresses',
]
