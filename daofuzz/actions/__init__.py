"""
Fuzz actions and their generator.
"""

from .types import (
    Action,
    ActionKind,
    CancelCampaignAction,
    ClaimRewardAction,
    DelegateAction,
    DepositAction,
    NoAction,
    Outcome,
    SubmitCampaignAction,
    VoteAction,
    WithdrawAction,
)
from .generator import (
    ActionGenerator,
    EARLY_WEIGHTS,
    LATE_WEIGHTS,
    STAKING_WEIGHTS,
    pick_from_weights,
)

__all__ = [
    'Action',
    'ActionKind',
    'CancelCampaignAction',
    'ClaimRewardAction',
    'DelegateAction',
    'DepositAction',
    'NoAction',
    'Outcome',
    'SubmitCampaignAction',
    'VoteAction',
    'WithdrawAction',
    'ActionGenerator',
    'EARLY_WEIGHTS',
    'LATE_WEIGHTS',
    'STAKING_WEIGHTS',
    'pick_from_weights',
]
