"""
Reference model of the staking and campaign-governance protocol.
"""

from .epochs import EpochClock
from .ledger import StakeLedger, StakerData, StakeError
from .campaigns import (
    Campaign,
    CampaignError,
    CampaignRegistry,
    CampaignType,
    VoteReceipt,
    winning_option,
)
from .rewards import RewardAccounting
from .parameters import ProtocolParameters
from .reference import ReferenceModel

__all__ = [
    'EpochClock',
    'StakeLedger',
    'StakerData',
    'StakeError',
    'Campaign',
    'CampaignError',
    'CampaignRegistry',
    'CampaignType',
    'VoteReceipt',
    'winning_option',
    'RewardAccounting',
    'ProtocolParameters',
    'ReferenceModel',
]
