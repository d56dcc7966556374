"""
Boundary to the authoritative system and its in-process emulator.
"""

from .interface import CampaignDetails, DaoProtocol
from .emulator import InProcessDao

__all__ = ['CampaignDetails', 'DaoProtocol', 'InProcessDao']
