"""
Protocol Parameters

Network fee and burn/reward/rebate split as decided by the previous epoch's
NETWORK_FEE and FEE_BRR campaigns. When the previous epoch had no such
campaign, or it had no winner, the last cached value applies. The
`*_with_cache` variants store the value they return.
"""

from typing import Optional

from ..fixed_point import BrrData, decode_brr
from ..logger import get_logger
from .campaigns import CampaignRegistry

logger = get_logger(__name__)


class ProtocolParameters:
    """Reference model of the DAO's fee parameter outputs."""

    def __init__(
        self,
        registry: CampaignRegistry,
        network_fee_bps: int,
        reward_bps: int,
        rebate_bps: int,
    ):
        self.registry = registry
        self.network_fee_bps = network_fee_bps
        self.brr = BrrData(reward_bps=reward_bps, rebate_bps=rebate_bps)

    def _previous_winner(self, campaign_id: int, at_time: Optional[int]) -> Optional[int]:
        if not campaign_id:
            return None
        option, value = self.registry.resolve_winner(campaign_id, at_time)
        if option == 0:
            return None
        return value

    # =========================================================================
    # NETWORK FEE
    # =========================================================================

    def network_fee_data(self, current_epoch: int, at_time: Optional[int] = None) -> int:
        if current_epoch == 0:
            return self.network_fee_bps
        campaign_id = self.registry.network_fee_campaign(current_epoch - 1)
        value = self._previous_winner(campaign_id, at_time)
        return self.network_fee_bps if value is None else value

    def network_fee_data_with_cache(self, current_epoch: int, at_time: Optional[int] = None) -> int:
        fee = self.network_fee_data(current_epoch, at_time)
        if fee != self.network_fee_bps:
            logger.info(f"Network fee updated to {fee} bps at epoch {current_epoch}")
        self.network_fee_bps = fee
        return fee

    # =========================================================================
    # BURN / REWARD / REBATE
    # =========================================================================

    def brr_data(self, current_epoch: int, at_time: Optional[int] = None) -> BrrData:
        if current_epoch == 0:
            return self.brr
        campaign_id = self.registry.brr_campaign(current_epoch - 1)
        value = self._previous_winner(campaign_id, at_time)
        return self.brr if value is None else decode_brr(value)

    def brr_data_with_cache(self, current_epoch: int, at_time: Optional[int] = None) -> BrrData:
        brr = self.brr_data(current_epoch, at_time)
        if brr != self.brr:
            logger.info(
                f"BRR updated at epoch {current_epoch}: reward {brr.reward_bps} bps, "
                f"rebate {brr.rebate_bps} bps, burn {brr.burn_bps} bps"
            )
        self.brr = brr
        return brr
