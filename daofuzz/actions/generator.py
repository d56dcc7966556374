"""
Action Generator

Draws the next fuzz action with a cumulative-weight table over `[0, 100)`.
Early in a run the table is deposit-heavy so stakers accumulate voting power;
afterwards it is governance-heavy. Parameterized actions are sometimes made
deliberately invalid, and every action carries the outcome predicted by the
reference model's dry-run checks.
"""

import random
from typing import List, Optional, Sequence, Tuple

from ..config.loader import FuzzRunConfig
from ..constants import (
    MAX_CAMPAIGN_OPTIONS,
    MAX_NETWORK_FEE_BPS,
    PRECISION,
    ZERO_ADDRESS,
)
from ..exceptions import ErrorKind
from ..fixed_point import encode_brr
from ..logger import get_logger
from ..model.campaigns import CampaignType
from ..model.reference import ReferenceModel
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

logger = get_logger(__name__)


# Cumulative thresholds; the first entry whose bound exceeds the draw wins.
EARLY_WEIGHTS: Tuple[Tuple[int, ActionKind], ...] = (
    (70, ActionKind.DEPOSIT),
    (75, ActionKind.WITHDRAW),
    (90, ActionKind.DELEGATE),
    (100, ActionKind.SUBMIT_CAMPAIGN),
)

LATE_WEIGHTS: Tuple[Tuple[int, ActionKind], ...] = (
    (10, ActionKind.DEPOSIT),
    (20, ActionKind.WITHDRAW),
    (30, ActionKind.DELEGATE),
    (40, ActionKind.SUBMIT_CAMPAIGN),
    (45, ActionKind.CANCEL_CAMPAIGN),
    (90, ActionKind.VOTE),
    (95, ActionKind.CLAIM_REWARD),
    (100, ActionKind.NO_ACTION),
)

STAKING_WEIGHTS: Tuple[Tuple[int, ActionKind], ...] = (
    (40, ActionKind.DEPOSIT),
    (60, ActionKind.WITHDRAW),
    (85, ActionKind.DELEGATE),
    (100, ActionKind.NO_ACTION),
)


def pick_from_weights(draw: int, weights: Sequence[Tuple[int, ActionKind]]) -> ActionKind:
    for bound, kind in weights:
        if draw < bound:
            return kind
    return ActionKind.NO_ACTION


class ActionGenerator:
    """
    Produces one action per step.

    Args:
        run_config: Loop length, mode, phase ratio and invalid ratio
        model: Reference model used to pick targets and predict outcomes
        stakers: Addresses that act as stakers and voters
        campaign_creator: Address allowed to submit and cancel campaigns
        staker_balance: Initial token balance of every staker
        rng: Random source; defaults to `random.Random(run_config.seed)`
    """

    def __init__(
        self,
        run_config: FuzzRunConfig,
        model: ReferenceModel,
        stakers: List[str],
        campaign_creator: str,
        staker_balance: int,
        rng: Optional[random.Random] = None,
    ):
        if not stakers:
            raise ValueError("at least one staker is required")
        self.config = run_config
        self.model = model
        self.stakers = list(stakers)
        self.campaign_creator = campaign_creator
        self.staker_balance = staker_balance
        self.rng = rng or random.Random(run_config.seed)

    # =========================================================================
    # KIND SELECTION
    # =========================================================================

    def weights_for(self, step: int) -> Sequence[Tuple[int, ActionKind]]:
        if self.config.mode == "staking":
            return STAKING_WEIGHTS
        if step / self.config.num_runs < self.config.early_phase_ratio:
            return EARLY_WEIGHTS
        return LATE_WEIGHTS

    def pick_kind(self, step: int) -> ActionKind:
        return pick_from_weights(self.rng.randrange(100), self.weights_for(step))

    def next_action(self, step: int, at_time: int) -> Action:
        """Generate the action for loop iteration `step`, executing at `at_time`."""
        kind = self.pick_kind(step)
        action = self.build(kind, at_time)
        return action if action is not None else self.no_action()

    def build(self, kind: ActionKind, at_time: int) -> Optional[Action]:
        """Build an action of `kind`, or None when no target exists (e.g. nothing to cancel)."""
        if kind == ActionKind.DEPOSIT:
            return self.gen_deposit()
        if kind == ActionKind.WITHDRAW:
            return self.gen_withdraw()
        if kind == ActionKind.DELEGATE:
            return self.gen_delegate()
        if kind == ActionKind.SUBMIT_CAMPAIGN:
            return self.gen_submit_campaign(at_time)
        if kind == ActionKind.CANCEL_CAMPAIGN:
            return self.gen_cancel_campaign(at_time)
        if kind == ActionKind.VOTE:
            return self.gen_vote(at_time)
        if kind == ActionKind.CLAIM_REWARD:
            return ClaimRewardAction(staker=self._random_staker(), outcome=Outcome.ok())
        return self.no_action()

    def no_action(self) -> NoAction:
        return NoAction(staker=ZERO_ADDRESS, outcome=Outcome.ok())

    # =========================================================================
    # STAKING ACTIONS
    # =========================================================================

    def _random_staker(self) -> str:
        return self.rng.choice(self.stakers)

    def _make_invalid(self) -> bool:
        return self.rng.random() < self.config.invalid_ratio

    def gen_deposit(self) -> DepositAction:
        staker = self._random_staker()
        available = self.staker_balance - self.model.latest_staker_data(staker).stake
        if available <= 0 or self._make_invalid():
            return DepositAction(staker=staker, outcome=Outcome.fail(ErrorKind.INVALID_AMOUNT), amount=0)
        amount = self.rng.randint(1, available)
        return DepositAction(staker=staker, outcome=Outcome.ok(), amount=amount)

    def gen_withdraw(self) -> WithdrawAction:
        staker = self._random_staker()
        stake = self.model.latest_staker_data(staker).stake
        if stake == 0 or self._make_invalid():
            amount = stake + self.rng.randint(1, PRECISION)
            return WithdrawAction(
                staker=staker, outcome=Outcome.fail(ErrorKind.INSUFFICIENT_STAKE), amount=amount,
            )
        amount = self.rng.randint(1, stake)
        return WithdrawAction(staker=staker, outcome=Outcome.ok(), amount=amount)

    def gen_delegate(self) -> DelegateAction:
        staker = self._random_staker()
        if self._make_invalid():
            return DelegateAction(
                staker=staker, outcome=Outcome.fail(ErrorKind.ZERO_ADDRESS), representative=ZERO_ADDRESS,
            )
        return DelegateAction(staker=staker, outcome=Outcome.ok(), representative=self._random_staker())

    # =========================================================================
    # CAMPAIGN ACTIONS
    # =========================================================================

    def _epoch_bounds(self, epoch: int) -> Tuple[int, int]:
        clock = self.model.clock
        if epoch == 0:
            return 0, clock.start_time - 1
        return clock.epoch_start(epoch), clock.epoch_end(epoch)

    def _random_window(self, epoch: int, at_time: int) -> Tuple[int, int]:
        lo, hi = self._epoch_bounds(epoch)
        lo = max(lo, at_time)
        if lo >= hi:
            return lo, lo + 1
        start = self.rng.randint(lo, hi - 1)
        end = self.rng.randint(start + 1, hi)
        return start, end

    def _random_options(self, campaign_type: CampaignType, count: int) -> List[int]:
        if campaign_type == CampaignType.NETWORK_FEE:
            return [self.rng.randrange(MAX_NETWORK_FEE_BPS) for _ in range(count)]
        if campaign_type == CampaignType.FEE_BRR:
            options = []
            for _ in range(count):
                reward = self.rng.choice((0, 2000, 3000, self.rng.randint(0, 5000)))
                rebate = self.rng.choice((0, 2000, 3000, self.rng.randint(0, 5000)))
                options.append(encode_brr(reward, rebate))
            return options
        return [self.rng.randint(1, 2 ** 32) for _ in range(count)]

    def _random_type(self) -> CampaignType:
        draw = self.rng.randrange(100)
        if draw < 33:
            return CampaignType.NETWORK_FEE
        if draw < 66:
            return CampaignType.FEE_BRR
        return CampaignType.GENERAL

    def gen_submit_campaign(self, at_time: int) -> SubmitCampaignAction:
        """
        Random campaign for the current or next epoch.

        Draws 90 and above force an invalid campaign: too many options,
        two epochs ahead, or a window ending before it starts. Anything else
        is classified by the model, which catches duplicates, full epochs and
        windows the draw happened to get wrong.
        """
        current = self.model.clock.epoch_of(at_time)
        campaign_type = self._random_type()
        min_percentage = self.rng.randint(0, PRECISION // 5)
        c_param = self.rng.randint(min_percentage, PRECISION // 2)
        t_param = PRECISION
        options = self._random_options(campaign_type, self.rng.randint(2, MAX_CAMPAIGN_OPTIONS))

        draw = self.rng.randrange(100)
        if draw >= 97:
            start, _ = self._random_window(current + 1, at_time)
            end = start - 1
        elif draw >= 94:
            start, end = self._random_window(current + 2, at_time)
        else:
            epoch = current + self.rng.randint(0, 1)
            start, end = self._random_window(epoch, at_time)
            if draw >= 90:
                options = self._random_options(campaign_type, MAX_CAMPAIGN_OPTIONS + 1)

        outcome = Outcome.from_check(self.model.registry.validate_submission(
            campaign_type, start, end, min_percentage, c_param, t_param, options, at_time,
        ))
        return SubmitCampaignAction(
            staker=self.campaign_creator,
            outcome=outcome,
            campaign_type=campaign_type,
            start_time=start,
            end_time=end,
            min_percentage=min_percentage,
            c_param=c_param,
            t_param=t_param,
            options=tuple(options),
        )

    def _live_campaign_ids(self, at_time: int) -> List[int]:
        current = self.model.clock.epoch_of(at_time)
        registry = self.model.registry
        return registry.campaign_ids(current) + registry.campaign_ids(current + 1)

    def gen_cancel_campaign(self, at_time: int) -> Optional[CancelCampaignAction]:
        ids = self._live_campaign_ids(at_time)
        if not ids:
            return None
        if self._make_invalid():
            campaign_id = self.model.registry.number_of_campaigns + 1
        else:
            campaign_id = self.rng.choice(ids)
        outcome = Outcome.from_check(self.model.registry.validate_cancel(campaign_id, at_time))
        return CancelCampaignAction(staker=self.campaign_creator, outcome=outcome, campaign_id=campaign_id)

    def gen_vote(self, at_time: int) -> VoteAction:
        """
        Vote by a random staker on a campaign of the current epoch.

        Invalid variants use option 0, option count + 1, or an id no campaign has.
        With no campaign in the current epoch the vote always targets an unknown id.
        """
        registry = self.model.registry
        ids = registry.campaign_ids(self.model.clock.epoch_of(at_time))
        staker = self._random_staker()
        if not ids:
            return VoteAction(
                staker=staker,
                outcome=Outcome.fail(ErrorKind.CAMPAIGN_NOT_FOUND),
                campaign_id=registry.number_of_campaigns + 1,
                option=1,
            )

        campaign_id = self.rng.choice(ids)
        num_options = len(registry.campaign(campaign_id).options)
        option = self.rng.randint(1, num_options)
        if self._make_invalid():
            variant = self.rng.randrange(3)
            if variant == 0:
                option = 0
            elif variant == 1:
                option = num_options + 1
            else:
                campaign_id = registry.number_of_campaigns + 1

        outcome = Outcome.from_check(registry.validate_vote(campaign_id, option, at_time))
        return VoteAction(staker=staker, outcome=outcome, campaign_id=campaign_id, option=option)
