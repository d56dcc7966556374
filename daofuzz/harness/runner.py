"""
Differential Harness

Drives the fuzz loop: advances time, checks epoch-boundary results, applies
each generated action to the authoritative system and the reference model,
and compares their observable state. The first disagreement raises a
`FatalDivergence`, which `run()` turns into a failed `FuzzReport` carrying the
before/after state dump.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from eth_utils import keccak, to_checksum_address

from ..actions.generator import ActionGenerator
from ..actions.types import (
    Action,
    CancelCampaignAction,
    ClaimRewardAction,
    DelegateAction,
    DepositAction,
    NoAction,
    SubmitCampaignAction,
    VoteAction,
    WithdrawAction,
)
from ..config.loader import FuzzConfig, FuzzRunConfig
from ..exceptions import (
    FatalDivergence,
    InvariantViolation,
    ProtocolRevert,
    UnexpectedAcceptance,
    UnexpectedRejection,
    ValidationError,
)
from ..logger import get_logger
from ..model.epochs import EpochClock
from ..model.reference import ReferenceModel
from ..protocol.emulator import InProcessDao
from ..protocol.interface import DaoProtocol
from .scoreboard import ScoreBoard
from .snapshot import StateDump, StateSnapshot

logger = get_logger(__name__)


def derive_address(label: str) -> str:
    """Deterministic checksum address from a label."""
    return to_checksum_address(keccak(text=label)[-20:])


def staker_addresses(count: int) -> List[str]:
    return [derive_address(f"daofuzz-staker-{i}") for i in range(count)]


CAMPAIGN_CREATOR = derive_address("daofuzz-campaign-creator")

STAKING_ACTIONS = (DepositAction, WithdrawAction, DelegateAction)


@dataclass
class FuzzReport:
    """Result of a fuzz run. `exit_code` is non-zero iff the run diverged."""
    steps: int
    epochs: int
    scoreboard: ScoreBoard
    failure: Optional[FatalDivergence] = None

    @property
    def passed(self) -> bool:
        return self.failure is None

    @property
    def exit_code(self) -> int:
        return 0 if self.failure is None else 1

    def to_dict(self) -> dict:
        return {
            'steps': self.steps,
            'epochs': self.epochs,
            'passed': self.passed,
            'failure': str(self.failure) if self.failure else None,
            'dump': self.failure.dump.to_dict() if self.failure and self.failure.dump else None,
            'scoreboard': self.scoreboard.to_dict(),
        }


class DifferentialHarness:
    """
    Applies generated actions to both sides and asserts they agree.

    Args:
        protocol: The authoritative system
        model: Reference model, owned exclusively by the harness
        generator: Source of actions
        run_config: Loop length, step size and report interval
        stakers: Addresses whose views are checked at epoch boundaries
        campaign_creator: Sender of campaign submissions and cancellations
    """

    def __init__(
        self,
        protocol: DaoProtocol,
        model: ReferenceModel,
        generator: ActionGenerator,
        run_config: FuzzRunConfig,
        stakers: Sequence[str],
        campaign_creator: str = CAMPAIGN_CREATOR,
    ):
        self.protocol = protocol
        self.model = model
        self.generator = generator
        self.config = run_config
        self.stakers = list(stakers)
        self.campaign_creator = campaign_creator
        self.scoreboard = ScoreBoard()
        self.current_epoch = protocol.current_epoch()
        self.steps = 0

    @classmethod
    def from_config(cls, config: FuzzConfig) -> "DifferentialHarness":
        """Build a harness against a fresh in-process emulator."""
        stakers = staker_addresses(config.stakers.count)
        balance = config.stakers.initial_balance
        proto_cfg = config.protocol

        protocol = InProcessDao(
            start_time=proto_cfg.start_time,
            epoch_period=proto_cfg.epoch_period,
            balances={staker: balance for staker in stakers},
            total_supply=balance * len(stakers),
            campaign_creator=CAMPAIGN_CREATOR,
            block_time=proto_cfg.genesis_time,
            min_campaign_duration=proto_cfg.min_campaign_duration,
            network_fee_bps=proto_cfg.network_fee_bps,
            reward_bps=proto_cfg.reward_bps,
            rebate_bps=proto_cfg.rebate_bps,
        )
        model = ReferenceModel(
            EpochClock(proto_cfg.start_time, proto_cfg.epoch_period),
            min_campaign_duration=proto_cfg.min_campaign_duration,
            network_fee_bps=proto_cfg.network_fee_bps,
            reward_bps=proto_cfg.reward_bps,
            rebate_bps=proto_cfg.rebate_bps,
        )
        generator = ActionGenerator(config.run, model, stakers, CAMPAIGN_CREATOR, balance)
        return cls(protocol, model, generator, config.run, stakers, CAMPAIGN_CREATOR)

    # =========================================================================
    # RUN LOOP
    # =========================================================================

    def run(self) -> FuzzReport:
        """Run the configured number of steps; stops at the first divergence."""
        logger.info(
            f"Fuzz run started: {self.config.num_runs} steps, mode {self.config.mode}, "
            f"seed {self.config.seed}, {len(self.stakers)} stakers"
        )
        failure = None
        try:
            self._loop()
        except FatalDivergence as e:
            failure = e
            logger.error(f"DIVERGENCE at step {self.steps}: {e}")
            if e.action is not None:
                logger.error(f"Action: {e.action}")
            if e.dump is not None:
                for line in e.dump.format_lines():
                    logger.error(line)

        report = FuzzReport(
            steps=self.steps,
            epochs=self.current_epoch,
            scoreboard=self.scoreboard,
            failure=failure,
        )
        if report.passed:
            logger.info(f"Fuzz run PASS after {self.steps} steps, epoch {self.current_epoch}")
        self._log_scores()
        return report

    def _loop(self) -> None:
        clock = self.model.clock
        for step in range(self.config.num_runs):
            self.steps = step + 1
            now = self.protocol.block_time() + self.config.step_seconds
            epoch = clock.epoch_of(now)
            if epoch != self.current_epoch:
                self.protocol.mine_block_at(now)
                self.on_new_epoch(epoch, now)
                continue
            action = self.generator.next_action(step, now)
            self.step(action, now)

    def on_new_epoch(self, epoch: int, now: int) -> None:
        """Check the closed epoch's results against the model, then switch epochs."""
        previous = self.current_epoch
        self.check_winning_campaigns(previous, now)
        self.check_parameters(epoch, now)
        self.check_past_rewards(previous)
        self.current_epoch = epoch
        self.scoreboard.epochs_checked += 1
        logger.debug(f"Entered epoch {epoch}")
        if epoch % self.config.report_every_epochs == 0:
            logger.info(f"Scores at epoch {epoch}:")
            self._log_scores()

    def _log_scores(self) -> None:
        for line in self.scoreboard.format_lines():
            logger.info(line)

    # =========================================================================
    # ACTIONS
    # =========================================================================

    def step(self, action: Action, now: int) -> None:
        if isinstance(action, (NoAction, ClaimRewardAction)):
            self.protocol.mine_block_at(now)
            if isinstance(action, ClaimRewardAction):
                self.verify_current_rewards(action, self.model.clock.epoch_of(now))
            self.scoreboard.record(action.kind, True)
            return

        self.protocol.set_next_block_timestamp(now)
        if action.outcome.valid:
            self.apply_valid(action, now)
        else:
            self.apply_invalid(action, now)
        self.scoreboard.record(action.kind, action.outcome.valid)

    def apply_valid(self, action: Action, now: int) -> None:
        epoch = self.model.clock.epoch_of(now)
        before = self._capture(self._affected_addresses(action, epoch), epoch)

        try:
            result = self._send(action)
        except ProtocolRevert as e:
            raise UnexpectedRejection(
                f"{action.kind} predicted valid but reverted: {e.reason}",
                action=action,
                dump=self._dump(before),
            ) from e

        try:
            model_result = self._apply_to_model(action, now)
        except ValidationError as e:
            raise InvariantViolation(
                f"reference model rejected {action.kind} it predicted valid: {e}",
                action=action,
                dump=self._dump(before),
            ) from e

        logger.debug(f"PASS {action}")
        if isinstance(action, SubmitCampaignAction) and result != model_result:
            raise InvariantViolation(
                f"campaign id mismatch: protocol {result}, model {model_result}",
                action=action,
                dump=self._dump(before),
            )
        self.verify_after(action, epoch, before)

    def apply_invalid(self, action: Action, now: int) -> None:
        expected = action.outcome.reason
        epoch = self.model.clock.epoch_of(now)
        before = self._capture(self._affected_addresses(action, epoch), epoch)

        try:
            self._send(action)
        except ProtocolRevert as e:
            if e.reason != expected.value:
                raise UnexpectedRejection(
                    f"{action.kind} reverted with '{e.reason}', expected '{expected.value}'",
                    action=action,
                    dump=self._dump(before),
                ) from e
        else:
            raise UnexpectedAcceptance(
                f"{action.kind} predicted to fail with '{expected.value}' but succeeded",
                action=action,
                dump=self._dump(before),
            )

        try:
            self._apply_to_model(action, now)
        except ValidationError as e:
            if e.kind != expected:
                raise InvariantViolation(
                    f"reference model rejected {action.kind} with {e.kind.name}, predicted {expected.name}",
                    action=action,
                    dump=self._dump(before),
                ) from e
        else:
            raise InvariantViolation(
                f"reference model accepted {action.kind} it predicted invalid",
                action=action,
                dump=self._dump(before),
            )
        logger.debug(f"PASS {action}")

    def _send(self, action: Action):
        protocol = self.protocol
        if isinstance(action, DepositAction):
            return protocol.deposit(action.staker, action.amount)
        if isinstance(action, WithdrawAction):
            return protocol.withdraw(action.staker, action.amount)
        if isinstance(action, DelegateAction):
            return protocol.delegate(action.staker, action.representative)
        if isinstance(action, SubmitCampaignAction):
            return protocol.submit_campaign(
                action.staker, action.campaign_type, action.start_time, action.end_time,
                action.min_percentage, action.c_param, action.t_param, list(action.options),
            )
        if isinstance(action, CancelCampaignAction):
            return protocol.cancel_campaign(action.staker, action.campaign_id)
        if isinstance(action, VoteAction):
            return protocol.vote(action.staker, action.campaign_id, action.option)
        raise TypeError(f"unsupported action {action!r}")

    def _apply_to_model(self, action: Action, now: int):
        model = self.model
        if isinstance(action, DepositAction):
            return model.deposit(action.staker, action.amount, now)
        if isinstance(action, WithdrawAction):
            return model.withdraw(action.staker, action.amount, now)
        if isinstance(action, DelegateAction):
            return model.delegate(action.staker, action.representative, now)
        if isinstance(action, SubmitCampaignAction):
            return model.submit_campaign(
                action.campaign_type, action.start_time, action.end_time,
                action.min_percentage, action.c_param, action.t_param, action.options,
                self.protocol.total_supply(), now,
            )
        if isinstance(action, CancelCampaignAction):
            return model.cancel_campaign(action.campaign_id, now)
        if isinstance(action, VoteAction):
            return model.vote(action.staker, action.campaign_id, action.option, now)
        return None

    def _affected_addresses(self, action: Action, epoch: int) -> List[str]:
        """Addresses whose staker views go into the dump of a divergence on `action`."""
        if isinstance(action, VoteAction):
            return [action.staker]
        if not isinstance(action, STAKING_ACTIONS):
            # Campaign actions touch tallies weighted by every staker
            return list(self.stakers)
        addresses = [
            action.staker,
            self.model.staker_data(action.staker, epoch).representative,
            self.model.latest_staker_data(action.staker).representative,
        ]
        if isinstance(action, DelegateAction):
            addresses.append(action.representative)
        return list(dict.fromkeys(addresses))

    def _capture(self, addresses: Sequence[str], epoch: int) -> Optional[StateSnapshot]:
        if not addresses:
            return None
        return StateSnapshot.capture(self.protocol, self.model, addresses, epoch)

    def _dump(self, before: Optional[StateSnapshot], details: Sequence[str] = ()) -> StateDump:
        """
        Pair `before` with a fresh capture of the same addresses.

        Without a `before` snapshot (epoch-boundary checks) every staker is
        captured at the protocol's current epoch.
        """
        if before is not None:
            after = self._capture(list(before.protocol), before.epoch)
        else:
            after = self._capture(self.stakers, self.protocol.current_epoch())
        return StateDump(before, after, details=list(details))

    # =========================================================================
    # VERIFICATION
    # =========================================================================

    def verify_after(self, action: Action, epoch: int, before: Optional[StateSnapshot]) -> None:
        if isinstance(action, STAKING_ACTIONS):
            addresses = list(before.protocol.keys())
            latest_rep = self.model.latest_staker_data(action.staker).representative
            if latest_rep not in addresses:
                addresses.append(latest_rep)
            after = StateSnapshot.capture(self.protocol, self.model, addresses, epoch)
            self.verify_staking(action, before, after)
            # Withdrawals retroactively change current-epoch tallies
            self.verify_epoch_campaigns(epoch, action, before)
            return

        if isinstance(action, (SubmitCampaignAction, CancelCampaignAction)):
            campaign_epoch = self.model.clock.epoch_of(
                action.start_time if isinstance(action, SubmitCampaignAction)
                else self.model.registry.campaign(action.campaign_id).start_time
            )
            self.verify_epoch_campaigns(campaign_epoch, action, before)
        elif isinstance(action, VoteAction):
            self.verify_epoch_campaigns(epoch, action, before)

    def verify_staking(self, action: Action, before: StateSnapshot, after: StateSnapshot) -> None:
        dump = StateDump(before, after)
        mismatches = after.mismatches()
        if mismatches:
            dump.details = [f"mismatch at {address} ({view})" for address, view in mismatches]
            raise InvariantViolation(
                f"staker state diverged after {action.kind}", action=action, dump=dump,
            )

        for address, views in after.protocol.items():
            if views["next"] != views["latest"]:
                dump.details = [f"next-epoch view differs from latest for {address}"]
                raise InvariantViolation(
                    f"next != latest after {action.kind}", action=action, dump=dump,
                )
            # Only withdrawals may change the current epoch
            if not isinstance(action, WithdrawAction) and address in before.protocol:
                if views["current"] != before.protocol[address]["current"]:
                    dump.details = [f"current-epoch view of {address} changed"]
                    raise InvariantViolation(
                        f"{action.kind} changed current-epoch data", action=action, dump=dump,
                    )

    def verify_epoch_campaigns(
        self,
        epoch: int,
        action: Optional[Action] = None,
        before: Optional[StateSnapshot] = None,
    ) -> None:
        """Campaign list, static details, tallies and total points of `epoch`."""
        registry = self.model.registry
        proto_ids = sorted(self.protocol.campaign_ids(epoch))
        model_ids = registry.campaign_ids(epoch)
        self._compare(proto_ids, model_ids, f"campaign ids of epoch {epoch}", action, before)

        for campaign_id in model_ids:
            campaign = registry.campaign(campaign_id)
            details = self.protocol.campaign_details(campaign_id)
            expected = (
                campaign.campaign_type, campaign.start_time, campaign.end_time,
                campaign.total_voting_power_snapshot, campaign.min_percentage,
                campaign.c_param, campaign.t_param, tuple(campaign.options),
            )
            actual = (
                details.campaign_type, details.start_time, details.end_time,
                details.total_voting_power_snapshot, details.min_percentage,
                details.c_param, details.t_param, tuple(details.options),
            )
            self._compare(actual, expected, f"campaign #{campaign_id} details", action, before)

            proto_votes = self.protocol.campaign_vote_counts(campaign_id)
            model_votes = registry.vote_counts(campaign_id)
            self._compare(
                (list(proto_votes[0]), proto_votes[1]),
                (list(model_votes[0]), model_votes[1]),
                f"campaign #{campaign_id} tallies",
                action,
                before,
            )

        self._compare(
            self.protocol.total_epoch_points(epoch),
            self.model.total_points(epoch),
            f"total points of epoch {epoch}",
            action,
            before,
        )

    def verify_current_rewards(self, action: Action, epoch: int) -> None:
        for staker in self.stakers:
            self._compare(
                self.protocol.current_reward_percentage(staker),
                self.model.reward_percentage(staker, epoch),
                f"current reward percentage of {staker} in epoch {epoch}",
                action,
            )

    # =========================================================================
    # EPOCH BOUNDARY CHECKS
    # =========================================================================

    def check_winning_campaigns(self, epoch: int, now: int) -> None:
        registry = self.model.registry
        for campaign_id in registry.campaign_ids(epoch):
            actual = tuple(self.protocol.winning_option(campaign_id))
            expected = registry.resolve_winner(campaign_id, now)
            self._compare(actual, expected, f"winning option of campaign #{campaign_id}")
            self.scoreboard.resolved_campaigns += 1
            if expected[0] != 0:
                self.scoreboard.winning_campaigns += 1
                logger.info(
                    f"campaign #{campaign_id} ({registry.campaign(campaign_id).campaign_type.name}) "
                    f"won by option {expected[0]}"
                )

    def check_parameters(self, epoch: int, now: int) -> None:
        parameters = self.model.parameters
        self._compare(
            self.protocol.network_fee_data(),
            parameters.network_fee_data(epoch, now),
            f"network fee at epoch {epoch}",
        )
        self._compare(
            self.protocol.network_fee_data_with_cache(),
            parameters.network_fee_data_with_cache(epoch, now),
            f"cached network fee at epoch {epoch}",
        )
        self._compare(
            self.protocol.brr_data(),
            parameters.brr_data(epoch, now),
            f"BRR data at epoch {epoch}",
        )
        self._compare(
            self.protocol.brr_data_with_cache(),
            parameters.brr_data_with_cache(epoch, now),
            f"cached BRR data at epoch {epoch}",
        )

    def check_past_rewards(self, epoch: int) -> None:
        self._compare(
            self.protocol.total_epoch_points(epoch),
            self.model.total_points(epoch),
            f"total points of epoch {epoch}",
        )
        for staker in self.stakers:
            self._compare(
                self.protocol.past_reward_percentage(staker, epoch),
                self.model.reward_percentage(staker, epoch),
                f"reward percentage of {staker} in epoch {epoch}",
            )

    def _compare(
        self,
        actual,
        expected,
        what: str,
        action: Optional[Action] = None,
        before: Optional[StateSnapshot] = None,
    ) -> None:
        if actual != expected:
            raise InvariantViolation(
                f"mismatch in {what}: protocol {actual}, model {expected}",
                action=action,
                dump=self._dump(before, [f"{what}: protocol {actual!r}, model {expected!r}"]),
            )
