"""
Action variants produced by the generator.

Each action is a frozen dataclass tagged with its `ActionKind` and carrying the
expected `Outcome`: either valid, or invalid with the `ErrorKind` the
authoritative system must revert with.
"""

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Optional, Tuple

from ..exceptions import ErrorKind
from ..model.campaigns import CampaignType


class ActionKind(str, Enum):
    """Kinds of fuzz actions, in scoreboard order."""
    DEPOSIT = "Deposit"
    WITHDRAW = "Withdraw"
    DELEGATE = "Delegate"
    SUBMIT_CAMPAIGN = "SubmitCampaign"
    CANCEL_CAMPAIGN = "CancelCampaign"
    VOTE = "Vote"
    CLAIM_REWARD = "ClaimReward"
    NO_ACTION = "NoAction"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Outcome:
    """Expected result of applying an action."""
    valid: bool
    reason: Optional[ErrorKind] = None

    @classmethod
    def ok(cls) -> "Outcome":
        return cls(valid=True)

    @classmethod
    def fail(cls, reason: ErrorKind) -> "Outcome":
        return cls(valid=False, reason=reason)

    @classmethod
    def from_check(cls, reason: Optional[ErrorKind]) -> "Outcome":
        """Outcome of a model dry-run check returning a rejection reason or None."""
        return cls.ok() if reason is None else cls.fail(reason)

    def __str__(self) -> str:
        return "valid" if self.valid else f"invalid ({self.reason.name})"


@dataclass(frozen=True)
class Action:
    """Base of all action variants."""
    kind: ClassVar[ActionKind]
    staker: str
    outcome: Outcome

    def describe(self) -> str:
        return f"{self.kind} by {self.staker}"

    def __str__(self) -> str:
        return f"{self.describe()} [{self.outcome}]"


@dataclass(frozen=True)
class DepositAction(Action):
    kind: ClassVar[ActionKind] = ActionKind.DEPOSIT
    amount: int = 0

    def describe(self) -> str:
        return f"Deposit {self.amount} by {self.staker}"


@dataclass(frozen=True)
class WithdrawAction(Action):
    kind: ClassVar[ActionKind] = ActionKind.WITHDRAW
    amount: int = 0

    def describe(self) -> str:
        return f"Withdraw {self.amount} by {self.staker}"


@dataclass(frozen=True)
class DelegateAction(Action):
    kind: ClassVar[ActionKind] = ActionKind.DELEGATE
    representative: str = ""

    def describe(self) -> str:
        return f"Delegate {self.staker} -> {self.representative}"


@dataclass(frozen=True)
class SubmitCampaignAction(Action):
    kind: ClassVar[ActionKind] = ActionKind.SUBMIT_CAMPAIGN
    campaign_type: CampaignType = CampaignType.GENERAL
    start_time: int = 0
    end_time: int = 0
    min_percentage: int = 0
    c_param: int = 0
    t_param: int = 0
    options: Tuple[int, ...] = ()

    def describe(self) -> str:
        return (
            f"SubmitCampaign {self.campaign_type.name} [{self.start_time}, {self.end_time}] "
            f"{len(self.options)} options, min {self.min_percentage}, c {self.c_param}, t {self.t_param}"
        )


@dataclass(frozen=True)
class CancelCampaignAction(Action):
    kind: ClassVar[ActionKind] = ActionKind.CANCEL_CAMPAIGN
    campaign_id: int = 0

    def describe(self) -> str:
        return f"CancelCampaign campaign #{self.campaign_id}"


@dataclass(frozen=True)
class VoteAction(Action):
    kind: ClassVar[ActionKind] = ActionKind.VOTE
    campaign_id: int = 0
    option: int = 0

    def describe(self) -> str:
        return f"Vote option {self.option} on campaign #{self.campaign_id} by {self.staker}"


@dataclass(frozen=True)
class ClaimRewardAction(Action):
    kind: ClassVar[ActionKind] = ActionKind.CLAIM_REWARD


@dataclass(frozen=True)
class NoAction(Action):
    kind: ClassVar[ActionKind] = ActionKind.NO_ACTION

    def describe(self) -> str:
        return "NoAction"
