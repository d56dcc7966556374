"""
daofuzz Exceptions

Custom exception classes and the canonical rejection reasons shared by the
reference model, the emulator and the action generator.
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """
    Canonical rejection reasons.

    The value of each member is the revert string the authoritative system
    reports, so a `ProtocolRevert.reason` can be matched against an
    `ErrorKind` directly.
    """
    # Staking
    INVALID_AMOUNT = "amount is 0"
    INSUFFICIENT_STAKE = "withdraw: latest amount staked < withdrawal amount"
    INSUFFICIENT_BALANCE = "deposit: insufficient token balance"
    ZERO_ADDRESS = "delegate: representative 0"

    # Campaign submission
    NOT_CAMPAIGN_CREATOR = "only campaign creator"
    START_IN_PAST = "validateParams: can't start in the past"
    INVALID_WINDOW = "validateParams: invalid campaign duration"
    CROSS_EPOCH_WINDOW = "validateParams: start & end not same epoch"
    EPOCH_OUT_OF_RANGE = "validateParams: only for current or next epochs"
    TOO_MANY_OPTIONS = "validateParams: too many options"
    TOO_FEW_OPTIONS = "validateParams: invalid number of options"
    DUPLICATE_TYPE_FOR_EPOCH = "validateParams: already had campaign for this epoch"
    INVALID_OPTION_VALUE = "validateParams: invalid option value"
    INVALID_PARAMETER = "validateParams: invalid formula params"

    # Campaign lifecycle and voting
    CAMPAIGN_NOT_FOUND = "campaign does not exist"
    ALREADY_STARTED = "cancelCampaign: campaign already started"
    NOT_STARTED = "vote: campaign not started"
    ALREADY_ENDED = "vote: campaign already ended"
    OPTION_OUT_OF_RANGE = "vote: invalid option id"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_reason(cls, reason: str) -> Optional["ErrorKind"]:
        """Returns the member whose value equals `reason`, or None."""
        for kind in cls:
            if kind.value == reason:
                return kind
        return None


class DaoFuzzException(Exception):
    """Base exception for daofuzz."""
    pass


class ConfigurationError(DaoFuzzException):
    """Configuration error."""
    pass


class FixedPointError(DaoFuzzException):
    """Unsigned underflow or division by zero in scaled-integer arithmetic."""
    pass


class ValidationError(DaoFuzzException):
    """
    The reference model rejected malformed input before mutating any state.

    Attributes:
        kind: The `ErrorKind` describing the rejection.
    """

    def __init__(self, kind: ErrorKind, message: Optional[str] = None):
        self.kind = kind
        super().__init__(message or kind.value)


class ProtocolRevert(DaoFuzzException):
    """The authoritative system rejected a command with a reason string."""

    def __init__(self, reason: str):
        self.reason = str(reason)
        super().__init__(self.reason)

    @property
    def kind(self) -> Optional[ErrorKind]:
        return ErrorKind.from_reason(self.reason)


class FatalDivergence(DaoFuzzException):
    """
    The authoritative system and the reference model disagree.

    Fatal to the fuzz run: the run loop stops, logs the attached state dump and
    reports a non-zero exit status.
    """

    def __init__(self, message: str, action: Any = None, dump: Any = None):
        self.action = action
        self.dump = dump
        super().__init__(message)


class InvariantViolation(FatalDivergence):
    """Observable state diverged after an action both sides accepted."""
    pass


class UnexpectedRejection(FatalDivergence):
    """The authoritative system rejected an action predicted to succeed, or with another reason."""
    pass


class UnexpectedAcceptance(FatalDivergence):
    """The authoritative system accepted an action predicted to fail."""
    pass
