"""
Stake Ledger

Per-staker, per-epoch stake and delegation state with lazy carry-forward.

Snapshots are written only for the epoch in which a mutation becomes visible;
a read for an epoch without a snapshot returns the closest earlier one, or the
genesis defaults (zero stake, self-represented) if there is none. Writes only
target the current or the next epoch, so closed epochs are never rewritten.
"""

import bisect
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterable, List, Optional

from ..constants import ZERO_ADDRESS
from ..exceptions import ErrorKind, ValidationError
from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
# EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class StakeError(ValidationError):
    """Stake ledger rejected an operation."""
    pass


# ══════════════════════════════════════════════════════════════════════
# DATA TYPES
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class StakerData:
    """
    One epoch view of a staker.

    Attributes:
        stake: Self-deposited stake
        delegated_stake: Stake delegated to this address by others
        representative: Address this staker's voting power is delegated to
    """
    stake: int
    delegated_stake: int
    representative: str

    @classmethod
    def genesis(cls, staker: str) -> "StakerData":
        return cls(stake=0, delegated_stake=0, representative=staker)

    def to_dict(self) -> dict:
        return {
            'stake': self.stake,
            'delegated_stake': self.delegated_stake,
            'representative': self.representative,
        }


# (representative, reduction, epoch)
WithdrawalCallback = Callable[[str, int, int], None]


# ══════════════════════════════════════════════════════════════════════
# LEDGER
# ══════════════════════════════════════════════════════════════════════

class StakeLedger:
    """
    Reference model of deposits, withdrawals and delegation.

    `at_epoch` arguments name the epoch in which a change becomes visible:
    deposits and delegations are applied at `current + 1`, withdrawals at
    `current` (they also reduce the next epoch).
    """

    def __init__(self, on_withdrawal: Optional[WithdrawalCallback] = None):
        self._snapshots: Dict[str, Dict[int, StakerData]] = {}
        self._epochs: Dict[str, List[int]] = {}
        self._on_withdrawal = on_withdrawal

    # =========================================================================
    # QUERIES
    # =========================================================================

    def resolve(self, staker: str, epoch: int) -> StakerData:
        """Carry-forward view of `staker` at `epoch`."""
        epochs = self._epochs.get(staker)
        if epoch <= 0 or not epochs:
            return StakerData.genesis(staker)
        idx = bisect.bisect_right(epochs, epoch)
        if idx == 0:
            return StakerData.genesis(staker)
        return self._snapshots[staker][epochs[idx - 1]]

    def resolved_stake(self, staker: str, epoch: int) -> int:
        return self.resolve(staker, epoch).stake

    def resolved_delegated_received(self, staker: str, epoch: int) -> int:
        return self.resolve(staker, epoch).delegated_stake

    def resolved_representative(self, staker: str, epoch: int) -> str:
        return self.resolve(staker, epoch).representative

    def latest(self, staker: str) -> StakerData:
        """The most recently written view, i.e. what every future epoch will see."""
        epochs = self._epochs.get(staker)
        if not epochs:
            return StakerData.genesis(staker)
        return self._snapshots[staker][epochs[-1]]

    def total_voting_power(self, staker: str, epoch: int) -> int:
        """Stake plus delegated stake if self-represented, otherwise delegated stake only."""
        data = self.resolve(staker, epoch)
        if data.representative == staker:
            return data.stake + data.delegated_stake
        return data.delegated_stake

    def has_snapshot(self, staker: str, epoch: int) -> bool:
        return epoch in self._snapshots.get(staker, {})

    def stakers(self) -> Iterable[str]:
        return list(self._snapshots.keys())

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def deposit(self, staker: str, amount: int, at_epoch: int) -> None:
        """
        Add `amount` to `staker`'s stake from `at_epoch` on.

        Raises:
            StakeError: INVALID_AMOUNT if amount <= 0
        """
        if amount <= 0:
            raise StakeError(ErrorKind.INVALID_AMOUNT)

        self._update_from(staker, at_epoch, stake=amount)
        representative = self.resolved_representative(staker, at_epoch)
        if representative != staker:
            self._update_from(representative, at_epoch, delegated=amount)

        logger.debug(f"Deposit {amount} by {staker} effective epoch {at_epoch}")

    def withdraw(self, staker: str, amount: int, at_epoch: int) -> int:
        """
        Remove `amount` from `staker`'s stake.

        The next epoch loses the full amount. The current epoch keeps
        `min(current stake, latest stake - amount)`; when that is a strict
        reduction, the current representative's delegated stake drops by the
        same amount and the withdrawal callback fires so already-cast votes
        can be corrected.

        Returns:
            The reduction applied to the current epoch (0 if none).

        Raises:
            StakeError: INVALID_AMOUNT or INSUFFICIENT_STAKE
        """
        if amount <= 0:
            raise StakeError(ErrorKind.INVALID_AMOUNT)
        latest_stake = self.latest(staker).stake
        if amount > latest_stake:
            raise StakeError(
                ErrorKind.INSUFFICIENT_STAKE,
                f"withdraw {amount} exceeds latest stake {latest_stake}",
            )

        next_epoch = at_epoch + 1
        # Materialize both views before touching either one
        self._ensure(staker, at_epoch)
        self._ensure(staker, next_epoch)

        self._update_from(staker, next_epoch, stake=-amount)
        next_rep = self.resolved_representative(staker, next_epoch)
        if next_rep != staker:
            self._update_from(next_rep, next_epoch, delegated=-amount)

        current = self.resolve(staker, at_epoch)
        new_current_stake = min(current.stake, latest_stake - amount)
        reduction = current.stake - new_current_stake
        if reduction <= 0:
            logger.debug(f"Withdraw {amount} by {staker}, no current-epoch reduction")
            return 0

        self._write(staker, at_epoch, replace(current, stake=new_current_stake))
        current_rep = current.representative
        if current_rep != staker:
            self._ensure(current_rep, next_epoch)
            self._ensure(current_rep, at_epoch)
            rep_data = self.resolve(current_rep, at_epoch)
            self._write(
                current_rep, at_epoch,
                replace(rep_data, delegated_stake=rep_data.delegated_stake - reduction),
            )

        logger.debug(
            f"Withdraw {amount} by {staker} reduces epoch {at_epoch} "
            f"voting power of {current_rep} by {reduction}"
        )
        if self._on_withdrawal is not None:
            self._on_withdrawal(current_rep, reduction, at_epoch)
        return reduction

    def delegate(self, staker: str, new_rep: str, at_epoch: int) -> bool:
        """
        Move `staker`'s voting power to `new_rep` from `at_epoch` on.

        Returns:
            False when `new_rep` is already the representative.

        Raises:
            StakeError: ZERO_ADDRESS if new_rep is the null address
        """
        if not new_rep or new_rep.lower() == ZERO_ADDRESS:
            raise StakeError(ErrorKind.ZERO_ADDRESS)

        view = self.resolve(staker, at_epoch)
        old_rep = view.representative
        if old_rep == new_rep:
            return False

        self._ensure(staker, at_epoch)
        if old_rep != staker:
            self._update_from(old_rep, at_epoch, delegated=-view.stake)
        self._update_from(staker, at_epoch, representative=new_rep)
        if new_rep != staker:
            self._update_from(new_rep, at_epoch, delegated=view.stake)

        logger.debug(f"Delegate {staker}: {old_rep} -> {new_rep} effective epoch {at_epoch}")
        return True

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _write(self, staker: str, epoch: int, data: StakerData) -> None:
        snapshots = self._snapshots.setdefault(staker, {})
        if epoch not in snapshots:
            bisect.insort(self._epochs.setdefault(staker, []), epoch)
        snapshots[epoch] = data

    def _ensure(self, staker: str, epoch: int) -> None:
        if not self.has_snapshot(staker, epoch):
            self._write(staker, epoch, self.resolve(staker, epoch))

    def _update_from(
        self,
        staker: str,
        epoch: int,
        stake: int = 0,
        delegated: int = 0,
        representative: Optional[str] = None,
    ) -> None:
        """Apply a delta to the snapshot at `epoch` and every later one."""
        self._ensure(staker, epoch)
        for e in self._epochs[staker]:
            if e < epoch:
                continue
            data = self._snapshots[staker][e]
            self._snapshots[staker][e] = StakerData(
                stake=data.stake + stake,
                delegated_stake=data.delegated_stake + delegated,
                representative=representative if representative is not None else data.representative,
            )
