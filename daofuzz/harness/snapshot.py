"""
State snapshots for divergence reports.

A `StateSnapshot` records, for a set of addresses, the current-epoch,
next-epoch and latest views as seen by both the authoritative system and the
reference model. A `StateDump` pairs the snapshots taken before and after the
action that diverged.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from ..model.ledger import StakerData
from ..model.reference import ReferenceModel
from ..protocol.interface import DaoProtocol

VIEWS = ("current", "next", "latest")


@dataclass
class StateSnapshot:
    """
    Attributes:
        epoch: Current epoch when captured
        protocol: address -> view name -> data reported by the authoritative system
        model: address -> view name -> data derived by the reference model
    """
    epoch: int
    protocol: Dict[str, Dict[str, StakerData]] = field(default_factory=dict)
    model: Dict[str, Dict[str, StakerData]] = field(default_factory=dict)

    @classmethod
    def capture(
        cls,
        protocol: DaoProtocol,
        model: ReferenceModel,
        addresses: Iterable[str],
        epoch: int,
    ) -> "StateSnapshot":
        snapshot = cls(epoch=epoch)
        for address in dict.fromkeys(addresses):
            snapshot.protocol[address] = {
                "current": protocol.staker_data(address, epoch),
                "next": protocol.staker_data(address, epoch + 1),
                "latest": protocol.latest_staker_data(address),
            }
            snapshot.model[address] = {
                "current": model.staker_data(address, epoch),
                "next": model.staker_data(address, epoch + 1),
                "latest": model.latest_staker_data(address),
            }
        return snapshot

    def mismatches(self) -> List[Tuple[str, str]]:
        """(address, view) pairs where the two sides disagree."""
        return [
            (address, view)
            for address, views in self.protocol.items()
            for view in VIEWS
            if views[view] != self.model[address][view]
        ]

    def to_dict(self) -> dict:
        return {
            'epoch': self.epoch,
            'protocol': {
                address: {view: data.to_dict() for view, data in views.items()}
                for address, views in self.protocol.items()
            },
            'model': {
                address: {view: data.to_dict() for view, data in views.items()}
                for address, views in self.model.items()
            },
        }

    def format_lines(self) -> List[str]:
        lines = [f"epoch {self.epoch}"]
        for address, views in self.protocol.items():
            lines.append(f"  {address}")
            for view in VIEWS:
                ours = self.model[address][view]
                theirs = views[view]
                marker = "  " if ours == theirs else "!!"
                lines.append(
                    f"   {marker} {view:<7} protocol(stake={theirs.stake}, "
                    f"delegated={theirs.delegated_stake}, rep={theirs.representative}) "
                    f"model(stake={ours.stake}, delegated={ours.delegated_stake}, "
                    f"rep={ours.representative})"
                )
        return lines


@dataclass
class StateDump:
    """Before/after snapshots attached to a fatal divergence."""
    before: Optional[StateSnapshot]
    after: Optional[StateSnapshot]
    details: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'before': self.before.to_dict() if self.before else None,
            'after': self.after.to_dict() if self.after else None,
            'details': list(self.details),
        }

    def format_lines(self) -> List[str]:
        lines = list(self.details)
        if self.before is not None:
            lines.append("before:")
            lines.extend(self.before.format_lines())
        if self.after is not None:
            lines.append("after:")
            lines.extend(self.after.format_lines())
        return lines
