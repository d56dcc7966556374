"""Per-action-kind pass counters for a fuzz run."""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from ..actions.types import ActionKind


@dataclass
class Score:
    """
    Attributes:
        success: Valid actions both sides applied and agreed on
        fail: Invalid actions the authoritative system rejected as predicted
    """
    success: int = 0
    fail: int = 0

    @property
    def total(self) -> int:
        return self.success + self.fail

    def to_dict(self) -> dict:
        return {'success': self.success, 'fail': self.fail}


@dataclass
class ScoreBoard:
    """Scores per action kind plus epoch-boundary check counters."""
    scores: Dict[ActionKind, Score] = field(
        default_factory=lambda: {kind: Score() for kind in ActionKind}
    )
    winning_campaigns: int = 0
    resolved_campaigns: int = 0
    epochs_checked: int = 0

    def record(self, kind: ActionKind, valid: bool) -> None:
        score = self.scores[kind]
        if valid:
            score.success += 1
        else:
            score.fail += 1

    def score(self, kind: ActionKind) -> Score:
        return self.scores[kind]

    @property
    def total_actions(self) -> int:
        return sum(score.total for score in self.scores.values())

    def rows(self) -> List[Tuple[str, int, int]]:
        return [(kind.value, score.success, score.fail) for kind, score in self.scores.items()]

    def format_lines(self) -> List[str]:
        lines = [
            f"{kind:<16} success {success:>6}  fail {fail:>6}"
            for kind, success, fail in self.rows()
        ]
        lines.append(
            f"{'Campaigns':<16} resolved {self.resolved_campaigns:>5}  "
            f"with winner {self.winning_campaigns:>5}"
        )
        return lines

    def to_dict(self) -> dict:
        return {
            'scores': {kind.value: score.to_dict() for kind, score in self.scores.items()},
            'winning_campaigns': self.winning_campaigns,
            'resolved_campaigns': self.resolved_campaigns,
            'epochs_checked': self.epochs_checked,
        }
