from dataclasses import dataclass, field
from typing import Dict, List


BULLISH = "bullish"
BEARISH = "bearish"
HTF = "htf"


@dataclass
class ScoredSignal:
    """
    Output of a signal classifier: a label, a numeric score (may be negative)
    and the ordered reasons that contributed to it.
    """
    label: str
    score: float = 0
    reasons: List[str] = field(default_factory=list)

    def add(self, points: float, reason: str) -> None:
        """Add points to the score and record why."""
        self.score += points
        self.reasons.append(reason)

    def to_dict(self) -> Dict:
        return {
            'label': self.label,
            'score': self.score,
            'reasons': list(self.reasons)
        }
