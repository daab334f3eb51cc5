"""Signal models produced by the signal engine."""

import enum
from dataclasses import dataclass, field


class Classification(str, enum.Enum):
    """Buy/hold/avoid verdict for a symbol."""

    BUY = "buy"
    HOLD = "hold"
    AVOID = "avoid"

    @property
    def priority(self) -> int:
        """Display order: buys first, avoids last."""
        return _PRIORITY[self]


_PRIORITY = {Classification.BUY: 0, Classification.HOLD: 1, Classification.AVOID: 2}


@dataclass(frozen=True)
class SignalResult:
    """Classification with its human-readable rationale."""

    classification: Classification
    reasons: list[str] = field(default_factory=list)
    strategy_hint: str = ""
    sma: float | None = None
    momentum: float = 0.0
