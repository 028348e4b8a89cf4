"""
Wager outcomes - what a resolved bet means for the player's balance.

An outcome carries its authority. Results computed from a trusted draw are
AUTHORITATIVE and may be settled; results simulated locally (seeded previews,
optimistic UI state) are UNAUTHORITATIVE and must never be merged with them.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any


class Authority(str, Enum):
    """Who produced the randomness behind an outcome."""
    AUTHORITATIVE = "authoritative"
    UNAUTHORITATIVE = "unauthoritative"


class GameKind(str, Enum):
    COINFLIP = "coinflip"
    MINES = "mines"


@dataclass(frozen=True)
class WagerOutcome:
    """
    Result of a resolved wager.

    net_change is signed and is what the caller applies to the balance:
    -bet on a loss, winnings (payout - bet) on a win.
    """
    game: GameKind
    bet: Decimal
    net_change: Decimal
    authority: Authority
    detail: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def payout(self) -> Decimal:
        """Total returned to the player, stake included."""
        return self.bet + self.net_change

    @property
    def won(self) -> bool:
        return self.net_change > 0

    @property
    def is_authoritative(self) -> bool:
        return self.authority == Authority.AUTHORITATIVE
