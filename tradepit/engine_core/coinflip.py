"""
CoinFlip Wager Engine - Symmetric 1:1 binary bet.

Edge-neutral by construction: the draw is a fair 50/50 and a win pays
exactly the stake. Any house edge belongs to whoever owns the draw.
"""

from __future__ import annotations
from decimal import Decimal
from enum import Enum

from .errors import InvalidBet
from .fairness import EntropySource
from .numeric import Number, to_decimal
from .outcome import GameKind, WagerOutcome

MIN_BET = 1
MAX_BET = 1_000_000


class CoinSide(str, Enum):
    HEADS = "heads"
    TAILS = "tails"


def validate_bet(bet: Number) -> int:
    """Return `bet` as an int within [MIN_BET, MAX_BET] or raise InvalidBet."""
    value = to_decimal(bet, InvalidBet)
    if value != value.to_integral_value():
        raise InvalidBet(f"Bet must be a whole number, got {bet!r}")
    if not MIN_BET <= value <= MAX_BET:
        raise InvalidBet(f"Bet must be between {MIN_BET} and {MAX_BET}, got {value}")
    return int(value)


def parse_choice(choice: CoinSide | str) -> CoinSide:
    try:
        return CoinSide(choice.lower() if isinstance(choice, str) else choice)
    except ValueError:
        raise InvalidBet(f"Choice must be 'heads' or 'tails', got {choice!r}")


def draw(draw_source: EntropySource) -> CoinSide:
    """One fair coin draw."""
    return CoinSide.HEADS if draw_source.rng().randint(0, 1) == 0 else CoinSide.TAILS


def resolve(
    bet: Number,
    choice: CoinSide | str,
    draw_source: EntropySource,
) -> WagerOutcome:
    """
    Resolve a coin-flip.

    net_change is +bet when the draw matches `choice`, -bet otherwise.
    The outcome inherits the authority of `draw_source`.
    """
    stake = validate_bet(bet)
    side = parse_choice(choice)
    result = draw(draw_source)

    net_change = stake if result == side else -stake
    return WagerOutcome(
        game=GameKind.COINFLIP,
        bet=Decimal(stake),
        net_change=Decimal(net_change),
        authority=draw_source.authority,
        detail={"choice": side.value, "result": result.value},
    )
