"""
Mines Wager Engine - Sequential reveal-or-cash-out on a 25-cell board.

Round lifecycle:
    NOT_STARTED -> IN_PROGRESS -> LOST | CASHED_OUT | WON_ALL_SAFE

Payout model:
    survival(h, M)   = prod_{i<h} (25 - M - i) / (25 - i)
    multiplier(h, M) = (1 / survival(h, M)) * (1 - HOUSE_EDGE),  h > 0
    multiplier(0, M) = 1

Odds are exact Fractions; only the final payout is rounded (truncated).
Every call returns a new MinesRound; a round is never mutated in place.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from decimal import Decimal, localcontext
from enum import Enum
from fractions import Fraction

from .errors import AlreadyRevealed, InvalidBet, InvalidConfig, InvalidState
from .fairness import EntropySource, SystemEntropy
from .numeric import PRECISION, Number, scale, to_decimal
from .outcome import Authority, GameKind, WagerOutcome

BOARD_SIZE = 25
MIN_MINES = 3
MAX_MINES = 23
MIN_BET = 1
HOUSE_EDGE = Fraction(1, 100)


class RoundStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    LOST = "lost"
    CASHED_OUT = "cashed_out"
    WON_ALL_SAFE = "won_all_safe"


TERMINAL_STATUSES = frozenset({
    RoundStatus.LOST,
    RoundStatus.CASHED_OUT,
    RoundStatus.WON_ALL_SAFE,
})


# =============================================================================
# Odds
# =============================================================================

def _check_mines(mines_count: int) -> int:
    if isinstance(mines_count, bool) or not isinstance(mines_count, int):
        raise InvalidConfig(f"mines_count must be an integer, got {mines_count!r}")
    if not MIN_MINES <= mines_count <= MAX_MINES:
        raise InvalidConfig(
            f"mines_count must be between {MIN_MINES} and {MAX_MINES}, got {mines_count}"
        )
    return mines_count


def safe_cells(mines_count: int) -> int:
    return BOARD_SIZE - _check_mines(mines_count)


def survival(hits: int, mines_count: int) -> Fraction:
    """Probability of `hits` consecutive safe picks. Zero past the last safe cell."""
    if hits < 0:
        raise InvalidConfig(f"hits must be >= 0, got {hits}")
    if hits > safe_cells(mines_count):
        return Fraction(0)
    prob = Fraction(1)
    for i in range(hits):
        prob *= Fraction(BOARD_SIZE - mines_count - i, BOARD_SIZE - i)
    return prob


def fair_multiplier(hits: int, mines_count: int) -> Fraction:
    """Zero-edge multiplier 1 / survival."""
    prob = survival(hits, mines_count)
    if prob == 0:
        raise InvalidConfig(
            f"{hits} safe hits are unreachable with {mines_count} mines"
        )
    return 1 / prob


def multiplier(hits: int, mines_count: int) -> Fraction:
    """Paid multiplier after the house edge; exactly 1 before any hit."""
    if hits == 0:
        _check_mines(mines_count)
        return Fraction(1)
    return fair_multiplier(hits, mines_count) * (1 - HOUSE_EDGE)


def expected_return(hits: int, mines_count: int) -> Fraction:
    """Return to player for a fixed cash-out target; 1 - HOUSE_EDGE for hits > 0."""
    return survival(hits, mines_count) * multiplier(hits, mines_count)


def multiplier_table(mines_count: int) -> list[tuple[int, Fraction]]:
    """(hits, multiplier) for every reachable hit count, starting at 1."""
    return [
        (hits, multiplier(hits, mines_count))
        for hits in range(1, safe_cells(mines_count) + 1)
    ]


# =============================================================================
# Round state
# =============================================================================

@dataclass(frozen=True)
class MinesRound:
    """
    One Mines round.

    mine_positions is fixed once started. reveals keeps the cells in the
    order they were opened (including the mine that ended a lost round).
    """
    bet: Decimal
    mines_count: int
    status: RoundStatus = RoundStatus.NOT_STARTED
    mine_positions: frozenset[int] = frozenset()
    reveals: tuple[int, ...] = ()
    authority: Authority = Authority.AUTHORITATIVE

    @property
    def revealed(self) -> frozenset[int]:
        return frozenset(self.reveals)

    @property
    def safe_hits(self) -> int:
        return len(self.revealed - self.mine_positions)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def visible_mines(self) -> frozenset[int]:
        """Mines are shown only once the round is over."""
        return self.mine_positions if self.is_terminal else frozenset()

    @property
    def current_multiplier(self) -> Fraction:
        if self.status == RoundStatus.LOST:
            return Fraction(0)
        return multiplier(self.safe_hits, self.mines_count)

    @property
    def cash_out_value(self) -> Decimal:
        """What cash_out() would pay right now, stake included."""
        return scale(self.bet, self.current_multiplier)

    def _settle(self, status: RoundStatus, net_change: Decimal) -> tuple[MinesRound, WagerOutcome]:
        settled = replace(self, status=status)
        outcome = WagerOutcome(
            game=GameKind.MINES,
            bet=self.bet,
            net_change=net_change,
            authority=self.authority,
            detail={
                "status": status.value,
                "mines_count": self.mines_count,
                "safe_hits": settled.safe_hits,
                "multiplier": str(settled.current_multiplier),
                "mine_positions": sorted(self.mine_positions),
            },
        )
        return settled, outcome


def _winnings(mines_round: MinesRound) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = PRECISION
        return mines_round.cash_out_value - mines_round.bet


def validate_config(bet: Number, mines_count: int) -> tuple[Decimal, int]:
    stake = to_decimal(bet, InvalidBet)
    if stake < MIN_BET:
        raise InvalidBet(f"Bet must be at least {MIN_BET}, got {stake}")
    return stake, _check_mines(mines_count)


def start(
    bet: Number,
    mines_count: int,
    rng: EntropySource | None = None,
) -> MinesRound:
    """
    Place mines and open a round.

    `rng` defaults to the OS CSPRNG. A SeededEntropy source yields an
    unauthoritative round that callers must not settle.
    """
    stake, count = validate_config(bet, mines_count)
    source = rng or SystemEntropy()
    positions = frozenset(source.rng().sample(range(BOARD_SIZE), count))
    return MinesRound(
        bet=stake,
        mines_count=count,
        status=RoundStatus.IN_PROGRESS,
        mine_positions=positions,
        authority=source.authority,
    )


def reveal(mines_round: MinesRound, cell: int) -> tuple[MinesRound, WagerOutcome | None]:
    """
    Open one cell.

    Returns (new_round, outcome); outcome is None while the round continues.
    """
    if mines_round.status == RoundStatus.NOT_STARTED:
        raise InvalidState("Round has not started")
    if isinstance(cell, bool) or not isinstance(cell, int) or not 0 <= cell < BOARD_SIZE:
        raise InvalidConfig(f"Cell must be an index in [0, {BOARD_SIZE}), got {cell!r}")
    if cell in mines_round.revealed:
        raise AlreadyRevealed(f"Cell {cell} is already revealed")
    if mines_round.is_terminal:
        raise InvalidState(f"Round is over ({mines_round.status.value})")

    opened = replace(mines_round, reveals=mines_round.reveals + (cell,))

    if cell in mines_round.mine_positions:
        return opened._settle(RoundStatus.LOST, -mines_round.bet)

    if opened.safe_hits == safe_cells(opened.mines_count):
        return opened._settle(
            RoundStatus.WON_ALL_SAFE,
            _winnings(opened),
        )

    return opened, None


def cash_out(mines_round: MinesRound) -> tuple[MinesRound, WagerOutcome]:
    """Take the current multiplier. Needs at least one safe hit."""
    if mines_round.status != RoundStatus.IN_PROGRESS:
        raise InvalidState(f"Cannot cash out a round that is {mines_round.status.value}")
    if mines_round.safe_hits < 1:
        raise InvalidState("Reveal at least one cell before cashing out")
    return mines_round._settle(
        RoundStatus.CASHED_OUT,
        _winnings(mines_round),
    )
