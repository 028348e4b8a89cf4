"""
Game Tables - Caller side of the wager engines.

Coin-flip: check the stake is affordable, draw, settle, all under the
ledger lock.

Mines: the stake moves to the house when the round opens; the payout
(bet + net_change) moves back when the round ends. Each round has its own
lock so two reveals or a reveal racing a cash-out cannot both settle.

Only authoritative entropy may touch balances. Seeded previews go through
simulate_flip / preview_mines, which never see the ledger.

Registries are bounded: unclaimed seeds expire after seed_ttl (and the
oldest are dropped past max_pending_seeds), finished rounds are forgotten
round_ttl after they settle.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable
import logging
import threading
import time
import uuid

from ..engine_core import coinflip, mines
from ..engine_core.coinflip import CoinSide
from ..engine_core.errors import InvalidState
from ..engine_core.fairness import (
    CommitRevealEntropy,
    EntropySource,
    SeededEntropy,
    ServerSeed,
    SystemEntropy,
)
from ..engine_core.mines import MinesRound
from ..engine_core.numeric import Number
from ..engine_core.outcome import WagerOutcome
from .errors import (
    InsufficientBalance,
    UnauthoritativeSettlement,
    UnknownGame,
    UnknownRound,
)
from .ledger import HOUSE, USD, Ledger

logger = logging.getLogger(__name__)

SEED_TTL_SECONDS = 3600
ROUND_TTL_SECONDS = 3600
MAX_PENDING_SEEDS = 10_000


@dataclass
class MinesTable:
    """A live (or finished) Mines round owned by one player."""
    round_id: str
    user_id: str
    state: MinesRound
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    outcome: WagerOutcome | None = None
    source: CommitRevealEntropy | None = field(default=None, repr=False)
    finished_at: float | None = None


def _require_authoritative(source: EntropySource) -> None:
    if not source.is_authoritative:
        raise UnauthoritativeSettlement(
            "Seeded entropy cannot back a real wager; use a preview instead"
        )


class GameTables:
    """
    Runs wagers against ledger balances.

    `entropy` builds the default draw source per wager; tests inject a
    deterministic authoritative source.
    """

    def __init__(
        self,
        ledger: Ledger,
        entropy: Callable[[], EntropySource] = SystemEntropy,
        clock: Callable[[], float] = time.time,
        seed_ttl: float = SEED_TTL_SECONDS,
        round_ttl: float = ROUND_TTL_SECONDS,
        max_pending_seeds: int = MAX_PENDING_SEEDS,
    ):
        self.ledger = ledger
        self.entropy = entropy
        self.clock = clock
        self.seed_ttl = seed_ttl
        self.round_ttl = round_ttl
        self.max_pending_seeds = max_pending_seeds
        self._tables: dict[str, MinesTable] = {}
        # game_id -> (seed, committed_at); insertion order is age order
        self._seeds: dict[str, tuple[ServerSeed, float]] = {}
        # game_id -> claimed_at
        self._used_seeds: dict[str, float] = {}
        self._registry_lock = threading.Lock()

    # =========================================================================
    # Commit-reveal seeds
    # =========================================================================

    def commit(self) -> ServerSeed:
        """Generate a server seed; publish its commitment before taking a bet."""
        seed = ServerSeed.generate()
        with self._registry_lock:
            now = self.clock()
            self._prune(now)
            self._seeds[seed.game_id] = (seed, now)
            while len(self._seeds) > self.max_pending_seeds:
                oldest = next(iter(self._seeds))
                del self._seeds[oldest]
                logger.debug("Dropped unclaimed seed %s", oldest)
        return seed

    def claim(self, game_id: str, client_secret: str) -> CommitRevealEntropy:
        """
        Consume a committed seed. Each seed backs exactly one wager.

        The returned source exposes the server seed so it can be revealed
        to the player with the result. Seeds left unclaimed past seed_ttl
        are gone.
        """
        with self._registry_lock:
            now = self.clock()
            self._prune(now)
            if game_id in self._used_seeds:
                raise InvalidState(f"Game {game_id} has already been played")
            entry = self._seeds.get(game_id)
            if entry is None:
                raise UnknownGame(f"Game {game_id} not found or expired")
            source = CommitRevealEntropy(entry[0], client_secret)
            del self._seeds[game_id]
            self._used_seeds[game_id] = now
        return source

    def pending_seeds(self) -> int:
        with self._registry_lock:
            self._prune(self.clock())
            return len(self._seeds)

    def _prune(self, now: float) -> None:
        """Drop expired seeds and finished rounds. Caller holds the registry lock."""
        seed_cutoff = now - self.seed_ttl
        for game_id in [g for g, (_, at) in self._seeds.items() if at <= seed_cutoff]:
            del self._seeds[game_id]
        # Used ids answer "already played" for one more seed_ttl, then "not found"
        for game_id in [g for g, at in self._used_seeds.items() if at <= seed_cutoff]:
            del self._used_seeds[game_id]

        round_cutoff = now - self.round_ttl
        for round_id in [
            r for r, t in self._tables.items()
            if t.finished_at is not None and t.finished_at <= round_cutoff
        ]:
            del self._tables[round_id]

    # =========================================================================
    # Coin-flip
    # =========================================================================

    def flip(
        self,
        user_id: str,
        bet: Number,
        choice: CoinSide | str,
        draw_source: EntropySource | None = None,
    ) -> WagerOutcome:
        source = draw_source or self.entropy()
        _require_authoritative(source)
        stake = coinflip.validate_bet(bet)

        with self.ledger.lock:
            self._require_funds(user_id, stake)
            outcome = coinflip.resolve(stake, choice, source)
            self.ledger.settle_wager(user_id, outcome, reason="coinflip")
        return outcome

    def simulate_flip(
        self,
        bet: Number,
        choice: CoinSide | str,
        seed: int | str | None = None,
    ) -> WagerOutcome:
        """Local, unauthoritative flip. Never settled."""
        return coinflip.resolve(bet, choice, SeededEntropy(seed))

    # =========================================================================
    # Mines
    # =========================================================================

    def open_mines(
        self,
        user_id: str,
        bet: Number,
        mines_count: int,
        rng: EntropySource | None = None,
    ) -> MinesTable:
        source = rng or self.entropy()
        _require_authoritative(source)

        with self.ledger.lock:
            state = mines.start(bet, mines_count, source)
            self._require_funds(user_id, state.bet)
            self.ledger.apply(
                [(user_id, USD, -state.bet), (HOUSE, USD, state.bet)],
                reason="mines stake",
            )

        table = MinesTable(
            round_id=uuid.uuid4().hex,
            user_id=user_id,
            state=state,
            source=source if isinstance(source, CommitRevealEntropy) else None,
        )
        with self._registry_lock:
            self._prune(self.clock())
            self._tables[table.round_id] = table
        logger.info(
            "Opened mines round %s for %s: bet %s, %d mines",
            table.round_id, user_id, state.bet, state.mines_count,
        )
        return table

    def preview_mines(self, bet: Number, mines_count: int, seed: int | str | None = None) -> MinesRound:
        """Unauthoritative round for local play; never registered or settled."""
        return mines.start(bet, mines_count, SeededEntropy(seed))

    def get_round(self, round_id: str) -> MinesTable:
        table = self._tables.get(round_id)
        if table is None:
            raise UnknownRound(f"Mines round {round_id} not found")
        return table

    def reveal(self, round_id: str, cell: int) -> tuple[MinesRound, WagerOutcome | None]:
        table = self.get_round(round_id)
        with table.lock:
            state, outcome = mines.reveal(table.state, cell)
            if outcome is not None:
                self._pay_out(table, outcome)
            table.state = state
            return state, outcome

    def cash_out(self, round_id: str) -> tuple[MinesRound, WagerOutcome]:
        table = self.get_round(round_id)
        with table.lock:
            state, outcome = mines.cash_out(table.state)
            self._pay_out(table, outcome)
            table.state = state
            return state, outcome

    def _pay_out(self, table: MinesTable, outcome: WagerOutcome) -> None:
        if table.outcome is not None:
            raise InvalidState(f"Round {table.round_id} is already settled")
        if outcome.payout > 0:
            self.ledger.apply(
                [(table.user_id, USD, outcome.payout), (HOUSE, USD, -outcome.payout)],
                reason="mines payout",
            )
        table.outcome = outcome
        table.finished_at = self.clock()
        logger.info(
            "Mines round %s ended %s: net %s",
            table.round_id, outcome.detail.get("status"), outcome.net_change,
        )

    def _require_funds(self, user_id: str, amount) -> None:
        balance = self.ledger.balance(user_id)
        if balance < amount:
            raise InsufficientBalance(f"{user_id} has {balance} USD, bet is {amount}")
