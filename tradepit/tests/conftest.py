"""
Pytest fixtures for Tradepit tests.
"""

import pytest
from decimal import Decimal
from random import Random

from tradepit.config import ExchangeConfig
from tradepit.engine_core.fairness import EntropySource
from tradepit.engine_core.outcome import Authority
from tradepit.engine_core.pool import Pool
from tradepit.exchange import GameTables, Ledger, Market
from tradepit.api import APIService


class FixedRandom(Random):
    """Random whose coin draws and mine placements are scripted."""

    def __init__(self, bit: int, mines: tuple[int, ...]):
        super().__init__(0)
        self.bit = bit
        self.mines = mines

    def randint(self, a, b):
        return self.bit

    def sample(self, population, k, **kwargs):
        return list(self.mines[:k])


class FixedEntropy(EntropySource):
    """
    Authoritative source with a known result.

    heads=True makes every flip land heads; mines lists the cells that
    start() will mine (the first mines_count of them are used).
    """
    authority = Authority.AUTHORITATIVE

    def __init__(self, heads: bool = True, mines: tuple[int, ...] = tuple(range(25))):
        self.heads = heads
        self.mines = mines

    def rng(self) -> Random:
        return FixedRandom(0 if self.heads else 1, self.mines)


class FakeClock:
    """Settable stand-in for time.time."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def pool() -> Pool:
    """Default seeded pool: 1000 USD against 1,000,000 tokens."""
    return Pool.seed(1000, 1_000_000)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ledger() -> Ledger:
    """Ledger with alice and bob holding the starting balance."""
    ledger = Ledger(ExchangeConfig())
    ledger.open_account("alice")
    ledger.open_account("bob")
    return ledger


@pytest.fixture
def market(ledger: Ledger, clock: FakeClock) -> Market:
    return Market(ledger, clock=clock)


@pytest.fixture
def listed_market(market: Market) -> Market:
    """Market where alice has listed PIT. Leaves alice with a funded balance."""
    market.ledger.apply([("alice", "USD", Decimal(2000))], reason="test deposit")
    market.create_coin("alice", "PIT", "Pit Coin")
    return market


@pytest.fixture
def heads_tables(ledger: Ledger) -> GameTables:
    """Tables whose flips land heads and whose mines sit on cells 0..M-1."""
    return GameTables(ledger, entropy=FixedEntropy)


@pytest.fixture
def tails_tables(ledger: Ledger) -> GameTables:
    return GameTables(ledger, entropy=lambda: FixedEntropy(heads=False))


@pytest.fixture
def service(clock: FakeClock) -> APIService:
    """Service whose default entropy is the scripted heads source."""
    ledger = Ledger(ExchangeConfig())
    return APIService(
        ledger=ledger,
        market=Market(ledger, clock=clock),
        tables=GameTables(ledger, entropy=FixedEntropy),
    )
