"""
Configuration - Exchange settings read from the environment.

Engine constants (fee rate, house edge, bet and mine bounds) live with the
engine and are not configurable; only caller-side economics are.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
import os

TRADEPIT_LOG_LEVEL = os.getenv("TRADEPIT_LOG_LEVEL", "INFO")


@dataclass(frozen=True)
class ExchangeConfig:
    """Economics of the simulated exchange."""
    starting_balance: Decimal = Decimal("1000")
    coin_creation_cost: Decimal = Decimal("1100")
    seed_base_reserve: Decimal = Decimal("1000")
    seed_token_reserve: Decimal = Decimal("1000000")
    stats_window_hours: int = 24

    def __post_init__(self):
        if self.seed_base_reserve <= 0 or self.seed_token_reserve <= 0:
            raise ValueError("Seed reserves must be positive")
        if self.starting_balance < 0 or self.coin_creation_cost < 0:
            raise ValueError("Balances and costs must be non-negative")

    @classmethod
    def from_env(cls) -> ExchangeConfig:
        defaults = cls()
        return cls(
            starting_balance=Decimal(
                os.getenv("TRADEPIT_STARTING_BALANCE", str(defaults.starting_balance))
            ),
            coin_creation_cost=Decimal(
                os.getenv("TRADEPIT_COIN_CREATION_COST", str(defaults.coin_creation_cost))
            ),
            seed_base_reserve=Decimal(
                os.getenv("TRADEPIT_SEED_BASE_RESERVE", str(defaults.seed_base_reserve))
            ),
            seed_token_reserve=Decimal(
                os.getenv("TRADEPIT_SEED_TOKEN_RESERVE", str(defaults.seed_token_reserve))
            ),
        )
