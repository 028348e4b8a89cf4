"""
Exchange - The in-memory caller around the engine.

Owns what the engine does not:
- Balances (Ledger) with atomic multi-leg postings
- Coins, pools and trade history (Market), one lock per pool
- Live wager rounds (GameTables), one lock per Mines round

No persistence: state lives for the life of the process.
"""

from .errors import (
    ExchangeError,
    InsufficientBalance,
    UnknownAccount,
    UnknownCoin,
    DuplicateCoin,
    InvalidSymbol,
    UnknownRound,
    UnknownGame,
    UnauthoritativeSettlement,
)
from .ledger import Ledger, Account, Posting, USD, HOUSE, TREASURY
from .market import Market, Coin, Trade, CoinStats, Standing
from .tables import GameTables, MinesTable

__all__ = [
    "ExchangeError",
    "InsufficientBalance",
    "UnknownAccount",
    "UnknownCoin",
    "DuplicateCoin",
    "InvalidSymbol",
    "UnknownRound",
    "UnknownGame",
    "UnauthoritativeSettlement",
    "Ledger",
    "Account",
    "Posting",
    "USD",
    "HOUSE",
    "TREASURY",
    "Market",
    "Coin",
    "Trade",
    "CoinStats",
    "Standing",
    "GameTables",
    "MinesTable",
]
