"""
Engine Core - Deterministic economic engine.

The engine is pure computation over explicitly passed state:
1. Pool + AMM: quote and execute constant-product swaps
2. CoinFlip: resolve a symmetric binary bet
3. Mines: run a reveal-or-cash-out round with a combinatorial payout curve

No I/O, no global mutable state. Callers persist what is returned and
serialize writes per pool / per round.
"""

from . import amm, coinflip, mines
from .errors import (
    EngineError,
    InvalidAmount,
    InvalidBet,
    InvalidConfig,
    InsufficientLiquidity,
    InvalidState,
    AlreadyRevealed,
)
from .pool import Pool
from .amm import SwapQuote, SwapSide, FEE_RATE, FEE_MULTIPLIER
from .outcome import Authority, GameKind, WagerOutcome
from .fairness import (
    EntropySource,
    SystemEntropy,
    SeededEntropy,
    CommitRevealEntropy,
    ServerSeed,
    verify_commitment,
)
from .coinflip import CoinSide
from .mines import MinesRound, RoundStatus

__all__ = [
    "amm",
    "coinflip",
    "mines",
    "EngineError",
    "InvalidAmount",
    "InvalidBet",
    "InvalidConfig",
    "InsufficientLiquidity",
    "InvalidState",
    "AlreadyRevealed",
    "Pool",
    "SwapQuote",
    "SwapSide",
    "FEE_RATE",
    "FEE_MULTIPLIER",
    "Authority",
    "GameKind",
    "WagerOutcome",
    "EntropySource",
    "SystemEntropy",
    "SeededEntropy",
    "CommitRevealEntropy",
    "ServerSeed",
    "verify_commitment",
    "CoinSide",
    "MinesRound",
    "RoundStatus",
]
