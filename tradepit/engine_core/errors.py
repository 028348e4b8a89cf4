"""
Engine Errors - Local, synchronous validation failures.

Every engine operation either commits its full state transition or raises
one of these. None are retriable: the same inputs fail the same way.
"""

from __future__ import annotations


class EngineError(ValueError):
    """Base class for all engine failures."""
    error_code = "ENGINE_ERROR"


class InvalidAmount(EngineError):
    """Non-positive or non-finite trade amount."""
    error_code = "INVALID_AMOUNT"


class InvalidBet(EngineError):
    """Bet outside [MIN_BET, MAX_BET], or not a usable number."""
    error_code = "INVALID_BET"


class InvalidConfig(EngineError):
    """Game configuration out of range (e.g. mines count)."""
    error_code = "INVALID_CONFIG"


class InsufficientLiquidity(EngineError):
    """Pool reserves are empty or would be exhausted by the trade."""
    error_code = "INSUFFICIENT_LIQUIDITY"


class InvalidState(EngineError):
    """Operation on a round that is terminal or not started."""
    error_code = "INVALID_STATE"


class AlreadyRevealed(EngineError):
    """Cell was already revealed in this round."""
    error_code = "ALREADY_REVEALED"
