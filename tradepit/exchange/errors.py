"""
Exchange Errors - Failures owned by the caller side, not the engine.
"""

from __future__ import annotations


class ExchangeError(ValueError):
    """Base class for exchange failures."""
    error_code = "EXCHANGE_ERROR"


class InsufficientBalance(ExchangeError):
    error_code = "INSUFFICIENT_BALANCE"


class UnknownAccount(ExchangeError):
    error_code = "UNKNOWN_ACCOUNT"


class UnknownCoin(ExchangeError):
    error_code = "UNKNOWN_COIN"


class DuplicateCoin(ExchangeError):
    error_code = "DUPLICATE_COIN"


class InvalidSymbol(ExchangeError):
    error_code = "INVALID_SYMBOL"


class UnknownRound(ExchangeError):
    error_code = "UNKNOWN_ROUND"


class UnauthoritativeSettlement(ExchangeError):
    """A simulated outcome was offered for settlement against real balances."""
    error_code = "UNAUTHORITATIVE_SETTLEMENT"


class UnknownGame(ExchangeError):
    """No committed server seed with this game id."""
    error_code = "UNKNOWN_GAME"
