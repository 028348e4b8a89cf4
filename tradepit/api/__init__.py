"""
API Module - Caller-facing interface to the exchange.

Request and response models plus a framework-agnostic service. A caller
(REST handler, chat bot, local UI):
1. Opens an account
2. Lists, quotes and trades coins
3. Checks its transactions and the leaderboard
4. Requests a seed commitment, then flips a coin or plays Mines
5. Verifies the revealed server secret against the commitment

Errors come back as ErrorResponse with a machine-readable code.
"""

from .schemas import (
    # Requests
    OpenAccountRequest,
    CreateCoinRequest,
    QuoteRequest,
    BuyRequest,
    SellRequest,
    CoinFlipRequest,
    SimulateFlipRequest,
    MinesStartRequest,
    RevealRequest,
    # Responses
    ErrorResponse,
    AccountResponse,
    QuoteResponse,
    TradeResponse,
    CoinResponse,
    CoinListResponse,
    TransactionResponse,
    TransactionListResponse,
    LeaderboardEntry,
    LeaderboardResponse,
    CommitResponse,
    FairnessProof,
    WagerOutcomeResponse,
    MinesRoundResponse,
    MultiplierRow,
    MultiplierTableResponse,
    # Enums
    ErrorCode,
)
from .service import APIService

__all__ = [
    # Requests
    "OpenAccountRequest",
    "CreateCoinRequest",
    "QuoteRequest",
    "BuyRequest",
    "SellRequest",
    "CoinFlipRequest",
    "SimulateFlipRequest",
    "MinesStartRequest",
    "RevealRequest",
    # Responses
    "ErrorResponse",
    "AccountResponse",
    "QuoteResponse",
    "TradeResponse",
    "CoinResponse",
    "CoinListResponse",
    "TransactionResponse",
    "TransactionListResponse",
    "LeaderboardEntry",
    "LeaderboardResponse",
    "CommitResponse",
    "FairnessProof",
    "WagerOutcomeResponse",
    "MinesRoundResponse",
    "MultiplierRow",
    "MultiplierTableResponse",
    # Enums
    "ErrorCode",
    # Service
    "APIService",
]
