"""
Pydantic Schemas for API - Request/response models for callers.

These models define the contract between a front end (REST handler, bot,
UI preview) and the exchange. Numeric ranges are validated by the engine,
not here, so there is one source of truth for every bound.

Error Codes:
- INVALID_AMOUNT / INVALID_BET / INVALID_CONFIG: rejected input
- INSUFFICIENT_LIQUIDITY: pool cannot fill the trade
- INVALID_STATE / ALREADY_REVEALED: Mines round misuse
- INSUFFICIENT_BALANCE: player cannot afford the trade or bet
- UNKNOWN_*: referenced account, coin, round or game seed does not exist
- UNAUTHORITATIVE_SETTLEMENT: simulated result offered for settlement
"""

from decimal import Decimal
from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field

from ..engine_core.amm import SwapSide
from ..engine_core.coinflip import CoinSide
from ..engine_core.mines import RoundStatus
from ..engine_core.outcome import Authority, GameKind


# =============================================================================
# Enums
# =============================================================================

class ErrorCode(str, Enum):
    """Structured error codes."""
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_BET = "INVALID_BET"
    INVALID_CONFIG = "INVALID_CONFIG"
    INSUFFICIENT_LIQUIDITY = "INSUFFICIENT_LIQUIDITY"
    INVALID_STATE = "INVALID_STATE"
    ALREADY_REVEALED = "ALREADY_REVEALED"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    UNKNOWN_ACCOUNT = "UNKNOWN_ACCOUNT"
    UNKNOWN_COIN = "UNKNOWN_COIN"
    DUPLICATE_COIN = "DUPLICATE_COIN"
    INVALID_SYMBOL = "INVALID_SYMBOL"
    UNKNOWN_ROUND = "UNKNOWN_ROUND"
    UNKNOWN_GAME = "UNKNOWN_GAME"
    UNAUTHORITATIVE_SETTLEMENT = "UNAUTHORITATIVE_SETTLEMENT"
    ENGINE_ERROR = "ENGINE_ERROR"
    EXCHANGE_ERROR = "EXCHANGE_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"


# =============================================================================
# Request Models
# =============================================================================

class OpenAccountRequest(BaseModel):
    user_id: str = Field(..., min_length=1)


class CreateCoinRequest(BaseModel):
    """Request to list a new coin (charges the creation cost)."""
    user_id: str = Field(..., min_length=1)
    symbol: str = Field(..., description="1-10 letters or digits, upper-cased")
    name: str


class QuoteRequest(BaseModel):
    """Preview a trade without executing it."""
    symbol: str
    side: SwapSide
    amount: Decimal = Field(..., description="USD for buys, tokens for sells")


class BuyRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    symbol: str
    usd_amount: Decimal


class SellRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    symbol: str
    token_amount: Decimal


class CoinFlipRequest(BaseModel):
    """
    Coin-flip bet.

    With game_id + client_secret the draw comes from a previously
    committed server seed and can be verified afterwards.
    """
    user_id: str = Field(..., min_length=1)
    bet: Decimal
    choice: CoinSide
    game_id: Optional[str] = None
    client_secret: Optional[str] = None


class SimulateFlipRequest(BaseModel):
    """Unauthoritative local flip; never touches balances."""
    bet: Decimal
    choice: CoinSide
    seed: Optional[str] = None


class MinesStartRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    bet: Decimal
    mines_count: int = 5
    game_id: Optional[str] = None
    client_secret: Optional[str] = None


class RevealRequest(BaseModel):
    round_id: str
    cell: int


# =============================================================================
# Response Models
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str = Field(..., description="Human-readable error message")
    error_code: ErrorCode = Field(..., description="Machine-readable error code")
    details: Optional[dict[str, Any]] = Field(None, description="Additional error context")
    api_version: str = Field("v1", description="API version")


class AccountResponse(BaseModel):
    user_id: str
    usd_balance: Decimal
    holdings: dict[str, Decimal] = Field(default_factory=dict)


class QuoteResponse(BaseModel):
    """A priced trade. For buys amount_in is USD; for sells it is tokens."""
    symbol: str
    side: SwapSide
    amount_in: Decimal
    amount_out: Decimal
    fee: Decimal
    price_before: Decimal
    price_after: Decimal
    price_impact: Decimal


class TradeResponse(BaseModel):
    symbol: str
    user_id: str
    side: SwapSide
    usd_amount: Decimal
    token_amount: Decimal
    fee: Decimal
    price_after: Decimal
    timestamp: float


class CoinResponse(BaseModel):
    """Coin summary for market listings."""
    symbol: str
    name: str
    price: Decimal
    base_reserve: Decimal
    token_reserve: Decimal
    change_24h: Decimal = Field(description="Percent change vs 24h ago")
    volume_24h: Decimal = Field(description="USD traded in the last 24h")


class CoinListResponse(BaseModel):
    coins: list[CoinResponse] = Field(default_factory=list)
    count: int = 0


class TransactionResponse(BaseModel):
    """One balance posting on a player's account."""
    asset: str = Field(description="USD or a coin symbol")
    amount: Decimal = Field(description="Signed change to the balance")
    reason: str
    created_at: float


class TransactionListResponse(BaseModel):
    user_id: str
    transactions: list[TransactionResponse] = Field(default_factory=list)
    count: int = 0


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    usd_balance: Decimal
    holdings_value: Decimal = Field(description="Holdings valued at current spot prices")
    net_worth: Decimal
    total_trades: int


class LeaderboardResponse(BaseModel):
    entries: list[LeaderboardEntry] = Field(default_factory=list)
    count: int = 0


class CommitResponse(BaseModel):
    """Server seed commitment, published before the player commits a bet."""
    game_id: str
    commitment: str = Field(description="SHA3-512 of game_id::server_secret")


class FairnessProof(BaseModel):
    """Everything needed to replay a committed draw."""
    game_id: str
    commitment: str
    server_secret: str
    client_secret: str


class WagerOutcomeResponse(BaseModel):
    game: GameKind
    bet: Decimal
    net_change: Decimal
    payout: Decimal
    authority: Authority
    detail: dict[str, Any] = Field(default_factory=dict)
    proof: Optional[FairnessProof] = None


class MinesRoundResponse(BaseModel):
    """Player-visible view of a Mines round. Mines stay hidden until it ends."""
    round_id: str
    status: RoundStatus
    bet: Decimal
    mines_count: int
    safe_hits: int
    revealed: list[int] = Field(default_factory=list)
    visible_mines: list[int] = Field(default_factory=list)
    current_multiplier: Decimal
    cash_out_value: Decimal
    authority: Authority
    outcome: Optional[WagerOutcomeResponse] = None


class MultiplierRow(BaseModel):
    hits: int
    survival: Decimal
    multiplier: Decimal


class MultiplierTableResponse(BaseModel):
    mines_count: int
    house_edge: Decimal
    rows: list[MultiplierRow] = Field(default_factory=list)
