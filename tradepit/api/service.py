"""
API Service - Business logic layer between callers and the exchange.

The service:
1. Translates API requests to exchange and engine calls
2. Issues and consumes commit-reveal server seeds
3. Converts engine and exchange errors into ErrorResponse

This layer is framework-agnostic (can be wrapped by any transport).
"""

from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal, localcontext
from fractions import Fraction
from typing import Optional
import logging

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
from ..config import ExchangeConfig
from ..engine_core import mines
from ..engine_core.amm import SwapQuote, SwapSide
from ..engine_core.fairness import CommitRevealEntropy
from ..engine_core.numeric import PRECISION, truncate
from ..engine_core.outcome import WagerOutcome
from ..exchange import GameTables, Ledger, Market, MinesTable
from ..exchange.ledger import Account, Posting
from ..exchange.market import CoinStats, Standing, Trade

logger = logging.getLogger(__name__)


def _to_decimal(value: Fraction) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = PRECISION
        return truncate(Decimal(value.numerator) / Decimal(value.denominator))


def _error(exc: ValueError) -> ErrorResponse:
    code = getattr(exc, "error_code", ErrorCode.VALIDATION_ERROR.value)
    logger.debug("Rejected request (%s): %s", code, exc)
    return ErrorResponse(error=str(exc), error_code=ErrorCode(code))


@dataclass
class APIService:
    """
    Main API service.

    Usage:
        service = APIService()
        service.open_account(OpenAccountRequest(user_id="alice"))
        service.create_coin(CreateCoinRequest(user_id="alice", symbol="PIT", name="Pit"))
        response = service.buy(BuyRequest(user_id="alice", symbol="PIT", usd_amount="50"))

    Every operation returns its response model or an ErrorResponse; engine
    and exchange errors never escape.
    """
    ledger: Ledger = field(default_factory=lambda: Ledger(ExchangeConfig.from_env()))
    market: Optional[Market] = None
    tables: Optional[GameTables] = None

    def __post_init__(self):
        if self.market is None:
            self.market = Market(self.ledger)
        if self.tables is None:
            self.tables = GameTables(self.ledger)

    # =========================================================================
    # Accounts
    # =========================================================================

    def open_account(self, request: OpenAccountRequest) -> AccountResponse:
        return self._account_to_response(self.ledger.open_account(request.user_id))

    def get_account(self, user_id: str) -> AccountResponse | ErrorResponse:
        try:
            account = self.ledger.get_account(user_id)
        except ValueError as e:
            return _error(e)
        return self._account_to_response(account)

    def transactions(self, user_id: str) -> TransactionListResponse | ErrorResponse:
        """Balance postings on one account, oldest first."""
        try:
            self.ledger.get_account(user_id)
        except ValueError as e:
            return _error(e)
        rows = [self._posting_to_response(p) for p in self.ledger.postings(user_id)]
        return TransactionListResponse(user_id=user_id, transactions=rows, count=len(rows))

    def leaderboard(self, limit: Optional[int] = None) -> LeaderboardResponse | ErrorResponse:
        if limit is not None and limit < 1:
            return ErrorResponse(
                error=f"limit must be at least 1, got {limit}",
                error_code=ErrorCode.VALIDATION_ERROR,
            )
        entries = [self._standing_to_response(s) for s in self.market.leaderboard(limit)]
        return LeaderboardResponse(entries=entries, count=len(entries))

    # =========================================================================
    # Market
    # =========================================================================

    def create_coin(self, request: CreateCoinRequest) -> CoinResponse | ErrorResponse:
        try:
            coin = self.market.create_coin(request.user_id, request.symbol, request.name)
            return self._stats_to_response(self.market.stats(coin.symbol))
        except ValueError as e:
            return _error(e)

    def get_coin(self, symbol: str) -> CoinResponse | ErrorResponse:
        try:
            return self._stats_to_response(self.market.stats(symbol))
        except ValueError as e:
            return _error(e)

    def list_coins(self) -> CoinListResponse:
        coins = [self._stats_to_response(s) for s in self.market.list_stats()]
        return CoinListResponse(coins=coins, count=len(coins))

    def quote(self, request: QuoteRequest) -> QuoteResponse | ErrorResponse:
        """Price a trade against the current pool without executing it."""
        try:
            if request.side == SwapSide.BUY:
                quote = self.market.quote_buy(request.symbol, request.amount)
            else:
                quote = self.market.quote_sell(request.symbol, request.amount)
            symbol = self.market.get_coin(request.symbol).symbol
        except ValueError as e:
            return _error(e)
        return self._quote_to_response(symbol, quote)

    def buy(self, request: BuyRequest) -> TradeResponse | ErrorResponse:
        try:
            trade = self.market.buy(request.user_id, request.symbol, request.usd_amount)
        except ValueError as e:
            return _error(e)
        return self._trade_to_response(trade)

    def sell(self, request: SellRequest) -> TradeResponse | ErrorResponse:
        try:
            trade = self.market.sell(request.user_id, request.symbol, request.token_amount)
        except ValueError as e:
            return _error(e)
        return self._trade_to_response(trade)

    def trade_history(self, symbol: str) -> list[TradeResponse] | ErrorResponse:
        try:
            trades = self.market.history(symbol)
        except ValueError as e:
            return _error(e)
        return [self._trade_to_response(t) for t in trades]

    # =========================================================================
    # Wagers
    # =========================================================================

    def commit(self) -> CommitResponse:
        """
        Publish a server seed commitment.

        The player passes the returned game_id with their own client_secret
        on the next flip or Mines round; the secret is revealed with the result.
        """
        seed = self.tables.commit()
        return CommitResponse(game_id=seed.game_id, commitment=seed.commitment)

    def flip(self, request: CoinFlipRequest) -> WagerOutcomeResponse | ErrorResponse:
        try:
            source = self._claim(request.game_id, request.client_secret)
            outcome = self.tables.flip(
                request.user_id, request.bet, request.choice, draw_source=source
            )
        except ValueError as e:
            return _error(e)
        return self._outcome_to_response(outcome, source)

    def simulate_flip(self, request: SimulateFlipRequest) -> WagerOutcomeResponse | ErrorResponse:
        """Unauthoritative preview; the response is tagged so it cannot be mistaken for a real result."""
        try:
            outcome = self.tables.simulate_flip(request.bet, request.choice, request.seed)
        except ValueError as e:
            return _error(e)
        return self._outcome_to_response(outcome)

    def start_mines(self, request: MinesStartRequest) -> MinesRoundResponse | ErrorResponse:
        try:
            source = self._claim(request.game_id, request.client_secret)
            table = self.tables.open_mines(
                request.user_id, request.bet, request.mines_count, rng=source
            )
        except ValueError as e:
            return _error(e)
        return self._round_to_response(table)

    def reveal(self, request: RevealRequest) -> MinesRoundResponse | ErrorResponse:
        try:
            self.tables.reveal(request.round_id, request.cell)
            table = self.tables.get_round(request.round_id)
        except ValueError as e:
            return _error(e)
        return self._round_to_response(table)

    def cash_out(self, round_id: str) -> MinesRoundResponse | ErrorResponse:
        try:
            self.tables.cash_out(round_id)
            table = self.tables.get_round(round_id)
        except ValueError as e:
            return _error(e)
        return self._round_to_response(table)

    def get_round(self, round_id: str) -> MinesRoundResponse | ErrorResponse:
        try:
            table = self.tables.get_round(round_id)
        except ValueError as e:
            return _error(e)
        return self._round_to_response(table)

    def multiplier_table(self, mines_count: int) -> MultiplierTableResponse | ErrorResponse:
        try:
            table = mines.multiplier_table(mines_count)
        except ValueError as e:
            return _error(e)
        return MultiplierTableResponse(
            mines_count=mines_count,
            house_edge=_to_decimal(mines.HOUSE_EDGE),
            rows=[
                MultiplierRow(
                    hits=hits,
                    survival=_to_decimal(mines.survival(hits, mines_count)),
                    multiplier=_to_decimal(value),
                )
                for hits, value in table
            ],
        )

    # =========================================================================
    # Helper methods
    # =========================================================================

    def _claim(
        self, game_id: Optional[str], client_secret: Optional[str]
    ) -> Optional[CommitRevealEntropy]:
        """Resolve an optional committed seed; None means the tables' default entropy."""
        if game_id is None:
            return None
        return self.tables.claim(game_id, client_secret or "")

    def _account_to_response(self, account: Account) -> AccountResponse:
        return AccountResponse(
            user_id=account.user_id,
            usd_balance=account.usd_balance,
            holdings=dict(account.holdings),
        )

    def _posting_to_response(self, posting: Posting) -> TransactionResponse:
        return TransactionResponse(
            asset=posting.asset,
            amount=posting.amount,
            reason=posting.reason,
            created_at=posting.created_at,
        )

    def _standing_to_response(self, standing: Standing) -> LeaderboardEntry:
        return LeaderboardEntry(
            rank=standing.rank,
            user_id=standing.user_id,
            usd_balance=standing.usd_balance,
            holdings_value=standing.holdings_value,
            net_worth=standing.net_worth,
            total_trades=standing.total_trades,
        )

    def _stats_to_response(self, stats: CoinStats) -> CoinResponse:
        return CoinResponse(
            symbol=stats.symbol,
            name=stats.name,
            price=stats.price,
            base_reserve=stats.base_reserve,
            token_reserve=stats.token_reserve,
            change_24h=stats.change_24h,
            volume_24h=stats.volume_24h,
        )

    def _quote_to_response(self, symbol: str, quote: SwapQuote) -> QuoteResponse:
        return QuoteResponse(
            symbol=symbol,
            side=quote.side,
            amount_in=quote.amount_in,
            amount_out=quote.amount_out,
            fee=quote.fee,
            price_before=quote.price_before,
            price_after=quote.price_after,
            price_impact=quote.price_impact,
        )

    def _trade_to_response(self, trade: Trade) -> TradeResponse:
        return TradeResponse(
            symbol=trade.symbol,
            user_id=trade.user_id,
            side=trade.side,
            usd_amount=trade.usd_amount,
            token_amount=trade.token_amount,
            fee=trade.fee,
            price_after=trade.price_after,
            timestamp=trade.timestamp,
        )

    def _outcome_to_response(
        self,
        outcome: WagerOutcome,
        source: Optional[CommitRevealEntropy] = None,
    ) -> WagerOutcomeResponse:
        proof = None
        if source is not None:
            proof = FairnessProof(
                game_id=source.server_seed.game_id,
                commitment=source.server_seed.commitment,
                server_secret=source.server_seed.secret,
                client_secret=source.client_secret,
            )
        return WagerOutcomeResponse(
            game=outcome.game,
            bet=outcome.bet,
            net_change=outcome.net_change,
            payout=outcome.payout,
            authority=outcome.authority,
            detail=dict(outcome.detail),
            proof=proof,
        )

    def _round_to_response(self, table: MinesTable) -> MinesRoundResponse:
        state = table.state
        return MinesRoundResponse(
            round_id=table.round_id,
            status=state.status,
            bet=state.bet,
            mines_count=state.mines_count,
            safe_hits=state.safe_hits,
            revealed=list(state.reveals),
            visible_mines=sorted(state.visible_mines),
            current_multiplier=_to_decimal(state.current_multiplier),
            cash_out_value=state.cash_out_value,
            authority=state.authority,
            outcome=(
                self._outcome_to_response(table.outcome, table.source)
                if table.outcome is not None else None
            ),
        )
