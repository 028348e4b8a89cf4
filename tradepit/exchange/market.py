"""
Market - Coins, their pools, and trade history.

Concurrency:
- Each pool has its own lock. A trade quotes against the pool, posts the
  balance legs, and commits the new pool while holding that lock, so two
  trades on one coin are serialized and never price off a stale snapshot.
- Lock order is always pool -> ledger.

Fees skimmed by the AMM are booked to the treasury account.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, localcontext
from typing import Callable
import logging
import re
import threading
import time

from ..config import ExchangeConfig
from ..engine_core import amm
from ..engine_core.amm import SwapQuote, SwapSide
from ..engine_core.numeric import PRECISION, Number, truncate
from ..engine_core.pool import Pool
from .errors import DuplicateCoin, InvalidSymbol, UnknownCoin
from .ledger import TREASURY, USD, Ledger

logger = logging.getLogger(__name__)

SYMBOL_PATTERN = re.compile(r"^[A-Z0-9]{1,10}$")


def normalize_symbol(symbol: str | None) -> str:
    return (symbol or "").strip().upper()


@dataclass(frozen=True)
class Coin:
    symbol: str
    name: str
    creator: str
    created_at: float
    seed_price: Decimal


@dataclass(frozen=True)
class Trade:
    """An executed swap, as recorded in the coin's history."""
    symbol: str
    user_id: str
    side: SwapSide
    usd_amount: Decimal
    token_amount: Decimal
    fee: Decimal
    price_after: Decimal
    timestamp: float


@dataclass(frozen=True)
class CoinStats:
    """Market summary derived from the pool and recent trades."""
    symbol: str
    name: str
    price: Decimal
    base_reserve: Decimal
    token_reserve: Decimal
    change_24h: Decimal
    volume_24h: Decimal


@dataclass(frozen=True)
class Standing:
    """One player's row on the leaderboard."""
    rank: int
    user_id: str
    usd_balance: Decimal
    holdings_value: Decimal
    net_worth: Decimal
    total_trades: int


class Market:
    """
    Registry of tradeable coins.

    Usage:
        market = Market(ledger)
        market.create_coin("alice", "PIT", "Pit Coin")
        trade = market.buy("bob", "PIT", "50")
    """

    def __init__(
        self,
        ledger: Ledger,
        config: ExchangeConfig | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.ledger = ledger
        self.config = config or ledger.config
        self.clock = clock
        self._registry_lock = threading.Lock()
        self._coins: dict[str, Coin] = {}
        self._pools: dict[str, Pool] = {}
        self._pool_locks: dict[str, threading.Lock] = {}
        self._trades: dict[str, list[Trade]] = {}

    # =========================================================================
    # Registry
    # =========================================================================

    def create_coin(self, user_id: str, symbol: str, name: str) -> Coin:
        """
        List a new coin.

        Charges coin_creation_cost: the seed base reserve goes into the pool,
        the remainder to the treasury.
        """
        symbol = normalize_symbol(symbol)
        if not SYMBOL_PATTERN.match(symbol):
            raise InvalidSymbol(f"Symbol must be 1-10 letters or digits, got {symbol!r}")
        if not name or not name.strip():
            raise InvalidSymbol("Coin name must not be empty")

        config = self.config
        pool = Pool.seed(config.seed_base_reserve, config.seed_token_reserve)
        listing_fee = config.coin_creation_cost - config.seed_base_reserve

        with self._registry_lock:
            if symbol in self._coins:
                raise DuplicateCoin(f"Coin {symbol} already exists")
            legs = [(user_id, USD, -config.coin_creation_cost)]
            if listing_fee > 0:
                legs.append((TREASURY, USD, listing_fee))
            self.ledger.apply(legs, reason=f"create coin {symbol}")

            coin = Coin(
                symbol=symbol,
                name=name.strip(),
                creator=user_id,
                created_at=self.clock(),
                seed_price=pool.spot_price,
            )
            # Readers look up _coins without the registry lock, so it goes last
            self._pools[symbol] = pool
            self._pool_locks[symbol] = threading.Lock()
            self._trades[symbol] = []
            self._coins[symbol] = coin

        logger.info("Created coin %s (%s) for %s", symbol, coin.name, user_id)
        return coin

    def get_coin(self, symbol: str) -> Coin:
        coin = self._coins.get(normalize_symbol(symbol))
        if coin is None:
            raise UnknownCoin(f"Coin {symbol} not found")
        return coin

    def pool(self, symbol: str) -> Pool:
        return self._pools[self.get_coin(symbol).symbol]

    def symbols(self) -> list[str]:
        return sorted(self._coins)

    # =========================================================================
    # Trading
    # =========================================================================

    def quote_buy(self, symbol: str, usd_in: Number) -> SwapQuote:
        return amm.quote_buy(self.pool(symbol), usd_in)

    def quote_sell(self, symbol: str, tokens_in: Number) -> SwapQuote:
        return amm.quote_sell(self.pool(symbol), tokens_in)

    def buy(self, user_id: str, symbol: str, usd_in: Number) -> Trade:
        """Spend USD on tokens. Balance, pool and history change together or not at all."""
        coin = self.get_coin(symbol)
        with self._pool_locks[coin.symbol]:
            new_pool, quote = amm.execute_buy(self._pools[coin.symbol], usd_in)
            legs = [
                (user_id, USD, -quote.amount_in),
                (user_id, coin.symbol, quote.amount_out),
            ]
            if quote.fee > 0:
                legs.append((TREASURY, USD, quote.fee))
            self.ledger.apply(legs, reason=f"buy {coin.symbol}")
            return self._commit(coin, user_id, new_pool, quote)

    def sell(self, user_id: str, symbol: str, tokens_in: Number) -> Trade:
        """Sell tokens for USD."""
        coin = self.get_coin(symbol)
        with self._pool_locks[coin.symbol]:
            new_pool, quote = amm.execute_sell(self._pools[coin.symbol], tokens_in)
            legs = [
                (user_id, coin.symbol, -quote.amount_in),
                (user_id, USD, quote.amount_out),
            ]
            if quote.fee > 0:
                legs.append((TREASURY, USD, quote.fee))
            self.ledger.apply(legs, reason=f"sell {coin.symbol}")
            return self._commit(coin, user_id, new_pool, quote)

    def _commit(self, coin: Coin, user_id: str, new_pool: Pool, quote: SwapQuote) -> Trade:
        if quote.side == SwapSide.BUY:
            usd_amount, token_amount = quote.amount_in, quote.amount_out
        else:
            usd_amount, token_amount = quote.amount_out, quote.amount_in

        trade = Trade(
            symbol=coin.symbol,
            user_id=user_id,
            side=quote.side,
            usd_amount=usd_amount,
            token_amount=token_amount,
            fee=quote.fee,
            price_after=quote.price_after,
            timestamp=self.clock(),
        )
        self._pools[coin.symbol] = new_pool
        self._trades[coin.symbol].append(trade)
        logger.info(
            "%s %s %s: %s USD / %s tokens",
            user_id, quote.side.value, coin.symbol, usd_amount, token_amount,
        )
        return trade

    # =========================================================================
    # History and stats
    # =========================================================================

    def history(self, symbol: str, since: float | None = None) -> list[Trade]:
        trades = self._trades[self.get_coin(symbol).symbol]
        if since is None:
            return list(trades)
        return [t for t in trades if t.timestamp >= since]

    def stats(self, symbol: str, now: float | None = None) -> CoinStats:
        """
        Price, 24h change (percent) and 24h USD volume.

        The reference price is the last trade at or before the window start,
        falling back to the seed price.
        """
        coin = self.get_coin(symbol)
        pool = self._pools[coin.symbol]
        now = self.clock() if now is None else now
        window_start = now - self.config.stats_window_hours * 3600

        reference = coin.seed_price
        volume = Decimal(0)
        for trade in self._trades[coin.symbol]:
            if trade.timestamp <= window_start:
                reference = trade.price_after
            elif trade.timestamp <= now:
                volume += trade.usd_amount

        price = pool.spot_price
        with localcontext() as ctx:
            ctx.prec = PRECISION
            change = (price - reference) / reference * 100

        return CoinStats(
            symbol=coin.symbol,
            name=coin.name,
            price=price,
            base_reserve=pool.base_reserve,
            token_reserve=pool.token_reserve,
            change_24h=change,
            volume_24h=volume,
        )

    def list_stats(self, now: float | None = None) -> list[CoinStats]:
        return [self.stats(symbol, now) for symbol in self.symbols()]

    # =========================================================================
    # Leaderboard
    # =========================================================================

    def leaderboard(self, limit: int | None = None) -> list[Standing]:
        """
        Players ranked by net worth: USD plus holdings valued at spot price.

        Equal net worth keeps account-opening order.
        """
        symbols = self.symbols()
        prices = {symbol: self._pools[symbol].spot_price for symbol in symbols}
        trade_counts: dict[str, int] = {}
        for symbol in symbols:
            for trade in list(self._trades[symbol]):
                trade_counts[trade.user_id] = trade_counts.get(trade.user_id, 0) + 1

        rows = []
        with localcontext() as ctx:
            ctx.prec = PRECISION
            for account in self.ledger.accounts():
                holdings_value = truncate(sum(
                    (amount * prices[symbol]
                     for symbol, amount in account.holdings.items() if symbol in prices),
                    Decimal(0),
                ))
                rows.append((account, holdings_value, account.usd_balance + holdings_value))

        rows.sort(key=lambda row: row[2], reverse=True)
        if limit is not None:
            rows = rows[:limit]
        return [
            Standing(
                rank=rank,
                user_id=account.user_id,
                usd_balance=account.usd_balance,
                holdings_value=holdings_value,
                net_worth=net_worth,
                total_trades=trade_counts.get(account.user_id, 0),
            )
            for rank, (account, holdings_value, net_worth) in enumerate(rows, start=1)
        ]
