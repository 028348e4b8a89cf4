"""
AMM Swap Engine - Constant-product pricing with a proportional fee.

Fee accrual rule (applies to both legs):
    The fee is skimmed off the trader's side and never enters the reserves.
    Buy:  effective_in = usd_in * FEE_MULTIPLIER goes into base_reserve.
    Sell: the pool releases base_out_before_fee; the trader receives
          base_out_before_fee * FEE_MULTIPLIER.
    SwapQuote.fee reports the skimmed amount so the caller can book it.

Under this rule k is conserved by every trade (rounding only ever moves it
up), and an immediate buy-then-sell returns at most usd_in * FEE_MULTIPLIER**2.

Usage:
    quote = quote_buy(pool, "100")
    new_pool, quote = execute_buy(pool, "100")
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, ROUND_CEILING, localcontext
from enum import Enum
import logging

from .errors import InsufficientLiquidity, InvalidAmount
from .numeric import PRECISION, Number, to_decimal, truncate
from .pool import Pool

logger = logging.getLogger(__name__)

FEE_RATE = Decimal("0.003")
FEE_MULTIPLIER = Decimal(1) - FEE_RATE


class SwapSide(str, Enum):
    """Direction of a trade from the trader's point of view."""
    BUY = "buy"
    SELL = "sell"


@dataclass(frozen=True)
class SwapQuote:
    """
    Priced trade against a pool snapshot.

    amount_in / amount_out are in the trader's units:
    - buy:  USD in, tokens out
    - sell: tokens in, USD out
    """
    side: SwapSide
    amount_in: Decimal
    amount_out: Decimal
    fee: Decimal
    price_before: Decimal
    price_after: Decimal

    @property
    def price_impact(self) -> Decimal:
        """Relative move of the spot price caused by this trade."""
        with localcontext() as ctx:
            ctx.prec = PRECISION
            return (self.price_after - self.price_before) / self.price_before

    @property
    def average_price(self) -> Decimal | None:
        """USD per token actually realised, or None for an empty fill."""
        if self.amount_out == 0:
            return None
        with localcontext() as ctx:
            ctx.prec = PRECISION
            if self.side == SwapSide.BUY:
                return self.amount_in / self.amount_out
            return self.amount_out / self.amount_in


def _positive(amount: Number) -> Decimal:
    value = to_decimal(amount, InvalidAmount)
    if value <= 0:
        raise InvalidAmount(f"Amount must be positive, got {value}")
    return value


def _divide_up(numerator: Decimal, denominator: Decimal) -> Decimal:
    """Division rounded toward the pool, so a reserve is never understated."""
    with localcontext() as ctx:
        ctx.prec = PRECISION
        ctx.rounding = ROUND_CEILING
        return numerator / denominator


def _buy(pool: Pool, usd_in: Number) -> tuple[Pool, SwapQuote]:
    usd = _positive(usd_in)
    pool.require_liquidity()

    with localcontext() as ctx:
        ctx.prec = PRECISION
        effective_in = truncate(usd * FEE_MULTIPLIER)
        fee = usd - effective_in
        new_base = pool.base_reserve + effective_in
        new_token = _divide_up(pool.k, new_base)
        tokens_out = max(truncate(pool.token_reserve - new_token), Decimal(0))
        remaining = pool.token_reserve - tokens_out

    if remaining <= 0:
        raise InsufficientLiquidity("Trade would exhaust the token reserve")

    new_pool = pool.with_reserves(new_base, remaining)
    quote = SwapQuote(
        side=SwapSide.BUY,
        amount_in=usd,
        amount_out=tokens_out,
        fee=fee,
        price_before=pool.spot_price,
        price_after=new_pool.spot_price,
    )
    return new_pool, quote


def _sell(pool: Pool, tokens_in: Number) -> tuple[Pool, SwapQuote]:
    tokens = _positive(tokens_in)
    pool.require_liquidity()

    with localcontext() as ctx:
        ctx.prec = PRECISION
        new_token = pool.token_reserve + tokens
        new_base = _divide_up(pool.k, new_token)
        gross_out = max(truncate(pool.base_reserve - new_base), Decimal(0))
        remaining = pool.base_reserve - gross_out
        usd_out = truncate(gross_out * FEE_MULTIPLIER)
        fee = gross_out - usd_out

    if remaining <= 0:
        raise InsufficientLiquidity("Trade would exhaust the base reserve")

    new_pool = pool.with_reserves(remaining, new_token)
    quote = SwapQuote(
        side=SwapSide.SELL,
        amount_in=tokens,
        amount_out=usd_out,
        fee=fee,
        price_before=pool.spot_price,
        price_after=new_pool.spot_price,
    )
    return new_pool, quote


def quote_buy(pool: Pool, usd_in: Number) -> SwapQuote:
    """Price spending `usd_in` USD on tokens. Does not touch the pool."""
    return _buy(pool, usd_in)[1]


def quote_sell(pool: Pool, tokens_in: Number) -> SwapQuote:
    """Price selling `tokens_in` tokens for USD. Does not touch the pool."""
    return _sell(pool, tokens_in)[1]


def execute_buy(pool: Pool, usd_in: Number) -> tuple[Pool, SwapQuote]:
    """
    Execute a buy and return (new_pool, quote).

    Trades too small to yield any tokens after truncation are rejected,
    so the trader never pays for nothing.
    """
    new_pool, quote = _buy(pool, usd_in)
    if quote.amount_out <= 0:
        raise InvalidAmount(f"Buy of {quote.amount_in} USD yields no tokens")
    logger.debug(
        "buy %s USD -> %s tokens (fee %s)", quote.amount_in, quote.amount_out, quote.fee
    )
    return new_pool, quote


def execute_sell(pool: Pool, tokens_in: Number) -> tuple[Pool, SwapQuote]:
    """Execute a sell and return (new_pool, quote)."""
    new_pool, quote = _sell(pool, tokens_in)
    if quote.amount_out <= 0:
        raise InvalidAmount(f"Sell of {quote.amount_in} tokens yields no USD")
    logger.debug(
        "sell %s tokens -> %s USD (fee %s)", quote.amount_in, quote.amount_out, quote.fee
    )
    return new_pool, quote
