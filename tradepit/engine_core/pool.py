"""
Pool - Per-coin liquidity state consumed by the AMM.

Design principles:
- Immutable: swaps return a new Pool, never mutate in place
- Reserves are Decimals and strictly positive for a live pool
- The caller owns persistence; this is just a value
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from decimal import Decimal, localcontext

from .errors import InsufficientLiquidity, InvalidAmount
from .numeric import PRECISION, Number, to_decimal


@dataclass(frozen=True)
class Pool:
    """
    Constant-product reserve pair for one coin.

    base_reserve is USD-denominated, token_reserve is in coin units.
    A pool with either reserve at or below zero has no liquidity.
    """
    base_reserve: Decimal
    token_reserve: Decimal

    @classmethod
    def seed(cls, base_reserve: Number, token_reserve: Number) -> Pool:
        """Create a pool from an initial reserve pair (both must be > 0)."""
        base = to_decimal(base_reserve, InvalidAmount)
        tokens = to_decimal(token_reserve, InvalidAmount)
        if base <= 0 or tokens <= 0:
            raise InvalidAmount(
                f"Seed reserves must be positive, got base={base} tokens={tokens}"
            )
        return cls(base_reserve=base, token_reserve=tokens)

    @property
    def has_liquidity(self) -> bool:
        return self.base_reserve > 0 and self.token_reserve > 0

    @property
    def k(self) -> Decimal:
        """Constant product base_reserve * token_reserve."""
        with localcontext() as ctx:
            ctx.prec = PRECISION
            return self.base_reserve * self.token_reserve

    @property
    def spot_price(self) -> Decimal:
        """USD per token at the margin."""
        self.require_liquidity()
        with localcontext() as ctx:
            ctx.prec = PRECISION
            return self.base_reserve / self.token_reserve

    def require_liquidity(self) -> None:
        if not self.has_liquidity:
            raise InsufficientLiquidity(
                f"Pool has no liquidity (base={self.base_reserve}, tokens={self.token_reserve})"
            )

    def with_reserves(self, base_reserve: Decimal, token_reserve: Decimal) -> Pool:
        """Return new pool with replaced reserves."""
        return replace(self, base_reserve=base_reserve, token_reserve=token_reserve)
