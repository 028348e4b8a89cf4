"""
Ledger - In-memory balances with atomic multi-leg postings.

A posting is a list of (account, asset, amount) legs applied all-or-nothing
under one lock. User accounts may never go negative; the house account
(which backs wager payouts) may.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal, localcontext
from typing import Iterable
import logging
import threading
import time

from ..config import ExchangeConfig
from ..engine_core.numeric import PRECISION
from ..engine_core.outcome import WagerOutcome
from .errors import InsufficientBalance, UnauthoritativeSettlement, UnknownAccount

logger = logging.getLogger(__name__)

USD = "USD"
HOUSE = "__house__"
TREASURY = "__treasury__"
SYSTEM_ACCOUNTS = (HOUSE, TREASURY)


@dataclass
class Account:
    """Balances for one holder: USD plus tokens by coin symbol."""
    user_id: str
    usd_balance: Decimal = Decimal(0)
    holdings: dict[str, Decimal] = field(default_factory=dict)

    def get(self, asset: str) -> Decimal:
        if asset == USD:
            return self.usd_balance
        return self.holdings.get(asset, Decimal(0))

    def snapshot(self) -> Account:
        return Account(self.user_id, self.usd_balance, dict(self.holdings))


@dataclass(frozen=True)
class Posting:
    """One applied leg, kept for audit."""
    user_id: str
    asset: str
    amount: Decimal
    reason: str
    created_at: float


Leg = tuple[str, str, Decimal]


class Ledger:
    """
    Balance store for the exchange.

    Single authoritative writer: every mutation goes through apply(),
    which holds `lock` for the whole posting. Callers that must read a
    balance and then decide (e.g. bet only if affordable) hold `lock`
    across both steps.
    """

    def __init__(self, config: ExchangeConfig | None = None):
        self.config = config or ExchangeConfig()
        self.lock = threading.RLock()
        self._accounts: dict[str, Account] = {
            name: Account(name) for name in SYSTEM_ACCOUNTS
        }
        self._postings: list[Posting] = []

    def open_account(self, user_id: str) -> Account:
        """Create an account with the starting balance. Idempotent."""
        with self.lock:
            account = self._accounts.get(user_id)
            if account is None:
                account = Account(user_id, usd_balance=self.config.starting_balance)
                self._accounts[user_id] = account
                logger.info("Opened account %s with %s USD", user_id, account.usd_balance)
            return account.snapshot()

    def get_account(self, user_id: str) -> Account:
        with self.lock:
            return self._require(user_id).snapshot()

    def balance(self, user_id: str, asset: str = USD) -> Decimal:
        with self.lock:
            return self._require(user_id).get(asset)

    def accounts(self) -> list[Account]:
        with self.lock:
            return [
                account.snapshot()
                for name, account in self._accounts.items()
                if name not in SYSTEM_ACCOUNTS
            ]

    def postings(self, user_id: str | None = None) -> list[Posting]:
        with self.lock:
            if user_id is None:
                return list(self._postings)
            return [p for p in self._postings if p.user_id == user_id]

    def _require(self, user_id: str) -> Account:
        account = self._accounts.get(user_id)
        if account is None:
            raise UnknownAccount(f"Account {user_id} not found")
        return account

    def apply(self, legs: Iterable[Leg], reason: str) -> None:
        """
        Apply all legs or none.

        Raises InsufficientBalance if any non-house balance would end up
        negative; nothing is written in that case.
        """
        legs = list(legs)
        with self.lock:
            totals: dict[tuple[str, str], Decimal] = {}
            with localcontext() as ctx:
                ctx.prec = PRECISION
                for user_id, asset, amount in legs:
                    account = self._require(user_id)
                    key = (user_id, asset)
                    totals[key] = totals.get(key, account.get(asset)) + amount

            for (user_id, asset), total in totals.items():
                if total < 0 and user_id != HOUSE:
                    raise InsufficientBalance(
                        f"{user_id} has {self._accounts[user_id].get(asset)} {asset}, "
                        f"short by {-total}"
                    )

            now = time.time()
            for (user_id, asset), total in totals.items():
                account = self._accounts[user_id]
                if asset == USD:
                    account.usd_balance = total
                elif total == 0:
                    account.holdings.pop(asset, None)
                else:
                    account.holdings[asset] = total
            self._postings.extend(
                Posting(user_id, asset, amount, reason, now)
                for user_id, asset, amount in legs
            )

    def settle_wager(self, user_id: str, outcome: WagerOutcome, reason: str) -> None:
        """Move outcome.net_change between the player and the house."""
        if not outcome.is_authoritative:
            raise UnauthoritativeSettlement(
                f"Refusing to settle a simulated {outcome.game.value} outcome"
            )
        self.apply(
            [
                (user_id, USD, outcome.net_change),
                (HOUSE, USD, -outcome.net_change),
            ],
            reason,
        )
        logger.info(
            "Settled %s for %s: net %s", outcome.game.value, user_id, outcome.net_change
        )
