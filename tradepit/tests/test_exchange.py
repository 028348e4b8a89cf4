"""
Tests for the in-memory exchange.

Validates that:
- Ledger postings are all-or-nothing and user balances never go negative
- Coin creation, buys and sells conserve USD and tokens
- 24h stats use the last trade before the window as reference
- Wagers settle through the house and simulated outcomes are refused
- The leaderboard values holdings at spot price
- Unclaimed seeds and finished rounds expire
"""

import pytest
import threading
from decimal import Decimal, localcontext

from tradepit.config import ExchangeConfig
from tradepit.engine_core.errors import InvalidAmount, InvalidState
from tradepit.engine_core.fairness import SeededEntropy
from tradepit.engine_core.mines import RoundStatus
from tradepit.engine_core.numeric import PRECISION, truncate
from tradepit.engine_core.outcome import Authority
from tradepit.exchange import (
    DuplicateCoin,
    GameTables,
    HOUSE,
    InsufficientBalance,
    InvalidSymbol,
    Ledger,
    TREASURY,
    UnauthoritativeSettlement,
    UnknownAccount,
    UnknownCoin,
    UnknownGame,
    UnknownRound,
    USD,
)

from .conftest import FixedEntropy


def total_usd(market) -> Decimal:
    """USD on the ledger plus USD held in pools."""
    ledger = market.ledger
    users = sum((a.usd_balance for a in ledger.accounts()), Decimal(0))
    system = ledger.balance(HOUSE) + ledger.balance(TREASURY)
    pools = sum((market.pool(s).base_reserve for s in market.symbols()), Decimal(0))
    return users + system + pools


class TestLedger:
    """Tests for balances and postings."""

    def test_open_account_starting_balance(self, ledger):
        """New accounts get the configured starting balance."""
        assert ledger.balance("alice") == Decimal(1000)

    def test_open_account_is_idempotent(self, ledger):
        """Re-opening does not top up."""
        ledger.apply([("alice", USD, Decimal(-400))], reason="spend")
        ledger.open_account("alice")
        assert ledger.balance("alice") == Decimal(600)

    def test_unknown_account(self, ledger):
        """Balances of unknown users are an error, not zero."""
        with pytest.raises(UnknownAccount):
            ledger.balance("mallory")

    def test_posting_is_all_or_nothing(self, ledger):
        """One overdrawn leg rejects the whole posting."""
        with pytest.raises(InsufficientBalance):
            ledger.apply(
                [("alice", USD, Decimal(-50)), ("bob", USD, Decimal(-5000))],
                reason="bad",
            )
        assert ledger.balance("alice") == Decimal(1000)
        assert ledger.balance("bob") == Decimal(1000)
        assert ledger.postings() == []

    def test_house_may_go_negative(self, ledger):
        """The house backs payouts and can run a deficit."""
        ledger.apply([(HOUSE, USD, Decimal(-10)), ("alice", USD, Decimal(10))], reason="pay")
        assert ledger.balance(HOUSE) == Decimal(-10)

    def test_accounts_hide_system_accounts(self, ledger):
        """accounts() lists players only."""
        assert sorted(a.user_id for a in ledger.accounts()) == ["alice", "bob"]

    def test_postings_are_recorded(self, ledger):
        """Each leg is kept for audit with its reason."""
        ledger.apply([("alice", USD, Decimal(-1)), ("bob", USD, Decimal(1))], reason="gift")
        postings = ledger.postings("bob")
        assert len(postings) == 1
        assert postings[0].reason == "gift"
        assert postings[0].amount == Decimal(1)

    def test_settle_refuses_simulated_outcome(self, ledger):
        """Unauthoritative outcomes never touch balances."""
        from tradepit.engine_core import coinflip

        outcome = coinflip.resolve(100, "heads", SeededEntropy(1))
        with pytest.raises(UnauthoritativeSettlement):
            ledger.settle_wager("alice", outcome, reason="coinflip")
        assert ledger.balance("alice") == Decimal(1000)


class TestMarket:
    """Tests for listing and trading coins."""

    def test_create_coin_charges_cost(self, market):
        """Listing costs 1100: 1000 seeds the pool, 100 goes to the treasury."""
        market.ledger.apply([("alice", USD, Decimal(500))], reason="deposit")
        coin = market.create_coin("alice", "pit", "Pit Coin")
        assert coin.symbol == "PIT"
        assert coin.seed_price == Decimal("0.001")
        assert market.ledger.balance("alice") == Decimal(400)
        assert market.ledger.balance(TREASURY) == Decimal(100)
        pool = market.pool("PIT")
        assert pool.base_reserve == Decimal(1000)
        assert pool.token_reserve == Decimal(1_000_000)

    def test_create_coin_unaffordable(self, market):
        """Starting balance alone cannot cover a listing."""
        with pytest.raises(InsufficientBalance):
            market.create_coin("bob", "BOB", "Bob Coin")
        assert market.symbols() == []
        assert market.ledger.balance("bob") == Decimal(1000)

    @pytest.mark.parametrize("symbol", ["", "TOOLONGSYMBOL", "PI-T", "P T"])
    def test_invalid_symbol(self, listed_market, symbol):
        """Symbols are 1-10 letters or digits."""
        with pytest.raises(InvalidSymbol):
            listed_market.create_coin("alice", symbol, "Bad")

    def test_duplicate_symbol(self, listed_market):
        """Symbols are unique regardless of case."""
        with pytest.raises(DuplicateCoin):
            listed_market.create_coin("alice", "pit", "Again")

    def test_unknown_coin(self, market):
        with pytest.raises(UnknownCoin):
            market.buy("alice", "NOPE", 10)

    def test_lookup_ignores_padding_and_case(self, listed_market):
        """Lookups normalize symbols the same way listing does."""
        assert listed_market.get_coin(" pit ").symbol == "PIT"
        trade = listed_market.buy("bob", " pit ", "10")
        assert trade.symbol == "PIT"
        assert listed_market.stats("Pit ").symbol == "PIT"

    def test_trade_during_listing_is_unknown_coin(self, market):
        """A coin is invisible to traders until every registry entry exists."""
        market.ledger.apply([("alice", USD, Decimal(2000))], reason="deposit")
        errors = []

        class TradeOnInsert(dict):
            def __setitem__(self, key, value):
                super().__setitem__(key, value)
                for call in (
                    lambda: market.buy("bob", key, "1"),
                    lambda: market.stats(key),
                    lambda: market.history(key),
                ):
                    try:
                        call()
                    except Exception as e:
                        errors.append(e)

        market._pool_locks = TradeOnInsert()
        market.create_coin("alice", "NEW", "New Coin")

        assert len(errors) == 3
        assert all(isinstance(e, UnknownCoin) for e in errors)
        assert market.ledger.balance("bob") == Decimal(1000)
        assert market.buy("bob", "NEW", "1").symbol == "NEW"

    def test_buy_moves_balances(self, listed_market):
        """Buying debits USD, credits tokens and books the fee."""
        market = listed_market
        trade = market.buy("bob", "PIT", 100)
        assert market.ledger.balance("bob") == Decimal(900)
        assert market.ledger.balance("bob", "PIT") == trade.token_amount
        assert trade.fee == Decimal("0.3")
        assert market.ledger.balance(TREASURY) == Decimal("100.3")
        assert market.pool("PIT").base_reserve == Decimal("1099.7")

    def test_sell_moves_balances(self, listed_market):
        """Selling returns USD and removes the tokens."""
        market = listed_market
        bought = market.buy("bob", "PIT", 100)
        sold = market.sell("bob", "PIT", bought.token_amount)
        assert market.ledger.balance("bob", "PIT") == 0
        assert "PIT" not in market.ledger.get_account("bob").holdings
        assert market.ledger.balance("bob") == Decimal(900) + sold.usd_amount
        assert sold.usd_amount < Decimal(100)

    def test_usd_is_conserved(self, listed_market):
        """Ledger USD plus pool USD is unchanged by trading."""
        market = listed_market
        before = total_usd(market)
        bought = market.buy("bob", "PIT", "250.5")
        market.sell("bob", "PIT", bought.token_amount / 3)
        market.buy("alice", "PIT", 1)
        assert total_usd(market) == before

    def test_tokens_are_conserved(self, listed_market):
        """Tokens held plus tokens pooled equal the seed supply."""
        market = listed_market
        market.buy("bob", "PIT", 100)
        market.buy("alice", "PIT", 40)
        market.sell("bob", "PIT", 1000)
        held = market.ledger.balance("bob", "PIT") + market.ledger.balance("alice", "PIT")
        assert held + market.pool("PIT").token_reserve == Decimal(1_000_000)

    def test_overspend_leaves_pool_untouched(self, listed_market):
        """A rejected buy changes neither pool nor history."""
        market = listed_market
        pool = market.pool("PIT")
        with pytest.raises(InsufficientBalance):
            market.buy("bob", "PIT", 5000)
        assert market.pool("PIT") == pool
        assert market.history("PIT") == []

    def test_sell_more_than_held(self, listed_market):
        """Selling tokens you do not have is InsufficientBalance."""
        with pytest.raises(InsufficientBalance):
            listed_market.sell("bob", "PIT", 10)

    def test_non_positive_trade(self, listed_market):
        with pytest.raises(InvalidAmount):
            listed_market.buy("bob", "PIT", 0)

    def test_concurrent_buys_serialize(self, listed_market):
        """Parallel buys on one pool keep k non-decreasing and USD conserved."""
        market = listed_market
        for i in range(8):
            market.ledger.open_account(f"user{i}")
        before = total_usd(market)
        k_before = market.pool("PIT").k

        def worker(user_id):
            for _ in range(25):
                market.buy(user_id, "PIT", "3.3")

        threads = [threading.Thread(target=worker, args=(f"user{i}",)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(market.history("PIT")) == 200
        assert total_usd(market) == before
        assert market.pool("PIT").k >= k_before


class TestStats:
    """Tests for market summaries."""

    def test_fresh_coin(self, listed_market):
        """A new coin has no change and no volume."""
        stats = listed_market.stats("PIT")
        assert stats.price == Decimal("0.001")
        assert stats.change_24h == 0
        assert stats.volume_24h == 0

    def test_change_and_volume_in_window(self, listed_market, clock):
        """Trades inside the window count toward volume and change."""
        market = listed_market
        clock.advance(60)
        market.buy("bob", "PIT", 100)
        market.buy("alice", "PIT", 50)
        stats = market.stats("PIT")
        assert stats.volume_24h == Decimal(150)
        assert stats.change_24h > 0
        expected = (stats.price - Decimal("0.001")) / Decimal("0.001") * 100
        assert abs(stats.change_24h - expected) < Decimal("1e-20")

    def test_old_trades_become_reference(self, listed_market, clock):
        """After 24h a trade drops out of volume and becomes the baseline."""
        market = listed_market
        market.buy("bob", "PIT", 100)
        clock.advance(25 * 3600)
        stats = market.stats("PIT")
        assert stats.volume_24h == 0
        assert stats.change_24h == 0

    def test_list_stats_sorted(self, listed_market):
        """Listings come back by symbol."""
        listed_market.create_coin("alice", "ABC", "Alpha")
        assert [s.symbol for s in listed_market.list_stats()] == ["ABC", "PIT"]

    def test_history_since(self, listed_market, clock):
        """history(since=...) filters by timestamp."""
        market = listed_market
        market.buy("bob", "PIT", 10)
        clock.advance(100)
        market.buy("bob", "PIT", 10)
        assert len(market.history("PIT")) == 2
        assert len(market.history("PIT", since=clock.now)) == 1


class TestLeaderboard:
    """Tests for net-worth rankings."""

    def test_fresh_accounts_tie_in_opening_order(self, market):
        """Equal net worth keeps account order; system accounts are left out."""
        board = market.leaderboard()
        assert [s.user_id for s in board] == ["alice", "bob"]
        assert [s.rank for s in board] == [1, 2]
        assert all(s.net_worth == Decimal(1000) for s in board)
        assert all(s.holdings_value == 0 and s.total_trades == 0 for s in board)

    def test_holdings_valued_at_spot(self, listed_market):
        """Token holdings count at the pool's current price."""
        listed_market.buy("bob", "PIT", "100")
        listed_market.buy("bob", "PIT", "10")
        held = listed_market.ledger.balance("bob", "PIT")
        price = listed_market.pool("PIT").spot_price
        with localcontext() as ctx:
            ctx.prec = PRECISION
            expected = truncate(held * price)

        bob = next(s for s in listed_market.leaderboard() if s.user_id == "bob")
        assert bob.usd_balance == Decimal(890)
        assert bob.holdings_value == expected
        assert bob.net_worth == bob.usd_balance + bob.holdings_value
        assert bob.total_trades == 2

    def test_ranked_by_net_worth(self, market):
        market.ledger.apply([("bob", USD, Decimal(500))], reason="deposit")
        board = market.leaderboard()
        assert [(s.rank, s.user_id) for s in board] == [(1, "bob"), (2, "alice")]
        assert board[0].net_worth == Decimal(1500)

    def test_limit(self, market):
        market.ledger.apply([("bob", USD, Decimal(1))], reason="deposit")
        board = market.leaderboard(limit=1)
        assert len(board) == 1
        assert board[0].user_id == "bob"


class TestCoinFlipTable:
    """Tests for settled coin flips."""

    def test_win_credits_player(self, heads_tables):
        """Winning flip moves the bet from house to player."""
        outcome = heads_tables.flip("alice", 100, "heads")
        assert outcome.net_change == Decimal(100)
        assert heads_tables.ledger.balance("alice") == Decimal(1100)
        assert heads_tables.ledger.balance(HOUSE) == Decimal(-100)

    def test_loss_debits_player(self, tails_tables):
        """Losing flip moves the bet to the house."""
        tails_tables.flip("alice", 100, "heads")
        assert tails_tables.ledger.balance("alice") == Decimal(900)
        assert tails_tables.ledger.balance(HOUSE) == Decimal(100)

    def test_bet_must_be_affordable(self, heads_tables):
        """A player cannot bet more than they hold."""
        with pytest.raises(InsufficientBalance):
            heads_tables.flip("alice", 1001, "heads")
        heads_tables.flip("alice", 1000, "tails")
        assert heads_tables.ledger.balance("alice") == 0

    def test_seeded_source_cannot_settle(self, heads_tables):
        """Seeded entropy is refused before anything is drawn."""
        with pytest.raises(UnauthoritativeSettlement):
            heads_tables.flip("alice", 10, "heads", draw_source=SeededEntropy(1))
        assert heads_tables.ledger.balance("alice") == Decimal(1000)

    def test_simulated_flip_never_settles(self, heads_tables):
        """simulate_flip returns an unauthoritative outcome and leaves balances alone."""
        outcome = heads_tables.simulate_flip(100, "heads", seed="x")
        assert not outcome.is_authoritative
        assert heads_tables.ledger.postings() == []


class TestMinesTable:
    """Tests for settled Mines rounds (mines on cells 0-4)."""

    def test_open_escrows_stake(self, heads_tables):
        """The stake moves to the house when the round opens."""
        table = heads_tables.open_mines("alice", 100, 5)
        assert table.state.status == RoundStatus.IN_PROGRESS
        assert heads_tables.ledger.balance("alice") == Decimal(900)
        assert heads_tables.ledger.balance(HOUSE) == Decimal(100)

    def test_cash_out_pays_multiplier(self, heads_tables):
        """Cash-out returns bet * multiplier from the house."""
        table = heads_tables.open_mines("alice", 100, 5)
        heads_tables.reveal(table.round_id, 10)
        state, outcome = heads_tables.cash_out(table.round_id)
        assert state.status == RoundStatus.CASHED_OUT
        assert outcome.payout == Decimal("123.75")
        assert heads_tables.ledger.balance("alice") == Decimal("1023.75")
        assert heads_tables.ledger.balance(HOUSE) == Decimal("-23.75")

    def test_loss_keeps_stake(self, heads_tables):
        """Hitting a mine leaves the stake with the house."""
        table = heads_tables.open_mines("alice", 100, 5)
        state, outcome = heads_tables.reveal(table.round_id, 3)
        assert state.status == RoundStatus.LOST
        assert outcome.net_change == Decimal(-100)
        assert heads_tables.ledger.balance("alice") == Decimal(900)
        assert heads_tables.get_round(table.round_id).outcome == outcome

    def test_no_second_settlement(self, heads_tables):
        """A settled round cannot be cashed out or revealed again."""
        table = heads_tables.open_mines("alice", 100, 5)
        heads_tables.reveal(table.round_id, 10)
        heads_tables.cash_out(table.round_id)
        with pytest.raises(InvalidState):
            heads_tables.cash_out(table.round_id)
        with pytest.raises(InvalidState):
            heads_tables.reveal(table.round_id, 11)
        assert heads_tables.ledger.balance("alice") == Decimal("1023.75")

    def test_racing_cash_outs_pay_once(self, heads_tables):
        """Concurrent cash-outs on one round settle exactly once."""
        table = heads_tables.open_mines("alice", 100, 5)
        heads_tables.reveal(table.round_id, 10)
        errors = []

        def cash_out():
            try:
                heads_tables.cash_out(table.round_id)
            except InvalidState as e:
                errors.append(e)

        threads = [threading.Thread(target=cash_out) for _ in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(errors) == 5
        assert heads_tables.ledger.balance("alice") == Decimal("1023.75")

    def test_unaffordable_round(self, heads_tables):
        with pytest.raises(InsufficientBalance):
            heads_tables.open_mines("alice", 1000.01, 5)
        assert heads_tables.ledger.balance(HOUSE) == 0

    def test_unknown_round(self, heads_tables):
        with pytest.raises(UnknownRound):
            heads_tables.reveal("missing", 3)

    def test_preview_is_unregistered(self, heads_tables):
        """Previews are simulated and not settled."""
        preview = heads_tables.preview_mines(10, 5, seed=1)
        assert preview.authority == Authority.UNAUTHORITATIVE
        assert heads_tables.ledger.balance("alice") == Decimal(1000)


class TestSeedRegistry:
    """Tests for commit-reveal seed bookkeeping."""

    def test_claim_once(self, heads_tables):
        """A committed seed backs exactly one wager."""
        seed = heads_tables.commit()
        source = heads_tables.claim(seed.game_id, "client")
        assert source.server_seed == seed
        with pytest.raises(InvalidState):
            heads_tables.claim(seed.game_id, "client")

    def test_unknown_game(self, heads_tables):
        with pytest.raises(UnknownGame):
            heads_tables.claim("nope", "client")

    def test_empty_client_secret_does_not_burn_seed(self, heads_tables):
        """A rejected claim leaves the seed usable."""
        seed = heads_tables.commit()
        with pytest.raises(ValueError):
            heads_tables.claim(seed.game_id, "")
        heads_tables.claim(seed.game_id, "client")

    def test_committed_flip_settles(self, heads_tables):
        """Commit-reveal flips are authoritative and settle."""
        seed = heads_tables.commit()
        source = heads_tables.claim(seed.game_id, "client")
        outcome = heads_tables.flip("alice", 50, "heads", draw_source=source)
        assert outcome.is_authoritative
        assert heads_tables.ledger.balance("alice") == Decimal(1000) + outcome.net_change


class TestRegistryExpiry:
    """Tests for bounding the seed and round registries."""

    @pytest.fixture
    def tables(self, ledger, clock) -> GameTables:
        return GameTables(
            ledger,
            entropy=FixedEntropy,
            clock=clock,
            seed_ttl=60,
            round_ttl=120,
            max_pending_seeds=3,
        )

    def test_unclaimed_seed_expires(self, tables, clock):
        """A seed left unclaimed past its TTL can no longer back a wager."""
        seed = tables.commit()
        clock.advance(61)
        with pytest.raises(UnknownGame):
            tables.claim(seed.game_id, "client")
        assert tables.pending_seeds() == 0

    def test_seed_claimable_before_expiry(self, tables, clock):
        seed = tables.commit()
        clock.advance(59)
        assert tables.claim(seed.game_id, "client").server_seed == seed

    def test_pending_seeds_are_capped(self, tables):
        """Past the cap the oldest unclaimed seed is dropped."""
        seeds = [tables.commit() for _ in range(5)]
        assert tables.pending_seeds() == 3
        with pytest.raises(UnknownGame):
            tables.claim(seeds[0].game_id, "client")
        tables.claim(seeds[-1].game_id, "client")

    def test_claimed_seed_leaves_pending(self, tables, clock):
        """Replays are refused while the id is remembered, then it is unknown."""
        seed = tables.commit()
        tables.claim(seed.game_id, "client")
        assert tables.pending_seeds() == 0
        with pytest.raises(InvalidState):
            tables.claim(seed.game_id, "client")
        clock.advance(61)
        with pytest.raises(UnknownGame):
            tables.claim(seed.game_id, "client")

    def test_finished_round_is_forgotten(self, tables, clock):
        """Settled rounds are dropped round_ttl after they end; live ones stay."""
        finished = tables.open_mines("alice", 10, 5)
        tables.reveal(finished.round_id, 0)
        live = tables.open_mines("bob", 10, 5)
        assert finished.finished_at == clock.now

        clock.advance(121)
        tables.open_mines("alice", 10, 5)
        with pytest.raises(UnknownRound):
            tables.get_round(finished.round_id)
        assert tables.get_round(live.round_id) is live

    def test_committed_round_keeps_its_source(self, tables):
        seed = tables.commit()
        source = tables.claim(seed.game_id, "client")
        table = tables.open_mines("alice", 10, 5, rng=source)
        assert table.source is source
        assert tables.open_mines("alice", 10, 5).source is None


class TestConfig:
    """Tests for exchange configuration."""

    def test_defaults(self):
        config = ExchangeConfig()
        assert config.starting_balance == Decimal(1000)
        assert config.coin_creation_cost == Decimal(1100)

    def test_from_env(self, monkeypatch):
        """Economics can be overridden from the environment."""
        monkeypatch.setenv("TRADEPIT_STARTING_BALANCE", "250")
        monkeypatch.setenv("TRADEPIT_SEED_TOKEN_RESERVE", "5000")
        config = ExchangeConfig.from_env()
        assert config.starting_balance == Decimal(250)
        assert config.seed_token_reserve == Decimal(5000)
        assert Ledger(config).open_account("carol").usd_balance == Decimal(250)

    def test_rejects_empty_seed(self):
        with pytest.raises(ValueError):
            ExchangeConfig(seed_base_reserve=Decimal(0))

    def test_tables_default_to_system_entropy(self, ledger):
        """Without injection, flips draw from the OS and settle."""
        outcome = GameTables(ledger).flip("bob", 1, "heads")
        assert outcome.is_authoritative
        assert ledger.balance("bob") in (Decimal(999), Decimal(1001))
