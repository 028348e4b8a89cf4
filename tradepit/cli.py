"""
Tradepit CLI - Command-line interface for the engine.

Usage:
    tradepit quote buy|sell --base B --tokens T AMOUNT    Price a swap
    tradepit odds M                                       Mines multiplier table
    tradepit flip --bet N --choice heads [--seed S]       Flip a coin
    tradepit commit                                       New server seed
    tradepit verify GAME_ID SECRET COMMITMENT             Check a reveal
             [--client-secret C [--mines M]]              and replay the draw

Nothing here touches balances: every command is a pure engine call.
"""

import argparse
import logging
import sys

from .config import TRADEPIT_LOG_LEVEL


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Tradepit - Simulated exchange and casino engine",
        prog="tradepit",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Quote command
    quote_parser = subparsers.add_parser("quote", help="Price a swap against a pool")
    quote_parser.add_argument("side", choices=["buy", "sell"])
    quote_parser.add_argument("amount", help="USD for buys, tokens for sells")
    quote_parser.add_argument("--base", required=True, help="Pool base (USD) reserve")
    quote_parser.add_argument("--tokens", required=True, help="Pool token reserve")

    # Odds command
    odds_parser = subparsers.add_parser("odds", help="Show Mines multipliers")
    odds_parser.add_argument("mines", type=int, help="Number of mines (3-23)")

    # Flip command
    flip_parser = subparsers.add_parser("flip", help="Flip a coin")
    flip_parser.add_argument("--bet", required=True, help="Whole-number bet")
    flip_parser.add_argument("--choice", default="heads", help="heads or tails")
    flip_parser.add_argument("--seed", help="Deterministic seed (simulated flip)")

    # Commit command
    subparsers.add_parser("commit", help="Generate a server seed and its commitment")

    # Verify command
    verify_parser = subparsers.add_parser("verify", help="Verify a revealed server seed")
    verify_parser.add_argument("game_id")
    verify_parser.add_argument("server_secret")
    verify_parser.add_argument("commitment")
    verify_parser.add_argument("--client-secret", help="Replay the coin-flip draw")
    verify_parser.add_argument(
        "--mines", type=int, help="Replay a Mines layout with M mines (needs --client-secret)"
    )

    args = parser.parse_args(argv)
    logging.basicConfig(level=TRADEPIT_LOG_LEVEL)

    commands = {
        "quote": cmd_quote,
        "odds": cmd_odds,
        "flip": cmd_flip,
        "commit": cmd_commit,
        "verify": cmd_verify,
    }
    command = commands.get(args.command)
    if command is None:
        parser.print_help()
        sys.exit(1)

    try:
        command(args)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)


def cmd_quote(args):
    """Price a swap."""
    from .engine_core import amm
    from .engine_core.pool import Pool

    pool = Pool.seed(args.base, args.tokens)
    if args.side == "buy":
        quote = amm.quote_buy(pool, args.amount)
        print(f"Spend {quote.amount_in} USD -> {quote.amount_out} tokens")
    else:
        quote = amm.quote_sell(pool, args.amount)
        print(f"Sell {quote.amount_in} tokens -> {quote.amount_out} USD")

    print(f"Fee: {quote.fee} USD")
    print(f"Price: {quote.price_before} -> {quote.price_after}")
    print(f"Impact: {quote.price_impact}")


def cmd_odds(args):
    """Print the Mines multiplier table."""
    from .engine_core import mines

    print(f"Mines: {args.mines}, house edge {float(mines.HOUSE_EDGE):.0%}")
    print(f"{'hits':>4}  {'survival':>12}  {'multiplier':>12}")
    for hits, value in mines.multiplier_table(args.mines):
        chance = mines.survival(hits, args.mines)
        print(f"{hits:>4}  {float(chance):>12.6f}  {float(value):>12.4f}x")


def cmd_flip(args):
    """Flip a coin. Seeded flips are simulated and marked as such."""
    from .engine_core import coinflip
    from .engine_core.fairness import SeededEntropy, SystemEntropy

    source = SeededEntropy(args.seed) if args.seed is not None else SystemEntropy()
    outcome = coinflip.resolve(args.bet, args.choice, source)

    label = "" if outcome.is_authoritative else "SIMULATED "
    verdict = "won" if outcome.won else "lost"
    print(f"{label}{outcome.detail['result']}: {verdict} {abs(outcome.net_change)}")


def cmd_commit(args):
    """Generate a server seed. Publish the commitment, keep the secret."""
    from .engine_core.fairness import ServerSeed

    seed = ServerSeed.generate()
    print(f"Game: {seed.game_id}")
    print(f"Commitment: {seed.commitment}")
    print(f"Secret: {seed.secret}")


def cmd_verify(args):
    """Check a revealed server secret, optionally replaying the flip or Mines layout."""
    from .engine_core import coinflip, mines
    from .engine_core.fairness import CommitRevealEntropy, ServerSeed, verify_commitment

    if not verify_commitment(args.game_id, args.server_secret, args.commitment):
        print("Commitment does NOT match")
        sys.exit(1)
    print("Commitment matches")

    if args.mines is not None and not args.client_secret:
        raise ValueError("--mines needs --client-secret")
    if not args.client_secret:
        return

    seed = ServerSeed(game_id=args.game_id, secret=args.server_secret)
    if args.mines is not None:
        state = mines.start(1, args.mines, CommitRevealEntropy(seed, args.client_secret))
        positions = " ".join(str(cell) for cell in sorted(state.mine_positions))
        print(f"Mine positions: {positions}")
    else:
        result = coinflip.draw(CommitRevealEntropy(seed, args.client_secret))
        print(f"Coin-flip result: {result.value}")


if __name__ == "__main__":
    main()
