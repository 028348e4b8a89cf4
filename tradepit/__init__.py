"""
Tradepit - Simulated crypto exchange and casino engine

Play-money trading against constant-product pools, plus provably fair
wager games. The package provides:
- Exact AMM pricing with a 0.3% fee (engine_core.amm)
- Coin-flip and Mines resolution with explicit authority tagging
- Commit-reveal fairness for verifiable draws
- An in-memory exchange (ledger, market, game tables) and API service
"""

__version__ = "0.1.0"
