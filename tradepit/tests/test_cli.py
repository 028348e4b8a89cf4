"""
Tests for the command-line interface.
"""

import pytest

from tradepit.cli import main
from tradepit.engine_core import mines
from tradepit.engine_core.fairness import CommitRevealEntropy, ServerSeed


class TestCLI:
    """Tests for CLI commands."""

    def test_quote_buy(self, capsys):
        """quote buy prints the fill and the fee."""
        main(["quote", "buy", "--base", "1000", "--tokens", "1000000", "100"])
        out = capsys.readouterr().out
        assert "Spend 100 USD -> 90661.0" in out
        assert "Fee: 0.3" in out

    def test_quote_sell(self, capsys):
        main(["quote", "sell", "--base", "1000", "--tokens", "1000000", "5000"])
        assert "tokens ->" in capsys.readouterr().out

    def test_odds(self, capsys):
        """odds lists one row per reachable hit count."""
        main(["odds", "23"])
        out = capsys.readouterr().out
        assert "297.0000x" in out
        assert "12.3750x" in out

    def test_seeded_flip_is_marked_simulated(self, capsys):
        main(["flip", "--bet", "10", "--choice", "tails", "--seed", "7"])
        assert capsys.readouterr().out.startswith("SIMULATED ")

    def test_live_flip(self, capsys):
        main(["flip", "--bet", "10"])
        out = capsys.readouterr().out
        assert not out.startswith("SIMULATED")
        assert "won 10" in out or "lost 10" in out

    def test_invalid_bet_exits(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["flip", "--bet", "0"])
        assert exc.value.code == 1
        assert "Error:" in capsys.readouterr().out

    def test_commit_then_verify(self, capsys):
        """A generated seed verifies and replays a flip."""
        seed = ServerSeed.generate()
        main(["verify", seed.game_id, seed.secret, seed.commitment, "--client-secret", "c"])
        out = capsys.readouterr().out
        assert "Commitment matches" in out
        assert "Coin-flip result:" in out

    def test_verify_replays_mines_layout(self, capsys):
        """--mines prints the sorted layout a committed round would use."""
        seed = ServerSeed.generate()
        main([
            "verify", seed.game_id, seed.secret, seed.commitment,
            "--client-secret", "c", "--mines", "5",
        ])
        out = capsys.readouterr().out
        expected = sorted(mines.start(1, 5, CommitRevealEntropy(seed, "c")).mine_positions)
        assert f"Mine positions: {' '.join(map(str, expected))}" in out
        assert "Coin-flip result" not in out

    def test_verify_mines_needs_client_secret(self, capsys):
        seed = ServerSeed.generate()
        with pytest.raises(SystemExit) as exc:
            main(["verify", seed.game_id, seed.secret, seed.commitment, "--mines", "5"])
        assert exc.value.code == 1
        assert "--mines needs --client-secret" in capsys.readouterr().out

    def test_verify_mismatch(self, capsys):
        seed = ServerSeed.generate()
        with pytest.raises(SystemExit):
            main(["verify", seed.game_id, "wrong", seed.commitment])
        assert "does NOT match" in capsys.readouterr().out

    def test_commit(self, capsys):
        main(["commit"])
        out = capsys.readouterr().out
        assert "Commitment:" in out
        assert "Secret:" in out

    def test_no_command(self):
        with pytest.raises(SystemExit):
            main([])
