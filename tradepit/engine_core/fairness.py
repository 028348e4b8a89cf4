"""
Fairness - Entropy sources for wager resolution.

Sources:
- SystemEntropy: OS CSPRNG. Authoritative.
- CommitRevealEntropy: provably fair draw. The server publishes a SHA3-512
  commitment to its secret before play; the client contributes its own
  secret; the run seed is SHA3-512(server::client). Anyone holding both
  secrets after the round can replay and verify it. Authoritative.
- SeededEntropy: deterministic Random(seed). Always unauthoritative; for
  reproducible tests and local previews only.

The engine only reads `authority` and `rng()`. Whether the holder of the
server secret is actually trusted is the caller's business.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from random import Random
import hmac
import secrets

from cryptography.hazmat.primitives.hashes import Hash, SHA3_512

from .outcome import Authority


def sha3_512_hex(data: str) -> str:
    h = Hash(SHA3_512())
    h.update(data.encode())
    return h.finalize().hex()


class EntropySource(ABC):
    """Supplies a random generator and declares its authority."""
    authority: Authority

    @abstractmethod
    def rng(self) -> Random:
        """Return the generator to draw from."""

    @property
    def is_authoritative(self) -> bool:
        return self.authority == Authority.AUTHORITATIVE


class SystemEntropy(EntropySource):
    """Cryptographically strong draws from the operating system."""
    authority = Authority.AUTHORITATIVE

    def rng(self) -> Random:
        return secrets.SystemRandom()


class SeededEntropy(EntropySource):
    """
    Deterministic generator for tests and simulated previews.

    Successive draws advance the same generator, so a sequence of flips
    from one source is reproducible as a whole.
    """
    authority = Authority.UNAUTHORITATIVE

    def __init__(self, seed: int | str | None = None):
        self.seed = seed
        self._random = Random(seed)

    def rng(self) -> Random:
        return self._random


@dataclass(frozen=True)
class ServerSeed:
    """A server secret plus the commitment published before play."""
    game_id: str
    secret: str

    @classmethod
    def generate(cls, game_id: str | None = None) -> ServerSeed:
        return cls(
            game_id=game_id or secrets.token_hex(16),
            secret=secrets.token_hex(32),
        )

    @property
    def commitment(self) -> str:
        return commitment_for(self.game_id, self.secret)


def commitment_for(game_id: str, server_secret: str) -> str:
    return sha3_512_hex(f"{game_id}::{server_secret}")


def verify_commitment(game_id: str, server_secret: str, commitment: str) -> bool:
    """Check a revealed server secret against its published commitment."""
    return hmac.compare_digest(commitment_for(game_id, server_secret), commitment)


def generate_run_secret(server_secret: str, client_secret: str) -> str:
    return sha3_512_hex(f"{server_secret}::{client_secret}")


class CommitRevealEntropy(EntropySource):
    """Provably fair source combining a committed server seed and a client secret."""
    authority = Authority.AUTHORITATIVE

    def __init__(self, server_seed: ServerSeed, client_secret: str):
        if not client_secret:
            raise ValueError("client_secret must not be empty")
        self.server_seed = server_seed
        self.client_secret = client_secret

    @property
    def run_secret(self) -> str:
        return generate_run_secret(self.server_seed.secret, self.client_secret)

    def rng(self) -> Random:
        # Fresh generator per call: one commitment backs one replayable round
        return Random(self.run_secret)
