"""Deterministic per-call random streams.

Every stream is a pure function of (master seed, role, bar, purpose), so
selection calls can be built independently and in any order.
"""

import hashlib
from enum import Enum

import numpy as np


class RngPurpose(Enum):
    """Stable purpose tags separating independent streams."""

    SELECTION = "selection"
    OPERATOR = "operator"


def _digest_words(text: str) -> list[int]:
    """Hash text into four 32-bit words (process-independent)."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return [int.from_bytes(digest[i : i + 4], "little") for i in range(0, 16, 4)]


def _entropy(master_seed: int, role: str, bar_number: int, purpose: RngPurpose) -> list[int]:
    if master_seed < 0 or bar_number < 0:
        raise ValueError("master_seed and bar_number must be non-negative")
    return [
        master_seed,
        bar_number,
        *_digest_words(role),
        *_digest_words(purpose.value),
    ]


def rng_for(
    master_seed: int, role: str, bar_number: int, purpose: RngPurpose
) -> np.random.Generator:
    """Build a fresh random stream for one (role, bar, purpose).

    Args:
        master_seed: Song-level seed
        role: Role name
        bar_number: 1-based bar number
        purpose: What the stream is used for

    Returns:
        Independent PCG64 generator; identical keys give identical draws
    """
    seq = np.random.SeedSequence(_entropy(master_seed, role, bar_number, purpose))
    return np.random.Generator(np.random.PCG64(seq))


def derive_seed(
    master_seed: int, role: str, bar_number: int, purpose: RngPurpose
) -> int:
    """Derive a plain 32-bit integer seed, e.g. for operators."""
    seq = np.random.SeedSequence(_entropy(master_seed, role, bar_number, purpose))
    return int(seq.generate_state(1, dtype=np.uint32)[0])
