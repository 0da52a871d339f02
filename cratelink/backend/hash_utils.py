"""
Shared hashing state for crate metadata hashes and symbol type hashes.

Both hashes feed text into one resettable digest and keep only a fixed
number of leading hex digits. With the default width of 16 hex digits
(64 bits) the birthday bound is about 2**32 distinct inputs before a
collision becomes likely.
"""
from __future__ import annotations

import hashlib


DEFAULT_ALGORITHM = "sha1"
HASH_WIDTH = 16  # hex digits kept from the digest


def len_and_str(s: str) -> str:
    """Frame a field as ``{len}_{text}`` so adjacent fields never blend."""
    return f"{len(s)}_{s}"


class HashState:
    """Resettable digest wrapper over a hashlib algorithm.

    The algorithm is any name accepted by ``hashlib.new``; results are
    truncated to ``width`` hex digits.
    """

    def __init__(self, algorithm: str = DEFAULT_ALGORITHM, width: int = HASH_WIDTH) -> None:
        if width <= 0:
            raise ValueError(f"hash width must be positive, got {width}")
        self.algorithm = algorithm
        self.width = width
        self._state = hashlib.new(algorithm)
        if width > self._state.digest_size * 2:
            raise ValueError(
                f"hash width {width} exceeds {algorithm} digest of {self._state.digest_size * 2} hex digits")

    def reset(self) -> None:
        self._state = hashlib.new(self.algorithm)

    def write_str(self, s: str) -> None:
        self._state.update(s.encode("utf-8"))

    def result_str(self) -> str:
        return self._state.hexdigest()[:self.width]
