"""Human-readable, unguessable complaint tracking IDs.

Format: ``GRS-<time>-<random>``

* ``time`` is the current epoch in milliseconds, upper-case base36,
  zero-padded to 9 characters so IDs sort lexicographically by filing
  time.
* ``random`` is drawn from :mod:`secrets` over a 32-symbol alphabet
  (5 bits per character) with the look-alike letters I, L, O and U
  removed.  The default 8 characters carry 40 bits.

The generator never consults storage.  Uniqueness is enforced by the
store's unique constraint and the intake retry loop.
"""

from __future__ import annotations

import secrets
import time
from collections.abc import Callable
from typing import Final

_BASE36: Final[str] = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
SUFFIX_ALPHABET: Final[str] = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_TIME_WIDTH: Final[int] = 9


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


class TrackingIdGenerator:
    """Produce ``PREFIX-TIME-RANDOM`` identifiers.

    Parameters
    ----------
    prefix:
        Fixed leading component.
    suffix_length:
        Number of random characters; each adds 5 bits of entropy.
    clock:
        Returns epoch milliseconds.  Injectable for tests.
    """

    __slots__ = ("_clock", "_prefix", "_suffix_length")

    def __init__(
        self,
        prefix: str = "GRS",
        *,
        suffix_length: int = 8,
        clock: Callable[[], int] | None = None,
    ) -> None:
        if suffix_length < 6:
            raise ValueError("suffix_length must be at least 6 (30 bits of entropy)")
        self._prefix = prefix.strip().upper()
        self._suffix_length = suffix_length
        self._clock = clock or (lambda: time.time_ns() // 1_000_000)

    @property
    def entropy_bits(self) -> int:
        return self._suffix_length * 5

    def generate(self) -> str:
        stamp = _to_base36(self._clock()).rjust(_TIME_WIDTH, "0")
        suffix = "".join(secrets.choice(SUFFIX_ALPHABET) for _ in range(self._suffix_length))
        return f"{self._prefix}-{stamp}-{suffix}"
