"""
Alea PRNG used to derive seeded permutation tables for the noise kernels.

Based on Johannes Baagøe's Alea algorithm. It is small, fast and fully
deterministic across platforms, which keeps bakes reproducible for a given
seed without touching Python's or NumPy's global random state.
"""

from typing import List

_NORM32 = 2.3283064365386963e-10  # 2^-32


def _uint32(n):
    """Convert to unsigned 32-bit integer."""
    return int(n) & 0xFFFFFFFF


class _Mash:
    """Alea's string hash, kept as a small stateful object."""

    def __init__(self):
        self.n = 0xEFC8249D

    def __call__(self, data) -> float:
        for char in str(data):
            self.n += ord(char)
            h = 0.02519603282416938 * self.n
            self.n = _uint32(h)
            h -= self.n
            h *= self.n
            self.n = _uint32(h)
            h -= self.n
            self.n += h * 0x100000000
        return _uint32(self.n) * _NORM32


class AleaPRNG:
    """
    Alea generator seeded from an integer or string.

    Only ``random()`` and ``permutation()`` are needed by the kernels; the
    call counter is kept so tests can assert how much state a table consumed.
    """

    def __init__(self, seed):
        self.call_count = 0

        mash = _Mash()
        self.s0 = mash(" ")
        self.s1 = mash(" ")
        self.s2 = mash(" ")
        self.c = 1

        self.s0 = self._mix(self.s0, mash(seed))
        self.s1 = self._mix(self.s1, mash(seed))
        self.s2 = self._mix(self.s2, mash(seed))

    @staticmethod
    def _mix(state: float, value: float) -> float:
        state -= value
        if state < 0:
            state += 1
        return state

    def random(self) -> float:
        """Generate next random number in [0, 1)."""
        self.call_count += 1
        t = 2091639 * self.s0 + self.c * _NORM32
        self.s0 = self.s1
        self.s1 = self.s2
        self.c = int(t)
        self.s2 = t - self.c
        return self.s2

    def randint(self, upper: int) -> int:
        """Integer in [0, upper)."""
        return int(self.random() * upper)

    def permutation(self, n: int) -> List[int]:
        """Fisher-Yates shuffle of ``range(n)``."""
        values = list(range(n))
        for i in range(n - 1, 0, -1):
            j = self.randint(i + 1)
            values[i], values[j] = values[j], values[i]
        return values
