"""
Thread-safe random numbers.

Each thread gets its own random.Random, seeded from a shared seed
generator that is only touched under a lock.

Usage:
    rng = RandomGenerator()
    rng.next_double()  # [0.0, 1.0)
"""

import random
import threading


class RandomGenerator:
    """Per-thread random source seeded from a lock-protected generator."""

    def __init__(self, seed: int | None = None):
        self._seeds = random.Random(seed)
        self._lock = threading.Lock()
        self._local = threading.local()

    def _generator(self) -> random.Random:
        rnd = getattr(self._local, "rnd", None)
        if rnd is None:
            with self._lock:
                seed = self._seeds.getrandbits(64)
            rnd = random.Random(seed)
            self._local.rnd = rnd
        return rnd

    def next_double(self) -> float:
        """Random float in [0.0, 1.0)."""
        return self._generator().random()
