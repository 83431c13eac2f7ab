"""
Math and sampling helpers shared by the topology builders and the propagation engine.

Every function that needs randomness takes an explicit numpy Generator so that
runs can be reproduced from a seed.
"""
from __future__ import annotations

import math
from typing import List, Optional, Sequence, TypeVar

import numpy as np

T = TypeVar("T")


def clamp(value, min_value, max_value):
    return min(max(value, min_value), max_value)


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def round_half_up(x: float) -> int:
    # Python's round() is banker's rounding; quotas need 0.5 -> 1
    return int(math.floor(x + 0.5))


def random_int(min_value: float, max_value: float, rng: np.random.Generator) -> int:
    """Random integer in [min_value, max_value], both ends inclusive."""
    min_ceil = math.ceil(min_value)
    max_floor = math.floor(max_value)
    return int(rng.integers(min_ceil, max_floor + 1))


def shuffle(items: Sequence[T], rng: np.random.Generator) -> List[T]:
    """
    Fisher-Yates shuffle. Returns a new list, the input is left untouched.
    """
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = int(rng.integers(0, i + 1))
        result[i], result[j] = result[j], result[i]
    return result


def sample_without_replacement(items: Sequence[T], count: int, rng: np.random.Generator) -> List[T]:
    """
    Picks count distinct elements of items (partial Fisher-Yates).
    :param items: pool to sample from, not modified
    :param count: wanted sample size; if it exceeds the pool the whole pool is returned shuffled
    :param rng: random generator
    :return: new list with the sampled elements
    """
    if count <= 0:
        return []
    if count >= len(items):
        return shuffle(items, rng)

    pool = list(items)
    result = []
    for i in range(count):
        random_index = int(rng.integers(i, len(pool)))
        pool[i], pool[random_index] = pool[random_index], pool[i]
        result.append(pool[i])
    return result


def unique(items: Sequence[T]) -> List[T]:
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def make_rng(seed: Optional[int] = None) -> np.random.Generator:
    return np.random.default_rng(seed)


def spawn_rngs(seed: Optional[int], amount: int) -> List[np.random.Generator]:
    """
    Independent generators derived from one seed, one per simulated protocol.
    """
    children = np.random.SeedSequence(seed).spawn(amount)
    return [np.random.default_rng(child) for child in children]
