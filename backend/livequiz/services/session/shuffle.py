"""Unbiased shuffling for avatars and per-player answer order."""

from __future__ import annotations

import random
from typing import Sequence, TypeVar

T = TypeVar('T')


def shuffle(items: Sequence[T], rng: random.Random | None = None) -> list[T]:
    """Return a Fisher-Yates permutation of ``items``; the input is left untouched."""
    rng = rng or random.Random()
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def shuffle_options(
    options: Sequence[str], correct_index: int, rng: random.Random | None = None
) -> tuple[list[str], list[int], int]:
    """Permute answer options and locate the correct one in the new order.

    Returns ``(options, order, correct_index)`` where ``order[i]`` is the
    original index of the option shown at position ``i``.
    """
    order = shuffle(range(len(options)), rng)
    permuted = [options[i] for i in order]
    return permuted, order, order.index(correct_index)


def seeded_rng(*parts: object) -> random.Random:
    """Deterministic RNG so a permutation can be re-derived after a reload."""
    return random.Random(':'.join(str(p) for p in parts))
