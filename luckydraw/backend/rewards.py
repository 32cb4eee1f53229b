"""Reward distribution for boxes and draws."""

from __future__ import annotations

import random
from typing import Protocol, Sequence

from .models import RewardWeight


class RandomSource(Protocol):
    def random(self) -> float:
        """Return a uniform float in [0, 1)."""


def draw_weighted(table: Sequence[RewardWeight], rng: RandomSource | None = None) -> int:
    """Pick a value with probability weight / total weight.

    Walks the cumulative weights and returns the first entry whose cumulative
    weight reaches the uniform draw. Falls back to the lowest value when float
    rounding overshoots the table.
    """
    if not table:
        raise ValueError("reward table must not be empty")
    source = rng if rng is not None else random
    total_weight = sum(entry.weight for entry in table)
    threshold = source.random() * total_weight
    cumulative = 0.0
    for entry in table:
        cumulative += entry.weight
        if threshold <= cumulative:
            return entry.value
    return min(entry.value for entry in table)


def positional_reward(sequence: Sequence[int], draws_completed: int) -> int | None:
    """Return the reward for the next draw, or ``None`` once the sequence is used up."""
    if draws_completed < 0 or draws_completed >= len(sequence):
        return None
    return sequence[draws_completed]


def seeded_rng(created_at: str, box_id: int) -> random.Random:
    return random.Random(f"{created_at}#{box_id}")
