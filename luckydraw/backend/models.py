"""Domain models for the roster, game rules and draw results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

REWARD_POLICY_SEQUENCE = "sequence"
REWARD_POLICY_WEIGHTED = "weighted"
REWARD_POLICIES = (REWARD_POLICY_SEQUENCE, REWARD_POLICY_WEIGHTED)


@dataclass(frozen=True)
class Member:
    name: str
    password: str


@dataclass(frozen=True)
class RewardWeight:
    value: int
    weight: float


@dataclass(frozen=True)
class GameRules:
    """Static rules a session is played under.

    ``draw_cap`` of ``None`` means draws are limited only by the roster size.
    """

    members: tuple[Member, ...]
    total_boxes: int
    reward_policy: str = REWARD_POLICY_SEQUENCE
    reward_weights: tuple[RewardWeight, ...] = ()
    reward_sequence: tuple[int, ...] = ()
    draw_cap: int | None = None

    @property
    def member_names(self) -> tuple[str, ...]:
        return tuple(member.name for member in self.members)

    @property
    def effective_cap(self) -> int | None:
        if self.reward_policy == REWARD_POLICY_SEQUENCE:
            sequence_cap = len(self.reward_sequence)
            if self.draw_cap is None:
                return sequence_cap
            return min(self.draw_cap, sequence_cap)
        return self.draw_cap

    def find_member(self, name: str) -> Member | None:
        for member in self.members:
            if member.name == name:
                return member
        return None


@dataclass(frozen=True)
class DrawResult:
    reward: int
    state: dict[str, Any]


@dataclass(frozen=True)
class LoginResult:
    member: str
    result: int | None
    state: dict[str, Any] = field(repr=False)


@dataclass(frozen=True)
class SessionStats:
    played_count: int
    member_count: int
    opened_count: int
    remaining_count: int
    draw_count: int
    draw_cap: int | None
    total_paid: int
    member_results: dict[str, int | None]

    def as_dict(self) -> dict[str, Any]:
        return {
            "playedCount": self.played_count,
            "memberCount": self.member_count,
            "openedCount": self.opened_count,
            "remainingCount": self.remaining_count,
            "drawCount": self.draw_count,
            "drawCap": self.draw_cap,
            "totalPaid": self.total_paid,
            "memberResults": dict(self.member_results),
        }
