"""Reducers for the draw transition and the admin gates."""

from __future__ import annotations

from typing import Any

from .errors import AuthorizationError, ConflictError, ValidationError
from .models import REWARD_POLICY_SEQUENCE, DrawResult, GameRules
from .rewards import positional_reward
from .security import secrets_match

RESET_CONFIRMATION_WORD = "RESET"


def _ensure_member_and_cap(state: dict[str, Any], rules: GameRules, member: str) -> None:
    if rules.find_member(member) is None:
        raise ValidationError("Unknown member.", reason="unknown_member")
    cap = rules.effective_cap
    if cap is not None and len(state["drawLogs"]) >= cap:
        raise ConflictError(
            f"The session already has {cap} draws. Ask the admin to reset it.",
            reason="cap_reached",
        )


def _ensure_no_result(state: dict[str, Any], member: str) -> None:
    if state["memberResults"].get(member) is not None:
        raise ConflictError("This member has already drawn.", reason="already_drawn")


def ensure_can_draw(state: dict[str, Any], rules: GameRules, member: str) -> None:
    """Raise unless ``member`` may still draw in ``state``."""
    _ensure_member_and_cap(state, rules, member)
    _ensure_no_result(state, member)


def apply_draw(
    state: dict[str, Any],
    rules: GameRules,
    member: str,
    box_id: int,
    timestamp: str,
) -> DrawResult:
    """Open ``box_id`` for ``member`` and return the reward with the next state.

    Preconditions are checked in order: known member, cap not reached, box
    closed, member has no result. ``state`` is never mutated.
    """
    _ensure_member_and_cap(state, rules, member)
    selected = next((box for box in state["boxes"] if box["id"] == box_id), None)
    if selected is None or selected.get("openedBy"):
        raise ConflictError("Box is invalid or already opened.", reason="box_unavailable")
    _ensure_no_result(state, member)

    if rules.reward_policy == REWARD_POLICY_SEQUENCE:
        reward = positional_reward(rules.reward_sequence, len(state["drawLogs"]))
        if reward is None:
            raise ConflictError("No draws left in this session.", reason="sequence_exhausted")
    else:
        reward = selected["reward"]

    next_state = dict(state)
    next_state["boxes"] = [
        {**box, "openedBy": member, "reward": reward} if box["id"] == box_id else dict(box)
        for box in state["boxes"]
    ]
    next_results = dict(state["memberResults"])
    next_results[member] = reward
    next_state["memberResults"] = next_results
    next_logs = [dict(entry) for entry in state["drawLogs"]]
    next_logs.append({"member": member, "reward": reward, "boxId": box_id, "timestamp": timestamp})
    next_state["drawLogs"] = next_logs
    return DrawResult(reward=reward, state=next_state)


def ensure_reset_allowed(pin: str, confirmation: str, expected_pin: str) -> None:
    if not secrets_match(pin, expected_pin):
        raise AuthorizationError("Wrong PIN. The session was not reset.", reason="wrong_pin")
    if confirmation.strip().upper() != RESET_CONFIRMATION_WORD:
        raise ValidationError(
            f'Type "{RESET_CONFIRMATION_WORD}" to confirm the reset.',
            reason="confirmation_mismatch",
        )
