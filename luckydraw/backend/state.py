"""State builders and normalization for lucky draw sessions."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any

from .models import REWARD_POLICY_WEIGHTED, GameRules, SessionStats
from .rewards import RandomSource, draw_weighted, seeded_rng

SCHEMA_VERSION = 2
EPOCH_ISO = "1970-01-01T00:00:00+00:00"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_initial_state(rules: GameRules, rng: RandomSource | None = None) -> dict[str, Any]:
    """Return a fresh session with every box closed and every result unset."""
    weighted = rules.reward_policy == REWARD_POLICY_WEIGHTED
    return {
        "version": SCHEMA_VERSION,
        "createdAt": _utc_now_iso(),
        "boxes": [
            {
                "id": box_id,
                "reward": draw_weighted(rules.reward_weights, rng) if weighted else None,
                "openedBy": None,
            }
            for box_id in range(1, rules.total_boxes + 1)
        ],
        "memberResults": {name: None for name in rules.member_names},
        "drawLogs": [],
    }


def _as_amount(value: Any) -> int | float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        if value.is_integer():
            return int(value)
    return value


def _as_box_id(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _clean_draw_logs(raw_logs: Any, rules: GameRules) -> list[dict[str, Any]]:
    if not isinstance(raw_logs, list):
        return []

    members = set(rules.member_names)
    seen_boxes: set[int] = set()
    seen_members: set[str] = set()
    logs: list[dict[str, Any]] = []
    cap = rules.effective_cap
    for item in raw_logs:
        if not isinstance(item, dict):
            continue
        member = item.get("member")
        box_id = _as_box_id(item.get("boxId"))
        reward = _as_amount(item.get("reward"))
        timestamp = item.get("timestamp")
        if not isinstance(member, str) or member not in members:
            continue
        if box_id is None or not 1 <= box_id <= rules.total_boxes:
            continue
        if reward is None or not isinstance(timestamp, str):
            continue
        # first entry wins for both the box and the member
        if box_id in seen_boxes or member in seen_members:
            continue
        if cap is not None and len(logs) >= cap:
            break
        seen_boxes.add(box_id)
        seen_members.add(member)
        logs.append({"member": member, "reward": reward, "boxId": box_id, "timestamp": timestamp})
    return logs


def normalize_state(raw: Any, rules: GameRules) -> dict[str, Any]:
    """Coerce any payload into a state that satisfies every session invariant.

    The draw log is authoritative: box ownership, opened-box rewards and member
    results are derived from the entries that survive cleaning. The function is
    pure; rewards for missing boxes are drawn from a generator seeded by
    ``createdAt`` and the box id.
    """
    source = raw if isinstance(raw, dict) else {}
    created_at = source.get("createdAt")
    if not isinstance(created_at, str):
        created_at = EPOCH_ISO

    draw_logs = _clean_draw_logs(source.get("drawLogs"), rules)
    opened = {entry["boxId"]: entry for entry in draw_logs}

    raw_boxes = source.get("boxes")
    found_boxes: dict[int, dict[str, Any]] = {}
    if isinstance(raw_boxes, list):
        for item in raw_boxes:
            if not isinstance(item, dict):
                continue
            box_id = _as_box_id(item.get("id"))
            if box_id is not None and box_id not in found_boxes:
                found_boxes[box_id] = item

    weighted = rules.reward_policy == REWARD_POLICY_WEIGHTED
    boxes: list[dict[str, Any]] = []
    for box_id in range(1, rules.total_boxes + 1):
        entry = opened.get(box_id)
        if entry is not None:
            boxes.append({"id": box_id, "reward": entry["reward"], "openedBy": entry["member"]})
            continue
        reward = None
        if weighted:
            reward = _as_amount(found_boxes.get(box_id, {}).get("reward"))
            if reward is None or reward <= 0:
                reward = draw_weighted(rules.reward_weights, seeded_rng(created_at, box_id))
        boxes.append({"id": box_id, "reward": reward, "openedBy": None})

    member_results: dict[str, Any] = {name: None for name in rules.member_names}
    for entry in draw_logs:
        member_results[entry["member"]] = entry["reward"]

    return {
        "version": SCHEMA_VERSION,
        "createdAt": created_at,
        "boxes": boxes,
        "memberResults": member_results,
        "drawLogs": draw_logs,
    }


def public_view(state: dict[str, Any]) -> dict[str, Any]:
    """Return a copy safe to send to players: unopened boxes hide their reward."""
    next_state = dict(state)
    next_state["boxes"] = [
        dict(box) if box.get("openedBy") else {**box, "reward": None}
        for box in state.get("boxes", [])
    ]
    next_state["memberResults"] = dict(state.get("memberResults", {}))
    next_state["drawLogs"] = [dict(entry) for entry in state.get("drawLogs", [])]
    return next_state


def compute_stats(state: dict[str, Any], rules: GameRules) -> SessionStats:
    results = {name: state["memberResults"].get(name) for name in rules.member_names}
    opened_count = sum(1 for box in state["boxes"] if box.get("openedBy"))
    return SessionStats(
        played_count=sum(1 for value in results.values() if value is not None),
        member_count=len(rules.members),
        opened_count=opened_count,
        remaining_count=len(state["boxes"]) - opened_count,
        draw_count=len(state["drawLogs"]),
        draw_cap=rules.effective_cap,
        total_paid=sum(value for value in results.values() if value is not None),
        member_results=results,
    )
