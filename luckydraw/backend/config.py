"""Configuration helpers for backend runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .errors import ConfigurationError
from .models import REWARD_POLICIES, GameRules, Member, RewardWeight

DEFAULT_ROSTER = "Ánh:anh123,Đức:duc123,Thành:thanh123"
DEFAULT_REWARD_WEIGHTS = "5000:50,10000:30,20000:14,50000:5,100000:0.9,200000:0.1"
DEFAULT_REWARD_SEQUENCE = "20000,10000,50000"


@dataclass(frozen=True)
class BackendSettings:
    rules: GameRules
    admin_password: str
    admin_reset_pin: str
    poll_interval: float
    database_url: str | None
    host: str
    port: int
    log_level: str


def _split_pairs(raw: str, env_name: str) -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        left, sep, right = chunk.partition(":")
        if not sep or not left.strip() or not right.strip():
            raise ConfigurationError(f"{env_name} entry {chunk!r} must look like key:value")
        pairs.append((left.strip(), right.strip()))
    return pairs


def parse_roster(raw: str) -> tuple[Member, ...]:
    members = tuple(Member(name=name, password=password) for name, password in _split_pairs(raw, "LUCKYDRAW_ROSTER"))
    if not members:
        raise ConfigurationError("LUCKYDRAW_ROSTER must name at least one member")
    if len({member.name for member in members}) != len(members):
        raise ConfigurationError("LUCKYDRAW_ROSTER member names must be unique")
    return members


def parse_reward_weights(raw: str) -> tuple[RewardWeight, ...]:
    table: list[RewardWeight] = []
    for value_raw, weight_raw in _split_pairs(raw, "LUCKYDRAW_REWARD_WEIGHTS"):
        try:
            value = int(value_raw)
            weight = float(weight_raw)
        except ValueError as exc:
            raise ConfigurationError(f"LUCKYDRAW_REWARD_WEIGHTS has a non-numeric entry: {exc}") from exc
        if weight <= 0:
            raise ConfigurationError("LUCKYDRAW_REWARD_WEIGHTS weights must be positive")
        table.append(RewardWeight(value=value, weight=weight))
    if not table:
        raise ConfigurationError("LUCKYDRAW_REWARD_WEIGHTS must not be empty")
    return tuple(table)


def parse_reward_sequence(raw: str) -> tuple[int, ...]:
    try:
        return tuple(int(chunk) for chunk in raw.split(",") if chunk.strip())
    except ValueError as exc:
        raise ConfigurationError(f"LUCKYDRAW_REWARD_SEQUENCE must be integers: {exc}") from exc


def _int_env(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def load_rules() -> GameRules:
    policy = os.getenv("LUCKYDRAW_REWARD_POLICY", "sequence").strip().lower()
    if policy not in REWARD_POLICIES:
        raise ConfigurationError(f"LUCKYDRAW_REWARD_POLICY must be one of {', '.join(REWARD_POLICIES)}")

    total_boxes = _int_env("LUCKYDRAW_TOTAL_BOXES", "18")
    if total_boxes <= 0:
        raise ConfigurationError("LUCKYDRAW_TOTAL_BOXES must be positive")

    cap_raw = os.getenv("LUCKYDRAW_DRAW_CAP", "").strip()
    draw_cap = _int_env("LUCKYDRAW_DRAW_CAP", cap_raw) if cap_raw else None
    if draw_cap is not None and draw_cap <= 0:
        raise ConfigurationError("LUCKYDRAW_DRAW_CAP must be positive")

    sequence = parse_reward_sequence(os.getenv("LUCKYDRAW_REWARD_SEQUENCE", DEFAULT_REWARD_SEQUENCE))
    if policy == "sequence" and not sequence:
        raise ConfigurationError("LUCKYDRAW_REWARD_SEQUENCE is required for the sequence policy")
    if policy == "sequence" and draw_cap is not None and draw_cap > len(sequence):
        raise ConfigurationError("LUCKYDRAW_DRAW_CAP cannot exceed the reward sequence length")

    return GameRules(
        members=parse_roster(os.getenv("LUCKYDRAW_ROSTER", DEFAULT_ROSTER)),
        total_boxes=total_boxes,
        reward_policy=policy,
        reward_weights=parse_reward_weights(os.getenv("LUCKYDRAW_REWARD_WEIGHTS", DEFAULT_REWARD_WEIGHTS)),
        reward_sequence=sequence,
        draw_cap=draw_cap,
    )


def load_settings() -> BackendSettings:
    poll_raw = os.getenv("LUCKYDRAW_POLL_INTERVAL", "2.0")
    try:
        poll_interval = float(poll_raw)
    except ValueError as exc:
        raise ConfigurationError(f"LUCKYDRAW_POLL_INTERVAL must be a number, got {poll_raw!r}") from exc

    database_url = os.getenv("LUCKYDRAW_DATABASE_URL") or None
    require_database = os.getenv("LUCKYDRAW_REQUIRE_DATABASE", "").strip().lower() in {"1", "true", "yes"}
    if require_database and database_url is None:
        raise ConfigurationError("LUCKYDRAW_DATABASE_URL is required when LUCKYDRAW_REQUIRE_DATABASE is set")

    return BackendSettings(
        rules=load_rules(),
        admin_password=os.getenv("LUCKYDRAW_ADMIN_PASSWORD", "admin@lucky"),
        admin_reset_pin=os.getenv("LUCKYDRAW_ADMIN_RESET_PIN", "2026"),
        poll_interval=poll_interval,
        database_url=database_url,
        host=os.getenv("LUCKYDRAW_HOST", "127.0.0.1"),
        port=_int_env("LUCKYDRAW_PORT", "8000"),
        log_level=os.getenv("LUCKYDRAW_LOG_LEVEL", "INFO").upper(),
    )
