"""Game service: the single place where session state is written."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from .config import BackendSettings
from .engine import apply_draw, ensure_can_draw, ensure_reset_allowed
from .errors import AuthorizationError, ConflictError, LuckyDrawError, ValidationError
from .export import build_csv
from .models import DrawResult, GameRules, LoginResult, SessionStats
from .security import secrets_match
from .state import build_initial_state, compute_stats
from .store import StateStore

logger = logging.getLogger(__name__)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class GameService:
    """Runs draws and resets against the store under its write lock.

    Every write decision is taken on state loaded inside the lock, never on a
    copy the caller fetched earlier.
    """

    def __init__(self, store: StateStore, settings: BackendSettings) -> None:
        self.store = store
        self.settings = settings

    @property
    def rules(self) -> GameRules:
        return self.settings.rules

    def get_state(self) -> dict[str, Any]:
        return self.store.load()

    def login(self, member: str, password: str) -> LoginResult:
        found = self.rules.find_member(member)
        if found is None or not secrets_match(password, found.password):
            logger.info("Login rejected for %r: wrong password", member)
            raise AuthorizationError("Wrong password. Please try again.", reason="wrong_password")
        state = self.store.load()
        try:
            ensure_can_draw(state, self.rules, found.name)
        except ConflictError as exc:
            logger.info("Login rejected for %s: %s", found.name, exc.reason)
            raise
        return LoginResult(member=found.name, result=state["memberResults"].get(found.name), state=state)

    def draw(self, member: str, box_id: int) -> DrawResult:
        with self.store.write_lock():
            latest = self.store.load()
            try:
                result = apply_draw(latest, self.rules, member, box_id, _utc_now_iso())
            except (ValidationError, ConflictError) as exc:
                logger.info("Draw rejected for %r on box %s: %s", member, box_id, exc.reason)
                raise
            saved = self.store.save(result.state)
        logger.info("%s opened box %s and won %s", member, box_id, result.reward)
        return DrawResult(reward=result.reward, state=saved)

    def authenticate_admin(self, password: str) -> None:
        if not secrets_match(password, self.settings.admin_password):
            logger.info("Admin login rejected")
            raise AuthorizationError("Wrong admin password.", reason="wrong_password")

    def stats(self) -> SessionStats:
        return compute_stats(self.store.load(), self.rules)

    def export_csv(self) -> str:
        return build_csv(self.store.load())

    def reset(self, pin: str, confirmation: str) -> dict[str, Any]:
        try:
            ensure_reset_allowed(pin, confirmation, self.settings.admin_reset_pin)
        except LuckyDrawError as exc:
            logger.info("Reset rejected: %s", exc.reason)
            raise
        with self.store.write_lock():
            saved = self.store.save(build_initial_state(self.rules))
        logger.warning("Session reset, all draws discarded")
        return saved
