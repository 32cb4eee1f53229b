"""Player and admin controllers on top of the HTTP client."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from luckydraw.backend.errors import AuthorizationError, BackingStoreError, ConflictError, LuckyDrawError

from .api_client import LuckyDrawClient

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 2.0


class PlayerSession:
    """Local, possibly stale view of the session for one player.

    The cached state is only used to render and to refuse obviously invalid
    draws early; every write goes through the server, whose returned state
    replaces the cache.
    """

    def __init__(self, client: LuckyDrawClient, poll_interval: float = DEFAULT_POLL_INTERVAL) -> None:
        self.client = client
        self.poll_interval = poll_interval
        self.state: dict[str, Any] | None = None
        self.member: str | None = None
        self.error: str | None = None
        self._pending_reward: int | None = None
        self._drawing = threading.Lock()

    @property
    def has_drawn(self) -> bool:
        if self.member is None or self.state is None:
            return False
        return self.state["memberResults"].get(self.member) is not None

    def refresh(self) -> dict[str, Any] | None:
        try:
            self.state = self.client.get_state()
        except BackingStoreError as exc:
            self.error = exc.message
            logger.warning("State refresh failed: %s", exc.message)
            return self.state
        self.error = None
        return self.state

    def login(self, member: str, password: str) -> dict[str, Any]:
        try:
            payload = self.client.login(member=member, password=password)
        except LuckyDrawError as exc:
            self.error = exc.message
            raise
        self.member = payload["member"]
        self.state = payload["state"]
        self.error = None
        return self.state

    def logout(self) -> None:
        self.member = None
        self._pending_reward = None

    def open_box(self, box_id: int) -> int:
        if self.member is None:
            raise AuthorizationError("Log in before opening a box.", reason="not_logged_in")
        if self.has_drawn:
            raise ConflictError("This member has already drawn.", reason="already_drawn")
        if not self._drawing.acquire(blocking=False):
            raise ConflictError("A draw is already in progress.", reason="draw_in_progress")
        try:
            payload = self.client.draw(member=self.member, box_id=box_id)
        except LuckyDrawError as exc:
            self.refresh()
            self.error = exc.message
            raise
        finally:
            self._drawing.release()

        self.state = payload["state"]
        self.error = None
        self._pending_reward = payload["reward"]
        return payload["reward"]

    def take_reward(self) -> int | None:
        """Return the freshly won reward once, then ``None``."""
        reward, self._pending_reward = self._pending_reward, None
        return reward

    def watch(
        self,
        stop_event: threading.Event,
        on_update: Callable[[dict[str, Any]], None] | None = None,
    ) -> None:
        """Poll the server every ``poll_interval`` seconds until ``stop_event`` is set."""
        while True:
            state = self.refresh()
            if on_update is not None and state is not None:
                on_update(state)
            if stop_event.wait(self.poll_interval):
                return


class AdminConsole:
    def __init__(self, client: LuckyDrawClient) -> None:
        self.client = client
        self._password: str | None = None

    def login(self, password: str) -> dict[str, Any]:
        stats = self.client.stats(admin_password=password)
        self._password = password
        return stats

    def _require_password(self) -> str:
        if self._password is None:
            raise AuthorizationError("Log in as admin first.", reason="not_logged_in")
        return self._password

    def stats(self) -> dict[str, Any]:
        return self.client.stats(admin_password=self._require_password())

    def export_csv(self) -> str:
        return self.client.export_csv(admin_password=self._require_password())

    def reset(self, pin: str, confirmation: str) -> dict[str, Any]:
        password = self._require_password()
        state = self.client.reset(admin_password=password, pin=pin, confirmation=confirmation)
        logger.info("Session reset by admin")
        return state
