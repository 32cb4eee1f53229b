"""Backend package for the lucky draw game."""

from .config import BackendSettings, load_settings
from .errors import (
    AuthorizationError,
    BackingStoreError,
    ConfigurationError,
    ConflictError,
    LuckyDrawError,
    ValidationError,
)
from .service import GameService
from .state import build_initial_state, normalize_state, public_view
from .store import InMemoryStateStore, PostgresStateStore, StateStore, create_store

__all__ = [
    "AuthorizationError",
    "BackendSettings",
    "BackingStoreError",
    "build_initial_state",
    "ConfigurationError",
    "ConflictError",
    "create_store",
    "GameService",
    "InMemoryStateStore",
    "load_settings",
    "LuckyDrawError",
    "normalize_state",
    "PostgresStateStore",
    "public_view",
    "StateStore",
    "ValidationError",
]
