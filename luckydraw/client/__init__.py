"""Player and admin controllers for the lucky draw game."""

from .api_client import LuckyDrawClient
from .session import AdminConsole, PlayerSession

__all__ = ["AdminConsole", "LuckyDrawClient", "PlayerSession"]
