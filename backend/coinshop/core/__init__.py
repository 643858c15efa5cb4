"""CoinShop Core - Configuration, Database and Errors."""

from coinshop.core.config import get_settings, settings
from coinshop.core.database import (
    AsyncSessionLocal,
    Base,
    close_db,
    engine,
    get_db,
    get_db_context,
    init_db,
)

__all__ = [
    "settings",
    "get_settings",
    "Base",
    "engine",
    "AsyncSessionLocal",
    "get_db",
    "get_db_context",
    "init_db",
    "close_db",
]
