"""
Message of the day
"""

from datetime import datetime, timezone
from typing import Dict, Any

from . import config
from .store import KeyValueStore


class MOTDStore:
    """Stores the network message of the day and when it was set."""

    def __init__(self, store: KeyValueStore, environment: str = "development"):
        self.store = store
        self.environment = environment

    def get(self) -> Dict[str, Any]:
        return {
            'motd': self.store.get(config.KEY_MOTD) or config.DEFAULT_MOTD,
            'motd_set': self.store.get(config.KEY_MOTD_DATE),
            'debug_mode': self.environment != "production",
        }

    def set(self, motd: str):
        self.store.set(config.KEY_MOTD, motd)
        self.store.set(config.KEY_MOTD_DATE, datetime.now(timezone.utc).isoformat())
