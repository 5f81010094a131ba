"""
Mining gate

Whether proof-of-work submissions are currently accepted. Stored as the
string "true" or "false"; anything other than "true" counts as disabled.
"""

import logging

from . import config
from .store import KeyValueStore

logger = logging.getLogger(__name__)


class MiningGate:
    """On/off switch for accepting mined blocks."""

    def __init__(self, store: KeyValueStore, free_nonce_submission: bool = False):
        self.store = store
        self._free_nonce_submission = free_nonce_submission

    @property
    def free_nonce_submission(self) -> bool:
        """Whether submissions skip the nonce check. Always off on a live network."""
        return self._free_nonce_submission

    def is_enabled(self) -> bool:
        return self.store.get(config.KEY_MINING_ENABLED) == "true"

    def set_enabled(self, enabled: bool):
        self.store.set(config.KEY_MINING_ENABLED, "true" if enabled else "false")
        logger.info(f"Mining {'enabled' if enabled else 'disabled'}")

    def ensure_initialised(self, force_enable: bool = False) -> bool:
        """
        Make sure the flag exists before anything reads it.

        Args:
            force_enable: Turn mining on regardless of the stored value

        Returns:
            Whether mining is enabled afterwards
        """
        if force_enable:
            self.store.set(config.KEY_MINING_ENABLED, "true")

        if not self.store.exists(config.KEY_MINING_ENABLED):
            logger.warning("Note: Initialised with mining disabled.")
            self.store.set(config.KEY_MINING_ENABLED, "false")
            return False

        enabled = self.is_enabled()
        if enabled:
            logger.info("Mining is enabled.")
        else:
            logger.warning("Mining is disabled!")
        return enabled
