"""
Work state

The current work (mining difficulty) and its per-minute history. The
difficulty adjustment policy lives elsewhere; this module only stores,
bounds and samples the value.
"""

import logging
from typing import List, Optional

from . import config
from .store import KeyValueStore, StoreError

logger = logging.getLogger(__name__)


class WorkNotInitialisedError(StoreError):
    """The work key is missing. The node start-up sequence sets it."""

    def __init__(self, key: str = config.KEY_WORK):
        super().__init__("get", key, message=f"Work has not been initialised ('{key}' is missing)")


class WorkState:
    """
    Read and write the current work and its history.

    Nothing is cached: every call goes to the store.
    """

    def __init__(self, store: KeyValueStore,
                 history_length: int = config.WORK_HISTORY_LENGTH):
        self.store = store
        self.history_length = history_length

    @property
    def min_work(self) -> int:
        return config.MIN_WORK

    @property
    def max_work(self) -> int:
        return config.MAX_WORK

    @property
    def work_factor(self) -> float:
        return config.WORK_FACTOR

    @property
    def seconds_per_block(self) -> int:
        return config.SECONDS_PER_BLOCK

    def clamp(self, work: int) -> int:
        """Bound a work value to [min_work, max_work]."""
        return max(self.min_work, min(self.max_work, int(work)))

    def is_initialised(self) -> bool:
        return self.store.exists(config.KEY_WORK)

    def get_work(self) -> int:
        """
        Get the current work.

        Raises:
            WorkNotInitialisedError: If no work has been stored yet
            StoreError: If the store fails or holds a non-integer
        """
        value = self.store.get(config.KEY_WORK)
        if value is None:
            raise WorkNotInitialisedError()
        try:
            return int(value)
        except ValueError as e:
            raise StoreError("get", config.KEY_WORK, e) from e

    def set_work(self, work: int):
        """Overwrite the current work. No bounds are applied here."""
        self.store.set(config.KEY_WORK, int(work))

    def get_work_over_time(self, limit: Optional[int] = None) -> List[int]:
        """
        Get past work samples, newest first.

        Args:
            limit: Return at most this many samples (default: full history)
        """
        count = self.history_length if limit is None else min(limit, self.history_length)
        if count <= 0:
            return []
        values = self.store.lrange(config.KEY_WORK_OVER_TIME, 0, count - 1)
        try:
            return [int(v) for v in values]
        except ValueError as e:
            raise StoreError("lrange", config.KEY_WORK_OVER_TIME, e) from e

    def sample(self) -> int:
        """
        Record the current work in the history and trim it to history_length.

        Returns:
            The sampled work value
        """
        work = self.get_work()
        self.store.push_capped(config.KEY_WORK_OVER_TIME, work, self.history_length)
        logger.debug(f"Sampled work {work}")
        return work
