"""
KST Node Core

Start-up and shutdown for the node's network state:
- Makes sure the mining flag and the work value exist in the store
- Owns the work history sampler and any maintenance tasks
- Reports status for monitoring

Usage:
    python -m kstnode.node [--store URL] [--log-file PATH]
"""

import os
import sys
import time
import signal
import logging
import argparse
from dataclasses import dataclass
from typing import Dict, Any, List, Optional, Callable

from . import config
from .store import KeyValueStore, open_store
from .work import WorkState
from .mining import MiningGate
from .motd import MOTDStore
from .scheduler import PeriodicTask


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class NodeConfig:
    """Node runtime settings."""
    store_url: str = config.DEFAULT_STORE_URL
    log_file: Optional[str] = None
    log_level: int = logging.INFO
    mining_enabled: bool = False
    sample_interval: float = config.WORK_SAMPLE_INTERVAL
    environment: str = "development"

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> 'NodeConfig':
        """Build a config from environment variables."""
        env = os.environ if environ is None else environ
        return cls(
            store_url=(env.get(config.ENV_STORE_URL)
                       or env.get(config.ENV_REDIS_URL)
                       or config.DEFAULT_STORE_URL),
            log_file=env.get(config.ENV_LOG_FILE) or None,
            mining_enabled=env.get(config.ENV_MINING_ENABLED) == "true",
            environment=env.get(config.ENV_ENVIRONMENT, "development"),
        )


# =============================================================================
# Logging Setup
# =============================================================================

def setup_logging(log_file: Optional[str] = None,
                  level: int = logging.INFO) -> logging.Logger:
    """Setup logging configuration."""
    logger = logging.getLogger('kstnode')
    logger.setLevel(min(level, logging.DEBUG) if log_file else level)

    # Repeated setup (tests, CLI re-entry) must not stack handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    logger.addHandler(console_handler)

    # File handler (if specified)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s [%(levelname)s] [%(threadName)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        logger.addHandler(file_handler)

    return logger


logger = logging.getLogger(__name__)


# =============================================================================
# Node
# =============================================================================

class NodeCore:
    """
    Owner of the node's persistent network state and its background tasks.

    init() prepares the store; start() runs the tasks; stop() cancels them.
    Tests can call sample_work() directly instead of waiting for the timer.
    """

    def __init__(self, node_config: Optional[NodeConfig] = None,
                 store: Optional[KeyValueStore] = None):
        self.config = node_config or NodeConfig()
        self.store = store if store is not None else open_store(self.config.store_url)
        self.work = WorkState(self.store)
        self.mining = MiningGate(self.store)
        self.motd = MOTDStore(self.store, self.config.environment)

        self.initialised = False
        self.is_running = False
        self.sampler: Optional[PeriodicTask] = None
        self.tasks: List[PeriodicTask] = []

    def init(self):
        """Prepare the store and create (but do not start) background tasks."""
        logger.info("Loading...")

        self.mining.ensure_initialised(force_enable=self.config.mining_enabled)

        if not self.work.is_initialised():
            default_work = self.work.max_work
            logger.warning(f"Work was not yet set. It will be initialised to: {default_work}")
            self.work.set_work(default_work)
        logger.info(f"Current work: {self.work.get_work()}")

        if self.sampler is None:
            self.sampler = PeriodicTask(
                'work-sampler', self.config.sample_interval, self.sample_work
            )
            self.tasks.insert(0, self.sampler)

        self.initialised = True

    def add_maintenance_task(self, name: str, interval: float,
                             func: Callable[[], object],
                             run_immediately: bool = True) -> PeriodicTask:
        """Register an extra periodic job, started and stopped with the node."""
        task = PeriodicTask(name, interval, func, run_immediately=run_immediately)
        self.tasks.append(task)
        if self.is_running:
            task.start()
        return task

    def sample_work(self) -> int:
        """Push the current work onto the history."""
        return self.work.sample()

    def start(self):
        """Start the node."""
        if not self.initialised:
            self.init()
        for task in self.tasks:
            task.start()
        self.is_running = True
        logger.info(f"Node started ({len(self.tasks)} background task(s))")

    def stop(self):
        """Stop the node."""
        logger.info("Stopping node...")
        self.is_running = False
        for task in self.tasks:
            task.cancel()
        self.store.close()
        logger.info("Node stopped")

    def status(self) -> Dict[str, Any]:
        """Current work, bounds and mining state."""
        return {
            'work': self.work.get_work(),
            'min_work': self.work.min_work,
            'max_work': self.work.max_work,
            'work_factor': self.work.work_factor,
            'seconds_per_block': self.work.seconds_per_block,
            'mining_enabled': self.mining.is_enabled(),
            'work_history_samples': len(self.work.get_work_over_time()),
            'wallet_version': config.WALLET_VERSION,
        }

    def run_forever(self):
        """Run the node until interrupted."""
        self.start()

        def signal_handler(signum, frame):
            logger.info(f"Received signal {signum}, shutting down...")
            self.stop()
            sys.exit(0)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        try:
            while self.is_running:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()


# =============================================================================
# Entry Point
# =============================================================================

def main():
    """Run a node with settings from the environment and command line."""
    parser = argparse.ArgumentParser(description='KST node core')
    parser.add_argument('--store', help='Store URL (memory://, file:///path, redis://host)')
    parser.add_argument('--log-file', help='Log file path')
    parser.add_argument('--mine', action='store_true', help='Force mining on at start-up')
    args = parser.parse_args()

    node_config = NodeConfig.from_env()
    if args.store:
        node_config.store_url = args.store
    if args.log_file:
        node_config.log_file = args.log_file
    if args.mine:
        node_config.mining_enabled = True

    setup_logging(node_config.log_file, node_config.log_level)
    NodeCore(node_config).run_forever()


if __name__ == '__main__':
    main()
