"""
Tests for KST Node state: stores, work, mining gate, MOTD, tasks and node start-up
"""

import io
import os
import sys
import json
import time
import shutil
import tempfile
import threading
import unittest
from contextlib import redirect_stdout
from unittest import mock

# Add parent to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import redis

from kstnode import config
from kstnode.store import MemoryStore, JsonFileStore, RedisStore, StoreError, open_store
from kstnode.work import WorkState, WorkNotInitialisedError
from kstnode.mining import MiningGate
from kstnode.motd import MOTDStore
from kstnode.scheduler import PeriodicTask
from kstnode.node import NodeCore, NodeConfig
from kstnode import cli


class TestStores(unittest.TestCase):
    """Test store backends."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.path = os.path.join(self.temp_dir, "state.json")

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_memory_store(self):
        store = MemoryStore()
        self.assertFalse(store.exists("a"))
        self.assertIsNone(store.get("a"))
        store.set("a", 5)
        self.assertTrue(store.exists("a"))
        self.assertEqual(store.get("a"), "5")
        store.delete("a")
        self.assertFalse(store.exists("a"))

    def test_push_capped(self):
        """Newest value goes first and the list is trimmed."""
        store = MemoryStore()
        for i in range(5):
            store.push_capped("list", i, 3)
        self.assertEqual(store.lrange("list", 0, -1), ["4", "3", "2"])
        self.assertEqual(store.lrange("list", 0, 0), ["4"])
        self.assertEqual(store.lrange("missing", 0, -1), [])

    def test_list_type_errors(self):
        store = MemoryStore()
        store.set("plain", "x")
        with self.assertRaises(StoreError):
            store.lrange("plain", 0, -1)
        store.push_capped("list", 1, 3)
        with self.assertRaises(StoreError):
            store.get("list")

    def test_json_file_store_persists(self):
        store = JsonFileStore(self.path)
        store.set(config.KEY_WORK, 1234)
        store.push_capped(config.KEY_WORK_OVER_TIME, 1234, 10)

        reopened = JsonFileStore(self.path)
        self.assertEqual(reopened.get(config.KEY_WORK), "1234")
        self.assertEqual(reopened.lrange(config.KEY_WORK_OVER_TIME, 0, -1), ["1234"])
        self.assertFalse(os.path.exists(self.path + ".tmp"))

    def test_json_file_store_failed_save(self):
        """A write that cannot be saved leaves the old values readable."""
        subdir = os.path.join(self.temp_dir, "sub")
        path = os.path.join(subdir, "state.json")
        store = JsonFileStore(path)
        store.set(config.KEY_WORK, 100)
        store.push_capped(config.KEY_WORK_OVER_TIME, 100, 10)

        # Turn the directory into a plain file so every save fails
        shutil.rmtree(subdir)
        with open(subdir, "w") as f:
            f.write("")

        with self.assertRaises(StoreError):
            store.set(config.KEY_WORK, 999)
        with self.assertRaises(StoreError):
            store.push_capped(config.KEY_WORK_OVER_TIME, 999, 10)
        with self.assertRaises(StoreError):
            store.delete(config.KEY_WORK)

        self.assertEqual(store.get(config.KEY_WORK), "100")
        self.assertEqual(store.lrange(config.KEY_WORK_OVER_TIME, 0, -1), ["100"])
        self.assertEqual(WorkState(store).get_work(), 100)

    def test_json_file_store_corrupt(self):
        with open(self.path, "w") as f:
            f.write("{not json")
        with self.assertRaises(StoreError):
            JsonFileStore(self.path)

    def test_open_store(self):
        self.assertIsInstance(open_store("memory://"), MemoryStore)
        self.assertIsInstance(open_store(None), MemoryStore)
        self.assertIsInstance(open_store("file://" + self.path), JsonFileStore)
        redis_store = open_store("redis://localhost:6379/0")
        self.assertIsInstance(redis_store, RedisStore)
        redis_store.close()
        with self.assertRaises(ValueError):
            open_store("ftp://example.com/state")


class TestRedisStore(unittest.TestCase):
    """Test the Redis backend against a mocked client."""

    def setUp(self):
        self.client = mock.MagicMock()
        self.store = RedisStore(client=self.client)

    def test_get_set(self):
        self.client.get.return_value = "42"
        self.assertEqual(self.store.get("work"), "42")
        self.store.set("work", 42)
        self.client.set.assert_called_once_with("work", "42")

    def test_exists(self):
        self.client.exists.return_value = 1
        self.assertTrue(self.store.exists("work"))
        self.client.exists.return_value = 0
        self.assertFalse(self.store.exists("work"))

    def test_push_capped_uses_transaction(self):
        pipe = self.client.pipeline.return_value
        self.store.push_capped("work-over-time", 100, 1441)
        self.client.pipeline.assert_called_once_with(transaction=True)
        pipe.lpush.assert_called_once_with("work-over-time", "100")
        pipe.ltrim.assert_called_once_with("work-over-time", 0, 1440)
        pipe.execute.assert_called_once()

    def test_errors_are_wrapped(self):
        self.client.get.side_effect = redis.ConnectionError("connection refused")
        with self.assertRaises(StoreError) as ctx:
            self.store.get("work")
        self.assertEqual(ctx.exception.key, "work")
        self.assertIsInstance(ctx.exception.cause, redis.ConnectionError)


class TestWorkState(unittest.TestCase):
    """Test work storage and history."""

    def setUp(self):
        self.store = MemoryStore()
        self.work = WorkState(self.store)

    def test_round_trip(self):
        for value in [config.MIN_WORK, 500, 12345, config.MAX_WORK]:
            self.work.set_work(value)
            self.assertEqual(self.work.get_work(), value)

    def test_set_does_not_clamp(self):
        self.work.set_work(config.MAX_WORK + 1)
        self.assertEqual(self.work.get_work(), config.MAX_WORK + 1)

    def test_clamp(self):
        self.assertEqual(self.work.clamp(0), config.MIN_WORK)
        self.assertEqual(self.work.clamp(config.MAX_WORK * 2), config.MAX_WORK)
        self.assertEqual(self.work.clamp(500), 500)

    def test_constants(self):
        self.assertEqual(self.work.min_work, config.MIN_WORK)
        self.assertEqual(self.work.max_work, config.MAX_WORK)
        self.assertEqual(self.work.work_factor, config.WORK_FACTOR)
        self.assertEqual(self.work.seconds_per_block, config.SECONDS_PER_BLOCK)

    def test_missing_work(self):
        with self.assertRaises(WorkNotInitialisedError):
            self.work.get_work()
        with self.assertRaises(StoreError):
            self.work.sample()

    def test_corrupt_work(self):
        self.store.set(config.KEY_WORK, "lots")
        with self.assertRaises(StoreError):
            self.work.get_work()

    def test_history_newest_first(self):
        for value in [10, 20, 30]:
            self.work.set_work(value)
            self.work.sample()
        self.assertEqual(self.work.get_work_over_time(), [30, 20, 10])
        self.assertEqual(self.work.get_work_over_time(limit=2), [30, 20])
        self.assertEqual(self.work.get_work_over_time(limit=0), [])

    def test_history_cap(self):
        """After more than 1441 samples the history holds exactly 1441."""
        for value in range(1, 1501):
            self.work.set_work(value)
            self.work.sample()
        history = self.work.get_work_over_time()
        self.assertEqual(len(history), config.WORK_HISTORY_LENGTH)
        self.assertEqual(history[0], 1500)
        self.assertEqual(history[-1], 1500 - config.WORK_HISTORY_LENGTH + 1)

    def test_concurrent_samplers(self):
        """Push-and-trim is atomic on the memory store."""
        work = WorkState(self.store, history_length=50)
        work.set_work(7)

        def sample_many():
            for _ in range(100):
                work.sample()

        threads = [threading.Thread(target=sample_many) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(work.get_work_over_time(), [7] * 50)


class TestMiningGate(unittest.TestCase):
    """Test the mining flag."""

    def setUp(self):
        self.store = MemoryStore()
        self.gate = MiningGate(self.store)

    def test_absent_is_disabled(self):
        self.assertFalse(self.gate.is_enabled())

    def test_only_literal_true_enables(self):
        for value in ["True", "TRUE", "1", "yes", "false", ""]:
            self.store.set(config.KEY_MINING_ENABLED, value)
            self.assertFalse(self.gate.is_enabled(), value)
        self.store.set(config.KEY_MINING_ENABLED, "true")
        self.assertTrue(self.gate.is_enabled())

    def test_set_enabled(self):
        self.gate.set_enabled(True)
        self.assertEqual(self.store.get(config.KEY_MINING_ENABLED), "true")
        self.gate.set_enabled(False)
        self.assertEqual(self.store.get(config.KEY_MINING_ENABLED), "false")

    def test_ensure_initialised(self):
        self.assertFalse(self.gate.ensure_initialised())
        self.assertEqual(self.store.get(config.KEY_MINING_ENABLED), "false")

    def test_ensure_initialised_keeps_existing(self):
        self.store.set(config.KEY_MINING_ENABLED, "true")
        self.assertTrue(self.gate.ensure_initialised())

    def test_force_enable(self):
        self.store.set(config.KEY_MINING_ENABLED, "false")
        self.assertTrue(self.gate.ensure_initialised(force_enable=True))
        self.assertTrue(self.gate.is_enabled())

    def test_free_nonce_submission(self):
        self.assertFalse(self.gate.free_nonce_submission)
        self.assertTrue(MiningGate(self.store, free_nonce_submission=True).free_nonce_submission)


class TestMOTD(unittest.TestCase):
    """Test message of the day storage."""

    def test_default(self):
        motd = MOTDStore(MemoryStore()).get()
        self.assertEqual(motd['motd'], config.DEFAULT_MOTD)
        self.assertIsNone(motd['motd_set'])
        self.assertTrue(motd['debug_mode'])

    def test_set(self):
        store = MOTDStore(MemoryStore(), environment="production")
        store.set("Maintenance at noon")
        motd = store.get()
        self.assertEqual(motd['motd'], "Maintenance at noon")
        self.assertIsNotNone(motd['motd_set'])
        self.assertFalse(motd['debug_mode'])


class TestPeriodicTask(unittest.TestCase):
    """Test background tasks."""

    def test_run_once(self):
        calls = []
        task = PeriodicTask("test", 60, lambda: calls.append(1))
        self.assertTrue(task.run_once())
        self.assertEqual(calls, [1])
        self.assertEqual(task.runs, 1)

    def test_errors_counted(self):
        def fail():
            raise RuntimeError("boom")

        task = PeriodicTask("failing", 60, fail)
        self.assertFalse(task.run_once())
        self.assertEqual(task.errors, 1)

    def test_invalid_interval(self):
        with self.assertRaises(ValueError):
            PeriodicTask("bad", 0, lambda: None)

    def test_start_and_cancel(self):
        ran = threading.Event()
        task = PeriodicTask("fast", 0.01, ran.set)
        task.start()
        self.assertTrue(task.is_running)
        self.assertTrue(ran.wait(2))
        task.cancel()
        self.assertFalse(task.is_running)


class TestNodeCore(unittest.TestCase):
    """Test node start-up and shutdown."""

    def setUp(self):
        self.store = MemoryStore()

    def test_init_defaults(self):
        node = NodeCore(NodeConfig(), store=self.store)
        node.init()
        self.assertFalse(node.mining.is_enabled())
        self.assertEqual(self.store.get(config.KEY_MINING_ENABLED), "false")
        self.assertEqual(node.work.get_work(), config.MAX_WORK)
        self.assertIsNotNone(node.sampler)
        self.assertFalse(node.sampler.is_running)

    def test_init_keeps_existing_work(self):
        self.store.set(config.KEY_WORK, 777)
        node = NodeCore(NodeConfig(), store=self.store)
        node.init()
        self.assertEqual(node.work.get_work(), 777)

    def test_mining_override(self):
        self.store.set(config.KEY_MINING_ENABLED, "false")
        node = NodeCore(NodeConfig(mining_enabled=True), store=self.store)
        node.init()
        self.assertTrue(node.mining.is_enabled())

    def test_sample_work(self):
        node = NodeCore(NodeConfig(), store=self.store)
        node.init()
        node.sample_work()
        node.work.set_work(500)
        node.sampler.run_once()
        self.assertEqual(node.work.get_work_over_time(), [500, config.MAX_WORK])

    def test_start_stop(self):
        ran = threading.Event()
        node = NodeCore(NodeConfig(sample_interval=0.01), store=self.store)
        node.add_maintenance_task("cleanup", 60, ran.set)
        node.start()
        try:
            self.assertTrue(node.is_running)
            self.assertTrue(ran.wait(2))
            self.assertTrue(all(task.is_running for task in node.tasks))
            deadline = time.time() + 2
            while not node.work.get_work_over_time() and time.time() < deadline:
                time.sleep(0.01)
        finally:
            node.stop()
        self.assertFalse(node.is_running)
        self.assertFalse(any(task.is_running for task in node.tasks))
        self.assertGreater(len(node.work.get_work_over_time()), 0)

    def test_status(self):
        node = NodeCore(NodeConfig(), store=self.store)
        node.init()
        status = node.status()
        self.assertEqual(status['work'], config.MAX_WORK)
        self.assertFalse(status['mining_enabled'])
        self.assertEqual(status['work_history_samples'], 0)

    def test_config_from_env(self):
        node_config = NodeConfig.from_env({
            config.ENV_REDIS_URL: "redis://cache:6379/1",
            config.ENV_MINING_ENABLED: "true",
            config.ENV_ENVIRONMENT: "production",
        })
        self.assertEqual(node_config.store_url, "redis://cache:6379/1")
        self.assertTrue(node_config.mining_enabled)
        self.assertEqual(node_config.environment, "production")

        node_config = NodeConfig.from_env({
            config.ENV_STORE_URL: "memory://",
            config.ENV_REDIS_URL: "redis://cache:6379/1",
            config.ENV_MINING_ENABLED: "1",
        })
        self.assertEqual(node_config.store_url, "memory://")
        self.assertFalse(node_config.mining_enabled)


class TestCLI(unittest.TestCase):
    """Test the command line interface."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.store_url = "file://" + os.path.join(self.temp_dir, "state.json")

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def run_cli(self, *argv):
        out = io.StringIO()
        with redirect_stdout(out):
            code = cli.main(list(argv))
        return code, out.getvalue().strip()

    def test_address(self):
        from kstnode.addresses import make_v2_address
        code, output = self.run_cli("address", "secret")
        self.assertEqual(code, 0)
        self.assertEqual(output, make_v2_address("secret"))

    def test_validate(self):
        self.assertEqual(self.run_cli("validate", "address", "k00000000a"), (0, "valid"))
        self.assertEqual(self.run_cli("validate", "address", "0123456789", "--v2-only"),
                         (1, "invalid"))
        self.assertEqual(self.run_cli("validate", "name", "xn--bcher", "--fetching"),
                         (0, "valid"))

    def test_strip_suffix(self):
        self.assertEqual(self.run_cli("strip-suffix", "example.kst"), (0, "example"))

    def test_work_commands(self):
        code, _ = self.run_cli("--store", self.store_url, "work", "get")
        self.assertEqual(code, 1)

        self.run_cli("--store", self.store_url, "work", "set", "250")
        self.assertEqual(self.run_cli("--store", self.store_url, "work", "get"), (0, "250"))

        self.run_cli("--store", self.store_url, "work", "sample")
        code, output = self.run_cli("--store", self.store_url, "work", "history")
        self.assertEqual(json.loads(output), [250])

        self.run_cli("--store", self.store_url, "work", "set", "0", "--clamp")
        self.assertEqual(self.run_cli("--store", self.store_url, "work", "get"),
                         (0, str(config.MIN_WORK)))

    def test_mining_commands(self):
        self.assertEqual(self.run_cli("--store", self.store_url, "mining"),
                         (0, "Mining is disabled"))
        self.assertEqual(self.run_cli("--store", self.store_url, "mining", "enable"),
                         (0, "Mining is enabled"))
        self.assertEqual(self.run_cli("--store", self.store_url, "mining", "status"),
                         (0, "Mining is enabled"))

    def test_status(self):
        code, output = self.run_cli("--store", self.store_url, "status")
        self.assertEqual(code, 0)
        status = json.loads(output)
        self.assertEqual(status['work'], config.MAX_WORK)
        self.assertFalse(status['mining_enabled'])


if __name__ == '__main__':
    unittest.main()
