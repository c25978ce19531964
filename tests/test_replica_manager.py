"""Unit tests for ReplicaManager, the odometer and store selection."""

import json
import os
import shutil
import tempfile
import threading
import unittest
from unittest.mock import patch

import pytest

from bagreplica.core.config import Settings
from bagreplica.core.exceptions import StoreError, TransferExhausted
from bagreplica.replication.duracloud_store import DuraCloudObjectStore
from bagreplica.replication.local_store import LocalObjectStore
from bagreplica.replication.manager import ReplicaManager, get_store
from bagreplica.replication.odometer import ODOMETER_FILE, Odometer
from bagreplica.replication.transfer import TransferMode


class TestReplicaManager(unittest.TestCase):
    """Test cases for ReplicaManager over a local store."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.store_dir = os.path.join(self.temp_dir, "store")
        self.settings = Settings(
            store_backend="local",
            store_dir=self.store_dir,
            odometer_dir=self.store_dir,
            max_retries=1,
            retry_backoff_base_ms=0,
        )
        self.manager = ReplicaManager(self.settings)

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def make_bag(self, name: str, data: bytes) -> str:
        path = os.path.join(self.temp_dir, name)
        with open(path, "wb") as f:
            f.write(data)
        return path

    def test_uses_configured_store(self):
        self.assertIsInstance(self.manager.store, LocalObjectStore)
        self.assertEqual(self.manager.engine.retry_policy.max_retries, 1)

    def test_transfer_updates_odometer(self):
        path = self.make_bag("bag-1.zip", b"0123456789")

        result = self.manager.transfer_bag(path)

        self.assertEqual(result.mode, TransferMode.CREATE)
        self.assertEqual(result.container, "aip_store")
        self.assertFalse(os.path.exists(path))
        self.assertTrue(self.manager.exists("bag-1.zip"))
        totals = self.manager.odometer()
        self.assertEqual(totals["count"], 1)
        self.assertEqual(totals["storesize"], 10)
        self.assertEqual(totals["uploaded"], 10)
        self.assertTrue(os.path.exists(os.path.join(self.store_dir, ODOMETER_FILE)))

    def test_overwrite_adjusts_size_not_count(self):
        self.manager.transfer_bag(self.make_bag("bag-1.zip", b"0123456789"))
        result = self.manager.transfer_bag(self.make_bag("bag-1.zip", b"0123"))

        self.assertEqual(result.mode, TransferMode.OVERWRITE)
        totals = self.manager.odometer()
        self.assertEqual(totals["count"], 1)
        self.assertEqual(totals["storesize"], 4)
        self.assertEqual(totals["uploaded"], 14)

    def test_unchanged_bag_leaves_odometer_alone(self):
        self.manager.transfer_bag(self.make_bag("bag-1.zip", b"same"))
        result = self.manager.transfer_bag(self.make_bag("bag-1.zip", b"same"))

        self.assertEqual(result.mode, TransferMode.UNCHANGED)
        self.assertEqual(self.manager.odometer()["uploaded"], 4)

    def test_failed_transfer_keeps_file_and_odometer(self):
        path = self.make_bag("bag-1.zip", b"data")
        with patch.object(self.manager.store, "write", side_effect=OSError("disk full")) as write:
            with self.assertRaises(TransferExhausted):
                self.manager.transfer_bag(path)

        self.assertEqual(write.call_count, 2)
        self.assertTrue(os.path.exists(path))
        self.assertEqual(self.manager.odometer()["count"], 0)

    def test_fetch(self):
        self.manager.transfer_bag(self.make_bag("bag-1.zip", b"payload"))
        dest = os.path.join(self.temp_dir, "restore", "bag-1.zip")

        self.assertEqual(self.manager.fetch_bag("bag-1.zip", dest), 7)
        with open(dest, "rb") as f:
            self.assertEqual(f.read(), b"payload")
        self.assertEqual(self.manager.odometer()["downloaded"], 7)

    def test_fetch_missing_returns_none(self):
        dest = os.path.join(self.temp_dir, "missing.zip")
        self.assertIsNone(self.manager.fetch_bag("missing.zip", dest))
        self.assertFalse(os.path.exists(dest))

    def test_attributes(self):
        self.manager.transfer_bag(self.make_bag("bag-1.zip", b"abc"))

        self.assertEqual(self.manager.attribute("bag-1.zip", "checksum"), "900150983cd24fb0d6963f7d28e17f72")
        self.assertEqual(self.manager.attribute("bag-1.zip", "sizebytes"), "3")
        self.assertIsNotNone(self.manager.attribute("bag-1.zip", "modified"))
        self.assertIsNone(self.manager.attribute("bag-1.zip", "colour"))
        self.assertIsNone(self.manager.attribute("other.zip", "checksum"))

    def test_remove(self):
        self.manager.transfer_bag(self.make_bag("bag-1.zip", b"abcdef"))

        self.assertEqual(self.manager.remove_bag("bag-1.zip"), 6)
        self.assertFalse(self.manager.exists("bag-1.zip"))
        self.assertEqual(self.manager.odometer()["count"], 0)
        self.assertEqual(self.manager.odometer()["storesize"], 0)
        self.assertIsNone(self.manager.remove_bag("bag-1.zip"))

    def test_trash_moves_to_delete_group(self):
        self.manager.transfer_bag(self.make_bag("bag-1.zip", b"abcdef"))

        self.assertEqual(self.manager.trash_bag("bag-1.zip"), 6)
        self.assertFalse(self.manager.exists("bag-1.zip"))
        self.assertTrue(self.manager.exists("bag-1.zip", container="aip_trash"))
        self.assertIsNone(self.manager.trash_bag("bag-1.zip"))

    def test_fetch_empty_replica(self):
        self.manager.transfer_bag(self.make_bag("empty.zip", b""))
        dest = os.path.join(self.temp_dir, "restored-empty.zip")

        self.assertEqual(self.manager.fetch_bag("empty.zip", dest), 0)
        self.assertTrue(os.path.exists(dest))

    def test_assumed_create_is_not_counted(self):
        self.manager.transfer_bag(self.make_bag("bag-1.zip", b"first"))
        path = self.make_bag("bag-1.zip", b"second version")

        with patch.object(self.manager.store, "get_properties", side_effect=StoreError("service unavailable")):
            result = self.manager.transfer_bag(path)

        self.assertEqual(result.mode, TransferMode.CREATE)
        self.assertFalse(result.existence_checked)
        self.assertEqual(self.manager.odometer()["count"], 1)
        self.assertEqual(self.manager.odometer()["uploaded"], 5 + 14)

    def test_concurrent_transfers_share_odometer(self):
        paths = [self.make_bag(f"bag-{i}.zip", b"x" * (i + 1)) for i in range(40)]
        errors = []

        def transfer(path):
            try:
                self.manager.transfer_bag(path)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=transfer, args=(p,)) for p in paths]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(errors, [])
        self.assertFalse(any(os.path.exists(p) for p in paths))
        expected_size = sum(range(1, 41))
        totals = self.manager.odometer()
        self.assertEqual(totals["count"], 40)
        self.assertEqual(totals["storesize"], expected_size)
        self.assertEqual(totals["uploaded"], expected_size)

        reloaded = Odometer(self.store_dir)
        self.assertEqual(reloaded.get("count"), 40)
        self.assertEqual(reloaded.get("uploaded"), expected_size)


class TestOdometer(unittest.TestCase):
    """Test cases for the Odometer."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_save_and_reload(self):
        odometer = Odometer(self.temp_dir)
        odometer.adjust("count", 2)
        odometer.adjust("storesize", 100)
        odometer.save()

        reloaded = Odometer(self.temp_dir)
        self.assertEqual(reloaded.get("count"), 2)
        self.assertEqual(reloaded.get("storesize"), 100)
        self.assertIn("modified", reloaded.as_dict())
        with open(os.path.join(self.temp_dir, ODOMETER_FILE)) as f:
            self.assertEqual(json.load(f)["count"], 2)

    def test_save_leaves_no_temporary_files(self):
        odometer = Odometer(self.temp_dir)
        for n in range(3):
            odometer.adjust("count", n)
            odometer.save()
        self.assertEqual(os.listdir(self.temp_dir), [ODOMETER_FILE])

    def test_read_only_never_writes(self):
        odometer = Odometer(self.temp_dir, read_only=True)
        odometer.set("count", 5)
        odometer.save()
        self.assertFalse(os.path.exists(os.path.join(self.temp_dir, ODOMETER_FILE)))

    def test_unknown_counters_read_zero(self):
        totals = Odometer(self.temp_dir).as_dict()
        self.assertEqual(totals, {"count": 0, "storesize": 0, "uploaded": 0, "downloaded": 0})


def test_get_store_local(tmp_path):
    store = get_store(Settings(store_backend="local", store_dir=str(tmp_path)))
    assert isinstance(store, LocalObjectStore)


def test_get_store_duracloud_prefers_keyring_password():
    settings = Settings(
        store_backend="DuraCloud",
        duracloud_url="https://dura.example.org",
        duracloud_username="replicator",
        duracloud_password="from-env",
    )
    with patch("bagreplica.core.config.keyring.get_password", return_value="from-keyring"):
        store = get_store(settings)
    assert isinstance(store, DuraCloudObjectStore)
    assert store._session.auth == ("replicator", "from-keyring")


def test_duracloud_password_falls_back_to_settings():
    settings = Settings(duracloud_password="from-env")
    with patch("bagreplica.core.config.keyring.get_password", return_value=None):
        assert settings.get_duracloud_password() == "from-env"


def test_get_store_unknown_backend():
    with pytest.raises(ValueError):
        get_store(Settings(store_backend="tape"))
