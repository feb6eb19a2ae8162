import threading
import unittest

from possync.client.store import LocalStore, next_timestamp
from possync.time_utils import to_millis


T1 = "2024-03-05T10:00:00.000Z"
T2 = "2024-03-05T10:05:00.000Z"
T3 = "2024-03-05T10:10:00.000Z"
T4 = "2024-03-05T10:15:00.000Z"


class LocalStoreMutationTests(unittest.TestCase):
    def setUp(self):
        self.store = LocalStore()

    def test_add_assigns_id_and_timestamps(self):
        record = self.store.add("products", {"name": "Tea", "price": 3})

        self.assertTrue(record["id"].startswith("PROD-"))
        self.assertEqual(record["createdAt"], record["updatedAt"])
        self.assertEqual(self.store.get("products", record["id"]), record)

    def test_add_append_only_has_no_updated_at(self):
        record = self.store.add("receipts", {"orderId": "O1"})

        self.assertTrue(record["id"].startswith("RCPT-"))
        self.assertIn("createdAt", record)
        self.assertNotIn("updatedAt", record)

    def test_add_order_sets_date(self):
        record = self.store.add("orders", {"total": 5, "items": []})
        self.assertEqual(record["date"], record["createdAt"])

    def test_add_duplicate_id_rejected(self):
        self.store.add("products", {"id": "P1", "name": "Tea"})
        with self.assertRaises(ValueError):
            self.store.add("products", {"id": "P1", "name": "Tea"})

    def test_update_strictly_advances_updated_at(self):
        record = self.store.add("products", {"name": "Tea", "stock": 1})

        first = self.store.update("products", record["id"], {"stock": 2})
        second = self.store.update("products", record["id"], {"stock": 3})

        self.assertGreater(to_millis(first["updatedAt"]), to_millis(record["updatedAt"]))
        self.assertGreater(to_millis(second["updatedAt"]), to_millis(first["updatedAt"]))
        self.assertEqual(second["stock"], 3)

    def test_update_unknown_id(self):
        with self.assertRaises(KeyError):
            self.store.update("products", "missing", {"stock": 1})

    def test_append_only_cannot_be_updated_or_deleted(self):
        record = self.store.add("stockLedger", {"productId": "P1", "type": "stock_in", "quantity": 1})
        with self.assertRaises(ValueError):
            self.store.update("stockLedger", record["id"], {"quantity": 2})
        with self.assertRaises(ValueError):
            self.store.delete("stockLedger", record["id"])

    def test_delete_removes_and_tombstones(self):
        record = self.store.add("customers", {"name": "Li"})

        self.assertTrue(self.store.delete("customers", record["id"]))

        self.assertIsNone(self.store.get("customers", record["id"]))
        self.assertEqual(self.store.deletions_payload(), {"customers": [record["id"]]})

    def test_unknown_collection(self):
        with self.assertRaises(KeyError):
            self.store.add("widgets", {})
        with self.assertRaises(KeyError):
            self.store.list("storeSettings")

    def test_returned_records_are_copies(self):
        record = self.store.add("products", {"name": "Tea"})
        record["name"] = "changed outside"
        self.assertEqual(self.store.get("products", record["id"])["name"], "Tea")

    def test_update_store_settings(self):
        first = self.store.update_store_settings({"memberDiscountRate": 0.9})
        second = self.store.update_store_settings({"paymentMethods": ["现金"]})

        self.assertEqual(second["memberDiscountRate"], 0.9)
        self.assertEqual(second["paymentMethods"], ["现金"])
        self.assertGreater(to_millis(second["updatedAt"]), to_millis(first["updatedAt"]))

    def test_next_timestamp_after_future_value(self):
        future = "2999-01-01T00:00:00.000Z"
        self.assertEqual(next_timestamp(future), "2999-01-01T00:00:00.001Z")


class LocalStoreApplyRemoteTests(unittest.TestCase):
    def setUp(self):
        self.store = LocalStore()
        self.store._collections["products"] = [{"id": "P1", "stock": 10, "updatedAt": T1}]

    def test_newer_remote_wins(self):
        self.store.apply_remote({"products": [{"id": "P1", "stock": 7, "updatedAt": T2}]})
        self.assertEqual(self.store.get("products", "P1")["stock"], 7)

    def test_local_tombstone_beats_newer_remote(self):
        self.store._collections["products"].append({"id": "P2", "updatedAt": T1})
        self.store.delete("products", "P2")

        self.store.apply_remote({"products": [{"id": "P2", "updatedAt": T4}]})

        self.assertIsNone(self.store.get("products", "P2"))

    def test_remote_tombstone_removes_local(self):
        self.store.apply_remote({
            "products": [],
            "deletions": [{"collection": "products", "recordId": "P1", "deletedAt": T3}],
        })

        self.assertEqual(self.store.list("products"), [])
        self.assertEqual(self.store.tombstones(), {"products": {"P1": T3}})

    def test_missing_categories_keep_local(self):
        self.store.apply_remote({})
        self.assertEqual(self.store.list("products"), [{"id": "P1", "stock": 10, "updatedAt": T1}])

    def test_unknown_tombstone_collection_ignored(self):
        self.store.apply_remote({"deletions": [{"collection": "widgets", "recordId": "W1"}]})
        self.assertEqual(self.store.tombstones(), {})

    def test_append_only_remote_never_overwrites(self):
        self.store._collections["receipts"] = [{"id": "R1", "orderId": "O1"}]
        self.store.apply_remote({"receipts": [{"id": "R1", "orderId": "O2"}, {"id": "R2", "orderId": "O3"}]})

        self.assertEqual(self.store.list("receipts"), [{"id": "R1", "orderId": "O1"}, {"id": "R2", "orderId": "O3"}])

    def test_settings_keep_local_payment_methods_when_remote_empty(self):
        self.store._settings = {"memberDiscountRate": 1, "paymentMethods": ["现金", "微信"], "updatedAt": T1}

        self.store.apply_remote({"storeSettings": {"memberDiscountRate": 0.8, "paymentMethods": [], "updatedAt": T2}})

        settings = self.store.store_settings
        self.assertEqual(settings["memberDiscountRate"], 0.8)
        self.assertEqual(settings["paymentMethods"], ["现金", "微信"])

    def test_null_remote_settings_keep_local(self):
        self.store._settings = {"memberDiscountRate": 0.9, "updatedAt": T1}
        self.store.apply_remote({"storeSettings": None})
        self.assertEqual(self.store.store_settings["memberDiscountRate"], 0.9)


def test_save_and_load(tmp_path):
    path = tmp_path / "store" / "possync.json"
    store = LocalStore(str(path))
    product = store.add("products", {"name": "茶", "price": 3})
    store.delete("products", product["id"])
    store.add("customers", {"name": "Li"})
    store.update_store_settings({"paymentMethods": ["现金"]})

    loaded = LocalStore.load(str(path))

    assert loaded.snapshot() == store.snapshot()
    assert loaded.tombstones() == store.tombstones()


def test_load_missing_file(tmp_path):
    store = LocalStore.load(str(tmp_path / "absent.json"))
    assert store.list("products") == []
    assert store.store_settings is None


def test_concurrent_autosaves_keep_latest_state(tmp_path):
    path = tmp_path / "possync.json"
    store = LocalStore(str(path))
    product = store.add("products", {"name": "茶", "price": 3})
    errors = []

    def edit():
        try:
            for i in range(200):
                store.update("products", product["id"], {"price": i})
        except Exception as exc:
            errors.append(exc)

    def merge():
        try:
            for _ in range(200):
                store.apply_remote({})
        except Exception as exc:
            errors.append(exc)

    threads = [threading.Thread(target=edit), threading.Thread(target=merge)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    store.delete("products", product["id"])
    loaded = LocalStore.load(str(path))
    assert loaded.list("products") == []
    assert product["id"] in loaded.tombstones()["products"]
    assert [p.name for p in tmp_path.iterdir()] == ["possync.json"]
