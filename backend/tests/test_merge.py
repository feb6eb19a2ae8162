import unittest

from possync.categories import ORDERS, PRODUCTS, RECEIPTS, STORE_SETTINGS
from possync.merge import (
    accessor_for,
    constant_accessor,
    merge_by_id,
    merge_singleton,
    merge_tombstones,
)


T1 = "2024-03-05T10:00:00.000Z"
T2 = "2024-03-05T10:05:00.000Z"
T3 = "2024-03-05T10:10:00.000Z"
T4 = "2024-03-05T10:15:00.000Z"


def product(record_id, updated_at, **extra):
    record = {"id": record_id, "name": record_id, "price": 1.0, "updatedAt": updated_at}
    record.update(extra)
    return record


class MergeByIdTests(unittest.TestCase):
    def setUp(self):
        self.get = accessor_for(PRODUCTS)

    def test_newer_remote_replaces_local(self):
        local = [product("P1", T1, stock=10)]
        remote = [product("P1", T2, stock=7)]

        merged = merge_by_id(local, remote, self.get)

        self.assertEqual(merged, [product("P1", T2, stock=7)])

    def test_older_remote_is_ignored(self):
        local = [product("P1", T2, stock=7)]
        remote = [product("P1", T1, stock=10)]

        merged = merge_by_id(local, remote, self.get)

        self.assertEqual(merged[0]["stock"], 7)

    def test_either_order_yields_newer(self):
        older = product("P1", T1, stock=10)
        newer = product("P1", T2, stock=7)

        a = merge_by_id([older], [newer], self.get)
        b = merge_by_id([newer], [older], self.get)

        self.assertEqual(a, b)
        self.assertEqual(a[0]["updatedAt"], T2)

    def test_tie_keeps_local(self):
        local = [product("P1", T1, stock=10)]
        remote = [product("P1", T1, stock=99)]

        merged = merge_by_id(local, remote, self.get)

        self.assertEqual(merged[0]["stock"], 10)

    def test_tombstone_dominates_newer_remote(self):
        # Deleted locally at T3, remote still carries a T4 version
        local = []
        remote = [product("P2", T4)]

        merged = merge_by_id(local, remote, self.get, deleted_ids={"P2"})

        self.assertEqual(merged, [])

    def test_tombstone_removes_local_copy(self):
        merged = merge_by_id([product("P2", T1)], [], self.get, deleted_ids=["P2"])
        self.assertEqual(merged, [])

    def test_idempotent(self):
        local = [product("P1", T1), product("P3", T2)]
        remote = [product("P1", T2), product("P4", T1)]

        once = merge_by_id(local, remote, self.get)
        twice = merge_by_id(once, remote, self.get)

        self.assertEqual(once, twice)

    def test_one_record_per_id(self):
        merged = merge_by_id(
            [product("P1", T1)],
            [product("P1", T2), product("P1", T3), product("P5", T1)],
            self.get,
        )

        ids = [r["id"] for r in merged]
        self.assertEqual(sorted(ids), ["P1", "P5"])
        self.assertEqual(next(r for r in merged if r["id"] == "P1")["updatedAt"], T3)

    def test_missing_timestamp_sorts_oldest(self):
        local = [{"id": "P1", "name": "no timestamp"}]
        remote = [product("P1", T1)]

        self.assertEqual(merge_by_id(local, remote, self.get)[0]["updatedAt"], T1)
        # and never displaces a timestamped local copy
        self.assertEqual(merge_by_id(remote, local, self.get)[0]["updatedAt"], T1)

    def test_unparseable_timestamp_sorts_oldest(self):
        local = [product("P1", "not-a-date")]
        remote = [product("P1", T1)]

        self.assertEqual(merge_by_id(local, remote, self.get)[0]["updatedAt"], T1)

    def test_falls_back_to_date_for_orders(self):
        get = accessor_for(ORDERS)
        local = [{"id": "O1", "date": T1, "total": 10}]
        remote = [{"id": "O1", "date": T2, "total": 12}]

        self.assertEqual(merge_by_id(local, remote, get)[0]["total"], 12)

    def test_inputs_not_mutated(self):
        local = [product("P1", T1)]
        remote = [product("P1", T2)]
        before = (list(local), list(remote))

        merge_by_id(local, remote, self.get, deleted_ids={"P1"})

        self.assertEqual((local, remote), before)


class AppendOnlyMergeTests(unittest.TestCase):
    def test_first_seen_version_wins(self):
        get = accessor_for(RECEIPTS)
        self.assertIs(get, constant_accessor)

        local = [{"id": "R1", "orderId": "O1", "createdAt": T1}]
        remote = [{"id": "R1", "orderId": "O-CHANGED", "createdAt": T4}]

        merged = merge_by_id(local, remote, get)

        self.assertEqual(merged, local)

    def test_unknown_remote_record_inserted(self):
        merged = merge_by_id([], [{"id": "R2", "orderId": "O2"}], constant_accessor)
        self.assertEqual(merged, [{"id": "R2", "orderId": "O2"}])


class MergeSingletonTests(unittest.TestCase):
    def setUp(self):
        self.get = accessor_for(STORE_SETTINGS)

    def test_newer_remote_wins(self):
        local = {"id": "S", "memberDiscountRate": 1, "updatedAt": T1}
        remote = {"id": "S", "memberDiscountRate": 0.9, "updatedAt": T2}
        self.assertIs(merge_singleton(local, remote, self.get), remote)

    def test_missing_side(self):
        remote = {"id": "S", "updatedAt": T1}
        self.assertIs(merge_singleton(None, remote, self.get), remote)
        self.assertIs(merge_singleton(remote, None, self.get), remote)
        self.assertIsNone(merge_singleton(None, None, self.get))

    def test_tie_keeps_local(self):
        local = {"id": "S", "memberDiscountRate": 1, "updatedAt": T1}
        remote = {"id": "S", "memberDiscountRate": 0.5, "updatedAt": T1}
        self.assertIs(merge_singleton(local, remote, self.get), local)


class MergeTombstonesTests(unittest.TestCase):
    def test_union_never_shrinks(self):
        local = {"products": {"P1": T1}}
        remote = {"products": {"P2": T2}, "orders": {"O1": T3}}

        merged = merge_tombstones(local, remote)

        self.assertEqual(merged, {"products": {"P1": T1, "P2": T2}, "orders": {"O1": T3}})
        self.assertTrue(set(local["products"]) <= set(merged["products"]))
        self.assertTrue(set(remote["products"]) <= set(merged["products"]))

    def test_keeps_earlier_deletion_time(self):
        merged = merge_tombstones({"products": {"P1": T2}}, {"products": {"P1": T1}})
        self.assertEqual(merged["products"]["P1"], T1)

        merged = merge_tombstones({"products": {"P1": T1}}, {"products": {"P1": T3}})
        self.assertEqual(merged["products"]["P1"], T1)

    def test_inputs_not_mutated(self):
        local = {"products": {"P1": T1}}
        merge_tombstones(local, {"products": {"P2": T2}})
        self.assertEqual(local, {"products": {"P1": T1}})
