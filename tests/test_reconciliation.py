"""Tests for SIS id reconciliation."""

import copy

from gradebook_sync.reconciliation import index_by_key, read_local_keys, reconcile
from gradebook_sync.types import LocalKey, ReconciliationEntry


def _key(record):
    return record.get("sis")


def _value(record):
    return record.get("score")


class TestReadLocalKeys:
    def test_pairs_cells_with_rows_and_strips(self):
        keys = read_local_keys([" s1 ", None, 1234.0, 7], start_row=2)

        assert keys == [LocalKey(2, "s1"), LocalKey(3, ""), LocalKey(4, "1234"), LocalKey(5, "7")]


class TestIndexByKey:
    def test_counts_missing_and_duplicate_keys(self):
        records = [{"sis": "a"}, {"sis": None}, {"sis": "a", "second": True}, {}]

        index, missing, duplicates = index_by_key(records, _key)

        assert list(index) == ["a"]
        assert "second" not in index["a"]
        assert missing == 2
        assert duplicates == 1


class TestReconcile:
    def test_matches_in_local_order_and_counts_misses(self):
        local = [(0, "s1"), (1, "s2"), (2, "s3")]
        remote = [{"sis": "s3", "score": 30}, {"sis": "s1", "score": 10}]

        result = reconcile(local, remote, _key, _value)

        assert result.entries == [ReconciliationEntry(row=0, value=10), ReconciliationEntry(row=2, value=30)]
        assert result.unmatched_remote_count == 0
        assert result.local_miss_count == 1
        assert result.empty_key_count == 0

    def test_empty_keys_are_neither_matched_nor_missed(self):
        local = [(0, "   "), (1, ""), (2, "s1")]
        remote = [{"sis": "s1", "score": 1}, {"sis": "s9", "score": 9}]

        result = reconcile(local, remote, _key, _value)

        assert result.entries == [ReconciliationEntry(row=2, value=1)]
        assert result.empty_key_count == 2
        assert result.local_miss_count == 0
        assert result.unmatched_remote_count == 1

    def test_matching_is_case_sensitive_after_trimming(self):
        local = [(0, " S1"), (1, "s1 ")]
        remote = [{"sis": "s1 ", "score": 5}]

        result = reconcile(local, remote, _key, _value)

        assert result.entries == [ReconciliationEntry(row=1, value=5)]
        assert result.local_miss_count == 1

    def test_numeric_ids_are_not_normalized(self):
        result = reconcile([(0, "007")], [{"sis": "7", "score": 1}], _key, _value)

        assert result.entries == []
        assert result.local_miss_count == 1

    def test_value_extractor_may_return_clear_sentinel(self):
        result = reconcile([(0, "s1")], [{"sis": "s1", "score": None}], _key, lambda r: r["score"] or "")

        assert result.entries == [ReconciliationEntry(row=0, value="")]

    def test_inputs_are_not_mutated(self):
        local = [(0, " s1 "), (1, "s2")]
        remote = [{"sis": " s1", "score": 3}]
        local_before = copy.deepcopy(local)
        remote_before = copy.deepcopy(remote)

        reconcile(local, remote, _key, _value)

        assert local == local_before
        assert remote == remote_before

    def test_output_is_deterministic(self):
        local = [(n, f"s{n}") for n in range(20)]
        remote = [{"sis": f"s{n}", "score": n} for n in reversed(range(0, 20, 2))]

        first = reconcile(local, remote, _key, _value)
        second = reconcile(local, remote, _key, _value)

        assert first == second
        assert [e.row for e in first.entries] == list(range(0, 20, 2))
