"""
Unit tests for the direct-query strategy against the in-memory table store.
"""

from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone

from generic_logger_table.exceptions import TransportFailureError
from generic_logger_table.memory import InMemoryTableStore
from generic_logger_table.query import (
    DirectQueryStrategy,
    format_timestamp,
    render_get,
    render_insert,
    render_update,
)
from generic_logger_table.transport_protocol import QueryResponse

TABLE = "elementdata_12_345_1000"
AGENT = 12
FIXED_MOMENT = datetime(2026, 10, 18, 9, 15, 2, 123456, tzinfo=timezone.utc)


class _RacingStore(InMemoryTableStore):
    """Store whose existence probe always misses, like a writer that lost a race."""

    def execute(self, query: str, agent_id: int) -> QueryResponse:
        if query.startswith("SELECT id"):
            return QueryResponse()
        return super().execute(query, agent_id)


class _BrokenStore:
    def execute(self, query: str, agent_id: int) -> QueryResponse:
        raise ConnectionResetError("agent unreachable")


class _ErrorStore:
    def execute(self, query: str, agent_id: int) -> QueryResponse:
        return QueryResponse(error="table does not exist")


class TimestampFormatTest(unittest.TestCase):
    def test_utc_with_milliseconds(self) -> None:
        self.assertEqual("2026-10-18T09:15:02.123Z", format_timestamp(FIXED_MOMENT))

    def test_offset_is_converted_to_utc(self) -> None:
        local = FIXED_MOMENT.astimezone(timezone(timedelta(hours=2)))
        self.assertEqual("2026-10-18T09:15:02.123Z", format_timestamp(local))

    def test_naive_moment_is_taken_as_utc(self) -> None:
        self.assertEqual(
            "2026-10-18T09:15:02.123Z",
            format_timestamp(FIXED_MOMENT.replace(tzinfo=None)),
        )


class QueryRenderingTest(unittest.TestCase):
    def test_literals_are_escaped(self) -> None:
        self.assertEqual(
            "SELECT dt FROM t WHERE id='it''s' LIMIT 1",
            render_get("t", "it's"),
        )

    def test_conditional_clauses(self) -> None:
        self.assertTrue(render_insert("t", "k", "v", "ts", if_not_exists=True).endswith(" IF NOT EXISTS"))
        self.assertNotIn("IF NOT EXISTS", render_insert("t", "k", "v", "ts", if_not_exists=False))
        self.assertTrue(render_update("t", "k", "v").endswith(" IF EXISTS"))


class DirectQueryStrategyTest(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryTableStore()
        self.strategy = DirectQueryStrategy(self.store, TABLE, AGENT, clock=lambda: FIXED_MOMENT)

    def test_add_then_get_returns_original_text(self) -> None:
        for index, data in enumerate(("plain", "it's", "''", "a'', 'b", "multi\nline ☃")):
            entry_id = f"id-'{index}'"
            self.assertTrue(self.strategy.add_entry(entry_id, data).success)
            result = self.strategy.get_entry(entry_id)
            self.assertTrue(result.success)
            self.assertEqual(data, result.data)

    def test_add_records_timestamp(self) -> None:
        self.strategy.add_entry("k", "v")
        row = self.store.rows(TABLE, AGENT)["k"]
        self.assertEqual("2026-10-18T09:15:02.123Z", row.ts)

    def test_add_without_overwrite_keeps_existing_data(self) -> None:
        self.strategy.add_entry("k", "first")
        result = self.strategy.add_entry("k", "second")
        self.assertFalse(result.success)
        self.assertEqual("Entry with id k already exists", result.reason)
        self.assertEqual("first", self.strategy.get_entry("k").data)

    def test_store_guard_only_on_non_overwriting_add(self) -> None:
        self.strategy.add_entry("k", "first")
        self.assertEqual(
            ["SELECT id FROM elementdata_12_345_1000 WHERE id='k' LIMIT 1", "IF NOT EXISTS"],
            [self.store.executed[-2], self.store.executed[-1][-13:]],
        )
        self.strategy.add_entry("k", "second", allow_overwrite=True)
        self.assertTrue(self.store.executed[-1].startswith("INSERT INTO"))
        self.assertNotIn("IF NOT EXISTS", self.store.executed[-1])

    def test_add_with_overwrite_replaces_data(self) -> None:
        self.strategy.add_entry("k", "first")
        self.assertTrue(self.strategy.add_entry("k", "second", allow_overwrite=True).success)
        self.assertEqual("second", self.strategy.get_entry("k").data)

    def test_conditional_insert_not_applied_is_a_failure(self) -> None:
        store = _RacingStore()
        strategy = DirectQueryStrategy(store, TABLE, AGENT)
        self.assertTrue(strategy.add_entry("k", "first").success)
        result = strategy.add_entry("k", "second")
        self.assertFalse(result.success)
        self.assertIn("already exists", result.reason)
        self.assertEqual("first", strategy.get_entry("k").data)

    def test_get_absent_entry_fails(self) -> None:
        result = self.strategy.get_entry("missing")
        self.assertFalse(result.success)
        self.assertIsNone(result.data)
        self.assertEqual("Entry with id missing does not exist", result.reason)

    def test_exists(self) -> None:
        self.assertFalse(self.strategy.entry_exists("k").exists)
        self.strategy.add_entry("k", "v")
        result = self.strategy.entry_exists("k")
        self.assertTrue(result.success)
        self.assertTrue(result.exists)

    def test_append_concatenates(self) -> None:
        self.strategy.add_entry("k", "A")
        self.assertTrue(self.strategy.append_entry("k", "B").success)
        self.assertEqual("AB", self.strategy.get_entry("k").data)

    def test_append_to_absent_entry_fails_and_creates_nothing(self) -> None:
        result = self.strategy.append_entry("k", "B")
        self.assertFalse(result.success)
        self.assertFalse(self.strategy.entry_exists("k").exists)

    def test_update_existing_entry(self) -> None:
        self.strategy.add_entry("k", "old")
        self.assertTrue(self.strategy.update_entry("k", "new 'quoted'").success)
        self.assertEqual("new 'quoted'", self.strategy.get_entry("k").data)

    def test_update_absent_entry_is_a_successful_no_op(self) -> None:
        self.assertTrue(self.strategy.update_entry("k", "v").success)
        self.assertFalse(self.strategy.entry_exists("k").exists)

    def test_remove_is_idempotent(self) -> None:
        self.strategy.add_entry("k", "v")
        self.assertTrue(self.strategy.remove_entry("k").success)
        self.assertTrue(self.strategy.remove_entry("k").success)
        self.assertFalse(self.strategy.entry_exists("k").exists)

    def test_tables_are_isolated_per_agent(self) -> None:
        other = DirectQueryStrategy(self.store, TABLE, AGENT + 1)
        self.strategy.add_entry("k", "v")
        self.assertFalse(other.entry_exists("k").exists)

    def test_store_error_becomes_failure_reason(self) -> None:
        strategy = DirectQueryStrategy(_ErrorStore(), TABLE, AGENT)
        result = strategy.get_entry("k")
        self.assertFalse(result.success)
        self.assertEqual("table does not exist", result.reason)

    def test_transport_exception_becomes_failure_reason(self) -> None:
        strategy = DirectQueryStrategy(_BrokenStore(), TABLE, AGENT)
        result = strategy.remove_entry("k")
        self.assertFalse(result.success)
        self.assertIn("agent unreachable", result.reason)
        self.assertIsInstance(result.error, TransportFailureError)

    def test_unsupported_statement_is_reported_by_store(self) -> None:
        response = self.store.execute("DROP TABLE x", AGENT)
        self.assertFalse(response.ok)
        self.assertIn("Unsupported statement", response.error)


if __name__ == "__main__":
    unittest.main()
