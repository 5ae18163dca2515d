import re
import sys
import unittest
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from analytics.guardrails import (
    UnsafeQueryError,
    enforce_sql_guardrails,
    is_read_only_query,
    normalize_sql,
)


class GuardrailTests(unittest.TestCase):
    def test_adds_limit_when_missing(self):
        sql = enforce_sql_guardrails("SELECT * FROM users", max_rows=25)
        self.assertRegex(sql, re.compile(r"limit\s+25", re.I))

    def test_keeps_existing_limit(self):
        sql = enforce_sql_guardrails("select * from users limit 5", max_rows=25)
        self.assertEqual(re.findall(r"limit\s+\d+", sql, re.I), ["limit 5"])

    def test_trailing_semicolon_is_dropped_before_limit(self):
        self.assertEqual(enforce_sql_guardrails("SELECT 1;", max_rows=3), "SELECT 1 LIMIT 3")

    def test_blocks_non_select(self):
        with self.assertRaises(UnsafeQueryError):
            enforce_sql_guardrails("DELETE FROM users")

    def test_blocks_multiple_statements(self):
        with self.assertRaises(UnsafeQueryError):
            enforce_sql_guardrails("SELECT 1; SELECT 2")

    def test_blocks_empty(self):
        with self.assertRaises(UnsafeQueryError):
            enforce_sql_guardrails("  -- just a comment\n")

    def test_allows_with_statements(self):
        sql = enforce_sql_guardrails("WITH t AS (SELECT 1) SELECT * FROM t", max_rows=10)
        self.assertRegex(sql, re.compile(r"limit\s+10", re.I))

    def test_adds_mysql_execution_time_hint(self):
        sql = enforce_sql_guardrails("SELECT * FROM orders", max_rows=10, timeout_ms=5000, dialect="mysql")
        self.assertIn("MAX_EXECUTION_TIME(5000)", sql)

    def test_comments_are_stripped(self):
        self.assertEqual(normalize_sql("/* note */ SELECT 1 -- trailing"), "SELECT 1")

    def test_read_only_detection(self):
        self.assertTrue(is_read_only_query("explain select 1"))
        self.assertFalse(is_read_only_query("select 1; drop table t"))
        self.assertFalse(is_read_only_query("CREATE TABLE t AS SELECT 1"))


if __name__ == "__main__":
    unittest.main()
