import copy
import sys
import unittest
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from analytics.chart_limiter import (
    axes_exist,
    clamp_result_rows,
    coerce_numeric_strings,
    limit_chart_data,
)
from models import ChartIntent


class LimitChartDataTests(unittest.TestCase):
    def test_categorical_keeps_top_twelve_descending(self):
        rows = [{"label": f"L{idx}", "value": idx + 1} for idx in range(20)]
        result = limit_chart_data(rows, {"type": "bar", "xAxis": "label", "yAxis": "value"})
        self.assertEqual(len(result), 12)
        self.assertEqual([r["value"] for r in result], list(range(20, 8, -1)))

    def test_series_downsamples_with_stride(self):
        rows = [{"t": idx, "v": idx} for idx in range(48)]
        result = limit_chart_data(rows, {"type": "line", "xAxis": "t", "yAxis": "v"})
        self.assertEqual(len(result), 24)
        self.assertEqual([r["t"] for r in result], list(range(0, 48, 2)))

    def test_series_stride_rounds_up(self):
        rows = [{"t": idx, "v": idx} for idx in range(50)]
        result = limit_chart_data(rows, {"type": "area", "xAxis": "t", "yAxis": "v"})
        self.assertEqual([r["t"] for r in result], list(range(0, 50, 3)))

    def test_small_input_passes_through(self):
        rows = [{"label": f"L{idx}", "value": idx} for idx in range(5)]
        result = limit_chart_data(rows, {"type": "bar", "xAxis": "label", "yAxis": "value"})
        self.assertEqual(result, rows)

    def test_ties_keep_original_order(self):
        rows = [{"label": f"L{idx}", "value": 1 if idx % 2 else 5} for idx in range(20)]
        result = limit_chart_data(rows, {"type": "pie", "xAxis": "label", "yAxis": "value"})
        self.assertEqual(
            [r["label"] for r in result],
            [f"L{idx}" for idx in range(0, 20, 2)] + ["L1", "L3"],
        )

    def test_non_numeric_and_missing_values_rank_as_zero(self):
        rows = [{"label": f"L{idx}", "value": "n/a"} for idx in range(13)]
        rows.append({"label": "big", "value": "42.5"})
        rows.append({"label": "none"})
        result = limit_chart_data(rows, {"type": "radar", "xAxis": "label", "yAxis": "value"})
        self.assertEqual(result[0]["label"], "big")
        self.assertEqual([r["label"] for r in result[1:]], [f"L{idx}" for idx in range(11)])

    def test_accepts_chart_intent_model(self):
        rows = [{"label": f"L{idx}", "value": idx} for idx in range(15)]
        intent = ChartIntent(type="composed", xAxis="label", yAxis="value")
        result = limit_chart_data(rows, intent)
        self.assertEqual(len(result), 12)
        self.assertEqual(result[0]["value"], 14)

    def test_other_chart_types_are_not_limited(self):
        rows = [{"x": idx, "y": idx} for idx in range(100)]
        for chart_type in ["kpi", "gauge", "heatmap", "geo", "scatter"]:
            self.assertEqual(len(limit_chart_data(rows, {"type": chart_type, "xAxis": "x", "yAxis": "y"})), 100)

    def test_missing_intent_or_rows_returns_input(self):
        rows = [{"x": 1}]
        self.assertIs(limit_chart_data(rows, None), rows)
        empty = []
        self.assertIs(limit_chart_data(empty, {"type": "bar"}), empty)

    def test_input_is_not_mutated(self):
        rows = [{"label": f"L{idx}", "value": idx} for idx in range(30)]
        snapshot = copy.deepcopy(rows)
        limit_chart_data(rows, {"type": "bar", "xAxis": "label", "yAxis": "value"})
        limit_chart_data(rows, {"type": "line", "xAxis": "label", "yAxis": "value"})
        self.assertEqual(rows, snapshot)

    def test_large_input_is_bounded(self):
        rows = [{"t": idx, "v": idx} for idx in range(100000)]
        self.assertLessEqual(len(limit_chart_data(rows, {"type": "line", "xAxis": "t", "yAxis": "v"})), 24)


class PostProcessingTests(unittest.TestCase):
    def test_clamp_result_rows(self):
        rows = [{"v": idx} for idx in range(60)]
        self.assertEqual(len(clamp_result_rows(rows)), 50)
        self.assertEqual(len(clamp_result_rows(rows, 10)), 10)
        self.assertEqual(clamp_result_rows(None), [])

    def test_coerce_numeric_strings(self):
        rows = [{"k": "a", "v": "12"}, {"k": "b", "v": "3.5"}, {"k": "c", "v": "abc"}, {"k": "d", "v": "NaN"}]
        result = coerce_numeric_strings(rows, {"type": "bar", "xAxis": "k", "yAxis": "v"})
        self.assertEqual([r["v"] for r in result], [12, 3.5, "abc", "NaN"])
        self.assertEqual(rows[0]["v"], "12")

    def test_axes_exist(self):
        rows = [{"k": "a", "v": 1}]
        self.assertTrue(axes_exist(rows, {"type": "bar", "xAxis": "k", "yAxis": "v"}))
        self.assertFalse(axes_exist(rows, {"type": "bar", "xAxis": "k", "yAxis": "missing"}))
        self.assertFalse(axes_exist(rows, {"type": "bar", "xAxis": "k"}))
        self.assertFalse(axes_exist([], {"type": "bar", "xAxis": "k", "yAxis": "v"}))


if __name__ == "__main__":
    unittest.main()
