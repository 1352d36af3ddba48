"""Tests de detección de anomalías por z-score."""

import pytest

from telemetry_services.analytics import count_anomalies, detect_anomalies
from telemetry_services.analytics.anomaly import row_value


def _rows(values):
    return [{"value": v} for v in values]


class TestDetectAnomalies:

    def test_constant_series_has_no_anomalies(self):
        out = detect_anomalies(_rows([5.0] * 10))
        assert all(r["is_anomaly"] is False for r in out)
        assert all(r["anomaly_score"] == 0.0 for r in out)

    def test_outlier_is_flagged(self):
        out = detect_anomalies(_rows([10.0] * 20 + [100.0]))

        assert out[-1]["is_anomaly"] is True
        assert out[-1]["anomaly_score"] > 3.0
        assert not any(r["is_anomaly"] for r in out[:-1])

    def test_result_independent_of_order(self):
        values = [10.0, 11.5, 9.0, 10.2, 55.0, 10.1, 9.8, 10.4, 10.0, 9.9, 10.3, 10.0]
        forward = {r["value"]: r["anomaly_score"] for r in detect_anomalies(_rows(values))}
        backward = {r["value"]: r["anomaly_score"] for r in detect_anomalies(_rows(list(reversed(values))))}
        assert forward == backward

    def test_non_finite_rows_stay_normal(self):
        rows = _rows([10.0] * 20 + [100.0]) + [{"value": float("nan")}, {"value": None}, {"value": "abc"}]

        out = detect_anomalies(rows)

        for r in out[-3:]:
            assert r["is_anomaly"] is False
            assert r["anomaly_score"] == 0.0
        assert out[20]["is_anomaly"] is True

    def test_keeps_original_fields(self):
        out = detect_anomalies([{"observed_at": "2024-05-01T12:00:00", "value": 1.0}])
        assert out[0]["observed_at"] == "2024-05-01T12:00:00"

    def test_empty(self):
        assert detect_anomalies([]) == []
        assert count_anomalies([]) == 0

    def test_threshold_k(self):
        rows = _rows([10.0] * 20 + [100.0])
        assert count_anomalies(rows, k=3.0) == 1
        assert count_anomalies(rows, k=10.0) == 0


class TestRowValue:

    @pytest.mark.parametrize(
        "row,expected",
        [
            ({"value": 1.5}, 1.5),
            ({"data_value": "2"}, 2.0),
            ({"value": float("inf")}, None),
            ({"value": True}, None),
            ({}, None),
        ],
    )
    def test_row_value(self, row, expected):
        assert row_value(row) == expected
