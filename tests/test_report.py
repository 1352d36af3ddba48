"""Tests del informe de sensor."""

from datetime import timedelta

import pytest
from sqlalchemy import insert

from telemetry_services.analytics import build_sensor_report
from telemetry_services.analytics.report import compute_trend, series_stats
from telemetry_services.analytics.series_repository import (
    SensorInfo,
    get_sensor_info,
    load_readings,
    load_recent_readings,
)
from telemetry_services.common import schema

from conftest import T0, seed_sensor


@pytest.fixture
def sensor() -> SensorInfo:
    return SensorInfo(
        sensor_id=1,
        company_id=1,
        name="Cámara 1",
        sensor_type="temperature",
        lower_bound=10.0,
        upper_bound=90.0,
    )


class TestHelpers:

    @pytest.mark.parametrize(
        "diff,expected",
        [(0.31, "up"), (-0.31, "down"), (0.3, "stable"), (-0.3, "stable"), (0.0, "stable")],
    )
    def test_trend(self, diff, expected):
        assert compute_trend(diff) == expected

    def test_series_stats_sample_stddev(self):
        stats = series_stats([1.0, 2.0, 3.0, 4.0])
        assert stats.count == 4
        assert stats.min == 1.0
        assert stats.max == 4.0
        assert stats.mean == 2.5
        assert stats.stddev == pytest.approx(1.2909944)

    def test_series_stats_single_value(self):
        assert series_stats([5.0]).stddev == 0.0
        assert series_stats([]) is None


class TestSensorReport:

    def test_report(self, sensor):
        now = T0 + timedelta(minutes=10)
        rows = [
            {"observed_at": T0 + timedelta(minutes=i), "value": v}
            for i, v in enumerate([5.0, 50.0, 95.0, 96.0, 50.0])
        ]

        report = build_sensor_report(sensor, rows, hours=24, now=now)

        assert report["sensor"]["id"] == 1
        assert report["range"]["to"] == now.isoformat()
        assert report["range"]["from"] == (now - timedelta(hours=24)).isoformat()
        assert report["stats"]["count"] == 5
        assert report["stats"]["max"] == 96.0
        assert report["threshold_stats"]["over_high_count"] == 2
        assert report["threshold_stats"]["under_low_count"] == 1
        assert report["anomalies"] == {"total": 0}
        assert report["forecast_summary"]["last_value"] == 50.0
        assert report["forecast_summary"]["trend"] in ("up", "down", "stable")
        assert "Superó el límite superior 2 veces" in report["text_summary"]
        assert "5 lecturas" in report["text_summary"]

    def test_no_data(self, sensor):
        report = build_sensor_report(sensor, [], hours=6, now=T0)

        assert report["stats"] is None
        assert report["forecast_summary"] is None
        assert report["text_summary"] == "No hay datos registrados en el periodo."

    def test_without_thresholds(self, sensor):
        bare = SensorInfo(1, 1, None, "humidity", None, None)
        rows = [{"observed_at": T0, "value": 40.0}]

        report = build_sensor_report(bare, rows, hours=1, now=T0)

        assert report["threshold_stats"]["over_high_count"] == 0
        assert report["forecast_summary"] is None
        assert "Límites configurados" not in report["text_summary"]


class TestSeriesRepository:

    def test_sensor_info_scoped_by_company(self, conn):
        seed_sensor(conn, sensor_id=1, company_id=1)

        assert get_sensor_info(conn, 1).upper_bound == 90.0
        assert get_sensor_info(conn, 1, company_id=2) is None
        assert get_sensor_info(conn, 99) is None

    def test_load_readings_range(self, conn):
        seed_sensor(conn)
        for i in range(5):
            conn.execute(
                insert(schema.sensor_data).values(
                    sensor_id=1, sensor_type="temperature", value=float(i), sequence_no=1, observed_at=T0 + timedelta(minutes=i)
                )
            )

        rows = load_readings(conn, 1, T0 + timedelta(minutes=1), T0 + timedelta(minutes=3))

        assert [r["value"] for r in rows] == [1.0, 2.0, 3.0]
        assert rows[0]["observed_at"] == T0 + timedelta(minutes=1)

    def test_recent_readings_bounded_by_history(self, conn):
        seed_sensor(conn)
        times = [T0 - timedelta(days=2), T0 - timedelta(hours=1), T0]
        for i, t in enumerate(times):
            conn.execute(
                insert(schema.sensor_data).values(
                    sensor_id=1, sensor_type="temperature", value=float(i), sequence_no=1, observed_at=t
                )
            )

        recent = load_recent_readings(conn, 1, days=0.25)

        assert [r["value"] for r in recent] == [1.0, 2.0]
        assert len(load_recent_readings(conn, 1, days=0)) == 3
        assert load_recent_readings(conn, 2, days=0.25) == []
