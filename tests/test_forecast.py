"""Tests del pronóstico k-NN con fallback de regresión."""

from datetime import timedelta

import numpy as np
import pytest

from telemetry_services.analytics import ForecastConfig, forecast
from telemetry_services.analytics.forecast import build_buckets, regression_forecast

from conftest import T0


def _series(values, start=T0, step=timedelta(minutes=1)):
    return [{"observed_at": start + i * step, "value": v} for i, v in enumerate(values)]


# =============================================================================
# CONFIGURACIÓN
# =============================================================================

class TestForecastConfig:

    def test_steps_round_half_up(self):
        cfg = ForecastConfig(horizon_minutes=2.5, window_minutes=4.5, step_minutes=1)
        assert cfg.horizon_steps == 3
        assert cfg.window_steps == 5

    def test_minimums(self):
        cfg = ForecastConfig(horizon_minutes=0.4, window_minutes=1, step_minutes=1)
        assert cfg.horizon_steps == 1
        assert cfg.window_steps == 3

    @pytest.mark.parametrize("kwargs", [{"step_minutes": 0}, {"horizon_minutes": -1}])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            ForecastConfig(**kwargs)


# =============================================================================
# BUCKETS
# =============================================================================

class TestBuckets:

    def test_mean_per_slot(self):
        seq = [
            (T0, 1.0),
            (T0 + timedelta(seconds=20), 3.0),
            (T0 + timedelta(seconds=60), 5.0),
        ]

        times, values = build_buckets(seq, timedelta(minutes=1))

        assert times == [T0, T0 + timedelta(minutes=1)]
        assert values.tolist() == [2.0, 5.0]

    def test_slots_aligned_to_epoch(self):
        times, _ = build_buckets([(T0 + timedelta(seconds=45), 1.0)], timedelta(minutes=1))
        assert times == [T0]


# =============================================================================
# PRONÓSTICO
# =============================================================================

class TestForecast:

    def test_too_few_points(self):
        assert forecast(_series([1.0, 2.0])) == []

    def test_non_finite_points_ignored(self):
        rows = _series([1.0, float("nan"), 2.0]) + [{"observed_at": None, "value": 3.0}]
        assert forecast(rows) == []

    def test_history_trim_can_leave_too_few(self):
        old = _series([1.0] * 10, start=T0 - timedelta(days=10))
        recent = _series([2.0, 3.0])
        cfg = ForecastConfig(history_days=1)
        assert forecast(old + recent, cfg) == []

    def test_linear_series_uses_regression(self):
        values = [2.0 * i + 1.0 for i in range(10)]
        cfg = ForecastConfig(horizon_minutes=5, window_minutes=10, history_days=0)

        points = forecast(_series(values), cfg)

        assert len(points) == 5
        assert [p.predicted_at for p in points] == [T0 + timedelta(minutes=10 + i) for i in range(5)]
        for i, p in enumerate(points):
            expected = 2.0 * (10 + i) + 1.0
            assert p.value == pytest.approx(expected)
            assert p.lower == pytest.approx(expected)
            assert p.upper == pytest.approx(expected)

    def test_periodic_series_uses_patterns(self):
        values = [float(i % 5) for i in range(60)]
        cfg = ForecastConfig(horizon_minutes=5, window_minutes=10, history_days=0, k_neighbors=3)

        points = forecast(_series(values), cfg)

        assert [p.value for p in points] == pytest.approx([0.0, 1.0, 2.0, 3.0, 4.0], abs=1e-6)
        for p in points:
            assert p.upper - p.lower == pytest.approx(0.0, abs=1e-4)

    def test_always_horizon_points(self):
        rng = np.random.default_rng(7)
        values = list(20.0 + rng.normal(0, 0.5, size=200))
        cfg = ForecastConfig(horizon_minutes=30, window_minutes=10, history_days=0)

        points = forecast(_series(values), cfg)

        assert len(points) == 30
        deltas = {b.predicted_at - a.predicted_at for a, b in zip(points, points[1:])}
        assert deltas == {timedelta(minutes=1)}
        assert all(p.lower <= p.value <= p.upper for p in points)

    def test_to_dict(self):
        points = forecast(_series([1.0, 2.0, 3.0]), ForecastConfig(horizon_minutes=1))
        d = points[0].to_dict()
        assert d["predicted_at"] == (T0 + timedelta(minutes=3)).isoformat()
        assert d["value"] == pytest.approx(4.0)


class TestRegression:

    def test_flat_when_single_bucket(self):
        out = regression_forecast(np.asarray([7.0]), 3)
        assert out == [(7.0, 7.0, 7.0)] * 3

    def test_band_widens_with_noise(self):
        out = regression_forecast(np.asarray([1.0, 3.0, 2.0, 4.0, 3.0]), 2)
        for mean, lower, upper in out:
            assert lower < mean < upper
