"""Tests de los jobs batch: replay de CSV y despacho diferido."""

from collections import Counter
from dataclasses import replace
from datetime import timedelta

import pandas as pd
import pytest
from sqlalchemy import func, select

from telemetry_services.common import schema
from telemetry_services.common.clock import FixedClock
from telemetry_services.common.config import NotificationConfig
from telemetry_services.jobs.notifications.runner import dispatch_pending
from telemetry_services.jobs.replay.config import ReplayConfig
from telemetry_services.jobs.replay.runner import replay_frame, run_replay

from conftest import T0, seed_sensor, seed_user


def _count(engine, table):
    with engine.connect() as c:
        return c.execute(select(func.count()).select_from(table)).scalar_one()


# =============================================================================
# REPLAY
# =============================================================================

class TestReplay:

    def test_follows_csv_time(self, engine, settings):
        with engine.begin() as conn:
            seed_sensor(conn)
        frame = pd.DataFrame(
            {
                "timestamp": [(T0 + timedelta(seconds=30 * i)).isoformat() for i in range(5)],
                "value": [95.0, 96.0, 50.0, 50.0, 50.0],
            }
        )
        clock = FixedClock(T0 - timedelta(days=1))
        cfg = ReplayConfig(csv_path="unused.csv", sensor_id=1)

        counts = replay_frame(engine, settings, frame, cfg, Counter(), clock)

        assert counts == Counter(
            {"ALARM_CREATED": 1, "COOLDOWN_SKIP": 1, "NORMAL_STREAK": 2, "ALARM_AUTORESET": 1}
        )
        assert clock.now() == T0 + timedelta(seconds=120)
        assert _count(engine, schema.sensor_data) == 5

    def test_without_time_column_advances_step(self, engine, settings):
        with engine.begin() as conn:
            seed_sensor(conn)
        frame = pd.DataFrame({"data_value": [95.0, 96.0, "bad"]})
        clock = FixedClock(T0)
        cfg = ReplayConfig(csv_path="unused.csv", sensor_id=1, step_seconds=120)

        counts = replay_frame(engine, settings, frame, cfg, Counter(), clock)

        # 120 s entre lecturas > cooldown de 60 s: dos alarmas
        assert counts["ALARM_CREATED"] == 2
        assert counts["SKIP_INVALID_VALUE"] == 1
        assert clock.now() == T0 + timedelta(seconds=360)

    def test_inline_dispatch_after_each_reading(self, engine, settings, transports, sms_transport, clock):
        with engine.begin() as conn:
            seed_sensor(conn)
            seed_user(conn, 10, phone="01012345678")
        frame = pd.DataFrame({"observed_at": [T0.isoformat()], "value": [95.0]})

        replay_frame(engine, settings, frame, ReplayConfig(csv_path="x", sensor_id=1), Counter(), clock, transports)

        sms_transport.send_sms.assert_called_once()
        with engine.connect() as c:
            assert c.execute(select(schema.notification.c.status)).scalar_one() == "SENT"

    def test_missing_value_column(self, engine, settings, clock):
        frame = pd.DataFrame({"foo": [1.0]})
        cfg = ReplayConfig(csv_path="unused.csv", sensor_id=1)

        with pytest.raises(ValueError):
            replay_frame(engine, settings, frame, cfg, Counter(), clock)

    def test_run_replay_reads_csv_in_chunks(self, engine, settings, tmp_path):
        with engine.begin() as conn:
            seed_sensor(conn)
        csv = tmp_path / "history.csv"
        csv.write_text(
            "observed_at,temp\n"
            "2024-05-01T12:00:00Z,20\n"
            "2024-05-01T12:01:00Z,21\n"
            "2024-05-01T12:02:00Z,22\n"
        )
        cfg = ReplayConfig(csv_path=str(csv), sensor_id=1, value_column="temp", chunk_size=2)

        counts = run_replay(engine, settings, cfg)

        assert counts == Counter({"NORMAL_STREAK": 3})
        assert _count(engine, schema.sensor_data) == 3


# =============================================================================
# DESPACHO DIFERIDO
# =============================================================================

class TestDispatchPending:

    def test_dispatches_pending_rows(self, engine, settings, transports, sms_transport, email_transport, clock):
        deferred = replace(settings, notification=NotificationConfig(routing="users", dispatch_inline=False))
        with engine.begin() as conn:
            seed_sensor(conn)
            seed_user(conn, 10, email="a@example.com", phone="01012345678")
        frame = pd.DataFrame({"observed_at": [T0.isoformat()], "value": [95.0]})
        replay_frame(
            engine, deferred, frame, ReplayConfig(csv_path="x", sensor_id=1), Counter(), clock, transports
        )
        sms_transport.send_sms.assert_not_called()

        counts = dispatch_pending(engine, deferred, transports=transports, clock=clock)

        assert counts == Counter({"SENT": 2})
        email_transport.send_email.assert_called_once()
        sms_transport.send_sms.assert_called_once()
        assert dispatch_pending(engine, deferred, transports=transports, clock=clock) == Counter()

    def test_failures_are_counted(self, engine, settings, transports, sms_transport, clock):
        deferred = replace(settings, notification=NotificationConfig(routing="users", dispatch_inline=False))
        sms_transport.send_sms.side_effect = OSError("gateway down")
        with engine.begin() as conn:
            seed_sensor(conn)
            seed_user(conn, 10, phone="01012345678")
        frame = pd.DataFrame({"observed_at": [T0.isoformat()], "value": [5.0]})
        replay_frame(
            engine, deferred, frame, ReplayConfig(csv_path="x", sensor_id=1), Counter(), clock, transports
        )

        counts = dispatch_pending(engine, deferred, transports=transports, clock=clock)

        assert counts == Counter({"FAILED": 1})
