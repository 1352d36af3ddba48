from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ReadingIn(BaseModel):
    sensor_id: int = Field(..., ge=1)
    # Sin tipar: un valor no numérico es un SKIP_INVALID_VALUE, no un 422
    value: Any = None
    sensor_type: Optional[str] = None
    sequence_no: int = Field(default=1, ge=1)
    aux_sum: Optional[float] = None
    aux_count: Optional[int] = None
    observed_at: Optional[datetime] = None


class IngestSummaryOut(BaseModel):
    inserted: int
    alarms_created: int
    auto_reset: int
    cooldown_skip: int
    skipped: int
    effects: List[Dict[str, Any]] = Field(default_factory=list)


class ThresholdSnapshotOut(BaseModel):
    lower: Optional[float] = None
    upper: Optional[float] = None


class AlarmOut(BaseModel):
    id: int
    company_id: int
    sensor_id: int
    direction: str
    value: float
    threshold_snapshot: ThresholdSnapshotOut
    created_at: datetime
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[int] = None


class ResolveAlarmIn(BaseModel):
    resolved_by: int = Field(..., ge=1)
    company_id: Optional[int] = None


class DispatchOut(BaseModel):
    ok: bool
    status: Optional[str] = None
    reason: Optional[str] = None


class SeriesPointOut(BaseModel):
    observed_at: datetime
    value: float
    is_anomaly: bool
    anomaly_score: float


class ForecastPointOut(BaseModel):
    predicted_at: datetime
    value: float
    lower: Optional[float] = None
    upper: Optional[float] = None
