from datetime import date, datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


def to_utc(value: datetime) -> datetime:
    """Naive timestamps are taken as UTC; aware ones are converted."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class PunchType(str, Enum):
    IN = "in"
    OUT = "out"


class SyncStatus(str, Enum):
    PENDING = "pending"
    SYNCED = "synced"


class SyncState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class WireModel(BaseModel):
    # camelCase on the wire, snake_case in code
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PunchCreate(WireModel):
    employee_id: int
    type: PunchType
    timestamp: datetime
    latitude: float
    longitude: float
    note: Optional[str] = None

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return to_utc(value)

    @property
    def location(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)


class Punch(PunchCreate):
    id: Optional[int] = None
    sync_status: Optional[SyncStatus] = None

    def to_submission(self) -> dict:
        """Request body for the remote store: no server id, no local sync state."""
        return self.model_dump(mode="json", by_alias=True, exclude={"id", "sync_status"})


class PunchRecord(PunchCreate):
    """A punch as stored by the server."""

    id: int


class PunchCreated(WireModel):
    id: int
    message: str


class WeeklySummary(WireModel):
    total_hours: str


class DuplicateReport(WireModel):
    employee_id: int
    day: date
    duplicates: int


class ClockStatus(BaseModel):
    type: PunchType = PunchType.OUT
    since: Optional[datetime] = None
    elapsed_seconds: int = 0
    last_punch: Optional[Punch] = None

    def elapsed_at(self, now: datetime) -> int:
        if self.type != PunchType.IN or self.since is None:
            return 0
        return max(0, int((to_utc(now) - self.since).total_seconds()))


class SyncReport(BaseModel):
    attempted: int = 0
    synced: int = 0
    failed: int = 0
    rejected: int = 0
    aborted: bool = False
    # accepted punches, carrying their server ids
    synced_punches: List[Punch] = []


class CaptureResult(BaseModel):
    punch: Punch
    status: SyncStatus
    message: str


class PunchHistory(BaseModel):
    punches: List[Punch]
    cached: bool = False


class WeeklyHours(BaseModel):
    total_hours: str
    cached: bool = False
