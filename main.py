import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from models.schema import ClockStatus, Punch, PunchType, to_utc
from utils.errors import DoublePunch

WEEK_WINDOW = timedelta(days=7)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def punches_in_window(punches: Iterable[Punch], now: datetime, window: timedelta = WEEK_WINDOW) -> List[Punch]:
    start = to_utc(now) - window
    return sorted((p for p in punches if p.timestamp >= start), key=lambda p: p.timestamp)


def calculate_weekly_hours(punches: Iterable[Punch], now: Optional[datetime] = None) -> float:
    """Hours worked over the trailing seven days.

    Entries are paired by position (0 with 1, 2 with 3, ...) whatever their
    type, so a stray duplicate shifts every later pair. An unmatched last
    entry, such as an open session, counts for nothing. Zero and negative
    durations from clock skew are summed as they are.
    """
    window = punches_in_window(punches, now or utcnow())
    total = 0.0
    for i in range(0, len(window) - 1, 2):
        start, end = window[i], window[i + 1]
        total += (end.timestamp - start.timestamp).total_seconds() / 3600.0
    return round(total, 2)


def format_hours(total: float) -> str:
    # + 0.0 turns -0.0 into 0.0
    return f"{total + 0.0:.2f}"


def reconcile_status(punches: Iterable[Punch], now: Optional[datetime] = None) -> ClockStatus:
    punches = list(punches)
    if not punches:
        return ClockStatus()

    latest = max(punches, key=lambda p: p.timestamp)
    status = ClockStatus(type=latest.type, last_punch=latest)
    if latest.type == PunchType.IN:
        status.since = latest.timestamp
        status.elapsed_seconds = status.elapsed_at(now or utcnow())
    return status


def check_double_punch(status: ClockStatus, punch_type: PunchType) -> None:
    if status.type == punch_type:
        logging.warning(f"Duplicate {punch_type.value.upper()} punch rejected")
        raise DoublePunch(punch_type.value)


def format_elapsed(seconds: int) -> str:
    hours, rest = divmod(max(0, int(seconds)), 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
