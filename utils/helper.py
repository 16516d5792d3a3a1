from datetime import date, datetime, time, timedelta
from typing import List

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from models.schema import Punch, PunchCreate, PunchType, to_utc
from models.tables import TimeEntry


def _naive_utc(value: datetime) -> datetime:
    # SQLite has no timezone support; rows hold naive UTC
    return to_utc(value).replace(tzinfo=None)


def _to_punch(row: TimeEntry) -> Punch:
    return Punch(
        id=row.id,
        employee_id=row.employee_id,
        type=PunchType(row.type),
        timestamp=row.timestamp,
        latitude=row.latitude,
        longitude=row.longitude,
        note=row.note,
    )


def insert_punch(db: Session, punch: PunchCreate) -> int:
    row = TimeEntry(
        employee_id=punch.employee_id,
        type=punch.type.value,
        timestamp=_naive_utc(punch.timestamp),
        latitude=punch.latitude,
        longitude=punch.longitude,
        note=punch.note,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row.id


def get_punches_for_employee(db: Session, employee_id: int) -> List[Punch]:
    rows = db.execute(
        select(TimeEntry)
        .where(TimeEntry.employee_id == employee_id)
        .order_by(TimeEntry.timestamp.desc(), TimeEntry.id.desc())
    ).scalars().all()
    return [_to_punch(row) for row in rows]


def get_punches_since(db: Session, employee_id: int, since: datetime) -> List[Punch]:
    rows = db.execute(
        select(TimeEntry)
        .where(TimeEntry.employee_id == employee_id, TimeEntry.timestamp >= _naive_utc(since))
        .order_by(TimeEntry.timestamp.asc(), TimeEntry.id.asc())
    ).scalars().all()
    return [_to_punch(row) for row in rows]


def count_duplicate_punches(db: Session, employee_id: int, day: date) -> int:
    """Surplus rows on a UTC day that repeat an earlier row's type and timestamp.

    A device whose acknowledgment was lost resubmits the same punch, so these
    are the double-recorded punches.
    """
    start = datetime.combine(day, time.min)
    end = start + timedelta(days=1)
    counts = db.execute(
        select(func.count(TimeEntry.id))
        .where(
            TimeEntry.employee_id == employee_id,
            TimeEntry.timestamp >= start,
            TimeEntry.timestamp < end,
        )
        .group_by(TimeEntry.type, TimeEntry.timestamp)
    ).scalars().all()
    return sum(count - 1 for count in counts)
