import logging
from datetime import date

from utils.helper import count_duplicate_punches


def record_duplicate_metric(session_factory, employee_id: int, day: date) -> int:
    """Count double-recorded punches for one employee and day, warn when any exist."""
    db = session_factory()
    try:
        duplicates = count_duplicate_punches(db, employee_id, day)
    finally:
        db.close()
    if duplicates:
        logging.warning(f"duplicate_punches employee_id={employee_id} day={day.isoformat()} count={duplicates}")
    return duplicates
