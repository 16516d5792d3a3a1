import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import List, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from Background.task import record_duplicate_metric
from config import configure_logging
from main import WEEK_WINDOW, calculate_weekly_hours, format_hours, utcnow
from models.schema import DuplicateReport, PunchCreate, PunchCreated, PunchRecord, WeeklySummary
from utils.db import SessionLocal, init_db
from utils.helper import count_duplicate_punches, get_punches_for_employee, get_punches_since, insert_punch


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    init_db()
    logging.info("Connected to the timetracker database.")
    yield


app = FastAPI(title="Time Tracker", lifespan=lifespan)


def get_session_factory():
    return SessionLocal


def get_db(session_factory=Depends(get_session_factory)):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    errors = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    logging.warning(f"Rejected request to {request.url.path}: {errors}")
    return JSONResponse(status_code=400, content={"error": errors})


@app.exception_handler(SQLAlchemyError)
async def database_error(request: Request, exc: SQLAlchemyError):
    logging.error(f"Database error on {request.url.path}: {exc}")
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.post("/api/punch", response_model=PunchCreated)
def create_punch(
    punch: PunchCreate,
    background_tasks: BackgroundTasks,
    db=Depends(get_db),
    session_factory=Depends(get_session_factory),
):
    punch_id = insert_punch(db, punch)
    logging.info(f"Punch {punch.type.value.upper()} recorded for employee_id: {punch.employee_id} as id {punch_id}")
    background_tasks.add_task(
        record_duplicate_metric, session_factory, punch.employee_id, punch.timestamp.date()
    )
    return PunchCreated(id=punch_id, message="Time entry added successfully")


@app.get("/api/punches/{employee_id}", response_model=List[PunchRecord])
def list_punches(employee_id: int, db=Depends(get_db)):
    return get_punches_for_employee(db, employee_id)


@app.get("/api/weekly-summary/{employee_id}", response_model=WeeklySummary)
def weekly_summary(employee_id: int, db=Depends(get_db)):
    now = utcnow()
    punches = get_punches_since(db, employee_id, now - WEEK_WINDOW)
    return WeeklySummary(total_hours=format_hours(calculate_weekly_hours(punches, now)))


@app.get("/api/duplicates/{employee_id}", response_model=DuplicateReport)
def duplicate_report(employee_id: int, day: Optional[date] = None, db=Depends(get_db)):
    day = day or utcnow().date()
    return DuplicateReport(
        employee_id=employee_id, day=day, duplicates=count_duplicate_punches(db, employee_id, day)
    )
