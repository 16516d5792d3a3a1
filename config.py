import logging
import os

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

# Server database (SQLite for now, can switch to PostgreSQL)
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{os.path.join(BASE_DIR, 'timetracker.db')}")

# Device side
API_URL = os.getenv("PUNCH_API_URL", "http://localhost:3000/api")
SUBMIT_TIMEOUT_SECONDS = float(os.getenv("PUNCH_SUBMIT_TIMEOUT", "10"))
STORAGE_DIR = os.getenv("PUNCH_STORAGE_DIR", os.path.join(BASE_DIR, "device_storage"))
EMPLOYEE_ID = int(os.getenv("PUNCH_EMPLOYEE_ID", "1"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def configure_logging() -> None:
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
