from sqlalchemy import Column, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class TimeEntry(Base):
    __tablename__ = "time_entries"
    id = Column(Integer, primary_key=True, autoincrement=True)
    employee_id = Column(Integer, index=True, nullable=False)
    type = Column(String(3), nullable=False)  # "in" / "out"
    timestamp = Column(DateTime, index=True, nullable=False)  # naive UTC
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    note = Column(Text)
