from sqlalchemy import Column, Integer, String, DateTime

from .base import Base


class AutomatedJobRun(Base):
     """Last completed run of a periodic job, one row per job type."""
     __tablename__ = "automated_job_runs"

     id = Column(Integer, primary_key=True, autoincrement=True)
     job_type = Column(String(100), nullable=False, unique=True)
     last_period = Column(String(7), nullable=False)  # YYYY-MM
     last_run_at = Column(DateTime, nullable=False)

     def __repr__(self):
          return f"<AutomatedJobRun(job_type='{self.job_type}', last_period='{self.last_period}')>"
