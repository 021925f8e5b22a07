from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, Integer, String, UniqueConstraint

from pos_inventory.database.base import Base


class JobLog(Base):
    __tablename__ = "job_logs"

    id = Column(Integer, primary_key=True)
    job_name = Column(String(80), nullable=False)
    # Start of the interval slot this run covers.
    run_slot = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(20), nullable=False, default="running")
    attempt = Column(Integer, nullable=False, default=1)

    started_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    finished_at = Column(DateTime(timezone=True))
    last_heartbeat_at = Column(DateTime(timezone=True))

    locked_by = Column(String(120))
    error_message = Column(String)

    candidates = Column(Integer)
    updated = Column(Integer)
    skipped = Column(Integer)
    failed = Column(Integer)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        UniqueConstraint("job_name", "run_slot", name="uq_job_logs_name_slot"),
        Index("idx_job_logs_status", "status"),
    )


__all__ = ["JobLog"]
