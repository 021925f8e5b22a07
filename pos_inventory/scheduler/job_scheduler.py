from __future__ import annotations

import logging
import os
import socket
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pos_inventory.core.dates import as_utc, utc_now
from pos_inventory.core.logging import log_context
from pos_inventory.database.session import SessionLocal
from pos_inventory.models.job_log import JobLog

logger = logging.getLogger(__name__)

STATUS_RUNNING = "running"
STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"

_SUMMARY_FIELDS = ("candidates", "updated", "skipped", "failed")


def _owner_id() -> str:
    return "{}:{}".format(socket.gethostname(), os.getpid())


def slot_start(now: datetime, interval_seconds: int) -> datetime:
    interval = max(1, int(interval_seconds))
    epoch_seconds = int(as_utc(now).timestamp())
    return datetime.fromtimestamp(epoch_seconds - epoch_seconds % interval, tz=timezone.utc)


def _is_stale(last_heartbeat: Optional[datetime], now: datetime, stale_seconds: int) -> bool:
    if last_heartbeat is None:
        return True
    return as_utc(now) - as_utc(last_heartbeat) > timedelta(seconds=stale_seconds)


def _truncate_error(value: str, limit: int = 1000) -> str:
    if value is None:
        return ""
    text = str(value)
    return text[:limit]


def _summary_values(result) -> dict:
    if result is None:
        return {}
    if hasattr(result, "as_dict"):
        result = result.as_dict()
    if not isinstance(result, dict):
        return {}
    return {key: result[key] for key in _SUMMARY_FIELDS if key in result}


@dataclass
class SchedulerConfig:
    job_name: str
    interval_seconds: int = 60
    poll_seconds: int = 5
    stale_seconds: int = 300


class IntervalJobScheduler:
    """Runs ``job_func`` at most once per interval slot across all instances.

    A slot is claimed by inserting a ``JobLog`` row keyed on
    ``(job_name, run_slot)``. A ``running`` row whose heartbeat is older than
    ``stale_seconds`` may be taken over with a compare-and-swap update; a
    finished or failed slot is left alone until the next slot begins.
    """

    def __init__(
        self,
        *,
        config: SchedulerConfig,
        job_func: Callable[[], object],
        session_factory: Optional[Callable[[], Session]] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._config = config
        self._job_func = job_func
        self._session_factory = session_factory or SessionLocal
        self._clock = clock
        self._stop_event = threading.Event()

    def _acquire_slot(self, run_slot: datetime, owner: str) -> Optional[JobLog]:
        now = self._clock()
        db = self._session_factory()
        try:
            log = JobLog(
                job_name=self._config.job_name,
                run_slot=run_slot,
                status=STATUS_RUNNING,
                attempt=1,
                started_at=now,
                last_heartbeat_at=now,
                locked_by=owner,
            )
            db.add(log)
            db.commit()
            db.refresh(log)
            return log
        except IntegrityError:
            db.rollback()
            existing = db.execute(
                select(JobLog).where(
                    JobLog.job_name == self._config.job_name,
                    JobLog.run_slot == run_slot,
                )
            ).scalar_one()

            if existing.status != STATUS_RUNNING:
                return None
            if not _is_stale(existing.last_heartbeat_at, now, self._config.stale_seconds):
                return None

            stmt = (
                update(JobLog)
                .where(
                    JobLog.id == existing.id,
                    JobLog.status == existing.status,
                    JobLog.last_heartbeat_at == existing.last_heartbeat_at,
                )
                .values(
                    status=STATUS_RUNNING,
                    attempt=existing.attempt + 1,
                    started_at=now,
                    last_heartbeat_at=now,
                    finished_at=None,
                    locked_by=owner,
                    error_message=None,
                    updated_at=now,
                )
            )
            result = db.execute(stmt)
            if result.rowcount != 1:
                db.rollback()
                return None
            db.commit()
            return db.get(JobLog, existing.id)
        finally:
            db.close()

    def _finish(self, job_id: int, status: str, *, error: Optional[Exception] = None, result=None) -> None:
        now = self._clock()
        values = dict(
            status=status,
            finished_at=now,
            last_heartbeat_at=now,
            updated_at=now,
            error_message=None,
        )
        if error is not None:
            values["error_message"] = _truncate_error("{}: {}".format(type(error).__name__, error))
        values.update(_summary_values(result))

        db = self._session_factory()
        try:
            db.execute(update(JobLog).where(JobLog.id == job_id).values(**values))
            db.commit()
        finally:
            db.close()

    def run_once(self) -> bool:
        now = self._clock()
        run_slot = slot_start(now, self._config.interval_seconds)
        job_log = self._acquire_slot(run_slot, _owner_id())
        if job_log is None:
            return False

        try:
            logger.info(
                "Running job %s for slot %s (attempt %s)",
                job_log.job_name,
                run_slot.isoformat(),
                job_log.attempt,
            )
            result = self._job_func()
        except Exception as exc:
            logger.exception(
                "Job %s failed for slot %s",
                job_log.job_name,
                run_slot.isoformat(),
                extra=log_context(job_name=job_log.job_name),
            )
            self._finish(job_log.id, STATUS_FAILED, error=exc)
            return False

        self._finish(job_log.id, STATUS_SUCCESS, result=result)
        logger.info(
            "Job %s completed for slot %s",
            job_log.job_name,
            run_slot.isoformat(),
            extra=log_context(job_name=job_log.job_name),
        )
        return True

    def run_forever(self) -> None:
        poll_seconds = max(1, int(self._config.poll_seconds))
        logger.info(
            "Scheduler started for job %s every %ss",
            self._config.job_name,
            self._config.interval_seconds,
        )
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception:
                logger.exception("Scheduler loop error.")
            self._stop_event.wait(poll_seconds)
        logger.info("Scheduler stopped for job %s", self._config.job_name)

    def stop(self) -> None:
        self._stop_event.set()


__all__ = [
    "IntervalJobScheduler",
    "SchedulerConfig",
    "slot_start",
]
