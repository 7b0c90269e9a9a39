# backend/petfeeder/services/feeding_logs_service.py

from typing import List, Optional

from sqlalchemy import select, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from petfeeder.core.exceptions import RepositoryError
from petfeeder.db.models.feeding_log import FeedingLog
from petfeeder.db.session import SessionLocal
from petfeeder.schemas.feeding_log import FeedingLogCreate, LogStatus


def create_log(db: Session, data: FeedingLogCreate) -> FeedingLog:
    log = FeedingLog(
        user_id=data.user_id,
        schedule_id=data.schedule_id,
        action=data.action,
        status=data.status.value,
        portion_size=data.portion_size,
        servo_angle=data.servo_angle,
        trigger_type=data.trigger_type.value,
        error_message=data.error_message,
        timestamp=data.timestamp,
    )
    db.add(log)
    db.commit()
    db.refresh(log)
    return log


def get_log_by_id(db: Session, log_id: int) -> Optional[FeedingLog]:
    return db.get(FeedingLog, log_id)


def list_logs(
    db: Session,
    user_id: Optional[str] = None,
    limit: int = 50,
) -> List[FeedingLog]:
    stmt = select(FeedingLog)
    if user_id:
        stmt = stmt.where(FeedingLog.user_id == user_id)
    stmt = stmt.order_by(desc(FeedingLog.timestamp), desc(FeedingLog.id)).limit(limit)
    return list(db.scalars(stmt))


def mark_log_failed(db: Session, log: FeedingLog, error_message: str) -> FeedingLog:
    log.status = LogStatus.FAILED.value
    log.error_message = (error_message or "")[:255]
    db.add(log)
    db.commit()
    db.refresh(log)
    return log


class SqlLogSink:
    """Append-only view of feeding_logs for the trigger engine."""

    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._session_factory = session_factory

    def append(self, entry: FeedingLogCreate) -> int:
        db = self._session_factory()
        try:
            return create_log(db, entry).id
        except SQLAlchemyError as e:
            db.rollback()
            raise RepositoryError(f"append log failed: {e}") from e
        finally:
            db.close()

    def mark_failed(self, log_id: int, error_message: str) -> None:
        db = self._session_factory()
        try:
            log = get_log_by_id(db, log_id)
            if log is None:
                raise RepositoryError(f"feeding log {log_id} not found")
            mark_log_failed(db, log, error_message)
        except SQLAlchemyError as e:
            db.rollback()
            raise RepositoryError(f"mark_failed({log_id}) failed: {e}") from e
        finally:
            db.close()
