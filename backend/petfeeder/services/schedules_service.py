# backend/petfeeder/services/schedules_service.py

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from petfeeder.core.exceptions import RepositoryError
from petfeeder.db.models.schedule import FeedingSchedule
from petfeeder.db.session import SessionLocal
from petfeeder.schemas.schedule import ScheduleCreate, ScheduleOut, ScheduleUpdate


def create_schedule(db: Session, data: ScheduleCreate) -> FeedingSchedule:
    schedule = FeedingSchedule(
        user_id=data.user_id,
        feeding_time=data.feeding_time,
        portion_size=data.portion_size.value,
        is_active=True,
        repeat_daily=data.repeat_daily,
    )
    db.add(schedule)
    db.commit()
    db.refresh(schedule)
    return schedule


def get_schedule_by_id(db: Session, schedule_id: int) -> Optional[FeedingSchedule]:
    return db.get(FeedingSchedule, schedule_id)


def list_schedules(db: Session, user_id: Optional[str] = None) -> List[FeedingSchedule]:
    stmt = select(FeedingSchedule).order_by(FeedingSchedule.feeding_time, FeedingSchedule.id)
    if user_id:
        stmt = stmt.where(FeedingSchedule.user_id == user_id)
    return list(db.scalars(stmt))


def list_active_at(db: Session, at_time: str) -> List[FeedingSchedule]:
    stmt = (
        select(FeedingSchedule)
        .where(
            FeedingSchedule.feeding_time == at_time,
            FeedingSchedule.is_active.is_(True),
        )
        .order_by(FeedingSchedule.id)
    )
    return list(db.scalars(stmt))


def update_schedule(db: Session, schedule: FeedingSchedule, data: ScheduleUpdate) -> FeedingSchedule:
    for field, value in data.model_dump(exclude_unset=True).items():
        if field == "portion_size" and value is not None:
            value = getattr(value, "value", value)
        setattr(schedule, field, value)
    db.add(schedule)
    db.commit()
    db.refresh(schedule)
    return schedule


def delete_schedule(db: Session, schedule: FeedingSchedule) -> None:
    db.delete(schedule)
    db.commit()


class SqlScheduleRepository:
    """Schedule repository used by the trigger engine.

    Every call opens and closes its own session so calls are safe to run on
    worker threads.
    """

    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._session_factory = session_factory

    def list_active(self, at_time: str) -> List[ScheduleOut]:
        db = self._session_factory()
        try:
            rows = list_active_at(db, at_time)
            return [ScheduleOut.model_validate(row) for row in rows]
        except SQLAlchemyError as e:
            raise RepositoryError(f"list_active({at_time}) failed: {e}") from e
        finally:
            db.close()

    def mark_triggered(self, schedule_id: int, when: Optional[datetime] = None) -> None:
        if when is None:
            when = datetime.now(timezone.utc)
        db = self._session_factory()
        try:
            schedule = db.get(FeedingSchedule, schedule_id)
            if schedule is None:
                raise RepositoryError(f"schedule {schedule_id} not found")
            schedule.last_triggered = when
            db.add(schedule)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise RepositoryError(f"mark_triggered({schedule_id}) failed: {e}") from e
        finally:
            db.close()
