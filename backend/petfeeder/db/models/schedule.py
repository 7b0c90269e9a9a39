# backend/petfeeder/db/models/schedule.py

from sqlalchemy import Column, Integer, String, Boolean, DateTime, func
from petfeeder.db.session import Base


class FeedingSchedule(Base):
    """
    One daily feeding time for a user's feeder.
    - feeding_time: local "HH:MM", no timezone stored
    - last_triggered: written back by the trigger engine
    """
    __tablename__ = "feeding_schedules"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), index=True, nullable=False)

    feeding_time = Column(String(5), index=True, nullable=False)
    portion_size = Column(String(16), nullable=False, server_default="medium")

    is_active = Column(Boolean, nullable=False, server_default="1")
    repeat_daily = Column(Boolean, nullable=False, server_default="1")

    last_triggered = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )
