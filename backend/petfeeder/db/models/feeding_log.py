# backend/petfeeder/db/models/feeding_log.py

from sqlalchemy import Column, Integer, String, DateTime, func
from petfeeder.db.session import Base


class FeedingLog(Base):
    """
    Outcome of one feed/stop command, manual or scheduled.
    """
    __tablename__ = "feeding_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), index=True, nullable=False)
    schedule_id = Column(Integer, index=True, nullable=True)

    action = Column(String(32), nullable=False)        # Scheduled Feed / Food Dispensed / Feed Stopped
    status = Column(String(16), nullable=False)        # success / failed
    portion_size = Column(String(16), nullable=True)
    servo_angle = Column(Integer, nullable=True)
    trigger_type = Column(String(16), nullable=False)  # manual / scheduled
    error_message = Column(String(255), nullable=True)

    timestamp = Column(DateTime(timezone=True), nullable=False)
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
