# backend/petfeeder/db/models/__init__.py

from petfeeder.db.session import Base  # noqa: F401

from petfeeder.db.models.schedule import FeedingSchedule  # noqa: F401
from petfeeder.db.models.feeding_log import FeedingLog  # noqa: F401
