# backend/petfeeder/db/init_db.py

import logging
from typing import Optional

from sqlalchemy.engine import Engine

from petfeeder.core.config import settings
from petfeeder.core.logging_setup import setup_logging
from petfeeder.db.session import Base, engine as default_engine
from petfeeder.db import models  # noqa: F401  # registers tables on Base.metadata

logger = logging.getLogger(__name__)


def init(bind: Optional[Engine] = None) -> None:
    """Create missing tables. Raises if the database is unreachable."""
    bind = bind or default_engine
    logger.info("creating tables on %s", bind.url.render_as_string(hide_password=True))
    Base.metadata.create_all(bind=bind)


if __name__ == "__main__":
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    init()
