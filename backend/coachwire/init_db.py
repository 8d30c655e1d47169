# backend/coachwire/init_db.py
"""
Create the CoachWire schema.

Run with ``python -m coachwire.init_db`` against DATABASE_URL.
"""

import logging

from sqlalchemy.engine import Engine

from coachwire import models  # noqa: F401  registers tables on Base.metadata
from coachwire.database import Base, engine

logger = logging.getLogger(__name__)


def init_db(bind: Engine = engine) -> None:
    logger.info("Creating database tables")
    Base.metadata.create_all(bind=bind)
    logger.info("Database tables created")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
