"""Create database tables for the scheduled notification service."""

from __future__ import annotations

import logging

from scheduled_notify.core.db import SessionLocal, engine
from scheduled_notify.models import Base
from scheduled_notify.services.publisher_seed import seed_default_publishers


logger = logging.getLogger("scripts.create_db")


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as db:
        seed_default_publishers(db)
    logger.info("Database tables created/verified.")


if __name__ == "__main__":
    main()
