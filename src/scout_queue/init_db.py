"""Create the ledger tables directly, for development without Alembic."""

import logging

from scout_queue.core.settings import settings
from scout_queue.db.session import create_tables

logger = logging.getLogger(__name__)


def init_db() -> None:
    """Initialize the database by creating all tables."""
    create_tables()
    logger.info("Tables created on %s", settings.effective_database_url.split("@")[-1])


if __name__ == "__main__":
    logging.basicConfig(level=settings.log_level.upper())
    init_db()
    print("Database initialized.")
