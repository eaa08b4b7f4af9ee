"""
Create the LitDraft storage tables.

Run this script to set up your database:
    python -m litdraft.db.init_db
"""
import logging

from .database import engine, Base
from .models import KeyValueEntry  # noqa: F401  (registers the table)

logger = logging.getLogger(__name__)


def init_db(bind=None):
    """Create all tables that don't exist yet."""
    Base.metadata.create_all(bind=bind or engine)
    logger.info(f"Database tables ready: {', '.join(Base.metadata.tables)}")


if __name__ == "__main__":
    from litdraft.logging_config import setup_logging
    setup_logging(level="INFO")
    init_db()
