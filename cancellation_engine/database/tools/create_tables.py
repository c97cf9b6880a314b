"""
Create (or rebuild) the engine's tables.
Run this before seed_data.py; the API also calls it on startup.
"""
import argparse

from cancellation_engine.database.schemas.db_models import Base
from cancellation_engine.database.tools.db_connection import engine
from cancellation_engine.utils.logger import get_logger

logger = get_logger(__name__)


def create_tables(drop_existing: bool = False):
    """Create every mapped table that does not exist yet."""
    if drop_existing:
        logger.warning("Dropping all cancellation engine tables")
        Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    logger.info(f"Tables ready: {', '.join(sorted(Base.metadata.tables))}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create the cancellation engine tables")
    parser.add_argument("--reset", action="store_true", help="drop existing tables first")
    args = parser.parse_args()

    create_tables(drop_existing=args.reset)
    print("✅ Tables created successfully!")
