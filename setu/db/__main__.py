"""Deploy-time entry point: `python -m setu.db` applies pending migrations."""
import logging

from setu.config import LOG_LEVEL
from setu.db import open_database
from setu.db.migrations import migrate

if __name__ == "__main__":
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    db = open_database()
    try:
        applied = migrate(db)
        print(f"Applied {len(applied)} migration(s): {applied or 'none pending'}")
    finally:
        db.close()
