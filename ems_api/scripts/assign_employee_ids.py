"""Backfill ``YYYY-NNN`` employee ids for employees created without one.

Run with ``python -m ems_api.scripts.assign_employee_ids``.
"""
import logging

from ..database import Base, SessionLocal, engine
from ..utils.employee_ids import assign_missing_employee_ids

logger = logging.getLogger(__name__)


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        assigned = assign_missing_employee_ids(db)
        logger.info(f"Successfully assigned employee IDs to {assigned} employees")
    except Exception:
        db.rollback()
        logger.exception("Error assigning employee IDs")
        raise SystemExit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
