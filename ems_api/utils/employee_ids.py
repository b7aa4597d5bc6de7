import logging

from sqlalchemy.orm import Session

from ..models import User
from .clock import local_today

logger = logging.getLogger(__name__)


def _sequence_of(employee_id: str):
    try:
        return int(employee_id.split("-", 1)[1])
    except (IndexError, ValueError):
        return None


def next_employee_id(db: Session, year: int = None) -> str:
    """Next ``YYYY-NNN`` id for the year, one past the highest sequence in use."""
    year = year or local_today().year
    prefix = f"{year}-"
    existing = {
        row[0] for row in db.query(User.employee_id).filter(User.employee_id.like(f"{prefix}%")).all()
    }
    sequences = [s for s in (_sequence_of(e) for e in existing) if s is not None]
    sequence = max(sequences, default=0) + 1

    candidate = f"{prefix}{sequence:03d}"
    while candidate in existing:
        sequence += 1
        candidate = f"{prefix}{sequence:03d}"
    return candidate


def assign_employee_id(db: Session, user: User, year: int = None) -> str:
    if user.role != "employee" or user.employee_id:
        return user.employee_id
    user.employee_id = next_employee_id(db, year)
    logger.info(f"Generated employee ID {user.employee_id} for {user.name}")
    return user.employee_id


def assign_missing_employee_ids(db: Session) -> int:
    employees = db.query(User).filter(
        User.role == "employee", User.employee_id.is_(None)
    ).order_by(User.id).all()

    assigned = 0
    for employee in employees:
        assign_employee_id(db, employee)
        # flush so the next lookup sees the id just handed out
        db.flush()
        assigned += 1
    db.commit()
    return assigned
