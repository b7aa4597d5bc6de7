import logging
from datetime import date

from sqlalchemy.orm import Session

from ..models import Attendance, Holiday, LeaveRequest
from .work_calendar import date_range, is_week_off, month_bounds

logger = logging.getLogger(__name__)

ATTENDANCE_STATUS_FOR = {"leave": "Leave", "wfh": "WFH"}


def find_overlap(db: Session, user_id: int, request_type: str, start: date, end: date):
    return db.query(LeaveRequest).filter(
        LeaveRequest.user_id == user_id,
        LeaveRequest.request_type == request_type,
        LeaveRequest.status != "rejected",
        LeaveRequest.start_date <= end,
        LeaveRequest.end_date >= start,
    ).first()


def days_in_month(start: date, end: date, year: int, month: int) -> int:
    month_start, month_end = month_bounds(year, month)
    first, last = max(start, month_start), min(end, month_end)
    return (last - first).days + 1 if first <= last else 0


def wfh_days_used(db: Session, user_id: int, year: int, month: int) -> int:
    """WFH days in the month covered by pending or approved requests."""
    month_start, month_end = month_bounds(year, month)
    requests = db.query(LeaveRequest).filter(
        LeaveRequest.user_id == user_id,
        LeaveRequest.request_type == "wfh",
        LeaveRequest.status != "rejected",
        LeaveRequest.start_date <= month_end,
        LeaveRequest.end_date >= month_start,
    ).all()
    return sum(days_in_month(r.start_date, r.end_date, year, month) for r in requests)


def months_spanned(start: date, end: date):
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        yield year, month
        month += 1
        if month > 12:
            year, month = year + 1, 1


def apply_approved_request(db: Session, request: LeaveRequest) -> int:
    """Write Leave/WFH attendance rows for the working days of an approved request.

    Holidays, week-offs and days with an actual check-in are left untouched.
    Returns the number of rows written.
    """
    status = ATTENDANCE_STATUS_FOR[request.request_type]
    holiday_dates = {
        h.date for h in db.query(Holiday).filter(
            Holiday.applicable.is_(True),
            Holiday.date >= request.start_date,
            Holiday.date <= request.end_date,
        ).all()
    }
    existing = {
        a.date: a for a in db.query(Attendance).filter(
            Attendance.user_id == request.user_id,
            Attendance.date >= request.start_date,
            Attendance.date <= request.end_date,
        ).all()
    }

    written = 0
    for day in date_range(request.start_date, request.end_date):
        if day in holiday_dates or is_week_off(day):
            continue
        record = existing.get(day)
        if record is None:
            db.add(Attendance(user_id=request.user_id, date=day, status=status))
            written += 1
        elif not record.in_time:
            record.status = status
            written += 1
    logger.info(f"Marked {written} day(s) as {status} for user {request.user_id}")
    return written
