from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..models import Attendance, LeaveRequest, User
from ..utils.auth import get_current_user, role_required
from ..utils.clock import local_today
from ..utils.time_off import days_in_month, wfh_days_used
from ..utils.work_calendar import month_bounds

router = APIRouter()


def _current_month():
    today = local_today()
    start, end = month_bounds(today.year, today.month)
    return today.year, today.month, start, end


def _tally(records):
    present = sum(1 for r in records if r.status == "Present")
    leave = sum(1 for r in records if r.status == "Leave")
    wfh = sum(1 for r in records if r.status == "WFH")
    total_hours = sum(r.worked_hours or 0 for r in records)
    avg_hours = round(total_hours / len(records), 1) if records else 0.0
    return present, leave, wfh, avg_hours


@router.get("/employee-stats")
async def employee_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    year, month, start, end = _current_month()
    records = db.query(Attendance).filter(
        Attendance.user_id == current_user.id,
        Attendance.date >= start,
        Attendance.date <= end
    ).all()
    present, leave, wfh, avg_hours = _tally(records)

    return {
        "present_days": present,
        "leave_days": leave,
        "wfh_days": max(wfh, wfh_days_used(db, current_user.id, year, month)),
        "avg_hours": avg_hours,
    }


@router.get("/overall-stats", dependencies=[Depends(role_required(["admin"]))])
async def overall_stats(db: Session = Depends(get_db)):
    year, month, start, end = _current_month()
    records = db.query(Attendance).filter(
        Attendance.date >= start,
        Attendance.date <= end
    ).all()
    present, leave, _, avg_hours = _tally(records)

    wfh_requests = db.query(LeaveRequest).filter(
        LeaveRequest.request_type == "wfh",
        LeaveRequest.status != "rejected",
        LeaveRequest.start_date <= end,
        LeaveRequest.end_date >= start
    ).all()
    wfh_days = sum(days_in_month(r.start_date, r.end_date, year, month) for r in wfh_requests)

    return {
        "total_employees": db.query(User).filter(User.role == "employee").count(),
        "total_present_days": present,
        "total_leave_days": leave,
        "total_wfh_days": wfh_days,
        "avg_hours": avg_hours,
        "total_records": len(records),
    }
