from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import config
from ..database import get_db
from ..models import LeaveRequest, User
from ..schemas import LeaveApply, StatusDecision
from ..serializers import request_out
from ..utils.auth import get_current_user, is_manager, role_required
from ..utils.clock import local_today
from ..utils.time_off import wfh_days_used
from ..utils.work_calendar import month_bounds
from .leaves import apply_request, decide_request, list_requests

router = APIRouter()


@router.post("/request", status_code=status.HTTP_201_CREATED)
async def request_wfh(
    data: LeaveApply,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    request = apply_request(db, current_user, data, "wfh")
    return {"message": "WFH request submitted successfully", "wfh": request_out(request)}


@router.get("/mine")
async def my_wfh(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return [request_out(r) for r in list_requests(db, "wfh", user_id=current_user.id)]


@router.get("/summary/{user_id}")
async def wfh_summary(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Remaining WFH days this month plus the month's requests."""
    if not is_manager(current_user) and current_user.id != user_id:
        raise HTTPException(status_code=403, detail="Access denied")

    today = local_today()
    month_start, month_end = month_bounds(today.year, today.month)
    used = wfh_days_used(db, user_id, today.year, today.month)
    requests = db.query(LeaveRequest).filter(
        LeaveRequest.user_id == user_id,
        LeaveRequest.request_type == "wfh",
        LeaveRequest.start_date <= month_end,
        LeaveRequest.end_date >= month_start,
    ).order_by(LeaveRequest.start_date.desc()).all()

    return {
        "limit": config.WFH_MONTHLY_LIMIT,
        "used": used,
        "remaining": max(0, config.WFH_MONTHLY_LIMIT - used),
        "requests": [request_out(r) for r in requests],
    }


@router.get("/admin", dependencies=[Depends(role_required(["admin"]))])
async def all_wfh(status: Optional[str] = None, db: Session = Depends(get_db)):
    return [request_out(r, with_employee=True) for r in list_requests(db, "wfh", status_filter=status)]


@router.put("/admin/{request_id}")
async def update_wfh_status(
    request_id: int,
    data: StatusDecision,
    current_user: User = Depends(role_required(["admin"])),
    db: Session = Depends(get_db)
):
    request = await decide_request(db, current_user, request_id, data.status, "wfh")
    return {"message": "WFH status updated", "wfh": request_out(request, with_employee=True)}
