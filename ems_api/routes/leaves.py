import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import config
from ..database import get_db
from ..models import LeaveRequest, RequestAction, User
from ..schemas import LeaveApply, StatusDecision
from ..serializers import request_out
from ..utils.auth import get_current_user, role_required
from ..utils.realtime import manager
from ..utils.time_off import apply_approved_request, days_in_month, find_overlap, months_spanned, wfh_days_used

router = APIRouter()
logger = logging.getLogger(__name__)

LABELS = {"leave": "Leave", "wfh": "WFH"}


def apply_request(db: Session, user: User, data: LeaveApply, request_type: str) -> LeaveRequest:
    label = LABELS[request_type]
    if data.end_date < data.start_date:
        raise HTTPException(status_code=400, detail="end_date must not be before start_date")
    if not data.reason.strip():
        raise HTTPException(status_code=400, detail="start_date, end_date and reason are required")

    if find_overlap(db, user.id, request_type, data.start_date, data.end_date):
        raise HTTPException(status_code=400, detail=f"{label} request already exists for these dates")

    if request_type == "wfh":
        for year, month in months_spanned(data.start_date, data.end_date):
            requested = days_in_month(data.start_date, data.end_date, year, month)
            if wfh_days_used(db, user.id, year, month) + requested > config.WFH_MONTHLY_LIMIT:
                raise HTTPException(
                    status_code=400,
                    detail=f"Monthly WFH limit reached (max {config.WFH_MONTHLY_LIMIT} days per month)",
                )

    request = LeaveRequest(
        user_id=user.id,
        request_type=request_type,
        start_date=data.start_date,
        end_date=data.end_date,
        reason=data.reason.strip(),
        status="pending",
    )
    db.add(request)
    db.commit()
    db.refresh(request)
    logger.info(f"{label} applied by user {user.id}: {request.start_date} to {request.end_date}")
    return request


def list_requests(db: Session, request_type: str, user_id: int = None, status_filter: str = None):
    query = db.query(LeaveRequest).filter(LeaveRequest.request_type == request_type)
    if user_id is not None:
        query = query.filter(LeaveRequest.user_id == user_id)
    if status_filter:
        query = query.filter(LeaveRequest.status == status_filter)
    return query.order_by(LeaveRequest.applied_at.desc(), LeaveRequest.id.desc()).all()


async def decide_request(db: Session, admin: User, request_id: int, decision: str, request_type: str):
    """Move a pending request to approved or rejected; anything else is refused."""
    label = LABELS[request_type]
    if decision not in ("approved", "rejected"):
        raise HTTPException(status_code=400, detail="status must be approved or rejected")

    request = db.query(LeaveRequest).filter(
        LeaveRequest.id == request_id,
        LeaveRequest.request_type == request_type
    ).first()
    if not request:
        raise HTTPException(status_code=404, detail=f"{label} request not found")
    if request.status != "pending":
        raise HTTPException(status_code=400, detail="Already processed")

    request.status = decision
    request.history.append(RequestAction(action=decision, admin_id=admin.id))
    written = apply_approved_request(db, request) if decision == "approved" else 0
    db.commit()
    db.refresh(request)

    logger.info(f"{label} request {request_id} {decision} by admin {admin.id}")
    if written:
        await manager.broadcast("attendanceUpdated", {"user_id": request.user_id})
    return request

# ------------------------------------------
# ✅ EMPLOYEE ROUTES
# ------------------------------------------
@router.post("/apply", status_code=status.HTTP_201_CREATED)
async def apply_leave(
    data: LeaveApply,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    request = apply_request(db, current_user, data, "leave")
    return {"message": "Leave applied successfully", "leave": request_out(request)}


@router.get("/mine")
async def my_leaves(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return [request_out(r) for r in list_requests(db, "leave", user_id=current_user.id)]

# ------------------------------------------
# ✅ ADMIN ROUTES
# ------------------------------------------
@router.get("/admin", dependencies=[Depends(role_required(["admin"]))])
async def all_leaves(status: Optional[str] = None, db: Session = Depends(get_db)):
    return [request_out(r, with_employee=True) for r in list_requests(db, "leave", status_filter=status)]


@router.put("/admin/{request_id}")
async def update_leave_status(
    request_id: int,
    data: StatusDecision,
    current_user: User = Depends(role_required(["admin"])),
    db: Session = Depends(get_db)
):
    request = await decide_request(db, current_user, request_id, data.status, "leave")
    return {"message": "Leave status updated", "leave": request_out(request, with_employee=True)}
