import logging
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from .. import config
from ..database import get_db
from ..models import Attendance, Holiday, User
from ..schemas import AttendanceCreate, AttendanceUpdate, CheckInRequest, CheckOutRequest, Location, MarkRequest
from ..utils.auth import check_within_geofence, get_current_user, is_manager, role_required
from ..utils.clock import local_now, local_today
from ..utils.realtime import manager
from ..utils.work_calendar import build_calendar, month_bounds, parse_month, record_row, summarize

router = APIRouter()
logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "date": Attendance.date,
    "status": Attendance.status,
    "in_time": Attendance.in_time,
    "worked_hours": Attendance.worked_hours,
}
MAX_RANGE_DAYS = 366


def parse_clock(value: Optional[str]):
    """Accept ``HH:MM`` or ``HH:MM:SS``; None for empty input."""
    value = (value or "").strip()
    if not value:
        return None
    for fmt in ("%H:%M:%S", "%H:%M"):
        try:
            return datetime.strptime(value, fmt).time()
        except ValueError:
            continue
    raise HTTPException(status_code=400, detail="Invalid time format (expected HH:MM or HH:MM:SS)")


def hours_between(in_time: str, out_time: str) -> float:
    start = datetime.combine(date.min, parse_clock(in_time))
    end = datetime.combine(date.min, parse_clock(out_time))
    if end < start:
        raise HTTPException(status_code=400, detail="Check-out time cannot be before check-in time")
    return round((end - start).total_seconds() / 3600, 2)


def resolve_user_id(current_user: User, user_id: Optional[int], db: Session) -> int:
    """Employees only ever see themselves; admin/hr may look at anyone."""
    if user_id is None or user_id == current_user.id:
        return current_user.id
    if not is_manager(current_user):
        raise HTTPException(status_code=403, detail="Access denied")
    if not db.query(User).filter(User.id == user_id).first():
        raise HTTPException(status_code=404, detail="User not found")
    return user_id


def resolve_range(start_date: Optional[date], end_date: Optional[date]):
    if start_date is None and end_date is None:
        today = local_today()
        return month_bounds(today.year, today.month)
    start_date = start_date or end_date
    end_date = end_date or start_date
    if end_date < start_date:
        raise HTTPException(status_code=400, detail="end_date must not be before start_date")
    if (end_date - start_date).days >= MAX_RANGE_DAYS:
        raise HTTPException(status_code=400, detail=f"Date range cannot exceed {MAX_RANGE_DAYS} days")
    return start_date, end_date


def _ensure_in_geofence(location: Optional[Location]):
    if not config.OFFICE_GEOFENCE:
        return
    if location is None or not check_within_geofence(location.latitude, location.longitude, config.OFFICE_GEOFENCE):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Location outside office geofence"
        )


def _today_record(db: Session, user_id: int, today: date):
    return db.query(Attendance).filter(
        Attendance.user_id == user_id,
        Attendance.date == today
    ).first()


def _ensure_free_day(db: Session, user_id: int, day: date, exclude_id: int = None):
    query = db.query(Attendance).filter(Attendance.user_id == user_id, Attendance.date == day)
    if exclude_id is not None:
        query = query.filter(Attendance.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=400, detail="Attendance record already exists for this date")


def merged_calendar(db: Session, user_id: int, start: date, end: date):
    records = db.query(Attendance).filter(
        Attendance.user_id == user_id,
        Attendance.date >= start,
        Attendance.date <= end
    ).all()
    holidays = db.query(Holiday).filter(
        Holiday.applicable.is_(True),
        Holiday.date >= start,
        Holiday.date <= end
    ).all()
    return build_calendar(start, end, records, holidays, user_id=user_id)


async def _notify(record: Attendance):
    await manager.broadcast("attendanceUpdated", {"user_id": record.user_id, "date": record.date})


async def check_in(db: Session, user: User, location: Location, in_time: Optional[str]):
    today = local_today()
    record = _today_record(db, user.id, today)
    if record and record.in_time:
        raise HTTPException(status_code=400, detail="Already checked in")

    _ensure_in_geofence(location)
    clock = parse_clock(in_time) or local_now().time()

    if not record:
        record = Attendance(user_id=user.id, date=today)
        db.add(record)
    record.status = "Present"
    record.in_time = clock.strftime("%H:%M:%S")
    record.latitude = location.latitude
    record.longitude = location.longitude
    db.commit()
    db.refresh(record)

    logger.info(f"User {user.id} checked in at {record.in_time}")
    await _notify(record)
    return record_row(record)


async def check_out(db: Session, user: User, location: Optional[Location], out_time: Optional[str]):
    today = local_today()
    record = _today_record(db, user.id, today)
    if not record or not record.in_time:
        raise HTTPException(status_code=400, detail="Please check in first")
    if record.out_time:
        raise HTTPException(status_code=400, detail="Already checked out")

    _ensure_in_geofence(location)
    clock = parse_clock(out_time) or local_now().time()
    out_str = clock.strftime("%H:%M:%S")

    record.worked_hours = hours_between(record.in_time, out_str)
    record.out_time = out_str
    if location is not None:
        record.latitude = location.latitude
        record.longitude = location.longitude
    db.commit()
    db.refresh(record)

    logger.info(f"User {user.id} checked out at {record.out_time} ({record.worked_hours}h)")
    await _notify(record)
    return record_row(record)

# ------------------------------------------
# ✅ CHECK-IN / CHECK-OUT
# ------------------------------------------
@router.post("/checkin")
async def checkin(
    data: CheckInRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return await check_in(db, current_user, data.location, data.in_time)


@router.post("/checkout")
async def checkout(
    data: CheckOutRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return await check_out(db, current_user, data.location, data.out_time)


@router.post("/mark")
async def mark(
    data: MarkRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Check in when there is no check-in today yet, otherwise check out."""
    record = _today_record(db, current_user.id, local_today())
    if not record or not record.in_time:
        return await check_in(db, current_user, data.location, data.in_time)
    return await check_out(db, current_user, data.location, data.out_time)

# ------------------------------------------
# ✅ OWN ATTENDANCE
# ------------------------------------------
@router.get("/today")
async def get_today(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    record = _today_record(db, current_user.id, local_today())
    return record_row(record) if record else None


@router.get("/history")
async def get_history(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    records = db.query(Attendance).filter(
        Attendance.user_id == current_user.id
    ).order_by(Attendance.date.desc()).limit(30).all()
    return [record_row(record) for record in records]

# ------------------------------------------
# ✅ CALENDAR, SUMMARY & REPORT
# ------------------------------------------
@router.get("/calendar")
async def get_calendar(
    user_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    target_id = resolve_user_id(current_user, user_id, db)
    start, end = resolve_range(start_date, end_date)
    return {
        "user_id": target_id,
        "start_date": start,
        "end_date": end,
        "days": merged_calendar(db, target_id, start, end),
    }


@router.get("/summary")
async def get_summary(
    user_id: Optional[int] = None,
    month: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    target_id = resolve_user_id(current_user, user_id, db)
    today = local_today()
    if month:
        try:
            year, month_number = parse_month(month)
        except ValueError:
            raise HTTPException(status_code=400, detail="month must be in YYYY-MM format")
    else:
        year, month_number = today.year, today.month

    start, end = month_bounds(year, month_number)
    rows = merged_calendar(db, target_id, start, end)
    return {"user_id": target_id, **summarize(rows, start, end, today)}


@router.get("/report")
async def download_report(
    user_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    target_id = resolve_user_id(current_user, user_id, db)
    start, end = resolve_range(start_date, end_date)
    rows = merged_calendar(db, target_id, start, end)

    def generate_csv():
        yield "Date,Status,In Time,Out Time,Hours Worked,Holiday\n"
        for row in rows:
            yield (
                f"{row['date']},{row['status']},{row.get('in_time') or ''},{row.get('out_time') or ''},"
                f"{row.get('worked_hours') if row.get('worked_hours') is not None else ''},"
                f"{row.get('holiday_name') or ''}\n"
            )

    return StreamingResponse(
        generate_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=attendance_{target_id}_{start}_{end}.csv"}
    )

# ------------------------------------------
# ✅ RECORD CRUD
# ------------------------------------------
@router.get("")
async def list_attendance(
    user_id: Optional[int] = None,
    on_date: Optional[date] = Query(None, alias="date"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    sort: str = "date",
    order: str = "desc",
    limit: Optional[int] = Query(None, ge=1, le=1000),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    target_id = resolve_user_id(current_user, user_id, db)
    if sort not in SORTABLE_FIELDS:
        raise HTTPException(status_code=400, detail=f"sort must be one of {', '.join(SORTABLE_FIELDS)}")

    query = db.query(Attendance).filter(Attendance.user_id == target_id)
    if on_date:
        query = query.filter(Attendance.date == on_date)
    if start_date:
        query = query.filter(Attendance.date >= start_date)
    if end_date:
        query = query.filter(Attendance.date <= end_date)

    column = SORTABLE_FIELDS[sort]
    query = query.order_by(column.desc() if order == "desc" else column.asc(), Attendance.id)
    if limit:
        query = query.limit(limit)
    return [record_row(record) for record in query.all()]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_attendance(
    data: AttendanceCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    target_id = resolve_user_id(current_user, data.user_id, db)
    _ensure_free_day(db, target_id, data.date)
    in_clock = parse_clock(data.in_time)
    out_clock = parse_clock(data.out_time)

    record = Attendance(
        user_id=target_id,
        date=data.date,
        status=data.status,
        in_time=in_clock.strftime("%H:%M:%S") if in_clock else None,
        out_time=out_clock.strftime("%H:%M:%S") if out_clock else None,
        worked_hours=data.worked_hours,
        latitude=data.location.latitude if data.location else None,
        longitude=data.location.longitude if data.location else None,
    )
    if record.worked_hours is None and record.in_time and record.out_time:
        record.worked_hours = hours_between(record.in_time, record.out_time)
    db.add(record)
    db.commit()
    db.refresh(record)

    await _notify(record)
    return record_row(record)


@router.put("/{record_id}", dependencies=[Depends(role_required(["admin", "hr"]))])
async def update_attendance(record_id: int, data: AttendanceUpdate, db: Session = Depends(get_db)):
    record = db.query(Attendance).filter(Attendance.id == record_id).first()
    if not record:
        raise HTTPException(status_code=404, detail="Attendance record not found")

    changes = data.model_dump(exclude_unset=True)
    if changes.get("date") and changes["date"] != record.date:
        _ensure_free_day(db, record.user_id, changes["date"], exclude_id=record.id)
        record.date = changes["date"]
    if changes.get("status"):
        record.status = changes["status"]
    for field in ("in_time", "out_time"):
        if field in changes:
            clock = parse_clock(changes[field])
            setattr(record, field, clock.strftime("%H:%M:%S") if clock else None)
    if "location" in changes:
        location = data.location
        record.latitude = location.latitude if location else None
        record.longitude = location.longitude if location else None

    if "worked_hours" in changes:
        record.worked_hours = changes["worked_hours"]
    elif record.in_time and record.out_time:
        record.worked_hours = hours_between(record.in_time, record.out_time)

    db.commit()
    db.refresh(record)
    logger.info(f"Attendance record {record_id} updated")
    await _notify(record)
    return record_row(record)


@router.delete("/{record_id}", dependencies=[Depends(role_required(["admin", "hr"]))])
async def delete_attendance(record_id: int, db: Session = Depends(get_db)):
    record = db.query(Attendance).filter(Attendance.id == record_id).first()
    if not record:
        raise HTTPException(status_code=404, detail="Attendance record not found")
    payload = {"user_id": record.user_id, "date": record.date}
    db.delete(record)
    db.commit()
    logger.info(f"Attendance record {record_id} deleted")
    await manager.broadcast("attendanceUpdated", payload)
    return {"message": "Attendance record deleted"}
