import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..database import get_db
from ..models import Holiday
from ..schemas import HolidaySeed
from ..utils.auth import get_current_user, role_required
from ..utils.clock import local_today
from ..utils.realtime import manager

router = APIRouter()
logger = logging.getLogger(__name__)


def holiday_out(holiday: Holiday):
    return {
        "id": holiday.id,
        "date": holiday.date,
        "holiday_name": holiday.holiday_name,
        "day": holiday.day,
        "applicable": holiday.applicable,
    }


@router.get("", dependencies=[Depends(get_current_user)])
async def list_holidays(db: Session = Depends(get_db)):
    holidays = db.query(Holiday).filter(Holiday.applicable.is_(True)).order_by(Holiday.date).all()
    return [holiday_out(h) for h in holidays]


@router.get("/upcoming", dependencies=[Depends(get_current_user)])
async def upcoming_holidays(limit: str = "3", db: Session = Depends(get_db)):
    try:
        limit = int(limit)
    except ValueError:
        limit = 3
    limit = max(1, min(10, limit))
    holidays = db.query(Holiday).filter(
        Holiday.applicable.is_(True),
        Holiday.date >= local_today()
    ).order_by(Holiday.date).limit(limit).all()
    return [holiday_out(h) for h in holidays]


@router.post("/seed", dependencies=[Depends(role_required(["admin", "hr"]))])
async def seed_holidays(items: HolidaySeed, db: Session = Depends(get_db)):
    """Upsert holidays by date; entries without a date or name are skipped."""
    upserted = 0
    seen = {}
    for item in items:
        if not item.date or not item.holiday_name:
            continue
        holiday = seen.get(item.date) or db.query(Holiday).filter(Holiday.date == item.date).first()
        if holiday is None:
            holiday = Holiday(date=item.date)
            db.add(holiday)
        seen[item.date] = holiday
        holiday.holiday_name = item.holiday_name.strip()
        holiday.day = item.day or item.date.strftime("%A")
        holiday.applicable = item.applicable if item.applicable is not None else True
        upserted += 1
    db.commit()

    total = db.query(Holiday).filter(Holiday.applicable.is_(True)).count()
    logger.info(f"Seeded {upserted} holidays ({total} applicable)")
    await manager.broadcast("holidayUpdated")
    return {"message": "Holidays seeded", "upserted": upserted, "total": total}


@router.delete("/{holiday_id}", dependencies=[Depends(role_required(["admin", "hr"]))])
async def unmark_holiday(holiday_id: int, db: Session = Depends(get_db)):
    """Keeps the row but stops treating the date as a holiday."""
    holiday = db.query(Holiday).filter(Holiday.id == holiday_id).first()
    if not holiday:
        raise HTTPException(status_code=404, detail="Not found")
    holiday.applicable = False
    db.commit()
    logger.info(f"Holiday {holiday_id} unmarked")
    await manager.broadcast("holidayUpdated")
    return {"message": "Holiday unmarked", "id": holiday_id}
