import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..database import get_db
from ..models import Announcement, User
from ..schemas import AnnouncementCreate, AnnouncementUpdate
from ..serializers import announcement_out
from ..utils.auth import get_current_user, role_required
from ..utils.clock import utc_naive
from ..utils.realtime import manager

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", dependencies=[Depends(get_current_user)])
async def list_announcements(db: Session = Depends(get_db)):
    """Announcements whose window contains now, pinned first then newest."""
    now = datetime.utcnow()
    items = db.query(Announcement).filter(
        or_(Announcement.starts_at.is_(None), Announcement.starts_at <= now),
        or_(Announcement.ends_at.is_(None), Announcement.ends_at >= now),
    ).order_by(
        Announcement.pinned.desc(),
        Announcement.created_at.desc(),
        Announcement.id.desc()
    ).all()
    return [announcement_out(a) for a in items]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_announcement(
    data: AnnouncementCreate,
    current_user: User = Depends(role_required(["admin", "hr"])),
    db: Session = Depends(get_db)
):
    if not data.title.strip() or not data.message.strip():
        raise HTTPException(status_code=400, detail="title and message are required")

    announcement = Announcement(
        title=data.title.strip(),
        message=data.message.strip(),
        pinned=data.pinned,
        starts_at=utc_naive(data.starts_at),
        ends_at=utc_naive(data.ends_at),
        created_by=current_user.id,
    )
    db.add(announcement)
    db.commit()
    db.refresh(announcement)

    payload = announcement_out(announcement)
    logger.info(f"Announcement {announcement.id} created by user {current_user.id}")
    await manager.broadcast("announcementCreated", payload)
    return {"message": "Announcement created", "announcement": payload}


@router.put("/{announcement_id}", dependencies=[Depends(role_required(["admin", "hr"]))])
async def update_announcement(
    announcement_id: int,
    data: AnnouncementUpdate,
    db: Session = Depends(get_db)
):
    announcement = db.query(Announcement).filter(Announcement.id == announcement_id).first()
    if not announcement:
        raise HTTPException(status_code=404, detail="Announcement not found")

    changes = data.model_dump(exclude_unset=True)
    for key in ("title", "message"):
        if changes.get(key) is not None:
            if not changes[key].strip():
                raise HTTPException(status_code=400, detail=f"{key} cannot be empty")
            setattr(announcement, key, changes[key].strip())
    if changes.get("pinned") is not None:
        announcement.pinned = changes["pinned"]
    for key in ("starts_at", "ends_at"):
        if key in changes:
            setattr(announcement, key, utc_naive(changes[key]))
    db.commit()
    db.refresh(announcement)

    payload = announcement_out(announcement)
    await manager.broadcast("announcementUpdated", payload)
    return {"message": "Announcement updated", "announcement": payload}


@router.delete("/{announcement_id}", dependencies=[Depends(role_required(["admin", "hr"]))])
async def delete_announcement(announcement_id: int, db: Session = Depends(get_db)):
    announcement = db.query(Announcement).filter(Announcement.id == announcement_id).first()
    if not announcement:
        raise HTTPException(status_code=404, detail="Announcement not found")
    db.delete(announcement)
    db.commit()
    logger.info(f"Announcement {announcement_id} deleted")
    await manager.broadcast("announcementDeleted", {"id": announcement_id})
    return {"message": "Announcement deleted"}
