from sqlalchemy import (
    Boolean, Column, Date, DateTime, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    employee_id = Column(String(20), unique=True, index=True, nullable=True)
    name = Column(String(100), nullable=False)
    email = Column(String(100), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    mobile = Column(String(10), unique=True, nullable=False)
    address = Column(String(255), nullable=True)
    position = Column(String(100), nullable=True)
    joining_date = Column(Date, nullable=True)
    role = Column(String(20), default="employee", nullable=False)  # admin/hr/employee
    is_active = Column(Boolean, default=True)
    otp_secret = Column(String(64), nullable=True)
    otp_expires = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    attendance_records = relationship(
        "Attendance", back_populates="user", cascade="all, delete-orphan"
    )
    requests = relationship(
        "LeaveRequest",
        back_populates="user",
        cascade="all, delete-orphan",
        foreign_keys="LeaveRequest.user_id",
    )
    announcements = relationship(
        "Announcement", back_populates="creator", cascade="all, delete-orphan"
    )


class Attendance(Base):
    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_attendance_user_date"),
        Index("ix_attendance_date_status", "date", "status"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    status = Column(String(20), default="Present", nullable=False)  # Present/Absent/Leave/WFH/Holiday/W/O
    in_time = Column(String(8), nullable=True)
    out_time = Column(String(8), nullable=True)
    worked_hours = Column(Float, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    user = relationship("User", back_populates="attendance_records")


class LeaveRequest(Base):
    """A leave or work-from-home application covering an inclusive date range."""

    __tablename__ = "leave_requests"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    request_type = Column(String(10), nullable=False, default="leave")  # leave/wfh
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    reason = Column(Text, nullable=False)
    status = Column(String(20), default="pending", nullable=False, index=True)  # pending/approved/rejected
    applied_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="requests", foreign_keys=[user_id])
    history = relationship(
        "RequestAction",
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="RequestAction.id",
    )


class RequestAction(Base):
    __tablename__ = "request_actions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    request_id = Column(Integer, ForeignKey("leave_requests.id", ondelete="CASCADE"), nullable=False)
    action = Column(String(20), nullable=False)  # approved | rejected
    admin_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    date = Column(DateTime, server_default=func.now())

    request = relationship("LeaveRequest", back_populates="history")
    admin = relationship("User", foreign_keys=[admin_id])


class Holiday(Base):
    __tablename__ = "holidays"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    date = Column(Date, unique=True, nullable=False)
    holiday_name = Column(String(100), nullable=False)
    day = Column(String(20), nullable=True)
    applicable = Column(Boolean, default=True, nullable=False)


class Announcement(Base):
    __tablename__ = "announcements"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    pinned = Column(Boolean, default=False, nullable=False)
    starts_at = Column(DateTime, nullable=True)
    ends_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    creator = relationship("User", back_populates="announcements")
