import datetime as dt
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class SignupRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: str
    password: str
    mobile: str
    address: Optional[str] = None
    position: Optional[str] = None


class UserCreate(SignupRequest):
    role: Literal["admin", "hr", "employee"] = "employee"
    joining_date: Optional[dt.date] = None


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    mobile: Optional[str] = None
    role: Optional[Literal["admin", "hr", "employee"]] = None
    address: Optional[str] = None
    position: Optional[str] = None
    joining_date: Optional[dt.date] = None
    is_active: Optional[bool] = None


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    mobile: Optional[str] = None
    address: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class ForgotPasswordRequest(BaseModel):
    email: str


class ResetPasswordRequest(BaseModel):
    email: str
    otp: str
    new_password: str


class Location(BaseModel):
    latitude: float
    longitude: float


class CheckInRequest(BaseModel):
    location: Location
    in_time: Optional[str] = None


class CheckOutRequest(BaseModel):
    location: Optional[Location] = None
    out_time: Optional[str] = None


class MarkRequest(BaseModel):
    location: Location
    in_time: Optional[str] = None
    out_time: Optional[str] = None


class AttendanceCreate(BaseModel):
    user_id: Optional[int] = None
    date: dt.date
    status: Literal["Present", "Absent", "Leave", "WFH", "Holiday", "W/O"] = "Present"
    in_time: Optional[str] = None
    out_time: Optional[str] = None
    worked_hours: Optional[float] = None
    location: Optional[Location] = None


class AttendanceUpdate(BaseModel):
    date: Optional[dt.date] = None
    status: Optional[Literal["Present", "Absent", "Leave", "WFH", "Holiday", "W/O"]] = None
    in_time: Optional[str] = None
    out_time: Optional[str] = None
    worked_hours: Optional[float] = None
    location: Optional[Location] = None


class LeaveApply(BaseModel):
    start_date: dt.date
    end_date: dt.date
    reason: str = Field(..., min_length=1)


class StatusDecision(BaseModel):
    status: str


class HolidayItem(BaseModel):
    date: Optional[dt.date] = None
    holiday_name: Optional[str] = None
    day: Optional[str] = None
    applicable: Optional[bool] = None


class AnnouncementCreate(BaseModel):
    title: str
    message: str
    pinned: bool = False
    starts_at: Optional[dt.datetime] = None
    ends_at: Optional[dt.datetime] = None


class AnnouncementUpdate(BaseModel):
    title: Optional[str] = None
    message: Optional[str] = None
    pinned: Optional[bool] = None
    starts_at: Optional[dt.datetime] = None
    ends_at: Optional[dt.datetime] = None


HolidaySeed = List[HolidayItem]
