from .models import Announcement, LeaveRequest, User


def user_summary(user: User):
    if user is None:
        return None
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "employee_id": user.employee_id,
    }


def user_out(user: User):
    return {
        "id": user.id,
        "employee_id": user.employee_id or "Pending",
        "name": user.name,
        "email": user.email,
        "mobile": user.mobile,
        "address": user.address,
        "position": user.position,
        "joining_date": user.joining_date,
        "role": user.role,
        "is_active": user.is_active,
        "created_at": user.created_at,
        "updated_at": user.updated_at,
    }


def request_out(request: LeaveRequest, with_employee: bool = False):
    data = {
        "id": request.id,
        "request_type": request.request_type,
        "user_id": request.user_id,
        "start_date": request.start_date,
        "end_date": request.end_date,
        "reason": request.reason,
        "status": request.status,
        "applied_at": request.applied_at,
        "history": [
            {"action": h.action, "admin": user_summary(h.admin), "date": h.date}
            for h in request.history
        ],
    }
    if with_employee:
        data["employee"] = user_summary(request.user)
    return data


def announcement_out(announcement: Announcement):
    return {
        "id": announcement.id,
        "title": announcement.title,
        "message": announcement.message,
        "pinned": announcement.pinned,
        "starts_at": announcement.starts_at,
        "ends_at": announcement.ends_at,
        "created_by": user_summary(announcement.creator),
        "created_at": announcement.created_at,
        "updated_at": announcement.updated_at,
    }
