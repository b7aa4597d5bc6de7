import logging
from datetime import datetime, timedelta

import pyotp
from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from .. import config
from ..database import get_db
from ..models import User
from ..schemas import (
    ForgotPasswordRequest, LoginRequest, ProfileUpdate, ResetPasswordRequest,
    SignupRequest, UserCreate, UserUpdate,
)
from ..serializers import user_out
from ..utils.auth import (
    clear_auth_cookies, get_current_user, get_password_hash, is_manager, role_required,
    send_otp_email, set_auth_cookies, tokens_for, validate_email, validate_mobile,
    validate_password, verify_password,
)
from ..utils.employee_ids import assign_employee_id, assign_missing_employee_ids, next_employee_id

router = APIRouter()
logger = logging.getLogger(__name__)


def _ensure_unique(db: Session, email: str = None, mobile: str = None, exclude_id: int = None):
    if email:
        query = db.query(User).filter(User.email == email)
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        if query.first():
            raise HTTPException(status_code=400, detail="Email already exists")
    if mobile:
        query = db.query(User).filter(User.mobile == mobile)
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        if query.first():
            raise HTTPException(status_code=400, detail="Mobile number already exists")


def create_user(db: Session, data: SignupRequest, role: str = "employee", joining_date=None) -> User:
    email = validate_email(data.email)
    mobile = validate_mobile(data.mobile)
    validate_password(data.password)

    if db.query(User).filter((User.email == email) | (User.mobile == mobile)).first():
        raise HTTPException(status_code=400, detail="User with this email or mobile already exists")

    user = User(
        name=data.name.strip(),
        email=email,
        mobile=mobile,
        hashed_password=get_password_hash(data.password),
        address=data.address,
        position=data.position,
        joining_date=joining_date,
        role=role,
    )
    assign_employee_id(db, user)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user

# ------------------------------------------
# ✅ SIGNUP / LOGIN / LOGOUT
# ------------------------------------------
@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(data: SignupRequest, db: Session = Depends(get_db)):
    user = create_user(db, data)
    logger.info(f"New signup {user.email} ({user.employee_id})")
    return {"message": "Signup successful", "user": user_out(user)}


@router.post("/login")
async def login(data: LoginRequest, response: Response, db: Session = Depends(get_db)):
    email = (data.email or "").strip().lower()
    if not email or not data.password:
        raise HTTPException(status_code=400, detail="Email and password required")

    user = db.query(User).filter(User.email == email).first()
    if not user or not verify_password(data.password, user.hashed_password):
        raise HTTPException(status_code=400, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is deactivated")

    access_token, refresh_token = tokens_for(user)
    set_auth_cookies(response, access_token, refresh_token)
    return {
        "message": "Login successful",
        "access_token": access_token,
        "token_type": "bearer",
        "user": user_out(user),
    }


@router.post("/logout")
async def logout(response: Response):
    clear_auth_cookies(response)
    return {"message": "Logged out successfully"}

# ------------------------------------------
# ✅ FORGOT PASSWORD (Step 1: Send OTP)
# ------------------------------------------
@router.post("/forgot-password")
async def forgot_password(data: ForgotPasswordRequest, db: Session = Depends(get_db)):
    """Sends an OTP to the user for password reset."""
    email = (data.email or "").strip().lower()
    if not email:
        raise HTTPException(status_code=400, detail="Email required")

    user = db.query(User).filter(User.email == email).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    secret = pyotp.random_base32()
    otp = pyotp.TOTP(secret, interval=config.OTP_VALIDITY_SECONDS).now()

    user.otp_secret = secret
    user.otp_expires = datetime.utcnow() + timedelta(seconds=config.OTP_VALIDITY_SECONDS)
    db.commit()

    try:
        send_otp_email(email, otp)
    except HTTPException:
        user.otp_secret = None
        user.otp_expires = None
        db.commit()
        raise
    return {"message": "OTP sent to email for password reset."}

# ------------------------------------------
# ✅ RESET PASSWORD (Step 2)
# ------------------------------------------
@router.post("/reset-password")
async def reset_password(data: ResetPasswordRequest, db: Session = Depends(get_db)):
    """Verifies the emailed OTP and stores the new password."""
    email = (data.email or "").strip().lower()
    user = db.query(User).filter(User.email == email).first()
    if not user or not user.otp_secret:
        raise HTTPException(status_code=400, detail="Invalid or expired token")

    if not user.otp_expires or user.otp_expires < datetime.utcnow():
        user.otp_secret = None
        user.otp_expires = None
        db.commit()
        raise HTTPException(status_code=400, detail="Invalid or expired token")

    totp = pyotp.TOTP(user.otp_secret, interval=config.OTP_VALIDITY_SECONDS)
    if not totp.verify(data.otp, valid_window=1):
        raise HTTPException(status_code=400, detail="Invalid or expired token")

    validate_password(data.new_password)
    user.hashed_password = get_password_hash(data.new_password)
    user.otp_secret = None
    user.otp_expires = None
    db.commit()
    logger.info(f"Password reset for {user.email}")
    return {"message": "Password reset successful"}

# ------------------------------------------
# ✅ OWN PROFILE
# ------------------------------------------
@router.get("/profile")
async def get_profile(current_user: User = Depends(get_current_user)):
    return user_out(current_user)


@router.put("/profile")
async def update_profile(
    data: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    mobile = validate_mobile(data.mobile) if data.mobile else None
    _ensure_unique(db, mobile=mobile, exclude_id=current_user.id)

    if data.name:
        current_user.name = data.name.strip()
    if mobile:
        current_user.mobile = mobile
    if data.address is not None:
        current_user.address = data.address
    db.commit()
    db.refresh(current_user)
    return {"message": "Profile updated successfully", "user": user_out(current_user)}

# ------------------------------------------
# ✅ EMPLOYEE IDS
# ------------------------------------------
@router.get("/next-employee-id", dependencies=[Depends(role_required(["admin", "hr"]))])
async def get_next_employee_id(db: Session = Depends(get_db)):
    return {"next_employee_id": next_employee_id(db)}


@router.post("/assign-employee-ids", dependencies=[Depends(role_required(["admin"]))])
async def assign_employee_ids(db: Session = Depends(get_db)):
    assigned = assign_missing_employee_ids(db)
    return {
        "message": f"Successfully assigned employee IDs to {assigned} employees",
        "assigned_count": assigned,
    }

# ------------------------------------------
# ✅ USER MANAGEMENT (ADMIN / HR)
# ------------------------------------------
@router.get("", dependencies=[Depends(role_required(["admin", "hr"]))])
async def list_users(role: str = None, db: Session = Depends(get_db)):
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    return [user_out(user) for user in query.order_by(User.id).all()]


@router.post("", status_code=status.HTTP_201_CREATED, dependencies=[Depends(role_required(["admin"]))])
async def create_user_by_admin(data: UserCreate, db: Session = Depends(get_db)):
    user = create_user(db, data, role=data.role, joining_date=data.joining_date)
    logger.info(f"Admin created user {user.email} with role {user.role}")
    return {"message": "User created successfully", "user": user_out(user)}


@router.get("/{user_id}")
async def get_user(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not is_manager(current_user) and current_user.id != user_id:
        raise HTTPException(status_code=403, detail="Access denied")
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user_out(user)


@router.put("/{user_id}", dependencies=[Depends(role_required(["admin"]))])
async def update_user(user_id: int, data: UserUpdate, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    changes = data.model_dump(exclude_unset=True)
    if changes.get("email") is not None:
        changes["email"] = validate_email(changes["email"])
    if changes.get("mobile") is not None:
        changes["mobile"] = validate_mobile(changes["mobile"])
    if changes.get("name") is not None:
        if not changes["name"].strip():
            raise HTTPException(status_code=400, detail="Name cannot be empty")
        changes["name"] = changes["name"].strip()
    _ensure_unique(db, email=changes.get("email"), mobile=changes.get("mobile"), exclude_id=user.id)

    for key, value in changes.items():
        if value is None and key not in ("address", "position", "joining_date"):
            continue
        setattr(user, key, value)
    assign_employee_id(db, user)
    db.commit()
    db.refresh(user)
    logger.info(f"User {user_id} updated")
    return {"message": "User updated successfully", "user": user_out(user)}


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    current_user: User = Depends(role_required(["admin"])),
    db: Session = Depends(get_db),
):
    if current_user.id == user_id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    db.delete(user)
    db.commit()
    logger.info(f"User {user_id} deleted")
    return {"message": "User deleted successfully"}
