import logging
import re
import smtplib
from datetime import datetime, timedelta
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from shapely.geometry import Point, Polygon
from sqlalchemy.orm import Session

from .. import config
from ..database import get_db
from ..models import User

# OAuth2 Scheme; cookies are accepted as well, so a missing header is not an error here
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/users/login", auto_error=False)

# Password Hashing Context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

logger = logging.getLogger(__name__)

# ✅ Password: 6+ chars, one uppercase, one digit, one special character
PASSWORD_REGEX = r"^(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]{6,}$"
EMAIL_REGEX = r"^\S+@\S+\.\S+$"
MOBILE_REGEX = r"^[0-9]{10}$"

ACCESS_COOKIE = "token"
REFRESH_COOKIE = "refreshToken"

# ------------------------------------------
# ✅ PASSWORD HASHING & VERIFICATION
# ------------------------------------------
def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password):
    return pwd_context.hash(password)

# ------------------------------------------
# ✅ FIELD VALIDATION
# ------------------------------------------
def validate_email(email: str) -> str:
    email = (email or "").strip().lower()
    if not re.match(EMAIL_REGEX, email):
        raise HTTPException(status_code=400, detail="Please enter a valid email address")
    return email

def validate_mobile(mobile: str) -> str:
    mobile = (mobile or "").strip()
    if not re.match(MOBILE_REGEX, mobile):
        raise HTTPException(status_code=400, detail="Please enter a valid 10-digit mobile number")
    return mobile

def validate_password(password: str) -> str:
    if not re.match(PASSWORD_REGEX, password or ""):
        raise HTTPException(
            status_code=400,
            detail="Password must include a capital letter, a number and a special character (min 6 chars).",
        )
    return password

# ------------------------------------------
# ✅ TOKENS
# ------------------------------------------
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)

def create_refresh_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(days=config.REFRESH_TOKEN_EXPIRE_DAYS))
    to_encode.update({"exp": expire, "type": "refresh"})
    return jwt.encode(to_encode, config.REFRESH_SECRET_KEY, algorithm=config.ALGORITHM)

def tokens_for(user: User):
    access_token = create_access_token({"sub": str(user.id), "role": user.role})
    refresh_token = create_refresh_token({"sub": str(user.id)})
    return access_token, refresh_token

def set_access_cookie(response: Response, token: str):
    response.set_cookie(
        ACCESS_COOKIE,
        token,
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite="strict",
        max_age=config.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )

def set_auth_cookies(response: Response, access_token: str, refresh_token: str):
    set_access_cookie(response, access_token)
    response.set_cookie(
        REFRESH_COOKIE,
        refresh_token,
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite="strict",
        max_age=config.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
    )

def clear_auth_cookies(response: Response):
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(name, httponly=True, secure=config.COOKIE_SECURE, samesite="strict")

# ------------------------------------------
# ✅ EMAIL OTP FUNCTION FOR FORGOT PASSWORD
# ------------------------------------------
def send_otp_email(recipient_email: str, otp: str):
    try:
        message = MIMEMultipart()
        message["From"] = config.EMAIL_USERNAME
        message["To"] = recipient_email
        message["Subject"] = "Your OTP for Password Reset"

        body = (
            f"Hello,\n\n"
            f"Your OTP for password reset is: {otp}.\n"
            f"It is valid for the next 15 minutes.\n\n"
            f"Regards,\nEMS Team"
        )
        message.attach(MIMEText(body, "plain"))

        with smtplib.SMTP(config.SMTP_SERVER, config.SMTP_PORT) as server:
            server.starttls()
            server.login(config.EMAIL_USERNAME, config.EMAIL_PASSWORD)
            server.send_message(message)

    except Exception as e:
        logger.error(f"Failed to send email: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error sending email, please try again later."
        )

# ------------------------------------------
# ✅ AUTHENTICATION: GET CURRENT USER
# ------------------------------------------
def _load_user(db: Session, user_id) -> User:
    try:
        user = db.query(User).filter(User.id == int(user_id)).first()
    except (TypeError, ValueError):
        user = None
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user

def _renew_from_refresh(request: Request, response: Response, db: Session) -> User:
    refresh_token = request.cookies.get(REFRESH_COOKIE)
    session_expired = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Session expired, please login again",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not refresh_token:
        raise session_expired
    try:
        payload = jwt.decode(refresh_token, config.REFRESH_SECRET_KEY, algorithms=[config.ALGORITHM])
    except JWTError:
        raise session_expired
    if payload.get("type") != "refresh":
        raise session_expired

    user = _load_user(db, payload.get("sub"))
    new_token = create_access_token({"sub": str(user.id), "role": user.role})
    set_access_cookie(response, new_token)
    logger.info(f"Access token renewed for user {user.id}")
    return user

def get_current_user(
    request: Request,
    response: Response,
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    token = token or request.cookies.get(ACCESS_COOKIE)
    if not token:
        raise credentials_exception
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except ExpiredSignatureError:
        return _renew_from_refresh(request, response, db)
    except JWTError:
        raise credentials_exception

    # refresh tokens are only good for renewal
    if payload.get("type") == "refresh":
        raise credentials_exception

    user_id = payload.get("sub")
    if user_id is None:
        raise credentials_exception
    return _load_user(db, user_id)

# ------------------------------------------
# ✅ ROLE-BASED ACCESS CONTROL
# ------------------------------------------
def role_required(required_roles: list):
    def role_checker(current_user: User = Depends(get_current_user)):
        if current_user.role not in required_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have the required permissions."
            )
        return current_user
    return role_checker

def is_manager(user: User) -> bool:
    return user.role in ("admin", "hr")

# ------------------------------------------
# ✅ CHECK IF A LOCATION IS WITHIN THE OFFICE GEOFENCE
# ------------------------------------------
def check_within_geofence(latitude: float, longitude: float, geo_boundary: str):
    if not geo_boundary:
        return False
    boundary_points = [tuple(map(float, coord.split(','))) for coord in geo_boundary.split(';')]
    polygon = Polygon(boundary_points)
    point = Point(latitude, longitude)
    return polygon.contains(point)
