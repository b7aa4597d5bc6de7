import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from . import config
from .database import Base, SessionLocal, engine
from .models import User
from .routes import announcements, attendance, dashboard, holidays, leaves, realtime, users, wfh
from .utils.auth import get_password_hash

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="EMS Attendance API")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(users.router, prefix="/api/users", tags=["users"])
app.include_router(attendance.router, prefix="/api/attendances", tags=["attendance"])
app.include_router(leaves.router, prefix="/api/leaves", tags=["leaves"])
app.include_router(wfh.router, prefix="/api/wfh", tags=["wfh"])
app.include_router(holidays.router, prefix="/api/holidays", tags=["holidays"])
app.include_router(announcements.router, prefix="/api/announcements", tags=["announcements"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["dashboard"])
app.include_router(realtime.router, tags=["realtime"])


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.error(f"Integrity error on {request.url.path}: {exc.orig}")
    return JSONResponse(status_code=400, content={"detail": "Duplicate value"})


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception(f"Database error on {request.url.path}")
    return JSONResponse(status_code=500, content={"detail": "Server error"})


def seed_admin():
    """Create the bootstrap admin from ADMIN_EMAIL/ADMIN_PASSWORD if missing."""
    if not config.ADMIN_EMAIL or not config.ADMIN_PASSWORD:
        return
    db = SessionLocal()
    try:
        email = config.ADMIN_EMAIL.strip().lower()
        if db.query(User).filter(User.email == email).first():
            return
        db.add(User(
            name=config.ADMIN_NAME,
            email=email,
            mobile=config.ADMIN_MOBILE,
            hashed_password=get_password_hash(config.ADMIN_PASSWORD),
            role="admin",
        ))
        db.commit()
        logger.info(f"Bootstrap admin {email} created")
    finally:
        db.close()


@app.on_event("startup")
async def startup_event():
    # Create all tables in the database
    logger.info("Creating tables...")
    Base.metadata.create_all(bind=engine)
    seed_admin()
    logger.info("Application started.")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Application stopped.")


@app.get("/")
async def root():
    return {"message": "EMS Attendance API is up"}
