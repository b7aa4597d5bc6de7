import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("ADMIN_EMAIL", None)
os.environ.pop("OFFICE_GEOFENCE", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ems_api.database import Base, get_db
from ems_api.main import app
from ems_api.models import User
from ems_api.utils.auth import create_access_token, get_password_hash, pwd_context

# cheap hashes keep the suite fast
pwd_context.update(bcrypt__rounds=4)

PASSWORD = "Secret@1"

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_user(db, name, email, mobile, role="employee", employee_id=None, is_active=True):
    user = User(
        name=name,
        email=email,
        mobile=mobile,
        hashed_password=get_password_hash(PASSWORD),
        role=role,
        employee_id=employee_id,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user):
    token = create_access_token({"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin(db):
    return make_user(db, "Admin", "admin@example.com", "9000000001", role="admin")


@pytest.fixture
def hr(db):
    return make_user(db, "Hr Person", "hr@example.com", "9000000002", role="hr")


@pytest.fixture
def employee(db):
    return make_user(db, "Asha", "asha@example.com", "9000000003", employee_id="2025-001")


@pytest.fixture
def other_employee(db):
    return make_user(db, "Ravi", "ravi@example.com", "9000000004", employee_id="2025-002")
