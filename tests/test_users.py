import re
from datetime import timedelta

import pytest

from conftest import PASSWORD, auth_headers, make_user
from ems_api.utils.auth import create_access_token, create_refresh_token

SIGNUP = {
    "name": "Meera",
    "email": "Meera@Example.com",
    "password": "Strong@1",
    "mobile": "9876543210",
    "position": "Engineer",
}


def test_signup_creates_employee_with_id(client):
    response = client.post("/api/users/signup", json=SIGNUP)

    assert response.status_code == 201
    user = response.json()["user"]
    assert user["email"] == "meera@example.com"
    assert user["role"] == "employee"
    assert re.match(r"^\d{4}-\d{3}$", user["employee_id"])
    assert "hashed_password" not in user


@pytest.mark.parametrize(
    "field, value",
    [
        ("password", "weakpass"),
        ("mobile", "12345"),
        ("email", "not-an-email"),
    ],
)
def test_signup_validation(client, field, value):
    response = client.post("/api/users/signup", json={**SIGNUP, field: value})
    assert response.status_code == 400


def test_signup_rejects_duplicates(client, employee):
    response = client.post("/api/users/signup", json={**SIGNUP, "email": employee.email})

    assert response.status_code == 400
    assert response.json()["detail"] == "User with this email or mobile already exists"


def test_login_sets_cookies(client, employee):
    response = client.post("/api/users/login", json={"email": "ASHA@example.com", "password": PASSWORD})

    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["employee_id"] == "2025-001"
    assert "token" in response.cookies
    assert "refreshToken" in response.cookies


def test_login_failures(client, db, employee):
    assert client.post(
        "/api/users/login", json={"email": employee.email, "password": "Wrong@123"}
    ).status_code == 400

    make_user(db, "Gone", "gone@example.com", "9111111111", is_active=False)
    response = client.post("/api/users/login", json={"email": "gone@example.com", "password": PASSWORD})
    assert response.status_code == 403


def test_cookie_login_then_logout(client, employee):
    client.post("/api/users/login", json={"email": employee.email, "password": PASSWORD})
    assert client.get("/api/users/profile").status_code == 200

    client.post("/api/users/logout")
    assert client.get("/api/users/profile").status_code == 401


def test_requests_without_token_are_rejected(client):
    response = client.get("/api/users/profile")
    assert response.status_code == 401


def test_expired_access_token_is_renewed_from_refresh_cookie(client, employee):
    expired = create_access_token({"sub": str(employee.id), "role": employee.role}, timedelta(minutes=-1))
    client.cookies.set("token", expired)
    client.cookies.set("refreshToken", create_refresh_token({"sub": str(employee.id)}))

    response = client.get("/api/users/profile")

    assert response.status_code == 200
    assert response.json()["email"] == employee.email
    assert "token" in response.cookies


def test_expired_access_token_without_refresh(client, employee):
    expired = create_access_token({"sub": str(employee.id), "role": employee.role}, timedelta(minutes=-1))

    response = client.get("/api/users/profile", headers={"Authorization": f"Bearer {expired}"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Session expired, please login again"


def test_token_for_deactivated_user_is_rejected(client, db, employee):
    headers = auth_headers(employee)
    employee.is_active = False
    db.commit()

    assert client.get("/api/users/profile", headers=headers).status_code == 401


def test_update_profile(client, employee, other_employee):
    headers = auth_headers(employee)
    response = client.put("/api/users/profile", json={"name": "Asha K", "address": "Pune"}, headers=headers)

    assert response.status_code == 200
    assert response.json()["user"]["name"] == "Asha K"
    assert response.json()["user"]["address"] == "Pune"

    taken = client.put("/api/users/profile", json={"mobile": other_employee.mobile}, headers=headers)
    assert taken.status_code == 400


def test_password_reset_with_emailed_otp(client, employee, monkeypatch):
    sent = {}
    monkeypatch.setattr("ems_api.routes.users.send_otp_email", lambda email, otp: sent.update(email=email, otp=otp))

    response = client.post("/api/users/forgot-password", json={"email": employee.email})
    assert response.status_code == 200
    assert sent["email"] == employee.email

    wrong = "000000" if sent["otp"] != "000000" else "111111"
    bad = client.post(
        "/api/users/reset-password",
        json={"email": employee.email, "otp": wrong, "new_password": "Fresh@123"},
    )
    assert bad.status_code == 400

    good = client.post(
        "/api/users/reset-password",
        json={"email": employee.email, "otp": sent["otp"], "new_password": "Fresh@123"},
    )
    assert good.status_code == 200

    login = client.post("/api/users/login", json={"email": employee.email, "password": "Fresh@123"})
    assert login.status_code == 200

    reused = client.post(
        "/api/users/reset-password",
        json={"email": employee.email, "otp": sent["otp"], "new_password": "Other@123"},
    )
    assert reused.status_code == 400


def test_forgot_password_unknown_email(client):
    response = client.post("/api/users/forgot-password", json={"email": "nobody@example.com"})
    assert response.status_code == 404


def test_user_listing_is_restricted(client, admin, hr, employee):
    assert client.get("/api/users", headers=auth_headers(employee)).status_code == 403

    response = client.get("/api/users", params={"role": "employee"}, headers=auth_headers(hr))
    assert response.status_code == 200
    assert [u["email"] for u in response.json()] == [employee.email]


def test_admin_creates_user_with_role(client, admin, hr):
    payload = {**SIGNUP, "role": "hr"}

    assert client.post("/api/users", json=payload, headers=auth_headers(hr)).status_code == 403

    response = client.post("/api/users", json=payload, headers=auth_headers(admin))
    assert response.status_code == 201
    assert response.json()["user"]["role"] == "hr"
    assert response.json()["user"]["employee_id"] == "Pending"


def test_get_user_self_or_manager(client, hr, employee, other_employee):
    assert client.get(f"/api/users/{employee.id}", headers=auth_headers(employee)).status_code == 200
    assert client.get(f"/api/users/{other_employee.id}", headers=auth_headers(employee)).status_code == 403
    assert client.get(f"/api/users/{other_employee.id}", headers=auth_headers(hr)).status_code == 200
    assert client.get("/api/users/999", headers=auth_headers(hr)).status_code == 404


def test_admin_updates_user(client, admin, employee, other_employee):
    headers = auth_headers(admin)

    response = client.put(f"/api/users/{employee.id}", json={"position": "Lead", "is_active": False}, headers=headers)
    assert response.status_code == 200
    assert response.json()["user"]["position"] == "Lead"
    assert response.json()["user"]["is_active"] is False

    clash = client.put(f"/api/users/{employee.id}", json={"email": other_employee.email}, headers=headers)
    assert clash.status_code == 400


def test_delete_user(client, admin, employee):
    headers = auth_headers(admin)

    assert client.delete(f"/api/users/{admin.id}", headers=headers).status_code == 400
    assert client.delete(f"/api/users/{employee.id}", headers=headers).status_code == 200
    assert client.get(f"/api/users/{employee.id}", headers=headers).status_code == 404


def test_employee_id_endpoints(client, db, admin, hr, employee):
    make_user(db, "New", "new@example.com", "9222222222")

    preview = client.get("/api/users/next-employee-id", headers=auth_headers(hr))
    assert preview.status_code == 200
    assert re.match(r"^\d{4}-\d{3}$", preview.json()["next_employee_id"])

    assert client.post("/api/users/assign-employee-ids", headers=auth_headers(hr)).status_code == 403
    response = client.post("/api/users/assign-employee-ids", headers=auth_headers(admin))
    assert response.json()["assigned_count"] == 1


@pytest.mark.parametrize("payload", [{"email": ""}, {"mobile": ""}, {"name": "   "}])
def test_admin_update_rejects_blank_required_fields(client, db, admin, employee, payload):
    response = client.put(f"/api/users/{employee.id}", json=payload, headers=auth_headers(admin))

    assert response.status_code == 400
    db.refresh(employee)
    assert employee.email == "asha@example.com"
    assert employee.mobile == "9000000003"
    assert employee.name == "Asha"


def test_refresh_token_is_not_an_access_token(client, employee):
    refresh = create_refresh_token({"sub": str(employee.id)})

    response = client.get("/api/users/profile", headers={"Authorization": f"Bearer {refresh}"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Could not validate credentials"
