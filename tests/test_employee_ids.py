from datetime import date

from conftest import make_user
from ems_api.utils.clock import local_today
from ems_api.utils.employee_ids import assign_missing_employee_ids, next_employee_id


def test_next_id_follows_highest_sequence(db):
    make_user(db, "A", "a@example.com", "9100000001", employee_id="2025-001")
    make_user(db, "B", "b@example.com", "9100000002", employee_id="2025-007")
    make_user(db, "C", "c@example.com", "9100000003", employee_id="2024-050")

    assert next_employee_id(db, 2025) == "2025-008"
    assert next_employee_id(db, 2026) == "2026-001"


def test_malformed_ids_are_ignored(db):
    make_user(db, "A", "a@example.com", "9100000001", employee_id="2025-abc")

    assert next_employee_id(db, 2025) == "2025-001"


def test_assign_missing_ids_only_for_employees(db):
    year = local_today().year
    first = make_user(db, "A", "a@example.com", "9100000001")
    second = make_user(db, "B", "b@example.com", "9100000002")
    boss = make_user(db, "Boss", "boss@example.com", "9100000003", role="admin")

    assert assign_missing_employee_ids(db) == 2

    db.refresh(first)
    db.refresh(second)
    db.refresh(boss)
    assert first.employee_id == f"{year}-001"
    assert second.employee_id == f"{year}-002"
    assert boss.employee_id is None
    assert assign_missing_employee_ids(db) == 0


def test_default_year_follows_app_clock(db, monkeypatch):
    monkeypatch.setattr("ems_api.utils.employee_ids.local_today", lambda: date(2031, 1, 1))
    make_user(db, "A", "a@example.com", "9100000001", employee_id="2030-009")

    assert next_employee_id(db) == "2031-001"
