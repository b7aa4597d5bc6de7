from datetime import date

from conftest import auth_headers

SEED = [
    {"date": "2025-03-14", "holiday_name": "Holi"},
    {"date": "2025-08-15", "holiday_name": "Independence Day", "day": "Friday"},
    {"holiday_name": "No date"},
    {"date": "2025-10-02"},
]


def test_seed_upserts_by_date(client, hr, employee):
    response = client.post("/api/holidays/seed", json=SEED, headers=auth_headers(hr))
    assert response.status_code == 200
    assert response.json()["upserted"] == 2
    assert response.json()["total"] == 2

    renamed = client.post(
        "/api/holidays/seed",
        json=[{"date": "2025-03-14", "holiday_name": "Holi Festival"}],
        headers=auth_headers(hr),
    )
    assert renamed.json() == {"message": "Holidays seeded", "upserted": 1, "total": 2}

    holidays = client.get("/api/holidays", headers=auth_headers(employee)).json()
    assert [(h["date"], h["holiday_name"], h["day"]) for h in holidays] == [
        ("2025-03-14", "Holi Festival", "Friday"),
        ("2025-08-15", "Independence Day", "Friday"),
    ]


def test_seed_handles_repeated_dates_in_one_payload(client, admin):
    payload = [
        {"date": "2025-03-14", "holiday_name": "Holi"},
        {"date": "2025-03-14", "holiday_name": "Dhulandi"},
    ]
    response = client.post("/api/holidays/seed", json=payload, headers=auth_headers(admin))

    assert response.status_code == 200
    assert response.json()["total"] == 1


def test_seed_requires_admin_or_hr(client, employee):
    response = client.post("/api/holidays/seed", json=SEED, headers=auth_headers(employee))
    assert response.status_code == 403


def test_upcoming_limit_is_clamped(client, hr, employee, monkeypatch):
    monkeypatch.setattr("ems_api.routes.holidays.local_today", lambda: date(2025, 1, 1))
    payload = [{"date": f"2025-0{month}-10", "holiday_name": f"H{month}"} for month in range(1, 6)]
    payload.append({"date": "2024-12-25", "holiday_name": "Past"})
    client.post("/api/holidays/seed", json=payload, headers=auth_headers(hr))
    headers = auth_headers(employee)

    default = client.get("/api/holidays/upcoming", headers=headers).json()
    assert [h["holiday_name"] for h in default] == ["H1", "H2", "H3"]

    assert len(client.get("/api/holidays/upcoming", params={"limit": "0"}, headers=headers).json()) == 1
    assert len(client.get("/api/holidays/upcoming", params={"limit": "50"}, headers=headers).json()) == 5
    assert len(client.get("/api/holidays/upcoming", params={"limit": "abc"}, headers=headers).json()) == 3


def test_unmark_keeps_row_but_hides_it(client, hr, employee):
    client.post("/api/holidays/seed", json=SEED[:2], headers=auth_headers(hr))
    holidays = client.get("/api/holidays", headers=auth_headers(hr)).json()

    response = client.delete(f"/api/holidays/{holidays[0]['id']}", headers=auth_headers(hr))
    assert response.status_code == 200

    remaining = client.get("/api/holidays", headers=auth_headers(employee)).json()
    assert [h["holiday_name"] for h in remaining] == ["Independence Day"]

    assert client.delete("/api/holidays/999", headers=auth_headers(hr)).status_code == 404
    assert client.delete(f"/api/holidays/{holidays[1]['id']}", headers=auth_headers(employee)).status_code == 403

    # re-seeding the date makes it applicable again
    client.post("/api/holidays/seed", json=SEED[:1], headers=auth_headers(hr))
    assert len(client.get("/api/holidays", headers=auth_headers(employee)).json()) == 2
