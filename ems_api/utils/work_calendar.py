"""
Calendar reconciliation for attendance views.

Stored attendance rows are merged with the company holiday table and the
weekly-off rule (every Sunday plus the 2nd and 4th Saturday of the month).
For any day the first matching source wins: stored record, holiday, week-off.
Days matching none of them produce no row; absences are never inferred.
"""
import calendar
import math
from datetime import date, timedelta


def is_week_off(day: date) -> bool:
    if day.weekday() == 6:
        return True
    if day.weekday() != 5:
        return False
    occurrence = math.ceil(day.day / 7)
    return occurrence in (2, 4)


def date_range(start: date, end: date):
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def month_bounds(year: int, month: int):
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def parse_month(value: str):
    """Parse ``YYYY-MM`` into ``(year, month)``; raises ValueError on bad input."""
    year, month = value.split("-")
    year, month = int(year), int(month)
    if not 1 <= month <= 12:
        raise ValueError(f"month out of range: {value}")
    return year, month


def record_row(record, holiday_name=None):
    row = {
        "id": record.id,
        "user_id": record.user_id,
        "date": record.date.isoformat(),
        "status": record.status,
        "in_time": record.in_time,
        "out_time": record.out_time,
        "worked_hours": record.worked_hours,
        "location": (
            {"latitude": record.latitude, "longitude": record.longitude}
            if record.latitude is not None and record.longitude is not None
            else None
        ),
        "source": "record",
    }
    if holiday_name:
        row["holiday_name"] = holiday_name
    return row


def build_calendar(start: date, end: date, records, holidays, user_id=None):
    """Merge stored records with holiday and week-off overlays, one row per day."""
    by_date = {record.date: record for record in records}
    holiday_names = {h.date: h.holiday_name for h in holidays if h.applicable}

    rows = []
    for day in date_range(start, end):
        record = by_date.get(day)
        if record is not None:
            rows.append(record_row(record, holiday_names.get(day)))
        elif day in holiday_names:
            rows.append({
                "user_id": user_id,
                "date": day.isoformat(),
                "status": "Holiday",
                "holiday_name": holiday_names[day],
                "source": "holiday",
            })
        elif is_week_off(day):
            rows.append({
                "user_id": user_id,
                "date": day.isoformat(),
                "status": "W/O",
                "source": "week_off",
            })
    return rows


def working_days(start: date, end: date, holiday_dates, today: date):
    """Days in range up to ``today`` that are neither holidays nor week-offs."""
    holiday_dates = set(holiday_dates)
    return [
        day for day in date_range(start, min(end, today))
        if day not in holiday_dates and not is_week_off(day)
    ]


def summarize(rows, start: date, end: date, today: date):
    counts = {"Present": 0, "Absent": 0, "Leave": 0, "WFH": 0, "Holiday": 0, "W/O": 0}
    holiday_dates = []
    for row in rows:
        status = row["status"]
        if status in counts:
            counts[status] += 1
        if status == "Holiday" or row.get("holiday_name"):
            holiday_dates.append(date.fromisoformat(row["date"]))

    working = set(working_days(start, end, holiday_dates, today))
    total_working = len(working)
    # only days that were due count towards the percentage
    attended = sum(
        1 for row in rows
        if row["status"] in ("Present", "WFH") and date.fromisoformat(row["date"]) in working
    )
    percentage = round(attended / total_working * 100) if total_working else 0

    return {
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "present_days": counts["Present"],
        "absent_days": counts["Absent"],
        "leave_days": counts["Leave"],
        "wfh_days": counts["WFH"],
        "holiday_days": counts["Holiday"],
        "week_off_days": counts["W/O"],
        "working_days": total_working,
        "attendance_percentage": percentage,
    }
