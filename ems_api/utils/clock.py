from datetime import datetime

import pytz

from .. import config


def local_now() -> datetime:
    return datetime.now(pytz.timezone(config.APP_TIMEZONE))


def local_today():
    return local_now().date()


def utc_naive(value: datetime):
    """Store timestamps as naive UTC; naive input is assumed to be UTC already."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(pytz.UTC).replace(tzinfo=None)
