from __future__ import annotations

from datetime import date, datetime, timezone as dt_timezone

import pytz

DEFAULT_TIMEZONE = "UTC"


class TimezoneUtils:
    """Timezone handling for the cellar: naive UTC in the database, tenant zones for calendar dates."""

    @staticmethod
    def validate_timezone(tz_name: str | None) -> bool:
        """Return True when the timezone string exists in pytz."""
        return bool(tz_name) and tz_name in pytz.all_timezones_set

    @staticmethod
    def _get_timezone(tz_name: str | None):
        if not TimezoneUtils.validate_timezone(tz_name):
            return pytz.timezone(DEFAULT_TIMEZONE)
        return pytz.timezone(tz_name)

    @staticmethod
    def utc_now() -> datetime:
        """Return the current UTC timestamp (timezone aware)."""
        return datetime.now(dt_timezone.utc)

    @staticmethod
    def utc_now_naive() -> datetime:
        """Current UTC time in the naive form stored in DateTime columns."""
        return TimezoneUtils.utc_now().replace(tzinfo=None)

    @staticmethod
    def to_storage(dt: datetime | None) -> datetime | None:
        """Normalize any datetime to naive UTC; naive input is assumed to be UTC already."""
        if dt is None:
            return None
        if dt.tzinfo is None:
            return dt
        return dt.astimezone(dt_timezone.utc).replace(tzinfo=None)

    @staticmethod
    def parse_iso(value: str | None) -> datetime | None:
        """Parse an ISO-8601 timestamp from a request body into naive UTC."""
        if value in (None, ""):
            return None
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return TimezoneUtils.to_storage(datetime.fromisoformat(text))

    @staticmethod
    def local_date(tz_name: str | None, at: datetime | None = None) -> date:
        """Calendar date at ``at`` (default now) in the given tenant timezone."""
        moment = at or TimezoneUtils.utc_now()
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=dt_timezone.utc)
        return moment.astimezone(TimezoneUtils._get_timezone(tz_name)).date()

    @staticmethod
    def format_datetime_for_api(dt: datetime | None) -> str | None:
        if dt is None:
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=dt_timezone.utc)
        return dt.isoformat()
