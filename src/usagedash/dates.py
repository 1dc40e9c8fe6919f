from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from usagedash.errors import InvalidDateRangeError

ONE_DAY = timedelta(days=1)


def utc_today() -> "date":
    return datetime.now(timezone.utc).date()


def date_from_iso_timestamp(value: "str") -> "str":
    """
    returns the calendar date part of an RFC 3339 timestamp
    such as '2025-01-06T00:00:00Z'.
    """
    return value.split("T", 1)[0]


def date_from_unix(ts: "int | float") -> "str":
    return datetime.fromtimestamp(ts, tz=timezone.utc).date().isoformat()


def unix_midnight(day: "date") -> "int":
    return int(datetime(day.year, day.month, day.day, tzinfo=timezone.utc).timestamp())


def iso_midnight(day: "date") -> "str":
    return f"{day.isoformat()}T00:00:00Z"


def _parse(value: "str", name: "str") -> "date":
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise InvalidDateRangeError(f"{name} must be an ISO date (YYYY-MM-DD), got {value!r}") from e


@dataclass(frozen=True, slots=True)
class DateRange:
    """
    DateRange is an inclusive span of calendar days, both ends in UTC.
    """

    start: "date"
    end: "date"

    @classmethod
    def resolve(
        cls,
        start: "str | None",
        end: "str | None",
        today: "date",
        default_days: "int" = 7,
    ) -> "DateRange":
        """
        builds the range from optional ISO query parameters. A missing
        end means today and a missing start means default_days before
        the end.
        """
        end_day = _parse(end, "end") if end else today
        start_day = _parse(start, "start") if start else end_day - timedelta(days=default_days)

        if start_day > end_day:
            raise InvalidDateRangeError(
                f"start {start_day.isoformat()} is after end {end_day.isoformat()}"
            )

        return cls(start=start_day, end=end_day)

    @property
    def end_exclusive(self) -> "date":
        # upstream end bounds are exclusive, so pad by a day to keep
        # the caller's end date inside the daily buckets
        return self.end + ONE_DAY

    def hourly_window(self, today: "date", days: "int" = 3) -> "DateRange | None":
        """
        returns the trailing window (at most `days` days ending today)
        that overlaps this range, or None when the range lies entirely
        before it.
        """
        lo = max(self.start, today - timedelta(days=days - 1))
        hi = min(self.end, today)
        if lo > hi:
            return None
        return DateRange(start=lo, end=hi)
