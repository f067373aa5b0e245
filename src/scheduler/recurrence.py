"""
Recurrence Calculator.

Interprets five-field recurrence expressions (minute hour day month weekday)
and computes the next trigger instant strictly after a given "now".

Supported per field:
    *          any value
    5          fixed value
    1,15,30    list
    1-5        range
    */N, a-b/N step

Weekday 0 and 7 both mean Sunday. When both day and weekday are restricted,
a date matching either one qualifies (classic cron semantics).

One form is special: a pure minute step with every other field wildcarded
(``*/N * * * *``) is a rolling interval, so the next trigger is exactly
``now + N minutes`` rather than the next minute divisible by N.

Anything that cannot be interpreted raises RecurrenceParseError; there is no
fallback interval.
"""

from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Optional

from .errors import RecurrenceParseError


# (name, min, max) for each of the five fields, in expression order
FIELD_SPECS = (
    ("minute", 0, 59),
    ("hour", 0, 23),
    ("day", 1, 31),
    ("month", 1, 12),
    ("weekday", 0, 7),
)

# How far ahead to look before declaring an expression unsatisfiable
SEARCH_HORIZON_DAYS = 366 * 5


@dataclass(frozen=True)
class RecurrenceField:
    """One parsed field: its allowed values and whether it was a wildcard."""

    name: str
    values: frozenset
    restricted: bool


@dataclass(frozen=True)
class Recurrence:
    """A parsed recurrence expression."""

    expression: str
    minutes: tuple
    hours: tuple
    days: RecurrenceField
    months: frozenset
    weekdays: RecurrenceField
    interval_minutes: Optional[int] = None

    def matches_date(self, candidate) -> bool:
        """Check month, day-of-month and weekday constraints for a date."""
        if candidate.month not in self.months:
            return False

        # Python: Monday=0 .. Sunday=6; cron: Sunday=0 .. Saturday=6
        weekday = (candidate.weekday() + 1) % 7
        day_ok = candidate.day in self.days.values
        weekday_ok = weekday in self.weekdays.values

        if self.days.restricted and self.weekdays.restricted:
            return day_ok or weekday_ok
        if self.days.restricted:
            return day_ok
        if self.weekdays.restricted:
            return weekday_ok
        return True

    def next_after(self, now: datetime) -> datetime:
        """Return the first matching instant strictly after ``now``."""
        if self.interval_minutes is not None:
            return now + timedelta(minutes=self.interval_minutes)

        start = now.replace(second=0, microsecond=0) + timedelta(minutes=1)
        first_day = start.date()

        for offset in range(SEARCH_HORIZON_DAYS):
            day = first_day + timedelta(days=offset)
            if not self.matches_date(day):
                continue

            for hour in self.hours:
                for minute in self.minutes:
                    candidate = datetime.combine(
                        day, time(hour, minute), tzinfo=now.tzinfo
                    )
                    if candidate >= start:
                        return candidate

        raise RecurrenceParseError(
            self.expression,
            f"no occurrence within {SEARCH_HORIZON_DAYS} days",
        )


def _parse_int(expression: str, name: str, token: str, low: int, high: int) -> int:
    if not token.isdigit():
        raise RecurrenceParseError(expression, f"{name}: '{token}' is not a number")
    value = int(token)
    if value < low or value > high:
        raise RecurrenceParseError(
            expression, f"{name}: {value} out of range {low}-{high}"
        )
    return value


def _parse_field(expression: str, token: str, name: str, low: int, high: int) -> RecurrenceField:
    values = set()

    for part in token.split(","):
        if not part:
            raise RecurrenceParseError(expression, f"{name}: empty list element")

        step = 1
        base = part
        if "/" in part:
            base, step_token = part.split("/", 1)
            if not step_token.isdigit() or int(step_token) < 1:
                raise RecurrenceParseError(
                    expression, f"{name}: invalid step '{step_token}'"
                )
            step = int(step_token)

        if base == "*":
            start, end = low, high
        elif "-" in base:
            start_token, end_token = base.split("-", 1)
            start = _parse_int(expression, name, start_token, low, high)
            end = _parse_int(expression, name, end_token, low, high)
            if start > end:
                raise RecurrenceParseError(
                    expression, f"{name}: range {start}-{end} is reversed"
                )
        else:
            start = _parse_int(expression, name, base, low, high)
            # "5/15" means "from 5 to the end, every 15"
            end = high if "/" in part else start

        values.update(range(start, end + 1, step))

    if name == "weekday" and 7 in values:
        values.discard(7)
        values.add(0)

    return RecurrenceField(
        name=name,
        values=frozenset(values),
        restricted=not token.startswith("*"),
    )


def parse_recurrence(expression: str) -> Recurrence:
    """
    Parse a five-field recurrence expression.

    Raises:
        RecurrenceParseError: On wrong field count or any invalid field
    """
    if not isinstance(expression, str):
        raise RecurrenceParseError(str(expression), "expression must be a string")

    tokens = expression.split()
    if len(tokens) != len(FIELD_SPECS):
        raise RecurrenceParseError(
            expression,
            f"expected {len(FIELD_SPECS)} fields, got {len(tokens)}",
        )

    minute, hour, day, month, weekday = (
        _parse_field(expression, token, name, low, high)
        for token, (name, low, high) in zip(tokens, FIELD_SPECS)
    )

    # Only a bare "*/N" minute with every other field "*" is a rolling interval;
    # "*/5,30" and the like are clock-aligned lists
    interval_minutes = None
    minute_token = tokens[0]
    if (
        minute_token.startswith("*/")
        and minute_token[2:].isdigit()
        and all(t == "*" for t in tokens[1:])
    ):
        interval_minutes = int(minute_token[2:])

    return Recurrence(
        expression=expression,
        minutes=tuple(sorted(minute.values)),
        hours=tuple(sorted(hour.values)),
        days=day,
        months=month.values,
        weekdays=weekday,
        interval_minutes=interval_minutes,
    )


def next_trigger(expression: str, now: datetime) -> datetime:
    """
    Compute the next trigger instant strictly after ``now``.

    Pure and deterministic: the same (expression, now) always yields the
    same result, and the result keeps ``now``'s tzinfo.

    Examples:
        "*/2 * * * *", 10:03:17  -> 10:05:17
        "0 * * * *",   10:03:17  -> 11:00:00
        "0 5 * * *",   04:30     -> 05:00 same day
        "0 5 * * *",   05:30     -> 05:00 next day
        "0 6 * * 0",   any       -> next Sunday 06:00

    Raises:
        RecurrenceParseError: If the expression cannot be interpreted
    """
    return parse_recurrence(expression).next_after(now)
