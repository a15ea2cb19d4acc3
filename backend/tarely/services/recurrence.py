"""Next-occurrence arithmetic for repeating tasks.

A task carries a single rule and a single live date (``next_due_at``).
Completing a recurring task advances that date instead of closing the task.
"""
from __future__ import annotations

import calendar
import dataclasses
from datetime import datetime, timedelta, timezone

from dateutil.relativedelta import relativedelta

_DAY_NAMES = ["Dom", "Lun", "Mar", "Mié", "Jue", "Vie", "Sáb"]
_DAY_NAMES_FULL = ["Domingo", "Lunes", "Martes", "Miércoles", "Jueves", "Viernes", "Sábado"]
_MONTH_NAMES = [
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
]


@dataclasses.dataclass(frozen=True)
class RecurrenceRule:
    frequency: str  # daily | weekly | monthly | yearly
    interval: int = 1
    days_of_week: tuple[int, ...] = ()  # 0=Sunday .. 6=Saturday
    day_of_month: int | None = None
    month_of_year: int | None = None  # 1-based
    ends_at: datetime | None = None

    @classmethod
    def from_task(cls, task) -> "RecurrenceRule | None":
        if not task.recurrence_frequency:
            return None
        return cls(
            frequency=task.recurrence_frequency,
            interval=task.recurrence_interval or 1,
            days_of_week=tuple(task.recurrence_days_of_week or ()),
            day_of_month=task.recurrence_day_of_month,
            month_of_year=task.recurrence_month_of_year,
            ends_at=ensure_utc(task.recurrence_ends_at),
        )


def ensure_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes (as returned by some drivers) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _sunday_based_weekday(value: datetime) -> int:
    return (value.weekday() + 1) % 7


def _clamp_day(value: datetime, day: int) -> datetime:
    last_day = calendar.monthrange(value.year, value.month)[1]
    return value.replace(day=min(day, last_day))


def _step(current: datetime, rule: RecurrenceRule) -> datetime:
    interval = max(rule.interval, 1)

    if rule.frequency == "daily":
        return current + timedelta(days=interval)

    if rule.frequency == "weekly":
        if rule.days_of_week:
            weekday = _sunday_based_weekday(current)
            days = sorted(set(rule.days_of_week))
            later = [d for d in days if d > weekday]
            if later:
                return current + timedelta(days=later[0] - weekday)
            return current + timedelta(days=7 * interval - weekday + days[0])
        return current + timedelta(weeks=interval)

    if rule.frequency == "monthly":
        result = current + relativedelta(months=interval)
        if rule.day_of_month:
            result = _clamp_day(result, rule.day_of_month)
        return result

    if rule.frequency == "yearly":
        result = current + relativedelta(years=interval)
        if rule.month_of_year:
            result = result.replace(day=1, month=rule.month_of_year)
            result = _clamp_day(result, rule.day_of_month or current.day)
        elif rule.day_of_month:
            result = _clamp_day(result, rule.day_of_month)
        return result

    raise ValueError(f"Unknown recurrence frequency {rule.frequency!r}")


def calculate_next_occurrence(
    current: datetime | None,
    rule: RecurrenceRule,
    now: datetime | None = None,
) -> datetime | None:
    """Return the first occurrence strictly after ``now``, or None when the rule has ended."""
    now = ensure_utc(now) or datetime.now(timezone.utc)
    base = ensure_utc(current) or now

    next_date = _step(base, rule)
    while next_date <= now:
        next_date = _step(next_date, rule)

    if rule.ends_at is not None and next_date > ensure_utc(rule.ends_at):
        return None
    return next_date


def recurrence_label(rule: RecurrenceRule) -> str:
    interval = rule.interval

    if rule.frequency == "daily":
        return "Cada día" if interval == 1 else f"Cada {interval} días"

    if rule.frequency == "weekly":
        if rule.days_of_week:
            days = sorted(rule.days_of_week)
            names = ", ".join(_DAY_NAMES[d] for d in days)
            if interval == 1:
                if len(days) == 1:
                    return f"Cada {_DAY_NAMES_FULL[days[0]]}"
                return f"Cada {names}"
            return f"Cada {interval} semanas ({names})"
        return "Cada semana" if interval == 1 else f"Cada {interval} semanas"

    if rule.frequency == "monthly":
        if rule.day_of_month:
            if interval == 1:
                return f"El día {rule.day_of_month} de cada mes"
            return f"El día {rule.day_of_month} cada {interval} meses"
        return "Cada mes" if interval == 1 else f"Cada {interval} meses"

    if rule.frequency == "yearly":
        if rule.month_of_year and rule.day_of_month:
            month = _MONTH_NAMES[rule.month_of_year - 1]
            if interval == 1:
                return f"El {rule.day_of_month} de {month}"
            return f"El {rule.day_of_month} de {month} cada {interval} años"
        if rule.day_of_month:
            if interval == 1:
                return f"El día {rule.day_of_month} cada año"
            return f"El día {rule.day_of_month} cada {interval} años"
        return "Cada año" if interval == 1 else f"Cada {interval} años"

    return "Recurrente"
