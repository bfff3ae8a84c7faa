from __future__ import annotations

import calendar
import re
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union
from zoneinfo import ZoneInfo

from .errors import PayrollValidationError


MOSCOW_TZ = ZoneInfo("Europe/Moscow")

MONEY_ZERO = Decimal("0")

_MONTH_RE = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")

# "Перенос с января 2025"
MONTHS_RU_GENITIVE = (
    "января", "февраля", "марта", "апреля", "мая", "июня",
    "июля", "августа", "сентября", "октября", "ноября", "декабря",
)
MONTHS_EN = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def today_in(tz_name: str | None = None) -> date:
    tz = ZoneInfo(tz_name) if tz_name else MOSCOW_TZ
    return datetime.now(tz).date()


def parse_month(value: Any) -> tuple[int, int]:
    s = str(value or "").strip()
    m = _MONTH_RE.match(s)
    if not m:
        raise PayrollValidationError("invalid_month", f"Некорректный месяц: {value!r}, ожидается YYYY-MM")
    return int(m.group(1)), int(m.group(2))


def ensure_month(value: Any) -> str:
    y, m = parse_month(value)
    return f"{y:04d}-{m:02d}"


def parse_date(value: Union[str, date, None]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value or "").strip())
    except ValueError as e:
        raise PayrollValidationError("invalid_date", f"Некорректная дата: {value!r}, ожидается YYYY-MM-DD") from e


def ensure_amount(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise PayrollValidationError("invalid_amount")
    try:
        d = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise PayrollValidationError("invalid_amount", "Некорректная сумма") from e
    if not d.is_finite() or d <= MONEY_ZERO:
        raise PayrollValidationError("amount_not_positive", "Сумма должна быть больше 0")
    return d


def month_of(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def next_month(month: str) -> str:
    y, m = parse_month(month)
    if m == 12:
        return f"{y + 1:04d}-01"
    return f"{y:04d}-{m + 1:02d}"


def first_day_of_month(month: str) -> date:
    y, m = parse_month(month)
    return date(y, m, 1)


def last_day_of_month(month: str) -> date:
    y, m = parse_month(month)
    return date(y, m, calendar.monthrange(y, m)[1])


def carryover_comment(from_month: str, locale: str = "ru") -> str:
    y, m = parse_month(from_month)
    if locale == "en":
        return f"Carried over from {MONTHS_EN[m - 1]} {y}"
    return f"Перенос с {MONTHS_RU_GENITIVE[m - 1]} {y}"


def carryover_return_comment(to_month: str, locale: str = "ru") -> str:
    y, m = parse_month(to_month)
    if locale == "en":
        return f"Returned from {MONTHS_EN[m - 1]} {y}"
    return f"Возврат переноса из {MONTHS_RU_GENITIVE[m - 1]} {y}"


def to_money(value: Optional[Any]) -> Decimal:
    if value is None:
        return MONEY_ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))
