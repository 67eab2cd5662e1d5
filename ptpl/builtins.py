"""
Встроенные фильтры и функции шаблонов.
"""

from __future__ import annotations

import random as _random
import re
import uuid as _uuid
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Optional

from .values import MISSING, stringify, to_json

DEFAULT_DATE_FORMAT = "YYYY-MM-DD"

_DATE_TOKENS = re.compile(r"YYYY|MM|DD|HH|mm|ss")


# ---------------------------- filters ---------------------------- #

def upper(value: Any) -> str:
    return stringify(value).upper()


def lower(value: Any) -> str:
    return stringify(value).lower()


def capitalize(value: Any) -> str:
    """Первая буква заглавная, остальное без изменений."""
    text = stringify(value)
    return text[:1].upper() + text[1:]


def truncate(value: Any, length: Any = 50) -> str:
    text = stringify(value)
    limit = int(length)
    if len(text) > limit:
        return text[:limit] + "..."
    return text


def default(value: Any, fallback: Any = "") -> Any:
    """Подстановка, если значение None, отсутствует или пустая строка."""
    if value is None or value is MISSING or value == "":
        return fallback
    return value


def json_filter(value: Any) -> str:
    return to_json(None if value is MISSING else value, indent=2)


def _to_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        # миллисекунды от эпохи, в локальном времени
        try:
            return datetime.fromtimestamp(value / 1000)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            return None
    return None


def format_date(moment: datetime, fmt: str = DEFAULT_DATE_FORMAT) -> str:
    """Форматирует дату по токенам YYYY MM DD HH mm ss."""
    parts = {
        "YYYY": f"{moment.year:04d}",
        "MM": f"{moment.month:02d}",
        "DD": f"{moment.day:02d}",
        "HH": f"{moment.hour:02d}",
        "mm": f"{moment.minute:02d}",
        "ss": f"{moment.second:02d}",
    }
    return _DATE_TOKENS.sub(lambda m: parts[m.group(0)], fmt)


def date_filter(value: Any, fmt: Any = DEFAULT_DATE_FORMAT) -> str:
    """
    Форматирует дату.

    Принимает datetime/date, ISO-строки и секунды от эпохи.
    Неразбираемое значение возвращается строкой без изменений.
    """
    moment = _to_datetime(value)
    if moment is None:
        return stringify(value)
    return format_date(moment, stringify(fmt) or DEFAULT_DATE_FORMAT)


# ---------------------------- functions ---------------------------- #

def now() -> datetime:
    return datetime.now(timezone.utc).astimezone()


def random_int(minimum: Any = 0, maximum: Any = 100) -> int:
    """Случайное целое в диапазоне [minimum, maximum] включительно."""
    low, high = int(minimum), int(maximum)
    if low > high:
        low, high = high, low
    return _random.randint(low, high)


def uuid4() -> str:
    return str(_uuid.uuid4())


BUILTIN_FILTERS: Dict[str, Callable[..., Any]] = {
    "upper": upper,
    "lower": lower,
    "capitalize": capitalize,
    "truncate": truncate,
    "default": default,
    "json": json_filter,
    "date": date_filter,
}

BUILTIN_FUNCTIONS: Dict[str, Callable[..., Any]] = {
    "now": now,
    "random": random_int,
    "uuid": uuid4,
}


__all__ = [
    "BUILTIN_FILTERS",
    "BUILTIN_FUNCTIONS",
    "DEFAULT_DATE_FORMAT",
    "format_date",
]
