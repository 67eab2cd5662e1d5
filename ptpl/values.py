"""
Модель значений шаблонизатора.

Единые правила для всех стадий:
- разрешение точечных путей в дереве переменных
- истинность (truthiness)
- приведение к строке
- сравнения для условий

Значения: None, bool, int/float, str, последовательности (list/tuple) и отображения.
"""

from __future__ import annotations

import json
import math
from datetime import date, datetime, time
from typing import Any, List, Mapping, Optional, Sequence


class _Missing:
    """Маркер отсутствующего значения (в отличие от явного None)."""

    _instance: Optional["_Missing"] = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def split_path(path: str) -> List[str]:
    """Разбивает путь 'user.profile.name' на сегменты."""
    return [segment for segment in path.split(".") if segment != ""]


def resolve_path(tree: Any, path: str) -> Any:
    """
    Разрешает точечный путь в дереве переменных.

    Сегменты ищутся как ключи отображений; числовые сегменты
    также работают как индексы последовательностей.

    Returns:
        Найденное значение или MISSING
    """
    segments = split_path(path)
    if not segments:
        return MISSING
    return resolve_segments(tree, segments)


def resolve_segments(tree: Any, segments: Sequence[str]) -> Any:
    current = tree
    for segment in segments:
        if isinstance(current, Mapping):
            if segment not in current:
                return MISSING
            current = current[segment]
        elif is_sequence(current) and segment.lstrip("-").isdigit():
            index = int(segment)
            if -len(current) <= index < len(current):
                current = current[index]
            else:
                return MISSING
        else:
            return MISSING
    return current


def is_sequence(value: Any) -> bool:
    """Последовательность в смысле шаблонов: list/tuple, но не строка."""
    return isinstance(value, (list, tuple))


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_truthy(value: Any) -> bool:
    """
    Истинность значения.

    Ложны: None/MISSING, False, 0, 0.0, NaN, пустая строка, пустая последовательность.
    Всё остальное истинно (включая пустые отображения).
    """
    if value is None or value is MISSING:
        return False
    if isinstance(value, bool):
        return value
    if is_number(value):
        return value != 0 and not (isinstance(value, float) and math.isnan(value))
    if isinstance(value, str):
        return value != ""
    if is_sequence(value):
        return len(value) > 0
    return True


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    return str(value)


def to_json(value: Any, *, indent: Optional[int] = None) -> str:
    separators = (",", ":") if indent is None else (",", ": ")
    return json.dumps(value, ensure_ascii=False, indent=indent, separators=separators, default=_json_default)


def stringify(value: Any) -> str:
    """Приводит значение к строке для вывода в шаблон."""
    if value is None or value is MISSING:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Mapping) or is_sequence(value):
        return to_json(value)
    return str(value)


def to_sequence(value: Any) -> Optional[List[Any]]:
    """Возвращает список элементов или None, если значение не последовательность."""
    if is_sequence(value):
        return list(value)
    return None


def _as_number(value: Any) -> Optional[float]:
    if is_number(value):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _kind(value: Any) -> str:
    if value is None or value is MISSING:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if is_sequence(value):
        return "sequence"
    if isinstance(value, Mapping):
        return "mapping"
    return "other"


def loose_equals(left: Any, right: Any) -> bool:
    """
    Нестрогое равенство (==).

    Число и числовая строка сравниваются как числа; отсутствующее
    значение равно None.
    """
    left_kind, right_kind = _kind(left), _kind(right)
    if left_kind == "null" or right_kind == "null":
        return left_kind == right_kind
    if left_kind == right_kind:
        return left == right
    if {left_kind, right_kind} == {"number", "string"}:
        a, b = _as_number(left), _as_number(right)
        return a is not None and b is not None and a == b
    return False


def strict_equals(left: Any, right: Any) -> bool:
    """Строгое равенство (===): одинаковый вид значения и равенство."""
    if _kind(left) != _kind(right):
        return False
    if _kind(left) == "null":
        return True
    return left == right


def _ordered(left: Any, right: Any) -> Optional[tuple]:
    left_kind, right_kind = _kind(left), _kind(right)
    if left_kind == right_kind == "string":
        return left, right
    if "null" in (left_kind, right_kind) or "boolean" in (left_kind, right_kind):
        return None
    if left_kind in ("number", "string") and right_kind in ("number", "string"):
        a, b = _as_number(left), _as_number(right)
        if a is None or b is None:
            return None
        return a, b
    return None


def compare(operator: str, left: Any, right: Any) -> bool:
    """
    Вычисляет операцию сравнения.

    Raises:
        ValueError: При неизвестном операторе
    """
    if operator == "==":
        return loose_equals(left, right)
    if operator == "!=":
        return not loose_equals(left, right)
    if operator == "===":
        return strict_equals(left, right)
    if operator == "!==":
        return not strict_equals(left, right)

    pair = _ordered(left, right)
    if pair is None:
        if operator not in (">", "<", ">=", "<="):
            raise ValueError(f"Unknown comparison operator: {operator}")
        return False
    a, b = pair
    if operator == ">":
        return a > b
    if operator == "<":
        return a < b
    if operator == ">=":
        return a >= b
    if operator == "<=":
        return a <= b
    raise ValueError(f"Unknown comparison operator: {operator}")


__all__ = [
    "MISSING",
    "split_path",
    "resolve_path",
    "resolve_segments",
    "is_sequence",
    "is_number",
    "is_truthy",
    "stringify",
    "to_json",
    "to_sequence",
    "loose_equals",
    "strict_equals",
    "compare",
]
