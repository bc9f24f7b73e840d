"""Cell value coercion between spreadsheet cells and stored strings.

Every stored field value is a string regardless of the column's declared
type. ``convert_value`` turns a raw cell into that canonical string and
``format_cell_value`` turns it back into a native cell for export.
"""
from __future__ import annotations

import datetime as dt
import math
import re
from typing import Any, Callable, Optional

from app.db.models.template_column import DataType

# Spreadsheet serial dates count from 1900-01-01 as day 1 and include the
# phantom 1900-02-29, hence the two day correction.
SERIAL_DATE_BASE = dt.date(1900, 1, 1)
SERIAL_DATE_OFFSET = 2

TRUE_WORDS = ("true", "yes", "y", "1")
FALSE_WORDS = ("false", "no", "n", "0")

_DATE_FORMATS = ("%Y-%m-%d", "%d.%m.%Y", "%m/%d/%Y", "%Y/%m/%d")
_NUMBER_NOISE = re.compile(r"[,\s]")


class CoercionError(ValueError):
    """Cell conversion failure; ``str()`` carries the row number when known."""

    def __init__(self, message: str, row_number: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.row_number = row_number

    def __str__(self) -> str:
        if self.row_number is None:
            return self.message
        return f"Row {self.row_number}: {self.message}"


def _is_nan(v: Any) -> bool:
    return isinstance(v, float) and (v != v)


def is_blank(v: Any) -> bool:
    if v is None or _is_nan(v):
        return True
    if isinstance(v, str):
        return not v.strip()
    return False


def _to_string(value: Any, row_number: Optional[int]) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _format_number(n: float) -> str:
    if n.is_integer():
        return str(int(n))
    return repr(n)


def _to_number(value: Any, row_number: Optional[int]) -> str:
    if isinstance(value, bool):
        raise CoercionError(f"could not convert '{value}' to number", row_number)
    if isinstance(value, (int, float)):
        n = float(value)
    else:
        cleaned = _NUMBER_NOISE.sub("", str(value))
        try:
            n = float(cleaned)
        except ValueError:
            raise CoercionError(f"could not convert '{value}' to number", row_number) from None
    if math.isinf(n) or math.isnan(n):
        raise CoercionError(f"could not convert '{value}' to number", row_number)
    return _format_number(n)


def serial_to_date(serial: float) -> dt.date:
    return SERIAL_DATE_BASE + dt.timedelta(days=int(serial) - SERIAL_DATE_OFFSET)


def _parse_date_string(s: str) -> dt.date | None:
    try:
        return dt.datetime.fromisoformat(s).date()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return dt.datetime.strptime(s, fmt).date()
        except ValueError:
            pass
    return None


def _to_date(value: Any, row_number: Optional[int]) -> str:
    if isinstance(value, dt.datetime):
        return value.date().isoformat()
    if isinstance(value, dt.date):
        return value.isoformat()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return serial_to_date(value).isoformat()
        except (OverflowError, ValueError):
            raise CoercionError(f"could not convert '{value}' to date", row_number) from None
    if isinstance(value, str):
        d = _parse_date_string(value.strip())
        if d is not None:
            return d.isoformat()
    raise CoercionError(f"could not convert '{value}' to date", row_number)


def _to_boolean(value: Any, row_number: Optional[int]) -> Optional[str]:
    s = str(value).strip().lower()
    if s in TRUE_WORDS:
        return "true"
    if s in FALSE_WORDS:
        return "false"
    if not s:
        return None
    raise CoercionError(
        f"could not convert '{value}' to boolean. "
        "Use true/false, yes/no, y/n, or 1/0",
        row_number,
    )


_CONVERTERS: dict[DataType, Callable[[Any, Optional[int]], Optional[str]]] = {
    DataType.string: _to_string,
    DataType.number: _to_number,
    DataType.date: _to_date,
    DataType.boolean: _to_boolean,
}


def convert_value(value: Any, data_type: str | DataType, row_number: Optional[int] = None) -> Optional[str]:
    """Canonical stored string for ``value``, or None when the cell is blank."""
    if is_blank(value):
        return None
    try:
        converter = _CONVERTERS[DataType(data_type)]
    except ValueError:
        converter = _to_string
    return converter(value, row_number)


def coerce_cell(value: Any, column, row_number: Optional[int] = None) -> Optional[str]:
    """Required check followed by type coercion for one mapped cell."""
    if column.required and is_blank(value):
        raise CoercionError(f"required field '{column.name}' cannot be empty", row_number)
    return convert_value(value, column.data_type, row_number)


def format_cell_value(value: Optional[str], data_type: str | DataType) -> Any:
    """Native spreadsheet value for a stored string."""
    if value is None or value == "":
        return None
    try:
        kind = DataType(data_type)
    except ValueError:
        return str(value)
    if kind is DataType.number:
        try:
            n = float(value)
        except ValueError:
            return value
        return int(n) if n.is_integer() else n
    if kind is DataType.date:
        try:
            return dt.date.fromisoformat(value)
        except ValueError:
            return value
    if kind is DataType.boolean:
        return value == "true"
    return str(value)
