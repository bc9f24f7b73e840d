from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import openpyxl
import pandas as pd

from app.core.config import settings

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
ALLOWED_CONTENT_TYPES = (
    XLSX_CONTENT_TYPE,
    "application/vnd.ms-excel",
    "application/excel",
    "application/x-excel",
    "application/octet-stream",
)
ALLOWED_SUFFIXES = (".xlsx", ".xls")


class SpreadsheetError(Exception):
    """The uploaded file cannot be accepted or read."""


@dataclass
class SpreadsheetFile:
    path: Path
    filename: str
    content_type: Optional[str] = None

    @classmethod
    def from_path(cls, path: str | Path, filename: Optional[str] = None, content_type: Optional[str] = None) -> "SpreadsheetFile":
        p = Path(path)
        return cls(path=p, filename=filename or p.name, content_type=content_type)

    @property
    def suffix(self) -> str:
        return Path(self.filename).suffix.lower()

    @property
    def size(self) -> int:
        return self.path.stat().st_size


def max_upload_bytes() -> int:
    return settings.MAX_UPLOAD_MB * 1024 * 1024


def check_upload(file: Optional[SpreadsheetFile]) -> None:
    if file is None or not file.path.exists():
        raise SpreadsheetError("No file provided")
    if file.suffix not in ALLOWED_SUFFIXES or (
        file.content_type and file.content_type not in ALLOWED_CONTENT_TYPES
    ):
        raise SpreadsheetError("Invalid file format. Please upload an Excel file (.xlsx or .xls)")
    if file.size > max_upload_bytes():
        raise SpreadsheetError(f"File too large. Maximum size is {settings.MAX_UPLOAD_MB}MB")


def _clean(v: Any) -> Any:
    if v is None:
        return None
    if isinstance(v, float) and v != v:
        return None
    if v is pd.NaT:
        return None
    if isinstance(v, pd.Timestamp):
        return v.to_pydatetime()
    return v


def _read_xlsx(path: Path) -> list[list[Any]]:
    wb = openpyxl.load_workbook(path, data_only=True, read_only=True)
    try:
        ws = wb.worksheets[0]
        return [[_clean(v) for v in row] for row in ws.iter_rows(values_only=True)]
    finally:
        wb.close()


def _read_xls(path: Path) -> list[list[Any]]:
    df = pd.read_excel(path, sheet_name=0, header=None, dtype=object, engine="xlrd")
    return [[_clean(v) for v in row] for row in df.itertuples(index=False, name=None)]


def read_rows(file: SpreadsheetFile) -> list[list[Any]]:
    """All rows of the first worksheet, header included, trailing empty cells kept."""
    try:
        if file.suffix == ".xls":
            return _read_xls(file.path)
        return _read_xlsx(file.path)
    except Exception as e:
        raise SpreadsheetError(f"Could not read Excel file: {e}") from e
