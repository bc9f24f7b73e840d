import datetime as dt
import io
import re
from enum import Enum
from pathlib import Path

import pandas as pd
from sqlalchemy.orm import Session, selectinload

from app.core.config import settings
from app.db.models.data_record import DataRecord
from app.db.models.import_template import ImportTemplate
from app.db.models.template_column import DataType
from app.services.sync.coercion import format_cell_value
from app.services.sync.headers import RECORD_ID_HEADER

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class ExportMode(str, Enum):
    template = "template"  # headers only
    data = "data"
    sample = "sample"


def sanitized_name(name: str) -> str:
    s = re.sub(r"[^\w\s-]", "", name or "").strip()
    return re.sub(r"\s+", "_", s)


def sheet_name(template: ImportTemplate) -> str:
    # Excel caps sheet names at 31 chars
    return (sanitized_name(template.name) or "Sheet1")[:31]


def export_filename(template: ImportTemplate, mode: ExportMode) -> str:
    return f"{sanitized_name(template.name) or 'template'}_{ExportMode(mode).value}.xlsx"


def sample_value(data_type: str, name: str, n: int, today: dt.date | None = None):
    today = today or dt.date.today()
    kind = DataType(data_type) if data_type in DataType.__members__ else None
    if kind is DataType.string:
        return f"Sample {name} {n}"
    if kind is DataType.number:
        return float(n * 100)
    if kind is DataType.date:
        return today + dt.timedelta(days=n)
    if kind is DataType.boolean:
        return n % 2 == 1
    return f"Sample value {n}"


def _data_rows(db: Session, template: ImportTemplate) -> list[list]:
    records = (
        db.query(DataRecord)
        .options(selectinload(DataRecord.values))
        .filter(DataRecord.template_id == template.id)
        .order_by(DataRecord.id)
        .all()
    )
    rows = []
    for r in records:
        by_col = {v.column_id: v.value for v in r.values}
        rows.append([r.id] + [format_cell_value(by_col.get(c.id), c.data_type) for c in template.columns])
    return rows


def _sample_rows(template: ImportTemplate, count: int) -> list[list]:
    return [
        [None] + [sample_value(c.data_type, c.name, n) for c in template.columns]
        for n in range(1, count + 1)
    ]


def _frame(template: ImportTemplate, rows: list[list]) -> pd.DataFrame:
    headers = [RECORD_ID_HEADER] + template.column_headers
    return pd.DataFrame(rows, columns=headers, dtype=object)


def generate_export(db: Session, template: ImportTemplate, mode: ExportMode | str = ExportMode.data) -> bytes:
    """Workbook bytes for ``template``: hidden record id column, then one column per definition."""
    mode = ExportMode(mode)
    buf = io.BytesIO()
    name = sheet_name(template)

    with pd.ExcelWriter(buf, engine="xlsxwriter", date_format="yyyy-mm-dd", datetime_format="yyyy-mm-dd") as w:
        if not template.columns:
            # nothing to describe yet: an empty sheet
            w.book.add_worksheet(name)
        else:
            _write_sheet(db, template, mode, w, name)

    return buf.getvalue()


def _write_sheet(db: Session, template: ImportTemplate, mode: ExportMode, w: pd.ExcelWriter, name: str) -> None:
    if mode is ExportMode.data:
        rows = _data_rows(db, template)
    elif mode is ExportMode.sample:
        rows = _sample_rows(template, settings.SAMPLE_ROWS)
    else:
        rows = []

    df = _frame(template, rows)
    df.to_excel(w, index=False, sheet_name=name)

    book = w.book
    ws = w.sheets[name]
    hidden_fmt = book.add_format({"bg_color": "#F2F2F2", "font_color": "#666666", "font_size": 8})
    header_fmt = book.add_format({
        "bg_color": "#4472C4",
        "font_color": "#FFFFFF",
        "font_size": 12,
        "bold": True,
        "align": "center",
    })
    ws.write(0, 0, RECORD_ID_HEADER, hidden_fmt)
    for i, header in enumerate(template.column_headers, start=1):
        ws.write(0, i, header, header_fmt)
    ws.set_column(0, 0, 0.1, None, {"hidden": True})
    ws.set_column(1, len(template.columns), 18)


def default_export_path(job_id: str) -> Path:
    return Path(settings.EXPORT_DIR) / f"{job_id}.xlsx"


def write_export(db: Session, template: ImportTemplate, mode: ExportMode | str, out_path: Path) -> Path:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(generate_export(db, template, mode))
    return out_path
