import datetime as dt
import io

import openpyxl

from app.crud.templates import data_hash, list_records
from app.services.exports.exporter import (
    ExportMode,
    export_filename,
    generate_export,
    sample_value,
    sheet_name,
    write_export,
)
from app.services.sync.importer import process_import
from app.services.sync.reader import SpreadsheetFile

from conftest import make_record, make_template

COLUMNS = (
    ("Name", "string", True),
    ("Age", "number", False),
    ("Born", "date", False),
    ("Active", "boolean", False),
)


def _sheet(content: bytes):
    wb = openpyxl.load_workbook(io.BytesIO(content))
    return wb.worksheets[0]


def _rows(ws):
    return [list(r) for r in ws.iter_rows(values_only=True)]


def test_template_mode_has_hidden_id_and_headers_only(db):
    t = make_template(db, name="Staff list", columns=COLUMNS)
    make_record(db, t, Name="Ann")

    ws = _sheet(generate_export(db, t, ExportMode.template))

    assert ws.title == "Staff_list"
    assert _rows(ws) == [["__record_id", "Name", "Age", "Born", "Active"]]
    assert ws.column_dimensions["A"].hidden


def test_data_mode_writes_native_values(db):
    t = make_template(db, columns=COLUMNS)
    r = make_record(db, t, Name="Ann", Age="31", Born="1990-05-01", Active="true")
    make_record(db, t, Name="Bob", Age="2.5")

    rows = _rows(_sheet(generate_export(db, t, "data")))

    assert rows[0] == ["__record_id", "Name", "Age", "Born", "Active"]
    assert rows[1][:3] == [r.id, "Ann", 31]
    assert rows[1][3].date() == dt.date(1990, 5, 1)
    assert rows[1][4] is True
    assert rows[2][1:3] == ["Bob", 2.5]
    assert rows[2][3:] == [None, None]


def test_sample_mode_placeholder_rows(db):
    t = make_template(db, columns=COLUMNS)
    rows = _rows(_sheet(generate_export(db, t, ExportMode.sample)))
    assert len(rows) == 4
    assert rows[1][0] is None
    assert rows[1][1] == "Sample Name 1"
    assert rows[2][2] == 200
    assert [r[4] for r in rows[1:]] == [True, False, True]


def test_template_without_columns_is_an_empty_sheet(db):
    t = make_template(db, name="Nothing", columns=())
    ws = _sheet(generate_export(db, t))
    assert _rows(ws) in ([], [[None]])


def test_sample_value_per_type():
    today = dt.date(2024, 1, 1)
    assert sample_value("string", "City", 2, today) == "Sample City 2"
    assert sample_value("number", "Qty", 3, today) == 300.0
    assert sample_value("date", "Due", 1, today) == dt.date(2024, 1, 2)
    assert sample_value("boolean", "Ok", 2, today) is False


def test_names_are_sanitized(db):
    t = make_template(db, name="Q3 report: sales/returns & more", columns=())
    assert sheet_name(t) == "Q3_report_salesreturns_more"
    assert export_filename(t, ExportMode.sample) == "Q3_report_salesreturns_more_sample.xlsx"
    long = make_template(db, name="x" * 40, columns=())
    assert len(sheet_name(long)) == 31


def test_export_then_import_round_trips(db, tmp_path):
    t = make_template(db, columns=COLUMNS)
    make_record(db, t, Name="Ann", Age="31", Born="1990-05-01", Active="true")
    make_record(db, t, Name="Bob", Age="2.5", Active="false")
    make_record(db, t, Name="Cy")
    before = {r.id: data_hash(t, r) for r in list_records(db, t.id)}

    path = write_export(db, t, ExportMode.data, tmp_path / "out" / "export.xlsx")
    out = process_import(db, SpreadsheetFile.from_path(path), t)

    assert out.success, out.errors
    assert (out.updated_count, out.created_count, out.deleted_count) == (3, 0, 0)
    db.expire_all()
    assert {r.id: data_hash(t, r) for r in list_records(db, t.id)} == before


def test_sample_file_imports_as_new_records(db, tmp_path):
    t = make_template(db, columns=COLUMNS)
    path = write_export(db, t, ExportMode.sample, tmp_path / "sample.xlsx")
    out = process_import(db, SpreadsheetFile.from_path(path), t)
    assert out.success, out.errors
    assert out.created_count == 3
