import pytest

from app.crud.templates import (
    add_column,
    create_template,
    data_hash,
    delete_template,
    remove_column,
    reorder_columns,
    update_column,
)
from app.db.models.data_record import DataRecord
from app.db.models.data_record_value import DataRecordValue
from app.db.models.template_column import DataType
from app.schemas.templates import ColumnCreate, ColumnUpdate, TemplateCreate

from conftest import make_record


def _template(db):
    return create_template(db, TemplateCreate(
        name="Inventory",
        columns=[
            ColumnCreate(name="Sku", required=True),
            ColumnCreate(name="Qty", data_type=DataType.number),
            ColumnCreate(name="Shelf"),
        ],
    ))


def test_create_assigns_contiguous_positions(db):
    t = _template(db)
    assert [(c.position, c.name) for c in t.columns] == [(1, "Sku"), (2, "Qty"), (3, "Shelf")]
    assert t.column_headers == ["Sku", "Qty", "Shelf"]


def test_add_column_appends(db):
    t = _template(db)
    c = add_column(db, t, ColumnCreate(name="Expires", data_type=DataType.date))
    assert c.position == 4
    assert t.column_headers[-1] == "Expires"


def test_update_column(db):
    t = _template(db)
    c = update_column(db, t.columns[1], ColumnUpdate(name="Quantity", required=True))
    assert (c.name, c.data_type, c.required) == ("Quantity", "number", True)


def test_remove_column_resequences_and_drops_values(db):
    t = _template(db)
    r = make_record(db, t, Sku="A-1", Qty="3", Shelf="B2")
    qty = t.columns[1]

    remove_column(db, t, qty)

    assert [(c.position, c.name) for c in t.columns] == [(1, "Sku"), (2, "Shelf")]
    assert db.query(DataRecordValue).filter(DataRecordValue.column_id == qty.id).count() == 0
    db.expire_all()
    assert data_hash(t, db.get(DataRecord, r.id)) == {"Sku": "A-1", "Shelf": "B2"}


def test_reorder_columns(db):
    t = _template(db)
    ids = [c.id for c in t.columns]
    reorder_columns(db, t, [ids[2], ids[0], ids[1]])
    assert t.column_headers == ["Shelf", "Sku", "Qty"]
    with pytest.raises(ValueError):
        reorder_columns(db, t, ids[:2])


def test_delete_template_cascades(db):
    t = _template(db)
    make_record(db, t, Sku="A-1")
    delete_template(db, t)
    assert db.query(DataRecord).count() == 0
    assert db.query(DataRecordValue).count() == 0
