from typing import Any, Mapping

from sqlalchemy.orm import Session, selectinload

from app.db.models.data_record import DataRecord
from app.db.models.import_template import ImportTemplate
from app.services.sync.coercion import coerce_cell


class UnknownColumnsError(ValueError):
    def __init__(self, names: list[str]):
        self.names = names
        super().__init__(f"Unknown columns: {', '.join(names)}")


def get_record(db: Session, template_id: int, record_id: int) -> DataRecord | None:
    return (
        db.query(DataRecord)
        .options(selectinload(DataRecord.values))
        .filter(DataRecord.template_id == template_id, DataRecord.id == record_id)
        .one_or_none()
    )


def _coerce_values(t: ImportTemplate, data: Mapping[str, Any], partial: bool) -> dict[int, str | None]:
    """Column id -> canonical value for ``data`` keyed by column name.

    With ``partial`` only the given columns are checked, otherwise every
    column is, so missing required columns are rejected.
    """
    by_name = {c.name: c for c in t.columns}
    unknown = sorted(set(data) - set(by_name))
    if unknown:
        raise UnknownColumnsError(unknown)
    columns = [by_name[n] for n in data] if partial else list(t.columns)
    return {c.id: coerce_cell(data.get(c.name), c) for c in columns}


def create_record(db: Session, t: ImportTemplate, data: Mapping[str, Any]) -> DataRecord:
    values = _coerce_values(t, data, partial=False)
    r = DataRecord(template_id=t.id)
    for column_id, value in values.items():
        r.set_value_for_column(column_id, value)
    db.add(r)
    db.commit()
    db.refresh(r)
    return r


def update_record(db: Session, t: ImportTemplate, r: DataRecord, data: Mapping[str, Any]) -> DataRecord:
    """Set the given columns; a null value clears the stored one."""
    for column_id, value in _coerce_values(t, data, partial=True).items():
        r.set_value_for_column(column_id, value)
    db.commit()
    db.refresh(r)
    return r


def delete_record(db: Session, r: DataRecord) -> None:
    db.delete(r)
    db.commit()
