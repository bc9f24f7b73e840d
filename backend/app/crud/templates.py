from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from app.db.models.data_record import DataRecord
from app.db.models.import_template import ImportTemplate
from app.db.models.template_column import TemplateColumn
from app.schemas.templates import ColumnCreate, ColumnUpdate, TemplateCreate, TemplateUpdate


def list_templates(db: Session):
    return db.query(ImportTemplate).order_by(ImportTemplate.id).all()


def get_template(db: Session, template_id: int) -> ImportTemplate | None:
    return db.query(ImportTemplate).filter(ImportTemplate.id == template_id).one_or_none()


def get_template_by_name(db: Session, name: str) -> ImportTemplate | None:
    return db.query(ImportTemplate).filter(ImportTemplate.name == name).one_or_none()


def create_template(db: Session, data: TemplateCreate) -> ImportTemplate:
    t = ImportTemplate(name=data.name, description=data.description)
    for i, c in enumerate(data.columns, start=1):
        t.columns.append(TemplateColumn(position=i, name=c.name, data_type=c.data_type.value, required=c.required))
    db.add(t)
    db.commit()
    db.refresh(t)
    return t


def update_template(db: Session, t: ImportTemplate, data: TemplateUpdate) -> ImportTemplate:
    if data.name is not None:
        t.name = data.name
    if data.description is not None:
        t.description = data.description
    db.commit()
    db.refresh(t)
    return t


def delete_template(db: Session, t: ImportTemplate) -> None:
    db.delete(t)
    db.commit()


def get_column(db: Session, template_id: int, column_id: int) -> TemplateColumn | None:
    return (
        db.query(TemplateColumn)
        .filter(TemplateColumn.template_id == template_id, TemplateColumn.id == column_id)
        .one_or_none()
    )


def add_column(db: Session, t: ImportTemplate, data: ColumnCreate) -> TemplateColumn:
    last = db.query(func.max(TemplateColumn.position)).filter(TemplateColumn.template_id == t.id).scalar()
    c = TemplateColumn(
        template_id=t.id,
        position=(last or 0) + 1,
        name=data.name,
        data_type=data.data_type.value,
        required=data.required,
    )
    db.add(c)
    db.commit()
    db.refresh(c)
    db.expire(t)
    return c


def update_column(db: Session, c: TemplateColumn, data: ColumnUpdate) -> TemplateColumn:
    if data.name is not None:
        c.name = data.name
    if data.data_type is not None:
        c.data_type = data.data_type.value
    if data.required is not None:
        c.required = data.required
    db.commit()
    db.refresh(c)
    return c


def _resequence(db: Session, columns: list[TemplateColumn]) -> None:
    if not columns:
        return
    # positions are unique per template: park them above the current range first
    offset = max(c.position for c in columns)
    for c in columns:
        c.position += offset
    db.flush()
    for i, c in enumerate(columns, start=1):
        c.position = i
        db.flush()


def remove_column(db: Session, t: ImportTemplate, c: TemplateColumn) -> None:
    """Delete a column (and its values), then close the gap in positions."""
    db.delete(c)
    db.flush()
    remaining = (
        db.query(TemplateColumn)
        .filter(TemplateColumn.template_id == t.id)
        .order_by(TemplateColumn.position)
        .all()
    )
    _resequence(db, remaining)
    db.commit()
    db.expire(t)


def reorder_columns(db: Session, t: ImportTemplate, column_ids: list[int]) -> ImportTemplate:
    by_id = {c.id: c for c in t.columns}
    if sorted(column_ids) != sorted(by_id):
        raise ValueError("column_ids must list every column of the template exactly once")
    _resequence(db, [by_id[cid] for cid in column_ids])
    db.commit()
    db.expire(t)
    return t


def list_records(db: Session, template_id: int):
    return (
        db.query(DataRecord)
        .options(selectinload(DataRecord.values))
        .filter(DataRecord.template_id == template_id)
        .order_by(DataRecord.id)
        .all()
    )


def data_hash(t: ImportTemplate, record: DataRecord) -> dict[str, str | None]:
    """Column name -> stored value, in column order."""
    by_col = {v.column_id: v.value for v in record.values}
    return {c.name: by_col.get(c.id) for c in t.columns}
