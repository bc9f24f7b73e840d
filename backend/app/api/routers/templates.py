from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.deps import get_db, template_or_404
from app.crud.records import create_record, delete_record, get_record, update_record
from app.crud.templates import (
    add_column,
    create_template,
    data_hash,
    delete_template,
    get_column,
    get_template_by_name,
    list_records,
    list_templates,
    remove_column,
    reorder_columns,
    update_column,
    update_template,
)
from app.db.models.import_template import ImportTemplate
from app.schemas.templates import (
    ColumnCreate,
    ColumnOrderIn,
    ColumnOut,
    ColumnUpdate,
    RecordIn,
    RecordOut,
    TemplateCreate,
    TemplateOut,
    TemplateUpdate,
)

router = APIRouter()


@router.get("", response_model=list[TemplateOut])
def get_templates(db: Session = Depends(get_db)):
    return list_templates(db)


@router.post("", response_model=TemplateOut, status_code=201)
def post_template(data: TemplateCreate, db: Session = Depends(get_db)):
    if get_template_by_name(db, data.name):
        raise HTTPException(status_code=409, detail=f"Template '{data.name}' already exists")
    return create_template(db, data)


@router.get("/{template_id}", response_model=TemplateOut)
def get_one_template(t: ImportTemplate = Depends(template_or_404)):
    return t


@router.put("/{template_id}", response_model=TemplateOut)
def put_template(data: TemplateUpdate, t: ImportTemplate = Depends(template_or_404), db: Session = Depends(get_db)):
    if data.name is not None and data.name != t.name and get_template_by_name(db, data.name):
        raise HTTPException(status_code=409, detail=f"Template '{data.name}' already exists")
    return update_template(db, t, data)


@router.delete("/{template_id}")
def remove_template(t: ImportTemplate = Depends(template_or_404), db: Session = Depends(get_db)):
    delete_template(db, t)
    return {"status": "ok"}


@router.post("/{template_id}/columns", response_model=ColumnOut, status_code=201)
def post_column(data: ColumnCreate, t: ImportTemplate = Depends(template_or_404), db: Session = Depends(get_db)):
    return add_column(db, t, data)


@router.put("/{template_id}/columns/order", response_model=TemplateOut)
def put_column_order(data: ColumnOrderIn, t: ImportTemplate = Depends(template_or_404), db: Session = Depends(get_db)):
    try:
        return reorder_columns(db, t, data.column_ids)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.put("/{template_id}/columns/{column_id}", response_model=ColumnOut)
def put_column(
    column_id: int,
    data: ColumnUpdate,
    t: ImportTemplate = Depends(template_or_404),
    db: Session = Depends(get_db),
):
    c = get_column(db, t.id, column_id)
    if not c:
        raise HTTPException(status_code=404, detail="Column not found")
    return update_column(db, c, data)


@router.delete("/{template_id}/columns/{column_id}")
def delete_column(column_id: int, t: ImportTemplate = Depends(template_or_404), db: Session = Depends(get_db)):
    c = get_column(db, t.id, column_id)
    if not c:
        raise HTTPException(status_code=404, detail="Column not found")
    remove_column(db, t, c)
    return {"status": "ok"}


@router.get("/{template_id}/records", response_model=list[RecordOut])
def get_records(t: ImportTemplate = Depends(template_or_404), db: Session = Depends(get_db)):
    return [_record_out(t, r) for r in list_records(db, t.id)]


def _record_out(t: ImportTemplate, r) -> RecordOut:
    return RecordOut(id=r.id, import_batch_id=r.import_batch_id, data=data_hash(t, r))


def _record_or_404(db: Session, t: ImportTemplate, record_id: int):
    r = get_record(db, t.id, record_id)
    if not r:
        raise HTTPException(status_code=404, detail="Record not found")
    return r


@router.post("/{template_id}/records", response_model=RecordOut, status_code=201)
def post_record(data: RecordIn, t: ImportTemplate = Depends(template_or_404), db: Session = Depends(get_db)):
    try:
        r = create_record(db, t, data.data)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _record_out(t, r)


@router.get("/{template_id}/records/{record_id}", response_model=RecordOut)
def get_one_record(record_id: int, t: ImportTemplate = Depends(template_or_404), db: Session = Depends(get_db)):
    return _record_out(t, _record_or_404(db, t, record_id))


@router.put("/{template_id}/records/{record_id}", response_model=RecordOut)
def put_record(
    record_id: int,
    data: RecordIn,
    t: ImportTemplate = Depends(template_or_404),
    db: Session = Depends(get_db),
):
    r = _record_or_404(db, t, record_id)
    try:
        r = update_record(db, t, r, data.data)
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=422, detail=str(e))
    return _record_out(t, r)


@router.delete("/{template_id}/records/{record_id}")
def remove_record(record_id: int, t: ImportTemplate = Depends(template_or_404), db: Session = Depends(get_db)):
    delete_record(db, _record_or_404(db, t, record_id))
    return {"status": "ok"}
