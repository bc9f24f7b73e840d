from __future__ import annotations

from typing import Any, Optional, Sequence

from sqlalchemy.orm import Session

from app.core.logging import logger
from app.db.models.data_record import DataRecord
from app.db.models.import_template import ImportTemplate
from app.services.sync.executor import ImportOutcome, execute_plan
from app.services.sync.headers import has_record_id_column, validate_headers
from app.services.sync.planner import build_sync_plan
from app.services.sync.reader import SpreadsheetError, SpreadsheetFile, check_upload, read_rows
from app.services.sync.validators import validate_plan


def stored_record_ids(db: Session, template_id: int) -> list[int]:
    return [rid for (rid,) in db.query(DataRecord.id).filter(DataRecord.template_id == template_id)]


def sync_rows(db: Session, template: ImportTemplate, rows: Sequence[Sequence[Any]]) -> ImportOutcome:
    """Reconcile stored records of ``template`` with parsed sheet rows.

    ``rows[0]`` is the header row. The file is authoritative: rows with a
    known ``__record_id`` update, rows without one create, and when the id
    column is present every stored record absent from the file is deleted.
    Nothing is written unless the whole file validates.
    """
    header = list(rows[0]) if rows else []
    has_id_column = has_record_id_column(header)

    headers = validate_headers(header, template.columns, has_id_column)
    if not headers.valid:
        logger.info("import_rejected_headers", template_id=template.id, errors=headers.errors)
        return ImportOutcome.failure(*headers.errors, warnings=headers.warnings)

    existing = stored_record_ids(db, template.id) if has_id_column else []
    plan = build_sync_plan(rows[1:], headers.mapping, has_id_column, existing)

    errors = validate_plan(db, template, plan)
    if errors:
        logger.info("import_rejected_rows", template_id=template.id, errors=len(errors))
        return ImportOutcome.failure(*(str(e) for e in errors), warnings=headers.warnings)

    out = execute_plan(db, template, plan)
    out.warnings = headers.warnings + out.warnings
    return out


def process_import(db: Session, file: Optional[SpreadsheetFile], template: ImportTemplate) -> ImportOutcome:
    try:
        check_upload(file)
        rows = read_rows(file)
    except SpreadsheetError as e:
        return ImportOutcome.failure(str(e))

    logger.info("import_start", template_id=template.id, file=file.filename, rows=max(len(rows) - 1, 0))
    out = sync_rows(db, template, rows)
    logger.info(
        "import_finished",
        template_id=template.id,
        success=out.success,
        created=out.created_count,
        updated=out.updated_count,
        deleted=out.deleted_count,
        errors=out.error_count,
    )
    return out
