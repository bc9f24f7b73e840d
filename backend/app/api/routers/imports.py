from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.core.deps import get_db, template_or_404
from app.core.logging import logger
from app.db.models.import_template import ImportTemplate
from app.schemas.imports import HeaderSuggestionsOut, ImportOutcomeOut, JobOut
from app.services.exports.exporter import XLSX_MEDIA_TYPE, ExportMode, export_filename, generate_export
from app.services.files import remove_file, stage_upload
from app.services.jobs.runner import enqueue_export, enqueue_import
from app.services.sync.headers import has_record_id_column, suggest_mappings, validate_headers
from app.services.sync.importer import process_import
from app.services.sync.reader import SpreadsheetError, SpreadsheetFile, check_upload, read_rows

router = APIRouter()


def _outcome_out(out) -> ImportOutcomeOut:
    return ImportOutcomeOut(
        success=out.success,
        summary=out.summary,
        errors=out.errors,
        warnings=out.warnings,
        created_count=out.created_count,
        updated_count=out.updated_count,
        deleted_count=out.deleted_count,
        processed_count=out.processed_count,
        batch_id=out.batch_id,
    )


def _job_out(job_id: str) -> JobOut:
    return JobOut(job_id=job_id, status="pending", status_url=f"/jobs/{job_id}/status")


@router.post("/{template_id}/imports", response_model=ImportOutcomeOut | JobOut)
def post_import(
    file: UploadFile = File(...),
    background: bool = Query(False),
    t: ImportTemplate = Depends(template_or_404),
    db: Session = Depends(get_db),
):
    staged = stage_upload(file.file, file.filename or "upload")

    if background:
        # the job owns the staged file from here on
        job_id = enqueue_import(t.id, staged, filename=file.filename)
        logger.info("import_enqueued", template_id=t.id, job_id=job_id)
        return _job_out(job_id)

    try:
        spreadsheet = SpreadsheetFile.from_path(staged, filename=file.filename, content_type=file.content_type)
        return _outcome_out(process_import(db, spreadsheet, t))
    finally:
        remove_file(staged)


@router.post("/{template_id}/imports/preview", response_model=HeaderSuggestionsOut)
def preview_import_headers(file: UploadFile = File(...), t: ImportTemplate = Depends(template_or_404)):
    staged = stage_upload(file.file, file.filename or "upload")
    try:
        spreadsheet = SpreadsheetFile.from_path(staged, filename=file.filename, content_type=file.content_type)
        check_upload(spreadsheet)
        rows = read_rows(spreadsheet)
    except SpreadsheetError as e:
        return HeaderSuggestionsOut(valid=False, errors=[str(e)])
    finally:
        remove_file(staged)

    header = list(rows[0]) if rows else []
    has_id = has_record_id_column(header)
    result = validate_headers(header, t.columns, has_id)
    return HeaderSuggestionsOut(
        valid=result.valid,
        errors=result.errors,
        warnings=result.warnings,
        suggestions=suggest_mappings(header, t.columns, has_id),
    )


@router.get("/{template_id}/export")
def get_export(
    mode: ExportMode = Query(ExportMode.data),
    t: ImportTemplate = Depends(template_or_404),
    db: Session = Depends(get_db),
):
    content = generate_export(db, t, mode)
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{export_filename(t, mode)}"'},
    )


@router.post("/{template_id}/exports", response_model=JobOut)
def post_export(mode: ExportMode = Query(ExportMode.data), t: ImportTemplate = Depends(template_or_404)):
    job_id = enqueue_export(t.id, mode)
    logger.info("export_enqueued", template_id=t.id, job_id=job_id, mode=mode.value)
    return _job_out(job_id)
