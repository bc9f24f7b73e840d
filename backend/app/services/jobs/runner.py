"""Background import/export jobs.

Both runners open their own session, report through the job status service
and always leave a terminal status behind. Unexpected errors are recorded as
``failed`` and re-raised so the task queue sees them too.
"""
from __future__ import annotations

import uuid
from pathlib import Path
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.core.logging import job_context, logger
from app.crud.templates import get_template
from app.db.session import SessionLocal
from app.services.exports.exporter import ExportMode, default_export_path, write_export
from app.services.files import remove_file
from app.services.jobs.status import JobState, JobStatusService, get_job_status_service
from app.services.sync.importer import process_import
from app.services.sync.reader import SpreadsheetFile

SessionFactory = Callable[[], Session]


def new_job_id() -> str:
    return uuid.uuid4().hex


def _record_failure(tracker: JobStatusService, job_id: str, message: str) -> None:
    try:
        tracker.update_status(job_id, JobState.failed, completed_at=tracker.now(), error_message=message)
    except Exception as e:
        logger.exception("job_failed_status_update_failed", job_id=job_id, error=str(e))


def enqueue_import(
    template_id: int,
    file_path: Path,
    filename: Optional[str] = None,
    tracker: Optional[JobStatusService] = None,
) -> str:
    from app.worker.tasks import process_import_task

    tracker = tracker or get_job_status_service()
    job_id = new_job_id()
    tracker.update_status(job_id, JobState.pending, created_at=tracker.now(), template_id=template_id)
    process_import_task.delay(template_id, job_id, str(file_path), filename)
    return job_id


def enqueue_export(template_id: int, mode: ExportMode | str, tracker: Optional[JobStatusService] = None) -> str:
    from app.worker.tasks import generate_export_task

    tracker = tracker or get_job_status_service()
    job_id = new_job_id()
    tracker.update_status(job_id, JobState.pending, created_at=tracker.now(), template_id=template_id)
    generate_export_task.delay(template_id, job_id, ExportMode(mode).value)
    return job_id


def run_import_job(
    template_id: int,
    job_id: str,
    file_path: str | Path,
    session_factory: SessionFactory = SessionLocal,
    tracker: Optional[JobStatusService] = None,
    filename: Optional[str] = None,
) -> None:
    tracker = tracker or get_job_status_service()
    path = Path(file_path)
    db = session_factory()
    with job_context(job_id=job_id, template_id=template_id):
        try:
            tracker.update_status(job_id, JobState.processing, started_at=tracker.now())

            template = get_template(db, template_id)
            if template is None:
                logger.error("import_template_missing")
                _record_failure(tracker, job_id, f"Template {template_id} not found")
                return

            tracker.update_progress(job_id, "Processing spreadsheet")
            out = process_import(db, SpreadsheetFile.from_path(path, filename=filename), template)

            if out.success:
                tracker.update_status(
                    job_id,
                    JobState.completed,
                    completed_at=tracker.now(),
                    result_summary=out.summary,
                    processed_count=out.processed_count,
                    created_count=out.created_count,
                    updated_count=out.updated_count,
                    deleted_count=out.deleted_count,
                    warnings=out.warnings,
                )
            else:
                _record_failure(tracker, job_id, "; ".join(out.errors))

            logger.info("import_job_finished", success=out.success)

        except Exception as e:
            logger.exception("import_job_failed", error=str(e))
            db.rollback()
            _record_failure(tracker, job_id, str(e))
            raise

        finally:
            db.close()
            remove_file(path)


def run_export_job(
    template_id: int,
    job_id: str,
    mode: ExportMode | str = ExportMode.data,
    session_factory: SessionFactory = SessionLocal,
    tracker: Optional[JobStatusService] = None,
    out_path: Optional[Path] = None,
) -> None:
    tracker = tracker or get_job_status_service()
    db = session_factory()
    with job_context(job_id=job_id, template_id=template_id):
        try:
            tracker.update_status(job_id, JobState.processing, started_at=tracker.now())

            template = get_template(db, template_id)
            if template is None:
                logger.error("export_template_missing")
                _record_failure(tracker, job_id, f"Template {template_id} not found")
                return

            path = write_export(db, template, mode, out_path or default_export_path(job_id))
            tracker.update_status(
                job_id,
                JobState.completed,
                completed_at=tracker.now(),
                result_summary="Export generated successfully",
                file_path=str(path),
                mode=ExportMode(mode).value,
            )
            logger.info("export_job_finished", path=str(path))

        except Exception as e:
            logger.exception("export_job_failed", error=str(e))
            db.rollback()
            _record_failure(tracker, job_id, str(e))
            raise

        finally:
            db.close()
