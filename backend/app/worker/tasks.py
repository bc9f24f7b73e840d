from app.worker.celery_app import celery_app
from app.services.jobs.runner import run_export_job, run_import_job


@celery_app.task(name="imports.process_import")
def process_import_task(template_id: int, job_id: str, file_path: str, filename: str | None = None):
    run_import_job(template_id, job_id, file_path, filename=filename)


@celery_app.task(name="exports.generate_export")
def generate_export_task(template_id: int, job_id: str, mode: str = "data"):
    run_export_job(template_id, job_id, mode)
