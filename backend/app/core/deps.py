from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.db.models.import_template import ImportTemplate
from app.crud.templates import get_template
from app.services.jobs.status import JobStatusService, get_job_status_service


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_status_service() -> JobStatusService:
    return get_job_status_service()


def template_or_404(template_id: int, db: Session = Depends(get_db)) -> ImportTemplate:
    t = get_template(db, template_id)
    if not t:
        raise HTTPException(status_code=404, detail="Template not found")
    return t
