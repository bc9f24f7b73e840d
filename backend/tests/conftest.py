import os
import tempfile
from pathlib import Path

_DATA_DIR = Path(tempfile.mkdtemp(prefix="sheetsync-tests-"))

os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JOB_STATUS_BACKEND", "memory")
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")
os.environ.setdefault("SEED_DEMO", "false")
os.environ.setdefault("UPLOAD_DIR", str(_DATA_DIR / "uploads"))
os.environ.setdefault("EXPORT_DIR", str(_DATA_DIR / "exports"))

import openpyxl  # noqa: E402
import pytest  # noqa: E402

from app.db.base import Base  # noqa: E402
from app.db.models import DataRecord, DataRecordValue, ImportTemplate, TemplateColumn  # noqa: E402
from app.db.session import SessionLocal, engine  # noqa: E402
from app.services.jobs.status import get_job_status_service  # noqa: E402


@pytest.fixture()
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _fresh_job_status_service():
    get_job_status_service.cache_clear()
    yield
    get_job_status_service.cache_clear()


def make_template(db, name="People", columns=(("Name", "string", True), ("Age", "number", False))):
    t = ImportTemplate(name=name)
    for i, (col_name, data_type, required) in enumerate(columns, start=1):
        t.columns.append(TemplateColumn(position=i, name=col_name, data_type=data_type, required=required))
    db.add(t)
    db.commit()
    db.refresh(t)
    return t


def make_record(db, template, record_id=None, **values):
    by_name = {c.name: c for c in template.columns}
    r = DataRecord(
        id=record_id,
        template_id=template.id,
        values=[DataRecordValue(column_id=by_name[k].id, value=v) for k, v in values.items()],
    )
    db.add(r)
    db.commit()
    return r


def make_xlsx(tmp_path: Path, rows, name="upload.xlsx") -> Path:
    wb = openpyxl.Workbook()
    ws = wb.active
    for row in rows:
        ws.append(list(row))
    path = tmp_path / name
    wb.save(path)
    return path


@pytest.fixture()
def template(db):
    return make_template(db)
