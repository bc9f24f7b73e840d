from sqlalchemy.orm import Session
from app.db.session import SessionLocal
from app.core.logging import logger
from app.crud.templates import create_template, get_template_by_name
from app.db.models.template_column import DataType
from app.schemas.templates import ColumnCreate, TemplateCreate

DEMO_TEMPLATE = TemplateCreate(
    name="Contacts",
    description="Seeded demo template",
    columns=[
        ColumnCreate(name="Name", data_type=DataType.string, required=True),
        ColumnCreate(name="Age", data_type=DataType.number),
        ColumnCreate(name="Email", data_type=DataType.string, required=True),
        ColumnCreate(name="Active", data_type=DataType.boolean),
    ],
)

def seed_demo(db: Session | None = None):
    own = db is None
    db = db or SessionLocal()
    try:
        if not get_template_by_name(db, DEMO_TEMPLATE.name):
            t = create_template(db, DEMO_TEMPLATE)
            logger.info("seeded_demo_template", template_id=t.id)
    finally:
        if own:
            db.close()
