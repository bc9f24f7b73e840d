# import all models for Alembic
from app.db.models.import_template import ImportTemplate
from app.db.models.template_column import TemplateColumn, DataType
from app.db.models.data_record import DataRecord
from app.db.models.data_record_value import DataRecordValue
