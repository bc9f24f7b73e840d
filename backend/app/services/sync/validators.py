from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from sqlalchemy.orm import Session

from app.db.models.data_record import DataRecord
from app.db.models.data_record_value import DataRecordValue
from app.db.models.import_template import ImportTemplate
from app.db.models.template_column import DataType, TemplateColumn
from app.services.sync.planner import PlannedRow, SyncPlan

@dataclass
class ValidationError:
    message: str
    row_num: int | None = None
    column: str | None = None

    def __str__(self) -> str:
        if self.row_num is None:
            return self.message
        return f"Row {self.row_num}: {self.message}"


def _check_constraints(
    values: Mapping[int, Optional[str]],
    columns: Mapping[int, TemplateColumn],
) -> list[str]:
    problems: list[str] = []
    for column_id, value in values.items():
        col = columns.get(column_id)
        if col is None:
            problems.append(f"unknown column id {column_id}")
            continue
        if col.data_type not in DataType.__members__:
            problems.append(f"column '{col.name}' has unsupported type '{col.data_type}'")
        if col.required and (value is None or value == ""):
            problems.append(f"required field '{col.name}' cannot be empty")
    return problems


def _transient_record(template: ImportTemplate, planned: PlannedRow) -> DataRecord:
    # never added to the session
    return DataRecord(
        template_id=template.id,
        values=[DataRecordValue(column_id=cid, value=v) for cid, v in planned.changes.items() if v is not None],
    )


def validate_plan(db: Session, template: ImportTemplate, plan: SyncPlan) -> list[ValidationError]:
    """Check every planned row before anything is written.

    Read-only. Returns all problems found, ordered by row; an empty list
    means the plan may be executed.
    """
    errors: list[ValidationError] = []
    columns = {c.id: c for c in template.columns}

    stored: dict[int, dict[int, Optional[str]]] = {}
    if plan.to_update:
        ids = plan.update_ids
        found = db.query(DataRecord.id).filter(
            DataRecord.template_id == template.id,
            DataRecord.id.in_(ids),
        ).all()
        stored = {rid: {} for (rid,) in found}
        if stored:
            for record_id, column_id, value in db.query(
                DataRecordValue.record_id, DataRecordValue.column_id, DataRecordValue.value
            ).filter(DataRecordValue.record_id.in_(list(stored))):
                stored[record_id][column_id] = value

    for planned in plan.rows:
        if planned.error:
            errors.append(ValidationError(planned.error, row_num=planned.row_number))
            continue

        if planned.record_id is not None:
            if planned.record_id not in stored:
                errors.append(ValidationError(f"record with ID {planned.record_id} not found", row_num=planned.row_number))
                continue
            resulting = {cid: None for cid in columns}
            resulting.update(stored[planned.record_id])
            resulting.update(planned.changes)
        else:
            record = _transient_record(template, planned)
            resulting = {cid: record.value_for_column(cid) for cid in set(columns) | set(planned.changes)}
        problems = _check_constraints(resulting, columns)

        if problems:
            errors.append(ValidationError(f"Validation failed: {'; '.join(problems)}", row_num=planned.row_number))

    return errors
