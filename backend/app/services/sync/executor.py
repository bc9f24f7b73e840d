from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from app.core.logging import logger
from app.db.models.data_record import DataRecord
from app.db.models.data_record_value import DataRecordValue
from app.db.models.import_template import ImportTemplate
from app.services.sync.planner import SyncPlan


@dataclass
class ImportOutcome:
    success: bool = False
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    created_count: int = 0
    updated_count: int = 0
    deleted_count: int = 0
    processed_count: int = 0
    batch_id: str | None = None

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def total_changes(self) -> int:
        return self.created_count + self.updated_count + self.deleted_count

    @property
    def summary(self) -> str:
        if not self.success:
            return f"Import failed with {self.error_count} errors. No changes made."
        parts = []
        if self.created_count:
            parts.append(f"{self.created_count} created")
        if self.updated_count:
            parts.append(f"{self.updated_count} updated")
        if self.deleted_count:
            parts.append(f"{self.deleted_count} deleted")
        if not parts:
            return "Import completed - no changes needed"
        return f"Successfully synchronized: {', '.join(parts)}"

    @classmethod
    def failure(cls, *errors: str, warnings: list[str] | None = None) -> "ImportOutcome":
        return cls(success=False, errors=list(errors), warnings=list(warnings or []))


def new_batch_id() -> str:
    return uuid.uuid4().hex


def _apply_plan(db: Session, template: ImportTemplate, plan: SyncPlan, batch_id: str) -> ImportOutcome:
    out = ImportOutcome(batch_id=batch_id)

    if plan.to_delete:
        doomed = db.query(DataRecord).filter(
            DataRecord.template_id == template.id,
            DataRecord.id.in_(plan.to_delete),
        ).all()
        for record in doomed:
            db.delete(record)
        db.flush()
        out.deleted_count = len(doomed)

    # file order, so a repeated identity ends with its last row's values
    for planned in plan.to_update:
        record = db.query(DataRecord).filter(
            DataRecord.template_id == template.id,
            DataRecord.id == planned.record_id,
        ).one()
        for column_id, value in planned.changes.items():
            record.set_value_for_column(column_id, value)
        record.import_batch_id = batch_id
        db.flush()
    out.updated_count = len(plan.update_ids)

    for planned in plan.to_create:
        db.add(DataRecord(
            template_id=template.id,
            import_batch_id=batch_id,
            values=[
                DataRecordValue(column_id=column_id, value=value)
                for column_id, value in planned.changes.items()
                if value is not None
            ],
        ))
    db.flush()
    out.created_count = len(plan.to_create)

    out.processed_count = len(plan.to_update) + len(plan.to_create)
    out.success = True
    return out


def execute_plan(db: Session, template: ImportTemplate, plan: SyncPlan) -> ImportOutcome:
    """Apply an already validated plan as one transaction.

    Deletes, then updates, then creates. On any failure the transaction is
    rolled back and a failure outcome is returned instead of raising.
    """
    batch_id = new_batch_id()
    try:
        out = _apply_plan(db, template, plan, batch_id)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.exception("sync_transaction_failed", template_id=template.id, batch_id=batch_id, error=str(e))
        return ImportOutcome.failure(f"Transaction failed: {e}")

    logger.info(
        "sync_transaction_committed",
        template_id=template.id,
        batch_id=batch_id,
        created=out.created_count,
        updated=out.updated_count,
        deleted=out.deleted_count,
    )
    return out
