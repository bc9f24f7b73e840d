from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Sequence

from app.db.models.template_column import TemplateColumn
from app.services.sync.coercion import CoercionError, coerce_cell

FIRST_DATA_ROW = 2  # row 1 is the header


@dataclass
class PlannedRow:
    row_number: int
    # template column id -> canonical value, None clears the stored value
    changes: dict[int, Optional[str]] = field(default_factory=dict)
    record_id: Optional[int] = None
    error: Optional[str] = None


@dataclass
class SyncPlan:
    to_update: list[PlannedRow] = field(default_factory=list)
    to_create: list[PlannedRow] = field(default_factory=list)
    to_delete: list[int] = field(default_factory=list)

    @property
    def rows(self) -> list[PlannedRow]:
        return sorted(self.to_update + self.to_create, key=lambda r: r.row_number)

    @property
    def update_ids(self) -> list[int]:
        return list(dict.fromkeys(r.record_id for r in self.to_update))


def parse_record_id(v: Any) -> Optional[int]:
    """Integer identity from the hidden id cell; None when absent or unusable.

    Unparsable values are not an error: such rows are treated as new records.
    """
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, int):
        return v
    if isinstance(v, float):
        if v != v or v in (float("inf"), float("-inf")):
            return None
        return int(v)
    s = str(v).strip()
    if not s:
        return None
    try:
        return int(s)
    except ValueError:
        pass
    try:
        return int(float(s))
    except (ValueError, OverflowError):
        return None


def _cell(row: Sequence[Any], idx: int) -> Any:
    return row[idx] if idx < len(row) else None


def build_row_changes(
    row: Sequence[Any],
    mapping: Mapping[int, TemplateColumn],
    row_number: int,
) -> dict[int, Optional[str]]:
    """Coerce the mapped cells of one row.

    Blank cells are left out, so an update keeps the stored value. A blank
    required cell still raises through ``coerce_cell``.
    """
    changes: dict[int, Optional[str]] = {}
    for idx in sorted(mapping):
        col = mapping[idx]
        value = coerce_cell(_cell(row, idx), col, row_number)
        if value is None:
            continue
        changes[col.id] = value
    return changes


def build_sync_plan(
    rows: Iterable[Sequence[Any]],
    mapping: Mapping[int, TemplateColumn],
    has_id_column: bool,
    existing_ids: Iterable[int] = (),
) -> SyncPlan:
    """Classify data rows into updates, creates and implied deletes.

    ``rows`` excludes the header. Nothing is read from or written to storage:
    ``existing_ids`` are the identities currently stored for the template and
    are only used to derive deletes when the file carries the id column.
    """
    plan = SyncPlan()
    seen: set[int] = set()

    for offset, row in enumerate(rows):
        row_number = FIRST_DATA_ROW + offset
        row = list(row or [])
        # rows with no cells at all are skipped; empty strings still count as content
        if all(v is None for v in row):
            continue

        planned = PlannedRow(row_number=row_number)
        try:
            planned.changes = build_row_changes(row, mapping, row_number)
        except CoercionError as e:
            planned.error = e.message

        record_id = parse_record_id(_cell(row, 0)) if has_id_column else None
        if record_id is not None and record_id > 0:
            planned.record_id = record_id
            plan.to_update.append(planned)
            seen.add(record_id)
        else:
            plan.to_create.append(planned)

    if has_id_column:
        plan.to_delete = sorted(set(existing_ids) - seen)
    return plan
