from sqlalchemy import String, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.models._mixins import TimestampMixin
from app.db.models.data_record_value import DataRecordValue

class DataRecord(Base, TimestampMixin):
    __tablename__ = "data_record"

    id: Mapped[int] = mapped_column(primary_key=True)
    template_id: Mapped[int] = mapped_column(ForeignKey("import_template.id", ondelete="CASCADE"), index=True)
    import_batch_id: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)

    template = relationship("ImportTemplate", back_populates="records")
    values = relationship(
        "DataRecordValue",
        back_populates="record",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def value_for_column(self, column_id: int) -> str | None:
        for v in self.values:
            if v.column_id == column_id:
                return v.value
        return None

    def set_value_for_column(self, column_id: int, value: str | None) -> None:
        """Upsert the value for one column; None removes it."""
        for v in list(self.values):
            if v.column_id == column_id:
                if value is None:
                    self.values.remove(v)
                else:
                    v.value = value
                return
        if value is not None:
            self.values.append(DataRecordValue(column_id=column_id, value=value))
