from sqlalchemy import ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.models._mixins import TimestampMixin

class DataRecordValue(Base, TimestampMixin):
    __tablename__ = "data_record_value"
    __table_args__ = (UniqueConstraint("record_id", "column_id", name="uq_record_value_column"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    record_id: Mapped[int] = mapped_column(ForeignKey("data_record.id", ondelete="CASCADE"), index=True)
    column_id: Mapped[int] = mapped_column(ForeignKey("template_column.id", ondelete="CASCADE"), index=True)
    value: Mapped[str | None] = mapped_column(Text, nullable=True)

    record = relationship("DataRecord", back_populates="values")
    column = relationship("TemplateColumn", back_populates="values")
