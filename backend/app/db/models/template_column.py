from enum import Enum
from sqlalchemy import String, ForeignKey, Integer, Boolean, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.models._mixins import TimestampMixin

class DataType(str, Enum):
    string = "string"
    number = "number"
    date = "date"
    boolean = "boolean"

class TemplateColumn(Base, TimestampMixin):
    __tablename__ = "template_column"
    __table_args__ = (
        UniqueConstraint("template_id", "position", name="uq_template_column_position"),
        CheckConstraint("position > 0", name="ck_template_column_position_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    template_id: Mapped[int] = mapped_column(ForeignKey("import_template.id", ondelete="CASCADE"), index=True)
    position: Mapped[int] = mapped_column(Integer)  # 1-based, contiguous
    name: Mapped[str] = mapped_column(String(256))
    data_type: Mapped[str] = mapped_column(String(16), default=DataType.string.value)
    required: Mapped[bool] = mapped_column(Boolean, default=False)

    template = relationship("ImportTemplate", back_populates="columns")
    values = relationship(
        "DataRecordValue",
        back_populates="column",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
