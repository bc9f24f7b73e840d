from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.models._mixins import TimestampMixin

class ImportTemplate(Base, TimestampMixin):
    __tablename__ = "import_template"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(256), unique=True, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    columns = relationship(
        "TemplateColumn",
        back_populates="template",
        order_by="TemplateColumn.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    records = relationship(
        "DataRecord",
        back_populates="template",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def column_headers(self) -> list[str]:
        return [c.name for c in self.columns]
