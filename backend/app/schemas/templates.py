import datetime as dt
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.db.models.template_column import DataType


class ColumnCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=256)
    data_type: DataType = DataType.string
    required: bool = False


class ColumnUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=256)
    data_type: DataType | None = None
    required: bool | None = None


class ColumnOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    position: int
    name: str
    data_type: DataType
    required: bool


class ColumnOrderIn(BaseModel):
    column_ids: list[int]


class TemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=256)
    description: str | None = None
    columns: list[ColumnCreate] = Field(default_factory=list)


class TemplateUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=256)
    description: str | None = None


class TemplateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None = None
    columns: list[ColumnOut] = []
    created_at: dt.datetime | None = None


class RecordIn(BaseModel):
    data: dict[str, Any] = Field(default_factory=dict)


class RecordOut(BaseModel):
    id: int
    import_batch_id: str | None = None
    data: dict[str, str | None]
