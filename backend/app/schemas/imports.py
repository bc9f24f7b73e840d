from pydantic import BaseModel


class ImportOutcomeOut(BaseModel):
    success: bool
    summary: str
    errors: list[str] = []
    warnings: list[str] = []
    created_count: int = 0
    updated_count: int = 0
    deleted_count: int = 0
    processed_count: int = 0
    batch_id: str | None = None


class JobOut(BaseModel):
    job_id: str
    status: str
    status_url: str


class HeaderSuggestionsOut(BaseModel):
    valid: bool
    errors: list[str] = []
    warnings: list[str] = []
    suggestions: dict[str, str] = {}
