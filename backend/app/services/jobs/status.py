"""Ephemeral job status records kept in a key/value cache.

Lifecycle: pending -> processing -> completed | failed. Each record lives
under ``job_status:<job_id>`` and expires ``ttl_seconds`` after its last
write. Transitions are published on ``job_status_<job_id>``. Status tracking
is best effort: cache and broadcast failures are logged, never raised.
"""
from __future__ import annotations

import datetime as dt
from enum import Enum
from functools import lru_cache
from typing import Any, Callable, Optional

import redis
from pydantic import BaseModel, ConfigDict, ValidationError

from app.core.config import settings
from app.core.logging import logger
from app.services.jobs.broadcast import Broadcaster, MemoryBroadcaster, RedisBroadcaster, channel_name
from app.services.jobs.cache import MemoryCache, StatusCache

DEFAULT_TTL_SECONDS = 24 * 60 * 60
TEXT_FIELDS = ("progress", "result_summary", "error_message")


class JobState(str, Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"
    not_found = "not_found"
    error = "error"


TERMINAL_STATES = (JobState.completed, JobState.failed)


class JobStatus(BaseModel):
    model_config = ConfigDict(extra="allow", use_enum_values=False)

    job_id: str
    status: JobState
    created_at: Optional[dt.datetime] = None
    started_at: Optional[dt.datetime] = None
    completed_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None
    progress: Optional[str] = None
    result_summary: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _as_text(fields: dict[str, Any]) -> dict[str, Any]:
    out = {}
    for k, v in fields.items():
        if v is not None and (k in TEXT_FIELDS or isinstance(v, BaseException)) and not isinstance(v, str):
            v = str(v)
        out[k] = v
    return out


class JobStatusService:
    def __init__(
        self,
        cache: StatusCache,
        broadcaster: Optional[Broadcaster] = None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        now: Callable[[], dt.datetime] = utcnow,
    ):
        self.cache = cache
        self.broadcaster = broadcaster
        self.ttl_seconds = ttl_seconds
        self.now = now

    @staticmethod
    def cache_key(job_id: str) -> str:
        return f"job_status:{job_id}"

    def _read(self, job_id: str) -> Optional[dict[str, Any]]:
        raw = self.cache.get(self.cache_key(job_id))
        if raw is None:
            return None
        return JobStatus.model_validate_json(raw).model_dump()

    def get_status(self, job_id: str) -> JobStatus:
        try:
            data = self._read(job_id)
        except Exception as e:
            logger.error("job_status_cache_read_error", job_id=job_id, error=str(e))
            return JobStatus(job_id=job_id, status=JobState.error, error_message="Cache read failed")
        if data is None:
            return JobStatus(job_id=job_id, status=JobState.not_found)
        return JobStatus.model_validate(data)

    def update_status(self, job_id: str, status: JobState | str, **fields: Any) -> JobStatus:
        """Merge ``fields`` into the stored record and publish the result.

        Returns the merged record even when it could not be stored.
        """
        try:
            current = self._read(job_id) or {}
        except Exception as e:
            logger.error("job_status_cache_read_error", job_id=job_id, error=str(e))
            current = {}

        merged = {k: v for k, v in current.items() if v is not None}
        merged.update(_as_text(fields))
        merged.update(job_id=job_id, status=JobState(status), updated_at=self.now())
        try:
            record = JobStatus.model_validate(merged)
        except ValidationError as e:
            bad = {str(err["loc"][0]) for err in e.errors() if err["loc"]}
            logger.warning("job_status_invalid_fields", job_id=job_id, fields=sorted(bad))
            record = JobStatus.model_validate({k: v for k, v in merged.items() if k not in bad})

        try:
            self.cache.set(self.cache_key(job_id), record.model_dump_json(), ex=self.ttl_seconds)
        except Exception as e:
            logger.error("job_status_cache_write_error", job_id=job_id, error=str(e))

        self.broadcast_status_change(job_id, record)
        return record

    def update_progress(self, job_id: str, message: Any) -> JobStatus:
        return self.update_status(job_id, JobState.processing, progress=message)

    def broadcast_status_change(self, job_id: str, record: JobStatus) -> None:
        if self.broadcaster is None:
            return
        try:
            self.broadcaster.publish(channel_name(job_id), record.model_dump_json())
        except Exception as e:
            logger.error("job_status_broadcast_error", job_id=job_id, error=str(e))


@lru_cache
def get_job_status_service() -> JobStatusService:
    if settings.JOB_STATUS_BACKEND == "memory":
        cache, broadcaster = MemoryCache(), MemoryBroadcaster()
    else:
        cache = redis.Redis.from_url(settings.REDIS_URL)
        broadcaster = RedisBroadcaster(settings.REDIS_URL)
    return JobStatusService(cache, broadcaster, ttl_seconds=settings.JOB_STATUS_TTL_SECONDS)
