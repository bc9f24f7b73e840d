import datetime as dt
import json

from app.services.jobs.broadcast import MemoryBroadcaster, channel_name
from app.services.jobs.cache import MemoryCache
from app.services.jobs.status import DEFAULT_TTL_SECONDS, JobState, JobStatusService


class Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class BrokenCache:
    def get(self, name):
        raise ConnectionError("cache down")

    def set(self, name, value, ex=None):
        raise ConnectionError("cache down")

    def delete(self, *names):
        raise ConnectionError("cache down")


class BrokenBroadcaster:
    def publish(self, channel, message):
        raise ConnectionError("pubsub down")


T = dt.datetime(2024, 1, 1, 12, 0, tzinfo=dt.timezone.utc)


def _service(clock=None, broadcaster=None):
    return JobStatusService(MemoryCache(clock=clock or Clock()), broadcaster or MemoryBroadcaster())


def test_status_round_trip_and_expiry():
    clock = Clock()
    svc = _service(clock)

    svc.update_status("j1", JobState.processing, started_at=T)
    st = svc.get_status("j1")
    assert st.status == JobState.processing
    assert st.started_at == T

    clock.now += DEFAULT_TTL_SECONDS - 1
    assert svc.get_status("j1").status == JobState.processing

    clock.now += 1
    assert svc.get_status("j1").status == JobState.not_found


def test_cache_key_format():
    assert JobStatusService.cache_key("abc") == "job_status:abc"


def test_updates_merge_fields_and_refresh_expiry():
    clock = Clock()
    svc = _service(clock)
    svc.update_status("j1", "pending", created_at=T)
    clock.now += DEFAULT_TTL_SECONDS - 10
    svc.update_status("j1", JobState.completed, result_summary="done", processed_count=4)
    clock.now += 20

    st = svc.get_status("j1")
    assert st.status == JobState.completed
    assert st.created_at == T
    assert st.result_summary == "done"
    assert st.processed_count == 4
    assert st.updated_at is not None


def test_update_progress():
    svc = _service()
    st = svc.update_progress("j2", "Half way")
    assert st.status == JobState.processing
    assert svc.get_status("j2").progress == "Half way"


def test_unknown_job_is_not_found():
    assert _service().get_status("nope").status == JobState.not_found


def test_every_update_is_broadcast():
    b = MemoryBroadcaster()
    svc = _service(broadcaster=b)
    svc.update_status("j3", JobState.pending)
    svc.update_status("j3", JobState.failed, error_message="boom")

    assert [c for c, _ in b.published] == [channel_name("j3")] * 2
    last = json.loads(b.published[-1][1])
    assert last["status"] == "failed"
    assert last["error_message"] == "boom"


def test_cache_failures_are_not_raised():
    b = MemoryBroadcaster()
    svc = JobStatusService(BrokenCache(), b)

    st = svc.update_status("j4", JobState.processing, started_at=T)
    assert st.status == JobState.processing
    assert st.started_at == T
    # still announced even though it could not be stored
    assert len(b.published) == 1

    read = svc.get_status("j4")
    assert read.status == JobState.error
    assert read.error_message == "Cache read failed"


def test_broadcast_failure_is_swallowed():
    svc = JobStatusService(MemoryCache(), BrokenBroadcaster())
    svc.update_status("j5", JobState.completed)
    assert svc.get_status("j5").status == JobState.completed


def test_memory_cache_expiry_and_delete():
    clock = Clock()
    cache = MemoryCache(clock=clock)
    cache.set("a", "1", ex=5)
    cache.set("b", "2")
    assert cache.exists("a")
    clock.now += 5
    assert cache.get("a") is None
    assert cache.delete("b", "missing") == 1
    assert cache.get("b") is None


def test_non_text_messages_are_stored_as_text():
    svc = _service()

    st = svc.update_status("j6", JobState.failed, error_message=RuntimeError("boom"))
    assert st.error_message == "boom"
    assert svc.get_status("j6").error_message == "boom"

    assert svc.update_progress("j7", 42).progress == "42"
    assert svc.get_status("j7").progress == "42"


def test_invalid_fields_are_dropped_not_raised():
    svc = _service()
    svc.update_status("j8", JobState.pending, created_at=T)

    st = svc.update_status("j8", JobState.processing, started_at="not a date", processed_count=3)

    assert st.status == JobState.processing
    assert st.started_at is None
    assert st.created_at == T
    stored = svc.get_status("j8")
    assert stored.status == JobState.processing
    assert stored.processed_count == 3


def test_memory_cache_sweeps_expired_keys_on_write():
    clock = Clock()
    cache = MemoryCache(clock=clock)
    for i in range(5):
        cache.set(f"old{i}", "x", ex=5)
    cache.set("forever", "y")
    assert len(cache) == 6

    clock.now += 5
    cache.set("new", "z", ex=5)

    assert len(cache) == 2
    assert cache.get("forever") == "y"


def test_memory_broadcaster_history_is_bounded():
    b = MemoryBroadcaster(history=3)
    for i in range(10):
        b.publish("c", str(i))
    assert [m for _, m in b.published] == ["7", "8", "9"]
    assert b.subscriber_count("c") == 0
