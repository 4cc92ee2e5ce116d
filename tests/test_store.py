import asyncio
import itertools
import random
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from reels.errors import UnknownTaskError
from reels.models import GenerationTask, ReelStyle, StatusUpdate, TaskStatus
from reels.store import InMemoryTaskStore, merge_status

VIDEO = "https://cdn.test/T1.mp4"
CREATED = datetime(2026, 10, 18, 11, 0, tzinfo=timezone.utc)


class TickingClock:
    def __init__(self):
        self.now = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now


def _task(task_id="T1", **overrides) -> GenerationTask:
    fields = dict(
        id=task_id,
        photo_sequence=("a.jpg", "b.jpg", "c.jpg"),
        style=ReelStyle.TRENDY,
        duration_seconds=5,
        status=TaskStatus.PENDING,
        progress_percent=10,
        created_at=CREATED,
        updated_at=CREATED,
    )
    fields.update(overrides)
    return GenerationTask(**fields)


def _view(status, progress, video_url=None, error=None, task_id="T1") -> StatusUpdate:
    return StatusUpdate(task_id=task_id, status=status, progress=progress, video_url=video_url, error=error)


def _store_with(task=None) -> InMemoryTaskStore:
    store = InMemoryTaskStore(clock=TickingClock())
    asyncio.run(store.create(task or _task()))
    return store


# ── Pure merge rules ─────────────────────────────────────────────────────────

def test_stale_pending_does_not_regress_processing():
    current = _view(TaskStatus.PROCESSING, 50)
    assert merge_status(current, _view(TaskStatus.PENDING, 10)) is current


def test_progress_only_moves_up_within_processing():
    current = _view(TaskStatus.PROCESSING, 60)
    assert merge_status(current, _view(TaskStatus.PROCESSING, 40)) is current
    assert merge_status(current, _view(TaskStatus.PROCESSING, 75)).progress == 75


def test_status_advances_but_keeps_higher_progress():
    merged = merge_status(_view(TaskStatus.PENDING, 10), _view(TaskStatus.PROCESSING, 5))
    assert (merged.status, merged.progress) == (TaskStatus.PROCESSING, 10)


def test_terminal_adopted_wholesale():
    merged = merge_status(_view(TaskStatus.PROCESSING, 80), _view(TaskStatus.FAILED, 0, error="boom"))
    assert (merged.status, merged.progress, merged.error) == (TaskStatus.FAILED, 0, "boom")
    assert merged.video_url is None


def test_terminal_is_absorbing():
    done = _view(TaskStatus.COMPLETED, 100, video_url=VIDEO)
    for incoming in (
        _view(TaskStatus.PENDING, 10),
        _view(TaskStatus.PROCESSING, 99),
        _view(TaskStatus.FAILED, 0, error="late failure"),
        _view(TaskStatus.COMPLETED, 100, video_url="https://other"),
    ):
        assert merge_status(done, incoming) is done


# ── Store entrypoint ─────────────────────────────────────────────────────────

def test_merge_unknown_task_rejected():
    store = InMemoryTaskStore()
    with pytest.raises(UnknownTaskError):
        asyncio.run(store.merge("nope", TaskStatus.PROCESSING, 50))


def test_unknown_ids_leave_no_lock_behind():
    store = _store_with()
    for i in range(100):
        with pytest.raises(UnknownTaskError):
            asyncio.run(store.merge(f"ghost-{i}", TaskStatus.PROCESSING, 50))
    assert list(store._locks) == ["T1"]


def test_create_keeps_existing_record():
    store = _store_with()
    asyncio.run(store.merge("T1", TaskStatus.PROCESSING, 30))
    kept = asyncio.run(store.create(_task()))
    assert kept.status == TaskStatus.PROCESSING


def test_merge_is_idempotent():
    store = _store_with()
    first = asyncio.run(store.merge("T1", TaskStatus.PROCESSING, 40))
    second = asyncio.run(store.merge("T1", TaskStatus.PROCESSING, 40))

    assert first.applied is True
    assert second.applied is False
    assert second.task == first.task
    assert asyncio.run(store.get("T1")).model_dump_json() == first.task.model_dump_json()


def test_completed_record_is_byte_for_byte_sticky():
    store = _store_with()
    asyncio.run(store.merge("T1", TaskStatus.COMPLETED, 100, video_url=VIDEO))
    before = asyncio.run(store.get("T1")).model_dump_json()

    for status, progress in [(TaskStatus.PENDING, 10), (TaskStatus.PROCESSING, 60), (TaskStatus.FAILED, 0)]:
        result = asyncio.run(store.merge("T1", status, progress, error="x"))
        assert result.applied is False

    assert asyncio.run(store.get("T1")).model_dump_json() == before


def test_updated_at_moves_only_on_change():
    store = _store_with()
    created = asyncio.run(store.get("T1"))
    applied = asyncio.run(store.merge("T1", TaskStatus.PROCESSING, 20)).task
    assert applied.updated_at > created.updated_at
    assert applied.created_at == created.created_at


UPDATES = [
    ("poll", _view(TaskStatus.PENDING, 10)),
    ("webhook", _view(TaskStatus.PROCESSING, 50)),
    ("webhook", _view(TaskStatus.COMPLETED, 100, video_url=VIDEO)),
]


@pytest.mark.parametrize("order", list(itertools.permutations(range(len(UPDATES)))))
def test_any_interleaving_converges(order):
    store = _store_with()
    observed = []
    for i in order:
        _, update = UPDATES[i]
        result = asyncio.run(store.merge_update(update))
        observed.append(result.task)

    final = asyncio.run(store.get("T1"))
    assert (final.status, final.progress_percent, final.video_url) == (TaskStatus.COMPLETED, 100, VIDEO)

    for earlier, later in zip(observed, observed[1:]):
        assert later.status.rank >= earlier.status.rank
        if later.status == earlier.status:
            assert later.progress_percent >= earlier.progress_percent


def test_concurrent_merges_from_threads_never_regress():
    store = _store_with()
    updates = [_view(TaskStatus.PROCESSING, p) for p in range(0, 100, 3)]
    updates += [_view(TaskStatus.PENDING, 10)] * 20
    updates.append(_view(TaskStatus.COMPLETED, 100, video_url=VIDEO))
    random.Random(7).shuffle(updates)

    seen = []
    seen_lock = threading.Lock()

    def apply(update):
        task = asyncio.run(store.merge_update(update)).task
        with seen_lock:
            seen.append((task.status.rank, task.progress_percent))

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(apply, updates))

    final = asyncio.run(store.get("T1"))
    assert final.status == TaskStatus.COMPLETED
    assert final.progress_percent == 100
    assert final.video_url == VIDEO
    assert final.error_message is None
    assert len(seen) == len(updates)


def test_count_by_status():
    store = _store_with()
    asyncio.run(store.create(_task("T2")))
    asyncio.run(store.merge("T2", TaskStatus.FAILED, 0, error="nope"))
    assert store.count_by_status() == {"pending": 1, "processing": 0, "completed": 0, "failed": 1}
