"""
Reconciliation store, the single source of truth for task state.

Every write goes through `merge()`. The decision itself is the pure function
`merge_status()`, shared by both backends and by the client-side poller:

  1. current terminal           → discard (completed/failed are absorbing)
  2. incoming terminal          → adopt wholesale
  3. both non-terminal          → status only moves forward, progress only up

Backends:
  InMemoryTaskStore — per-task threading.Lock
  RedisTaskStore    — optimistic WATCH/MULTI/EXEC per task key
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from redis.exceptions import WatchError

from .errors import ReelError, UnknownTaskError
from .models import (
    DEFAULT_FAILURE_MESSAGE,
    GenerationTask,
    StatusUpdate,
    TaskStatus,
    utcnow,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MergeResult:
    task: GenerationTask
    applied: bool


# ── Pure reconciliation ──────────────────────────────────────────────────────

def merge_status(current: StatusUpdate, incoming: StatusUpdate) -> StatusUpdate:
    """Return the reconciled view. Returns `current` itself when nothing changes."""
    if current.is_terminal:
        return current

    if incoming.is_terminal:
        completed = incoming.status == TaskStatus.COMPLETED
        merged = StatusUpdate(
            task_id=current.task_id,
            status=incoming.status,
            progress=100 if completed else 0,
            video_url=incoming.video_url if completed else None,
            error=None if completed else (incoming.error or DEFAULT_FAILURE_MESSAGE),
        )
    else:
        status = incoming.status if incoming.status.rank >= current.status.rank else current.status
        merged = StatusUpdate(
            task_id=current.task_id,
            status=status,
            progress=max(current.progress, incoming.progress),
        )

    return current if merged == current else merged


def apply_update(task: GenerationTask, update: StatusUpdate, now: datetime) -> MergeResult:
    current = task.status_view()
    merged = merge_status(current, update)
    if merged is current:
        return MergeResult(task=task, applied=False)

    return MergeResult(
        task=task.model_copy(update={
            "status": merged.status,
            "progress_percent": merged.progress,
            "video_url": merged.video_url,
            "error_message": merged.error,
            "updated_at": now,
        }),
        applied=True,
    )


# ── Store interface ──────────────────────────────────────────────────────────

class TaskStore:
    backend = "abstract"

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock

    async def create(self, task: GenerationTask) -> GenerationTask:
        raise NotImplementedError

    async def get(self, task_id: str) -> Optional[GenerationTask]:
        raise NotImplementedError

    async def merge(
        self,
        task_id: str,
        status: TaskStatus,
        progress: int,
        video_url: Optional[str] = None,
        error: Optional[str] = None,
    ) -> MergeResult:
        raise NotImplementedError

    async def merge_update(self, update: StatusUpdate) -> MergeResult:
        return await self.merge(
            update.task_id,
            update.status,
            update.progress,
            video_url=update.video_url,
            error=update.error,
        )

    async def close(self):
        pass

    def _log_result(self, result: MergeResult, update: StatusUpdate):
        task = result.task
        if result.applied:
            logger.info(f"[{task.id}] merged {update.status.value}/{update.progress} → {task.status.value}/{task.progress_percent}")
        else:
            logger.info(f"[{task.id}] discarded {update.status.value}/{update.progress} (stored {task.status.value}/{task.progress_percent})")


# ── In-memory backend ────────────────────────────────────────────────────────

class InMemoryTaskStore(TaskStore):
    backend = "memory"

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        super().__init__(clock)
        self._tasks: dict[str, GenerationTask] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    def _key_lock(self, task_id: str, create: bool = False) -> Optional[threading.Lock]:
        """Locks exist only for created tasks, so unknown ids never grow the table."""
        with self._lock:
            if create:
                return self._locks.setdefault(task_id, threading.Lock())
            return self._locks.get(task_id)

    async def create(self, task: GenerationTask) -> GenerationTask:
        with self._key_lock(task.id, create=True):
            existing = self._tasks.get(task.id)
            if existing is not None:
                logger.warning(f"Task {task.id} already exists, keeping stored record")
                return existing
            self._tasks[task.id] = task
        logger.info(f"Created task {task.id} ({task.status.value}/{task.progress_percent})")
        return task

    async def get(self, task_id: str) -> Optional[GenerationTask]:
        return self._tasks.get(task_id)

    async def merge(self, task_id, status, progress, video_url=None, error=None) -> MergeResult:
        update = StatusUpdate(task_id=task_id, status=status, progress=progress, video_url=video_url, error=error)
        lock = self._key_lock(task_id)
        if lock is None:
            raise UnknownTaskError(task_id)
        with lock:
            current = self._tasks.get(task_id)
            if current is None:
                raise UnknownTaskError(task_id)
            result = apply_update(current, update, self._clock())
            if result.applied:
                self._tasks[task_id] = result.task
        self._log_result(result, update)
        return result

    def count_by_status(self) -> dict:
        counts = {s.value: 0 for s in TaskStatus}
        for task in list(self._tasks.values()):
            counts[task.status.value] += 1
        return counts


# ── Redis backend ────────────────────────────────────────────────────────────

KEY_PREFIX = "reels:task:"
MAX_CAS_ATTEMPTS = 20


def task_key(task_id: str) -> str:
    return f"{KEY_PREFIX}{task_id}"


class RedisTaskStore(TaskStore):
    """
    Tasks stored as JSON strings under `reels:task:{id}`.

    merge() is a check-and-set: WATCH the key, read, decide, MULTI/SET/EXEC.
    A concurrent writer aborts the EXEC and we re-read and re-decide.
    """

    backend = "redis"

    def __init__(self, redis_client, clock: Callable[[], datetime] = utcnow):
        super().__init__(clock)
        self._redis = redis_client

    async def create(self, task: GenerationTask) -> GenerationTask:
        created = await self._redis.set(task_key(task.id), task.model_dump_json(), nx=True)
        if not created:
            logger.warning(f"Task {task.id} already exists, keeping stored record")
            return await self.get(task.id)
        logger.info(f"Created task {task.id} ({task.status.value}/{task.progress_percent})")
        return task

    async def get(self, task_id: str) -> Optional[GenerationTask]:
        raw = await self._redis.get(task_key(task_id))
        if raw is None:
            return None
        return GenerationTask.model_validate_json(raw)

    async def merge(self, task_id, status, progress, video_url=None, error=None) -> MergeResult:
        update = StatusUpdate(task_id=task_id, status=status, progress=progress, video_url=video_url, error=error)
        key = task_key(task_id)

        for attempt in range(MAX_CAS_ATTEMPTS):
            async with self._redis.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    if raw is None:
                        raise UnknownTaskError(task_id)

                    result = apply_update(GenerationTask.model_validate_json(raw), update, self._clock())
                    if result.applied:
                        pipe.multi()
                        pipe.set(key, result.task.model_dump_json())
                        await pipe.execute()
                except WatchError:
                    logger.debug(f"[{task_id}] merge conflict on attempt {attempt + 1}, retrying")
                    continue

            self._log_result(result, update)
            return result

        raise ReelError(f"Could not merge update for {task_id} after {MAX_CAS_ATTEMPTS} attempts")

    async def close(self):
        await self._redis.aclose()
