"""
Task submission.

Only the first photo goes to the provider as the seed image; the rest of the
sequence is described in the prompt text and kept on the task record.
"""

import logging
from datetime import datetime
from typing import Callable

import httpx

from .errors import ConfigurationError, ProviderError
from .models import GenerationTask, TaskStatus, utcnow
from .normalizer import PENDING_PROGRESS
from .presets import build_prompt, estimated_time
from .runway import RunwayAPIError, RunwayClient
from .store import TaskStore
from .validator import ValidatedSubmission

logger = logging.getLogger(__name__)


class TaskSubmitter:
    def __init__(self, provider: RunwayClient, store: TaskStore, clock: Callable[[], datetime] = utcnow):
        self.provider = provider
        self.store = store
        self._clock = clock

    async def submit(self, submission: ValidatedSubmission) -> GenerationTask:
        if not self.provider.configured:
            logger.error("RunwayML API key not configured")
            raise ConfigurationError("AI service not configured")

        prompt = build_prompt(submission.style, submission.duration, len(submission.photo_urls))

        try:
            body = await self.provider.image_to_video(
                prompt_image=submission.photo_urls[0],
                prompt_text=prompt,
                duration=submission.duration,
            )
        except RunwayAPIError as e:
            logger.error(f"RunwayML rejected submission: {e}")
            raise ProviderError("Failed to start AI generation", provider_status=e.status_code) from e
        except httpx.HTTPError as e:
            logger.error(f"RunwayML submission request failed: {e}")
            raise ProviderError("Failed to start AI generation") from e

        task_id = body.get("id") if isinstance(body, dict) else None
        if not task_id:
            raise ProviderError(f"No task id in provider response: {body}")

        now = self._clock()
        task = GenerationTask(
            id=str(task_id),
            photo_sequence=submission.photo_urls,
            style=submission.style,
            duration_seconds=submission.duration,
            status=TaskStatus.PENDING,
            progress_percent=PENDING_PROGRESS,
            event_id=submission.event_id,
            user_id=submission.user_id,
            estimated_time=estimated_time(submission.duration),
            created_at=now,
            updated_at=now,
        )
        task = await self.store.create(task)
        logger.info(
            f"Reel task {task.id} started: style={submission.style.value}, "
            f"{len(submission.photo_urls)} photos, {submission.duration}s"
        )
        return task
