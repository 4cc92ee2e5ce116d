"""
Provider vocabulary → internal taxonomy.

The poll path and the webhook path both go through `normalize()`, so the
mapping table lives here and nowhere else. Raw provider strings never leave
this module.
"""

import logging
import math
from typing import Optional, Sequence

import httpx

from .errors import ConfigurationError, StatusQueryError, ValidationError
from .models import DEFAULT_FAILURE_MESSAGE, StatusUpdate, TaskStatus
from .runway import RunwayAPIError, RunwayClient

logger = logging.getLogger(__name__)

PROVIDER_STATUS_MAP = {
    "PENDING": TaskStatus.PENDING,
    "THROTTLED": TaskStatus.PENDING,
    "RUNNING": TaskStatus.PROCESSING,
    "SUCCEEDED": TaskStatus.COMPLETED,
    "FAILED": TaskStatus.FAILED,
    "CANCELLED": TaskStatus.FAILED,
}

PENDING_PROGRESS = 10
DEFAULT_RUNNING_PROGRESS = 50


def map_status(raw_status: str) -> TaskStatus:
    try:
        return PROVIDER_STATUS_MAP[str(raw_status).upper()]
    except KeyError:
        raise ValidationError(f"Unknown provider status: {raw_status!r}") from None


def map_progress(status: TaskStatus, fraction: Optional[float]) -> int:
    if status == TaskStatus.PENDING:
        return PENDING_PROGRESS
    if status == TaskStatus.COMPLETED:
        return 100
    if status == TaskStatus.FAILED:
        return 0
    if fraction is None:
        return DEFAULT_RUNNING_PROGRESS
    fraction = float(fraction)
    if not math.isfinite(fraction):
        raise ValidationError(f"Progress must be a finite fraction, got {fraction!r}")
    # round half up, clamped
    return max(0, min(100, math.floor(fraction * 100 + 0.5)))


def normalize(
    task_id: str,
    raw_status: str,
    progress: Optional[float] = None,
    output: Optional[Sequence[str]] = None,
    failure_reason: Optional[str] = None,
) -> StatusUpdate:
    status = map_status(raw_status)
    video_url = None
    error = None
    if status == TaskStatus.COMPLETED and output:
        video_url = output[0]
    elif status == TaskStatus.FAILED:
        error = failure_reason or DEFAULT_FAILURE_MESSAGE

    return StatusUpdate(
        task_id=task_id,
        status=status,
        progress=map_progress(status, progress),
        video_url=video_url,
        error=error,
    )


class StatusNormalizer:
    """Pull path: ask the provider, hand back a normalized StatusUpdate."""

    def __init__(self, provider: RunwayClient):
        self.provider = provider

    async def fetch(self, task_id: str) -> StatusUpdate:
        if not self.provider.configured:
            raise ConfigurationError("AI service not configured")

        try:
            body = await self.provider.get_task(task_id)
        except (RunwayAPIError, httpx.HTTPError) as e:
            logger.warning(f"Status query for {task_id} failed: {e}")
            raise StatusQueryError("Failed to check generation status") from e

        if not isinstance(body, dict) or not body.get("status"):
            raise StatusQueryError(f"Malformed status response for {task_id}")

        try:
            update = normalize(
                task_id,
                body["status"],
                progress=body.get("progress"),
                output=body.get("output"),
                failure_reason=body.get("failure_reason") or body.get("failure"),
            )
        except (ValidationError, TypeError, ValueError, OverflowError) as e:
            raise StatusQueryError(str(e)) from e

        logger.info(f"Task {task_id}: provider {body['status']} → {update.status.value}/{update.progress}")
        return update
