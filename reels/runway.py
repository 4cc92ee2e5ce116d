"""
RunwayML image_to_video client.

Two calls only:
  POST {base}/image_to_video   → { id }
  GET  {base}/tasks/{id}       → { id, status, progress?, output?, failure? }

Retries 429 / 5xx with exponential backoff before giving up.
"""

import asyncio
import logging
import random
from typing import Optional

import httpx

from .config import Settings

logger = logging.getLogger(__name__)

# ── Retry configuration ──────────────────────────────────────────────────────
MAX_RETRIES = 3
BASE_DELAY = 1.0       # seconds, doubles each retry: 1, 2, 4
JITTER_MAX = 0.5
RETRYABLE_STATUS_CODES = {429, 502, 503, 504}


class RunwayAPIError(Exception):
    """Non-success response from RunwayML after retries."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"RunwayML returned {status_code}: {body[:300]}")
        self.status_code = status_code
        self.body = body


class RunwayClient:
    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.dev.runwayml.com/v1",
        api_version: str = "2024-11-06",
        model: str = "gen4_turbo",
        ratio: str = "720:1280",
        timeout: float = 30.0,
        max_retries: int = MAX_RETRIES,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.api_version = api_version
        self.model = model
        self.ratio = ratio
        self.timeout = timeout
        self.max_retries = max_retries
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "RunwayClient":
        return cls(
            api_key=settings.runway_api_key,
            base_url=settings.runway_api_base,
            api_version=settings.runway_api_version,
            model=settings.runway_model,
            ratio=settings.runway_ratio,
            **kwargs,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Runway-Version": self.api_version,
        }

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self.base_url}{path}"

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            for attempt in range(self.max_retries + 1):
                try:
                    response = await client.request(method, url, headers=self._headers(), **kwargs)
                except httpx.TransportError as e:
                    if attempt >= self.max_retries:
                        raise
                    delay = BASE_DELAY * (2 ** attempt) + random.uniform(0, JITTER_MAX)
                    logger.warning(
                        f"RunwayML request error on attempt {attempt + 1}/{self.max_retries + 1}: {e} "
                        f"— retrying in {delay:.1f}s"
                    )
                    await asyncio.sleep(delay)
                    continue

                if response.status_code in RETRYABLE_STATUS_CODES and attempt < self.max_retries:
                    retry_after = response.headers.get("Retry-After")
                    if retry_after and retry_after.isdigit():
                        delay = int(retry_after)
                    else:
                        delay = BASE_DELAY * (2 ** attempt) + random.uniform(0, JITTER_MAX)
                    logger.warning(
                        f"RunwayML {response.status_code} on attempt {attempt + 1}/{self.max_retries + 1} "
                        f"— retrying in {delay:.1f}s (url={url})"
                    )
                    await asyncio.sleep(delay)
                    continue

                if response.is_error:
                    raise RunwayAPIError(response.status_code, response.text)
                try:
                    return response.json()
                except ValueError:
                    raise RunwayAPIError(response.status_code, response.text) from None

    async def image_to_video(self, prompt_image: str, prompt_text: str, duration: int) -> dict:
        """Start a generation task. Returns the raw provider body (contains `id`)."""
        payload = {
            "model": self.model,
            "promptImage": prompt_image,
            "promptText": prompt_text,
            "duration": duration,
            "ratio": self.ratio,
        }
        logger.info(f"RunwayML image_to_video: model={self.model}, duration={duration}s, ratio={self.ratio}")
        return await self._request("POST", "/image_to_video", json=payload)

    async def get_task(self, task_id: str) -> dict:
        logger.debug(f"Polling RunwayML task {task_id}")
        return await self._request("GET", f"/tasks/{task_id}")
