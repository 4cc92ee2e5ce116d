"""
Async client for the reels HTTP API.

    async with ReelClient("http://localhost:8080") as client:
        url = await client.wait_for_video(request, on_update=print)
"""

import logging
from typing import Callable, Optional

import httpx

from .errors import ProviderError, StatusQueryError, ValidationError
from .models import ReelGenerationRequest, StatusUpdate, SubmitResponse
from .normalizer import PENDING_PROGRESS
from .poller import ERROR_BACKOFF, MAX_TASK_LIFETIME, POLL_INTERVAL, ClientPoller

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response, default: str) -> str:
    try:
        return response.json().get("error") or default
    except (ValueError, AttributeError):
        return default


class ReelClient:
    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        poll_interval: float = POLL_INTERVAL,
        poll_backoff: float = ERROR_BACKOFF,
        max_lifetime: Optional[float] = MAX_TASK_LIFETIME,
    ):
        self._http = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)
        self.poll_interval = poll_interval
        self.poll_backoff = poll_backoff
        self.max_lifetime = max_lifetime

    async def __aenter__(self) -> "ReelClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        await self._http.aclose()

    async def generate_reel(self, request: ReelGenerationRequest) -> SubmitResponse:
        response = await self._http.post(
            "/api/reels/generate",
            json=request.model_dump(mode="json", by_alias=True),
        )
        if response.status_code == 400:
            raise ValidationError(_error_message(response, "Invalid reel request"))
        if response.is_error:
            raise ProviderError(
                _error_message(response, "Failed to start reel generation"),
                provider_status=response.status_code,
            )
        return SubmitResponse.model_validate(response.json())

    async def check_status(self, task_id: str) -> StatusUpdate:
        try:
            response = await self._http.get("/api/reels/generate", params={"taskId": task_id})
        except httpx.HTTPError as e:
            raise StatusQueryError(f"Failed to check status: {e}") from e
        if response.is_error:
            raise StatusQueryError(_error_message(response, "Failed to check status"))
        try:
            return StatusUpdate.model_validate(response.json())
        except ValueError as e:
            raise StatusQueryError(f"Malformed status response for {task_id}") from e

    def poller(self, task_id: str, **kwargs) -> ClientPoller:
        kwargs.setdefault("interval", self.poll_interval)
        kwargs.setdefault("backoff", self.poll_backoff)
        kwargs.setdefault("max_lifetime", self.max_lifetime)
        return ClientPoller(task_id, self.check_status, **kwargs)

    async def wait_for_video(
        self,
        request: ReelGenerationRequest,
        on_update: Optional[Callable[[StatusUpdate], None]] = None,
        **poller_kwargs,
    ) -> Optional[str]:
        """Submit, poll to a terminal state, return the video URL or raise GenerationFailure."""
        submitted = await self.generate_reel(request)
        logger.info(f"Reel task {submitted.task_id} submitted (estimated {submitted.estimated_time})")

        poller_kwargs.setdefault(
            "initial",
            StatusUpdate(task_id=submitted.task_id, status=submitted.status, progress=PENDING_PROGRESS),
        )
        poller = self.poller(submitted.task_id, **poller_kwargs)
        if on_update is not None:
            poller.subscribe(on_update)
        final = await poller.run()
        final.raise_for_failure()
        return final.video_url
