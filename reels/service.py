"""
ReelService: wires validator, submitter, normalizer, ingester and store.

Usage:
    service = ReelService.from_settings(Settings.from_env(), store)

    task = await service.submit(request)          # → pending/10
    view = await service.refresh(task.id)         # poll provider, merge, reconciled view
    await service.ingest_webhook(body, signature) # push path, same store
"""

import logging
from typing import Optional

from .config import Settings
from .errors import UnknownTaskError
from .models import GenerationTask, ReelGenerationRequest
from .normalizer import StatusNormalizer
from .runway import RunwayClient
from .store import InMemoryTaskStore, MergeResult, TaskStore
from .submitter import TaskSubmitter
from .validator import validate_submission
from .webhook import WebhookIngester

logger = logging.getLogger(__name__)


class ReelService:
    def __init__(
        self,
        provider: RunwayClient,
        store: TaskStore,
        webhook_secret: str = "",
        allow_unsigned_webhooks: bool = False,
    ):
        self.provider = provider
        self.store = store
        self.submitter = TaskSubmitter(provider, store)
        self.normalizer = StatusNormalizer(provider)
        self.ingester = WebhookIngester(store, secret=webhook_secret, allow_unsigned=allow_unsigned_webhooks)

    @classmethod
    def from_settings(cls, settings: Settings, store: Optional[TaskStore] = None, **provider_kwargs) -> "ReelService":
        return cls(
            provider=RunwayClient.from_settings(settings, **provider_kwargs),
            store=store or InMemoryTaskStore(),
            webhook_secret=settings.webhook_secret,
            allow_unsigned_webhooks=settings.is_development,
        )

    async def submit(self, request: ReelGenerationRequest) -> GenerationTask:
        submission = validate_submission(request)
        return await self.submitter.submit(submission)

    async def get(self, task_id: str) -> GenerationTask:
        task = await self.store.get(task_id)
        if task is None:
            raise UnknownTaskError(task_id)
        return task

    async def refresh(self, task_id: str) -> GenerationTask:
        """
        Pull the provider's view and merge it.

        Terminal tasks are answered from the store without a provider call.
        A failed query leaves the stored record untouched.
        """
        task = await self.get(task_id)
        if task.status.is_terminal:
            return task

        update = await self.normalizer.fetch(task_id)
        result = await self.store.merge_update(update)
        return result.task

    async def ingest_webhook(self, body: bytes, signature: Optional[str]) -> MergeResult:
        return await self.ingester.ingest(body, signature)

    async def close(self):
        await self.store.close()
