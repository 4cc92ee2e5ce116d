"""Push path: provider webhooks, normalized exactly like a poll and merged into the store."""

import json
import logging
from typing import Optional

import pydantic

from .errors import ValidationError
from .models import WebhookPayload
from .normalizer import normalize
from .signatures import verify_signature
from .store import MergeResult, TaskStore

logger = logging.getLogger(__name__)


class WebhookIngester:
    def __init__(self, store: TaskStore, secret: str = "", allow_unsigned: bool = False):
        self.store = store
        self.secret = secret
        self.allow_unsigned = allow_unsigned

    def parse(self, body: bytes) -> WebhookPayload:
        try:
            data = json.loads(body or b"null")
        except (ValueError, UnicodeDecodeError):
            raise ValidationError("Invalid webhook payload: body is not JSON") from None
        if not isinstance(data, dict):
            raise ValidationError("Invalid webhook payload: expected an object")

        try:
            payload = WebhookPayload.model_validate(data)
        except pydantic.ValidationError as e:
            field = ".".join(str(p) for p in e.errors()[0]["loc"]) or "body"
            raise ValidationError(f"Invalid webhook payload: bad {field}") from None

        if not payload.id:
            raise ValidationError("Invalid webhook payload: missing id")
        if not payload.status:
            raise ValidationError("Invalid webhook payload: missing status")
        return payload

    async def ingest(self, body: bytes, signature: Optional[str]) -> MergeResult:
        """
        Verify, parse, normalize, merge.

        A discarded update (task already terminal) still counts as accepted.
        """
        verify_signature(body, signature, self.secret, allow_unsigned=self.allow_unsigned)
        payload = self.parse(body)

        update = normalize(
            payload.id,
            payload.status,
            progress=payload.progress,
            output=payload.output,
            failure_reason=payload.failure_reason,
        )
        logger.info(f"Webhook for {payload.id}: {payload.status} → {update.status.value}/{update.progress}")
        return await self.store.merge_update(update)
