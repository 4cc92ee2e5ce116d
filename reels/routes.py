"""
FastAPI routes for reel generation.

  POST /api/reels/generate            — Submit photos, start a provider task
  GET  /api/reels/generate?taskId=…   — Poll: refresh from provider, return reconciled status
  POST /api/reels/webhook             — Provider push (signed)
  GET  /api/reels/tasks/{task_id}     — Read the stored record without touching the provider

Domain errors propagate to the handler registered in main.py, which renders
them as {"error": ...} with the matching status code.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from . import metrics
from .errors import ReelError, ValidationError
from .models import ReelGenerationRequest, SubmitResponse
from .service import ReelService
from .signatures import SIGNATURE_HEADER

logger = logging.getLogger(__name__)

reels_router = APIRouter(prefix="/api/reels", tags=["reels"])


def get_service(request: Request) -> ReelService:
    return request.app.state.service


@reels_router.post("/generate")
async def generate_reel(body: ReelGenerationRequest, service: ReelService = Depends(get_service)):
    metrics.inc_counter("requests.submit")
    with metrics.timed("submit"):
        try:
            task = await service.submit(body)
        except ReelError:
            raise
        except Exception as e:
            logger.error(f"Error generating reel: {e}", exc_info=True)
            raise ReelError("Internal server error") from e

    return SubmitResponse(task_id=task.id, estimated_time=task.estimated_time).to_payload()


@reels_router.get("/generate")
async def check_reel_status(
    task_id: Optional[str] = Query(default=None, alias="taskId"),
    service: ReelService = Depends(get_service),
):
    metrics.inc_counter("requests.poll")
    if not task_id:
        raise ValidationError("Task ID is required")

    with metrics.timed("poll"):
        try:
            task = await service.refresh(task_id)
        except ReelError:
            raise
        except Exception as e:
            logger.error(f"Error checking reel status for {task_id}: {e}", exc_info=True)
            raise ReelError("Failed to check status") from e

    return task.status_view().to_payload()


@reels_router.post("/webhook")
async def handle_webhook(request: Request, service: ReelService = Depends(get_service)):
    metrics.inc_counter("requests.webhook")
    body = await request.body()

    with metrics.timed("webhook"):
        try:
            result = await service.ingest_webhook(body, request.headers.get(SIGNATURE_HEADER))
        except ReelError:
            raise
        except Exception as e:
            logger.error(f"Webhook processing error: {e}", exc_info=True)
            raise ReelError("Webhook processing failed") from e

    metrics.inc_counter("merges.applied" if result.applied else "merges.discarded")
    return {"success": True}


@reels_router.get("/tasks/{task_id}")
async def get_task(task_id: str, service: ReelService = Depends(get_service)):
    task = await service.get(task_id)
    return task.to_payload()
