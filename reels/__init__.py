"""
Reel generation task orchestration

  Submit  — validate photos + style, start a RunwayML image_to_video task
  Track   — poll and webhook updates reconciled into one task record
  Client  — poll a task to its terminal state
"""

from .models import GenerationTask, ReelStyle, StatusUpdate, TaskStatus
from .poller import ClientPoller
from .service import ReelService
from .store import InMemoryTaskStore, RedisTaskStore, merge_status

__all__ = [
    "GenerationTask",
    "ReelStyle",
    "StatusUpdate",
    "TaskStatus",
    "ClientPoller",
    "ReelService",
    "InMemoryTaskStore",
    "RedisTaskStore",
    "merge_status",
]
