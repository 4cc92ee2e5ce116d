"""
Error taxonomy for reel generation.

Boundary errors (ValidationError, AuthError) fail fast and are never retried.
StatusQueryError is transient: the poller backs off and tries again.
GenerationFailure is terminal: the provider gave up and a new submission is needed.
"""

from typing import Optional


class ReelError(Exception):
    """Base class for every error raised by the reels package."""

    status_code = 500


class ValidationError(ReelError):
    """Malformed or out-of-range input, rejected before any external call."""

    status_code = 400


class AuthError(ReelError):
    """Webhook signature header missing or invalid."""

    status_code = 401


class UnknownTaskError(ReelError):
    status_code = 404

    def __init__(self, task_id: str):
        super().__init__(f"Unknown task: {task_id}")
        self.task_id = task_id


class ConfigurationError(ReelError):
    """Required setting (API key, webhook secret) is missing."""


class ProviderError(ReelError):
    """Submission rejected upstream. No task record was created."""

    def __init__(self, message: str, provider_status: Optional[int] = None):
        super().__init__(message)
        self.provider_status = provider_status


class StatusQueryError(ReelError):
    """Transient failure while asking the provider (or the API) for task status."""


class GenerationFailure(ReelError):
    """The provider reported the job as failed."""

    def __init__(self, task_id: str, message: str):
        super().__init__(f"Reel generation failed for {task_id}: {message}")
        self.task_id = task_id
        self.error_message = message


class PollTimeout(ReelError):
    """The poller gave up after the maximum task lifetime. The remote job may still finish."""

    def __init__(self, task_id: str, waited_seconds: float):
        super().__init__(f"Task {task_id} did not finish within {waited_seconds:.0f}s")
        self.task_id = task_id
        self.waited_seconds = waited_seconds
