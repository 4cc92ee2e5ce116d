"""Submission checks that run before anything touches the network."""

from dataclasses import dataclass

from .errors import ValidationError
from .models import (
    ALLOWED_DURATIONS,
    MAX_PHOTOS,
    MIN_PHOTOS,
    ReelGenerationRequest,
    ReelStyle,
)


@dataclass(frozen=True)
class ValidatedSubmission:
    photo_urls: tuple
    style: ReelStyle
    duration: int
    event_id: str
    user_id: str


def validate_submission(request: ReelGenerationRequest) -> ValidatedSubmission:
    """Raise ValidationError naming the first violated constraint."""
    photos = list(request.photo_urls)
    if not MIN_PHOTOS <= len(photos) <= MAX_PHOTOS:
        raise ValidationError(f"Photo count must be between {MIN_PHOTOS} and {MAX_PHOTOS}")
    if any(not isinstance(url, str) or not url.strip() for url in photos):
        raise ValidationError("Photo URLs must be non-empty strings")

    try:
        style = ReelStyle(request.style)
    except ValueError:
        raise ValidationError("Invalid style. Must be trendy, elegant, or energetic") from None

    if request.duration not in ALLOWED_DURATIONS:
        raise ValidationError("Invalid duration. Must be 5 or 10 seconds")

    return ValidatedSubmission(
        photo_urls=tuple(photos),
        style=style,
        duration=request.duration,
        event_id=request.event_id,
        user_id=request.user_id,
    )
