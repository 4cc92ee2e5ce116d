import pytest

from reels.errors import ValidationError
from reels.models import ReelGenerationRequest, ReelStyle
from reels.validator import validate_submission


def _request(**overrides) -> ReelGenerationRequest:
    fields = {
        "photo_urls": ["a.jpg", "b.jpg", "c.jpg"],
        "style": "trendy",
        "duration": 5,
        "event_id": "evt-1",
        "user_id": "user-1",
    }
    fields.update(overrides)
    return ReelGenerationRequest(**fields)


def test_valid_submission_is_typed():
    submission = validate_submission(_request(style="elegant", duration=10))
    assert submission.style is ReelStyle.ELEGANT
    assert submission.duration == 10
    assert submission.photo_urls == ("a.jpg", "b.jpg", "c.jpg")


@pytest.mark.parametrize("count", [0, 1, 2, 11, 15])
def test_photo_count_out_of_range(count):
    with pytest.raises(ValidationError, match="between 3 and 10"):
        validate_submission(_request(photo_urls=[f"{i}.jpg" for i in range(count)]))


@pytest.mark.parametrize("count", [3, 10])
def test_photo_count_bounds_inclusive(count):
    submission = validate_submission(_request(photo_urls=[f"{i}.jpg" for i in range(count)]))
    assert len(submission.photo_urls) == count


def test_blank_photo_url_rejected():
    with pytest.raises(ValidationError, match="non-empty"):
        validate_submission(_request(photo_urls=["a.jpg", " ", "c.jpg"]))


def test_invalid_style():
    with pytest.raises(ValidationError, match="Invalid style"):
        validate_submission(_request(style="moody"))


@pytest.mark.parametrize("duration", [0, 3, 7, 15])
def test_invalid_duration(duration):
    with pytest.raises(ValidationError, match="Invalid duration"):
        validate_submission(_request(duration=duration))


def test_first_violation_wins():
    with pytest.raises(ValidationError, match="Photo count"):
        validate_submission(_request(photo_urls=["a.jpg"], style="nope", duration=99))
