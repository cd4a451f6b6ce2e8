import pytest

from shared.errors import EmptyFeedback, MissingRating, RatingOutOfRange, ValidationError
from shared.validation import validate_feedback


@pytest.mark.parametrize("rating", [0, 1, 5, 9, 10])
def test_ratings_in_range_pass(rating):
    assert validate_feedback(rating, "fine") == rating


def test_missing_rating_rejected():
    with pytest.raises(MissingRating) as exc:
        validate_feedback(None, "some text")
    assert exc.value.public_message == "NLS score is required."


@pytest.mark.parametrize("rating", [-1, 11, 100, -50])
def test_out_of_range_rejected(rating):
    with pytest.raises(RatingOutOfRange) as exc:
        validate_feedback(rating, "some text")
    assert exc.value.public_message == "NLS score must be between 0 and 10."


def test_missing_rating_checked_before_text():
    """Absent rating wins even when strict mode would also reject the blank text."""
    with pytest.raises(MissingRating):
        validate_feedback(None, "   ", require_text=True)


def test_blank_text_allowed_by_default():
    assert validate_feedback(7, "") == 7
    assert validate_feedback(7, "   ") == 7


def test_blank_text_rejected_in_strict_mode():
    with pytest.raises(EmptyFeedback) as exc:
        validate_feedback(7, " \n\t", require_text=True)
    assert exc.value.public_message == "Feedback text cannot be empty."


def test_all_rejections_are_validation_errors():
    for exc_cls in (MissingRating, RatingOutOfRange, EmptyFeedback):
        assert issubclass(exc_cls, ValidationError)
        assert exc_cls.status_code == 400
