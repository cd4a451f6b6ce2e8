from typing import Optional

from shared.errors import EmptyFeedback, MissingRating, RatingOutOfRange

MIN_RATING = 0
MAX_RATING = 10


def validate_feedback(rating: Optional[int], feedback_text: str, require_text: bool = False) -> int:
    """
    Check the incoming rating/text pair and return the rating.

    Rules are checked in order: presence, range, then (strict mode only)
    non-blank text. Raises a ValidationError subclass on the first failure.
    """
    if rating is None:
        raise MissingRating()
    if rating < MIN_RATING or rating > MAX_RATING:
        raise RatingOutOfRange(f"rating={rating}")
    if require_text and not (feedback_text or "").strip():
        raise EmptyFeedback()
    return rating
