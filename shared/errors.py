from __future__ import annotations

from typing import Optional


class ChurnServiceError(Exception):
    """
    Base error for the feedback/churn pipeline.

    `public_message` is what the caller sees; `detail` is for logs only.
    """
    status_code: int = 500
    public_message: str = "Internal server error."

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.public_message
        super().__init__(self.detail)


# -------------------------
# 400 - caller-fixable
# -------------------------
class ValidationError(ChurnServiceError):
    status_code = 400
    public_message = "Invalid request."


class InvalidRequestBody(ValidationError):
    public_message = "Invalid JSON request body."


class MissingRating(ValidationError):
    public_message = "NLS score is required."


class RatingOutOfRange(ValidationError):
    public_message = "NLS score must be between 0 and 10."


class EmptyFeedback(ValidationError):
    public_message = "Feedback text cannot be empty."


# -------------------------
# 405
# -------------------------
class MethodError(ChurnServiceError):
    status_code = 405
    public_message = "Only POST method is allowed."


# -------------------------
# Enrichment never reaches the caller; it is turned into a degraded outcome.
# -------------------------
class EnrichmentError(ChurnServiceError):
    public_message = "Enrichment failed."


# -------------------------
# 500 - fatal for the request / process
# -------------------------
class StorageError(ChurnServiceError):
    status_code = 500
    public_message = "Failed to store data."


class FeedbackStorageError(StorageError):
    public_message = "Failed to store customer data."


class PredictionStorageError(StorageError):
    public_message = "Failed to store churn prediction."


class InitializationError(ChurnServiceError):
    status_code = 500
    public_message = "Server initialization failed."
