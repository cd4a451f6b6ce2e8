from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests
from bson import ObjectId
from bson.errors import InvalidId
from pymongo import MongoClient
from pymongo.errors import PyMongoError

from shared.config import Settings
from shared.errors import FeedbackStorageError, InitializationError, PredictionStorageError, StorageError
from shared.schemas import ChurnPrediction, FeedbackRecord

logger = logging.getLogger(__name__)

FEEDBACK_TABLE = "customer_feedback"
PREDICTIONS_TABLE = "churn_predictions"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PersistenceGateway:
    """
    Two-step write path: feedback first, then the prediction that points at it.

    The two writes are not transactional. If the prediction write fails the
    feedback row stays behind without a prediction; nothing is rolled back.
    The prediction write is an upsert on `customer_feedback_id`, so writing it
    again for the same parent replaces it instead of adding a second row.
    """

    def insert_feedback(self, record: FeedbackRecord) -> str:
        raise NotImplementedError

    def insert_prediction(self, record: ChurnPrediction) -> str:
        raise NotImplementedError

    def delete_feedback(self, feedback_id: str) -> None:
        """Remove a feedback row; its prediction goes with it."""
        raise NotImplementedError

    def close(self) -> None:
        pass

    @staticmethod
    def _stamp_feedback(record: FeedbackRecord) -> FeedbackRecord:
        if record.created_at is None:
            record = record.model_copy(update={"created_at": _utcnow()})
        return record

    @staticmethod
    def _stamp_prediction(record: ChurnPrediction) -> ChurnPrediction:
        if not record.customer_feedback_id:
            raise PredictionStorageError("prediction has no customer_feedback_id")
        if record.predicted_at is None:
            record = record.model_copy(update={"predicted_at": _utcnow()})
        return record


# -------------------------
# Supabase (PostgREST over HTTP)
# -------------------------
class SupabaseGateway(PersistenceGateway):
    """
    Writes through the PostgREST API that Supabase exposes at /rest/v1.
    Cascade delete is enforced by the foreign key in db/schema.sql.
    """

    def __init__(self, url: str, key: str, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.rest_url = f"{url.rstrip('/')}/rest/v1"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        })

    def insert_feedback(self, record: FeedbackRecord) -> str:
        record = self._stamp_feedback(record)
        rows = self._insert(FEEDBACK_TABLE, record.to_row(), FeedbackStorageError)
        return self._first_id(rows, FeedbackStorageError)

    def insert_prediction(self, record: ChurnPrediction) -> str:
        record = self._stamp_prediction(record)
        rows = self._insert(
            PREDICTIONS_TABLE,
            record.to_row(),
            PredictionStorageError,
            params={"on_conflict": "customer_feedback_id"},
            prefer="return=representation,resolution=merge-duplicates",
        )
        return self._first_id(rows, PredictionStorageError)

    def delete_feedback(self, feedback_id: str) -> None:
        url = f"{self.rest_url}/{FEEDBACK_TABLE}"
        try:
            resp = self.session.delete(url, params={"id": f"eq.{feedback_id}"}, timeout=self.timeout)
        except requests.RequestException as e:
            raise StorageError(f"error deleting feedback {feedback_id}: {e}") from e
        if resp.status_code >= 300:
            logger.error("Supabase delete failed (%d): %s", resp.status_code, resp.text)
            raise StorageError(f"delete of feedback {feedback_id} failed with status {resp.status_code}")

    def close(self) -> None:
        self.session.close()

    def _insert(
        self,
        table: str,
        row: Dict[str, Any],
        error_cls: type,
        params: Optional[Dict[str, str]] = None,
        prefer: str = "return=representation",
    ) -> List[Dict[str, Any]]:
        url = f"{self.rest_url}/{table}"
        try:
            resp = self.session.post(
                url,
                json=row,
                params=params,
                headers={"Prefer": prefer},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("Supabase insert into %s failed: %s", table, e)
            raise error_cls(f"error writing to {table}: {e}") from e

        if resp.status_code >= 300:
            logger.error("Supabase insert into %s returned %d: %s", table, resp.status_code, resp.text)
            raise error_cls(f"insert into {table} failed with status {resp.status_code}")

        try:
            rows = resp.json()
        except ValueError as e:
            raise error_cls(f"error decoding {table} insert response") from e

        if not isinstance(rows, list):
            raise error_cls(f"unexpected {table} insert response: {rows!r}")
        return rows

    @staticmethod
    def _first_id(rows: List[Dict[str, Any]], error_cls: type) -> str:
        if not rows:
            raise error_cls("no data returned after insert")
        row_id = rows[0].get("id") if isinstance(rows[0], dict) else None
        if not row_id:
            raise error_cls(f"inserted row has no id: {rows[0]!r}")
        return str(row_id)


# -------------------------
# MongoDB
# -------------------------
class MongoGateway(PersistenceGateway):
    """
    Same contract on MongoDB. There are no foreign keys here, so
    delete_feedback removes the predictions itself before the parent document.
    """

    def __init__(self, client: MongoClient, db_name: str):
        self.client = client
        db = client[db_name]
        self.feedback = db[FEEDBACK_TABLE]
        self.predictions = db[PREDICTIONS_TABLE]

    def insert_feedback(self, record: FeedbackRecord) -> str:
        record = self._stamp_feedback(record)
        doc = record.model_dump(exclude={"id"}, exclude_none=True)
        try:
            result = self.feedback.insert_one(doc)
        except PyMongoError as e:
            logger.error("MongoDB insert into %s failed: %s", FEEDBACK_TABLE, e)
            raise FeedbackStorageError(f"error writing to {FEEDBACK_TABLE}: {e}") from e
        if result.inserted_id is None:
            raise FeedbackStorageError("no id returned after insert")
        return str(result.inserted_id)

    def insert_prediction(self, record: ChurnPrediction) -> str:
        record = self._stamp_prediction(record)
        doc = record.model_dump(exclude={"id"}, exclude_none=True)
        try:
            result = self.predictions.update_one(
                {"customer_feedback_id": record.customer_feedback_id},
                {"$set": doc},
                upsert=True,
            )
            if result.upserted_id is not None:
                return str(result.upserted_id)
            existing = self.predictions.find_one(
                {"customer_feedback_id": record.customer_feedback_id}, {"_id": 1}
            )
        except PyMongoError as e:
            logger.error("MongoDB upsert into %s failed: %s", PREDICTIONS_TABLE, e)
            raise PredictionStorageError(f"error writing to {PREDICTIONS_TABLE}: {e}") from e

        if not existing:
            raise PredictionStorageError("prediction not found after upsert")
        return str(existing["_id"])

    def delete_feedback(self, feedback_id: str) -> None:
        try:
            oid = ObjectId(feedback_id)
        except (InvalidId, TypeError) as e:
            raise StorageError(f"invalid feedback id {feedback_id!r}") from e
        try:
            self.predictions.delete_many({"customer_feedback_id": feedback_id})
            self.feedback.delete_one({"_id": oid})
        except PyMongoError as e:
            raise StorageError(f"error deleting feedback {feedback_id}: {e}") from e

    def close(self) -> None:
        self.client.close()


def build_gateway(settings: Settings) -> PersistenceGateway:
    """Construct the configured storage backend, once, at process start."""
    backend = settings.storage_backend

    if backend == "supabase":
        if not settings.supabase_url or not settings.supabase_key:
            raise InitializationError("SUPABASE_URL and SUPABASE_KEY environment variables must be set")
        return SupabaseGateway(settings.supabase_url, settings.supabase_key, timeout=settings.storage_timeout_seconds)

    if backend == "mongo":
        timeout_ms = int(settings.storage_timeout_seconds * 1000)
        try:
            client = MongoClient(
                settings.mongo_uri,
                serverSelectionTimeoutMS=timeout_ms,
                socketTimeoutMS=timeout_ms,
            )
        except PyMongoError as e:
            raise InitializationError(f"error initializing MongoDB client: {e}") from e
        except ValueError as e:
            # malformed URI / options
            raise InitializationError(f"invalid MongoDB configuration: {e}") from e
        return MongoGateway(client, settings.mongo_db)

    raise InitializationError(f"unknown STORAGE_BACKEND {backend!r}")
