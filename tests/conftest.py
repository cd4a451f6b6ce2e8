"""
Pytest configuration and fixtures.

No test touches the network: the inference endpoint and the store are
replaced with in-process fakes.
"""

import uuid
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from shared.config import Settings
from shared.enrichment import build_enrichment_client
from shared.errors import EnrichmentError, FeedbackStorageError, PredictionStorageError
from shared.schemas import ChurnPrediction, FeedbackRecord
from shared.storage import PersistenceGateway

from services.churn_service.app.main import create_app
from services.churn_service.app.pipeline import ChurnPipeline

SENTIMENT_MODEL = "sentiment-model"
ZERO_SHOT_MODEL = "zero-shot-model"


class FakeInferenceClient:
    """Stands in for InferenceClient; answers per model id and records calls."""

    def __init__(self, responses: Optional[Dict[str, Any]] = None, fail: bool = False):
        self.responses = responses or {}
        self.fail = fail
        self.calls: List[tuple] = []
        self.closed = False

    def call(self, model_id: str, payload: Dict[str, Any]) -> Any:
        self.calls.append((model_id, payload))
        if self.fail:
            raise EnrichmentError("simulated inference outage")
        response = self.responses.get(model_id)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self) -> None:
        self.closed = True


class InMemoryGateway(PersistenceGateway):
    """Dict-backed store with the same contract as the real gateways."""

    def __init__(self, fail_feedback: bool = False, fail_prediction: bool = False):
        self.fail_feedback = fail_feedback
        self.fail_prediction = fail_prediction
        self.feedback: Dict[str, FeedbackRecord] = {}
        self.predictions: Dict[str, ChurnPrediction] = {}
        self.operations: List[str] = []

    def insert_feedback(self, record: FeedbackRecord) -> str:
        self.operations.append("insert_feedback")
        if self.fail_feedback:
            raise FeedbackStorageError("simulated write failure")
        record = self._stamp_feedback(record)
        new_id = str(uuid.uuid4())
        self.feedback[new_id] = record.model_copy(update={"id": new_id})
        return new_id

    def insert_prediction(self, record: ChurnPrediction) -> str:
        self.operations.append("insert_prediction")
        if self.fail_prediction:
            raise PredictionStorageError("simulated write failure")
        record = self._stamp_prediction(record)
        if record.customer_feedback_id not in self.feedback:
            raise PredictionStorageError("foreign key violation")
        existing = self.predictions.get(record.customer_feedback_id)
        new_id = existing.id if existing else str(uuid.uuid4())
        self.predictions[record.customer_feedback_id] = record.model_copy(update={"id": new_id})
        return new_id

    def delete_feedback(self, feedback_id: str) -> None:
        self.feedback.pop(feedback_id, None)
        self.predictions.pop(feedback_id, None)


def sentiment_response(*pairs):
    return [[{"label": label, "score": score} for label, score in pairs]]


def zero_shot_response(**scores):
    labels = [label.replace("_", " ") for label in scores]
    return {"sequence": "text", "labels": labels, "scores": list(scores.values())}


def make_pipeline(inference, gateway, require_feedback_text=False) -> ChurnPipeline:
    enrichment = build_enrichment_client(
        inference,
        sentiment_model_id=SENTIMENT_MODEL,
        zero_shot_model_id=ZERO_SHOT_MODEL,
        candidates=("service", "product quality", "pricing", "customer support", "speed", "ease of use"),
        score_threshold=0.8,
    )
    return ChurnPipeline(enrichment, gateway, require_feedback_text=require_feedback_text)


# -------------------------
# Builders exposed as fixtures so test modules never import conftest
# -------------------------
@pytest.fixture
def sentiment_payload():
    return sentiment_response


@pytest.fixture
def zero_shot_payload():
    return zero_shot_response


@pytest.fixture
def inference_factory():
    return FakeInferenceClient


@pytest.fixture
def gateway_factory():
    return InMemoryGateway


@pytest.fixture
def pipeline_factory():
    return make_pipeline


@pytest.fixture
def model_ids():
    return {"sentiment": SENTIMENT_MODEL, "zero_shot": ZERO_SHOT_MODEL}


@pytest.fixture
def inference():
    return FakeInferenceClient(responses={
        SENTIMENT_MODEL: sentiment_response(("POSITIVE", 0.97), ("NEGATIVE", 0.03)),
        ZERO_SHOT_MODEL: zero_shot_response(product_quality=0.93, service=0.42, pricing=0.05),
    })


@pytest.fixture
def failing_inference():
    return FakeInferenceClient(fail=True)


@pytest.fixture
def gateway():
    return InMemoryGateway()


@pytest.fixture
def pipeline(inference, gateway):
    return make_pipeline(inference, gateway)


@pytest.fixture
def app_factory():
    def _build(pipeline=None, settings=None):
        return create_app(settings=settings or Settings(storage_backend="supabase"), pipeline=pipeline)
    return _build


@pytest.fixture
def client(app_factory, pipeline):
    with TestClient(app_factory(pipeline)) as c:
        yield c
