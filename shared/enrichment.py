from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Generic, List, Optional, Sequence, Tuple, TypeVar

from shared.config import DEFAULT_CANDIDATE_TOPICS, DEFAULT_SENTIMENT_MODEL_ID, DEFAULT_ZERO_SHOT_MODEL_ID
from shared.errors import EnrichmentError
from shared.inference import InferenceClient

logger = logging.getLogger(__name__)

NEUTRAL = "NEUTRAL"
UNKNOWN = "UNKNOWN"

T = TypeVar("T")


@dataclass(frozen=True)
class EnrichmentOutcome(Generic[T]):
    """
    Result of one enrichment call.
      degraded=False -> `value` came from the model (or the blank-text shortcut)
      degraded=True  -> `value` is the safe default, `cause` says why
    """
    value: T
    degraded: bool = False
    cause: Optional[str] = None

    @classmethod
    def ok(cls, value: T) -> "EnrichmentOutcome[T]":
        return cls(value=value)

    @classmethod
    def fallback(cls, value: T, cause: str) -> "EnrichmentOutcome[T]":
        return cls(value=value, degraded=True, cause=cause)


@dataclass(frozen=True)
class Enrichment:
    sentiment: EnrichmentOutcome[str]
    topics: EnrichmentOutcome[List[str]]


@dataclass
class TopicConfig:
    """
    Zero-shot topic settings:
      a candidate is kept only if its score > score_threshold
    """
    candidates: Tuple[str, ...] = field(default=DEFAULT_CANDIDATE_TOPICS)
    score_threshold: float = 0.8


def _is_blank(text: Optional[str]) -> bool:
    return not (text or "").strip()


class SentimentAnalyzer:
    """
    Single-label sentiment via the remote classifier.
    Picks the label with the strictly highest score; ties keep the first label seen.
    """
    def __init__(self, client: InferenceClient, model_id: str = DEFAULT_SENTIMENT_MODEL_ID):
        self.client = client
        self.model_id = model_id

    def analyze(self, text: str) -> EnrichmentOutcome[str]:
        if _is_blank(text):
            return EnrichmentOutcome.ok(NEUTRAL)

        try:
            body = self.client.call(self.model_id, {"inputs": text})
            label = self._best_label(body)
        except EnrichmentError as e:
            logger.warning("Could not get sentiment from inference API: %s", e.detail)
            return EnrichmentOutcome.fallback(UNKNOWN, e.detail)

        return EnrichmentOutcome.ok(label)

    @staticmethod
    def _best_label(body: Any) -> str:
        # expected shape: [[{"label": "POSITIVE", "score": 0.99}, ...]]
        if not isinstance(body, list) or not body or not isinstance(body[0], list) or not body[0]:
            raise EnrichmentError(f"sentiment response format unexpected or empty: {body!r}")

        best_label, best_score = NEUTRAL, 0.0
        for pair in body[0]:
            if not isinstance(pair, dict):
                raise EnrichmentError(f"sentiment response item is not an object: {pair!r}")
            label, score = pair.get("label"), pair.get("score")
            if not isinstance(label, str) or isinstance(score, bool) or not isinstance(score, (int, float)):
                raise EnrichmentError(f"sentiment response item malformed: {pair!r}")
            if score > best_score:
                best_label, best_score = label, float(score)
        return best_label


class TopicExtractor:
    """Multi-label zero-shot classification against a fixed candidate set."""

    def __init__(
        self,
        client: InferenceClient,
        model_id: str = DEFAULT_ZERO_SHOT_MODEL_ID,
        cfg: Optional[TopicConfig] = None,
    ):
        self.client = client
        self.model_id = model_id
        self.cfg = cfg or TopicConfig()

    def extract(self, text: str) -> EnrichmentOutcome[List[str]]:
        if _is_blank(text) or not self.cfg.candidates:
            return EnrichmentOutcome.ok([])

        payload = {
            "inputs": text,
            "parameters": {
                "candidate_labels": list(self.cfg.candidates),
                "multi_label": True,
            },
        }
        try:
            body = self.client.call(self.model_id, payload)
            topics = self._select(body)
        except EnrichmentError as e:
            logger.warning("Could not get topics from inference API: %s", e.detail)
            return EnrichmentOutcome.fallback([], e.detail)

        return EnrichmentOutcome.ok(topics)

    def _select(self, body: Any) -> List[str]:
        # expected shape: {"sequence": ..., "labels": [...], "scores": [...]}
        if not isinstance(body, dict):
            raise EnrichmentError(f"zero-shot response is not an object: {body!r}")

        labels, scores = body.get("labels"), body.get("scores")
        if not isinstance(labels, list) or not isinstance(scores, list) or not labels or len(labels) != len(scores):
            raise EnrichmentError(f"zero-shot response format unexpected or empty: {body!r}")

        topics: List[str] = []
        for label, score in zip(labels, scores):
            if not isinstance(label, str):
                raise EnrichmentError(f"zero-shot label is not a string: {label!r}")
            if isinstance(score, bool) or not isinstance(score, (int, float)):
                raise EnrichmentError(f"zero-shot score is not a number: {score!r}")
            if score > self.cfg.score_threshold and label not in topics:
                topics.append(label)
        return topics


class EnrichmentClient:
    """
    Runs sentiment and topic extraction side by side and waits for both.
    Neither call can fail the request; failures come back as degraded outcomes.
    """
    def __init__(self, sentiment: SentimentAnalyzer, topics: TopicExtractor):
        self.sentiment = sentiment
        self.topics = topics

    def enrich(self, text: str) -> Enrichment:
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="enrich") as pool:
            sentiment_future = pool.submit(self.sentiment.analyze, text)
            topics_future = pool.submit(self.topics.extract, text)
            return Enrichment(sentiment=sentiment_future.result(), topics=topics_future.result())

    def close(self) -> None:
        self.sentiment.client.close()
        if self.topics.client is not self.sentiment.client:
            self.topics.client.close()


def build_enrichment_client(
    client: InferenceClient,
    sentiment_model_id: str,
    zero_shot_model_id: str,
    candidates: Sequence[str],
    score_threshold: float,
) -> EnrichmentClient:
    return EnrichmentClient(
        sentiment=SentimentAnalyzer(client, sentiment_model_id),
        topics=TopicExtractor(
            client,
            zero_shot_model_id,
            TopicConfig(candidates=tuple(candidates), score_threshold=score_threshold),
        ),
    )
