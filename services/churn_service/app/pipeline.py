# services/churn_service/app/pipeline.py
# validate -> enrich -> score -> store feedback -> store prediction

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List

from shared.churn_scoring import score_churn
from shared.enrichment import EnrichmentClient
from shared.schemas import ChurnPrediction, FeedbackRecord, PredictRequest
from shared.storage import PersistenceGateway
from shared.validation import validate_feedback

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PredictionResult:
    customer_id: str
    churn_probability: float
    reason: str
    comment_sentiment: str
    comment_topics: List[str]


class ChurnPipeline:
    """
    Handles one feedback submission end to end.

    ValidationError and StorageError propagate to the caller and stop the
    pipeline. Enrichment problems never do: they arrive here already replaced
    by UNKNOWN / empty topics.
    """

    def __init__(self, enrichment: EnrichmentClient, gateway: PersistenceGateway, require_feedback_text: bool = False):
        self.enrichment = enrichment
        self.gateway = gateway
        self.require_feedback_text = require_feedback_text

    def process(self, request: PredictRequest) -> PredictionResult:
        text = request.feedback_text or ""
        rating = validate_feedback(request.rating, text, require_text=self.require_feedback_text)

        enrichment = self.enrichment.enrich(text)
        sentiment = enrichment.sentiment.value
        topics = enrichment.topics.value
        if enrichment.sentiment.degraded or enrichment.topics.degraded:
            logger.info(
                "Proceeding with degraded enrichment",
                extra={"extra_data": {
                    "sentiment_cause": enrichment.sentiment.cause,
                    "topics_cause": enrichment.topics.cause,
                }},
            )
        logger.info("Enrichment done: sentiment=%s topics=%s", sentiment, topics)

        score = score_churn(rating, text, sentiment)

        feedback = FeedbackRecord(
            nls_score=rating,
            feedback_text=text,
            comment_sentiment=sentiment,
            comment_topics=topics,
        )
        feedback_id = self.gateway.insert_feedback(feedback)
        logger.info("Customer data stored. ID: %s", feedback_id)

        prediction = ChurnPrediction(
            customer_feedback_id=feedback_id,
            churn_probability=score.probability,
            reason=score.reason,
            predicted_at=datetime.now(timezone.utc),
        )
        self.gateway.insert_prediction(prediction)
        logger.info("Churn prediction stored for %s: %.1f", feedback_id, score.probability)

        return PredictionResult(
            customer_id=feedback_id,
            churn_probability=score.probability,
            reason=score.reason,
            comment_sentiment=sentiment,
            comment_topics=topics,
        )

    def close(self) -> None:
        self.enrichment.close()
        self.gateway.close()
