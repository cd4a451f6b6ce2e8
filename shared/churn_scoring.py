from dataclasses import dataclass

NEGATIVE_KEYWORDS = ("bad", "poor", "terrible", "unhappy")

HIGH_RISK = 0.8
MODERATE_RISK = 0.4
LOW_RISK = 0.1

REASON_HIGH_RISK = "Low NLS score and/or negative feedback/sentiment."
REASON_LOW_RISK = "High NLS score."
REASON_MODERATE_RISK = "Moderate NLS score or neutral feedback/sentiment."


@dataclass(frozen=True)
class ChurnScore:
    probability: float
    reason: str


def has_negative_keyword(feedback_text: str) -> bool:
    text = (feedback_text or "").lower()
    return any(keyword in text for keyword in NEGATIVE_KEYWORDS)


def score_churn(rating: int, feedback_text: str, sentiment: str) -> ChurnScore:
    """
    Rule-based churn risk. First matching rule wins:
      low rating + negative words, or very low rating + NEGATIVE sentiment -> 0.8
      rating >= 8 -> 0.1
      anything else -> 0.4

    Topics are deliberately not an input here; they are kept for analytics.
    """
    negative_sentiment = (sentiment or "").upper() == "NEGATIVE"

    if (rating < 5 and has_negative_keyword(feedback_text)) or (rating < 3 and negative_sentiment):
        return ChurnScore(HIGH_RISK, REASON_HIGH_RISK)
    if rating >= 8:
        return ChurnScore(LOW_RISK, REASON_LOW_RISK)
    return ChurnScore(MODERATE_RISK, REASON_MODERATE_RISK)
