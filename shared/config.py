from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

from dotenv import load_dotenv

load_dotenv()


DEFAULT_HF_API_BASE_URL = "https://api-inference.huggingface.co/models/"
DEFAULT_SENTIMENT_MODEL_ID = "distilbert-base-uncased-finetuned-sst-2-english"
DEFAULT_ZERO_SHOT_MODEL_ID = "facebook/bart-large-mnli"
DEFAULT_CANDIDATE_TOPICS = (
    "service",
    "product quality",
    "pricing",
    "customer support",
    "speed",
    "ease of use",
)


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_topics(name: str) -> Tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None:
        return DEFAULT_CANDIDATE_TOPICS
    return tuple(t.strip() for t in raw.split(",") if t.strip())


@dataclass(frozen=True)
class Settings:
    """
    Process configuration, read from the environment (and .env) once at startup.
    """
    # storage
    storage_backend: str = "supabase"           # supabase | mongo
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    mongo_uri: str = "mongodb://mongo:27017"
    mongo_db: str = "churn"
    storage_timeout_seconds: float = 10.0

    # inference
    hf_token: Optional[str] = None
    hf_api_base_url: str = DEFAULT_HF_API_BASE_URL
    sentiment_model_id: str = DEFAULT_SENTIMENT_MODEL_ID
    zero_shot_model_id: str = DEFAULT_ZERO_SHOT_MODEL_ID
    topic_score_threshold: float = 0.8
    candidate_topics: Tuple[str, ...] = field(default=DEFAULT_CANDIDATE_TOPICS)
    inference_timeout_seconds: float = 30.0

    # validation
    require_feedback_text: bool = False

    # service
    log_level: str = "INFO"
    port: int = 8080

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            storage_backend=os.getenv("STORAGE_BACKEND", "supabase").strip().lower(),
            supabase_url=os.getenv("SUPABASE_URL") or None,
            supabase_key=os.getenv("SUPABASE_KEY") or None,
            mongo_uri=os.getenv("MONGO_URI", "mongodb://mongo:27017"),
            mongo_db=os.getenv("MONGO_DB", "churn"),
            storage_timeout_seconds=float(os.getenv("STORAGE_TIMEOUT_SECONDS", "10")),
            hf_token=os.getenv("HF_TOKEN") or None,
            hf_api_base_url=os.getenv("HF_API_BASE_URL", DEFAULT_HF_API_BASE_URL),
            sentiment_model_id=os.getenv("SENTIMENT_MODEL_ID", DEFAULT_SENTIMENT_MODEL_ID),
            zero_shot_model_id=os.getenv("ZERO_SHOT_MODEL_ID", DEFAULT_ZERO_SHOT_MODEL_ID),
            topic_score_threshold=float(os.getenv("TOPIC_SCORE_THRESHOLD", "0.8")),
            candidate_topics=_env_topics("CANDIDATE_TOPICS"),
            inference_timeout_seconds=float(os.getenv("INFERENCE_TIMEOUT_SECONDS", "30")),
            require_feedback_text=_env_bool("REQUIRE_FEEDBACK_TEXT"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            port=int(os.getenv("PORT", "8080")),
        )
