# services/churn_service/app/main.py

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.config import Settings
from shared.enrichment import build_enrichment_client
from shared.errors import ChurnServiceError, InitializationError, InvalidRequestBody, MethodError
from shared.inference import InferenceClient
from shared.logging_setup import configure_logging
from shared.schemas import ErrorResponse, PredictRequest, PredictResponse
from shared.storage import build_gateway

from services.churn_service.app.pipeline import ChurnPipeline

logger = logging.getLogger(__name__)


def build_pipeline(settings: Settings) -> ChurnPipeline:
    """Construct the storage and inference clients once and wire them together."""
    if not settings.hf_token:
        logger.warning("HF_TOKEN environment variable not set. Sentiment/topic features will degrade.")

    gateway = build_gateway(settings)
    inference = InferenceClient(
        token=settings.hf_token,
        base_url=settings.hf_api_base_url,
        timeout=settings.inference_timeout_seconds,
    )
    enrichment = build_enrichment_client(
        inference,
        sentiment_model_id=settings.sentiment_model_id,
        zero_shot_model_id=settings.zero_shot_model_id,
        candidates=settings.candidate_topics,
        score_threshold=settings.topic_score_threshold,
    )
    return ChurnPipeline(enrichment, gateway, require_feedback_text=settings.require_feedback_text)


def create_app(settings: Optional[Settings] = None, pipeline: Optional[ChurnPipeline] = None) -> FastAPI:
    settings = settings or Settings.from_env()

    # -------------------------
    # Startup / shutdown
    # -------------------------
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        if app.state.pipeline is None:
            try:
                app.state.pipeline = build_pipeline(settings)
                logger.info("Clients initialized (storage backend: %s)", settings.storage_backend)
            except InitializationError as e:
                # keep serving so callers get a clear 500 until config is fixed
                app.state.init_error = e
                logger.error("Initialization failed: %s", e.detail)

        yield

        if app.state.pipeline is not None:
            app.state.pipeline.close()

    app = FastAPI(
        title="Churn Prediction Service",
        description="Feedback enrichment and heuristic churn scoring",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.pipeline = pipeline
    app.state.init_error = None

    # -------------------------
    # Error translation
    # -------------------------
    @app.exception_handler(ChurnServiceError)
    async def service_error_handler(request: Request, exc: ChurnServiceError):
        level = logging.ERROR if exc.status_code >= 500 else logging.INFO
        logger.log(level, "%s on %s: %s", type(exc).__name__, request.url.path, exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.public_message})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 405:
            return JSONResponse(status_code=405, content={"error": MethodError.public_message})
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(status_code=500, content={"error": ChurnServiceError.public_message})

    # -------------------------
    # Endpoints
    # -------------------------
    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {
            "status": "ok",
            "storage_ready": app.state.pipeline is not None,
            "storage_backend": settings.storage_backend,
        }

    @app.post(
        "/predict",
        response_model=PredictResponse,
        response_model_exclude_none=True,
        responses={
            400: {"model": ErrorResponse},
            405: {"model": ErrorResponse},
            500: {"model": ErrorResponse},
        },
    )
    async def predict(request: Request):
        """
        Enrich one piece of feedback, score churn risk and store both.

        Body: {"rating": int | null, "feedback_text": str}
        """
        logger.info("Received request for /predict from %s", request.client.host if request.client else "-")

        pipeline: Optional[ChurnPipeline] = app.state.pipeline
        if pipeline is None:
            raise app.state.init_error or InitializationError("pipeline not initialized")

        try:
            body = await request.json()
            payload = PredictRequest.model_validate(body)
        except (ValueError, PydanticValidationError) as e:
            raise InvalidRequestBody(f"error decoding request body: {e}") from e

        # blocking HTTP calls inside; keep them off the event loop
        result = await run_in_threadpool(pipeline.process, payload)

        return PredictResponse(
            customer_id=result.customer_id,
            churn_probability=result.churn_probability,
            reason=result.reason,
            comment_sentiment=result.comment_sentiment or None,
            comment_topics=result.comment_topics or None,
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
