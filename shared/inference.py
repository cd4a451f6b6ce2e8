# Thin HTTP client for the hosted text-inference endpoint (Hugging Face style).

import logging
from typing import Any, Dict, Optional

import requests

from shared.errors import EnrichmentError

logger = logging.getLogger(__name__)


class InferenceClient:
    """
    POSTs a JSON payload to `<base_url><model_id>` and returns the decoded body.

    One attempt per call, bounded by `timeout`. Every failure is raised as
    EnrichmentError; callers decide how to degrade.
    """

    def __init__(
        self,
        token: Optional[str],
        base_url: str,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.token = token
        self.base_url = base_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def call(self, model_id: str, payload: Dict[str, Any]) -> Any:
        if not self.token:
            raise EnrichmentError("HF_TOKEN environment variable not set")

        url = f"{self.base_url}{model_id}"
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
        }

        try:
            resp = self.session.post(url, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise EnrichmentError(f"error sending request to inference API ({url}): {e}") from e

        if resp.status_code != 200:
            logger.warning(
                "Inference API (%s) returned non-200 status: %d. Response body: %s",
                url, resp.status_code, resp.text,
            )
            raise EnrichmentError(self._describe_failure(model_id, url, resp))

        try:
            return resp.json()
        except ValueError as e:
            raise EnrichmentError(f"inference API ({url}) returned a non-JSON body") from e

    @staticmethod
    def _describe_failure(model_id: str, url: str, resp: requests.Response) -> str:
        # The endpoint reports problems as {"error": ..., "estimated_time": ...}
        try:
            body = resp.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and body.get("error"):
            estimated = body.get("estimated_time") or 0
            if isinstance(estimated, (int, float)) and estimated > 0:
                return (
                    f"inference API error for {model_id} "
                    f"(model loading, try again in {estimated:.0f}s): {body['error']}"
                )
            return f"inference API error for {model_id}: {body['error']}"

        return f"inference API ({url}) request failed with status {resp.status_code}: {resp.text}"

    def close(self) -> None:
        self.session.close()
