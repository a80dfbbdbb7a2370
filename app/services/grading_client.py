"""HTTP client for the external grading server.

The server owns the grading itself; we only dispatch uploads and read task
status. Every call is time-bounded so a slow task cannot stall a poll batch.
"""

import logging
from typing import Any, Dict, Optional

import requests

from app.core.config import GRADING_HTTP_TIMEOUT_SECONDS, GRADING_SERVER_URL
from app.core.errors import (
    ConfigurationError,
    ExternalServiceError,
    GradingTimeoutError,
    RemoteError,
)
from app.schemas.task import GradingTaskResult

logger = logging.getLogger(__name__)


class GradingClient:
    def __init__(self, base_url: Optional[str] = None, timeout_seconds: Optional[float] = None):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.timeout_seconds = float(timeout_seconds or GRADING_HTTP_TIMEOUT_SECONDS)

    def _url(self, path: str) -> str:
        if not self.base_url:
            raise ConfigurationError("GRADING_SERVER_URL is not configured")
        return f"{self.base_url}{path}"

    def _send(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            r = requests.request(method, url, timeout=self.timeout_seconds, **kwargs)
        except requests.Timeout as e:
            raise GradingTimeoutError(
                f"Grading server did not answer within {self.timeout_seconds:.0f}s"
            ) from e
        except requests.RequestException as e:
            raise ExternalServiceError("Could not reach grading server", details=str(e)) from e

        if not r.ok:
            logger.warning("grading server %s %s -> %s", method, url, r.status_code)
            raise RemoteError(r.status_code, r.text[:2000])
        return r

    @staticmethod
    def _json(r: requests.Response) -> Any:
        try:
            return r.json()
        except ValueError as e:
            raise ExternalServiceError("Grading server returned invalid JSON") from e

    def fetch_task_status(self, task_id: str) -> GradingTaskResult:
        url = self._url(f"/api/grade/status/{task_id}/")
        r = self._send("GET", url, headers={"Content-Type": "application/json"})
        data = self._json(r)
        if not isinstance(data, dict):
            raise ExternalServiceError("Unexpected task status document", details=data)
        return GradingTaskResult.model_validate(data)

    def submit_grading(
        self,
        pdf_content: bytes,
        filename: str,
        content_type: Optional[str],
        grading_guide_json_str: str,
    ) -> Dict[str, Any]:
        url = self._url("/api/grade/upload/")
        r = self._send(
            "POST",
            url,
            files={"pdf_file": (filename, pdf_content, content_type or "application/pdf")},
            data={"grading_guide_json_str": grading_guide_json_str},
        )
        data = self._json(r)
        return data if isinstance(data, dict) else {"result": data}


def get_grading_client() -> GradingClient:
    return GradingClient(GRADING_SERVER_URL)
