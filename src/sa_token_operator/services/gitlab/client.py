"""GitLab project variables client."""

from __future__ import annotations

import logging
import time
from typing import Any
from urllib.parse import quote

import requests

from ... import metrics
from ...constants import GITLAB_API_PATH, GITLAB_VARIABLE_TYPE

logger = logging.getLogger(__name__)


class GitLabAPIError(Exception):
    """GitLab rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def normalize_base_url(url: str) -> str:
    """Return the API root for a GitLab instance URL.

    ``https://gitlab.example.com`` and ``https://gitlab.example.com/api/v4/``
    both become ``https://gitlab.example.com/api/v4``.
    """
    base = url.rstrip("/")
    if not base.endswith(GITLAB_API_PATH):
        base = f"{base}{GITLAB_API_PATH}"
    return base


class GitLabClient:
    """Project variable operations against the GitLab REST API v4."""

    def __init__(
        self,
        base_url: str,
        private_token: str,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize GitLab client.

        Args:
            base_url: GitLab instance URL
            private_token: Access token with api scope on the project
            timeout: Per-request transport timeout in seconds
            session: Optional requests session (for connection reuse and tests)
        """
        self.base_url = normalize_base_url(base_url)
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"PRIVATE-TOKEN": private_token})

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()

    def __enter__(self) -> "GitLabClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _variable_payload(self, value: str) -> dict[str, Any]:
        return {
            "value": value,
            "protected": False,
            "masked": True,
            "variable_type": GITLAB_VARIABLE_TYPE,
        }

    def _request(self, operation: str, method: str, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        start_time = time.time()
        try:
            response = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            metrics.api_call_total.labels(api_type="gitlab", operation=operation, result="error").inc()
            raise GitLabAPIError(f"{method} {path} failed: {type(e).__name__}") from e
        finally:
            metrics.api_call_duration_seconds.labels(api_type="gitlab", operation=operation).observe(
                time.time() - start_time
            )

        if not response.ok:
            metrics.api_call_total.labels(api_type="gitlab", operation=operation, result="error").inc()
            raise GitLabAPIError(
                f"{method} {path}: {response.status_code} {_error_message(response)}",
                status_code=response.status_code,
            )

        metrics.api_call_total.labels(api_type="gitlab", operation=operation, result="success").inc()
        try:
            return response.json()
        except ValueError:
            return {}

    def create_variable(self, project_id: int, key: str, value: str) -> None:
        """Create a project variable.

        Raises:
            GitLabAPIError: If GitLab rejects the request (400 when the key exists)
        """
        payload = {"key": key, **self._variable_payload(value)}
        self._request("create_variable", "POST", f"/projects/{project_id}/variables", payload)
        logger.info(f"Created GitLab variable {key} in project {project_id}")

    def update_variable(self, project_id: int, key: str, value: str) -> None:
        """Update an existing project variable.

        Raises:
            GitLabAPIError: If GitLab rejects the request
        """
        path = f"/projects/{project_id}/variables/{quote(key, safe='')}"
        self._request("update_variable", "PUT", path, self._variable_payload(value))
        logger.info(f"Updated GitLab variable {key} in project {project_id}")


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.reason or ""
    if isinstance(body, dict):
        message = body.get("message") or body.get("error") or ""
        return str(message)
    return str(body)
