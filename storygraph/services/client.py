"""
storygraph.services.client - HTTP client for the remote analysis services.

Wraps requests with a per-call timeout, bounded retries and uniform error
mapping: non-2xx responses become RemoteServiceError, a 401/403 becomes
AuthError, and transport failures are retried before being wrapped.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import requests

from storygraph.exceptions import AuthError, RemoteServiceError

logger = logging.getLogger("storygraph")

RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


class ServiceClient:
    """JSON-over-HTTP client with timeout and retry policy."""

    def __init__(
        self,
        timeout: float = 120.0,
        max_retries: int = 3,
        retry_delay: float = 2.0,
        access_token: str | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.access_token = access_token
        self.session = session or requests.Session()

    def _headers(self, authenticated: bool) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if authenticated:
            if not self.access_token:
                raise AuthError("No access token configured")
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    def request(
        self,
        method: str,
        url: str,
        service: str,
        payload: dict[str, Any] | None = None,
        authenticated: bool = False,
    ) -> dict[str, Any]:
        """Send a request and decode the JSON response with retry logic.

        Args:
            method: HTTP method
            url: Endpoint URL
            service: Service name for error messages
            payload: JSON body
            authenticated: Attach the bearer token (AuthError if missing)

        Returns:
            Decoded JSON object (empty dict for an empty body)

        Raises:
            AuthError: If credentials are missing or rejected
            RemoteServiceError: If the request fails after all retries
        """
        headers = self._headers(authenticated)
        last_error: Exception | None = None

        for attempt in range(self.max_retries):
            if attempt > 0:
                logger.debug("%s: retry %d/%d", service, attempt + 1, self.max_retries)
                time.sleep(self.retry_delay)

            try:
                response = self.session.request(
                    method,
                    url,
                    json=payload,
                    headers=headers,
                    timeout=self.timeout,
                )
            except (requests.ConnectionError, requests.Timeout) as e:
                logger.warning("%s: transport error: %s", service, e)
                last_error = e
                continue
            except requests.RequestException as e:
                raise RemoteServiceError(service, str(e)) from e

            if response.status_code in (401, 403):
                raise AuthError(f"{service} rejected credentials ({response.status_code})")

            if response.status_code in RETRYABLE_STATUS:
                last_error = RemoteServiceError(
                    service, response.text[:200] or response.reason, response.status_code
                )
                logger.warning("%s: HTTP %d", service, response.status_code)
                continue

            if not response.ok:
                raise RemoteServiceError(
                    service,
                    f"HTTP {response.status_code}: {response.text[:200]}",
                    response.status_code,
                )

            if not response.content:
                return {}
            try:
                data = response.json()
            except ValueError as e:
                raise RemoteServiceError(service, "Response is not valid JSON") from e
            if not isinstance(data, dict):
                raise RemoteServiceError(service, "Response is not a JSON object")
            return data

        if isinstance(last_error, RemoteServiceError):
            raise RemoteServiceError(
                service,
                f"failed after {self.max_retries} attempts: {last_error.message}",
                last_error.status_code,
            ) from last_error
        raise RemoteServiceError(
            service, f"failed after {self.max_retries} attempts: {last_error}"
        ) from last_error

    def post(
        self,
        url: str,
        service: str,
        payload: dict[str, Any],
        authenticated: bool = False,
    ) -> dict[str, Any]:
        return self.request("POST", url, service, payload=payload, authenticated=authenticated)

    def get(self, url: str, service: str, authenticated: bool = False) -> dict[str, Any]:
        return self.request("GET", url, service, authenticated=authenticated)


def create_client_from_config(config: Any, access_token: str | None = None) -> ServiceClient:
    """Create a ServiceClient from StoryGraphConfig.

    Args:
        config: StoryGraphConfig instance
        access_token: Bearer token for authenticated services

    Returns:
        Configured ServiceClient
    """
    return ServiceClient(
        timeout=config.request_timeout,
        max_retries=config.max_retries,
        retry_delay=config.retry_delay,
        access_token=access_token,
    )
