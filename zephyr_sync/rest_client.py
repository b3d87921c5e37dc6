"""Base HTTP client shared by the Jira, Zephyr and data provider adapters."""

import time
from typing import Any

import requests
import structlog
from requests.auth import HTTPBasicAuth

from .config import Credentials
from .exceptions import RemoteServiceError

logger = structlog.get_logger()


class RestClient:
    """REST API client with authentication and retries on transport failures."""

    service_name = "REST"

    def __init__(
        self,
        base_url: str,
        api_prefix: str,
        credentials: Credentials | None = None,
        timeout: float = 30,
    ) -> None:
        """Initialize REST client."""
        self.base_url = base_url.rstrip("/")
        self.api_url = f"{self.base_url}/{api_prefix.strip('/')}" if api_prefix else self.base_url
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update(
            {
                "Accept": "application/json",
                "Content-Type": "application/json",
            }
        )
        if credentials is not None:
            if credentials.bearer_token:
                self.session.headers["Authorization"] = f"Bearer {credentials.bearer_token}"
            else:
                self.session.auth = HTTPBasicAuth(credentials.username, credentials.api_token)

    def _make_request(
        self,
        method: str,
        endpoint: str,
        data: dict[str, Any] | list[Any] | None = None,
        params: dict[str, Any] | None = None,
        max_retries: int = 3,
        api_url: str | None = None,
    ) -> Any:
        """Make HTTP request to the API with retries, ``api_url`` overrides the client API root."""
        url = f"{(api_url or self.api_url).rstrip('/')}/{endpoint.lstrip('/')}"

        for attempt in range(max_retries):
            try:
                response = self.session.request(
                    method=method,
                    url=url,
                    json=data,
                    params=params,
                    timeout=self.timeout,
                )

                if response.status_code == 429:  # Rate limited
                    retry_after = int(response.headers.get("Retry-After", 60))
                    logger.warning(
                        "Rate limited, waiting",
                        service=self.service_name,
                        retry_after=retry_after,
                        attempt=attempt + 1,
                    )
                    time.sleep(retry_after)
                    continue

                if not response.ok:
                    error_msg = f"{self.service_name} API error: {response.status_code} - {response.text}"
                    logger.error(
                        "API request failed",
                        service=self.service_name,
                        status_code=response.status_code,
                        response_text=response.text,
                        url=url,
                    )
                    raise RemoteServiceError(error_msg, response.status_code)

                return response.json() if response.content else {}

            except requests.exceptions.RequestException as e:
                if attempt == max_retries - 1:
                    raise RemoteServiceError(f"Request to {url} failed after {max_retries} attempts: {e}") from e

                wait_time = 2**attempt
                logger.warning(
                    "Request failed, retrying",
                    service=self.service_name,
                    error=str(e),
                    attempt=attempt + 1,
                    wait_time=wait_time,
                )
                time.sleep(wait_time)

        raise RemoteServiceError(
            f"{self.service_name} API rate limit exceeded for {url} after {max_retries} attempts", 429
        )

    def close(self) -> None:
        """Release the underlying HTTP session."""
        logger.info("Disposing resources for service", service=self.service_name, url=self.base_url)
        self.session.close()
