"""Shared HTTP plumbing for the concrete adapters.

Maps transport failures and non-2xx responses onto the SDK error taxonomy so
the retry executor can classify them.
"""
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Optional

import httpx

from ..core.exceptions import (
    AgentBrokerError,
    NetworkError,
    RateLimitError,
    UpstreamServiceError,
    error_from_status,
)
from ..utils.logger import get_logger

logger = get_logger("adapters.http")


def parse_retry_after(value: Optional[str], now: Optional[datetime] = None) -> Optional[float]:
    """Parse a ``Retry-After`` header given in seconds or as an HTTP date."""
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(int(value)))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max(0.0, float(int((when - now).total_seconds())))


def _rate_limit_info(headers: httpx.Headers) -> str:
    parts = []
    limit = headers.get("X-RateLimit-Limit")
    remaining = headers.get("X-RateLimit-Remaining")
    reset = headers.get("X-RateLimit-Reset")
    if limit:
        parts.append(f"Limit: {limit}/time period")
    if remaining:
        parts.append(f"Remaining: {remaining}")
    if reset and reset.isdigit():
        reset_at = datetime.fromtimestamp(int(reset), tz=timezone.utc)
        parts.append(f"Resets at: {reset_at.isoformat()}")
    return ", ".join(parts)


def error_from_response(response: httpx.Response, service: str) -> AgentBrokerError:
    """Build the SDK error for a non-2xx response."""
    status = response.status_code
    details: Dict[str, Any] = {"service": service}
    message = None
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        error = body.get("error") or body.get("message")
        if isinstance(error, dict):
            error = error.get("message")
        if isinstance(error, str) and error.strip():
            message = f"{service}: {error.strip()}"
        for key in ("code", "requestId"):
            if body.get(key) is not None:
                details[key] = body[key]
    if message is None:
        message = f"{service} returned HTTP {status}: {response.reason_phrase}"

    retry_after = parse_retry_after(response.headers.get("Retry-After"))
    if status == 429:
        info = _rate_limit_info(response.headers)
        if info:
            message = f"{message} ({info})"
    return error_from_status(status, message, retry_after=retry_after, details=details)


def raise_for_response(response: httpx.Response, service: str) -> None:
    """Raise the mapped SDK error if ``response`` is not a success."""
    if response.is_success:
        return
    error = error_from_response(response, service)
    if isinstance(error, (RateLimitError, UpstreamServiceError)):
        logger.warning(f"{service} request failed: {error.message}", status=response.status_code)
    raise error


class HttpServiceClient:
    """
    Base for JSON-over-HTTP service clients.

    The underlying httpx.AsyncClient is created lazily and can be injected,
    e.g. with an ``httpx.MockTransport`` in tests.

    Example:
        >>> async with RegistryBrokerClient(base_url) as client:
        ...     data = await client.search([("q", "trading")])
    """

    service_name = "HTTP service"

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        headers: Optional[Dict[str, str]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._headers = dict(headers or {})
        self._http_client = http_client

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get HTTP client, creating if needed."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def close(self):
        """Close the client and release resources."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def request_json(
        self,
        method: str,
        path: str,
        headers: Optional[Dict[str, str]] = None,
        **kwargs,
    ) -> Any:
        """Send a request and decode its JSON body.

        Raises:
            NetworkError: Transport failure or timeout
            AgentBrokerError: Mapped from a non-2xx status
            UpstreamServiceError: The body is not valid JSON
        """
        url = f"{self.base_url}{path}"
        try:
            response = await self.http_client.request(
                method,
                url,
                headers={**self._headers, **(headers or {})},
                **kwargs,
            )
        except httpx.TimeoutException as e:
            raise NetworkError(f"{self.service_name} timed out: {e}") from e
        except httpx.TransportError as e:
            raise NetworkError(
                f"Failed to connect to {self.service_name} at {self.base_url}: {e}"
            ) from e

        raise_for_response(response, self.service_name)
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamServiceError(
                f"{self.service_name} returned an invalid JSON payload",
                status=response.status_code,
            ) from e
