"""Live smoke tests of migrated integrations against the target sandbox.

Live validation only runs when the credential provider reports usable
credentials. Failures here are observational: callers log them and carry
on, they never turn a successful migration into a failed one.
"""

import logging
import time
from typing import TYPE_CHECKING, Any, Dict, Optional, Union

import backoff
import httpx

from ..config.credentials import CredentialProvider
from ..constants import DEFAULT_SANDBOX_URL
from ..detection.models import EndpointType
from .models import LiveValidationResult

if TYPE_CHECKING:
    from ..mapping.resolver import MappingResolver
    from ..migration.models import MigrationResult

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}
HEALTH_PATH = "/health"


class _RetryableStatus(Exception):
    def __init__(self, response: httpx.Response):
        super().__init__(f"Retryable status {response.status_code}")
        self.response = response


class SandboxValidator:
    """Posts probe requests for migrated endpoints to the target sandbox.

    Args:
        credentials: Gatekeeper for whether live validation may run.
        resolver: Used to find the target endpoint path and method for a
            result's endpoint type.
        base_url: Sandbox root URL.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport, e.g. ``httpx.MockTransport``.
    """

    def __init__(
        self,
        credentials: CredentialProvider,
        resolver: Optional["MappingResolver"] = None,
        base_url: str = DEFAULT_SANDBOX_URL,
        timeout: float = 30.0,
        max_tries: int = 3,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credentials = credentials
        self.resolver = resolver
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_tries = max_tries
        self._transport = transport

    def is_available(self) -> bool:
        return self.credentials.has_credentials()

    async def test_connection(self) -> LiveValidationResult:
        return await self._request("GET", HEALTH_PATH)

    async def validate(self, result: "MigrationResult") -> LiveValidationResult:
        """Probe the target endpoint that ``result`` was migrated to."""
        return await self.validate_endpoint(
            result.metadata.endpoint_type, result.metadata.file_path
        )

    async def validate_endpoint(
        self, endpoint_type: Union[EndpointType, str], file_path: Optional[str] = None
    ) -> LiveValidationResult:
        if not self.is_available():
            return LiveValidationResult(success=False, error="No target API credentials configured")

        method, path = "GET", HEALTH_PATH
        if self.resolver is not None:
            mapping = self.resolver.resolve_mapping(endpoint_type)
            if mapping is not None:
                method, path = mapping.method, mapping.destination_endpoint

        payload = {
            "probe": True,
            "endpointType": getattr(endpoint_type, "value", endpoint_type),
            "filePath": file_path,
        }
        return await self._request(method, path, payload if method != "GET" else None)

    async def _request(
        self, method: str, path: str, payload: Optional[Dict[str, Any]] = None
    ) -> LiveValidationResult:
        creds = self.credentials.get_credentials()
        headers = {"Content-Type": "application/json"}
        if creds is not None:
            headers["Authorization"] = f"Bearer {creds.secret_key}"

        started = time.perf_counter()

        @backoff.on_exception(
            backoff.expo,
            (httpx.TransportError, _RetryableStatus),
            max_tries=self.max_tries,
            max_time=60,
        )
        async def _send(client: httpx.AsyncClient) -> httpx.Response:
            response = await client.request(method, path, json=payload, headers=headers)
            if response.status_code in RETRYABLE_STATUS_CODES:
                raise _RetryableStatus(response)
            return response

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self._transport,
            ) as client:
                response = await _send(client)
        except _RetryableStatus as e:
            response = e.response
        except httpx.HTTPError as e:
            logger.warning(f"Sandbox request {method} {path} failed: {e}")
            return LiveValidationResult(
                success=False,
                error=str(e),
                elapsed_ms=(time.perf_counter() - started) * 1000,
            )

        try:
            body = response.json()
        except ValueError:
            body = {"text": response.text[:500]}

        ok = 200 <= response.status_code < 300
        return LiveValidationResult(
            success=ok,
            status_code=response.status_code,
            response=body if isinstance(body, dict) else {"data": body},
            error=None if ok else f"Sandbox returned HTTP {response.status_code}",
            elapsed_ms=(time.perf_counter() - started) * 1000,
        )
