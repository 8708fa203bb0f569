"""Tests for SandboxValidator against an httpx.MockTransport."""

import asyncio
import json
from typing import Optional

import httpx

from paymigrate.core.config import CredentialProvider, TargetCredentials
from paymigrate.core.detection import EndpointType
from paymigrate.core.mapping import MappingResolver, parse_mapping_dictionary
from paymigrate.core.validation import SandboxValidator

GOOD_CREDS = TargetCredentials(public_key="pk_test_" + "a" * 24, secret_key="sk_test_" + "b" * 24)


class StaticCredentials(CredentialProvider):
    def __init__(self, creds: Optional[TargetCredentials]):
        self.creds = creds

    def get_credentials(self) -> Optional[TargetCredentials]:
        return self.creds


def _make_resolver() -> MappingResolver:
    return MappingResolver(parse_mapping_dictionary({
        "version": "1.0.0",
        "lastUpdated": "2026-01-01",
        "mappings": [{
            "sourceEndpoint": "hosted-payments",
            "targetEndpoint": "/api/v1/payments/hosted",
            "method": "post",
            "fieldMappings": {"ssl_pin": "apiKey"},
        }],
    }))


def _make_validator(handler, creds=GOOD_CREDS, **kwargs) -> SandboxValidator:
    return SandboxValidator(
        StaticCredentials(creds),
        resolver=_make_resolver(),
        base_url="https://sandbox.test",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


# ── Tests: Availability ───────────────────────────────────────────────────


class TestAvailability:
    def test_no_credentials(self):
        calls = []
        validator = _make_validator(lambda r: calls.append(r), creds=None)

        result = asyncio.run(validator.validate_endpoint(EndpointType.HOSTED_PAYMENTS))

        assert not validator.is_available()
        assert not result.success
        assert "credentials" in result.error
        assert calls == []

    def test_malformed_credentials(self):
        validator = _make_validator(lambda r: httpx.Response(200), creds=TargetCredentials("pk_x", "sk_y"))
        assert not validator.is_available()


# ── Tests: Requests ───────────────────────────────────────────────────────


class TestValidateEndpoint:
    def test_posts_probe_to_mapped_endpoint(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"status": "ok"})

        validator = _make_validator(handler)
        result = asyncio.run(validator.validate_endpoint(EndpointType.HOSTED_PAYMENTS, "src/pay.js"))

        assert result.success
        assert result.status_code == 200
        assert result.response == {"status": "ok"}
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/api/v1/payments/hosted"
        assert request.headers["Authorization"] == f"Bearer {GOOD_CREDS.secret_key}"
        body = json.loads(request.content)
        assert body == {"probe": True, "endpointType": "hosted-payments", "filePath": "src/pay.js"}

    def test_unmapped_endpoint_hits_health_check(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text="up")

        result = asyncio.run(_make_validator(handler).validate_endpoint(EndpointType.CHECKOUT))

        assert result.success
        assert result.response == {"text": "up"}
        assert seen[0].method == "GET"
        assert seen[0].url.path == "/health"

    def test_client_error_is_not_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(400, json={"error": "bad"})

        result = asyncio.run(_make_validator(handler).validate_endpoint(EndpointType.HOSTED_PAYMENTS))

        assert not result.success
        assert result.status_code == 400
        assert result.error == "Sandbox returned HTTP 400"
        assert len(calls) == 1

    def test_retries_unavailable_then_succeeds(self):
        statuses = iter([503, 200])

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(next(statuses), json={})

        result = asyncio.run(
            _make_validator(handler, max_tries=2).validate_endpoint(EndpointType.HOSTED_PAYMENTS)
        )
        assert result.success

    def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        result = asyncio.run(
            _make_validator(handler, max_tries=1).validate_endpoint(EndpointType.HOSTED_PAYMENTS)
        )
        assert not result.success
        assert result.status_code is None
        assert "refused" in result.error
