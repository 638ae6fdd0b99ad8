"""Tests for the rates backend client."""

import json

import httpx
import pytest

from src.data.base import RatePersistence, RateSource
from src.data.rates_client import RatesClient
from src.models.errors import ErrorKind

BASE_URL = "http://rates.test/api"


def _client(handler, token="secret-token"):
    return RatesClient(base_url=BASE_URL, token=token, transport=httpx.MockTransport(handler))


class TestProtocols:
    def test_client_satisfies_both_protocols(self):
        client = RatesClient(base_url=BASE_URL, token="")
        assert isinstance(client, RateSource)
        assert isinstance(client, RatePersistence)


class TestFetchRates:
    async def test_success(self, e2e_raw_records):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"rates": e2e_raw_records})

        result = await _client(handler).fetch_rates({"set_key": "RATES_SPEC", "property": "Residential"})

        assert result.ok
        assert result.value == e2e_raw_records
        assert seen == {
            "method": "GET",
            "path": "/api/rates",
            "params": {"set_key": "RATES_SPEC", "property": "Residential"},
        }

    async def test_http_error(self):
        result = await _client(lambda r: httpx.Response(500, json={"error": "db down"})).fetch_rates({"set_key": "X"})
        assert result.error is ErrorKind.FETCH_FAILURE
        assert "500" in result.message

    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        result = await _client(handler).fetch_rates({"set_key": "X"})
        assert result.error is ErrorKind.FETCH_FAILURE

    async def test_unexpected_body(self):
        result = await _client(lambda r: httpx.Response(200, json=[1, 2])).fetch_rates({"set_key": "X"})
        assert result.error is ErrorKind.FETCH_FAILURE


class TestUpdateRate:
    @pytest.fixture
    def payload(self):
        return {
            "field": "rate",
            "value": 5.25,
            "tableName": "rates_flat",
            "oldValue": 5.79,
            "context": {"set_key": "RATES_SPEC", "product": "3yr Fix", "tier": "Tier 1", "fee": 2.0},
        }

    async def test_success(self, payload):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": 11, "rate": 5.25})

        result = await _client(handler).update_rate(11, payload)

        assert result.ok
        assert seen == {
            "method": "PATCH",
            "path": "/api/rates/11",
            "auth": "Bearer secret-token",
            "body": payload,
        }

    async def test_no_token_no_auth_header(self, payload):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={})

        await _client(handler, token="").update_rate(1, payload)
        assert seen["auth"] is None

    async def test_error_field_surfaced(self, payload):
        result = await _client(lambda r: httpx.Response(400, json={"error": "Rate must be positive"})).update_rate(1, payload)
        assert result.error is ErrorKind.PERSISTENCE_FAILURE
        assert result.message == "Rate must be positive"

    async def test_message_field_surfaced(self, payload):
        result = await _client(lambda r: httpx.Response(403, json={"message": "Forbidden"})).update_rate(1, payload)
        assert result.message == "Forbidden"

    async def test_non_json_error(self, payload):
        result = await _client(lambda r: httpx.Response(502, text="Bad gateway")).update_rate(1, payload)
        assert result.error is ErrorKind.PERSISTENCE_FAILURE
        assert result.message == "Failed to update rate (HTTP 502)"

    async def test_transport_error(self, payload):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        result = await _client(handler).update_rate(1, payload)
        assert result.error is ErrorKind.PERSISTENCE_FAILURE
        assert result.message.startswith("Failed to update rate")
