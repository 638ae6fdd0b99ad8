"""Rates backend client: rate set fetch and single-field rate updates."""

import logging
from collections.abc import Mapping

import httpx

from src.config import settings
from src.models.errors import ErrorKind, PersistenceFailure, Result

logger = logging.getLogger(__name__)


def _error_message(resp: httpx.Response) -> str:
    """Backend errors carry {"error": ...} or {"message": ...}."""
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = body.get("error") or body.get("message")
        if message:
            return str(message)
    return f"Failed to update rate (HTTP {resp.status_code})"


class RatesClient:
    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.rates_api_base_url).rstrip("/")
        self.token = token if token is not None else settings.rates_api_token
        self.transport = transport
        self.headers = {"Accept": "application/json"}
        if self.token:
            self.headers["Authorization"] = f"Bearer {self.token}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=settings.request_timeout_seconds,
            headers=self.headers,
            transport=self.transport,
        )

    async def _get(self, endpoint: str, params: Mapping[str, str] | None = None) -> dict:
        async with self._client() as client:
            resp = await client.get(f"{self.base_url}{endpoint}", params=dict(params or {}))
            resp.raise_for_status()
            return resp.json()

    async def _patch(self, endpoint: str, payload: dict) -> dict:
        async with self._client() as client:
            try:
                resp = await client.patch(f"{self.base_url}{endpoint}", json=payload)
            except httpx.HTTPError as e:
                raise PersistenceFailure(f"Failed to update rate: {e}") from e
            if resp.is_error:
                raise PersistenceFailure(_error_message(resp))
            try:
                return resp.json()
            except ValueError:
                return {}

    async def fetch_rates(self, params: Mapping[str, str]) -> Result:
        """GET /rates. Success value is the list of raw rate rows."""
        try:
            data = await self._get("/rates", params)
        except httpx.HTTPStatusError as e:
            logger.warning("Rates fetch failed for %s: %s", dict(params), e)
            return Result.failure(ErrorKind.FETCH_FAILURE, f"Failed to load rates (HTTP {e.response.status_code})")
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Rates fetch failed for %s: %s", dict(params), e)
            return Result.failure(ErrorKind.FETCH_FAILURE, f"Failed to load rates: {e}")

        rates = data.get("rates") if isinstance(data, dict) else None
        if not isinstance(rates, list):
            logger.warning("Rates response for %s has no rates list", dict(params))
            return Result.failure(ErrorKind.FETCH_FAILURE, "Rates response was not understood")

        logger.debug("Fetched %d rate rows for %s", len(rates), dict(params))
        return Result.success(rates)

    async def update_rate(self, record_id: int | str, payload: dict) -> Result:
        """PATCH /rates/{id}. The response body is ignored beyond success."""
        try:
            data = await self._patch(f"/rates/{record_id}", payload)
        except PersistenceFailure as e:
            logger.warning("Rate update failed for %s: %s", record_id, e)
            return Result.failure(ErrorKind.PERSISTENCE_FAILURE, str(e))
        return Result.success(data)
