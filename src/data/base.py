"""Protocol definitions for the rates backend collaborators.

Each protocol defines the interface that concrete implementations must satisfy.
Both return Result values instead of raising on collaborator failure.
"""

from collections.abc import Mapping
from typing import Protocol, runtime_checkable

from src.models.errors import Result


@runtime_checkable
class RateSource(Protocol):
    async def fetch_rates(self, params: Mapping[str, str]) -> Result:
        """Fetch raw rate rows for a set_key/property/is_retention query.

        Success value is a list of raw row mappings.
        """
        ...


@runtime_checkable
class RatePersistence(Protocol):
    async def update_rate(self, record_id: int | str, payload: dict) -> Result:
        """Persist one edited field. Payload: field, value, tableName, oldValue, context."""
        ...
