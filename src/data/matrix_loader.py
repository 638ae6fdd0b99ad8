"""Fetch -> normalize -> build orchestration.

Every call refetches and rebuilds from scratch; this is also the refresh
hook the edit controller awaits after a successful save.
"""

import logging

from src.data.base import RateSource
from src.engine.data_health import build_data_health_report
from src.engine.matrix import build_matrix
from src.engine.normalizer import normalize_records
from src.engine.resolver import category_scope
from src.engine.structuring import DuplicatePolicy, keep_existing
from src.models.errors import Result
from src.models.rates import Category, PropertyTab

logger = logging.getLogger(__name__)


class RateMatrixLoader:
    def __init__(self, source: RateSource, policy: DuplicatePolicy = keep_existing):
        self.source = source
        self.policy = policy

    async def load(
        self,
        category: Category,
        property_tab: PropertyTab = PropertyTab.RESIDENTIAL,
    ) -> Result:
        """Success value is a RateMatrix; fetch failures pass through unchanged."""
        scope = category_scope(category, property_tab)
        fetched = await self.source.fetch_rates(scope.query_params())
        if not fetched.ok:
            return fetched

        batch = normalize_records(fetched.value, scope.layout)
        if batch.rejected:
            logger.warning("%d of %d %s rate rows rejected", batch.rejected, len(fetched.value), category.value)

        matrix = build_matrix(
            batch.records,
            category,
            property_tab,
            policy=self.policy,
            anomalies=batch.anomalies,
        )
        return Result.success(matrix)

    async def data_health(self, set_key: str, property: str | None = None) -> Result:
        """Success value is a DataHealthReport for the raw rows of one set."""
        params = {"set_key": set_key}
        if property:
            params["property"] = property
        fetched = await self.source.fetch_rates(params)
        if not fetched.ok:
            return fetched
        return Result.success(build_data_health_report(fetched.value, set_key, property))
