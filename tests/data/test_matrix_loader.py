"""Tests for the fetch -> normalize -> build loader."""

from unittest.mock import AsyncMock

from src.data.matrix_loader import RateMatrixLoader
from src.engine.structuring import keep_incoming
from src.models.errors import ErrorKind, Result
from src.models.rates import Category, PropertyTab


class TestLoad:
    async def test_specialist(self, rates_backend):
        result = await RateMatrixLoader(rates_backend).load(Category.SPECIALIST)
        assert result.ok
        matrix = result.value
        assert matrix.tiers == ("Tier 1", "Tier 2")
        assert rates_backend.fetches == [{"set_key": "RATES_SPEC", "property": "Residential"}]

    async def test_fetch_failure_passes_through(self):
        source = AsyncMock()
        source.fetch_rates = AsyncMock(return_value=Result.failure(ErrorKind.FETCH_FAILURE, "HTTP 500"))
        result = await RateMatrixLoader(source).load(Category.CORE)
        assert result.error is ErrorKind.FETCH_FAILURE
        assert result.message == "HTTP 500"

    async def test_malformed_rows_skipped(self, e2e_raw_records):
        source = AsyncMock()
        source.fetch_rates = AsyncMock(return_value=Result.success(e2e_raw_records + ["junk", {"rate": "x"}]))
        result = await RateMatrixLoader(source).load(Category.SPECIALIST)
        assert result.ok
        assert result.value.products == ("3yr Fix", "2yr Tracker")

    async def test_anomalies_attached(self, e2e_raw_records):
        rows = e2e_raw_records + [{"id": 9, "tier": 1, "product": "2yr Fix", "product_fee": "tbc", "rate": 5}]
        source = AsyncMock()
        source.fetch_rates = AsyncMock(return_value=Result.success(rows))
        matrix = (await RateMatrixLoader(source).load(Category.SPECIALIST)).value
        assert {a.kind for a in matrix.anomalies} == {"non_numeric_fee", "missing_max_ltv"}

    async def test_policy_forwarded(self, e2e_raw_records):
        newer = dict(e2e_raw_records[0], id=99, rate=4.99)
        source = AsyncMock()
        source.fetch_rates = AsyncMock(return_value=Result.success(e2e_raw_records + [newer]))
        matrix = (await RateMatrixLoader(source, policy=keep_incoming).load(Category.SPECIALIST)).value
        rate_row = next(r for r in matrix.rows if r.key == "rate-2")
        assert rate_row.groups[0].cells[0].display == "4.99%"

    async def test_bridging_commercial_query(self, bridging_raw_records):
        source = AsyncMock()
        source.fetch_rates = AsyncMock(return_value=Result.success(bridging_raw_records))
        result = await RateMatrixLoader(source).load(Category.BRIDGING_VARIABLE, PropertyTab.COMMERCIAL)
        source.fetch_rates.assert_awaited_once_with({"set_key": "Bridging_Var"})
        assert result.value.products == ("Commercial",)


class TestDataHealth:
    async def test_report(self, e2e_raw_records):
        source = AsyncMock()
        source.fetch_rates = AsyncMock(return_value=Result.success(e2e_raw_records + e2e_raw_records[:1]))
        result = await RateMatrixLoader(source).data_health("RATES_SPEC", "Residential")
        source.fetch_rates.assert_awaited_once_with({"set_key": "RATES_SPEC", "property": "Residential"})
        assert result.value.stats.exact_duplicate_groups == 1

    async def test_failure(self):
        source = AsyncMock()
        source.fetch_rates = AsyncMock(return_value=Result.failure(ErrorKind.FETCH_FAILURE, "down"))
        result = await RateMatrixLoader(source).data_health("RATES_SPEC")
        assert not result.ok
