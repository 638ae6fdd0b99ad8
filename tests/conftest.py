"""Canonical rate fixtures shared across engine, data and API tests.

Tiered: two tiers of BTL specialist rates at 2% and 3% fee bands.
Bridging: two residential products plus one commercial product.
Fusion: Small / Medium / Large residential products.
"""

import pytest
from decimal import Decimal

from src.engine.normalizer import normalize_records
from src.models.edit import EditContext
from src.models.errors import ErrorKind, Result
from src.models.rates import Layout


@pytest.fixture
def e2e_raw_records() -> list[dict]:
    """Two Tier 1 products sharing a 2% fee band."""
    return [
        {"id": 1, "set_key": "RATES_SPEC", "tier": "1", "product": "3yr Fix",
         "product_fee": 2, "max_ltv": 70, "rate": 5.79},
        {"id": 2, "set_key": "RATES_SPEC", "tier": "1", "product": "2yr Tracker",
         "product_fee": 2, "max_ltv": 70, "rate": 1.25},
    ]


@pytest.fixture
def tiered_raw_records() -> list[dict]:
    return [
        {"id": 10, "set_key": "RATES_SPEC", "tier": 1, "product": "2yr Fix", "product_fee": 2,
         "max_ltv": 75, "rate": "5.49", "max_defer_int": 1.5, "max_rolled_months": 9},
        {"id": 11, "set_key": "RATES_SPEC", "tier": 1, "product": "3yr Fix", "product_fee": 2,
         "max_ltv": 75, "rate": "5.69", "max_defer_int": 1.5, "max_rolled_months": 9},
        {"id": 12, "set_key": "RATES_SPEC", "tier": 1, "product": "3yr Fix", "product_fee": 3,
         "max_ltv": 75, "rate": "5.29", "max_defer_int": 1.5, "max_rolled_months": 9},
        {"id": 20, "set_key": "RATES_SPEC", "tier": "Tier 2", "product": "2yr Fix", "product_fee": 2,
         "max_ltv": 75, "rate": "6.19", "revert_margin": 0.5, "max_defer_int": 1.5, "max_rolled_months": 6},
        {"id": 21, "set_key": "RATES_SPEC", "tier": "Tier 2", "product": "2yr Tracker", "product_fee": 2,
         "max_ltv": 75, "rate": "2.05", "revert_margin": 0.5, "max_defer_int": 2, "max_rolled_months": 6},
    ]


@pytest.fixture
def tiered_records(tiered_raw_records):
    return normalize_records(tiered_raw_records, Layout.TIERED).records


@pytest.fixture
def bridging_raw_records() -> list[dict]:
    return [
        {"id": 100, "set_key": "Bridging_Var", "property": "Residential",
         "product": "BTL Single Property Investment", "min_ltv": 0, "max_ltv": 60, "rate": 0.85,
         "min_loan": "100000", "max_loan": "2000000", "charge_type": "First Charge",
         "product_fee": 2, "min_term": 3, "max_term": 18},
        {"id": 101, "set_key": "Bridging_Var", "property": "Residential",
         "product": "BTL Single Property Investment", "min_ltv": 60, "max_ltv": 70, "rate": 0.95,
         "min_loan": "100000", "max_loan": "2000000", "charge_type": "First Charge",
         "product_fee": 2, "min_term": 3, "max_term": 18},
        {"id": 102, "set_key": "Bridging_Var", "property": "Residential",
         "product": "BTL Single Property Investment", "min_ltv": 70, "max_ltv": 75, "rate": 1.05,
         "min_loan": "100000", "max_loan": "2000000", "charge_type": "First Charge",
         "product_fee": 2, "min_term": 3, "max_term": 18},
        {"id": 110, "set_key": "Bridging_Var", "property": "Residential",
         "product": "Second Charge", "min_ltv": 0, "max_ltv": 60, "rate": 1.1,
         "min_loan": "100000", "max_loan": "1000000", "charge_type": "Second Charge",
         "product_fee": 2, "min_term": 3, "max_term": 18},
        {"id": 111, "set_key": "Bridging_Var", "property": "Residential",
         "product": "Second Charge", "min_ltv": 60, "max_ltv": 70, "rate": 1.2,
         "min_loan": "100000", "max_loan": "1000000", "charge_type": "Second Charge",
         "product_fee": 2, "min_term": 3, "max_term": 18},
        {"id": 200, "set_key": "Bridging_Var", "property": "Commercial",
         "product": "Commercial", "min_ltv": 0, "max_ltv": 60, "rate": 1.15,
         "min_loan": "250000", "max_loan": "10m+", "product_fee": 2},
    ]


@pytest.fixture
def fusion_raw_records() -> list[dict]:
    return [
        {"id": 300, "set_key": "Fusion", "property": "Residential", "product": "Large",
         "rate": 4.79, "min_loan": "3000001", "max_loan": "£10m+", "max_ltv": 70},
        {"id": 301, "set_key": "Fusion", "property": "Residential", "product": "Small",
         "rate": 6.29, "min_loan": "100000", "max_loan": "1500000", "max_ltv": 70},
        {"id": 302, "set_key": "Fusion", "property": "Residential", "product": "Medium",
         "rate": 5.49, "min_loan": "1500001", "max_loan": "3000000", "max_ltv": 70},
    ]


@pytest.fixture
def edit_context() -> EditContext:
    return EditContext(set_key="RATES_SPEC", product="3yr Fix", tier="Tier 1", fee=Decimal("2"))


class InMemoryRates:
    """Rates backend double: serves raw rows and applies PATCHes in place."""

    def __init__(self, rows: list[dict]):
        self.rows = [dict(r) for r in rows]
        self.fetches: list[dict] = []
        self.updates: list[tuple] = []

    async def fetch_rates(self, params):
        self.fetches.append(dict(params))
        rows = [r for r in self.rows if r.get("set_key") == params.get("set_key")]
        if "property" in params:
            rows = [r for r in rows if r.get("property", "Residential") == params["property"]]
        return Result.success([dict(r) for r in rows])

    async def update_rate(self, record_id, payload):
        self.updates.append((record_id, payload))
        for row in self.rows:
            if row.get("id") == record_id:
                row[payload["field"]] = payload["value"]
                return Result.success({"id": record_id})
        return Result.failure(ErrorKind.PERSISTENCE_FAILURE, "Rate not found")


@pytest.fixture
def rates_backend(e2e_raw_records, tiered_raw_records):
    rows = [dict(r, property="Residential") for r in e2e_raw_records + tiered_raw_records]
    return InMemoryRates(rows)
