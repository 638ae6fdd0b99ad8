"""Tests for the structuring engine."""

import pytest
from decimal import Decimal

from src.engine.normalizer import normalize_records
from src.engine.structuring import (
    build_bridging_index,
    build_fusion_index,
    build_index,
    keep_existing,
    keep_incoming,
)
from src.models.rates import Layout, PropertyTab, RateRecord


def _record(id, rate, tier="Tier 1", product="2yr Fix", fee="2", max_ltv="75", **kw):
    return RateRecord(
        id=id,
        tier=tier,
        product=product,
        fee=Decimal(fee) if fee is not None else None,
        max_ltv=Decimal(max_ltv),
        rate=Decimal(rate),
        **kw,
    )


class TestBuildIndex:
    def test_nested_by_tier_and_product(self, tiered_records):
        index = build_index(tiered_records)
        assert set(index.tiers) == {"Tier 1", "Tier 2"}
        assert set(index.tiers["Tier 1"].products) == {"2yr Fix", "3yr Fix"}
        assert index.tiers["Tier 1"].products["3yr Fix"].fee_bands == frozenset({Decimal("2"), Decimal("3")})

    def test_first_duplicate_wins(self):
        index = build_index([_record(1, "5.00"), _record(2, "6.00")])
        cell = index.tiers["Tier 1"].products["2yr Fix"].cells[(Decimal("75"), Decimal("2"))]
        assert cell.id == 1
        assert index.dropped_duplicates == 1

    def test_keep_incoming_policy(self):
        index = build_index([_record(1, "5.00"), _record(2, "6.00")], policy=keep_incoming)
        cell = index.tiers["Tier 1"].products["2yr Fix"].cells[(Decimal("75"), Decimal("2"))]
        assert cell.id == 2

    def test_custom_policy_sees_both_records(self):
        seen = []

        def lowest_rate(existing, incoming):
            seen.append((existing.id, incoming.id))
            return min(existing, incoming, key=lambda r: r.rate)

        index = build_index([_record(1, "6.00"), _record(2, "5.00")], policy=lowest_rate)
        assert seen == [(1, 2)]
        assert index.tiers["Tier 1"].products["2yr Fix"].cells[(Decimal("75"), Decimal("2"))].id == 2

    def test_equal_decimals_are_duplicates(self):
        index = build_index([_record(1, "5", max_ltv="75"), _record(2, "6", max_ltv="75.0")])
        assert index.dropped_duplicates == 1

    def test_second_pass_is_identical(self, tiered_records):
        duplicated = list(tiered_records) + list(tiered_records)
        first = build_index(duplicated)
        second = build_index(duplicated)
        assert first == second
        assert first.dropped_duplicates == len(tiered_records)

    def test_null_fee_not_a_band(self):
        index = build_index([_record(1, "5", fee=None)])
        bucket = index.tiers["Tier 1"].products["2yr Fix"]
        assert bucket.fee_bands == frozenset()
        assert (Decimal("75"), None) in bucket.cells

    def test_tier_default_first_non_null(self):
        index = build_index([
            _record(1, "5", product="2yr Fix"),
            _record(2, "5", product="3yr Fix", max_defer_int=Decimal("1.5")),
            _record(3, "5", product="2yr Tracker", max_defer_int=Decimal("2")),
        ])
        assert index.tiers["Tier 1"].max_defer_int == Decimal("1.5")

    def test_product_term_latest_non_null(self):
        index = build_index([
            _record(1, "5", fee="2", max_rolled_months=Decimal("6")),
            _record(2, "5", fee="3", max_rolled_months=Decimal("9")),
            _record(3, "5", fee="4"),
        ])
        assert index.tiers["Tier 1"].products["2yr Fix"].max_rolled_months == Decimal("9")

    def test_index_is_read_only(self, tiered_records):
        index = build_index(tiered_records)
        with pytest.raises(TypeError):
            index.tiers["Tier 9"] = None
        with pytest.raises(TypeError):
            index.tiers["Tier 1"].products["2yr Fix"].cells[(Decimal("1"), Decimal("1"))] = None


class TestBridgingIndex:
    def test_residential_tab(self, bridging_raw_records):
        records = normalize_records(bridging_raw_records, Layout.BRIDGING).records
        index = build_bridging_index(records, PropertyTab.RESIDENTIAL)
        assert set(index.products) == {"BTL Single Property Investment", "Second Charge"}
        second = index.products["Second Charge"]
        assert second.max_ltv == Decimal("70")
        assert second.charge_type == "Second Charge"
        assert (Decimal("60"), Decimal("70")) in second.cells

    def test_commercial_tab(self, bridging_raw_records):
        records = normalize_records(bridging_raw_records, Layout.BRIDGING).records
        index = build_bridging_index(records, PropertyTab.COMMERCIAL)
        assert list(index.products) == ["Commercial"]

    def test_duplicate_bracket_dropped(self, bridging_raw_records):
        records = normalize_records(bridging_raw_records + bridging_raw_records[:1], Layout.BRIDGING).records
        index = build_bridging_index(records)
        assert index.dropped_duplicates == 1


class TestFusionIndex:
    def test_first_record_per_product(self, fusion_raw_records):
        extra = dict(fusion_raw_records[1], id=399, rate=9.99)
        records = normalize_records(fusion_raw_records + [extra], Layout.FUSION).records
        index = build_fusion_index(records)
        assert index.products["Small"].id == 301
        assert index.dropped_duplicates == 1
