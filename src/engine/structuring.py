"""Structuring engine: normalized records → read-only nested index.

Single pass per refresh. Drafts are plain mutable containers local to one
call; the returned index exposes only read-only mappings and frozensets.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType

from src.models.matrix import (
    BridgingIndex,
    BridgingProduct,
    FusionIndex,
    ProductBucket,
    StructuredIndex,
    TierBucket,
)
from src.models.rates import PropertyTab, RateRecord

logger = logging.getLogger(__name__)

DuplicatePolicy = Callable[[RateRecord, RateRecord], RateRecord]

COMMERCIAL_PROPERTIES = ("Semi-Commercial", "Commercial")


def keep_existing(existing: RateRecord, incoming: RateRecord) -> RateRecord:
    """First record wins; later duplicates are dropped."""
    return existing


def keep_incoming(existing: RateRecord, incoming: RateRecord) -> RateRecord:
    """Last record wins."""
    return incoming


def _insert(cells: dict, key: object, record: RateRecord, policy: DuplicatePolicy) -> bool:
    """Insert through the duplicate policy. Returns True when a duplicate was resolved."""
    existing = cells.get(key)
    if existing is None:
        cells[key] = record
        return False
    kept = policy(existing, record)
    if kept is not existing:
        cells[key] = kept  # same slot, so column/cell order is unchanged
    logger.debug(
        "Duplicate rate cell %s for %s/%s: kept id=%s, dropped id=%s",
        key, record.tier, record.product, kept.id,
        record.id if kept is existing else existing.id,
    )
    return True


@dataclass
class _ProductDraft:
    fee_bands: set[Decimal] = field(default_factory=set)
    cells: dict = field(default_factory=dict)
    max_defer_int: Decimal | None = None
    max_rolled_months: Decimal | None = None


@dataclass
class _TierDraft:
    products: dict[str, _ProductDraft] = field(default_factory=dict)
    max_defer_int: Decimal | None = None
    max_rolled_months: Decimal | None = None


def build_index(
    records: Iterable[RateRecord],
    policy: DuplicatePolicy = keep_existing,
) -> StructuredIndex:
    """Group tiered records by tier → product → (max_ltv, fee)."""
    drafts: dict[str, _TierDraft] = {}
    dropped = 0

    for record in records:
        tier_name = record.tier or "Tier 1"
        tier = drafts.get(tier_name)
        if tier is None:
            tier = drafts[tier_name] = _TierDraft(
                max_defer_int=record.max_defer_int,
                max_rolled_months=record.max_rolled_months,
            )
        else:
            # Tier defaults: first non-null value seen
            if tier.max_defer_int is None and record.max_defer_int is not None:
                tier.max_defer_int = record.max_defer_int
            if tier.max_rolled_months is None and record.max_rolled_months is not None:
                tier.max_rolled_months = record.max_rolled_months

        product = tier.products.get(record.product)
        if product is None:
            product = tier.products[record.product] = _ProductDraft()
        # Product terms: latest non-null value
        if record.max_defer_int is not None:
            product.max_defer_int = record.max_defer_int
        if record.max_rolled_months is not None:
            product.max_rolled_months = record.max_rolled_months

        if record.fee is not None:
            product.fee_bands.add(record.fee)

        if _insert(product.cells, (record.max_ltv, record.fee), record, policy):
            dropped += 1

    tiers = {
        name: TierBucket(
            tier=name,
            products=MappingProxyType({
                pname: ProductBucket(
                    product=pname,
                    fee_bands=frozenset(p.fee_bands),
                    cells=MappingProxyType(dict(p.cells)),
                    max_defer_int=p.max_defer_int,
                    max_rolled_months=p.max_rolled_months,
                )
                for pname, p in draft.products.items()
            }),
            max_defer_int=draft.max_defer_int,
            max_rolled_months=draft.max_rolled_months,
        )
        for name, draft in drafts.items()
    }
    if dropped:
        logger.info("Structuring dropped %d duplicate rate records", dropped)
    return StructuredIndex(tiers=MappingProxyType(tiers), dropped_duplicates=dropped)


def filter_property_tab(records: Iterable[RateRecord], property_tab: PropertyTab) -> list[RateRecord]:
    if property_tab is PropertyTab.COMMERCIAL:
        return [r for r in records if r.property in COMMERCIAL_PROPERTIES]
    return [r for r in records if r.property == "Residential"]


@dataclass
class _BridgingDraft:
    first: RateRecord
    cells: dict = field(default_factory=dict)
    max_ltv: Decimal = Decimal("0")


def build_bridging_index(
    records: Iterable[RateRecord],
    property_tab: PropertyTab = PropertyTab.RESIDENTIAL,
    policy: DuplicatePolicy = keep_existing,
) -> BridgingIndex:
    """Group bridging records by product → (min_ltv, max_ltv) bracket."""
    drafts: dict[str, _BridgingDraft] = {}
    dropped = 0

    for record in filter_property_tab(records, property_tab):
        draft = drafts.get(record.product)
        if draft is None:
            draft = drafts[record.product] = _BridgingDraft(first=record)
        max_ltv = record.max_ltv or Decimal("0")
        if max_ltv > draft.max_ltv:
            draft.max_ltv = max_ltv
        key = (record.min_ltv or Decimal("0"), max_ltv)
        if _insert(draft.cells, key, record, policy):
            dropped += 1

    products = {
        name: BridgingProduct(
            product=name,
            cells=MappingProxyType(dict(d.cells)),
            max_ltv=d.max_ltv,
            min_loan=d.first.min_loan,
            max_loan=d.first.max_loan,
            charge_type=d.first.charge_type,
            min_term=d.first.min_term,
            max_term=d.first.max_term,
            fee=d.first.fee,
        )
        for name, d in drafts.items()
    }
    return BridgingIndex(products=MappingProxyType(products), dropped_duplicates=dropped)


def build_fusion_index(
    records: Iterable[RateRecord],
    property_tab: PropertyTab = PropertyTab.RESIDENTIAL,
    policy: DuplicatePolicy = keep_existing,
) -> FusionIndex:
    """One record per fusion product (Small / Medium / Large)."""
    products: dict[str, RateRecord] = {}
    dropped = 0
    for record in filter_property_tab(records, property_tab):
        if _insert(products, record.product, record, policy):
            dropped += 1
    return FusionIndex(products=MappingProxyType(products), dropped_duplicates=dropped)
