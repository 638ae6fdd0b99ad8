"""Tier, fee-band and product-column resolution per product category.

Pure functions: identical inputs always give identical ordering, which keeps
the column layout stable across refreshes.
"""

from collections.abc import Iterable
from decimal import Decimal

from src.models.matrix import StructuredIndex
from src.models.rates import Category, CategoryScope, Layout, PropertyTab

TIERED_TABLE = "rates_flat"
BRIDGING_TABLE = "bridge_fusion_rates_full"

RESTRICTED_TIERS = ("Tier 1", "Tier 2")

TIERED_PRODUCT_ORDER = ("3yr Fix", "2yr Fix", "2yr Tracker")

BRIDGING_RESIDENTIAL_ORDER = (
    "BTL Single Property Investment",
    "Large Single Property Investment",
    "BTL Portfolio Investment",
    "Developer Exit Bridge (Multiple Units)",
    "Permitted & Light Development Finance",
    "Second Charge",
)

BRIDGING_COMMERCIAL_ORDER = (
    "Semi-Commercial",
    "Semi-Commercial Large Loan",
    "Permitted & Light Development Finance",
    "Developer Exit Bridge (Multiple Units)",
    "Commercial",
    "Commercial Large Loan",
)

FUSION_PRODUCT_ORDER = ("Small", "Medium", "Large")

# category -> (layout, set_key, property, is_retention)
_CATEGORY_TABLE: dict[Category, tuple[Layout, str, str | None, bool | None]] = {
    Category.CORE: (Layout.TIERED, "RATES_CORE", None, False),
    Category.SPECIALIST: (Layout.TIERED, "RATES_SPEC", "Residential", None),
    Category.COMMERCIAL: (Layout.TIERED, "RATES_SPEC", "Commercial", None),
    Category.SEMI_COMMERCIAL: (Layout.TIERED, "RATES_SPEC", "Semi-Commercial", None),
    Category.BRIDGING_VARIABLE: (Layout.BRIDGING, "Bridging_Var", None, None),
    Category.BRIDGING_FIXED: (Layout.BRIDGING, "Bridging_Fix", None, None),
    Category.FUSION: (Layout.FUSION, "Fusion", None, None),
}


def category_scope(
    category: Category,
    property_tab: PropertyTab = PropertyTab.RESIDENTIAL,
) -> CategoryScope:
    """Fetch parameters, persistence table and display rules for a category.

    Bridging/fusion residential fetches filter server-side by property; the
    commercial tab fetches everything and filters client-side.
    """
    layout, set_key, prop, is_retention = _CATEGORY_TABLE[category]
    if layout is not Layout.TIERED and property_tab is PropertyTab.RESIDENTIAL:
        prop = "Residential"
    return CategoryScope(
        category=category,
        layout=layout,
        set_key=set_key,
        table_name=TIERED_TABLE if layout is Layout.TIERED else BRIDGING_TABLE,
        property=prop,
        is_retention=is_retention,
        allows_deferred_terms=category is not Category.CORE,
        property_tab=property_tab,
    )


def resolve_tiers(index: StructuredIndex, category: Category) -> tuple[str, ...]:
    tiers = sorted(index.tiers)
    if category in (Category.CORE, Category.COMMERCIAL):
        tiers = [t for t in tiers if t in RESTRICTED_TIERS]
    return tuple(tiers)


def resolve_fee_bands(index: StructuredIndex, tiers: Iterable[str]) -> tuple[Decimal, ...]:
    fees: set[Decimal] = set()
    for tier in tiers:
        for bucket in index.tiers[tier].products.values():
            fees.update(bucket.fee_bands)
    return tuple(sorted(fees))


def preferred_order(available: Iterable[str], preferred: tuple[str, ...]) -> tuple[str, ...]:
    """Preferred names first (in that order), then the rest alphabetically."""
    present = set(available)
    ordered = [p for p in preferred if p in present]
    ordered.extend(sorted(present.difference(preferred)))
    return tuple(ordered)


def resolve_products(
    available: Iterable[str],
    category: Category,
    property_tab: PropertyTab = PropertyTab.RESIDENTIAL,
) -> tuple[str, ...]:
    layout = _CATEGORY_TABLE[category][0]
    if layout is Layout.TIERED:
        return preferred_order(available, TIERED_PRODUCT_ORDER)
    if layout is Layout.FUSION:
        return preferred_order(available, FUSION_PRODUCT_ORDER)
    if property_tab is PropertyTab.COMMERCIAL:
        return preferred_order(available, BRIDGING_COMMERCIAL_ORDER)
    return preferred_order(available, BRIDGING_RESIDENTIAL_ORDER)


def tiered_products(index: StructuredIndex, tiers: Iterable[str], category: Category) -> tuple[str, ...]:
    """Product columns for a tiered layout: every product seen in the selected tiers."""
    names: set[str] = set()
    for tier in tiers:
        names.update(index.tiers[tier].products)
    return resolve_products(names, category)
