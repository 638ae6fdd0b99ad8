import builtins
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class Layout(Enum):
    TIERED = "tiered"
    BRIDGING = "bridging"
    FUSION = "fusion"


class Category(Enum):
    SPECIALIST = "specialist"
    CORE = "core"
    COMMERCIAL = "commercial"
    SEMI_COMMERCIAL = "semi-commercial"
    BRIDGING_VARIABLE = "bridging-variable"
    BRIDGING_FIXED = "bridging-fixed"
    FUSION = "fusion"


class PropertyTab(Enum):
    """Bridging/fusion property filter. Ignored by tiered categories."""
    RESIDENTIAL = "residential"
    COMMERCIAL = "commercial"


@dataclass(frozen=True)
class CategoryScope:
    """Everything the fetch and edit paths need to know about a category."""
    category: Category
    layout: Layout
    set_key: str
    table_name: str
    property: str | None = None
    is_retention: bool | None = None
    allows_deferred_terms: bool = True
    property_tab: PropertyTab = PropertyTab.RESIDENTIAL

    def query_params(self) -> dict[str, str]:
        params = {"set_key": self.set_key}
        if self.property:
            params["property"] = self.property
        if self.is_retention is not None:
            params["is_retention"] = "true" if self.is_retention else "false"
        return params


@dataclass(frozen=True)
class RateRecord:
    product: str
    set_key: str = ""
    id: int | str | None = None  # None for derived display-only values
    tier: str | None = None  # "Tier N"; None for bridging/fusion
    property: str | None = None
    fee: Decimal | None = None
    min_ltv: Decimal | None = None
    max_ltv: Decimal | None = None
    rate: Decimal | None = None
    revert_margin: Decimal | None = None
    revert_index: str = "MVR"
    max_defer_int: Decimal | None = None
    max_rolled_months: Decimal | None = None

    # Bridging / fusion terms
    min_loan: str = ""
    max_loan: str = ""
    charge_type: str = "First Charge"
    min_term: Decimal | None = None
    max_term: Decimal | None = None
    min_rolled_months: Decimal | None = None
    erc_1: Decimal | None = None
    erc_2: Decimal | None = None

    @builtins.property
    def is_tracker(self) -> bool:
        return "Tracker" in self.product


@dataclass(frozen=True)
class RecordAnomaly:
    """Data-health issue found while normalizing (non-numeric fee, missing LTV)."""
    kind: str  # "non_numeric_fee" | "missing_max_ltv"
    record_id: int | str | None
    product: str
    raw_value: object = None


@dataclass(frozen=True)
class NormalizedBatch:
    records: tuple[RateRecord, ...]
    anomalies: tuple[RecordAnomaly, ...] = ()
    rejected: int = 0
