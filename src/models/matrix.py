"""Structured index and display-row types.

Everything here is frozen: an index or a row sequence is built once per
refresh and replaced wholesale, never patched.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import ClassVar

from src.models.edit import EditContext
from src.models.rates import Category, PropertyTab, RecordAnomaly, RateRecord

NO_DATA = "—"
NOT_AVAILABLE = "N/a"

LtvFeeKey = tuple[Decimal | None, Decimal | None]  # (max_ltv, fee)
LtvBracketKey = tuple[Decimal, Decimal]  # (min_ltv, max_ltv)


# ---- Structured index ----

@dataclass(frozen=True)
class ProductBucket:
    product: str
    fee_bands: frozenset[Decimal]
    cells: Mapping[LtvFeeKey, RateRecord]  # insertion ordered
    max_defer_int: Decimal | None = None
    max_rolled_months: Decimal | None = None

    def first_cell_for_fee(self, fee: Decimal) -> RateRecord | None:
        for (_, cell_fee), record in self.cells.items():
            if cell_fee is not None and cell_fee == fee:
                return record
        return None


@dataclass(frozen=True)
class TierBucket:
    tier: str
    products: Mapping[str, ProductBucket]
    max_defer_int: Decimal | None = None
    max_rolled_months: Decimal | None = None

    def offers_fee(self, fee: Decimal, products: tuple[str, ...] | None = None) -> bool:
        names = products if products is not None else tuple(self.products)
        return any(
            fee in self.products[p].fee_bands for p in names if p in self.products
        )


@dataclass(frozen=True)
class StructuredIndex:
    tiers: Mapping[str, TierBucket]
    dropped_duplicates: int = 0


@dataclass(frozen=True)
class BridgingProduct:
    product: str
    cells: Mapping[LtvBracketKey, RateRecord]
    max_ltv: Decimal  # highest advertised max LTV across the product's records
    min_loan: str = ""
    max_loan: str = ""
    charge_type: str = "First Charge"
    min_term: Decimal | None = None
    max_term: Decimal | None = None
    fee: Decimal | None = None


@dataclass(frozen=True)
class BridgingIndex:
    products: Mapping[str, BridgingProduct]
    dropped_duplicates: int = 0


@dataclass(frozen=True)
class FusionIndex:
    products: Mapping[str, RateRecord]
    dropped_duplicates: int = 0


# ---- Display rows ----

class MergePolicy(Enum):
    ALWAYS = "always"
    WHEN_UNIFORM = "when_uniform"
    NEVER = "never"


@dataclass(frozen=True)
class Cell:
    display: str
    value: Decimal | None = None
    record_id: int | str | None = None
    context: EditContext | None = None

    @property
    def editable(self) -> bool:
        return self.record_id is not None and self.context is not None


@dataclass(frozen=True)
class CellGroup:
    """One tier's slice of a row (tier is None for single-group layouts)."""
    tier: str | None
    cells: tuple[Cell, ...] = ()
    uniform: bool = False
    merged: str | None = None

    @property
    def values(self) -> tuple[str, ...]:
        return tuple(c.display for c in self.cells)


@dataclass(frozen=True)
class DisplayRow:
    key: str
    label: str
    groups: tuple[CellGroup, ...]

    kind: ClassVar[str] = "row"
    merge_policy: ClassVar[MergePolicy] = MergePolicy.NEVER


@dataclass(frozen=True)
class FeeHeaderRow(DisplayRow):
    fee: Decimal
    kind: ClassVar[str] = "fee_header"
    merge_policy: ClassVar[MergePolicy] = MergePolicy.ALWAYS


@dataclass(frozen=True)
class RateRow(DisplayRow):
    fee: Decimal | None
    kind: ClassVar[str] = "rate"


@dataclass(frozen=True)
class RevertRow(DisplayRow):
    fee: Decimal
    kind: ClassVar[str] = "revert"
    merge_policy: ClassVar[MergePolicy] = MergePolicy.ALWAYS


@dataclass(frozen=True)
class DeferRow(DisplayRow):
    kind: ClassVar[str] = "defer"
    merge_policy: ClassVar[MergePolicy] = MergePolicy.WHEN_UNIFORM


@dataclass(frozen=True)
class RolledMonthsRow(DisplayRow):
    kind: ClassVar[str] = "rolled_months"
    merge_policy: ClassVar[MergePolicy] = MergePolicy.WHEN_UNIFORM


@dataclass(frozen=True)
class LtvRateRow(DisplayRow):
    min_ltv: Decimal
    max_ltv: Decimal
    kind: ClassVar[str] = "ltv_rate"


@dataclass(frozen=True)
class InfoRow(DisplayRow):
    """Bridging/fusion term row; merged when every product shows the same value."""
    kind: ClassVar[str] = "info"
    merge_policy: ClassVar[MergePolicy] = MergePolicy.WHEN_UNIFORM


@dataclass(frozen=True)
class RateMatrix:
    category: Category
    tiers: tuple[str, ...]
    products: tuple[str, ...]
    rows: tuple[DisplayRow, ...]
    property_tab: PropertyTab = PropertyTab.RESIDENTIAL
    dropped_duplicates: int = 0
    anomalies: tuple[RecordAnomaly, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not self.products or not self.rows
