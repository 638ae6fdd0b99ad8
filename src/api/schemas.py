"""Pydantic schemas for API response models."""

from pydantic import BaseModel, Field


# ---- Matrix ----

class CellResponse(BaseModel):
    text: str
    colspan: int = 1
    tier: str | None = None
    product: str | None = None
    record_id: int | str | None = None
    editable: bool = False
    context: dict | None = None


class RowResponse(BaseModel):
    key: str
    kind: str
    label: str
    cells: list[CellResponse]


class AnomalyResponse(BaseModel):
    kind: str
    record_id: int | str | None = None
    product: str
    raw_value: str | None = None


class MatrixResponse(BaseModel):
    category: str
    property_tab: str
    tiers: list[str]
    products: list[str]
    rows: list[RowResponse]
    is_empty: bool
    message: str | None = Field(None, description="Shown instead of the table for an empty scope")
    dropped_duplicates: int = 0
    anomalies: list[AnomalyResponse] = []


# ---- Data health ----

class DataHealthStatsResponse(BaseModel):
    set_key: str
    property: str
    total_rows: int
    exact_duplicate_groups: int
    cross_tier_duplicate_groups: int
    non_numeric_fees: int
    missing_max_ltv: int


class DuplicateGroupResponse(BaseModel):
    property: str
    product: str
    fee: str
    tiers: list[str]
    rate: str | None = None
    count: int
    sample_ids: list[int | str | None]


class FieldAnomalyResponse(BaseModel):
    id: int | str | None = None
    product: str
    value: str | None = None


class DataHealthResponse(BaseModel):
    stats: DataHealthStatsResponse
    exact_duplicates: list[DuplicateGroupResponse]
    cross_tier_duplicates: list[DuplicateGroupResponse]
    non_numeric_fees: list[FieldAnomalyResponse]
    missing_max_ltv: list[FieldAnomalyResponse]
