"""Data-health report for a raw rate set.

Flags the issues the structuring engine silently resolves or defaults:
exact duplicate rows, the same product and fee priced under more than one
tier (or bridging type/charge), non-numeric fees and missing max LTVs.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from src.engine.normalizer import parse_number

SAMPLE_IDS = 10


@dataclass(frozen=True)
class DuplicateGroup:
    property: str
    product: str
    fee: str
    tiers: tuple[str, ...]
    count: int
    sample_ids: tuple
    rate: str | None = None  # set for exact duplicates only


@dataclass(frozen=True)
class FieldAnomaly:
    id: object
    product: str
    value: object


@dataclass(frozen=True)
class DataHealthStats:
    set_key: str
    property: str
    total_rows: int
    exact_duplicate_groups: int
    cross_tier_duplicate_groups: int
    non_numeric_fees: int
    missing_max_ltv: int


@dataclass(frozen=True)
class DataHealthReport:
    stats: DataHealthStats
    exact_duplicates: tuple[DuplicateGroup, ...]
    cross_tier_duplicates: tuple[DuplicateGroup, ...]
    non_numeric_fees: tuple[FieldAnomaly, ...]
    missing_max_ltv: tuple[FieldAnomaly, ...]


def _number_key(value: object) -> str | None:
    try:
        number = parse_number(value)
    except ValueError:
        return None
    return None if number is None else format(number.normalize(), "f")


def tier_like(raw: Mapping) -> str:
    """Tier for BTL rows; "type/charge_type" for bridging rows, which have no tier."""
    if "tier" in raw:
        return str(raw.get("tier") or "")
    parts = [str(raw.get("type") or ""), str(raw.get("charge_type") or "")]
    return "/".join(p for p in parts if p)


def _fee_key(raw: Mapping) -> str:
    return _number_key(raw.get("product_fee")) or "none"


def _group(records: Iterable[Mapping], key) -> dict[tuple, list[Mapping]]:
    groups: dict[tuple, list[Mapping]] = {}
    for raw in records:
        groups.setdefault(key(raw), []).append(raw)
    return groups


def build_data_health_report(
    raw_records: Iterable[Mapping],
    set_key: str,
    property: str | None = None,
) -> DataHealthReport:
    records = [r for r in raw_records if isinstance(r, Mapping)]

    exact = []
    exact_groups = _group(records, lambda r: (
        str(r.get("property") or ""),
        str(r.get("product") or ""),
        _fee_key(r),
        tier_like(r),
        _number_key(r.get("rate")) or "",
    ))
    for (prop, product, fee, tier, rate), group in exact_groups.items():
        if len(group) > 1:
            exact.append(DuplicateGroup(
                property=prop,
                product=product,
                fee=fee,
                tiers=(tier,),
                rate=rate,
                count=len(group),
                sample_ids=tuple(r.get("id") for r in group[:SAMPLE_IDS]),
            ))

    cross = []
    cross_groups = _group(records, lambda r: (
        str(r.get("property") or ""),
        str(r.get("product") or ""),
        _fee_key(r),
    ))
    for (prop, product, fee), group in cross_groups.items():
        tiers = tuple(dict.fromkeys(tier_like(r) for r in group))
        if len(group) > 1 and len(tiers) > 1:
            cross.append(DuplicateGroup(
                property=prop,
                product=product,
                fee=fee,
                tiers=tiers,
                count=len(group),
                sample_ids=tuple(r.get("id") for r in group[:SAMPLE_IDS]),
            ))

    non_numeric_fees = tuple(
        FieldAnomaly(id=r.get("id"), product=str(r.get("product") or ""), value=r.get("product_fee"))
        for r in records
        if r.get("product_fee") not in (None, "") and _number_key(r.get("product_fee")) is None
    )
    missing_max_ltv = tuple(
        FieldAnomaly(id=r.get("id"), product=str(r.get("product") or ""), value=r.get("max_ltv"))
        for r in records
        if _number_key(r.get("max_ltv")) is None
    )

    stats = DataHealthStats(
        set_key=set_key,
        property=property or "ALL",
        total_rows=len(records),
        exact_duplicate_groups=len(exact),
        cross_tier_duplicate_groups=len(cross),
        non_numeric_fees=len(non_numeric_fees),
        missing_max_ltv=len(missing_max_ltv),
    )
    return DataHealthReport(
        stats=stats,
        exact_duplicates=tuple(exact),
        cross_tier_duplicates=tuple(cross),
        non_numeric_fees=non_numeric_fees,
        missing_max_ltv=missing_max_ltv,
    )
