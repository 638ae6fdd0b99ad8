"""Rate record normalizer.

Coerces loosely typed rows from the rates backend into RateRecord values.
Fallback defaults differ by layout and mirror what the rates screens have
always shown when a column is blank (e.g. a 2% arrangement fee for bridging
and fusion products).
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from decimal import Decimal, InvalidOperation

from src.models.errors import MalformedRecord
from src.models.rates import Layout, NormalizedBatch, RateRecord, RecordAnomaly

logger = logging.getLogger(__name__)

AnomalyReporter = Callable[[RecordAnomaly], None]

BRIDGING_DEFAULTS: dict[str, Decimal] = {
    "fee": Decimal("2"),
    "min_term": Decimal("3"),
    "max_term": Decimal("18"),
}

FUSION_DEFAULTS: dict[str, Decimal] = {
    "max_ltv": Decimal("70"),
    "fee": Decimal("2"),
    "min_term": Decimal("24"),
    "max_term": Decimal("24"),
    "min_rolled_months": Decimal("6"),
    "max_rolled_months": Decimal("12"),
    "max_defer_int": Decimal("2"),
    "erc_1": Decimal("3"),
    "erc_2": Decimal("1.5"),
}


def parse_number(value: object) -> Decimal | None:
    """Parse a finite Decimal. None/blank → None; anything else non-numeric → ValueError."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"not a number: {value!r}")
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"not a number: {value!r}")
    if not number.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return number


def _lenient(value: object) -> Decimal | None:
    try:
        return parse_number(value)
    except ValueError:
        return None


def _or_default(value: Decimal | None, default: Decimal) -> Decimal:
    # Zero counts as blank for the bridging/fusion term columns
    return value if value else default


def normalize_tier(raw_tier: object) -> str:
    label = str(raw_tier).strip() if raw_tier not in (None, "", 0) else "1"
    return label if label.startswith("Tier") else f"Tier {label}"


def normalize_record(
    raw: object,
    layout: Layout = Layout.TIERED,
    on_anomaly: AnomalyReporter | None = None,
) -> RateRecord:
    """Normalize one raw row. Raises MalformedRecord if the row is unusable."""
    if not isinstance(raw, Mapping):
        raise MalformedRecord(f"expected a mapping, got {type(raw).__name__}")

    record_id = raw.get("id")
    product = str(raw.get("product") or "").strip() or "Unknown"

    def report(kind: str, raw_value: object) -> None:
        if on_anomaly is not None:
            on_anomaly(RecordAnomaly(kind=kind, record_id=record_id, product=product, raw_value=raw_value))

    try:
        rate = parse_number(raw.get("rate"))
    except ValueError as e:
        raise MalformedRecord(f"record {record_id!r}: rate {e}") from e

    try:
        fee = parse_number(raw.get("product_fee"))
    except ValueError:
        report("non_numeric_fee", raw.get("product_fee"))
        fee = None

    raw_max_ltv = raw.get("max_ltv")
    try:
        max_ltv = parse_number(raw_max_ltv)
    except ValueError:
        max_ltv = None
    if max_ltv is None:
        report("missing_max_ltv", raw_max_ltv)

    common = dict(
        id=record_id,
        product=product,
        set_key=str(raw.get("set_key") or ""),
        property=raw.get("property") or None,
        rate=rate,
    )

    if layout is Layout.TIERED:
        return RateRecord(
            **common,
            tier=normalize_tier(raw.get("tier")),
            fee=fee,
            max_ltv=max_ltv if max_ltv is not None else Decimal("0"),
            revert_margin=_lenient(raw.get("revert_margin")),
            revert_index=str(raw.get("revert_index") or "MVR"),
            max_defer_int=_lenient(raw.get("max_defer_int")),
            max_rolled_months=_lenient(raw.get("max_rolled_months")),
        )

    if layout is Layout.BRIDGING:
        min_ltv = _lenient(raw.get("min_ltv"))
        return RateRecord(
            **common,
            fee=_or_default(fee, BRIDGING_DEFAULTS["fee"]),
            # LTV bracket bounds are whole percentages
            min_ltv=Decimal(int(min_ltv)) if min_ltv is not None else Decimal("0"),
            max_ltv=Decimal(int(max_ltv)) if max_ltv is not None else Decimal("0"),
            min_loan=str(raw.get("min_loan") or ""),
            max_loan=str(raw.get("max_loan") or ""),
            charge_type=str(raw.get("charge_type") or "First Charge"),
            min_term=_or_default(_lenient(raw.get("min_term")), BRIDGING_DEFAULTS["min_term"]),
            max_term=_or_default(_lenient(raw.get("max_term")), BRIDGING_DEFAULTS["max_term"]),
        )

    return RateRecord(
        **common,
        fee=_or_default(fee, FUSION_DEFAULTS["fee"]),
        max_ltv=_or_default(max_ltv, FUSION_DEFAULTS["max_ltv"]),
        min_loan=str(raw.get("min_loan") or ""),
        max_loan=str(raw.get("max_loan") or ""),
        min_term=_or_default(_lenient(raw.get("min_term")), FUSION_DEFAULTS["min_term"]),
        max_term=_or_default(_lenient(raw.get("max_term")), FUSION_DEFAULTS["max_term"]),
        min_rolled_months=_or_default(
            _lenient(raw.get("min_rolled_months")), FUSION_DEFAULTS["min_rolled_months"]
        ),
        max_rolled_months=_or_default(
            _lenient(raw.get("max_rolled_months")), FUSION_DEFAULTS["max_rolled_months"]
        ),
        max_defer_int=_or_default(_lenient(raw.get("max_defer_int")), FUSION_DEFAULTS["max_defer_int"]),
        erc_1=_or_default(_lenient(raw.get("erc_1")), FUSION_DEFAULTS["erc_1"]),
        erc_2=_or_default(_lenient(raw.get("erc_2")), FUSION_DEFAULTS["erc_2"]),
    )


def normalize_records(
    raws: Iterable[object],
    layout: Layout = Layout.TIERED,
    on_anomaly: AnomalyReporter | None = None,
) -> NormalizedBatch:
    """Normalize a batch, skipping malformed rows instead of failing the render."""
    records: list[RateRecord] = []
    anomalies: list[RecordAnomaly] = []
    rejected = 0

    def collect(anomaly: RecordAnomaly) -> None:
        anomalies.append(anomaly)
        if on_anomaly is not None:
            on_anomaly(anomaly)

    for raw in raws:
        try:
            records.append(normalize_record(raw, layout, collect))
        except MalformedRecord as e:
            rejected += 1
            logger.warning("Skipping malformed rate record: %s", e)

    if anomalies:
        logger.info("Normalized %d records with %d data-health anomalies", len(records), len(anomalies))

    return NormalizedBatch(records=tuple(records), anomalies=tuple(anomalies), rejected=rejected)
