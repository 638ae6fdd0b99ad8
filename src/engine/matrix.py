"""Row/matrix builder.

Walks a structured index and emits the ordered display rows for one product
category. Two layouts:

- tiered (BTL): per fee band a fee-range header, a rate row and a revert
  row, then the deferred-interest and rolled-months rows;
- bridging/fusion: one row per LTV bracket (or a single coupon-rate row for
  fusion) followed by product info rows.

Builders are pure. The same records always give identical rows, so the
matrix can be rebuilt from scratch after every save.
"""

import logging
import re
from collections.abc import Iterable, Sequence
from decimal import ROUND_HALF_UP, Decimal

from src.engine.merge import all_equal, is_uniform, uniform_value
from src.engine.resolver import (
    category_scope,
    resolve_fee_bands,
    resolve_products,
    resolve_tiers,
    tiered_products,
)
from src.engine.structuring import (
    DuplicatePolicy,
    build_bridging_index,
    build_fusion_index,
    build_index,
    keep_existing,
)
from src.models.edit import EditContext
from src.models.matrix import (
    NO_DATA,
    NOT_AVAILABLE,
    BridgingIndex,
    Cell,
    CellGroup,
    DeferRow,
    DisplayRow,
    FeeHeaderRow,
    FusionIndex,
    InfoRow,
    LtvRateRow,
    RateMatrix,
    RateRow,
    RevertRow,
    RolledMonthsRow,
    StructuredIndex,
)
from src.models.rates import Category, CategoryScope, Layout, PropertyTab, RateRecord, RecordAnomaly

logger = logging.getLogger(__name__)

TOP_TIER = "Tier 1"
DEFAULT_PRODUCT_MAX_LTV = Decimal("75")

# (min_ltv, max_ltv) brackets shown on the bridging tables
DEFAULT_LTV_BRACKETS: tuple[tuple[int, int], ...] = ((0, 60), (60, 70), (70, 75))

_LEADING_INT = re.compile(r"^\s*[-+]?\d+")


def format_number(value: Decimal | None) -> str:
    """Plain decimal string without trailing zeros: 2.50 -> '2.5', 1E+1 -> '10'."""
    if value is None:
        return NO_DATA
    return format(value.normalize(), "f")


def format_rate(value: Decimal, tracker: bool = False) -> str:
    text = f"{value.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)}%"
    return f"{text} +BBR" if tracker else text


def _format_loan(raw: str) -> str:
    if not raw:
        return ""
    cleaned = re.sub(r"[£?,]", "", str(raw))
    match = _LEADING_INT.match(cleaned)
    if match is None:
        return str(raw)
    num = int(match.group())
    if num >= 1_000_000:
        millions = (Decimal(num) / 1_000_000).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return f"£{millions}m"
    if num >= 1_000:
        thousands = (Decimal(num) / 1_000).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return f"£{thousands}k"
    return f"£{num}"


def format_loan_range(min_loan: str, max_loan: str) -> str:
    """'£250k - £2m' style range; an open-ended maximum ('10m+') gives '£250k+'."""
    low = _format_loan(min_loan)
    high = _format_loan(max_loan)
    if "+" in str(max_loan or "") or "+" in high:
        return f"{low}+"
    return f"{low} - {high}"


# ---- Tiered (BTL) layout ----

def _fee_header_row(index: StructuredIndex, tiers: Sequence[str], products: Sequence[str], fee: Decimal) -> FeeHeaderRow:
    groups = []
    for tier in tiers:
        text = f"{format_number(fee)}% fee range" if index.tiers[tier].offers_fee(fee, tuple(products)) else NO_DATA
        groups.append(CellGroup(tier=tier, uniform=True, merged=text))
    return FeeHeaderRow(key=f"fee-{format_number(fee)}", label="Fee range", groups=tuple(groups), fee=fee)


def _rate_cell(record: RateRecord | None, scope: CategoryScope, tier: str, product: str, fee: Decimal) -> Cell:
    if record is None or record.rate is None:
        return Cell(display=NO_DATA)
    context = EditContext(
        set_key=record.set_key or scope.set_key,
        product=product,
        tier=tier,
        fee=fee,
    )
    return Cell(
        display=format_rate(record.rate, tracker=record.is_tracker),
        value=record.rate,
        record_id=record.id,
        context=context if record.id is not None else None,
    )


def _rate_row(
    index: StructuredIndex,
    tiers: Sequence[str],
    products: Sequence[str],
    fee: Decimal,
    scope: CategoryScope,
) -> RateRow:
    groups = []
    for tier in tiers:
        bucket = index.tiers[tier]
        cells = []
        for product in products:
            product_bucket = bucket.products.get(product)
            record = product_bucket.first_cell_for_fee(fee) if product_bucket is not None else None
            cells.append(_rate_cell(record, scope, tier, product, fee))
        groups.append(CellGroup(tier=tier, cells=tuple(cells)))
    return RateRow(key=f"rate-{format_number(fee)}", label="Rate", groups=tuple(groups), fee=fee)


def _revert_text(index: StructuredIndex, tier: str, products: Sequence[str], fee: Decimal) -> str:
    """MVR, plus the margin of the first product in the tier offering this fee."""
    if tier == TOP_TIER:
        return "MVR"
    bucket = index.tiers[tier]
    for product in products:
        product_bucket = bucket.products.get(product)
        record = product_bucket.first_cell_for_fee(fee) if product_bucket is not None else None
        if record is None:
            continue
        if record.revert_margin is None:
            return "MVR"
        sign = "+" if record.revert_margin >= 0 else ""
        return f"MVR {sign}{format_number(record.revert_margin)}%"
    return "MVR"


def _revert_row(index: StructuredIndex, tiers: Sequence[str], products: Sequence[str], fee: Decimal) -> RevertRow:
    groups = tuple(
        CellGroup(tier=tier, uniform=True, merged=_revert_text(index, tier, products, fee))
        for tier in tiers
    )
    return RevertRow(key=f"revert-{format_number(fee)}", label="Revert rate", groups=groups, fee=fee)


def _term_groups(
    index: StructuredIndex,
    tiers: Sequence[str],
    products: Sequence[str],
    attr: str,
    suffix: str,
) -> tuple[CellGroup, ...]:
    groups = []
    for tier in tiers:
        bucket = index.tiers[tier]
        cells = []
        for product in products:
            product_bucket = bucket.products.get(product)
            value = getattr(product_bucket, attr) if product_bucket is not None else None
            if value is None:
                value = getattr(bucket, attr)
            display = f"{format_number(value)}{suffix}" if value is not None else NO_DATA
            cells.append(Cell(display=display, value=value))
        values = [c.display for c in cells]
        groups.append(CellGroup(
            tier=tier,
            cells=tuple(cells),
            uniform=is_uniform(values),
            merged=uniform_value(values),
        ))
    return tuple(groups)


def build_tiered_rows(
    index: StructuredIndex,
    tiers: Sequence[str],
    products: Sequence[str],
    scope: CategoryScope,
) -> tuple[DisplayRow, ...]:
    rows: list[DisplayRow] = []
    for fee in resolve_fee_bands(index, tiers):
        rows.append(_fee_header_row(index, tiers, products, fee))
        rows.append(_rate_row(index, tiers, products, fee, scope))
        rows.append(_revert_row(index, tiers, products, fee))

    if scope.allows_deferred_terms:
        rows.append(DeferRow(
            key="defer",
            label="Defer up to",
            groups=_term_groups(index, tiers, products, "max_defer_int", "%"),
        ))
        rows.append(RolledMonthsRow(
            key="rolled_months",
            label="Rolled months",
            groups=_term_groups(index, tiers, products, "max_rolled_months", "m"),
        ))
    return tuple(rows)


# ---- Bridging / fusion layouts ----

def _info_row(key: str, label: str, entries: Sequence[tuple[str, object]]) -> InfoRow:
    """entries: (display text, comparable value) per product."""
    cells = tuple(Cell(display=display) for display, _ in entries)
    uniform = all_equal([raw for _, raw in entries])
    merged = cells[0].display if uniform else None
    return InfoRow(key=key, label=label, groups=(CellGroup(tier=None, cells=cells, uniform=uniform, merged=merged),))


def _bridging_cell(
    index: BridgingIndex,
    product: str,
    bracket: tuple[int, int],
    scope: CategoryScope,
) -> Cell:
    low, high = Decimal(bracket[0]), Decimal(bracket[1])
    data = index.products[product]
    product_max = data.max_ltv or DEFAULT_PRODUCT_MAX_LTV
    record = data.cells.get((low, high))
    if high > product_max or record is None or not record.rate:
        return Cell(display=NOT_AVAILABLE)
    context = EditContext(
        set_key=record.set_key or scope.set_key,
        product=product,
        property=record.property or scope.property,
        min_ltv=low,
        max_ltv=high,
    )
    return Cell(
        display=f"{format_number(record.rate)}%",
        value=record.rate,
        record_id=record.id,
        context=context if record.id is not None else None,
    )


def build_bridging_rows(
    index: BridgingIndex,
    products: Sequence[str],
    scope: CategoryScope,
    brackets: Iterable[tuple[int, int]] = DEFAULT_LTV_BRACKETS,
) -> tuple[DisplayRow, ...]:
    rows: list[DisplayRow] = []
    for low, high in brackets:
        cells = tuple(_bridging_cell(index, p, (low, high), scope) for p in products)
        rows.append(LtvRateRow(
            key=f"ltv-{low}-{high}",
            label=f"Rates: {high}% LTV",
            groups=(CellGroup(tier=None, cells=cells),),
            min_ltv=Decimal(low),
            max_ltv=Decimal(high),
        ))

    data = [index.products[p] for p in products]
    rows.append(_info_row("loan_size", "Loan Size", [
        (format_loan_range(d.min_loan, d.max_loan), (d.min_loan, d.max_loan)) for d in data
    ]))
    rows.append(_info_row("max_ltv", "Max. LTV", [
        (f"{format_number(d.max_ltv or DEFAULT_PRODUCT_MAX_LTV)}%", d.max_ltv or DEFAULT_PRODUCT_MAX_LTV) for d in data
    ]))
    rows.append(_info_row("charge_type", "Charge Type", [
        ("2nd" if "Second" in d.charge_type else "1st", d.charge_type) for d in data
    ]))
    rows.append(_info_row("term", "Term (months)", [
        (f"{format_number(d.min_term)} - {format_number(d.max_term)}", (d.min_term, d.max_term)) for d in data
    ]))
    rows.append(_info_row("arrangement_fee", "Arrangement Fee (from)", [
        (f"{format_number(d.fee)}%", d.fee) for d in data
    ]))
    return tuple(rows)


def _fusion_rate_cell(record: RateRecord, scope: CategoryScope) -> Cell:
    if record.rate is None:
        return Cell(display=NO_DATA)
    context = EditContext(
        set_key=record.set_key or scope.set_key,
        product=record.product,
        property=record.property or scope.property,
    )
    return Cell(
        display=f"{format_number(record.rate)}%",
        value=record.rate,
        record_id=record.id,
        context=context if record.id is not None else None,
    )


def build_fusion_rows(
    index: FusionIndex,
    products: Sequence[str],
    scope: CategoryScope,
) -> tuple[DisplayRow, ...]:
    records = [index.products[p] for p in products]
    rate_cells = tuple(_fusion_rate_cell(r, scope) for r in records)

    def months(value: Decimal) -> str:
        return f"{format_number(value)} months"

    return (
        RateRow(
            key="coupon_rate",
            label="Coupon Rate (+BBR)",
            groups=(CellGroup(tier=None, cells=rate_cells),),
            fee=None,
        ),
        _info_row("loan_size", "Loan Size", [
            (format_loan_range(r.min_loan, r.max_loan), (r.min_loan, r.max_loan)) for r in records
        ]),
        _info_row("max_ltv", "Max LTV", [(f"{format_number(r.max_ltv)}%", r.max_ltv) for r in records]),
        _info_row("arrangement_fee", "Arrangement Fee", [(f"{format_number(r.fee)}%", r.fee) for r in records]),
        _info_row("initial_term", "Initial Term", [(months(r.min_term), r.min_term) for r in records]),
        _info_row("min_rolled", "Min. Rolled Interest", [
            (months(r.min_rolled_months), r.min_rolled_months) for r in records
        ]),
        _info_row("max_rolled", "Max Rolled Interest", [
            (months(r.max_rolled_months), r.max_rolled_months) for r in records
        ]),
        _info_row("deferred_interest", "Deferred Interest", [
            (f"{format_number(r.max_defer_int)}%", r.max_defer_int) for r in records
        ]),
        _info_row("erc", "ERC", [
            (
                f"{format_number(r.erc_1)}% in year 1, {format_number(r.erc_2)}% in year 2",
                (r.erc_1, r.erc_2),
            )
            for r in records
        ]),
    )


# ---- Entry point ----

def build_matrix(
    records: Iterable[RateRecord],
    category: Category,
    property_tab: PropertyTab = PropertyTab.RESIDENTIAL,
    policy: DuplicatePolicy = keep_existing,
    anomalies: Sequence[RecordAnomaly] = (),
) -> RateMatrix:
    """Structure normalized records and build the display rows for a category.

    An empty scope (no tiers or no products) gives a matrix whose
    ``is_empty`` is True rather than an error.
    """
    scope = category_scope(category, property_tab)
    records = list(records)

    if scope.layout is Layout.TIERED:
        index = build_index(records, policy)
        tiers = resolve_tiers(index, category)
        products = tiered_products(index, tiers, category)
        rows = build_tiered_rows(index, tiers, products, scope) if tiers and products else ()
        dropped = index.dropped_duplicates
    elif scope.layout is Layout.BRIDGING:
        bridging = build_bridging_index(records, property_tab, policy)
        tiers = ()
        products = resolve_products(bridging.products, category, property_tab)
        rows = build_bridging_rows(bridging, products, scope) if products else ()
        dropped = bridging.dropped_duplicates
    else:
        fusion = build_fusion_index(records, property_tab, policy)
        tiers = ()
        products = resolve_products(fusion.products, category, property_tab)
        rows = build_fusion_rows(fusion, products, scope) if products else ()
        dropped = fusion.dropped_duplicates

    if not products:
        logger.info("No rates available for %s (%s)", category.value, property_tab.value)

    return RateMatrix(
        category=category,
        tiers=tuple(tiers),
        products=tuple(products),
        rows=tuple(rows),
        property_tab=property_tab,
        dropped_duplicates=dropped,
        anomalies=tuple(anomalies),
    )
