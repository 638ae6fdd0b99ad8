"""Merge/uniformity resolution and cell rendering.

Defer and rolled-months rows merge per tier when every product that has
data shows the same text. Bridging/fusion term rows merge only when all
products are directly equal. Fee-header and revert rows always merge.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from src.models.edit import EditContext
from src.models.matrix import NO_DATA, CellGroup, DisplayRow, MergePolicy, RateMatrix


@dataclass(frozen=True)
class RenderedCell:
    text: str
    colspan: int = 1
    tier: str | None = None
    product: str | None = None
    value: Decimal | None = None
    record_id: int | str | None = None
    context: EditContext | None = None

    @property
    def editable(self) -> bool:
        return self.record_id is not None and self.context is not None


def is_uniform(values: Sequence[str]) -> bool:
    """True when at least one real value exists and all real values match."""
    real = [v for v in values if v != NO_DATA]
    return bool(real) and all(v == real[0] for v in real)


def uniform_value(values: Sequence[str]) -> str | None:
    real = [v for v in values if v != NO_DATA]
    return real[0] if is_uniform(values) else None


def all_equal(values: Sequence[object]) -> bool:
    return bool(values) and all(v == values[0] for v in values)


def _merged_text(group: CellGroup) -> str:
    if group.merged is not None:
        return group.merged
    return group.cells[0].display if group.cells else NO_DATA


def render_group(
    row: DisplayRow,
    group: CellGroup,
    products: Sequence[str],
) -> list[RenderedCell]:
    merge = row.merge_policy is MergePolicy.ALWAYS or (
        row.merge_policy is MergePolicy.WHEN_UNIFORM and group.uniform
    )
    if merge:
        return [RenderedCell(text=_merged_text(group), colspan=len(products), tier=group.tier)]

    rendered = []
    for product, cell in zip(products, group.cells):
        rendered.append(RenderedCell(
            text=cell.display,
            tier=group.tier,
            product=product,
            value=cell.value,
            record_id=cell.record_id,
            context=cell.context,
        ))
    return rendered


def render_row(row: DisplayRow, products: Sequence[str]) -> list[RenderedCell]:
    cells: list[RenderedCell] = []
    for group in row.groups:
        cells.extend(render_group(row, group, products))
    return cells


def render_matrix(matrix: RateMatrix) -> list[tuple[DisplayRow, list[RenderedCell]]]:
    return [(row, render_row(row, matrix.products)) for row in matrix.rows]
