"""CLI for inspecting a product category's rate matrix.

Usage:
    python -m src.data.matrix_cli specialist
    python -m src.data.matrix_cli bridging-variable --property-tab commercial
    python -m src.data.matrix_cli --health RATES_SPEC --property Residential
"""

import argparse
import asyncio
import sys

from src.data.matrix_loader import RateMatrixLoader
from src.data.rates_client import RatesClient
from src.engine.merge import render_matrix
from src.models.matrix import RateMatrix
from src.models.rates import Category, PropertyTab

COL_WIDTH = 14


def _fit(text: str, width: int) -> str:
    return text if len(text) <= width else text[: width - 1] + "…"


def print_matrix(matrix: RateMatrix) -> None:
    print(f"\n{'=' * 60}")
    print(f"  Rates: {matrix.category.value} ({matrix.property_tab.value})")
    print(f"{'=' * 60}")
    if matrix.is_empty:
        print("  No rates available for this product category\n")
        return

    label_width = 22
    if matrix.tiers:
        tier_line = "".join(f"{tier:^{COL_WIDTH * len(matrix.products)}}" for tier in matrix.tiers)
        print(f"  {'':<{label_width}}{tier_line}")
        columns = [p for _ in matrix.tiers for p in matrix.products]
    else:
        columns = list(matrix.products)
    print(f"  {'':<{label_width}}" + "".join(f"{_fit(p, COL_WIDTH - 1):^{COL_WIDTH}}" for p in columns))

    for row, cells in render_matrix(matrix):
        line = "".join(
            f"{_fit(cell.text, COL_WIDTH * cell.colspan - 1):^{COL_WIDTH * cell.colspan}}" for cell in cells
        )
        print(f"  {_fit(row.label, label_width - 1):<{label_width}}{line}")
    print()

    if matrix.dropped_duplicates:
        print(f"  Duplicate records dropped: {matrix.dropped_duplicates}")
    if matrix.anomalies:
        print(f"  Data-health anomalies:     {len(matrix.anomalies)}")
    print()


def print_health(report) -> None:
    s = report.stats
    print(f"\n{'=' * 60}")
    print(f"  Data Health: {s.set_key} ({s.property})")
    print(f"{'=' * 60}")
    print(f"  Total rows:               {s.total_rows}")
    print(f"  Exact duplicate groups:   {s.exact_duplicate_groups}")
    print(f"  Cross-tier groups:        {s.cross_tier_duplicate_groups}")
    print(f"  Non-numeric fees:         {s.non_numeric_fees}")
    print(f"  Missing max LTV:          {s.missing_max_ltv}")
    print()
    for group in report.exact_duplicates:
        print(f"  [EXACT]  {group.product} fee={group.fee} tier={group.tiers[0]} x{group.count}  ids={list(group.sample_ids)}")
    for group in report.cross_tier_duplicates:
        print(f"  [CROSS]  {group.product} fee={group.fee} tiers={', '.join(group.tiers)} x{group.count}")
    print()


async def main() -> None:
    parser = argparse.ArgumentParser(description="Rate matrix CLI")
    parser.add_argument("category", nargs="?", choices=[c.value for c in Category], help="Product category")
    parser.add_argument(
        "--property-tab",
        choices=[t.value for t in PropertyTab],
        default=PropertyTab.RESIDENTIAL.value,
        help="Bridging/fusion property tab (default: residential)",
    )
    parser.add_argument("--health", metavar="SET_KEY", help="Print the data-health report for a rate set")
    parser.add_argument("--property", help="Property filter for --health")
    parser.add_argument("--base-url", help="Rates API base URL (default: from settings)")

    args = parser.parse_args()
    loader = RateMatrixLoader(RatesClient(base_url=args.base_url))

    if args.health:
        result = await loader.data_health(args.health, args.property)
        if not result.ok:
            print(f"Error: {result.message}", file=sys.stderr)
            sys.exit(1)
        print_health(result.value)
        return

    if not args.category:
        parser.error("category is required (unless using --health)")

    result = await loader.load(Category(args.category), PropertyTab(args.property_tab))
    if not result.ok:
        print(f"Error: {result.message}", file=sys.stderr)
        sys.exit(1)
    print_matrix(result.value)


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
