"""Rate data-health routes."""

from fastapi import APIRouter, Depends, HTTPException

from src.api.deps import get_matrix_loader
from src.api.schemas import (
    DataHealthResponse,
    DataHealthStatsResponse,
    DuplicateGroupResponse,
    FieldAnomalyResponse,
)
from src.data.matrix_loader import RateMatrixLoader
from src.engine.data_health import DataHealthReport, DuplicateGroup, FieldAnomaly

router = APIRouter(prefix="/api/v1", tags=["data-health"])


def _group(g: DuplicateGroup) -> DuplicateGroupResponse:
    return DuplicateGroupResponse(
        property=g.property,
        product=g.product,
        fee=g.fee,
        tiers=list(g.tiers),
        rate=g.rate,
        count=g.count,
        sample_ids=list(g.sample_ids),
    )


def _anomaly(a: FieldAnomaly) -> FieldAnomalyResponse:
    return FieldAnomalyResponse(
        id=a.id,
        product=a.product,
        value=None if a.value is None else str(a.value),
    )


def _report_to_response(report: DataHealthReport) -> DataHealthResponse:
    s = report.stats
    return DataHealthResponse(
        stats=DataHealthStatsResponse(
            set_key=s.set_key,
            property=s.property,
            total_rows=s.total_rows,
            exact_duplicate_groups=s.exact_duplicate_groups,
            cross_tier_duplicate_groups=s.cross_tier_duplicate_groups,
            non_numeric_fees=s.non_numeric_fees,
            missing_max_ltv=s.missing_max_ltv,
        ),
        exact_duplicates=[_group(g) for g in report.exact_duplicates],
        cross_tier_duplicates=[_group(g) for g in report.cross_tier_duplicates],
        non_numeric_fees=[_anomaly(a) for a in report.non_numeric_fees],
        missing_max_ltv=[_anomaly(a) for a in report.missing_max_ltv],
    )


@router.get("/data-health", response_model=DataHealthResponse)
async def get_data_health(
    set_key: str = "RATES_SPEC",
    property: str | None = None,
    loader: RateMatrixLoader = Depends(get_matrix_loader),
):
    """Duplicate groups and field anomalies for one rate set."""
    result = await loader.data_health(set_key, property)
    if not result.ok:
        raise HTTPException(status_code=502, detail=result.message)
    return _report_to_response(result.value)
