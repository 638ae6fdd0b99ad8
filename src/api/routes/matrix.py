"""Rate matrix routes."""

from fastapi import APIRouter, Depends, HTTPException

from src.api.deps import get_matrix_loader
from src.api.schemas import AnomalyResponse, CellResponse, MatrixResponse, RowResponse
from src.data.matrix_loader import RateMatrixLoader
from src.engine.merge import render_matrix
from src.models.matrix import RateMatrix
from src.models.rates import Category, PropertyTab

router = APIRouter(prefix="/api/v1/matrix", tags=["matrix"])

EMPTY_MESSAGE = "No rates available for this product category"


def _matrix_to_response(matrix: RateMatrix) -> MatrixResponse:
    rows = [
        RowResponse(
            key=row.key,
            kind=row.kind,
            label=row.label,
            cells=[
                CellResponse(
                    text=cell.text,
                    colspan=cell.colspan,
                    tier=cell.tier,
                    product=cell.product,
                    record_id=cell.record_id,
                    editable=cell.editable,
                    context=cell.context.to_payload() if cell.context is not None else None,
                )
                for cell in cells
            ],
        )
        for row, cells in render_matrix(matrix)
    ]
    return MatrixResponse(
        category=matrix.category.value,
        property_tab=matrix.property_tab.value,
        tiers=list(matrix.tiers),
        products=list(matrix.products),
        rows=rows,
        is_empty=matrix.is_empty,
        message=EMPTY_MESSAGE if matrix.is_empty else None,
        dropped_duplicates=matrix.dropped_duplicates,
        anomalies=[
            AnomalyResponse(
                kind=a.kind,
                record_id=a.record_id,
                product=a.product,
                raw_value=None if a.raw_value is None else str(a.raw_value),
            )
            for a in matrix.anomalies
        ],
    )


@router.get("/{category}", response_model=MatrixResponse)
async def get_matrix(
    category: Category,
    property_tab: PropertyTab = PropertyTab.RESIDENTIAL,
    loader: RateMatrixLoader = Depends(get_matrix_loader),
):
    """Rendered rate matrix for a product category."""
    result = await loader.load(category, property_tab)
    if not result.ok:
        raise HTTPException(status_code=502, detail=result.message)
    return _matrix_to_response(result.value)
