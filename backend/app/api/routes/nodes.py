"""Node type catalogue.

Lists every registered node factory grouped by category, and exposes the
Cronbach alpha generator's CSV analysis so a client can prefill its option map
from an existing survey file.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import get_current_tenant_id
from app.engine.nodes.cronbach_alpha import analyze_csv_options
from app.engine.registry import get_registry
from app.schemas.node import (
    CronbachCsvAnalysisRequest,
    CronbachCsvAnalysisResponse,
    NodeCatalogueResponse,
    NodeCategoryResponse,
    NodeTypeResponse,
)

router = APIRouter(dependencies=[Depends(get_current_tenant_id)])


@router.get("", response_model=NodeCatalogueResponse)
async def list_node_types():
    grouped = get_registry().get_factories_by_category()
    categories = [
        NodeCategoryResponse(
            category=category,
            nodes=[NodeTypeResponse(**factory.to_dict()) for factory in factories],
        )
        for category, factories in grouped.items()
    ]
    return NodeCatalogueResponse(
        categories=categories,
        total=sum(len(c.nodes) for c in categories),
    )


@router.get("/{factory_id}", response_model=NodeTypeResponse)
async def get_node_type(factory_id: str):
    factory = get_registry().get_factory(factory_id)
    if factory is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Node type not found")
    return NodeTypeResponse(**factory.to_dict())


@router.post(
    "/cronbach-alpha-generator/analyze-csv",
    response_model=CronbachCsvAnalysisResponse,
)
async def analyze_survey_csv(body: CronbachCsvAnalysisRequest):
    try:
        headers, option_map = analyze_csv_options(body.csv_text)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return CronbachCsvAnalysisResponse(
        headers=headers,
        optionMap={str(k): v for k, v in option_map.items()},
        questionCount=sum(option_map.values()),
    )
