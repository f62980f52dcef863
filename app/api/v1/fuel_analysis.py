from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from app.database import get_db
from app.middleware.auth import require_permissions
from app.core.analysis_engine import FuelAnalysisEngine, coerce_product
from app.core.date_range import parse_window_days
from app.core.exceptions import InvalidProductError
from app.core.record_store import SqlAlchemyFuelRecordStore

router = APIRouter(dependencies=[Depends(require_permissions("read:data"))])


def get_analysis_engine(db: AsyncSession = Depends(get_db)) -> FuelAnalysisEngine:
    return FuelAnalysisEngine(SqlAlchemyFuelRecordStore(db))


def _require_product(product: Optional[str], detail: str = "Invalid product type"):
    code = coerce_product(product) if product else None
    if code is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail
        )
    return code


@router.get("/summary")
async def get_summary(engine: FuelAnalysisEngine = Depends(get_analysis_engine)):
    """Latest price of each product with its change from the previous record"""
    summary = await engine.summary()
    return {"success": True, "data": summary}


@router.get("/average/all-time")
async def get_all_time_national_average(engine: FuelAnalysisEngine = Depends(get_analysis_engine)):
    """National average of every product across all records"""
    data = await engine.national_average()
    return {"success": True, "data": data}


@router.get("/average-by-region")
async def get_average_by_region(engine: FuelAnalysisEngine = Depends(get_analysis_engine)):
    """Average price of every product per region"""
    data = await engine.average_by_region()
    return {"success": True, "data": data}


@router.get("/top/{product}")
async def get_top_states_by_product(
    product: str,
    order: str = Query("desc"),
    engine: FuelAnalysisEngine = Depends(get_analysis_engine)
):
    """Five states with the highest (or lowest, order=asc) average price"""
    try:
        data = await engine.top_states(product.upper(), "asc" if order == "asc" else "desc")
    except InvalidProductError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    return {"success": True, "data": data}


@router.get("/trends")
async def get_trends(
    product: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    region: Optional[str] = Query(None),
    range_token: str = Query("30d", alias="range"),
    engine: FuelAnalysisEngine = Depends(get_analysis_engine)
):
    """Average price per period for a product, scoped to a state or a region"""
    code = _require_product(product, "Invalid or missing product type")

    trend = await engine.trend(code, state=state, region=region, range_token=range_token)

    return {
        "success": True,
        "data": {
            "filters": {
                "product": code.value,
                "state": state or None,
                "region": region or None,
                "range": range_token,
            },
            "trend": trend,
        },
    }


@router.get("/mini-trend")
async def get_mini_trend(
    state: Optional[str] = Query(None),
    product: Optional[str] = Query(None),
    engine: FuelAnalysisEngine = Depends(get_analysis_engine)
):
    """Last seven observations of a product in a state"""
    if not state or not product:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="state and product are required"
        )
    code = _require_product(product)

    trend = await engine.mini_trend(state, code)
    return {
        "success": True,
        "data": {"state": state, "product": code.value, "trend": trend},
    }


@router.get("/price-change")
async def get_price_change(
    state: Optional[str] = Query(None),
    product: Optional[str] = Query(None),
    range_token: str = Query("7d", alias="range"),
    engine: FuelAnalysisEngine = Depends(get_analysis_engine)
):
    """Change between the latest price and the latest price at least `range` days old"""
    if not state or not product:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="state and product are required"
        )
    code = _require_product(product)

    result = await engine.price_change(state, code, parse_window_days(range_token))
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Insufficient data to calculate change"
        )

    return {
        "success": True,
        "data": {
            "state": state,
            "product": code.value,
            "range": range_token,
            **result.model_dump(by_alias=True),
        },
    }


@router.get("/weekly-report")
async def get_weekly_report(
    product: Optional[str] = Query(None),
    engine: FuelAnalysisEngine = Depends(get_analysis_engine)
):
    """Per-state price movement over each state's last seven observations"""
    if not product:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Product is required"
        )

    # Unknown products produce an empty report, not an error
    report = await engine.weekly_report(product)
    return {"success": True, "data": {"product": product, "report": report}}
