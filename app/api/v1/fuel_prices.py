from fastapi import APIRouter, Depends, HTTPException, status, Query, UploadFile, File, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging
import math
from app.config import get_settings
from app.database import get_db
from app.middleware.auth import require_permissions
from app.models.fuel_price import FuelPrice, FUEL_PRODUCTS
from app.models.user import User
from app.core.analysis_engine import coerce_product
from app.core.date_range import RANGE_TOKENS
from app.core.exceptions import FuelImportError, error_body
from app.core.fuel_io import export_records, parse_upload, EXPORT_FORMATS
from app.core.record_store import FuelRecordStore, SqlAlchemyFuelRecordStore, RecordFilter, SORT_KEYS
from app.schemas.fuel_price import (
    FuelPriceCreate, FuelPriceUpdate, FuelPriceResponse, FuelPricePage, FuelFilters
)

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter()


def get_record_store(db: AsyncSession = Depends(get_db)) -> FuelRecordStore:
    return SqlAlchemyFuelRecordStore(db)


async def _get_or_404(store: FuelRecordStore, record_id: str) -> FuelPrice:
    record = await store.get(record_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Fuel price record not found"
        )
    return record


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_fuel_price(
    payload: FuelPriceCreate,
    current_user: User = Depends(require_permissions("write:data")),
    store: FuelRecordStore = Depends(get_record_store)
):
    """Record a new fuel price observation"""
    record = await store.add(FuelPrice(**payload.model_dump()))
    logger.info(f"User {current_user.id} created fuel price {record.id} for {record.state} on {record.period}")
    return {"success": True, "data": FuelPriceResponse.from_record(record)}


@router.get("", response_model=FuelPricePage)
async def list_fuel_prices(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None),
    sort_by: str = Query("period", alias="sortBy"),
    order: str = Query("desc"),
    product: Optional[str] = Query(None),
    min_price: Optional[float] = Query(None, alias="minPrice"),
    max_price: Optional[float] = Query(None, alias="maxPrice"),
    current_user: User = Depends(require_permissions("read:data")),
    store: FuelRecordStore = Depends(get_record_store)
):
    """List fuel prices (paginated) with search, sorting and a price band on one product"""
    sort_key = sort_by.upper() if coerce_product(sort_by) else sort_by
    if sort_key not in SORT_KEYS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"sortBy must be one of: {', '.join(SORT_KEYS)}"
        )

    record_filter = RecordFilter(
        search=search or None,
        product=coerce_product(product) if product else None,
        min_price=min_price,
        max_price=max_price,
    )

    total = await store.count(record_filter)
    records = await store.find_page(
        record_filter,
        sort_key,
        "asc" if order == "asc" else "desc",
        skip=(page - 1) * limit,
        limit=limit,
    )

    return FuelPricePage(
        page=page,
        limit=limit,
        total=total,
        total_pages=math.ceil(total / limit),
        data=[FuelPriceResponse.from_record(record) for record in records],
    )


@router.get("/filters")
async def get_filters(
    current_user: User = Depends(require_permissions("read:data")),
    store: FuelRecordStore = Depends(get_record_store)
):
    """Values available for filtering fuel prices and analyses"""
    states = await store.distinct_values("state")
    regions = await store.distinct_values("region")
    filters = FuelFilters(
        states=states,
        regions=regions,
        products=[product.value for product in FUEL_PRODUCTS],
        ranges=RANGE_TOKENS,
    )
    return {"success": True, "data": filters}


@router.get("/export")
async def export_fuel_prices(
    export_format: str = Query("csv", alias="format"),
    current_user: User = Depends(require_permissions("read:data")),
    store: FuelRecordStore = Depends(get_record_store)
):
    """Download every fuel price record as CSV or XLSX"""
    if export_format.lower() not in EXPORT_FORMATS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Unsupported format. Use csv or xlsx"
        )

    records = await store.find_all()
    content, content_type, filename = export_records(records, export_format)
    return Response(
        content=content,
        media_type=content_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/import", status_code=status.HTTP_201_CREATED)
async def import_fuel_prices(
    file: UploadFile = File(...),
    current_user: User = Depends(require_permissions("write:data")),
    store: FuelRecordStore = Depends(get_record_store)
):
    """Bulk import fuel prices from a CSV or XLSX spreadsheet"""
    content = await file.read()
    if len(content) > settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds {settings.MAX_UPLOAD_SIZE_MB}MB limit"
        )

    try:
        rows = parse_upload(file.filename, content)
    except FuelImportError as e:
        logger.warning(f"Rejected fuel price import {file.filename}: {e}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body(str(e), "IMPORT_ERROR", errors=e.errors),
        )

    imported = await store.add_all([FuelPrice(**row.model_dump()) for row in rows])
    logger.info(f"User {current_user.id} imported {imported} fuel price records from {file.filename}")
    return {"success": True, "data": {"imported": imported}}


@router.get("/{record_id}")
async def get_fuel_price(
    record_id: str,
    current_user: User = Depends(require_permissions("read:data")),
    store: FuelRecordStore = Depends(get_record_store)
):
    """Get a single fuel price record"""
    record = await _get_or_404(store, record_id)
    return {"success": True, "data": FuelPriceResponse.from_record(record)}


@router.put("/{record_id}")
async def update_fuel_price(
    record_id: str,
    payload: FuelPriceUpdate,
    current_user: User = Depends(require_permissions("write:data")),
    store: FuelRecordStore = Depends(get_record_store)
):
    """Update some or all fields of a fuel price record"""
    record = await _get_or_404(store, record_id)

    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None:
            continue
        setattr(record, field, value)

    record = await store.save(record)
    return {"success": True, "data": FuelPriceResponse.from_record(record)}


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_fuel_price(
    record_id: str,
    current_user: User = Depends(require_permissions("delete:data")),
    store: FuelRecordStore = Depends(get_record_store)
):
    """Delete a fuel price record"""
    record = await _get_or_404(store, record_id)
    await store.delete(record)
    logger.info(f"User {current_user.id} deleted fuel price {record_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
