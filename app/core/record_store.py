"""
Queryable time-series store of fuel price records.

FuelRecordStore is the interface the analysis engine and the fuel price
endpoints depend on; SqlAlchemyFuelRecordStore implements it over an
AsyncSession.
"""
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.fuel_price import FuelPrice, FuelProduct, Region, PRODUCT_COLUMNS

SORT_KEYS = ["period", "state", "region", "PMS", "AGO", "DPK", "LPG", "created_at"]

_FIELD_COLUMNS = {
    "period": FuelPrice.period,
    "state": FuelPrice.state,
    "region": FuelPrice.region,
    "created_at": FuelPrice.created_at,
}


class RecordFilter(BaseModel):
    """Predicate over fuel price records; unset fields do not constrain"""
    state: Optional[str] = None
    region: Optional[Region] = None
    period_from: Optional[date] = None  # inclusive
    period_to: Optional[date] = None  # inclusive
    not_null: List[FuelProduct] = []
    search: Optional[str] = None
    product: Optional[FuelProduct] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None


def resolve_column(field: str):
    """Map a field name or product code to its mapped column"""
    if field in _FIELD_COLUMNS:
        return _FIELD_COLUMNS[field]
    try:
        return PRODUCT_COLUMNS[FuelProduct(field)]
    except ValueError:
        raise ValueError(f"Unsupported field: {field}") from None


def build_conditions(record_filter: Optional[RecordFilter]) -> list:
    if record_filter is None:
        return []

    conditions = []
    if record_filter.state:
        conditions.append(FuelPrice.state == record_filter.state)
    if record_filter.region:
        conditions.append(FuelPrice.region == record_filter.region)
    if record_filter.period_from:
        conditions.append(FuelPrice.period >= record_filter.period_from)
    if record_filter.period_to:
        conditions.append(FuelPrice.period <= record_filter.period_to)
    for product in record_filter.not_null:
        conditions.append(PRODUCT_COLUMNS[product].is_not(None))

    if record_filter.search:
        term = record_filter.search.strip()
        regions = [region for region in Region if term.lower() in region.value.lower()]
        clauses = [FuelPrice.state.ilike(f"%{term}%")]
        if regions:
            clauses.append(FuelPrice.region.in_(regions))
        conditions.append(or_(*clauses))

    if record_filter.product:
        column = PRODUCT_COLUMNS[record_filter.product]
        if record_filter.min_price is not None:
            conditions.append(column >= record_filter.min_price)
        if record_filter.max_price is not None:
            conditions.append(column <= record_filter.max_price)

    return conditions


class FuelRecordStore(ABC):
    """Read/write access to fuel price observations"""

    @abstractmethod
    async def find_top_n(
        self,
        record_filter: Optional[RecordFilter],
        sort_key: str,
        sort_dir: str,
        n: int,
    ) -> List[FuelPrice]:
        ...

    @abstractmethod
    async def find_all(self, record_filter: Optional[RecordFilter] = None) -> List[FuelPrice]:
        ...

    @abstractmethod
    async def find_page(
        self,
        record_filter: Optional[RecordFilter],
        sort_key: str,
        sort_dir: str,
        skip: int,
        limit: int,
    ) -> List[FuelPrice]:
        ...

    @abstractmethod
    async def distinct_values(self, field: str) -> List[Any]:
        ...

    @abstractmethod
    async def aggregate_group_mean(
        self,
        group_key: Optional[str],
        record_filter: Optional[RecordFilter],
        fields: Sequence[FuelProduct],
    ) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def count(self, record_filter: Optional[RecordFilter] = None) -> int:
        ...

    @abstractmethod
    async def get(self, record_id: str) -> Optional[FuelPrice]:
        ...

    @abstractmethod
    async def add(self, record: FuelPrice) -> FuelPrice:
        ...

    @abstractmethod
    async def add_all(self, records: Sequence[FuelPrice]) -> int:
        ...

    @abstractmethod
    async def save(self, record: FuelPrice) -> FuelPrice:
        ...

    @abstractmethod
    async def delete(self, record: FuelPrice) -> None:
        ...


class SqlAlchemyFuelRecordStore(FuelRecordStore):
    """FuelRecordStore backed by the fuel_prices table"""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _order_by(sort_key: str, sort_dir: str):
        column = resolve_column(sort_key)
        primary = column.asc() if sort_dir == "asc" else column.desc()
        # Stable order for records sharing a sort value
        return [primary, FuelPrice.created_at.asc(), FuelPrice.id.asc()]

    async def find_top_n(self, record_filter, sort_key, sort_dir, n):
        stmt = (
            select(FuelPrice)
            .where(*build_conditions(record_filter))
            .order_by(*self._order_by(sort_key, sort_dir))
            .limit(n)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def find_all(self, record_filter=None):
        stmt = (
            select(FuelPrice)
            .where(*build_conditions(record_filter))
            .order_by(*self._order_by("period", "asc"))
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def find_page(self, record_filter, sort_key, sort_dir, skip, limit):
        stmt = (
            select(FuelPrice)
            .where(*build_conditions(record_filter))
            .order_by(*self._order_by(sort_key, sort_dir))
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def distinct_values(self, field):
        column = resolve_column(field)
        result = await self.db.execute(select(column).distinct().order_by(column))
        return [value for value in result.scalars().all() if value is not None]

    async def aggregate_group_mean(self, group_key, record_filter, fields):
        means = [func.avg(PRODUCT_COLUMNS[FuelProduct(field)]).label(FuelProduct(field).value) for field in fields]

        if group_key is None:
            stmt = select(*means)
        else:
            group_column = resolve_column(group_key)
            stmt = (
                select(group_column.label("key"), *means)
                .group_by(group_column)
                .order_by(group_column)
            )

        stmt = stmt.where(*build_conditions(record_filter))
        result = await self.db.execute(stmt)
        return [dict(row) for row in result.mappings().all()]

    async def count(self, record_filter=None):
        stmt = select(func.count(FuelPrice.id)).where(*build_conditions(record_filter))
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    async def get(self, record_id):
        return await self.db.get(FuelPrice, record_id)

    async def add(self, record):
        self.db.add(record)
        await self.db.flush()
        await self.db.refresh(record)
        return record

    async def add_all(self, records):
        self.db.add_all(records)
        await self.db.flush()
        return len(records)

    async def save(self, record):
        await self.db.flush()
        await self.db.refresh(record)
        return record

    async def delete(self, record):
        await self.db.delete(record)
        await self.db.flush()
