"""
Fuel price analytics engine

Summaries, averages, rankings, trend series and price-change reports computed
over a FuelRecordStore. The engine keeps no state between calls; every method
is a bounded set of read-only store queries, and store errors propagate
unchanged to the caller.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, List, Optional, Tuple
import logging

from app.core.date_range import resolve_start_date
from app.core.exceptions import InvalidProductError
from app.core.record_store import FuelRecordStore, RecordFilter
from app.models.fuel_price import FuelProduct, Region, FUEL_PRODUCTS, PRODUCT_ACCESSORS
from app.schemas.fuel_analysis import (
    SummaryResult,
    NationalAverage,
    RegionAverage,
    StateValue,
    TrendPoint,
    MiniTrendPoint,
    ChangeResult,
    WeeklyReportRow,
)

logger = logging.getLogger(__name__)

TOP_STATES_LIMIT = 5
MINI_TREND_SIZE = 7
WEEKLY_WINDOW = 7

_AVERAGE_FIELDS = {
    FuelProduct.PMS: "avg_pms",
    FuelProduct.AGO: "avg_ago",
    FuelProduct.DPK: "avg_dpk",
    FuelProduct.LPG: "avg_lpg",
}


def round2(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    return round(float(value), 2)


def compute_change(current: float, previous: float) -> Tuple[float, Optional[float]]:
    """
    Absolute and percentage change from previous to current, rounded to 2 places.
    The percentage is None when previous is zero.
    """
    change = current - previous
    if previous == 0:
        percentage = None
    else:
        percentage = round2(change / previous * 100)
    return round2(change), percentage


def coerce_product(product) -> Optional[FuelProduct]:
    try:
        return FuelProduct(product)
    except ValueError:
        return None


def coerce_region(region) -> Optional[Region]:
    try:
        return Region(region)
    except ValueError:
        return None


def iso_date(value) -> str:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)[:10]


def first_day_from(start: datetime) -> date:
    """First calendar day whose midnight is not before `start`"""
    if start.time() == time(0, 0):
        return start.date()
    return start.date() + timedelta(days=1)


def _averages(row: dict) -> dict:
    return {
        field: round2(row.get(product.value))
        for product, field in _AVERAGE_FIELDS.items()
    }


class FuelAnalysisEngine:
    """Analytics over fuel price records held by a FuelRecordStore"""

    def __init__(self, store: FuelRecordStore, clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def summary_with_change(self, product) -> Optional[SummaryResult]:
        """Latest price of a product against the one recorded just before it"""
        code = coerce_product(product)
        if code is None:
            return None

        records = await self.store.find_top_n(
            RecordFilter(not_null=[code]), "period", "desc", 2
        )
        if len(records) < 2:
            return None

        accessor = PRODUCT_ACCESSORS[code]
        current = accessor(records[0])
        previous = accessor(records[1])
        value_change, percentage_change = compute_change(current, previous)

        if current > previous:
            direction = "up"
        elif current < previous:
            direction = "down"
        else:
            direction = "no-change"

        return SummaryResult(
            product=code,
            current_price=current,
            previous_price=previous,
            value_change=value_change,
            percentage_change=percentage_change,
            trend_direction=direction,
        )

    async def summary(self) -> List[SummaryResult]:
        # One AsyncSession cannot run queries concurrently, so products go one at a time
        results = []
        for product in FUEL_PRODUCTS:
            result = await self.summary_with_change(product)
            if result is not None:
                results.append(result)
        return results

    async def national_average(self) -> NationalAverage:
        """All-time mean of every product; fields are None when the store is empty"""
        rows = await self.store.aggregate_group_mean(None, None, FUEL_PRODUCTS)
        row = rows[0] if rows else {}
        return NationalAverage(**_averages(row))

    async def average_by_region(self) -> List[RegionAverage]:
        rows = await self.store.aggregate_group_mean("region", None, FUEL_PRODUCTS)
        return [
            RegionAverage(region=Region(row["key"]), **_averages(row))
            for row in rows
            if row.get("key") is not None
        ]

    async def top_states(self, product, order: str = "desc") -> List[StateValue]:
        """
        States ranked by their all-time mean price of `product`.

        Raises InvalidProductError for anything other than PMS, AGO, DPK or LPG.
        """
        code = coerce_product(product)
        if code is None:
            raise InvalidProductError(product)

        rows = await self.store.aggregate_group_mean("state", None, [code])
        means = [
            (row["key"], row[code.value])
            for row in rows
            if row.get(code.value) is not None
        ]

        if order == "asc":
            means.sort(key=lambda item: (item[1], item[0]))
        else:
            means.sort(key=lambda item: (-item[1], item[0]))

        return [
            StateValue(state=state, value=round2(value))
            for state, value in means[:TOP_STATES_LIMIT]
        ]

    async def trend(
        self,
        product,
        state: Optional[str] = None,
        region=None,
        range_token: Optional[str] = "30d",
    ) -> List[TrendPoint]:
        """
        Mean price per period since the start of `range_token`, oldest first.

        A state filter wins over a region filter; the two are never combined.
        """
        code = coerce_product(product)
        if code is None:
            return []

        start = resolve_start_date(range_token, now=self.clock())
        first_day = first_day_from(start)
        if state:
            record_filter = RecordFilter(period_from=first_day, state=state)
        elif region:
            region_code = coerce_region(region)
            if region_code is None:
                return []
            record_filter = RecordFilter(period_from=first_day, region=region_code)
        else:
            record_filter = RecordFilter(period_from=first_day)

        rows = await self.store.aggregate_group_mean("period", record_filter, [code])
        rows = sorted(
            (row for row in rows if row.get(code.value) is not None),
            key=lambda row: iso_date(row["key"]),
        )
        logger.debug(f"Trend for {code.value} since {first_day}: {len(rows)} periods")

        return [
            TrendPoint(date=iso_date(row["key"]), price=round2(row[code.value]))
            for row in rows
        ]

    async def mini_trend(self, state: str, product) -> List[MiniTrendPoint]:
        """The state's latest observations (up to 7), oldest first"""
        code = coerce_product(product)
        if code is None:
            return []

        records = await self.store.find_top_n(
            RecordFilter(state=state), "period", "desc", MINI_TREND_SIZE
        )
        accessor = PRODUCT_ACCESSORS[code]
        return [
            MiniTrendPoint(period=iso_date(record.period), price=accessor(record))
            for record in reversed(records)
        ]

    async def price_change(self, state: str, product, window_days: int) -> Optional[ChangeResult]:
        """
        Latest price for a state against the latest price recorded at or
        before `window_days` ago. None when either side is missing.
        """
        code = coerce_product(product)
        if code is None:
            return None

        try:
            cutoff = self.clock().date() - timedelta(days=window_days)
        except OverflowError:
            # Window reaches outside the calendar, nothing can be that old
            return None

        latest = await self.store.find_top_n(RecordFilter(state=state), "period", "desc", 1)
        previous = await self.store.find_top_n(
            RecordFilter(state=state, period_to=cutoff), "period", "desc", 1
        )
        if not latest or not previous:
            return None

        accessor = PRODUCT_ACCESSORS[code]
        current_price = accessor(latest[0])
        previous_price = accessor(previous[0])
        change, percentage_change = compute_change(current_price, previous_price)

        return ChangeResult(
            current_price=current_price,
            previous_price=previous_price,
            change=change,
            percentage_change=percentage_change,
        )

    async def weekly_report(self, product) -> List[WeeklyReportRow]:
        """
        Per-state movement across each state's last 7 observations.

        States with fewer than two observations are left out. An invalid
        product gives an empty report rather than an error.
        """
        code = coerce_product(product)
        if code is None:
            return []

        accessor = PRODUCT_ACCESSORS[code]
        report = []
        for state in await self.store.distinct_values("state"):
            records = await self.store.find_top_n(
                RecordFilter(state=state), "period", "desc", WEEKLY_WINDOW
            )
            if len(records) < 2:
                continue

            values = [accessor(record) for record in records]
            current_price, previous_price = values[0], values[-1]
            change, percentage_change = compute_change(current_price, previous_price)

            report.append(WeeklyReportRow(
                state=state,
                current_price=current_price,
                previous_price=previous_price,
                change=change,
                percentage_change=percentage_change,
                trend=list(reversed(values)),
            ))

        logger.debug(f"Weekly {code.value} report covers {len(report)} states")
        return report
