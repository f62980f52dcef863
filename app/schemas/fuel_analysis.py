from pydantic import BaseModel, Field
from typing import Optional, List
from app.models.fuel_price import FuelProduct, Region


class SummaryResult(BaseModel):
    product: FuelProduct
    current_price: float = Field(alias="currentPrice")
    previous_price: float = Field(alias="previousPrice")
    value_change: float = Field(alias="valueChange")
    percentage_change: Optional[float] = Field(alias="percentageChange")
    trend_direction: str = Field(alias="trendDirection")

    class Config:
        populate_by_name = True


class NationalAverage(BaseModel):
    avg_pms: Optional[float] = Field(None, alias="avgPMS")
    avg_ago: Optional[float] = Field(None, alias="avgAGO")
    avg_dpk: Optional[float] = Field(None, alias="avgDPK")
    avg_lpg: Optional[float] = Field(None, alias="avgLPG")

    class Config:
        populate_by_name = True


class RegionAverage(NationalAverage):
    region: Region


class StateValue(BaseModel):
    state: str
    value: float


class TrendPoint(BaseModel):
    date: str
    price: float


class MiniTrendPoint(BaseModel):
    period: str
    price: Optional[float]


class ChangeResult(BaseModel):
    current_price: float = Field(alias="currentPrice")
    previous_price: float = Field(alias="previousPrice")
    change: float
    percentage_change: Optional[float] = Field(alias="percentageChange")

    class Config:
        populate_by_name = True


class WeeklyReportRow(ChangeResult):
    state: str
    trend: List[float]
