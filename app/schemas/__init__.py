# Pydantic schemas
from app.schemas.auth import UserCreate, UserLogin, UserResponse, TokenResponse, RefreshTokenRequest
from app.schemas.fuel_price import (
    FuelPriceCreate, FuelPriceUpdate, FuelPriceResponse, FuelPricePage, FuelFilters
)
from app.schemas.fuel_analysis import (
    SummaryResult, NationalAverage, RegionAverage, StateValue,
    TrendPoint, MiniTrendPoint, ChangeResult, WeeklyReportRow
)

__all__ = [
    "UserCreate", "UserLogin", "UserResponse", "TokenResponse", "RefreshTokenRequest",
    "FuelPriceCreate", "FuelPriceUpdate", "FuelPriceResponse", "FuelPricePage", "FuelFilters",
    "SummaryResult", "NationalAverage", "RegionAverage", "StateValue",
    "TrendPoint", "MiniTrendPoint", "ChangeResult", "WeeklyReportRow",
]
