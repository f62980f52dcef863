from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import date, datetime
from app.models.fuel_price import FuelPrice, Region


class FuelPriceCreate(BaseModel):
    state: str = Field(min_length=2)
    region: Region
    period: date
    pms: float = Field(alias="PMS", ge=0)
    ago: float = Field(alias="AGO", ge=0)
    dpk: float = Field(alias="DPK", ge=0)
    lpg: float = Field(alias="LPG", ge=0)

    class Config:
        populate_by_name = True

    @field_validator("state", mode="before")
    @classmethod
    def strip_state(cls, value):
        return value.strip() if isinstance(value, str) else value


class FuelPriceUpdate(BaseModel):
    state: Optional[str] = Field(None, min_length=2)
    region: Optional[Region] = None
    period: Optional[date] = None
    pms: Optional[float] = Field(None, alias="PMS", ge=0)
    ago: Optional[float] = Field(None, alias="AGO", ge=0)
    dpk: Optional[float] = Field(None, alias="DPK", ge=0)
    lpg: Optional[float] = Field(None, alias="LPG", ge=0)

    class Config:
        populate_by_name = True

    @field_validator("state", mode="before")
    @classmethod
    def strip_state(cls, value):
        return value.strip() if isinstance(value, str) else value


class FuelPriceResponse(BaseModel):
    id: str
    state: str
    region: Region
    period: date
    pms: float = Field(alias="PMS")
    ago: float = Field(alias="AGO")
    dpk: float = Field(alias="DPK")
    lpg: float = Field(alias="LPG")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    class Config:
        populate_by_name = True

    @classmethod
    def from_record(cls, record: FuelPrice) -> "FuelPriceResponse":
        return cls(
            id=record.id,
            state=record.state,
            region=record.region,
            period=record.period,
            pms=record.pms,
            ago=record.ago,
            dpk=record.dpk,
            lpg=record.lpg,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class FuelPricePage(BaseModel):
    success: bool = True
    page: int
    limit: int
    total: int
    total_pages: int = Field(alias="totalPages")
    data: List[FuelPriceResponse]

    class Config:
        populate_by_name = True


class FuelFilters(BaseModel):
    states: List[str]
    regions: List[Region]
    products: List[str]
    ranges: List[str]
