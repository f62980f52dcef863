from sqlalchemy import Column, String, DateTime, Date, Float, Enum
from sqlalchemy.sql import func
from app.database import Base
import enum
import uuid


class FuelProduct(str, enum.Enum):
    PMS = "PMS"  # Premium Motor Spirit (petrol)
    AGO = "AGO"  # Automotive Gas Oil (diesel)
    DPK = "DPK"  # Dual Purpose Kerosene
    LPG = "LPG"  # Liquefied Petroleum Gas (cooking gas)

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            return cls.__members__.get(value.strip().upper())
        return None


class Region(str, enum.Enum):
    NORTH_EAST = "North East"
    NORTH_WEST = "North West"
    NORTH_CENTRAL = "North Central"
    SOUTH_EAST = "South East"
    SOUTH_WEST = "South West"
    SOUTH_SOUTH = "South South"

    @classmethod
    def _missing_(cls, value):
        # Accept member names ("SOUTH_WEST") as well as display values, any case
        if isinstance(value, str):
            key = value.strip().replace("_", " ").lower()
            for member in cls:
                if member.value.lower() == key:
                    return member
        return None


FUEL_PRODUCTS = list(FuelProduct)


class FuelPrice(Base):
    __tablename__ = "fuel_prices"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    state = Column(String, nullable=False, index=True)
    region = Column(Enum(Region, name="region"), nullable=False, index=True)
    period = Column(Date, nullable=False, index=True)
    pms = Column("pms", Float, nullable=False)
    ago = Column("ago", Float, nullable=False)
    dpk = Column("dpk", Float, nullable=False)
    lpg = Column("lpg", Float, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), server_default=func.now())

    def __repr__(self) -> str:
        return f"<FuelPrice {self.state} {self.period}>"


# Product code -> mapped column, used for filtering, sorting and aggregation
PRODUCT_COLUMNS = {
    FuelProduct.PMS: FuelPrice.pms,
    FuelProduct.AGO: FuelPrice.ago,
    FuelProduct.DPK: FuelPrice.dpk,
    FuelProduct.LPG: FuelPrice.lpg,
}

# Product code -> value accessor on a loaded record
PRODUCT_ACCESSORS = {
    FuelProduct.PMS: lambda record: record.pms,
    FuelProduct.AGO: lambda record: record.ago,
    FuelProduct.DPK: lambda record: record.dpk,
    FuelProduct.LPG: lambda record: record.lpg,
}
