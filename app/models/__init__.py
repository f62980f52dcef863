from app.models.user import User, RefreshToken, UserRole, UserStatus
from app.models.fuel_price import FuelPrice, FuelProduct, Region

__all__ = [
    "User",
    "RefreshToken",
    "UserRole",
    "UserStatus",
    "FuelPrice",
    "FuelProduct",
    "Region",
]
