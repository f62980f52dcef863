"""
Script to import fuel price data from a spreadsheet and seed an admin user
Run with: python -m app.scripts.import_fuel_data fuel_data.xlsx
"""
import asyncio
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from app.database import AsyncSessionLocal, init_db
from app.models.user import User, UserRole, UserStatus
from app.models.fuel_price import FuelPrice
from app.core.security import get_password_hash
from app.core.exceptions import FuelImportError
from app.core.fuel_io import parse_upload
from app.core.record_store import SqlAlchemyFuelRecordStore
from sqlalchemy import select

ADMIN_EMAIL = "admin@fuelwatch.ng"
ADMIN_PASSWORD = "admin123"


async def seed_admin(db):
    """Create the default admin account if it does not exist"""
    result = await db.execute(select(User).where(User.email == ADMIN_EMAIL))
    if result.scalar_one_or_none():
        print("Admin user already exists, skipping...")
        return

    print("Creating admin user...")
    db.add(User(
        email=ADMIN_EMAIL,
        password_hash=get_password_hash(ADMIN_PASSWORD),
        full_name="Admin User",
        role=UserRole.ADMIN,
        status=UserStatus.ACTIVE
    ))
    await db.flush()


async def import_fuel_data(file_path: Path):
    """Import every row of the spreadsheet at file_path"""
    print(f"Reading {file_path}...")
    try:
        rows = parse_upload(file_path.name, file_path.read_bytes())
    except FuelImportError as e:
        print(f"❌ Import failed: {e}")
        for error in e.errors:
            print(f"  - row {error['row']}: {error['message']}")
        return False

    await init_db()

    async with AsyncSessionLocal() as db:
        await seed_admin(db)

        store = SqlAlchemyFuelRecordStore(db)
        imported = await store.add_all([FuelPrice(**row.model_dump()) for row in rows])
        await db.commit()

    print(f"\n✅ Successfully imported {imported} fuel price records")
    print(f"Admin: {ADMIN_EMAIL} / {ADMIN_PASSWORD}")
    return True


if __name__ == "__main__":
    path = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("fuel_data.xlsx")
    if not path.exists():
        print(f"❌ File not found: {path}")
        sys.exit(1)

    ok = asyncio.run(import_fuel_data(path))
    sys.exit(0 if ok else 1)
