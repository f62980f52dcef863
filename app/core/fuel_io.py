"""
Spreadsheet import/export for fuel price records

Files use the columns State, Region, Period, AGO, PMS, DPK, LPG so an export
can be fed straight back into an import.
"""
import io
import logging
import numbers
from pathlib import Path
from typing import List, Sequence, Tuple

import pandas as pd
from pydantic import ValidationError

from app.core.exceptions import FuelImportError
from app.models.fuel_price import FuelPrice
from app.schemas.fuel_price import FuelPriceCreate

logger = logging.getLogger(__name__)

IMPORT_COLUMNS = ["State", "Region", "Period", "AGO", "PMS", "DPK", "LPG"]
EXPORT_FORMATS = {
    "csv": ("text/csv", "fuel_data.csv"),
    "xlsx": ("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", "fuel_data.xlsx"),
}
UPLOAD_EXTENSIONS = {".csv", ".xlsx"}


def _records_frame(records: Sequence[FuelPrice]) -> pd.DataFrame:
    rows = [
        {
            "id": record.id,
            "State": record.state,
            "Region": record.region.value if record.region is not None else None,
            "Period": record.period.isoformat() if record.period else None,
            "AGO": record.ago,
            "PMS": record.pms,
            "DPK": record.dpk,
            "LPG": record.lpg,
            # Excel cannot store timezone-aware datetimes
            "createdAt": record.created_at.isoformat() if record.created_at else None,
            "updatedAt": record.updated_at.isoformat() if record.updated_at else None,
        }
        for record in records
    ]
    columns = ["id", *IMPORT_COLUMNS, "createdAt", "updatedAt"]
    return pd.DataFrame(rows, columns=columns)


def export_records(records: Sequence[FuelPrice], fmt: str = "csv") -> Tuple[bytes, str, str]:
    """
    Serialize records to CSV or XLSX.
    Returns: (content, content_type, filename)
    """
    fmt = (fmt or "csv").lower()
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format: {fmt}")

    content_type, filename = EXPORT_FORMATS[fmt]
    frame = _records_frame(records)

    if fmt == "xlsx":
        output = io.BytesIO()
        with pd.ExcelWriter(output, engine="openpyxl") as writer:
            frame.to_excel(writer, sheet_name="Fuel Data", index=False)
        content = output.getvalue()
    else:
        content = frame.to_csv(index=False).encode("utf-8")

    logger.info(f"Exported {len(frame)} fuel price records as {fmt}")
    return content, content_type, filename


def _read_frame(filename: str, content: bytes) -> pd.DataFrame:
    extension = Path(filename or "").suffix.lower()
    if extension not in UPLOAD_EXTENSIONS:
        raise FuelImportError("Invalid file type. Only CSV and XLSX allowed.")

    try:
        if extension == ".csv":
            return pd.read_csv(io.BytesIO(content))
        return pd.read_excel(io.BytesIO(content), engine="openpyxl")
    except pd.errors.EmptyDataError:
        raise FuelImportError("The uploaded file contains no rows") from None
    except (ValueError, KeyError, OSError) as e:
        raise FuelImportError(f"Could not read {filename}: {e}") from e


def _clean(value):
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if pd.isna(value):
        return None
    if isinstance(value, numbers.Number):
        return float(value)
    return value


def parse_upload(filename: str, content: bytes) -> List[FuelPriceCreate]:
    """
    Turn an uploaded CSV/XLSX file into validated fuel price rows.

    Every row is checked before anything is returned; FuelImportError carries
    one message per bad row.
    """
    frame = _read_frame(filename, content)

    # Match headers case-insensitively
    headers = {str(column).strip().lower(): column for column in frame.columns}
    missing = [column for column in IMPORT_COLUMNS if column.lower() not in headers]
    if missing:
        raise FuelImportError(f"Missing required columns: {', '.join(missing)}")
    if frame.empty:
        raise FuelImportError("The uploaded file contains no rows")

    rows: List[FuelPriceCreate] = []
    errors = []
    for index, raw in enumerate(frame.to_dict(orient="records")):
        row_number = index + 2  # header is row 1
        values = {column: _clean(raw[headers[column.lower()]]) for column in IMPORT_COLUMNS}

        period = values["Period"]
        if period is not None:
            try:
                period = pd.to_datetime(period).date()
            except (ValueError, TypeError):
                errors.append({"row": row_number, "message": "Period must be a valid date"})
                continue

        try:
            rows.append(FuelPriceCreate(
                state=str(values["State"]) if values["State"] is not None else None,
                region=values["Region"],
                period=period,
                AGO=values["AGO"],
                PMS=values["PMS"],
                DPK=values["DPK"],
                LPG=values["LPG"],
            ))
        except ValidationError as e:
            messages = [
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                for error in e.errors()
            ]
            errors.append({"row": row_number, "message": "; ".join(messages)})

    if errors:
        raise FuelImportError(f"{len(errors)} row(s) failed validation", errors)

    return rows
