"""
Spreadsheet import and export for the asset tracker.

Import reads the first sheet of an Excel workbook (or a CSV file) laid out
with the same headers the export writes, validates each row and returns
Asset objects ready for InventoryStore.add_assets. Export turns store
snapshots into DataFrames / xlsx files and never writes back to the store.
"""

from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import numpy as np
import pandas as pd
from pydantic import BaseModel, ValidationError

from .models import Asset, AssetStatus, LogEntry, utcnow

# Excel day zero for serial dates
EXCEL_EPOCH = datetime(1899, 12, 30)

EMPTY_MARKERS = {"", "-", "N/A"}

# Header -> Asset attribute for plain text columns
TEXT_COLUMNS = {
    "Brand": "brand",
    "Model": "model",
    "Owner": "owner",
    "Emp ID": "emp_id",
    "Dept": "department",
    "Remarks": "remarks",
    "HDD/SSD": "hdd",
    "RAM": "ram",
    "CPU": "cpu",
}


class ImportResult(BaseModel):
    """Outcome of parsing an import file"""
    rows_processed: int = 0
    assets: List[Asset] = []
    errors: List[str] = []

    @property
    def ok(self) -> bool:
        return not self.errors


def clean_value(value: Any) -> Any:
    """
    Clean a single cell value.
    Handles NaN, pandas/numpy scalar types and the '-' placeholder.

    Args:
        value: Any value from a DataFrame

    Returns:
        Plain Python value or None
    """
    # Handle pandas NA types (NaN, NaT, None)
    if pd.isna(value):
        return None

    if isinstance(value, (pd.Timestamp, np.datetime64)):
        return pd.Timestamp(value).to_pydatetime()

    if isinstance(value, (np.integer, np.floating)):
        value = value.item()

    if isinstance(value, str):
        value = value.strip()
        return None if value in EMPTY_MARKERS else value

    return value


def cell_text(value: Any) -> Optional[str]:
    """Cell value as text; whole floats lose their '.0' (1001.0 -> '1001')."""
    value = clean_value(value)
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def parse_date(value: Any) -> Optional[datetime]:
    """
    Parse a date cell.
    Accepts datetimes, Excel serial day numbers and date strings.
    """
    value = clean_value(value)
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return EXCEL_EPOCH + timedelta(days=float(value))

    parsed = pd.to_datetime(str(value), errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.to_pydatetime()


def parse_tags(value: Any) -> List[str]:
    text = cell_text(value)
    if not text:
        return []
    return [tag.strip() for tag in text.split(",") if tag.strip()]


def read_sheet(file_path: Union[str, Path]) -> pd.DataFrame:
    """
    Read the first sheet of an Excel workbook, or a CSV file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file cannot be read
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Import file not found: {file_path}")

    try:
        if path.suffix.lower() == ".csv":
            return pd.read_csv(path, dtype=object)
        return pd.read_excel(path, sheet_name=0, dtype=object)
    except Exception as e:
        raise ValueError(f"Error reading import file: {str(e)}") from e


def parse_asset_frame(df: pd.DataFrame, updated_by: str) -> ImportResult:
    """
    Turn an import DataFrame into assets.

    Rows without a computer or serial number, and rows repeating an earlier
    computer/serial pair, are reported as errors using spreadsheet row
    numbers (header is row 1). Assets are only returned when every row is
    valid.
    """
    errors: List[str] = []
    assets: List[Asset] = []
    seen_keys = set()
    now = utcnow()

    records = df.to_dict(orient="records")
    for index, row in enumerate(records):
        row_num = index + 2
        computer_no = cell_text(row.get("Computer No."))
        serial_no = cell_text(row.get("Serial No."))

        if not computer_no or not serial_no:
            errors.append(f"Row {row_num}: Missing 'Computer No.' or 'Serial No.'")
            continue

        key = (computer_no, serial_no)
        if key in seen_keys:
            errors.append(
                f"Row {row_num}: Duplicate entry within file "
                f"(Computer No: {computer_no}, Serial: {serial_no})"
            )
            continue
        seen_keys.add(key)

        fields: Dict[str, Any] = {
            "computer_no": computer_no,
            "serial_no": serial_no,
            "status": cell_text(row.get("Status")) or AssetStatus.IN_STOCK.value,
            "purchase_date": parse_date(row.get("Purchase Date")),
            "warranty_expiry": parse_date(row.get("Warranty")),
            "tags": parse_tags(row.get("Tags")),
            "last_updated": now,
            "updated_by": updated_by,
        }
        for header, attribute in TEXT_COLUMNS.items():
            fields[attribute] = cell_text(row.get(header))

        try:
            assets.append(Asset.model_validate(fields))
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
            )
            errors.append(f"Row {row_num}: {problems}")

    return ImportResult(
        rows_processed=len(records),
        assets=[] if errors else assets,
        errors=errors,
    )


def parse_asset_sheet(file_path: Union[str, Path], updated_by: str) -> ImportResult:
    """
    Parse an import file into assets.

    Args:
        file_path: Path to an .xlsx/.xls workbook or a .csv file
        updated_by: Admin performing the import

    Returns:
        ImportResult with either the parsed assets or the row errors
    """
    return parse_asset_frame(read_sheet(file_path), updated_by)


def find_import_conflicts(existing: Iterable[Asset], incoming: Iterable[Asset]) -> List[Asset]:
    """Incoming assets sharing a computer or serial number with an existing one"""
    computer_nos = set()
    serial_nos = set()
    for asset in existing:
        computer_nos.add(asset.computer_no)
        serial_nos.add(asset.serial_no)
    return [
        a for a in incoming
        if a.computer_no in computer_nos or a.serial_no in serial_nos
    ]


def _fmt_datetime(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else "-"


def _fmt_date(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d") if value else "-"


def assets_frame(assets: Sequence[Asset], include_hardware: bool = False) -> pd.DataFrame:
    """Export table of assets, '-' for empty cells"""
    rows = []
    for asset in assets:
        row = {
            "Computer No.": asset.computer_no,
            "Serial No.": asset.serial_no,
            "Brand": asset.brand or "-",
            "Model": asset.model or "-",
            "Owner": asset.owner or "-",
            "Emp ID": asset.emp_id or "-",
            "Dept": asset.department.value if asset.department else "-",
            "Status": asset.status.value,
            "Purchase Date": _fmt_date(asset.purchase_date),
            "Warranty": _fmt_date(asset.warranty_expiry),
            "Tags": ", ".join(asset.tags) if asset.tags else "-",
            "Remarks": asset.remarks or "-",
        }
        if include_hardware:
            row["HDD/SSD"] = asset.hdd or "-"
            row["RAM"] = asset.ram or "-"
            row["CPU"] = asset.cpu or "-"
        row["Last Updated"] = _fmt_datetime(asset.last_updated)
        row["Updated By"] = asset.updated_by or "-"
        rows.append(row)
    return pd.DataFrame(rows)


def logs_frame(logs: Sequence[LogEntry]) -> pd.DataFrame:
    return pd.DataFrame([
        {
            "Timestamp": _fmt_datetime(log.timestamp),
            "Action": log.action.value,
            "Computer No.": log.computer_no,
            "Serial No.": log.serial_no,
            "Admin": log.admin_user,
            "Details": log.details or "-",
        }
        for log in logs
    ])


def export_assets(
    assets: Sequence[Asset],
    file_path: Union[str, Path],
    include_hardware: bool = False,
) -> Path:
    """Write assets to an xlsx workbook (sheet 'Inventory')."""
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    assets_frame(assets, include_hardware).to_excel(path, sheet_name="Inventory", index=False)
    return path


def export_logs(logs: Sequence[LogEntry], file_path: Union[str, Path]) -> Path:
    """Write the activity log to an xlsx workbook (sheet 'Logs')."""
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    logs_frame(logs).to_excel(path, sheet_name="Logs", index=False)
    return path


def default_export_name(prefix: str = "Inventory_Export", now: Optional[datetime] = None) -> str:
    """File name like Inventory_Export_2024-01-31.xlsx"""
    now = now or utcnow()
    return f"{prefix}_{now:%Y-%m-%d}.xlsx"
