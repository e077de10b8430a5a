from datetime import datetime

import numpy as np
import pandas as pd
import pytest

from asset_tracker.models import AssetStatus, Department
from asset_tracker.samples import write_samples
from asset_tracker.spreadsheet import (
    assets_frame,
    cell_text,
    clean_value,
    default_export_name,
    export_assets,
    export_logs,
    find_import_conflicts,
    parse_asset_frame,
    parse_asset_sheet,
    parse_date,
    parse_tags,
)

from .conftest import build_asset


@pytest.fixture
def sample_files(tmp_path):
    valid, invalid = write_samples(tmp_path / "data")
    return valid, invalid


def test_clean_value():
    assert clean_value(np.nan) is None
    assert clean_value(pd.NaT) is None
    assert clean_value(" - ") is None
    assert clean_value("N/A") is None
    assert clean_value(np.int64(7)) == 7
    assert clean_value(" Dell ") == "Dell"


def test_cell_text_drops_float_suffix():
    assert cell_text(1001.0) == "1001"
    assert cell_text(12.5) == "12.5"
    assert cell_text(None) is None


def test_parse_date_variants():
    assert parse_date(45000) == datetime(2023, 3, 15)
    assert parse_date("2022-06-15") == datetime(2022, 6, 15)
    assert parse_date(pd.Timestamp("2021-01-02")) == datetime(2021, 1, 2)
    assert parse_date("-") is None
    assert parse_date("not a date") is None


def test_parse_tags():
    assert parse_tags("High Performance, Developer,") == ["High Performance", "Developer"]
    assert parse_tags("-") == []


def test_parse_sample_sheet(sample_files):
    valid, _ = sample_files

    result = parse_asset_sheet(valid, "Alice")

    assert result.ok
    assert result.rows_processed == 5
    assert [a.computer_no for a in result.assets] == [f"JTAPNB-00000{i}" for i in range(1, 6)]

    first, second, _, _, fifth = result.assets
    assert first.owner is None
    assert first.department is None
    assert first.purchase_date == datetime(2018, 4, 1)
    assert first.tags == ["Spare"]
    assert first.hdd == "256 GB"
    assert first.updated_by == "Alice"
    assert second.owner == "Somchai P."
    assert second.emp_id == "E1001"
    assert second.department == Department.IT
    assert second.status == AssetStatus.IN_USE
    assert fifth.status == AssetStatus.IN_USE
    assert fifth.department == Department.OD
    assert fifth.tags == ["High Performance", "Developer"]


def test_invalid_rows_are_reported_by_sheet_row(sample_files):
    _, invalid = sample_files

    result = parse_asset_sheet(invalid, "Alice")

    assert not result.ok
    assert result.assets == []
    assert result.errors == [
        "Row 3: Missing 'Computer No.' or 'Serial No.'",
        "Row 4: Duplicate entry within file (Computer No: JTAPNB-000101, Serial: PF00101)",
    ]


def test_unknown_status_is_a_row_error():
    df = pd.DataFrame({
        "Computer No.": ["C1", "C2"],
        "Serial No.": ["S1", "S2"],
        "Status": ["In Stock", "Lost in space"],
    })

    result = parse_asset_frame(df, "Alice")

    assert len(result.errors) == 1
    assert result.errors[0].startswith("Row 3: status")


def test_csv_import(tmp_path):
    path = tmp_path / "assets.csv"
    pd.DataFrame({
        "Computer No.": ["C1"],
        "Serial No.": ["S1"],
        "Emp ID": [1001],
        "Dept": ["PUR"],
    }).to_csv(path, index=False)

    result = parse_asset_sheet(path, "Alice")

    assert result.ok
    asset = result.assets[0]
    assert asset.emp_id == "1001"
    assert asset.department == Department.PU
    assert asset.status == AssetStatus.IN_STOCK


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        parse_asset_sheet(tmp_path / "nope.xlsx", "Alice")


def test_find_import_conflicts():
    existing = [build_asset(computer_no="C1", serial_no="S1")]
    incoming = [
        build_asset(computer_no="C1", serial_no="S9"),
        build_asset(computer_no="C9", serial_no="S1"),
        build_asset(computer_no="C5", serial_no="S5"),
    ]

    conflicts = find_import_conflicts(existing, incoming)

    assert [(a.computer_no, a.serial_no) for a in conflicts] == [("C1", "S9"), ("C9", "S1")]


def test_assets_frame_columns():
    asset = build_asset(department="IT", tags=["Spare", "Loaner"], hdd="512 GB")

    plain = assets_frame([asset])
    full = assets_frame([asset], include_hardware=True)

    assert list(plain.columns) == [
        "Computer No.", "Serial No.", "Brand", "Model", "Owner", "Emp ID", "Dept",
        "Status", "Purchase Date", "Warranty", "Tags", "Remarks", "Last Updated", "Updated By",
    ]
    assert {"HDD/SSD", "RAM", "CPU"} <= set(full.columns)
    row = full.iloc[0]
    assert row["Owner"] == "-"
    assert row["Dept"] == "IT"
    assert row["Tags"] == "Spare, Loaner"
    assert row["HDD/SSD"] == "512 GB"
    assert row["RAM"] == "-"


async def test_export_reimports_into_store(store, tmp_path):
    await store.add_asset(build_asset(computer_no="C1", serial_no="S1", owner="Bob", status="In Use"), "Alice")

    path = export_assets(store.assets, tmp_path / "out" / default_export_name(now=datetime(2024, 1, 31)))
    assert path.name == "Inventory_Export_2024-01-31.xlsx"
    assert pd.ExcelFile(path).sheet_names == ["Inventory"]

    parsed = parse_asset_sheet(path, "Carol")
    assert parsed.ok
    await store.add_assets(parsed.assets, "Carol")

    assert len(store.assets) == 1
    assert store.assets[0].owner == "Bob"
    assert store.logs[0].details == "Batch import overwrite"


def test_export_logs(tmp_path):
    from asset_tracker.models import LogAction, LogEntry

    log = LogEntry(computer_no="C1", serial_no="S1", action=LogAction.ADD, admin_user="Alice")

    path = export_logs([log], tmp_path / "logs.xlsx")
    frame = pd.read_excel(path, sheet_name="Logs")

    assert frame.loc[0, "Action"] == "Add"
    assert frame.loc[0, "Details"] == "-"
