import pytest
from pydantic import ValidationError

from asset_tracker.models import (
    Asset,
    AssetStatus,
    AuditLog,
    Department,
    LogAction,
    LogEntry,
    VerificationStatus,
)


def test_asset_accepts_camel_case_and_dumps_it():
    asset = Asset.model_validate({
        "id": "a1",
        "computerNo": "JTAPNB-000001",
        "serialNo": "PF00001",
        "empId": "E1",
        "status": "In Use",
        "lastUpdated": "2024-01-01T00:00:00Z",
        "updatedBy": "Alice",
    })

    assert asset.computer_no == "JTAPNB-000001"
    assert asset.emp_id == "E1"

    dumped = asset.to_json_dict()
    assert dumped["computerNo"] == "JTAPNB-000001"
    assert dumped["serialNo"] == "PF00001"
    assert dumped["status"] == "In Use"
    assert "computer_no" not in dumped


def test_metadata_dict_strips_images(make_asset):
    asset = make_asset(images=["data:image/png;base64,AAAA", b"raw"])

    metadata = asset.metadata_dict()
    assert "images" not in metadata
    assert asset.images == ["data:image/png;base64,AAAA", b"raw"]


def test_legacy_spellings_are_normalized_on_validation(make_asset):
    asset = make_asset(status="Maintenance", department="PUR")

    assert asset.status == AssetStatus.RESIGN
    assert asset.department == Department.PU


def test_unknown_status_is_rejected(make_asset):
    with pytest.raises(ValidationError):
        make_asset(status="Lost in space")


def test_log_entry_is_frozen():
    log = LogEntry(
        computer_no="JTAPNB-000001",
        serial_no="PF00001",
        action=LogAction.ADD,
        admin_user="Alice",
        details="Initial stock in",
    )

    with pytest.raises(ValidationError):
        log.details = "changed"
    assert log.to_json_dict()["adminUser"] == "Alice"


def test_audit_log_partition_check():
    good = AuditLog(
        total_assets=3, scanned_count=2, missing_count=1,
        scanned_ids=["a", "b"], missing_ids=["c"],
    )
    overlapping = AuditLog(
        total_assets=3, scanned_count=2, missing_count=1,
        scanned_ids=["a", "b"], missing_ids=["b"],
    )

    assert good.is_partitioned()
    assert not overlapping.is_partitioned()
    assert good.verification_status == VerificationStatus.PENDING
    assert AuditLog.model_validate({
        "totalAssets": 0, "scannedCount": 0, "missingCount": 0,
        "scannedIds": [], "missingIds": None,
    }).missing_ids == []


def test_asset_holds_at_most_three_images():
    with pytest.raises(ValidationError):
        Asset(computer_no="C1", serial_no="S1", images=["a", "b", "c", "d"])

    assert len(Asset(computer_no="C1", serial_no="S1", images=["a", "b", "c"]).images) == 3
