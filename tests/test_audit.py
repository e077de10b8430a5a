from asset_tracker.audit import AuditSession, ScanOutcome, audit_population, match_scan
from asset_tracker.models import AssetStatus, AuditStatus, VerificationStatus

from .conftest import build_asset


def _inventory():
    return [
        build_asset(id=f"a{i}", computer_no=f"JTAPNB-00000{i}", serial_no=f"PF0000{i}")
        for i in range(1, 5)
    ] + [
        build_asset(id="busy", computer_no="JTAPNB-000009", serial_no="PF00009", status="In Use"),
    ]


def test_population_is_in_stock_only():
    assert [a.id for a in audit_population(_inventory())] == ["a1", "a2", "a3", "a4"]


def test_match_scan_ignores_case_and_whitespace():
    assets = _inventory()
    assert match_scan(assets, " jtapnb-000002 ").id == "a2"
    assert match_scan(assets, "pf00003").id == "a3"
    assert match_scan(assets, "   ") is None


def test_scan_outcomes():
    session = AuditSession(_inventory())

    assert session.scan("JTAPNB-000001") == ScanOutcome.MATCHED
    assert session.scan("pf00001") == ScanOutcome.DUPLICATE
    assert session.scan("JTAPNB-000009") == ScanOutcome.WRONG_STATUS
    assert session.scan("pf00009") == ScanOutcome.WRONG_STATUS
    assert session.scan("nothing") == ScanOutcome.NOT_FOUND
    assert session.scanned_ids == ["a1"]


def test_finish_partitions_population():
    session = AuditSession(_inventory())
    session.scan("PF00002")
    session.scan("JTAPNB-000004")

    audit = session.finish("Dave")

    assert audit.total_assets == 4
    assert audit.scanned_ids == ["a2", "a4"]
    assert audit.missing_ids == ["a1", "a3"]
    assert audit.scanned_count == 2
    assert audit.missing_count == 2
    assert audit.is_partitioned()
    assert audit.status == AuditStatus.COMPLETED
    assert audit.verification_status == VerificationStatus.PENDING
    assert audit.audited_by == "Dave"


def test_population_fixed_at_start():
    assets = _inventory()
    session = AuditSession(assets)
    assets[0] = assets[0].model_copy(update={"status": AssetStatus.IN_USE})

    assert session.scan("JTAPNB-000001") == ScanOutcome.MATCHED
    assert session.finish(None).total_assets == 4


def test_anonymous_auditor():
    assert AuditSession([]).finish(None).audited_by == "Unknown"


async def test_finished_audit_round_trips_through_store(store):
    for asset in _inventory():
        await store.add_asset(asset, "Alice")

    session = AuditSession(store.assets)
    session.scan("JTAPNB-000003")
    await store.save_audit_log(session.finish("Dave"))

    saved = store.audit_logs[0]
    assert saved.scanned_ids == ["a3"]
    assert saved.missing_ids == ["a1", "a2", "a4"]
