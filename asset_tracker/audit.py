"""
Stock-take sessions.

An audit covers the assets that are In Stock when it starts. Scanned codes
(computer or serial numbers, any case) mark assets as present; whatever is
left unscanned at the end is missing. The finished session becomes one
AuditLog snapshot for InventoryStore.save_audit_log.
"""

from enum import Enum
from typing import Iterable, List, Optional

from .models import Asset, AssetStatus, AuditLog, AuditStatus, VerificationStatus


class ScanOutcome(str, Enum):
    MATCHED = "matched"
    DUPLICATE = "duplicate"
    # Known asset that was not In Stock when the audit started
    WRONG_STATUS = "wrong_status"
    NOT_FOUND = "not_found"


def audit_population(assets: Iterable[Asset]) -> List[Asset]:
    """Assets an audit must account for"""
    return [a for a in assets if a.status == AssetStatus.IN_STOCK]


def match_scan(assets: Iterable[Asset], code: str) -> Optional[Asset]:
    """First asset whose computer or serial number equals *code*, ignoring case."""
    needle = code.strip().lower()
    if not needle:
        return None
    for asset in assets:
        if asset.computer_no.lower() == needle or asset.serial_no.lower() == needle:
            return asset
    return None


class AuditSession:
    """
    One stock-take in progress.

    The population is fixed when the session starts, so assets that change
    status mid-audit do not move in or out of it.
    """

    def __init__(self, assets: Iterable[Asset]):
        self.assets: List[Asset] = list(assets)
        self.population: List[Asset] = audit_population(self.assets)
        self._scanned: List[str] = []

    @property
    def scanned_ids(self) -> List[str]:
        return list(self._scanned)

    @property
    def missing_ids(self) -> List[str]:
        scanned = set(self._scanned)
        return [a.id for a in self.population if a.id not in scanned]

    def scan(self, code: str) -> ScanOutcome:
        asset = match_scan(self.population, code)
        if asset is None:
            if match_scan(self.assets, code) is not None:
                return ScanOutcome.WRONG_STATUS
            return ScanOutcome.NOT_FOUND
        if asset.id in self._scanned:
            return ScanOutcome.DUPLICATE
        self._scanned.append(asset.id)
        return ScanOutcome.MATCHED

    def finish(self, audited_by: Optional[str]) -> AuditLog:
        """Build the completed audit snapshot, pending supervisor verification."""
        missing = self.missing_ids
        return AuditLog(
            total_assets=len(self.population),
            scanned_count=len(self._scanned),
            missing_count=len(missing),
            scanned_ids=self.scanned_ids,
            missing_ids=missing,
            status=AuditStatus.COMPLETED,
            audited_by=audited_by or "Unknown",
            verification_status=VerificationStatus.PENDING,
        )
