"""
Record definitions for the asset tracker.

Assets, activity log entries and stock-take audit logs are pydantic models.
Attributes are snake_case in Python; the persisted JSON keeps the camelCase
keys through field aliases, and both spellings are accepted on input.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    """Timezone-aware current time used for every timestamp"""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class AssetStatus(str, Enum):
    IN_STOCK = "In Stock"
    IN_USE = "In Use"
    RESIGN = "Resign"
    MISSING = "Missing"
    BROKEN = "Broken"
    DISPOSED = "Disposed"


class Department(str, Enum):
    BOARD_OF_DIRECTORS = "Board of Directors"
    BP = "BP"
    CU = "CU"
    CP = "CP"
    FA = "FA"
    HR = "HR"
    IT = "IT"
    OD = "OD"
    PL = "PL"
    PE = "PE"
    PU = "PU"
    QA = "QA"
    SA = "SA"
    TC = "TC"


class Condition(str, Enum):
    WORKING = "Working"
    NOT_WORKING = "Not Working"


class LogAction(str, Enum):
    ADD = "Add"
    UPDATE = "Update"
    DELETE = "Delete"
    CHECK_IN = "Check-in"
    CHECK_OUT = "Check-out"
    DISPOSE = "Dispose"
    AUDIT = "Audit"
    IMPORT = "Import"


class AuditStatus(str, Enum):
    COMPLETED = "Completed"
    IN_PROGRESS = "In Progress"


class VerificationStatus(str, Enum):
    PENDING = "Pending"
    SUPERVISOR_1_VERIFIED = "Supervisor 1 Verified"
    VERIFIED = "Verified"


# Historical spellings found in older saved data
STATUS_ALIASES: Dict[str, str] = {
    "Assigned": AssetStatus.IN_USE.value,
    "Maintenance": AssetStatus.RESIGN.value,
}

DEPARTMENT_ALIASES: Dict[str, str] = {
    "OMD": Department.OD.value,
    "PUR": Department.PU.value,
}

BRANDS = ["Dell", "Lenovo", "HP", "Asus"]

HDD_OPTIONS = ["128 GB", "256 GB", "512 GB", "1 TB"]

RAM_OPTIONS = [
    # DDR4
    "8 GB (DDR4)", "16 GB (DDR4)", "32 GB (DDR4)", "64 GB (DDR4)", "128 GB (DDR4)",
    # DDR5
    "8 GB (DDR5)", "16 GB (DDR5)", "32 GB (DDR5)", "64 GB (DDR5)", "128 GB (DDR5)",
]

MAX_IMAGES = 3

ImagePayload = Union[str, bytes]


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_json_dict(self) -> Dict[str, Any]:
        """JSON-ready dict using the persisted camelCase keys"""
        return self.model_dump(mode="json", by_alias=True)


class Asset(_Record):
    """
    A physical item tracked in the inventory.

    `images` lives only in memory and in the image store; it is stripped from
    the metadata written to the key/value store (see `metadata_dict`).
    """

    id: str = Field(default_factory=new_id)
    computer_no: str = Field(alias="computerNo")
    serial_no: str = Field(alias="serialNo")
    brand: Optional[str] = None
    model: Optional[str] = None

    # Assignment, only meaningful while the asset is In Use
    owner: Optional[str] = None
    emp_id: Optional[str] = Field(default=None, alias="empId")
    department: Optional[Department] = None
    distribution_date: Optional[datetime] = Field(default=None, alias="distributionDate")

    status: AssetStatus = AssetStatus.IN_STOCK
    purchase_date: Optional[datetime] = Field(default=None, alias="purchaseDate")
    warranty_expiry: Optional[datetime] = Field(default=None, alias="warrantyExpiry")
    tags: List[str] = Field(default_factory=list)
    remarks: Optional[str] = None
    condition: Optional[Condition] = None
    issues: Optional[str] = None

    hdd: Optional[str] = None
    ram: Optional[str] = None
    cpu: Optional[str] = None

    images: List[ImagePayload] = Field(default_factory=list, max_length=MAX_IMAGES)

    last_updated: datetime = Field(default_factory=utcnow, alias="lastUpdated")
    updated_by: str = Field(default="", alias="updatedBy")

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value):
        if isinstance(value, str):
            return STATUS_ALIASES.get(value, value)
        return value

    @field_validator("department", mode="before")
    @classmethod
    def _normalize_department(cls, value):
        if value in ("", "-"):
            return None
        if isinstance(value, str):
            return DEPARTMENT_ALIASES.get(value, value)
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def _none_tags(cls, value):
        return [] if value is None else value

    def metadata_dict(self) -> Dict[str, Any]:
        """Record for the metadata store, without image payloads"""
        return self.model_dump(mode="json", by_alias=True, exclude={"images"})


class LogEntry(_Record):
    """
    One immutable activity-log row.

    `asset_id` is a plain identifier: the asset may have been deleted since, so
    lookups by it can come back empty. Computer and serial numbers are copied
    in at write time to keep the history readable.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(default_factory=new_id)
    asset_id: Optional[str] = Field(default=None, alias="assetId")
    computer_no: str = Field(alias="computerNo")
    serial_no: str = Field(alias="serialNo")
    action: LogAction
    timestamp: datetime = Field(default_factory=utcnow)
    admin_user: str = Field(alias="adminUser")
    details: Optional[str] = None


class AuditLog(_Record):
    """Snapshot of one completed stock-take."""

    id: str = Field(default_factory=new_id)
    date: datetime = Field(default_factory=utcnow)
    total_assets: int = Field(alias="totalAssets")
    scanned_count: int = Field(alias="scannedCount")
    missing_count: int = Field(alias="missingCount")
    scanned_ids: List[str] = Field(default_factory=list, alias="scannedIds")
    missing_ids: List[str] = Field(default_factory=list, alias="missingIds")
    status: AuditStatus = AuditStatus.COMPLETED
    audited_by: Optional[str] = Field(default=None, alias="auditedBy")

    supervisor1_verified_by: Optional[str] = Field(default=None, alias="supervisor1VerifiedBy")
    supervisor1_verified_at: Optional[datetime] = Field(default=None, alias="supervisor1VerifiedAt")
    supervisor2_verified_by: Optional[str] = Field(default=None, alias="supervisor2VerifiedBy")
    supervisor2_verified_at: Optional[datetime] = Field(default=None, alias="supervisor2VerifiedAt")
    # Single-verifier fields kept for older readers
    verified_by: Optional[str] = Field(default=None, alias="verifiedBy")
    verified_at: Optional[datetime] = Field(default=None, alias="verifiedAt")
    verification_status: VerificationStatus = Field(
        default=VerificationStatus.PENDING, alias="verificationStatus"
    )

    @field_validator("missing_ids", "scanned_ids", mode="before")
    @classmethod
    def _none_ids(cls, value):
        return [] if value is None else value

    def is_partitioned(self) -> bool:
        """True when scanned and missing ids are disjoint and cover total_assets"""
        scanned = set(self.scanned_ids)
        missing = set(self.missing_ids)
        return (
            not scanned & missing
            and len(scanned) + len(missing) == self.total_assets
            and self.scanned_count + self.missing_count == self.total_assets
        )
