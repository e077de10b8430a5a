"""
Load-time normalization of stored asset records.

Older saves carry status and department spellings that were later renamed,
and some carry a single inline `image` string from before images moved to
the image store. The routine rewrites raw dicts before validation and is
idempotent: running it on its own output changes nothing.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from .models import DEPARTMENT_ALIASES, STATUS_ALIASES


@dataclass
class MigrationResult:
    records: List[Dict[str, Any]]
    changed: bool = False
    # asset id -> images lifted out of the legacy inline field
    legacy_images: Dict[str, List[str]] = field(default_factory=dict)
    renamed: int = 0


def migrate_asset_record(record: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of *record* with legacy enum spellings replaced."""
    migrated = dict(record)

    status = migrated.get("status")
    if status in STATUS_ALIASES:
        migrated["status"] = STATUS_ALIASES[status]

    department = migrated.get("department")
    if department in DEPARTMENT_ALIASES:
        migrated["department"] = DEPARTMENT_ALIASES[department]

    return migrated


def migrate_asset_records(records: List[Dict[str, Any]]) -> MigrationResult:
    """
    Normalize a loaded list of raw asset records.

    Args:
        records: Asset dicts as read from the metadata store

    Returns:
        MigrationResult with the corrected list, whether anything changed, and
        any inline images that must be moved to the image store
    """
    result = MigrationResult(records=[])

    for record in records:
        if not isinstance(record, dict):
            result.records.append(record)
            continue

        migrated = migrate_asset_record(record)
        if migrated != record:
            result.renamed += 1
            result.changed = True

        # Inline payloads never belong in the metadata store
        legacy_image = migrated.pop("image", None)
        inline_images = migrated.pop("images", None)
        if legacy_image is not None or inline_images:
            result.changed = True
            # The list field superseded the single one
            lifted = [img for img in (inline_images or []) if img] or [legacy_image]
            lifted = [img for img in lifted if img]
            if lifted and migrated.get("id"):
                result.legacy_images[migrated["id"]] = lifted

        result.records.append(migrated)

    return result
