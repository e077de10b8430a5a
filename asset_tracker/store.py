"""
Inventory store.

Single source of truth for assets, activity logs and audit logs during a
session. Every mutation goes through this class: it updates the in-memory
collections, writes images to the image store, writes the stripped metadata
to the key/value store, appends the activity log and notifies subscribers.

Mutations are serialized through one asyncio lock, so two overlapping calls
(a double-clicked button, say) run one after the other instead of both
working from the same stale snapshot.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Awaitable, Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from .blob_store import ImageBlobStore
from .database import ASSETS_KEY, AUDIT_LOGS_KEY, LOGS_KEY
from .errors import ImageStoreError, InvalidTransitionError, StorageError
from .kv_store import KeyValueStore
from .logging_utils import get_logger
from .migrations import migrate_asset_records
from .models import (
    Asset,
    AssetStatus,
    AuditLog,
    LogAction,
    LogEntry,
    MAX_IMAGES,
    VerificationStatus,
    utcnow,
)

logger = logging.getLogger(__name__)


# Actions a caller may attach to update_asset
UPDATE_ACTIONS = frozenset({
    LogAction.CHECK_IN,
    LogAction.CHECK_OUT,
    LogAction.UPDATE,
    LogAction.DISPOSE,
})

# Used only when the store is opened with strict_transitions=True
ALLOWED_TRANSITIONS: Dict[AssetStatus, FrozenSet[AssetStatus]] = {
    AssetStatus.IN_STOCK: frozenset({
        AssetStatus.IN_USE, AssetStatus.DISPOSED, AssetStatus.RESIGN,
        AssetStatus.MISSING, AssetStatus.BROKEN,
    }),
    AssetStatus.IN_USE: frozenset({
        AssetStatus.IN_STOCK, AssetStatus.RESIGN, AssetStatus.MISSING, AssetStatus.BROKEN,
    }),
    AssetStatus.RESIGN: frozenset({AssetStatus.IN_STOCK, AssetStatus.DISPOSED}),
    AssetStatus.MISSING: frozenset({AssetStatus.IN_STOCK, AssetStatus.DISPOSED}),
    AssetStatus.BROKEN: frozenset({AssetStatus.IN_STOCK, AssetStatus.DISPOSED}),
    AssetStatus.DISPOSED: frozenset({AssetStatus.IN_STOCK}),
}


def check_transition(current: AssetStatus, requested: AssetStatus) -> None:
    """Raise InvalidTransitionError if *current* -> *requested* is not allowed."""
    if current == requested:
        return
    if requested not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(current.value, requested.value)


def check_images(asset: Asset) -> None:
    """Raise ValueError if *asset* carries more than MAX_IMAGES images."""
    if len(asset.images) > MAX_IMAGES:
        raise ValueError(
            f"Asset {asset.computer_no} has {len(asset.images)} images, at most {MAX_IMAGES} are allowed"
        )


@dataclass
class CommitResult:
    """
    Outcome of persisting one mutation.

    The in-memory change is kept whatever the outcome; a failed stage only
    means memory and storage disagree until the next successful save.
    """
    images_ok: bool = True
    metadata_ok: bool = True
    errors: List[StorageError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.images_ok and self.metadata_ok

    @property
    def partial(self) -> bool:
        """One store was written and the other was not"""
        return self.images_ok != self.metadata_ok


@dataclass(frozen=True)
class InventorySnapshot:
    assets: Tuple[Asset, ...]
    logs: Tuple[LogEntry, ...]
    audit_logs: Tuple[AuditLog, ...]
    loading: bool


Listener = Callable[[InventorySnapshot], None]
ErrorListener = Callable[[StorageError], None]
# (asset id, image write for that asset)
ImageOp = Tuple[str, Callable[[], Awaitable[None]]]


def _parse_records(raw, model, label: str) -> Tuple[List, List]:
    """Validated records, plus the raw items that failed validation"""
    if not isinstance(raw, list):
        return [], []
    records = []
    unreadable = []
    for item in raw:
        try:
            records.append(model.model_validate(item))
        except ValidationError as exc:
            logger.warning("Keeping unreadable %s record in storage only: %s", label, exc)
            unreadable.append(item)
    return records, unreadable


class InventoryStore:
    """
    In-memory inventory backed by a key/value metadata store and an image store.

    Collections are exposed as tuples and replaced wholesale on every change,
    never edited in place.
    """

    def __init__(
        self,
        kv_store: KeyValueStore,
        blob_store: ImageBlobStore,
        strict_transitions: bool = False,
    ):
        self._kv = kv_store
        self._blobs = blob_store
        self.strict_transitions = strict_transitions

        self._assets: Tuple[Asset, ...] = ()
        self._logs: Tuple[LogEntry, ...] = ()
        self._audit_logs: Tuple[AuditLog, ...] = ()
        self._loading = True
        self._last_error: Optional[StorageError] = None

        # Raw records that failed validation, written back untouched on every save
        self._unreadable: Dict[str, List] = {}
        # Legacy inline images the image store has not accepted yet, by asset id
        self._unlifted: Dict[str, List] = {}

        self._lock = asyncio.Lock()
        self._listeners: List[Listener] = []
        self._error_listeners: List[ErrorListener] = []

    @classmethod
    async def open(
        cls,
        kv_store: Optional[KeyValueStore] = None,
        blob_store: Optional[ImageBlobStore] = None,
        strict_transitions: bool = False,
    ) -> "InventoryStore":
        """
        Build a store on the configured databases and load it.

        Args:
            kv_store: Metadata store, defaults to INVENTORY_METADATA_URL
            blob_store: Image store, defaults to INVENTORY_IMAGES_URL
            strict_transitions: Enforce ALLOWED_TRANSITIONS on update_asset

        Returns:
            InventoryStore: loaded store
        """
        get_logger()
        store = cls(
            kv_store if kv_store is not None else KeyValueStore(),
            blob_store if blob_store is not None else ImageBlobStore(),
            strict_transitions=strict_transitions,
        )
        await store.load()
        return store

    async def close(self) -> None:
        self._kv.close()
        await self._blobs.close()

    # ------------------------------------------------------------------
    # Read surface
    # ------------------------------------------------------------------

    @property
    def assets(self) -> Tuple[Asset, ...]:
        return self._assets

    @property
    def logs(self) -> Tuple[LogEntry, ...]:
        """Activity log, newest first"""
        return self._logs

    @property
    def audit_logs(self) -> Tuple[AuditLog, ...]:
        return self._audit_logs

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def last_error(self) -> Optional[StorageError]:
        return self._last_error

    @property
    def kv_store(self) -> KeyValueStore:
        return self._kv

    @property
    def blob_store(self) -> ImageBlobStore:
        return self._blobs

    def snapshot(self) -> InventorySnapshot:
        return InventorySnapshot(self._assets, self._logs, self._audit_logs, self._loading)

    def get_asset(self, asset_id: str) -> Optional[Asset]:
        return next((a for a in self._assets if a.id == asset_id), None)

    def find_asset(self, code: str) -> Optional[Asset]:
        """Asset whose computer or serial number equals *code*, ignoring case"""
        needle = code.strip().lower()
        return next(
            (a for a in self._assets
             if a.computer_no.lower() == needle or a.serial_no.lower() == needle),
            None,
        )

    def get_audit_log(self, log_id: str) -> Optional[AuditLog]:
        return next((log for log in self._audit_logs if log.id == log_id), None)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call *listener* with a snapshot after every change. Returns an unsubscribe function."""
        self._listeners.append(listener)
        return partial(self._remove, self._listeners, listener)

    def subscribe_errors(self, listener: ErrorListener) -> Callable[[], None]:
        """Call *listener* with every persistence error the store catches."""
        self._error_listeners.append(listener)
        return partial(self._remove, self._error_listeners, listener)

    @staticmethod
    def _remove(listeners: list, listener) -> None:
        if listener in listeners:
            listeners.remove(listener)

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)

    def _report(self, error: StorageError) -> None:
        self._last_error = error
        logger.error("Persistence failure: %s", error)
        for listener in list(self._error_listeners):
            listener(error)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """
        Read all collections from storage.

        Missing or corrupt documents load as empty collections. Legacy asset
        records are normalized first and written back if anything changed;
        the corrected values are used for the session either way.

        Inline images that cannot be moved to the image store stay inline in
        the metadata record until a later image write for that asset works.
        Records that fail validation are left out of memory but kept in
        storage.
        """
        self._loading = True
        self._notify()

        raw_assets = self._kv.load(ASSETS_KEY)
        migration = migrate_asset_records(raw_assets if isinstance(raw_assets, list) else [])

        self._unlifted = {}
        for asset_id, images in migration.legacy_images.items():
            try:
                await self._blobs.save_images(asset_id, images)
            except ImageStoreError as exc:
                self._report(exc)
                self._unlifted[asset_id] = images

        if migration.changed:
            logger.info("Normalized %d legacy asset record(s)", migration.renamed)
            try:
                self._kv.save(ASSETS_KEY, [self._with_inline_images(r) for r in migration.records])
            except StorageError as exc:
                self._report(exc)

        parsed_assets, bad_assets = _parse_records(migration.records, Asset, "asset")
        assets = []
        for asset in parsed_assets:
            images = migration.legacy_images.get(asset.id)
            if images is None:
                try:
                    images = await self._blobs.get_images(asset.id)
                except ImageStoreError as exc:
                    self._report(exc)
                    images = []
            if images:
                asset = asset.model_copy(update={"images": list(images)})
            assets.append(asset)

        logs, bad_logs = _parse_records(self._kv.load(LOGS_KEY), LogEntry, "log")
        audit_logs, bad_audits = _parse_records(self._kv.load(AUDIT_LOGS_KEY), AuditLog, "audit log")

        self._assets = tuple(assets)
        self._logs = tuple(logs)
        self._audit_logs = tuple(audit_logs)
        self._unreadable = {ASSETS_KEY: bad_assets, LOGS_KEY: bad_logs, AUDIT_LOGS_KEY: bad_audits}
        self._loading = False

        logger.info(
            "Loaded %d assets, %d log entries, %d audit logs",
            len(self._assets), len(self._logs), len(self._audit_logs),
        )
        self._notify()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _with_inline_images(self, record):
        if isinstance(record, dict) and record.get("id") in self._unlifted:
            return {**record, "images": list(self._unlifted[record["id"]])}
        return record

    def _serialize(self, key: str) -> list:
        unreadable = list(self._unreadable.get(key, ()))
        if key == ASSETS_KEY:
            records = [asset.metadata_dict() for asset in self._assets] + unreadable
            return [self._with_inline_images(r) for r in records]
        if key == LOGS_KEY:
            return [log.to_json_dict() for log in self._logs] + unreadable
        return [audit.to_json_dict() for audit in self._audit_logs] + unreadable

    async def _commit(
        self,
        image_ops: Sequence[ImageOp] = (),
        assets: Optional[Iterable[Asset]] = None,
        logs: Optional[Iterable[LogEntry]] = None,
        audit_logs: Optional[Iterable[AuditLog]] = None,
    ) -> CommitResult:
        """
        Apply new collections and persist them.

        Image writes run first, then the in-memory swap, then one metadata
        write per changed collection. Failures are reported and recorded in
        the result; nothing is rolled back or retried.
        """
        result = CommitResult()

        for asset_id, op in image_ops:
            try:
                await op()
            except ImageStoreError as exc:
                result.images_ok = False
                result.errors.append(exc)
                self._report(exc)
            else:
                self._unlifted.pop(asset_id, None)

        keys = []
        if assets is not None:
            self._assets = tuple(assets)
            keys.append(ASSETS_KEY)
        if logs is not None:
            self._logs = tuple(logs)
            keys.append(LOGS_KEY)
        if audit_logs is not None:
            self._audit_logs = tuple(audit_logs)
            keys.append(AUDIT_LOGS_KEY)

        for key in keys:
            try:
                self._kv.save(key, self._serialize(key))
            except StorageError as exc:
                result.metadata_ok = False
                result.errors.append(exc)
                self._report(exc)

        if result.partial:
            logger.warning(
                "Partial commit: images %s, metadata %s",
                "saved" if result.images_ok else "failed",
                "saved" if result.metadata_ok else "failed",
            )

        self._notify()
        return result

    def _stamp(self, asset: Asset, actor: str, **changes) -> Asset:
        return asset.model_copy(update={"last_updated": utcnow(), "updated_by": actor, **changes})

    @staticmethod
    def _log_for(asset: Asset, action: LogAction, actor: str, details: Optional[str]) -> LogEntry:
        return LogEntry(
            asset_id=asset.id,
            computer_no=asset.computer_no,
            serial_no=asset.serial_no,
            action=action,
            admin_user=actor,
            details=details,
        )

    # ------------------------------------------------------------------
    # Asset mutations
    # ------------------------------------------------------------------

    async def add_asset(self, asset: Asset, actor: str) -> CommitResult:
        """Append a new asset and log it as 'Initial stock in'."""
        check_images(asset)
        async with self._lock:
            asset = self._stamp(asset, actor, images=list(asset.images))
            image_ops = []
            if asset.images:
                image_ops.append((asset.id, partial(self._blobs.save_images, asset.id, asset.images)))

            log = self._log_for(asset, LogAction.ADD, actor, "Initial stock in")
            return await self._commit(
                image_ops,
                assets=self._assets + (asset,),
                logs=(log,) + self._logs,
            )

    async def add_assets(self, incoming: Sequence[Asset], actor: str) -> CommitResult:
        """
        Bulk import with upsert by computer OR serial number.

        The first existing asset matching either key is overwritten in place
        and keeps its id (and its images when the incoming row has none).
        Unmatched rows are appended. All logs are prepended together once the
        batch has been processed.

        Args:
            incoming: Assets parsed from an import
            actor: Admin performing the import

        Returns:
            CommitResult for the whole batch

        Raises:
            ValueError: If a row carries more than MAX_IMAGES images
        """
        incoming = list(incoming)
        for row in incoming:
            check_images(row)

        async with self._lock:
            working = list(self._assets)
            new_logs: List[LogEntry] = []
            image_ops: List[ImageOp] = []

            for row in incoming:
                index = next(
                    (i for i, existing in enumerate(working)
                     if existing.computer_no == row.computer_no or existing.serial_no == row.serial_no),
                    None,
                )

                if index is not None:
                    existing = working[index]
                    images = list(row.images) if row.images else list(existing.images)
                    merged = self._stamp(row, actor, id=existing.id, images=images)
                    working[index] = merged
                    if row.images:
                        image_ops.append((existing.id, partial(self._blobs.save_images, existing.id, images)))
                    new_logs.append(self._log_for(merged, LogAction.UPDATE, actor, "Batch import overwrite"))
                else:
                    created = self._stamp(row, actor, images=list(row.images))
                    working.append(created)
                    if created.images:
                        image_ops.append((created.id, partial(self._blobs.save_images, created.id, created.images)))
                    new_logs.append(self._log_for(created, LogAction.ADD, actor, "Batch import"))

            if not new_logs:
                return CommitResult()

            logger.info("Imported %d asset(s) by %s", len(new_logs), actor)
            return await self._commit(
                image_ops,
                assets=working,
                logs=tuple(new_logs) + self._logs,
            )

    async def update_asset(
        self,
        asset: Asset,
        actor: str,
        action: Union[LogAction, str] = LogAction.UPDATE,
        details: Optional[str] = None,
    ) -> Optional[CommitResult]:
        """
        Replace the stored asset that has the same id.

        Images are replaced when the incoming asset has any, and cleared when
        it has none but the previous version did. A Check-in of an asset that
        carried a distribution date gets that date appended to its details.

        Args:
            asset: New version of the asset
            actor: Admin making the change
            action: Check-in, Check-out, Update or Dispose, as chosen by the caller
            details: Free text for the activity log

        Returns:
            CommitResult, or None when no asset has that id

        Raises:
            ValueError: If *action* is not an update action, or the asset has
                more than MAX_IMAGES images
            InvalidTransitionError: In strict mode, for a disallowed status change
        """
        action = LogAction(action)
        if action not in UPDATE_ACTIONS:
            raise ValueError(f"'{action.value}' is not an update action")
        check_images(asset)

        async with self._lock:
            index = next((i for i, a in enumerate(self._assets) if a.id == asset.id), None)
            if index is None:
                return None

            previous = self._assets[index]
            if self.strict_transitions:
                check_transition(previous.status, asset.status)

            if action == LogAction.CHECK_IN and previous.distribution_date is not None:
                suffix = f"(Distributed: {previous.distribution_date:%Y-%m-%d})"
                details = f"{details} {suffix}" if details else suffix

            updated = self._stamp(asset, actor, images=list(asset.images))
            image_ops = []
            if updated.images:
                image_ops.append((updated.id, partial(self._blobs.save_images, updated.id, updated.images)))
            elif previous.images:
                image_ops.append((updated.id, partial(self._blobs.delete_images, updated.id)))

            assets = list(self._assets)
            assets[index] = updated
            log = self._log_for(updated, action, actor, details)
            return await self._commit(image_ops, assets=assets, logs=(log,) + self._logs)

    async def delete_asset(self, asset_id: str, actor: str) -> Optional[CommitResult]:
        """Remove one asset; a no-op returning None if the id is unknown."""
        return await self._delete([asset_id], actor, "Asset deleted from inventory")

    async def delete_assets(self, asset_ids: Iterable[str], actor: str) -> Optional[CommitResult]:
        """Remove every listed asset that exists; unknown ids are ignored."""
        return await self._delete(list(asset_ids), actor, "Batch delete")

    async def _delete(self, asset_ids: List[str], actor: str, details: str) -> Optional[CommitResult]:
        wanted = set(asset_ids)
        async with self._lock:
            removed = [a for a in self._assets if a.id in wanted]
            if not removed:
                return None

            remaining = [a for a in self._assets if a.id not in wanted]
            image_ops = [(a.id, partial(self._blobs.delete_images, a.id)) for a in removed]
            new_logs = [self._log_for(a, LogAction.DELETE, actor, details) for a in removed]

            logger.info("Deleting %d asset(s) by %s", len(removed), actor)
            return await self._commit(
                image_ops,
                assets=remaining,
                logs=tuple(new_logs) + self._logs,
            )

    # ------------------------------------------------------------------
    # Audit logs
    # ------------------------------------------------------------------

    async def save_audit_log(self, audit_log: AuditLog) -> CommitResult:
        """Prepend a completed stock-take snapshot exactly as given."""
        async with self._lock:
            others = tuple(log for log in self._audit_logs if log.id != audit_log.id)
            return await self._commit(audit_logs=(audit_log,) + others)

    async def verify_audit_log(self, log_id: str, verifier: str, step: int) -> Optional[CommitResult]:
        """
        Record a supervisor sign-off on an audit log.

        Step 1 marks 'Supervisor 1 Verified'; step 2 marks 'Verified' and also
        fills the legacy single-verifier fields. Steps are not checked for
        order. Returns None if the log id is unknown.
        """
        if step not in (1, 2):
            raise ValueError(f"Verification step must be 1 or 2, got {step}")

        async with self._lock:
            index = next((i for i, log in enumerate(self._audit_logs) if log.id == log_id), None)
            if index is None:
                return None

            now = utcnow()
            current = self._audit_logs[index]
            if step == 1:
                verified = current.model_copy(update={
                    "supervisor1_verified_by": verifier,
                    "supervisor1_verified_at": now,
                    "verification_status": VerificationStatus.SUPERVISOR_1_VERIFIED,
                })
            else:
                verified = current.model_copy(update={
                    "supervisor2_verified_by": verifier,
                    "supervisor2_verified_at": now,
                    "verified_by": verifier,
                    "verified_at": now,
                    "verification_status": VerificationStatus.VERIFIED,
                })

            audit_logs = list(self._audit_logs)
            audit_logs[index] = verified
            return await self._commit(audit_logs=audit_logs)
