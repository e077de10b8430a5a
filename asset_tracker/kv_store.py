"""
Key/value metadata store.

Holds JSON documents (asset records without images, activity logs, audit
logs) under fixed string keys in a single SQLite table. Like the browser
string store it replaces, the table has a total size quota, which is why image
payloads never go in here.
"""

import json
import logging
from typing import Any, List, Optional

from sqlalchemy import Column, Text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Field, Session, SQLModel, select

from .database import STORAGE_QUOTA_BYTES, create_metadata_engine, init_metadata_db
from .errors import StorageQuotaExceededError, StorageWriteError

logger = logging.getLogger(__name__)


class KeyValueEntry(SQLModel, table=True):
    """One JSON document stored under a fixed key"""
    __tablename__ = "kv_store"

    key: str = Field(primary_key=True, max_length=255, nullable=False)
    value: str = Field(sa_column=Column(Text, nullable=False))


def _entry_size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class KeyValueStore:
    """Synchronous JSON document store keyed by string."""

    def __init__(self, engine: Optional[Engine] = None, quota_bytes: Optional[int] = None):
        self.engine = engine if engine is not None else create_metadata_engine()
        self.quota_bytes = STORAGE_QUOTA_BYTES if quota_bytes is None else quota_bytes
        init_metadata_db(self.engine)

    @classmethod
    def from_url(cls, url: str, quota_bytes: Optional[int] = None) -> "KeyValueStore":
        return cls(create_metadata_engine(url), quota_bytes=quota_bytes)

    def load(self, key: str) -> Optional[Any]:
        """
        Read and parse the document stored under *key*.

        Returns:
            The parsed value, or None when the key is absent or the stored text
            is not valid JSON.
        """
        try:
            with Session(self.engine) as session:
                entry = session.get(KeyValueEntry, key)
                raw = entry.value if entry is not None else None
        except SQLAlchemyError as exc:
            logger.warning("Could not read '%s' from metadata store: %s", key, exc)
            return None

        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding unreadable JSON stored under '%s'", key)
            return None

    def load_raw(self, key: str) -> Optional[str]:
        """Stored text for *key* without parsing."""
        with Session(self.engine) as session:
            entry = session.get(KeyValueEntry, key)
            return entry.value if entry is not None else None

    def save(self, key: str, value: Any) -> None:
        """
        Serialize *value* to JSON and store it under *key*.

        Raises:
            StorageQuotaExceededError: If the store would grow past its quota
            StorageWriteError: If the value cannot be serialized or written
        """
        try:
            payload = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise StorageWriteError(f"Value for '{key}' is not JSON serializable: {exc}") from exc

        try:
            with Session(self.engine) as session:
                entry = session.get(KeyValueEntry, key)

                if self.quota_bytes:
                    used = self._usage(session)
                    if entry is not None:
                        used -= _entry_size(key, entry.value)
                    required = used + _entry_size(key, payload)
                    if required > self.quota_bytes:
                        raise StorageQuotaExceededError(key, required, self.quota_bytes)

                if entry is None:
                    session.add(KeyValueEntry(key=key, value=payload))
                else:
                    entry.value = payload
                    session.add(entry)
                session.commit()
        except SQLAlchemyError as exc:
            raise StorageWriteError(f"Failed to write '{key}': {exc}") from exc

    def remove(self, key: str) -> None:
        try:
            with Session(self.engine) as session:
                entry = session.get(KeyValueEntry, key)
                if entry is not None:
                    session.delete(entry)
                    session.commit()
        except SQLAlchemyError as exc:
            raise StorageWriteError(f"Failed to remove '{key}': {exc}") from exc

    def keys(self) -> List[str]:
        with Session(self.engine) as session:
            return list(session.exec(select(KeyValueEntry.key)).all())

    def usage(self) -> int:
        """Bytes currently used by all keys and values"""
        with Session(self.engine) as session:
            return self._usage(session)

    @staticmethod
    def _usage(session: Session) -> int:
        # SQLite length() counts characters, so sum sizes in Python for UTF-8 bytes
        return sum(
            _entry_size(entry.key, entry.value)
            for entry in session.exec(select(KeyValueEntry)).all()
        )

    def close(self) -> None:
        self.engine.dispose()
