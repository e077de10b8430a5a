"""
Database connection and session management for the asset tracker.

Two SQLite databases back the store:
- the metadata database (synchronous), a small key/value table of JSON documents
- the image database (async), one row per asset image
"""

from typing import Optional
import os

from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel, create_engine
from sqlmodel.ext.asyncio.session import AsyncSession


# Connection URLs from environment variables
METADATA_DATABASE_URL = os.getenv(
    "INVENTORY_METADATA_URL",
    "sqlite:///inventory_metadata.db"
)

IMAGES_DATABASE_URL = os.getenv(
    "INVENTORY_IMAGES_URL",
    "sqlite+aiosqlite:///inventory_images.db"
)

# Size limit of the metadata store in bytes (0 disables it)
STORAGE_QUOTA_BYTES = int(os.getenv("INVENTORY_STORAGE_QUOTA", str(5 * 1024 * 1024)))

SQL_ECHO = os.getenv("INVENTORY_SQL_ECHO", "").lower() in ("1", "true", "yes")

# Fixed keys of the metadata store
ASSETS_KEY = "inventory_assets"
LOGS_KEY = "inventory_logs"
AUDIT_LOGS_KEY = "inventory_audit_logs"


def create_metadata_engine(url: Optional[str] = None) -> Engine:
    """
    Create the synchronous engine used by the key/value metadata store.

    Args:
        url: Database URL, defaults to INVENTORY_METADATA_URL

    Returns:
        Engine: SQLAlchemy engine
    """
    return create_engine(
        url or METADATA_DATABASE_URL,
        echo=SQL_ECHO,
        connect_args={"check_same_thread": False},
    )


def create_images_engine(url: Optional[str] = None) -> AsyncEngine:
    """
    Create the async engine used by the image blob store.

    Args:
        url: Database URL, defaults to INVENTORY_IMAGES_URL

    Returns:
        AsyncEngine: SQLAlchemy async engine
    """
    return create_async_engine(
        url or IMAGES_DATABASE_URL,
        echo=SQL_ECHO,
        future=True,
    )


def create_session_maker(engine: AsyncEngine) -> sessionmaker:
    """Async session maker bound to *engine*."""
    return sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


def init_metadata_db(engine: Engine) -> None:
    """
    Create the key/value table.
    Only the metadata table is created so the two databases stay separate.
    """
    from .kv_store import KeyValueEntry

    SQLModel.metadata.create_all(engine, tables=[KeyValueEntry.__table__])


async def init_images_db(engine: AsyncEngine) -> None:
    """Create the image table on the async engine."""
    from .blob_store import AssetImage

    async with engine.begin() as conn:
        await conn.run_sync(
            SQLModel.metadata.create_all, tables=[AssetImage.__table__]
        )
