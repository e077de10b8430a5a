"""
Async image store.

Each asset owns an ordered list of up to three images, kept apart from the
metadata store because of their size. Payloads are either data-URI strings
or raw bytes and come back in the form they were saved in.
"""

import logging
from typing import List, Optional, Sequence

from sqlalchemy import Column, LargeBinary, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlmodel import Field, SQLModel, select

from .database import create_images_engine, create_session_maker, init_images_db
from .errors import ImageStoreError
from .models import ImagePayload

logger = logging.getLogger(__name__)


class AssetImage(SQLModel, table=True):
    """
    One image of one asset.

    The whole list for an asset is replaced on every save, so `position` is
    always 0..n-1 for the current list.
    """
    __tablename__ = "asset_images"

    id: Optional[int] = Field(default=None, primary_key=True)
    asset_id: str = Field(index=True, nullable=False, max_length=255)
    position: int = Field(default=0, nullable=False)

    # Text payloads (data URIs) are stored UTF-8 encoded with is_text set
    data: bytes = Field(sa_column=Column(LargeBinary, nullable=False))
    is_text: bool = Field(default=False, nullable=False)

    def payload(self) -> ImagePayload:
        return self.data.decode("utf-8") if self.is_text else self.data


def _to_row(asset_id: str, position: int, image: ImagePayload) -> AssetImage:
    if isinstance(image, str):
        return AssetImage(asset_id=asset_id, position=position, data=image.encode("utf-8"), is_text=True)
    return AssetImage(asset_id=asset_id, position=position, data=bytes(image), is_text=False)


class ImageBlobStore:
    """Ordered image lists keyed by asset id."""

    def __init__(self, engine: Optional[AsyncEngine] = None):
        self.engine = engine if engine is not None else create_images_engine()
        self._session_maker = create_session_maker(self.engine)
        self._initialized = False

    @classmethod
    def from_url(cls, url: str) -> "ImageBlobStore":
        return cls(create_images_engine(url))

    async def init(self) -> None:
        """Create the image table if needed. Safe to call more than once."""
        if self._initialized:
            return
        try:
            await init_images_db(self.engine)
        except SQLAlchemyError as exc:
            raise ImageStoreError(f"Failed to initialize image store: {exc}") from exc
        self._initialized = True

    async def save_images(self, asset_id: str, images: Sequence[ImagePayload]) -> None:
        """
        Replace the stored image list of *asset_id* with *images*.

        Args:
            asset_id: Owning asset
            images: Ordered image payloads

        Raises:
            ImageStoreError: If the write fails
        """
        await self.init()
        try:
            async with self._session_maker() as session:
                await session.exec(delete(AssetImage).where(AssetImage.asset_id == asset_id))
                session.add_all([
                    _to_row(asset_id, position, image)
                    for position, image in enumerate(images)
                ])
                await session.commit()
        except SQLAlchemyError as exc:
            raise ImageStoreError(f"Failed to save images for asset {asset_id}: {exc}") from exc
        logger.debug("Saved %d image(s) for asset %s", len(images), asset_id)

    async def get_images(self, asset_id: str) -> List[ImagePayload]:
        """Stored images of *asset_id* in order, or an empty list."""
        await self.init()
        try:
            async with self._session_maker() as session:
                result = await session.exec(
                    select(AssetImage)
                    .where(AssetImage.asset_id == asset_id)
                    .order_by(AssetImage.position)
                )
                return [row.payload() for row in result.all()]
        except SQLAlchemyError as exc:
            raise ImageStoreError(f"Failed to read images for asset {asset_id}: {exc}") from exc

    async def delete_images(self, asset_id: str) -> None:
        """Remove every image of *asset_id*."""
        await self.init()
        try:
            async with self._session_maker() as session:
                await session.exec(delete(AssetImage).where(AssetImage.asset_id == asset_id))
                await session.commit()
        except SQLAlchemyError as exc:
            raise ImageStoreError(f"Failed to delete images for asset {asset_id}: {exc}") from exc

    async def asset_ids(self) -> List[str]:
        """Ids of all assets that currently have images"""
        await self.init()
        async with self._session_maker() as session:
            result = await session.exec(select(AssetImage.asset_id).distinct())
            return list(result.all())

    async def close(self) -> None:
        await self.engine.dispose()
