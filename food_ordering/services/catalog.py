"""
Catalog Service

Plain CRUD over ``food_items``. New items must carry every field and an image.
"""

import logging
from typing import Optional

from fastapi import UploadFile
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from food_ordering.core.errors import NotFound, StoreFailure, ValidationError
from food_ordering.models import FoodItem
from food_ordering.services.storage import UploadStorage, get_upload_storage

logger = logging.getLogger(__name__)


class CatalogService:
    def __init__(self, db: AsyncSession, storage: Optional[UploadStorage] = None):
        self.db = db
        self.storage = storage or get_upload_storage()

    async def list_items(self) -> list[FoodItem]:
        try:
            result = await self.db.execute(select(FoodItem).order_by(FoodItem.name))
        except SQLAlchemyError as e:
            logger.exception(f"Error fetching food items: {e}")
            raise StoreFailure("Error fetching food items")
        return list(result.scalars().all())

    async def add_item(
        self,
        name: Optional[str],
        price: Optional[float],
        description: Optional[str],
        type: Optional[str],
        image: Optional[UploadFile],
    ) -> FoodItem:
        """Create a catalog item; the image is stored first and removed on failure."""
        if not name or not price or not description or not type or image is None or not image.filename:
            raise ValidationError("All fields are required")
        if price < 0:
            raise ValidationError("Price must not be negative")

        image_path = await self.storage.save(image)
        item = FoodItem(
            name=name,
            price=price,
            description=description,
            type=type,
            image=image_path,
        )

        try:
            self.db.add(item)
            await self.db.commit()
            await self.db.refresh(item)
        except SQLAlchemyError as e:
            await self.db.rollback()
            self.storage.discard(image_path)
            logger.exception(f"Error adding food item: {e}")
            raise StoreFailure("Error adding food item")

        logger.info(f"Food item {item.id} ({item.name}) added")
        return item

    async def remove_item(self, item_id: str) -> FoodItem:
        item = await self.db.get(FoodItem, item_id)
        if item is None:
            raise NotFound("Food item not found")

        try:
            await self.db.delete(item)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(f"Error deleting food item {item_id}: {e}")
            raise StoreFailure("Error deleting food item")

        logger.info(f"Food item {item_id} deleted")
        return item
