"""
Order Query Service

Read side of the ledger: orders for one purchaser email, and all orders.
Results are newest first; orders created in the same instant come out in
reverse insertion order (id DESC), so repeated reads agree.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Union

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from food_ordering.core.errors import StoreFailure
from food_ordering.models import Order, OrderStatus
from food_ordering.services.ledger import parse_status

logger = logging.getLogger(__name__)


@dataclass
class OrderListing:
    """
    Result of an order query.

    ``none_found`` is the empty-result signal; routes decide whether that
    becomes a 404 or an empty list.
    """
    orders: list[Order] = field(default_factory=list)
    total: int = 0

    @property
    def none_found(self) -> bool:
        return not self.orders


NEWEST_FIRST = (Order.created_at.desc(), Order.id.desc())


class OrderQueryService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_for_identity(self, email: Optional[str]) -> OrderListing:
        """Orders whose purchaser snapshot email equals ``email``."""
        if not email:
            return OrderListing()

        query = (
            select(Order)
            .where(Order.purchaser_email == email.strip().lower())
            .order_by(*NEWEST_FIRST)
        )
        orders = await self._fetch(query)
        return OrderListing(orders=orders, total=len(orders))

    async def list_all(
        self,
        status: Union[str, OrderStatus, None] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> OrderListing:
        """All orders, optionally filtered by status and paginated."""
        query = select(Order).order_by(*NEWEST_FIRST)
        count_query = select(func.count(Order.id))

        if status:
            status_enum = parse_status(status)
            query = query.where(Order.status == status_enum)
            count_query = count_query.where(Order.status == status_enum)

        if skip:
            query = query.offset(skip)
        if limit is not None:
            query = query.limit(limit)

        orders = await self._fetch(query)
        try:
            total = (await self.db.execute(count_query)).scalar() or 0
        except SQLAlchemyError as e:
            logger.exception(f"Error counting orders: {e}")
            raise StoreFailure("Error fetching all orders")

        return OrderListing(orders=orders, total=total)

    async def _fetch(self, query) -> list[Order]:
        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            logger.exception(f"Error fetching orders: {e}")
            raise StoreFailure("Error fetching orders")
        return list(result.scalars().all())
