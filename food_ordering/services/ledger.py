"""
Order Ledger

Stores orders and enforces the status state machine.

    Pending ──► Delivered
       │
       └────► Rejected

Delivered and Rejected are terminal. With ``enforce_forward_transitions``
enabled (the default) a change out of a terminal state raises
``InvalidTransition``; with it disabled any known status may follow any
other. A status outside the enumeration is always ``InvalidStatus``.

Each successful mutation is queued for the Excel ledger export.
"""

import logging
import math
from dataclasses import dataclass, asdict
from datetime import timedelta
from typing import Optional, Sequence, Union

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from food_ordering.core.config import OrderTotalPolicy, get_settings
from food_ordering.core.errors import (
    InvalidStatus,
    InvalidTransition,
    NotFound,
    StoreFailure,
    ValidationError,
)
from food_ordering.database import utcnow
from food_ordering.models import Order, OrderStatus
from food_ordering.tasks import queue_ledger_event

logger = logging.getLogger(__name__)

TOTAL_TOLERANCE = 0.01


@dataclass(frozen=True)
class PurchaserSnapshot:
    """Name and email copied into the order at placement time."""
    name: str
    email: str


@dataclass(frozen=True)
class OrderLine:
    food_name: str
    food_price: float
    quantity: int

    @property
    def line_total(self) -> float:
        return self.food_price * self.quantity


def parse_status(value: Union[str, OrderStatus, None]) -> OrderStatus:
    """Map a requested status onto the enumeration or raise InvalidStatus."""
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(value)
    except ValueError:
        valid = [s.value for s in OrderStatus]
        raise InvalidStatus(f"Invalid status {value!r}. Options: {valid}")


def validate_transition(
    current: OrderStatus,
    requested: Union[str, OrderStatus, None],
    enforce_forward: bool = True,
) -> OrderStatus:
    """
    Check a status change against the state machine.

    Returns:
        OrderStatus: The parsed target status

    Raises:
        InvalidStatus: Target is not a known status
        InvalidTransition: Target leaves a terminal state (enforcement on)
    """
    target = parse_status(requested)

    if enforce_forward and current.is_terminal and target is not current:
        raise InvalidTransition(
            f"Order is already {current.value}; cannot change to {target.value}"
        )

    return target


def lines_total(lines: Sequence[OrderLine]) -> float:
    return round(sum(line.line_total for line in lines), 2)


class OrderLedger:
    """
    Order persistence and status changes for one database session.

    Example:
        >>> ledger = OrderLedger(db)
        >>> order = await ledger.place(
        ...     PurchaserSnapshot("Ann", "a@x.com"),
        ...     [OrderLine("Burger", 5.0, 2)],
        ...     total_amount=10.0,
        ...     payment_method="cash",
        ... )
        >>> order.status
        <OrderStatus.PENDING: 'Pending'>
    """

    def __init__(
        self,
        db: AsyncSession,
        total_policy: Optional[OrderTotalPolicy] = None,
        enforce_forward: Optional[bool] = None,
        export_events: Optional[bool] = None,
    ):
        settings = get_settings()
        self.db = db
        self.total_policy = total_policy or settings.order_total_policy
        self.enforce_forward = (
            settings.enforce_forward_transitions if enforce_forward is None else enforce_forward
        )
        self.export_events = (
            settings.audit_export_enabled if export_events is None else export_events
        )

    # =========================================================================
    # PLACEMENT
    # =========================================================================

    def _validate_placement(
        self,
        purchaser: Optional[PurchaserSnapshot],
        lines: Sequence[OrderLine],
        total_amount: Optional[float],
    ) -> None:
        if purchaser is None or not (purchaser.name or "").strip() or not (purchaser.email or "").strip():
            raise ValidationError("Purchaser name and email are required")
        if not lines:
            raise ValidationError("Order must contain at least one item")

        for line in lines:
            if not (line.food_name or "").strip():
                raise ValidationError("Every item needs a name")
            if line.food_price is None or not math.isfinite(line.food_price) or line.food_price < 0:
                raise ValidationError(f"Invalid price for {line.food_name}")
            if line.quantity is None or line.quantity < 1:
                raise ValidationError(f"Invalid quantity for {line.food_name}")

        if total_amount is None and self.total_policy is not OrderTotalPolicy.RECOMPUTE:
            raise ValidationError("Total amount is required")
        if total_amount is not None and not math.isfinite(total_amount):
            raise ValidationError("Total amount must be a finite number")
        if total_amount is not None and total_amount < 0:
            raise ValidationError("Total amount must not be negative")

    def _settle_total(self, lines: Sequence[OrderLine], total_amount: Optional[float]) -> float:
        if self.total_policy is OrderTotalPolicy.TRUST:
            return total_amount

        computed = lines_total(lines)
        if self.total_policy is OrderTotalPolicy.RECOMPUTE:
            return computed

        if abs(computed - total_amount) > TOTAL_TOLERANCE:
            raise ValidationError(
                f"Total amount {total_amount:.2f} does not match item total {computed:.2f}"
            )
        return total_amount

    async def place(
        self,
        purchaser: PurchaserSnapshot,
        lines: Sequence[OrderLine],
        total_amount: Optional[float],
        payment_method: Optional[str] = None,
    ) -> Order:
        """
        Record a new order with status Pending.

        Raises:
            ValidationError: Missing purchaser, no lines, bad line or total
            StoreFailure: Database rejected the write
        """
        self._validate_placement(purchaser, lines, total_amount)
        total = self._settle_total(lines, total_amount)

        now = utcnow()
        order = Order(
            purchaser_name=purchaser.name.strip(),
            purchaser_email=purchaser.email.strip().lower(),
            lines=[asdict(line) for line in lines],
            total_amount=total,
            payment_method=payment_method,
            status=OrderStatus.PENDING,
            created_at=now,
            updated_at=now,
        )

        self.db.add(order)
        await self._commit("placing order")
        await self.db.refresh(order)

        logger.info(f"Order #{order.id} placed for {order.purchaser_email} (total={total:.2f})")
        self._publish("placed", order)
        return order

    # =========================================================================
    # LOOKUP / MUTATION
    # =========================================================================

    async def get(self, order_id: int) -> Order:
        """Fetch one order or raise NotFound."""
        try:
            result = await self.db.execute(select(Order).where(Order.id == order_id))
        except SQLAlchemyError as e:
            logger.exception(f"Error loading order #{order_id}: {e}")
            raise StoreFailure("Error fetching order")

        order = result.scalar_one_or_none()
        if order is None:
            raise NotFound(f"Order with ID {order_id} not found")
        return order

    async def set_status(self, order_id: int, new_status: Union[str, OrderStatus]) -> Order:
        """
        Move an order to ``new_status``.

        The status is validated before the lookup, so an unknown status is
        reported even for an unknown id, and the stored row is never touched
        on failure.

        Raises:
            InvalidStatus: Unknown status value
            NotFound: No such order
            InvalidTransition: Leaves a terminal state (enforcement on)
        """
        parse_status(new_status)
        order = await self.get(order_id)
        target = validate_transition(order.status, new_status, self.enforce_forward)

        previous = order.status
        now = utcnow()
        if now <= order.created_at:
            now = order.created_at + timedelta(microseconds=1)

        order.status = target
        order.updated_at = now
        await self._commit(f"updating order #{order_id}")
        await self.db.refresh(order)

        logger.info(f"Order #{order.id} status {previous.value} -> {target.value}")
        self._publish("status_changed", order, previous_status=previous.value)
        return order

    async def remove(self, order_id: int) -> Order:
        """Delete an order and return the removed record."""
        order = await self.get(order_id)

        await self.db.delete(order)
        await self._commit(f"deleting order #{order_id}")

        logger.info(f"Order #{order_id} removed")
        self._publish("removed", order)
        return order

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _commit(self, action: str) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception(f"Store failure while {action}: {e}")
            raise StoreFailure()

    def _publish(self, event: str, order: Order, previous_status: Optional[str] = None) -> None:
        if not self.export_events:
            return
        queue_ledger_event({
            "event": event,
            "order_id": order.id,
            "purchaser_name": order.purchaser_name,
            "purchaser_email": order.purchaser_email,
            "lines": order.lines,
            "total_amount": order.total_amount,
            "payment_method": order.payment_method,
            "previous_status": previous_status,
            "status": order.status.value,
            "created_at": order.created_at.isoformat(),
            "updated_at": order.updated_at.isoformat(),
        })
