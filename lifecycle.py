from __future__ import annotations
import logging
import secrets
import string
import time
from datetime import datetime
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from errors import NotFoundError, ValidationError
from schemas import CartItem, CheckoutDetails, Order, OrderStatus

logger = logging.getLogger(__name__)

ORDER_ID_PREFIX = "P2P-"
DATE_FORMAT = "%d.%m.%Y, %H:%M:%S"

# ---------- Transitions ----------
TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset({OrderStatus.COMPLETED, OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def now_ms() -> int:
    return int(time.time() * 1000)


def parse_status(value) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown order status: {value!r}") from None


def can_transition(order: Order, new_status: OrderStatus) -> bool:
    if new_status == order.status:
        return True
    if new_status not in TRANSITIONS[order.status]:
        return False
    if new_status == OrderStatus.DELIVERED and order.type != "delivery":
        return False
    return True


def transition(order: Order, new_status, now: Optional[int] = None, strict: bool = True) -> Order:
    """Return `order` moved to `new_status`.

    `preparing_start_time` is stamped the first time the order enters
    preparing and carried over unchanged afterwards. With `strict=False`
    any known status is accepted.
    """
    status = parse_status(new_status)
    if strict and not can_transition(order, status):
        raise ValidationError(
            f"Order {order.id} cannot move from {order.status.value} to {status.value}"
        )

    update = {"status": status}
    if status == OrderStatus.PREPARING and order.preparing_start_time is None:
        update["preparing_start_time"] = now if now is not None else now_ms()
    return order.model_copy(update=update)


def apply_status(orders: Iterable[Order], order_id: str, new_status, now: Optional[int] = None,
                 strict: bool = True) -> Tuple[List[Order], Order]:
    """Transition one order inside a history list.

    Raises NotFoundError for an unknown id and ValidationError for a rejected
    status; the returned list is a new list either way the call succeeds.
    """
    result: List[Order] = []
    updated: Optional[Order] = None
    for order in orders:
        if order.id == order_id and updated is None:
            updated = transition(order, new_status, now=now, strict=strict)
            result.append(updated)
        else:
            result.append(order)
    if updated is None:
        raise NotFoundError(f"Order {order_id} not found")
    return result, updated


# ---------- Creation ----------

def generate_order_id() -> str:
    alphabet = string.ascii_uppercase + string.digits
    return ORDER_ID_PREFIX + "".join(secrets.choice(alphabet) for _ in range(6))


def format_order_date(moment: Optional[datetime] = None) -> str:
    return (moment or datetime.now()).strftime(DATE_FORMAT)


def cart_total(items: Iterable[CartItem]) -> float:
    return sum(item.price * item.quantity for item in items)


def validate_checkout(items: List[CartItem], details: CheckoutDetails) -> None:
    """Reject incomplete checkouts before anything is persisted."""
    if not items:
        raise ValidationError("Cart is empty")
    if details.type == "delivery":
        if not (details.address or "").strip():
            raise ValidationError("Delivery address is required")
        if not (details.house_number or "").strip():
            raise ValidationError("House number is required")
        phone = (details.phone or "").strip()
        if len(phone) < 10:
            raise ValidationError("A valid contact phone is required")
    total = cart_total(items)
    if details.total is not None and abs(details.total - total) > 0.005:
        raise ValidationError(f"Order total mismatch: expected {total}, got {details.total}")


def create_order(items: Iterable[CartItem], details: CheckoutDetails,
                 moment: Optional[datetime] = None) -> Order:
    snapshot = [item.model_copy(deep=True) for item in items]
    validate_checkout(snapshot, details)

    delivery = details.type == "delivery"
    order = Order(
        id=generate_order_id(),
        items=snapshot,
        total=cart_total(snapshot),
        date=format_order_date(moment),
        type=details.type,
        address=details.address if delivery else None,
        house_number=details.house_number if delivery else None,
        phone=details.phone if delivery else None,
        pickup_time=None if delivery else details.pickup_time,
        payment_method=details.payment_method,
        notes=details.notes or None,
        status=OrderStatus.PENDING,
    )
    logger.info("Created order %s (%s, total %s)", order.id, order.type, order.total)
    return order
