from datetime import datetime

import pytest

from errors import NotFoundError, ValidationError
from lifecycle import apply_status, create_order, now_ms, transition
from schemas import CheckoutDetails, OrderStatus


@pytest.fixture
def pickup_order(cart_items):
    return create_order(cart_items, CheckoutDetails(type="pickup", payment_method="cash"))


def test_create_order_computes_total_and_starts_pending(pickup_order):
    assert pickup_order.total == 500
    assert pickup_order.status == OrderStatus.PENDING
    assert pickup_order.preparing_start_time is None
    assert pickup_order.id.startswith("P2P-") and len(pickup_order.id) == 10


def test_create_order_snapshots_items(cart_items):
    order = create_order(cart_items, CheckoutDetails(type="pickup"))
    cart_items[0].price = 999
    assert order.items[0].price == 150
    assert order.total == sum(i.price * i.quantity for i in order.items)


def test_create_order_date_format(cart_items):
    order = create_order(cart_items, CheckoutDetails(type="pickup"), moment=datetime(2024, 3, 5, 9, 7, 1))
    assert order.date == "05.03.2024, 09:07:01"


def test_delivery_requires_address_and_phone(cart_items):
    with pytest.raises(ValidationError):
        create_order(cart_items, CheckoutDetails(type="delivery", house_number="1", phone="0631234567"))
    with pytest.raises(ValidationError):
        create_order(cart_items, CheckoutDetails(type="delivery", address="Main st", phone="0631234567"))
    with pytest.raises(ValidationError):
        create_order(cart_items, CheckoutDetails(type="delivery", address="Main st", house_number="1", phone="063"))


def test_delivery_order_keeps_address_fields(cart_items):
    order = create_order(cart_items, CheckoutDetails(
        type="delivery", address="Main st", house_number="12", phone="0631234567", pickup_time="18:00",
    ))
    assert (order.address, order.house_number, order.phone) == ("Main st", "12", "0631234567")
    assert order.pickup_time is None


def test_empty_cart_and_total_mismatch_rejected(cart_items):
    with pytest.raises(ValidationError):
        create_order([], CheckoutDetails(type="pickup"))
    with pytest.raises(ValidationError, match="total mismatch"):
        create_order(cart_items, CheckoutDetails(type="pickup", total=450))


def test_preparing_stamps_start_time_once(pickup_order):
    before = now_ms()
    preparing = transition(pickup_order, "preparing")
    assert before <= preparing.preparing_start_time <= now_ms()

    again = transition(preparing, "preparing", now=preparing.preparing_start_time + 60000)
    assert again.preparing_start_time == preparing.preparing_start_time

    ready = transition(preparing, OrderStatus.READY)
    assert ready.preparing_start_time == preparing.preparing_start_time


def test_transition_changes_only_status(pickup_order):
    preparing = transition(pickup_order, "preparing", now=1000)
    assert pickup_order.status == OrderStatus.PENDING
    assert preparing.model_dump(exclude={"status", "preparing_start_time"}) == \
        pickup_order.model_dump(exclude={"status", "preparing_start_time"})


def test_unknown_status_rejected(pickup_order):
    with pytest.raises(ValidationError):
        transition(pickup_order, "burnt")


def test_strict_graph(pickup_order):
    with pytest.raises(ValidationError):
        transition(pickup_order, "ready")
    cancelled = transition(pickup_order, "cancelled")
    with pytest.raises(ValidationError):
        transition(cancelled, "preparing")


def test_delivered_only_for_delivery_orders(pickup_order):
    ready = transition(transition(pickup_order, "preparing", now=1), "ready")
    with pytest.raises(ValidationError):
        transition(ready, "delivered")
    assert transition(ready, "completed").status == OrderStatus.COMPLETED


def test_permissive_mode_accepts_any_known_status(pickup_order):
    ready = transition(pickup_order, "ready", strict=False)
    assert ready.status == OrderStatus.READY
    assert ready.preparing_start_time is None


def test_apply_status_unknown_id(pickup_order):
    with pytest.raises(NotFoundError):
        apply_status([pickup_order], "P2P-NOPE00", "preparing")


def test_apply_status_returns_new_list(pickup_order):
    orders = [pickup_order]
    updated_list, updated = apply_status(orders, pickup_order.id, "preparing", now=5)
    assert orders[0].status == OrderStatus.PENDING
    assert updated_list[0] is updated
    assert updated.preparing_start_time == 5
