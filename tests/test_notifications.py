import asyncio
import json

import httpx
import pytest

from errors import ValidationError
from lifecycle import create_order
from notifications import (
    TelegramBot,
    format_order_message,
    notify_order_created,
    parse_callback_data,
    status_buttons,
)
from schemas import CheckoutDetails, OrderStatus, SiteSettings


class RecordingTelegram:
    def __init__(self, fail_methods=()):
        self.calls = []
        self.fail_methods = set(fail_methods)

    def __call__(self, request):
        method = request.url.path.rsplit("/", 1)[-1]
        self.calls.append((method, json.loads(request.content)))
        if method in self.fail_methods:
            return httpx.Response(400, json={"ok": False})
        return httpx.Response(200, json={"ok": True, "result": {}})

    def client(self):
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def delivery_order(cart_items):
    return create_order(cart_items, CheckoutDetails(
        type="delivery", address="Khreshchatyk", house_number="22", phone="0631234567", notes="<no onions>",
    ))


def test_message_contains_order_fields(delivery_order):
    text = format_order_message(delivery_order)
    assert delivery_order.id in text
    assert "Margherita x2" in text
    assert "Total: 500 UAH" in text
    assert "Khreshchatyk, 22" in text
    assert "0631234567" in text
    assert "&lt;no onions&gt;" in text


def test_buttons_round_trip_through_callback_data(delivery_order):
    buttons = [b for row in status_buttons(delivery_order) for b in row]
    parsed = [parse_callback_data(b["callback_data"]) for b in buttons]
    assert {order_id for _, order_id in parsed} == {delivery_order.id}
    assert OrderStatus.DELIVERED in {status for status, _ in parsed}


def test_parse_callback_data_rejects_garbage():
    assert parse_callback_data("status_comp_P2P-ABC123") == (OrderStatus.COMPLETED, "P2P-ABC123")
    with pytest.raises(ValidationError):
        parse_callback_data("status_burn_P2P-ABC123")
    with pytest.raises(ValidationError):
        parse_callback_data("hello")


def test_notify_sends_message_with_buttons(delivery_order):
    telegram = RecordingTelegram()
    settings = SiteSettings(tg_token="123:abc", tg_chat_id="-100")

    async def scenario():
        async with telegram.client() as client:
            return await notify_order_created(settings, delivery_order, TelegramBot("123:abc", client=client))

    assert asyncio.run(scenario()) is True
    method, payload = telegram.calls[0]
    assert method == "sendMessage"
    assert payload["chat_id"] == "-100"
    assert payload["parse_mode"] == "HTML"
    assert payload["reply_markup"]["inline_keyboard"]


def test_notify_without_credentials_is_a_noop(delivery_order):
    assert asyncio.run(notify_order_created(SiteSettings(), delivery_order)) is False


def test_notify_swallows_failures(delivery_order):
    telegram = RecordingTelegram(fail_methods={"sendMessage"})
    settings = SiteSettings(tg_token="123:abc", tg_chat_id="-100")

    async def scenario():
        async with telegram.client() as client:
            return await notify_order_created(settings, delivery_order, TelegramBot("123:abc", client=client))

    assert asyncio.run(scenario()) is False


def test_edit_message_falls_back_to_caption():
    telegram = RecordingTelegram(fail_methods={"editMessageText"})

    async def scenario():
        async with telegram.client() as client:
            await TelegramBot("t", client=client).edit_message(1, 2, "hi")

    asyncio.run(scenario())
    assert [m for m, _ in telegram.calls] == ["editMessageText", "editMessageCaption"]
    assert telegram.calls[1][1]["caption"] == "hi"
