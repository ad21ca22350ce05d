from __future__ import annotations
import html
import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

from config import REMOTE_TIMEOUT, TELEGRAM_API_BASE
from errors import NetworkError, ServerError, ValidationError
from schemas import Order, OrderStatus, SiteSettings

logger = logging.getLogger(__name__)

ACTION_CODES: Dict[str, OrderStatus] = {
    "prep": OrderStatus.PREPARING,
    "ready": OrderStatus.READY,
    "deliv": OrderStatus.DELIVERED,
    "comp": OrderStatus.COMPLETED,
    "canc": OrderStatus.CANCELLED,
}

STATUS_LABELS: Dict[OrderStatus, str] = {
    OrderStatus.PENDING: "Pending",
    OrderStatus.PREPARING: "Preparing",
    OrderStatus.READY: "Ready",
    OrderStatus.DELIVERED: "Delivered",
    OrderStatus.COMPLETED: "Completed",
    OrderStatus.CANCELLED: "Cancelled",
}


class TelegramBot:
    def __init__(self, token: str, client: Optional[httpx.AsyncClient] = None,
                 api_base: str = TELEGRAM_API_BASE, timeout: float = REMOTE_TIMEOUT):
        self.token = token
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def call(self, method: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.api_base}/bot{self.token}/{method}"
        try:
            if self._client is not None:
                resp = await self._client.post(url, json=payload)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    resp = await client.post(url, json=payload)
        except httpx.HTTPError as e:
            raise NetworkError(f"telegram {method}: {e}") from e
        if not resp.is_success:
            raise ServerError(f"telegram {method}: HTTP {resp.status_code}", resp.status_code)
        return resp.json()

    async def send_message(self, chat_id: str, text: str,
                           buttons: Optional[List[List[Dict[str, str]]]] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"chat_id": chat_id, "text": text, "parse_mode": "HTML"}
        if buttons:
            payload["reply_markup"] = {"inline_keyboard": buttons}
        return await self.call("sendMessage", payload)

    async def answer_callback(self, callback_id: str, text: str) -> Dict[str, Any]:
        return await self.call("answerCallbackQuery", {"callback_query_id": callback_id, "text": text})

    async def edit_message(self, chat_id: Any, message_id: int, text: str,
                           reply_markup: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Edit a text message, falling back to the caption for photo messages."""
        payload: Dict[str, Any] = {
            "chat_id": chat_id,
            "message_id": message_id,
            "parse_mode": "HTML",
        }
        if reply_markup:
            payload["reply_markup"] = reply_markup
        try:
            return await self.call("editMessageText", {**payload, "text": text})
        except ServerError:
            return await self.call("editMessageCaption", {**payload, "caption": text})

    async def set_webhook(self, url: str) -> Dict[str, Any]:
        return await self.call("setWebhook", {"url": url, "allowed_updates": ["callback_query"]})


# ---------- Message composition ----------

def format_order_message(order: Order) -> str:
    lines = [f"🍕 <b>New order {html.escape(order.id)}</b>", f"🕒 {html.escape(order.date)}", ""]
    for item in order.items:
        lines.append(f"• {html.escape(item.name)} x{item.quantity} - {item.price * item.quantity:g} UAH")
    lines.append("")
    lines.append(f"💰 <b>Total: {order.total:g} UAH</b>")
    payment = "card on receipt" if order.payment_method == "card_on_receipt" else "cash"
    lines.append(f"💳 Payment: {payment}")
    if order.type == "delivery":
        lines.append(f"🚚 Delivery: {html.escape(order.address or '')}, {html.escape(order.house_number or '')}")
    else:
        lines.append(f"🏃 Pickup{': ' + html.escape(order.pickup_time) if order.pickup_time else ''}")
    if order.phone:
        lines.append(f"📞 {html.escape(order.phone)}")
    if order.notes:
        lines.append(f"📝 <i>{html.escape(order.notes)}</i>")
    return "\n".join(lines)


def callback_data(action: str, order_id: str) -> str:
    return f"status_{action}_{order_id}"


def status_buttons(order: Order) -> List[List[Dict[str, str]]]:
    row = [
        {"text": "🔥 Preparing", "callback_data": callback_data("prep", order.id)},
        {"text": "✅ Ready", "callback_data": callback_data("ready", order.id)},
    ]
    if order.type == "delivery":
        row.append({"text": "🚚 Delivered", "callback_data": callback_data("deliv", order.id)})
    return [
        row,
        [
            {"text": "🏁 Completed", "callback_data": callback_data("comp", order.id)},
            {"text": "❌ Cancel", "callback_data": callback_data("canc", order.id)},
        ],
    ]


def parse_callback_data(data: str) -> Tuple[OrderStatus, str]:
    """`status_<code>_<orderId>` -> (status, order id)."""
    parts = (data or "").split("_", 2)
    if len(parts) != 3 or parts[0] != "status" or not parts[2]:
        raise ValidationError(f"Malformed callback data: {data!r}")
    try:
        return ACTION_CODES[parts[1]], parts[2]
    except KeyError:
        raise ValidationError(f"Unknown action code: {parts[1]!r}") from None


# ---------- Dispatch ----------

async def notify_order_created(settings: SiteSettings, order: Order,
                               bot: Optional[TelegramBot] = None) -> bool:
    """Fire-and-forget alert; failures are logged and never raised."""
    if not settings.telegram_configured:
        return False
    bot = bot or TelegramBot(settings.tg_token)
    try:
        await bot.send_message(settings.tg_chat_id, format_order_message(order), status_buttons(order))
    except Exception as e:
        logger.warning("Telegram notification for %s failed: %s", order.id, e)
        return False
    return True
