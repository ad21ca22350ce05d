from __future__ import annotations
import hmac
import logging
import os
from fastapi import Body, Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import PyMongoError
from typing import Any, Dict, Optional

import database
from config import PORT, configure_logging
from defaults import default_settings
from errors import StoreError, ValidationError
from lifecycle import transition
from notifications import STATUS_LABELS, TelegramBot, parse_callback_data
from schemas import MenuReplace, Order, SiteSettings, StatusPatch

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="P2Pizza API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PyMongoError)
async def database_error(request, exc: PyMongoError):
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": "Database error", "details": str(exc)})


@app.get("/")
def root():
    return {"message": "P2Pizza API running"}


@app.get("/test")
def test_db():
    try:
        collections = database.get_db().list_collection_names()
        return {
            "backend": "fastapi",
            "database": "mongodb",
            "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "(env not set)",
            "database_name": os.getenv("DATABASE_NAME", "(env not set)"),
            "connection_status": "ok",
            "collections": collections,
        }
    except Exception as e:
        return {"backend": "fastapi", "database": "mongodb", "connection_status": f"error: {e}"}


# ============== SETTINGS ==================
@app.get("/api/settings")
def get_settings():
    doc = database.get_settings()
    if not doc:
        return default_settings().to_wire()
    doc.pop("id", None)
    return doc


@app.post("/api/settings")
def save_settings(settings: SiteSettings):
    database.upsert_settings(settings.to_wire())
    return {"success": True}


# ============== MENU ==================
@app.get("/api/pizzas")
def list_pizzas():
    return database.get_pizzas()


@app.post("/api/pizzas")
def replace_pizzas(payload: MenuReplace):
    count = database.replace_pizzas([p.to_wire() for p in payload.pizzas])
    return {"success": True, "count": count}


# ============== ORDERS ==================
@app.get("/api/orders")
def list_orders():
    return database.get_orders()


@app.post("/api/orders", status_code=201)
def create_order(order: Order):
    return database.insert_order(order.to_wire())


@app.patch("/api/orders")
def update_order_status(patch: StatusPatch):
    if not database.update_order(patch.id, {"status": patch.status.value}):
        raise HTTPException(status_code=404, detail="Order not found")
    return {"success": True}


# ============== TELEGRAM ==================
def get_bot(token: Optional[str] = Query(None)) -> Optional[TelegramBot]:
    return TelegramBot(token) if token else None


def token_matches(token: Optional[str]) -> bool:
    stored = (database.get_settings() or {}).get("tgToken")
    return bool(token and stored) and hmac.compare_digest(token.encode(), str(stored).encode())


@app.post("/api/webhook")
async def telegram_webhook(update: Dict[str, Any] = Body(...), token: Optional[str] = Query(None),
                           bot: Optional[TelegramBot] = Depends(get_bot)):
    """Status buttons under new-order messages land here. Telegram always gets a 200."""
    if not token or bot is None:
        return {"success": False, "reason": "missing token"}
    if not token_matches(token):
        logger.warning("Rejected webhook call with a token that does not match the stored bot")
        return {"success": False, "reason": "unauthorized"}
    callback = update.get("callback_query")
    if not callback:
        return {"success": False, "reason": "missing callback_query"}

    message = callback.get("message") or {}
    try:
        status, order_id = parse_callback_data(callback.get("data", ""))
        doc = database.find_order(order_id)
        if doc is None:
            await _answer_quietly(bot, callback.get("id"), f"Order {order_id} not found")
            return {"success": False, "reason": "not_found"}
        try:
            current_order = Order.model_validate(doc)
        except PydanticValidationError as e:
            logger.error("Stored order %s is malformed: %s", order_id, e)
            await _answer_quietly(bot, callback.get("id"), f"Order {order_id} could not be read")
            return {"success": False, "reason": "server_error"}
        updated = transition(current_order, status)
        fields: Dict[str, Any] = {"status": updated.status.value}
        if updated.preparing_start_time is not None:
            fields["preparingStartTime"] = updated.preparing_start_time
        database.update_order(order_id, fields)
    except ValidationError as e:
        logger.info("Rejected Telegram action: %s", e)
        await _answer_quietly(bot, callback.get("id"), str(e))
        return {"success": False, "reason": e.kind}

    label = STATUS_LABELS[status]
    await _answer_quietly(bot, callback.get("id"), f"Order {order_id} is now: {label}")
    current = message.get("text") or message.get("caption") or ""
    try:
        await bot.edit_message(
            (message.get("chat") or {}).get("id"),
            message.get("message_id"),
            f"{current}\n\n✅ <b>LAST ACTION: {label.upper()}</b>",
            message.get("reply_markup"),
        )
    except StoreError as e:
        logger.warning("Could not edit Telegram message for %s: %s", order_id, e)
    return {"success": True, "status": status.value}


async def _answer_quietly(bot: TelegramBot, callback_id: Optional[str], text: str) -> None:
    try:
        await bot.answer_callback(callback_id, text)
    except StoreError as e:
        logger.warning("answerCallbackQuery failed: %s", e)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
