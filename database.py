from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional
from pymongo import DESCENDING, MongoClient
from pymongo.collection import Collection

from config import DATABASE_NAME, DATABASE_URL
from schemas import SETTINGS_ID

logger = logging.getLogger(__name__)

_client: Optional[MongoClient] = None
_db = None


def get_db():
    global _client, _db
    if _db is None:
        _client = MongoClient(DATABASE_URL)
        _db = _client[DATABASE_NAME]
        logger.info("Connected to MongoDB database %s", DATABASE_NAME)
    return _db


def use_db(db) -> None:
    """Swap the active database handle (tests pass a mongomock database)."""
    global _db
    _db = db


def collection(name: str) -> Collection:
    return get_db()[name]


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if doc and "_id" in doc:
        doc["_id"] = str(doc["_id"])
    return doc


# ---------- settings ----------
def get_settings() -> Optional[Dict[str, Any]]:
    doc = collection("settings").find_one({"id": SETTINGS_ID}, {"_id": 0})
    return doc


def upsert_settings(data: Dict[str, Any]) -> None:
    collection("settings").update_one(
        {"id": SETTINGS_ID},
        {"$set": {**data, "id": SETTINGS_ID}},
        upsert=True,
    )


# ---------- pizzas ----------
def get_pizzas() -> List[Dict[str, Any]]:
    return [serialize(doc) for doc in collection("pizzas").find({})]


def replace_pizzas(pizzas: List[Dict[str, Any]]) -> int:
    col = collection("pizzas")
    col.delete_many({})
    if pizzas:
        col.insert_many([dict(p) for p in pizzas])
    return len(pizzas)


# ---------- orders ----------
def get_orders() -> List[Dict[str, Any]]:
    return [serialize(doc) for doc in collection("orders").find({}).sort("_id", DESCENDING)]


def find_order(order_id: str) -> Optional[Dict[str, Any]]:
    return serialize(collection("orders").find_one({"id": order_id}))


def insert_order(data: Dict[str, Any]) -> Dict[str, Any]:
    doc = dict(data)
    res = collection("orders").insert_one(doc)
    return {**data, "_id": str(res.inserted_id)}


def update_order(order_id: str, fields: Dict[str, Any]) -> bool:
    res = collection("orders").update_one({"id": order_id}, {"$set": fields})
    return res.matched_count > 0
