from __future__ import annotations
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional, Literal

# Collections:
# - settings   (single document, id "site_config")
# - pizzas
# - orders

SETTINGS_ID = "site_config"


class CamelModel(BaseModel):
    """Snake-case attributes, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------- Menu ----------
class Category(str, Enum):
    PIZZA = "pizza"
    DRINKS = "drinks"
    PROMOTIONS = "promotions"
    NEW = "new"
    BOX = "box"


class Pizza(CamelModel):
    id: str
    name: str
    description: str = ""
    price: float = Field(..., ge=0)
    image: Optional[str] = None
    category: Category = Category.PIZZA
    is_new: bool = False
    is_promo: bool = False


class CartItem(Pizza):
    quantity: int = Field(1, ge=1)

    @property
    def line_total(self) -> float:
        return self.price * self.quantity


# ---------- Orders ----------
class OrderStatus(str, Enum):
    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


OrderType = Literal["delivery", "pickup"]
PaymentMethod = Literal["cash", "card_on_receipt"]


class CheckoutDetails(CamelModel):
    """What the cart form collects; validated by lifecycle.create_order."""

    type: OrderType = "delivery"
    address: Optional[str] = None
    house_number: Optional[str] = None
    phone: Optional[str] = None
    pickup_time: Optional[str] = None
    payment_method: PaymentMethod = "cash"
    notes: Optional[str] = None
    total: Optional[float] = None


class Order(CamelModel):
    id: str
    items: List[CartItem]
    total: float = Field(..., ge=0)
    date: str
    type: OrderType
    address: Optional[str] = None
    house_number: Optional[str] = None
    phone: Optional[str] = None
    pickup_time: Optional[str] = None
    payment_method: PaymentMethod = "cash"
    notes: Optional[str] = None
    status: OrderStatus = OrderStatus.PENDING
    preparing_start_time: Optional[int] = None


class StatusPatch(BaseModel):
    id: str
    status: OrderStatus


class MenuReplace(BaseModel):
    pizzas: List[Pizza]


# ---------- Site ----------
class SiteSpecial(CamelModel):
    title: str = ""
    description: str = ""
    image: str = ""
    badge: str = ""


class SiteSettings(CamelModel):
    logo: str = ""
    phone: str = ""
    special: SiteSpecial = Field(default_factory=SiteSpecial)
    tg_token: Optional[str] = None
    tg_chat_id: Optional[str] = None
    store_url: Optional[str] = None
    store_key: Optional[str] = None

    @property
    def telegram_configured(self) -> bool:
        return bool(self.tg_token and self.tg_chat_id)


# ---------- Users ----------
class User(CamelModel):
    id: str
    email: str
    name: str
    role: Literal["user", "admin"] = "user"
    password_hash: Optional[str] = None
    favorites: List[str] = []
    history: List[Order] = []

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
