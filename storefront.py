from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Set
from urllib.parse import parse_qs, urlencode, urlsplit, urlunsplit

from auth import AccountStore
from config import API_BASE_URL, CACHE_PATH, STRICT_TRANSITIONS
from cooking import CookingTracker
from errors import NotFoundError, StoreError, ValidationError
from lifecycle import apply_status, create_order, transition
from local_cache import LocalCache
from notifications import TelegramBot, notify_order_created
from remote_store import RemoteStore
from schemas import CartItem, Category, CheckoutDetails, Order, OrderStatus, Pizza, SiteSettings, User
from sync_policy import MENU, ORDERS, SETTINGS, SaveResult, SyncPolicy

logger = logging.getLogger(__name__)

DEEP_LINK_KEYS = ("action", "id", "status")


class Cart:
    def __init__(self):
        self.items: List[CartItem] = []

    def add(self, pizza: Pizza) -> CartItem:
        for i, item in enumerate(self.items):
            if item.id == pizza.id:
                self.items[i] = item.model_copy(update={"quantity": item.quantity + 1})
                return self.items[i]
        item = CartItem(**pizza.model_dump(exclude={"quantity"}), quantity=1)
        self.items.append(item)
        return item

    def update_quantity(self, pizza_id: str, delta: int) -> None:
        self.items = [
            item.model_copy(update={"quantity": max(1, item.quantity + delta)}) if item.id == pizza_id else item
            for item in self.items
        ]

    def remove(self, pizza_id: str) -> None:
        self.items = [item for item in self.items if item.id != pizza_id]

    def clear(self) -> None:
        self.items = []

    @property
    def count(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def total(self) -> float:
        return sum(item.price * item.quantity for item in self.items)

    def snapshot(self) -> List[CartItem]:
        return [item.model_copy(deep=True) for item in self.items]


@dataclass
class PlacedOrder:
    order: Order
    sync: SaveResult


class Storefront:
    def __init__(self, sync: SyncPolicy, accounts: Optional[AccountStore] = None, strict: bool = STRICT_TRANSITIONS,
                 notify: Callable = notify_order_created):
        self.sync = sync
        self.accounts = accounts
        self.user = accounts.current_user() if accounts else None
        self.strict = strict
        self.notify = notify
        self.cart = Cart()
        self.menu: List[Pizza] = sync.cached(MENU)
        self.orders: List[Order] = sync.cached(ORDERS)
        self._pending: Set[asyncio.Task] = set()

    @property
    def settings(self) -> SiteSettings:
        return self.sync.settings

    @property
    def is_admin(self) -> bool:
        return self.user is not None and self.user.is_admin

    def sign_in(self, email: str, password: str) -> User:
        if self.accounts is None:
            raise ValidationError("Accounts are not available in this session")
        self.user = self.accounts.login(email, password)
        return self.user

    def sign_out(self) -> None:
        if self.accounts is not None:
            self.accounts.logout()
        self.user = None

    def _require_admin(self) -> None:
        if not self.is_admin:
            raise ValidationError("Administrator rights required")

    async def load(self) -> None:
        """Refresh settings, menu and orders; stale values are kept on failure."""
        await self.sync.reload_settings()
        self.menu = (await self.sync.fetch(MENU)).value
        self.orders = (await self.sync.fetch(ORDERS)).value

    # ---------- Orders ----------

    async def place_order(self, details: CheckoutDetails) -> PlacedOrder:
        order = create_order(self.cart.snapshot(), details)
        result = await self.sync.insert_order(order)
        self.orders = [order] + [o for o in self.orders if o.id != order.id]
        self.cart.clear()
        self._spawn(self.notify(self.settings, order))
        return PlacedOrder(order=order, sync=result)

    async def set_order_status(self, order_id: str, status) -> PlacedOrder:
        self._require_admin()
        self.orders, updated = apply_status(self.orders, order_id, status, strict=self.strict)
        result = await self.sync.update_order(updated)
        return PlacedOrder(order=updated, sync=result)

    async def cancel_order(self, order_id: str) -> PlacedOrder:
        """Customer-side cancel, only while the kitchen has not started."""
        order = self.find_order(order_id)
        if order.status != OrderStatus.PENDING:
            raise ValidationError("Only pending orders can be cancelled")
        updated = transition(order, OrderStatus.CANCELLED, strict=self.strict)
        self.orders = [updated if o.id == order_id else o for o in self.orders]
        result = await self.sync.update_order(updated)
        return PlacedOrder(order=updated, sync=result)

    def find_order(self, order_id: str) -> Order:
        for order in self.orders:
            if order.id == order_id:
                return order
        raise NotFoundError(f"Order {order_id} not found")

    def active_preparing_order(self) -> Optional[Order]:
        return next((o for o in self.orders if o.status == OrderStatus.PREPARING), None)

    def tracker_for(self, order: Order, **kwargs) -> CookingTracker:
        if order.preparing_start_time is None:
            raise ValidationError(f"Order {order.id} has not started preparing")
        ready = order.status in (OrderStatus.READY, OrderStatus.DELIVERED, OrderStatus.COMPLETED)
        return CookingTracker(order.preparing_start_time, ready_override=ready, **kwargs)

    async def apply_deep_link(self, url: str) -> str:
        """Handle `?action=set_status&id=...&status=...` and return the scrubbed URL.

        Links opened without admin rights, or naming an unknown order or status,
        are scrubbed but not applied.
        """
        parts = urlsplit(url)
        query = parse_qs(parts.query)
        if query.get("action", [None])[0] == "set_status":
            order_id = query.get("id", [None])[0]
            status = query.get("status", [None])[0]
            if not self.is_admin:
                logger.warning("Ignoring status deep link for %s: not an administrator", order_id)
            elif order_id and status:
                try:
                    await self.set_order_status(order_id, status)
                except StoreError as e:
                    logger.warning("Ignoring status deep link for %s: %s", order_id, e)
        rest = [(k, v) for k, values in query.items() if k not in DEEP_LINK_KEYS for v in values]
        return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(rest), parts.fragment))

    # ---------- Menu & settings ----------

    async def upsert_pizza(self, pizza: Pizza) -> SaveResult:
        self._require_admin()
        if any(p.id == pizza.id for p in self.menu):
            self.menu = [pizza if p.id == pizza.id else p for p in self.menu]
        else:
            self.menu = self.menu + [pizza]
        return await self.sync.save(MENU, self.menu)

    async def delete_pizza(self, pizza_id: str) -> SaveResult:
        self._require_admin()
        self.menu = [p for p in self.menu if p.id != pizza_id]
        return await self.sync.save(MENU, self.menu)

    async def update_settings(self, settings: SiteSettings) -> SaveResult:
        self._require_admin()
        return await self.sync.save(SETTINGS, settings)

    async def setup_webhook(self, public_url: str, bot: Optional[TelegramBot] = None) -> None:
        """Point the bot's status buttons at `<public_url>/api/webhook`."""
        self._require_admin()
        token = self.settings.tg_token
        if not token:
            raise ValidationError("Telegram bot token is not configured")
        bot = bot or TelegramBot(token)
        await bot.set_webhook(f"{public_url.rstrip('/')}/api/webhook?token={token}")

    def filter_menu(self, view: str = "home") -> List[Pizza]:
        if view == "promotions":
            return [p for p in self.menu if p.is_promo]
        if view == "new":
            return [p for p in self.menu if p.is_new]
        if view == "favorites":
            favorites = self.user.favorites if self.user else []
            return [p for p in self.menu if p.id in favorites]
        if view == "box":
            return [p for p in self.menu if p.category == Category.BOX]
        if view == "drinks":
            return [p for p in self.menu if p.category == Category.DRINKS]
        return [p for p in self.menu if p.category == Category.PIZZA]

    def toggle_favorite(self, pizza_id: str) -> User:
        if self.user is None:
            raise ValidationError("Sign in to keep favourites")
        favorites = list(self.user.favorites)
        if pizza_id in favorites:
            favorites.remove(pizza_id)
        else:
            favorites.append(pizza_id)
        self.user = self.user.model_copy(update={"favorites": favorites})
        if self.accounts is not None:
            self.accounts.save_session(self.user)
        return self.user

    # ---------- Background work ----------

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for outstanding notifications, e.g. before shutdown."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)


def build_storefront(cache_path: Optional[str] = CACHE_PATH) -> Storefront:
    """Session wiring: the cached settings choose the remote store and its key."""
    cache = LocalCache(cache_path)
    policy = SyncPolicy(cache, RemoteStore(API_BASE_URL))
    settings = policy.settings
    if settings.store_url or settings.store_key:
        policy.remote = RemoteStore(settings.store_url or API_BASE_URL, api_key=settings.store_key)
    return Storefront(policy, accounts=AccountStore(cache_path))
