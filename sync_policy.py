from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from defaults import default_menu, default_settings
from errors import StoreError, ValidationError
from local_cache import LocalCache
from remote_store import RemoteStore
from schemas import Order, Pizza, SiteSettings

logger = logging.getLogger(__name__)

SETTINGS = "settings"
MENU = "menu"
ORDERS = "orders"


@dataclass
class FetchResult:
    value: Any
    fresh: bool
    error: Optional[str] = None


@dataclass
class SaveResult:
    local_ok: bool
    remote_ok: bool
    error: Optional[str] = None

    @property
    def synced(self) -> bool:
        return self.local_ok and self.remote_ok


@dataclass(frozen=True)
class _Entity:
    load: Callable[[Any], Any]
    dump: Callable[[Any], Any]
    default: Callable[[], Any]


_ENTITIES: Dict[str, _Entity] = {
    SETTINGS: _Entity(
        load=SiteSettings.model_validate,
        dump=lambda s: s.to_wire(),
        default=default_settings,
    ),
    MENU: _Entity(
        load=lambda raw: [Pizza.model_validate(p) for p in raw],
        dump=lambda pizzas: [p.to_wire() for p in pizzas],
        default=default_menu,
    ),
    ORDERS: _Entity(
        load=lambda raw: [Order.model_validate(o) for o in raw],
        dump=lambda orders: [o.to_wire() for o in orders],
        default=list,
    ),
}


class SyncPolicy:
    def __init__(self, cache: LocalCache, remote: RemoteStore, settings: Optional[SiteSettings] = None):
        self.cache = cache
        self.remote = remote
        self.settings = settings or self.cached(SETTINGS)

    # ---------- Reads ----------

    def cached(self, entity: str) -> Any:
        """Last cached value of `entity`, or its default."""
        codec = _entity(entity)
        raw = self.cache.get(entity)
        if raw is None:
            return codec.default()
        try:
            return codec.load(raw)
        except ValueError as e:
            logger.warning("Discarding malformed cached %s: %s", entity, e)
            return codec.default()

    async def _pull(self, entity: str) -> Any:
        if entity == SETTINGS:
            return await self.remote.get_settings()
        if entity == MENU:
            return await self.remote.get_menu()
        return await self.remote.get_orders()

    async def fetch(self, entity: str) -> FetchResult:
        codec = _entity(entity)
        try:
            value = await self._pull(entity)
        except StoreError as e:
            logger.info("Remote %s unavailable (%s), using cache", entity, e.kind)
            return FetchResult(self.cached(entity), fresh=False, error=e.kind)
        self.cache.set(entity, codec.dump(value))
        return FetchResult(value, fresh=True)

    async def reload_settings(self) -> FetchResult:
        result = await self.fetch(SETTINGS)
        self.settings = result.value
        return result

    # ---------- Writes ----------

    async def save(self, entity: str, value: Any) -> SaveResult:
        """Write settings or the full menu; the cache is updated before any await."""
        codec = _entity(entity)
        if entity == ORDERS:
            raise ValidationError("Orders are written with insert_order / update_order")
        self.cache.set(entity, codec.dump(value))
        if entity == SETTINGS:
            self.settings = value
            return await self._push(entity, self.remote.put_settings(value))
        return await self._push(entity, self.remote.replace_menu(value))

    async def insert_order(self, order: Order) -> SaveResult:
        orders = [o for o in self.cached(ORDERS) if o.id != order.id]
        self.cache.set(ORDERS, _ENTITIES[ORDERS].dump([order] + orders))
        return await self._push(ORDERS, self.remote.insert_order(order))

    async def update_order(self, order: Order) -> SaveResult:
        orders = [order if o.id == order.id else o for o in self.cached(ORDERS)]
        self.cache.set(ORDERS, _ENTITIES[ORDERS].dump(orders))
        return await self._push(ORDERS, self.remote.patch_order_status(order.id, order.status))

    async def _push(self, entity: str, call) -> SaveResult:
        try:
            await call
        except StoreError as e:
            logger.warning("Remote %s write failed (%s); kept local copy", entity, e.kind)
            return SaveResult(local_ok=True, remote_ok=False, error=e.kind)
        return SaveResult(local_ok=True, remote_ok=True)


def _entity(name: str) -> _Entity:
    try:
        return _ENTITIES[name]
    except KeyError:
        raise ValidationError(f"Unknown entity: {name!r}") from None
