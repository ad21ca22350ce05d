from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from config import API_BASE_URL, REMOTE_TIMEOUT
from errors import NetworkError, NotFoundError, ServerError
from schemas import Order, OrderStatus, Pizza, SiteSettings

logger = logging.getLogger(__name__)


class RemoteStore:
    def __init__(self, base_url: str = API_BASE_URL, client: Optional[httpx.AsyncClient] = None,
                 timeout: float = REMOTE_TIMEOUT, api_key: Optional[str] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.api_key = api_key
        self._client = client

    def _headers(self) -> Dict[str, str]:
        if self.api_key:
            return {"Authorization": f"Bearer {self.api_key}"}
        return {}

    async def _request(self, method: str, path: str, json: Any = None) -> Any:
        url = f"{self.base_url}/{path}"
        try:
            if self._client is not None:
                resp = await self._client.request(method, url, json=json, headers=self._headers())
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    resp = await client.request(method, url, json=json, headers=self._headers())
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise NetworkError(f"{method} {path}: {e}") from e

        if resp.status_code == 404:
            raise NotFoundError(f"{method} {path}: not found")
        if not resp.is_success:
            raise ServerError(f"{method} {path}: HTTP {resp.status_code}", resp.status_code)
        try:
            return resp.json()
        except ValueError as e:
            raise ServerError(f"{method} {path}: malformed payload", resp.status_code) from e

    # ---- settings ----
    async def get_settings(self) -> SiteSettings:
        data = await self._request("GET", "settings")
        return _parse(SiteSettings, data)

    async def put_settings(self, settings: SiteSettings) -> None:
        await self._request("POST", "settings", json=settings.to_wire())

    # ---- menu ----
    async def get_menu(self) -> List[Pizza]:
        data = await self._request("GET", "pizzas")
        return _parse_list(Pizza, data)

    async def replace_menu(self, pizzas: List[Pizza]) -> None:
        await self._request("POST", "pizzas", json={"pizzas": [p.to_wire() for p in pizzas]})

    # ---- orders ----
    async def get_orders(self) -> List[Order]:
        data = await self._request("GET", "orders")
        return _parse_list(Order, data)

    async def insert_order(self, order: Order) -> Dict[str, Any]:
        return await self._request("POST", "orders", json=order.to_wire())

    async def patch_order_status(self, order_id: str, status: OrderStatus) -> None:
        await self._request("PATCH", "orders", json={"id": order_id, "status": OrderStatus(status).value})


def _parse(model, data):
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ServerError(f"malformed {model.__name__} payload: {e.error_count()} errors") from e


def _parse_list(model, data):
    if not isinstance(data, list):
        raise ServerError(f"expected a list of {model.__name__}")
    return [_parse(model, item) for item in data]
