import asyncio

import httpx
import pytest

from errors import NetworkError, NotFoundError, ServerError
from remote_store import RemoteStore


def store_with(handler, **kwargs):
    return RemoteStore("http://store/api", client=httpx.AsyncClient(transport=httpx.MockTransport(handler)), **kwargs)


@pytest.mark.parametrize("handler, error", [
    (lambda r: httpx.Response(404), NotFoundError),
    (lambda r: httpx.Response(500, json={"error": "boom"}), ServerError),
    (lambda r: httpx.Response(200, text="<html>"), ServerError),
    (lambda r: httpx.Response(200, json={"not": "a list"}), ServerError),
    (lambda r: httpx.Response(200, json=[{"id": "x", "name": "X", "price": -5}]), ServerError),
])
def test_menu_errors_are_classified(handler, error):
    with pytest.raises(error):
        asyncio.run(store_with(handler).get_menu())


def test_transport_failure_is_network_error():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(NetworkError):
        asyncio.run(store_with(handler).get_settings())


def test_status_patch_payload_and_auth_header():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["body"] = request.content
        seen["auth"] = request.headers.get("authorization")
        return httpx.Response(200, json={"success": True})

    asyncio.run(store_with(handler, api_key="k1").patch_order_status("P2P-ABC123", "ready"))
    assert seen["method"] == "PATCH"
    assert b'"status":"ready"' in seen["body"].replace(b" ", b"")
    assert seen["auth"] == "Bearer k1"
