from __future__ import annotations


class StoreError(Exception):
    """Base class; `kind` is one of the taxonomy codes."""

    kind = "store_error"


class NetworkError(StoreError):
    kind = "network_error"


class ServerError(StoreError):
    kind = "server_error"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(StoreError):
    kind = "not_found"


class ValidationError(StoreError):
    kind = "validation_error"
