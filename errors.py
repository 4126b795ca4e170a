"""
Error types raised by the service layer.

Each error carries the HTTP status the API layer answers with; the handlers
registered in main.py turn them into ``{"message": ...}`` responses.
"""
from typing import Optional


class StoreError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidArgument(StoreError):
    status_code = 400


class Unauthorized(StoreError):
    status_code = 401


class Forbidden(StoreError):
    status_code = 403


class NotFound(StoreError):
    status_code = 404


class InvalidState(StoreError):
    status_code = 400


class InsufficientStock(InvalidState):
    """Requested quantity exceeds what the catalog currently holds."""

    def __init__(self, message: str, available: int, product_id: Optional[str] = None):
        super().__init__(message)
        self.available = available
        self.product_id = product_id


class Internal(StoreError):
    status_code = 500
