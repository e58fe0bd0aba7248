"""
Exception classes for the storefront.
"""


class StorefrontError(Exception):
    """
    Base exception for all storefront errors.

    Attributes:
        message: Human-readable error message
        details: Optional dict with additional context (ids, provider codes)
    """

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.__class__.__name__}('{self.message}', {details_str})"
        return f"{self.__class__.__name__}('{self.message}')"


class StorageError(StorefrontError):
    """Raised when the client-local key-value storage cannot be read or written."""

    def __init__(self, key: str, reason: str):
        super().__init__(f"Storage failure for {key!r}: {reason}", details={"key": key})
        self.key = key


class CheckoutError(StorefrontError):
    """Raised when a checkout session cannot be created.

    ``status_code`` is the HTTP status the web layer answers with.
    """

    def __init__(self, message: str, status_code: int = 500, details: dict | None = None):
        super().__init__(message, details=details)
        self.status_code = status_code


class MenuItemNotFound(StorefrontError):
    """Raised when a menu item id does not exist."""

    def __init__(self, item_id: str):
        super().__init__(f"Menu item {item_id} not found", details={"item_id": item_id})
        self.item_id = item_id
