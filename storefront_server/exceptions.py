"""
Exceptions raised by the storefront collection layer.

Exception Hierarchy:
--------------------
StorefrontException (base)
├── CollectionException
│   ├── StockExceededException
│   ├── LineValidationException
│   └── LineNotFoundException
├── RemoteException
│   ├── RemoteUnavailableException
│   ├── RemoteRejectedException
│   └── AuthRequiredException
└── StoreOwnershipError

Stock and validation errors are raised before any mutation. Remote errors are
raised by the storefront client; the sync controller records them instead of
re-raising, except AuthRequiredException which always propagates.
"""

from typing import Optional


class StorefrontException(Exception):
    """
    Base exception for all storefront errors.

    Attributes:
        message: Human-readable error message
        details: Additional context (product IDs, limits, status codes)
    """

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        if self.details:
            details_str = ', '.join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.__class__.__name__}('{self.message}', {details_str})"
        return f"{self.__class__.__name__}('{self.message}')"


class CollectionException(StorefrontException):
    """Base exception for cart and wishlist errors."""
    pass


class StockExceededException(CollectionException):
    """Raised when a requested quantity is above the available stock."""

    def __init__(self, product_id: str, limit: int, variant: Optional[str] = None):
        message = f"Only {limit} items available"
        if variant:
            message += f" in size {variant}"
        super().__init__(
            message,
            details={'product_id': product_id, 'limit': limit, 'variant': variant}
        )
        self.product_id = product_id
        self.limit = limit
        self.variant = variant


class LineValidationException(CollectionException):
    """Raised on malformed input such as a non-positive quantity."""

    def __init__(self, reason: str, product_id: Optional[str] = None):
        details = {'reason': reason}
        if product_id is not None:
            details['product_id'] = product_id
        super().__init__(reason, details=details)
        self.reason = reason
        self.product_id = product_id


class LineNotFoundException(CollectionException):
    """Raised when a line key is not in the collection."""

    def __init__(self, key: object):
        super().__init__(
            f"Line {key} not found",
            details={'key': str(key)}
        )
        self.key = key


class RemoteException(StorefrontException):
    """Base exception for storefront API failures."""
    pass


class RemoteUnavailableException(RemoteException):
    """Raised on network failures and server errors."""

    def __init__(self, operation: str, reason: str):
        super().__init__(
            f"Storefront API unavailable during {operation}: {reason}",
            details={'operation': operation, 'reason': reason}
        )
        self.operation = operation
        self.reason = reason


class RemoteRejectedException(RemoteException):
    """Raised when the API refuses a request (4xx other than auth)."""

    def __init__(self, operation: str, status_code: int, server_message: str):
        super().__init__(
            server_message or f"{operation} rejected with status {status_code}",
            details={'operation': operation, 'status_code': status_code}
        )
        self.operation = operation
        self.status_code = status_code
        self.server_message = server_message


class AuthRequiredException(RemoteException):
    """Raised when an operation needs an authenticated session."""

    def __init__(self, operation: str):
        super().__init__(
            f"Must be authenticated to {operation}",
            details={'operation': operation}
        )
        self.operation = operation


class StoreOwnershipError(StorefrontException):
    """Raised when a second writer claims a local storage key."""

    def __init__(self, key: str):
        super().__init__(
            f"Storage key '{key}' already has a writer",
            details={'key': key}
        )
        self.key = key
