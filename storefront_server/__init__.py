"""Storefront cart, wishlist and RFQ synchronization server."""

__version__ = "0.1.0"
