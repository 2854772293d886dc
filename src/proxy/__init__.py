"""Proxy service holding the Admin and Storefront tokens on the server side."""

from .app import create_app
from .handlers import ProxyError, register_customer, relay_storefront, submit_vat_verification

__all__ = [
    "ProxyError",
    "create_app",
    "register_customer",
    "relay_storefront",
    "submit_vat_verification",
]
