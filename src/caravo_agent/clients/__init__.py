"""
Client module for x402 payments and the tool marketplace.

Provides an httpx client that pays for 402 responses automatically and a
marketplace client built on top of it.
"""

from .http_client import Http402Client
from .marketplace import MarketplaceClient

__all__ = ["Http402Client", "MarketplaceClient"]
