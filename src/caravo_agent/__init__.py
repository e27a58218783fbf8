"""
caravo-agent: an x402-paying client for the Caravo tool marketplace.

The agent keeps one local wallet, pays for ``402 Payment Required``
responses with signed ERC-3009 authorizations, and exposes the marketplace
as a set of agent tools.
"""

from .clients import Http402Client, MarketplaceClient
from .config import Settings, SessionConfig, load_settings
from .tools import AgentTools, ToolReply, create_agent_tools
from .wallet import Identity, KeyStore, load_or_create_identity

__version__ = "0.1.0"

__all__ = [
    "Http402Client",
    "MarketplaceClient",
    "Settings",
    "SessionConfig",
    "load_settings",
    "AgentTools",
    "ToolReply",
    "create_agent_tools",
    "Identity",
    "KeyStore",
    "load_or_create_identity",
]
