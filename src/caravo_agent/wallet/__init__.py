from .keystore import (
    Identity,
    KeyStore,
    load_or_create_identity,
    try_load_identity,
    save_identity,
    known_wallet_paths,
    default_wallet_file,
)
from .balances import get_usdc_balance

__all__ = [
    "Identity",
    "KeyStore",
    "load_or_create_identity",
    "try_load_identity",
    "save_identity",
    "known_wallet_paths",
    "default_wallet_file",
    "get_usdc_balance",
]
