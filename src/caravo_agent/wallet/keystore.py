"""
Wallet Identity Persistence

Loads the agent's signing identity from ``~/.caravo/wallet.json``, adopts a
wallet left behind by a compatible local tool when there is none, and
generates a fresh one as a last resort.

Any JSON object with a ``privateKey`` (or ``secret``) and an ``address``
field, both ``0x``-prefixed, is accepted; extra fields such as
``createdAt`` are ignored. Reusing peer wallets keeps repeat installs from
spreading funds across several addresses.

Usage:
    identity = load_or_create_identity()
    print(identity.address)
"""

import json
import logging
import os
import secrets
from pathlib import Path
from typing import List, Optional, Sequence

from eth_account import Account
from pydantic import AliasChoices, ConfigDict, Field, ValidationError, field_validator

from ..engine.exceptions import IdentityPersistenceError
from ..schemas.bases import CanonicalModel

logger = logging.getLogger(__name__)


def default_wallet_dir(home: Optional[Path] = None) -> Path:
    return (home or Path.home()) / ".caravo"


def default_wallet_file(home: Optional[Path] = None) -> Path:
    return default_wallet_dir(home) / "wallet.json"


def known_wallet_paths(home: Optional[Path] = None) -> List[Path]:
    """
    Wallet files of other local tools, probed in order.

    Returns:
        Paths for the pre-rename Caravo wallet, x402scan MCP and Coinbase
        Payments MCP.
    """
    base = home or Path.home()
    return [
        base / ".fal-marketplace-mcp" / "wallet.json",
        base / ".x402scan-mcp" / "wallet.json",
        base / ".payments-mcp" / "wallet.json",
    ]


class Identity(CanonicalModel):
    """
    The agent's signing identity.

    Attributes:
        secret: 0x-prefixed 32-byte secp256k1 private key. Serialized as
            ``privateKey`` for compatibility with peer wallet files.
        address: 0x-prefixed account address derived from ``secret``.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    secret: str = Field(
        ...,
        validation_alias=AliasChoices("privateKey", "secret"),
        serialization_alias="privateKey",
        repr=False,
    )
    address: str

    @field_validator("secret", "address")
    @classmethod
    def _hex_prefixed(cls, value: str) -> str:
        if not value.startswith("0x"):
            raise ValueError("must start with 0x")
        return value

    @classmethod
    def generate(cls) -> "Identity":
        """Create a new identity from the OS CSPRNG."""
        secret = "0x" + secrets.token_hex(32)
        return cls(secret=secret, address=Account.from_key(secret).address)


def try_load_identity(path: Path) -> Optional[Identity]:
    """
    Read an identity file, treating every failure as "not found".

    Args:
        path: Candidate wallet file.

    Returns:
        ``Identity`` or ``None`` when the file is missing, unreadable, not
        JSON, or lacks usable ``privateKey``/``address`` fields.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return Identity.model_validate(data)
    except (OSError, ValueError, ValidationError):
        return None


def save_identity(identity: Identity, path: Path) -> None:
    """
    Persist ``identity`` to ``path`` readable by the owner only.

    Raises:
        IdentityPersistenceError: If the directory or file cannot be written.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(identity.to_dict(), f, indent=2)
        os.chmod(path, 0o600)
    except OSError as exc:
        raise IdentityPersistenceError(f"Cannot write wallet file {path}: {exc}", path=str(path)) from exc


class KeyStore:
    """
    Load-or-create store for the agent's single wallet identity.

    Lookup order:
        1. The own wallet file
        2. Known peer wallet files, first valid one wins and is copied to
           the own wallet file
        3. A newly generated identity, persisted to the own wallet file

    Note:
        No file lock is taken. Two processes creating a wallet at the same
        moment may each persist a different key; the last write wins.
    """

    def __init__(
        self,
        wallet_file: Optional[Path] = None,
        known_paths: Optional[Sequence[Path]] = None,
    ):
        """
        Args:
            wallet_file: Own wallet file, defaults to ``~/.caravo/wallet.json``.
            known_paths: Peer wallet files, defaults to ``known_wallet_paths()``.
        """
        self.wallet_file = Path(wallet_file) if wallet_file else default_wallet_file()
        self.known_paths = [Path(p) for p in known_paths] if known_paths is not None else known_wallet_paths()
        self._identity: Optional[Identity] = None

    def load_or_create_identity(self) -> Identity:
        """
        Return the wallet identity, creating it on first run.

        Subsequent calls return the identity already loaded by this store.

        Raises:
            IdentityPersistenceError: If a new or adopted identity cannot be
                written to the own wallet file.
        """
        if self._identity is None:
            self._identity = self._resolve()
        return self._identity

    def _resolve(self) -> Identity:
        own = try_load_identity(self.wallet_file)
        if own:
            return own

        for path in self.known_paths:
            existing = try_load_identity(path)
            if existing:
                save_identity(existing, self.wallet_file)
                logger.info("reusing existing wallet from %s", path)
                return existing

        identity = Identity.generate()
        save_identity(identity, self.wallet_file)
        logger.info("created new wallet %s at %s", identity.address, self.wallet_file)
        return identity


def load_or_create_identity() -> Identity:
    """Load or create the identity at the default locations."""
    return KeyStore().load_or_create_identity()
