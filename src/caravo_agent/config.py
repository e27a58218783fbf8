"""
Agent Configuration

Settings come from the environment (a ``.env`` file is honoured through
python-dotenv) and from ``~/.caravo/config.json``, which stores the API key
saved by the ``login`` tool.

The API key that may change during a session lives in ``SessionConfig``, a
single object owned by the tool layer and shared by reference with the
marketplace client.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import dotenv
from pydantic import BaseModel, Field, field_validator

from .adapters.evm.constants import BASE_MAINNET_RPC_URL
from .engine.exceptions import ConfigurationError

dotenv.load_dotenv()

DEFAULT_API_BASE = "https://caravo.ai"
API_KEY_PREFIX = "am_"


def default_config_file(home: Optional[Path] = None) -> Path:
    return (home or Path.home()) / ".caravo" / "config.json"


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Read the persisted config file.

    Returns:
        The stored JSON object, or ``{}`` when the file is missing or unreadable.
    """
    path = path or default_config_file()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def save_config(data: Dict[str, Any], path: Optional[Path] = None) -> None:
    """Write ``data`` to the config file with owner-only permissions."""
    path = path or default_config_file()
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
    os.chmod(path, 0o600)


def normalize_api_key(raw: Optional[str]) -> Optional[str]:
    """Return ``raw`` if it looks like a marketplace API key, else ``None``."""
    if raw and raw.startswith(API_KEY_PREFIX):
        return raw
    return None


class Settings(BaseModel):
    """Process-wide settings, fixed at startup.

    Attributes:
        api_base: Marketplace base URL.
        api_key: Initial API key (env var first, then config file).
        rpc_url: JSON-RPC endpoint for balance queries.
        log_level: Logging level name.
        config_file: Location of the persisted config.
    """
    api_base: str = Field(default=DEFAULT_API_BASE)
    api_key: Optional[str] = None
    rpc_url: str = Field(default=BASE_MAINNET_RPC_URL)
    log_level: str = Field(default="INFO")
    config_file: Path = Field(default_factory=default_config_file)

    @field_validator("api_base", "rpc_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(f"URL must be http(s) and include a host: {v!r}")
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported log level: {v!r}")
        return level

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        return normalize_api_key(v)


def load_settings(config_file: Optional[Path] = None) -> Settings:
    """
    Build ``Settings`` from the environment and the config file.

    Raises:
        ConfigurationError: If a configured value is invalid.
    """
    config_file = config_file or default_config_file()
    raw_key = os.getenv("CARAVO_API_KEY") or load_config(config_file).get("api_key")
    try:
        return Settings(
            api_base=os.getenv("CARAVO_URL") or DEFAULT_API_BASE,
            api_key=raw_key,
            rpc_url=os.getenv("CARAVO_RPC_URL") or BASE_MAINNET_RPC_URL,
            log_level=os.getenv("CARAVO_LOG_LEVEL") or "INFO",
            config_file=config_file,
        )
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc


class SessionConfig:
    """
    Mutable per-session credentials.

    Created once from ``Settings``; ``login`` and ``logout`` are the only
    writers of ``api_key``. Request builders read it on every call.
    """

    def __init__(self, api_base: str = DEFAULT_API_BASE, api_key: Optional[str] = None):
        self.api_base = api_base.rstrip("/")
        self.api_key = normalize_api_key(api_key)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionConfig":
        return cls(api_base=settings.api_base, api_key=settings.api_key)

    @property
    def authenticated(self) -> bool:
        return self.api_key is not None

    def url(self, path: str) -> str:
        return f"{self.api_base}{path}"

    def base_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers
