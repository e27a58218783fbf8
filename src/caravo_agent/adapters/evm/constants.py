"""
EVM Chain Constants and Conversions

Chain-id parsing for CAIP-2 network identifiers, token domain defaults used
when a payment requirement carries no token metadata, and conversions
between smallest-unit values and human-readable amounts.
"""

from decimal import Decimal, InvalidOperation
from typing import Dict

#: Default EIP-712 domain of Circle's USDC when the server sends no ``extra``.
DEFAULT_TOKEN_NAME = "USD Coin"
DEFAULT_TOKEN_VERSION = "2"

#: Seconds ``validAfter`` is backdated to tolerate client/verifier clock drift.
CLOCK_SKEW_SECONDS = 60

BASE_MAINNET_CAIP2 = "eip155:8453"
BASE_MAINNET_RPC_URL = "https://mainnet.base.org"
USDC_DECIMALS = 6

#: Largest value an EIP-712 ``uint256`` field can hold.
UINT256_MAX = 2 ** 256 - 1

#: USDC contract per CAIP-2 network.
USDC_ADDRESSES: Dict[str, str] = {
    "eip155:8453": "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
    "eip155:84532": "0x036CbD53842c5426634e7929541eC2318f3dCF7e",
}


def parse_caip2_chain_id(caip2: str) -> int:
    """
    Parses a CAIP-2 identifier (e.g., 'eip155:8453' or 'eip155-8453') into an integer chain ID.

    Args:
        caip2 (str): The CAIP-2 string to parse.

    Returns:
        int: The extracted EIP-155 chain ID.

    Raises:
        ValueError: If the input format is invalid, the prefix is missing,
                    or the chain ID is not a positive integer.
    """
    if not isinstance(caip2, str) or not caip2.strip():
        raise ValueError(f"Invalid input type: Expected non-empty string, got {type(caip2).__name__}")

    # Standardize the input by replacing hyphen with colon for uniform splitting
    normalized = caip2.strip().replace("-", ":")
    parts = normalized.split(":")

    if len(parts) != 2 or parts[0] != "eip155":
        raise ValueError(
            f"Invalid CAIP-2 format: '{caip2}'. "
            f"Expected format 'eip155:<chain_id>' or 'eip155-<chain_id>'"
        )

    try:
        chain_id = int(parts[1])
    except (ValueError, TypeError) as exc:
        raise ValueError(
            f"Failed to parse chain ID from '{caip2}'. "
            f"The segment '{parts[1]}' is not a valid integer."
        ) from exc

    if chain_id <= 0:
        raise ValueError(
            f"Invalid chain ID in '{caip2}': {chain_id}. "
            f"Chain ID must be a positive integer."
        )

    return chain_id


def value_to_amount(*, value: int | str | Decimal, decimals: int) -> Decimal:
    """Convert a smallest-unit integer `value` into a human-readable token amount.

    Args:
        value: Smallest-unit integer value (e.g. 1230000 for 1.23 USDC). Accepts int/str/Decimal.
        decimals: Token decimals (e.g. 6 for USDC).

    Returns:
        Decimal: Exact human-readable amount.

    Raises:
        ValueError: If inputs are invalid.
    """
    if not isinstance(decimals, int) or decimals < 0:
        raise ValueError("decimals must be a non-negative int")

    try:
        dec_value = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ValueError(f"Invalid value: {value!r}") from e

    if dec_value < 0:
        raise ValueError("value must be non-negative")

    if dec_value != dec_value.to_integral_value():
        raise ValueError("value must be an integer in smallest units")

    return dec_value / (Decimal(10) ** decimals)


def format_usdc(value: int | str) -> str:
    """Render a smallest-unit USDC value with six decimals, e.g. ``"1.000000"``."""
    return f"{value_to_amount(value=value, decimals=USDC_DECIMALS):.6f}"
