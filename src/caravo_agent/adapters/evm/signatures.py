"""
EVM Off-Chain Signing Utilities

Local EIP-712 signing of ERC-3009 ``transferWithAuthorization`` messages,
which is how the agent pays for a ``402 Payment Required`` response. All
cryptographic operations are performed in-process using ``eth_account``; no
RPC calls or on-chain state queries are made.

Exported helpers
----------------
sign_payment
    Turn a server ``PaymentRequirements`` and the local ``Identity`` into a
    complete ``PaymentPayload`` ready for the ``X-PAYMENT`` header.

sign_erc3009_authorization
    Build the EIP-712 payload, sign it with a private key and return the
    wire-form authorization plus its 65-byte signature.

build_erc3009_typed_data
    Low-level helper that builds the ``ERC3009TypedData`` envelope without
    signing. Also used to reconstruct the digest when verifying.
"""

import logging
import os
import time
from typing import Optional

from eth_account import Account
from eth_utils import to_checksum_address, to_hex

from .constants import (
    CLOCK_SKEW_SECONDS,
    DEFAULT_TOKEN_NAME,
    DEFAULT_TOKEN_VERSION,
    UINT256_MAX,
    parse_caip2_chain_id,
)
from .standards import EIP712Domain, TransferWithAuthorizationMessage, ERC3009TypedData
from ...engine.exceptions import PaymentSignatureError
from ...schemas.https import (
    ExactEvmPayload,
    PaymentPayload,
    PaymentRequirements,
    TransferAuthorization,
)
from ...wallet.keystore import Identity

logger = logging.getLogger(__name__)


def create_nonce() -> str:
    """Return a fresh 32-byte nonce from the OS CSPRNG as 0x-prefixed hex."""
    return "0x" + os.urandom(32).hex()


# ---------------------------------------------------------------------------
# Low-level typed-data builder (ERC-3009)
# ---------------------------------------------------------------------------

def build_erc3009_typed_data(
    *,
    token: str,
    chain_id: int,
    authorizer: str,
    recipient: str,
    value: int,
    valid_after: int,
    valid_before: int,
    nonce: str,
    domain_name: str,
    domain_version: str,
) -> ERC3009TypedData:
    """
    Build the EIP-712 ``ERC3009TypedData`` envelope without signing.

    Args:
        token:          Token contract address, used as ``verifyingContract``.
        chain_id:       EVM network ID (e.g. ``8453`` for Base).
        authorizer:     ``from`` address.
        recipient:      ``to`` address.
        value:          Amount in the token's smallest unit.
        valid_after:    Unix timestamp after which the authorization is valid.
        valid_before:   Unix timestamp before which it must be settled.
        nonce:          bytes32 hex string.
        domain_name:    EIP-712 domain ``name`` (e.g. ``"USD Coin"``).
        domain_version: EIP-712 domain ``version`` (e.g. ``"2"``).

    Returns:
        ``ERC3009TypedData`` whose ``to_dict()`` is compatible with
        ``eth_account.Account.sign_typed_data``.
    """
    domain = EIP712Domain(
        name=domain_name,
        version=domain_version,
        chainId=chain_id,
        verifyingContract=token,
    )
    message = TransferWithAuthorizationMessage(
        authorizer=authorizer,
        recipient=recipient,
        value=value,
        validAfter=valid_after,
        validBefore=valid_before,
        nonce=nonce,
    )
    return ERC3009TypedData(domain=domain, message=message)


# ---------------------------------------------------------------------------
# ERC-3009 signer
# ---------------------------------------------------------------------------

def sign_erc3009_authorization(
    *,
    private_key: str,
    token: str,
    chain_id: int,
    authorizer: str,
    recipient: str,
    value: int,
    valid_after: int,
    valid_before: int,
    domain_name: str,
    domain_version: str,
    nonce: Optional[str] = None,
) -> ExactEvmPayload:
    """
    Sign an ERC-3009 ``transferWithAuthorization`` payload.

    The EIP-712 digest is computed from the token's domain separator and
    the authorization message, then signed with the supplied private key.
    The window is not checked: ``valid_after >= valid_before`` produces an
    authorization that no verifier will accept, which callers may rely on.

    Args:
        private_key:    Hex-encoded secp256k1 private key of the authorizer.
        token:          ERC-20 token contract address.
        chain_id:       EVM network ID.
        authorizer:     Address derived from ``private_key``.
        recipient:      Payee address.
        value:          Amount to transfer in the token's smallest unit.
        valid_after:    Start of validity (Unix seconds).
        valid_before:   End of validity (Unix seconds).
        domain_name:    EIP-712 domain ``name``.
        domain_version: EIP-712 domain ``version``.
        nonce:          Optional bytes32 hex string; a random one is drawn
                        when omitted.

    Returns:
        ``ExactEvmPayload`` with decimal-string fields and the 0x-prefixed
        ``r || s || v`` signature.
    """
    resolved_nonce = nonce if nonce is not None else create_nonce()

    typed_data = build_erc3009_typed_data(
        token=token,
        chain_id=chain_id,
        authorizer=authorizer,
        recipient=recipient,
        value=value,
        valid_after=valid_after,
        valid_before=valid_before,
        nonce=resolved_nonce,
        domain_name=domain_name,
        domain_version=domain_version,
    )
    signed = Account.sign_typed_data(private_key, full_message=typed_data.to_dict())

    authorization = TransferAuthorization(
        from_=authorizer,
        to=recipient,
        value=str(value),
        valid_after=str(valid_after),
        valid_before=str(valid_before),
        nonce=resolved_nonce,
    )
    return ExactEvmPayload(authorization=authorization, signature=to_hex(signed.signature))


# ---------------------------------------------------------------------------
# x402 payment signer
# ---------------------------------------------------------------------------

def sign_payment(
    requirements: PaymentRequirements,
    identity: Identity,
    *,
    nonce: Optional[str] = None,
    now: Optional[int] = None,
) -> PaymentPayload:
    """
    Authorize one payment for a 402 requirement.

    The validity window is ``[now - 60, now + maxTimeoutSeconds]``. A zero
    or negative timeout yields an already-expired window and is signed as is.

    Args:
        requirements: Requirement chosen from the server's ``accepts`` list.
        identity:     Local signing identity.
        nonce:        Fixed bytes32 nonce (golden-vector tests); random when omitted.
        now:          Fixed Unix time; ``time.time()`` when omitted.

    Returns:
        ``PaymentPayload`` echoing ``requirements`` under ``accepted``.

    Raises:
        PaymentSignatureError: If the network is not ``eip155:<id>``, an
            address is malformed, the amount or a window bound does not
            fit in a uint256, or the identity secret is not a usable key.
    """
    try:
        value = int(requirements.amount)
        chain_id = parse_caip2_chain_id(requirements.network)
        recipient = to_checksum_address(requirements.pay_to)
        token = to_checksum_address(requirements.asset)
    except (TypeError, ValueError) as exc:
        raise PaymentSignatureError(f"Cannot sign payment requirements: {exc}") from exc

    try:
        account = Account.from_key(identity.secret)
    except (TypeError, ValueError) as exc:
        raise PaymentSignatureError(f"Identity secret is not a valid private key: {exc}") from exc

    timestamp = int(time.time()) if now is None else now
    valid_after = timestamp - CLOCK_SKEW_SECONDS
    valid_before = timestamp + requirements.max_timeout_seconds
    for name, number in (("amount", value), ("validAfter", valid_after), ("validBefore", valid_before)):
        if not 0 <= number <= UINT256_MAX:
            raise PaymentSignatureError(f"Cannot sign payment requirements: {name} {number} is outside uint256")

    extra = requirements.extra
    domain_name = (extra.name if extra else None) or DEFAULT_TOKEN_NAME
    domain_version = (extra.version if extra else None) or DEFAULT_TOKEN_VERSION

    payload = sign_erc3009_authorization(
        private_key=identity.secret,
        token=token,
        chain_id=chain_id,
        authorizer=to_checksum_address(account.address),
        recipient=recipient,
        value=value,
        valid_after=valid_after,
        valid_before=valid_before,
        domain_name=domain_name,
        domain_version=domain_version,
        nonce=nonce,
    )
    logger.info(
        "signed payment of %s (asset %s, %s) to %s",
        requirements.amount, token, requirements.network, recipient,
    )
    return PaymentPayload(accepted=requirements, payload=payload)
