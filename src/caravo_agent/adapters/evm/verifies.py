"""
EVM Off-Chain Signature Verification

Recovers the signer of an x402 ``PaymentPayload`` by rebuilding the
ERC-3009 EIP-712 digest from the proof itself (``accepted`` gives the
domain, ``payload.authorization`` the message) and running ECDSA recovery.
Purely local; no chain state is consulted.
"""

from eth_abi.exceptions import EncodingError
from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_keys.exceptions import BadSignature, ValidationError as KeyValidationError
from eth_utils import to_checksum_address

from .constants import DEFAULT_TOKEN_NAME, DEFAULT_TOKEN_VERSION, parse_caip2_chain_id
from .signatures import build_erc3009_typed_data
from ...schemas.https import PaymentPayload


def recover_payment_signer(payment: PaymentPayload) -> str:
    """
    Recover the address that signed ``payment``.

    Args:
        payment: Decoded payment proof.

    Returns:
        Checksummed signer address.

    Raises:
        ValueError: If an address, the network or a number field is malformed.
        eth_abi.exceptions.EncodingError: If a number does not fit its EIP-712 type.
        eth_keys.exceptions.BadSignature: If no key can be recovered from the signature.
    """
    accepted = payment.accepted
    authorization = payment.payload.authorization
    extra = accepted.extra

    typed_data = build_erc3009_typed_data(
        token=to_checksum_address(accepted.asset),
        chain_id=parse_caip2_chain_id(accepted.network),
        authorizer=to_checksum_address(authorization.from_),
        recipient=to_checksum_address(authorization.to),
        value=int(authorization.value),
        valid_after=int(authorization.valid_after),
        valid_before=int(authorization.valid_before),
        nonce=authorization.nonce,
        domain_name=(extra.name if extra else None) or DEFAULT_TOKEN_NAME,
        domain_version=(extra.version if extra else None) or DEFAULT_TOKEN_VERSION,
    )
    signable = encode_typed_data(full_message=typed_data.to_dict())
    return Account.recover_message(signable, signature=payment.payload.signature)


def verify_payment_signature(payment: PaymentPayload) -> bool:
    """
    Check that ``payment`` was signed by its own ``authorization.from``.

    Returns:
        True when the recovered signer equals ``from`` (case-insensitive).
    """
    try:
        recovered = recover_payment_signer(payment)
    except (ValueError, EncodingError, BadSignature, KeyValidationError):
        return False
    return recovered.lower() == payment.payload.authorization.from_.lower()
