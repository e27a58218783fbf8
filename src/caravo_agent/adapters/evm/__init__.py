from .constants import (
    BASE_MAINNET_CAIP2,
    USDC_ADDRESSES,
    USDC_DECIMALS,
    parse_caip2_chain_id,
    value_to_amount,
    format_usdc,
)
from .signatures import (
    create_nonce,
    build_erc3009_typed_data,
    sign_erc3009_authorization,
    sign_payment,
)
from .verifies import recover_payment_signer, verify_payment_signature

__all__ = [
    "BASE_MAINNET_CAIP2",
    "USDC_ADDRESSES",
    "USDC_DECIMALS",
    "parse_caip2_chain_id",
    "value_to_amount",
    "format_usdc",
    "create_nonce",
    "build_erc3009_typed_data",
    "sign_erc3009_authorization",
    "sign_payment",
    "recover_payment_signer",
    "verify_payment_signature",
]
