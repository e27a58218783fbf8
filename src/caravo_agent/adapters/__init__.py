from .evm import sign_payment, recover_payment_signer, verify_payment_signature

__all__ = [
    "sign_payment",
    "recover_payment_signer",
    "verify_payment_signature",
]
