from dataclasses import dataclass, field
from typing import Dict, Any, List

from eth_utils import to_bytes


# -----------------------------
# EIP-712 Domain
# -----------------------------

@dataclass
class EIP712Domain:
    """
    EIP-712 domain separator.
    Binds a signature to one token contract on one chain.
    """
    name: str
    version: str
    chainId: int
    verifyingContract: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chainId,
            "verifyingContract": self.verifyingContract,
        }


# -----------------------------
# EIP-3009: Transfer With Authorization
# -----------------------------


@dataclass
class TransferWithAuthorizationMessage:
    """
    Represents the message payload for EIP-3009 "TransferWithAuthorization".

    The EIP names the first field `from`, which is a Python reserved word;
    this class uses `authorizer` and maps it to `from` in `to_dict()`.

    Attributes:
        authorizer: Address of the account authorizing the transfer (maps to `from`).
        recipient: Address receiving the tokens (maps to `to`).
        value: Amount of tokens to transfer (uint256).
        validAfter: Unix timestamp after which the authorization becomes valid.
        validBefore: Unix timestamp before which the authorization expires.
        nonce: A unique nonce (bytes32 hex string) preventing replay.
    """
    authorizer: str
    recipient: str
    value: int
    validAfter: int
    validBefore: int
    nonce: str

    def to_dict(self) -> Dict[str, Any]:
        """Return a dictionary representation compatible with EIP-712 signing.

        Integer fields stay native ints and the nonce is passed as raw
        32 bytes, which is what the ABI encoder expects for ``bytes32``.
        """
        return {
            "from": self.authorizer,
            "to": self.recipient,
            "value": self.value,
            "validAfter": self.validAfter,
            "validBefore": self.validBefore,
            "nonce": to_bytes(hexstr=self.nonce),
        }


@dataclass
class ERC3009TypedData:
    """
    Container for ERC-3009 typed data usable with EIP-712 signing routines.

    `to_dict()` produces the `{types, primaryType, domain, message}` layout
    consumed by `eth_account` and `eth_signTypedData_v4`.

    Attributes:
        domain: EIP712Domain instance describing the signing domain.
        message: TransferWithAuthorizationMessage instance carrying the payload.
        primary_type: The primary EIP-712 type (defaults to "TransferWithAuthorization").
        types: The typed definitions required by EIP-712 (automatically set).
    """
    domain: EIP712Domain
    message: TransferWithAuthorizationMessage

    primary_type: str = "TransferWithAuthorization"

    types: Dict[str, List[Dict[str, str]]] = field(
        default_factory=lambda: {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "version", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            "TransferWithAuthorization": [
                {"name": "from", "type": "address"},
                {"name": "to", "type": "address"},
                {"name": "value", "type": "uint256"},
                {"name": "validAfter", "type": "uint256"},
                {"name": "validBefore", "type": "uint256"},
                {"name": "nonce", "type": "bytes32"},
            ],
        }
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "types": self.types,
            "primaryType": self.primary_type,
            "domain": self.domain.to_dict(),
            "message": self.message.to_dict(),
        }
