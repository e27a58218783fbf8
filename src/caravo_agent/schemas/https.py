"""
HTTP Request/Response Schema Models for the x402 Payment Protocol

This module defines the Pydantic models exchanged with a marketplace that
answers protected calls with ``402 Payment Required``. The flow is:

1. Server replies 402 with a ``PaymentRequired`` document, either base64 JSON
   in the ``payment-required`` header or as the raw JSON body
2. Client picks the first entry of ``accepts`` (a ``PaymentRequirements``)
3. Client signs an ERC-3009 transfer authorization for it
4. Client re-sends the request once with a base64 ``PaymentPayload`` in the
   ``X-PAYMENT`` header

All integer quantities that end up on the wire (amounts, timestamps) are
carried as decimal strings so they survive JSON parsers with 53-bit numbers.
"""

import copy
from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field, PrivateAttr, field_validator

from .bases import CanonicalModel
from .versions import CURRENT_VERSION


PAYMENT_REQUIRED_STATUS = 402
PAYMENT_REQUIRED_HEADER = "payment-required"
PAYMENT_HEADER = "X-PAYMENT"


# ============================================================================
# Step 1: Server's 402 Payment Required Response
# ============================================================================

class TokenMetadata(CanonicalModel):
    """EIP-712 domain hints for the asset contract.

    Attributes:
        name: Token domain name (e.g. "USD Coin").
        version: Token domain version (e.g. "2").
    """
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    name: Optional[str] = Field(default=None, description="EIP-712 domain name of the token")
    version: Optional[str] = Field(default=None, description="EIP-712 domain version of the token")


class PaymentRequirements(CanonicalModel):
    """One accepted way of paying for a resource.

    A requirement read from a 402 response with ``from_wire`` remembers the
    server's JSON object, and ``wire_form()`` returns it unchanged for the
    ``accepted`` member of the payment proof. Servers may deep-compare that
    member against their offer.

    Attributes:
        scheme: Payment scheme identifier (e.g. "exact").
        network: CAIP-2 network identifier (e.g. "eip155:8453").
        amount: Amount in the asset's smallest unit, as a base-10 string.
        asset: Token contract address.
        pay_to: Payee address.
        max_timeout_seconds: Lifetime of the authorization in seconds.
        extra: Optional token metadata used for the EIP-712 domain.
    """
    model_config = ConfigDict(extra="allow")

    scheme: Optional[str] = Field(default=None, description="Payment scheme identifier")
    network: str = Field(..., description="CAIP-2 network identifier")
    amount: str = Field(..., pattern=r"^[0-9]+$", description="Smallest-unit amount as decimal string")
    asset: str = Field(..., description="Token contract address")
    pay_to: str = Field(..., alias="payTo", description="Payee address")
    max_timeout_seconds: int = Field(..., alias="maxTimeoutSeconds", description="Authorization lifetime (s)")
    extra: Optional[TokenMetadata] = Field(default=None, description="Token domain metadata")

    _wire: Optional[Dict[str, Any]] = PrivateAttr(default=None)

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_as_string(cls, value: Any) -> Any:
        # Integers are accepted but always kept as text.
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @classmethod
    def from_wire(cls, entry: Any) -> "PaymentRequirements":
        """
        Validate one ``accepts`` entry and keep a copy of it as sent.

        Raises:
            ValueError: If the entry lacks fields the signer needs.
        """
        requirements = cls.model_validate(entry)
        requirements._wire = copy.deepcopy(entry)
        return requirements

    def wire_form(self) -> Dict[str, Any]:
        """The server's original object when known, else the model's own dump."""
        if self._wire is not None:
            return copy.deepcopy(self._wire)
        return self.to_dict()


class ResourceInfo(CanonicalModel):
    """Description of the protected resource, as advertised by the server."""
    model_config = ConfigDict(extra="allow")

    url: Optional[str] = None
    method: Optional[str] = None
    description: Optional[str] = None


class PaymentRequired(CanonicalModel):
    """Payload of a 402 response.

    ``accepts`` is kept loosely typed: only the first entry is ever used and
    it is validated on its own by ``first_requirement()``.

    Attributes:
        x402_version: Protocol version advertised by the server.
        resource: Optional description of the protected resource.
        accepts: Accepted payment requirements, in server preference order.
    """
    x402_version: Optional[int] = Field(default=None, alias="x402Version")
    resource: Optional[ResourceInfo] = None
    accepts: List[Any] = Field(default_factory=list)

    def first_requirement(self) -> Optional[PaymentRequirements]:
        """
        Return the first accepted requirement, validated.

        Returns:
            ``PaymentRequirements`` or ``None`` when the list is empty or the
            first entry is missing fields the signer needs.
        """
        if not self.accepts:
            return None
        try:
            return PaymentRequirements.from_wire(self.accepts[0])
        except ValueError:
            return None


# ============================================================================
# Step 2: Client's Payment Proof (X-PAYMENT header)
# ============================================================================

class TransferAuthorization(CanonicalModel):
    """ERC-3009 ``TransferWithAuthorization`` message in wire form.

    Attributes:
        from_: Authorizer address (``from`` on the wire).
        to: Payee address.
        value: Amount, decimal string.
        valid_after: Start of validity window (Unix seconds), decimal string.
        valid_before: End of validity window (Unix seconds), decimal string.
        nonce: 32-byte random nonce, 0x-prefixed hex.
    """
    from_: str = Field(..., alias="from")
    to: str
    value: str
    valid_after: str = Field(..., alias="validAfter")
    valid_before: str = Field(..., alias="validBefore")
    nonce: str


class ExactEvmPayload(CanonicalModel):
    """Signed authorization for the ``exact`` scheme on EVM networks."""
    authorization: TransferAuthorization
    signature: str = Field(..., description="65-byte r||s||v signature, 0x-prefixed hex")


class PaymentPayload(CanonicalModel):
    """Payment proof attached to the retried request.

    Attributes:
        x402_version: Protocol version tag.
        accepted: The requirement this payment satisfies, echoed back.
        payload: Signed authorization.
    """
    x402_version: int = Field(default=int(CURRENT_VERSION), alias="x402Version")
    accepted: PaymentRequirements
    payload: ExactEvmPayload

    def to_dict(self) -> Dict[str, Any]:
        """Wire form with ``accepted`` echoed exactly as the server sent it."""
        data = super().to_dict()
        data["accepted"] = self.accepted.wire_form()
        return data

    def to_header_value(self) -> str:
        """Encode the proof for the ``X-PAYMENT`` header."""
        return self.to_base64()

    @classmethod
    def from_header_value(cls, value: str) -> "PaymentPayload":
        return cls.from_base64(value)

    def header(self) -> Dict[str, str]:
        return {PAYMENT_HEADER: self.to_header_value()}
