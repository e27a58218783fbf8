from .bases import CanonicalModel
from .https import (
    PAYMENT_HEADER,
    PAYMENT_REQUIRED_HEADER,
    PAYMENT_REQUIRED_STATUS,
    TokenMetadata,
    PaymentRequirements,
    ResourceInfo,
    PaymentRequired,
    TransferAuthorization,
    ExactEvmPayload,
    PaymentPayload,
)
from .marketplace import ToolField, ToolFieldOption, ToolPricing, MarketplaceTool, ExecutionResult
from .versions import ProtocolVersion, CURRENT_VERSION

__all__ = [
    "CanonicalModel",
    "PAYMENT_HEADER",
    "PAYMENT_REQUIRED_HEADER",
    "PAYMENT_REQUIRED_STATUS",
    "TokenMetadata",
    "PaymentRequirements",
    "ResourceInfo",
    "PaymentRequired",
    "TransferAuthorization",
    "ExactEvmPayload",
    "PaymentPayload",
    "ToolField",
    "ToolFieldOption",
    "ToolPricing",
    "MarketplaceTool",
    "ExecutionResult",
    "ProtocolVersion",
    "CURRENT_VERSION",
]
