from enum import IntEnum


class ProtocolVersion(IntEnum):
    """x402 protocol versions understood by the payment client."""

    V2 = 2


CURRENT_VERSION = ProtocolVersion.V2
