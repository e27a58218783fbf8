"""
Exception and Error Definitions Module

Defines the exception hierarchy for identity persistence, payment signing,
marketplace calls and agent input validation. All exceptions inherit from
CaravoError for unified exception handling.

Exception Hierarchy:
    CaravoError (root)
    ├── ConfigurationError
    ├── IdentityPersistenceError
    ├── PaymentSignatureError
    ├── InputValidationError
    ├── MarketplaceError
    └── LoginError

Network failures are not wrapped: ``httpx`` exceptions propagate unchanged.
"""


class CaravoError(Exception):
    """
    Root exception class for all project-specific exceptions.

    The agent tool layer catches this class to turn failures into error
    replies instead of crashing the hosting process.
    """
    pass


class ConfigurationError(CaravoError):
    """
    Raised when configuration is missing or invalid.

    This includes scenarios such as:
    - Marketplace base URL without scheme or host
    - Unsupported log level
    """
    pass


class IdentityPersistenceError(CaravoError):
    """
    Raised when the wallet identity cannot be written to disk.

    Fatal at startup: an identity that is not persisted would be
    regenerated, and change address, on every restart.

    Attributes:
        path: Identity file that could not be written
    """

    def __init__(self, message: str, path: str = None):
        super().__init__(message)
        self.path = path


class PaymentSignatureError(CaravoError):
    """
    Raised when a payment authorization cannot be signed.

    This includes scenarios such as:
    - Network identifier that does not encode an EIP-155 chain id
    - Malformed payee or asset addresses
    - Amount that is not a non-negative integer or exceeds uint256
    """
    pass


class InputValidationError(CaravoError):
    """
    Raised when caller-supplied input is rejected before any request is made.

    This includes scenarios such as:
    - Tool ids with path traversal or illegal characters
    - Pagination values out of range
    - Ratings outside 1..5 or execution ids that are not UUIDs
    """
    pass


class MarketplaceError(CaravoError):
    """
    Raised when the marketplace replies with something that is not JSON.

    Attributes:
        status_code: HTTP status of the offending response
    """

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class LoginError(CaravoError):
    """
    Raised when the browser login flow does not complete.

    This includes scenarios such as:
    - Login session expired on the server
    - Polling deadline reached without approval
    """
    pass
