"""
HTTP 402 Payment Flow Middleware

Provides a transparent middleware layer for httpx that pays for
``402 Payment Required`` responses with a signed ERC-3009 authorization and
re-issues the request once with the proof attached.
"""

import base64
import binascii
import json
import logging
from typing import Optional

import httpx

from ..adapters.evm.signatures import sign_payment
from ..schemas.https import (
    PAYMENT_HEADER,
    PAYMENT_REQUIRED_HEADER,
    PAYMENT_REQUIRED_STATUS,
    PaymentPayload,
    PaymentRequired,
    PaymentRequirements,
)
from ..wallet.keystore import Identity

logger = logging.getLogger(__name__)


class Http402Client(httpx.AsyncClient):
    """
    Extended httpx.AsyncClient with automatic 402 payment handling.

    On a 402 response the client:
    1. Parses the payment requirements (header first, then body)
    2. Signs a transfer authorization for the first accepted requirement
    3. Retries the original request once with the ``X-PAYMENT`` header

    The retried response is returned as is, even if it is another 402.
    Unparseable or unusable requirements end the flow with the original
    response. Network errors from either request propagate.

    Fully compatible with httpx.AsyncClient - supports all methods, properties,
    and can be used as an async context manager.

    Usage:
        ```python
        identity = load_or_create_identity()
        async with Http402Client(identity=identity) as client:
            response = await client.post("https://caravo.ai/api/tools/x/execute", json={})
        ```
    """

    def __init__(
        self,
        identity: Identity,
        max_retries: int = 1,
        **kwargs
    ):
        """
        Initialize client with the wallet identity used to pay.

        Args:
            identity: Signing identity shared read-only by all requests
            max_retries: Default payment retry budget; ``0`` disables payments
            **kwargs: All standard httpx.AsyncClient arguments (timeout, headers, etc.)
        """
        super().__init__(**kwargs)
        self._identity = identity
        self._max_retries = max_retries

    @property
    def identity(self) -> Identity:
        return self._identity

    # =========================================================================
    # Override httpx.AsyncClient.request to add 402 handling
    # =========================================================================

    async def request(
        self,
        method: str,
        url: httpx._types.URLTypes,
        *,
        max_retries: Optional[int] = None,
        **kwargs
    ) -> httpx.Response:
        """
        Execute HTTP request with automatic 402 handling.

        Overrides httpx.AsyncClient.request() to intercept 402 responses.
        All other httpx methods (get, post, etc.) automatically use this.

        Args:
            method: HTTP method (GET, POST, etc.)
            url: Request URL
            max_retries: Per-call override of the retry budget; ``0`` sends
                the request without payment handling
            **kwargs: All standard httpx arguments

        Returns:
            httpx.Response object
        """
        budget = self._max_retries if max_retries is None else max_retries
        return await self._execute_with_402_handling(method, url, budget, **kwargs)

    # =========================================================================
    # Core 402 Handling Logic
    # =========================================================================

    async def _execute_with_402_handling(
        self,
        method: str,
        url: httpx._types.URLTypes,
        max_retries: int,
        **kwargs
    ) -> httpx.Response:
        """
        Execute request and pay for a 402 response at most once.

        Flow:
            1. Send initial request
            2. If 402 and budget left: parse requirements → sign → retry
            3. Return the last response obtained
        """
        response = await super().request(method, url, **kwargs)

        if response.status_code != PAYMENT_REQUIRED_STATUS or max_retries <= 0:
            return response

        requirements = self._parse_402_requirements(response)
        if requirements is None:
            return response

        payment = self._generate_payment(requirements)
        kwargs["headers"] = self._inject_payment_header(kwargs.get("headers"), payment)
        return await super().request(method, url, **kwargs)

    def _parse_402_requirements(
        self,
        response: httpx.Response
    ) -> Optional[PaymentRequirements]:
        """
        Extract the first accepted requirement from a 402 response.

        Returns:
            ``PaymentRequirements`` or ``None`` if neither the header nor
            the body holds a usable requirement
        """
        payment_required = self._decode_header(response) or self._decode_body(response)
        if payment_required is None:
            logger.warning("402 from %s without parseable payment requirements", response.request.url)
            return None

        requirements = payment_required.first_requirement()
        if requirements is None:
            logger.warning("402 from %s has no usable payment requirement", response.request.url)
        return requirements

    def _decode_header(self, response: httpx.Response) -> Optional[PaymentRequired]:
        header = response.headers.get(PAYMENT_REQUIRED_HEADER)
        if not header:
            return None
        try:
            return PaymentRequired.model_validate(json.loads(base64.b64decode(header)))
        except (binascii.Error, ValueError):
            return None

    def _decode_body(self, response: httpx.Response) -> Optional[PaymentRequired]:
        try:
            return PaymentRequired.model_validate(response.json())
        except ValueError:
            return None

    def _generate_payment(
        self,
        requirements: PaymentRequirements
    ) -> PaymentPayload:
        """
        Sign a payment for ``requirements`` with the client identity.

        Raises:
            PaymentSignatureError: If the requirement cannot be signed
        """
        return sign_payment(requirements, self._identity)

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def _inject_payment_header(
        self,
        headers: Optional[httpx._types.HeaderTypes],
        payment: PaymentPayload
    ) -> httpx.Headers:
        """
        Copy the request headers and add the ``X-PAYMENT`` proof.

        Args:
            headers: Headers of the original request (or None)
            payment: Signed payment proof

        Returns:
            New header collection with the payment header set
        """
        merged = httpx.Headers(headers)
        merged[PAYMENT_HEADER] = payment.to_header_value()
        return merged
