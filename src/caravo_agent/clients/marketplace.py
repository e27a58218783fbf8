"""
Marketplace API Client

Thin request/response plumbing for the tool marketplace: search and listing
calls, tool execution, reviews, tool requests, favorites and the browser
login session.

Authentication:
    - GET and DELETE send the bearer key when one is set and never pay.
    - POST without a key goes through the 402 payment flow.
    - POST with a key is sent with the bearer header; on 401/403 it is
      re-sent keyless through the 402 payment flow.

Responses are returned as decoded JSON. Error replies from the server are
returned as data, not raised; only non-JSON replies raise.
"""

import logging
import re
from typing import Any, Dict, Optional

import httpx

from .http_client import Http402Client
from ..config import SessionConfig
from ..engine.exceptions import InputValidationError, MarketplaceError
from ..wallet.keystore import Identity

logger = logging.getLogger(__name__)

TOOL_ID_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_./-]*$")
TOOL_ID_MAX_LENGTH = 200
EXECUTION_ID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)
MAX_PER_PAGE = 100
DANGEROUS_FIELDS = frozenset({"__proto__", "constructor", "prototype"})
TOOL_REQUEST_STATUSES = ("open", "fulfilled", "closed")


# =============================================================================
# Input validation
# =============================================================================

def validate_tool_id(tool_id: str) -> str:
    """
    Check a tool id before it is placed in a URL path.

    Namespaced ids (``alice/imagen-4``) and dotted ids
    (``black-forest-labs/flux.1-schnell``) are allowed.

    Returns:
        The trimmed tool id.

    Raises:
        InputValidationError: If the id is empty, contains ``..``, has
            illegal characters, or is longer than 200 characters.
    """
    trimmed = (tool_id or "").strip()
    if not trimmed:
        raise InputValidationError("tool_id must not be empty")
    if ".." in trimmed:
        raise InputValidationError("Invalid tool_id: path traversal not allowed")
    if not TOOL_ID_PATTERN.match(trimmed):
        raise InputValidationError(
            "Invalid tool_id format: must start with alphanumeric and contain only "
            "letters, numbers, hyphens, underscores, dots, and slashes"
        )
    if len(trimmed) > TOOL_ID_MAX_LENGTH:
        raise InputValidationError("tool_id too long")
    return trimmed


def validate_request_id(request_id: str) -> str:
    trimmed = (request_id or "").strip()
    if not trimmed or not re.fullmatch(r"[a-zA-Z0-9_-]+", trimmed):
        raise InputValidationError("Invalid request_id format")
    return trimmed


def validate_execution_id(execution_id: str) -> str:
    """Execution ids are UUIDs; anything else is rejected."""
    if not isinstance(execution_id, str) or not EXECUTION_ID_PATTERN.match(execution_id):
        raise InputValidationError("Invalid execution_id format (must be a UUID)")
    return execution_id


def validate_rating(rating: Any) -> int:
    if isinstance(rating, bool) or not isinstance(rating, (int, float)) or not 1 <= rating <= 5:
        raise InputValidationError("rating must be between 1 and 5")
    return rating


def validate_pagination(page: Any, per_page: Any) -> None:
    """
    Raises:
        InputValidationError: If either value is not a positive integer, or
            ``per_page`` exceeds 100.
    """
    for name, value in (("page", page), ("per_page", per_page)):
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise InputValidationError(f"{name} must be a positive integer")
    if per_page > MAX_PER_PAGE:
        raise InputValidationError(f"per_page must be at most {MAX_PER_PAGE}")


def strip_dangerous_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys that could pollute object prototypes on a JavaScript server."""
    return {k: v for k, v in data.items() if k not in DANGEROUS_FIELDS}


def _compact(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


# =============================================================================
# Client
# =============================================================================

class MarketplaceClient:
    """
    Async client for the marketplace REST API.

    Usage:
        ```python
        async with MarketplaceClient(session, identity) as market:
            tools = await market.search_tools(query="translate")
        ```
    """

    def __init__(
        self,
        session: SessionConfig,
        identity: Identity,
        http_client: Optional[Http402Client] = None,
        timeout: float = 120.0,
    ):
        """
        Args:
            session: Shared session credentials, read on every request
            identity: Wallet identity used for x402 payments
            http_client: Pre-built 402 client; one is created (and owned) when omitted
            timeout: Request timeout for an owned client, in seconds
        """
        self._session = session
        self._owns_client = http_client is None
        self._http = http_client or Http402Client(identity=identity, timeout=timeout)

    @property
    def session(self) -> SessionConfig:
        return self._session

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> "MarketplaceClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # =========================================================================
    # HTTP verbs
    # =========================================================================

    async def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = await self._http.request(
            "GET",
            self._session.url(path),
            params=params,
            headers=self._session.base_headers(),
            max_retries=0,
        )
        return self._decode(response)

    async def post_json(self, path: str, body: Dict[str, Any]) -> Any:
        url = self._session.url(path)
        if not self._session.api_key:
            response = await self._http.request(
                "POST", url, json=body, headers=self._session.base_headers()
            )
            return self._decode(response)

        response = await self._http.request(
            "POST", url, json=body, headers=self._session.base_headers(), max_retries=0
        )
        if response.status_code in (401, 403):
            logger.warning("API key auth failed, falling back to x402")
            response = await self._http.request(
                "POST", url, json=body, headers={"Content-Type": "application/json"}
            )
        return self._decode(response)

    async def delete_json(self, path: str, body: Dict[str, Any]) -> Any:
        response = await self._http.request(
            "DELETE",
            self._session.url(path),
            json=body,
            headers=self._session.base_headers(),
            max_retries=0,
        )
        return self._decode(response)

    def _decode(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise MarketplaceError(
                f"Marketplace returned non-JSON response (HTTP {response.status_code})",
                status_code=response.status_code,
            ) from exc

    # =========================================================================
    # Catalog
    # =========================================================================

    async def list_tags(self) -> Any:
        return await self.get_json("/api/tags")

    async def list_providers(self) -> Any:
        return await self.get_json("/api/providers")

    async def search_tools(
        self,
        query: Optional[str] = None,
        tag: Optional[str] = None,
        provider: Optional[str] = None,
        page: int = 1,
        per_page: int = 10,
    ) -> Any:
        validate_pagination(page, per_page)
        params = _compact({"query": query or None, "tag": tag or None, "provider": provider or None})
        params.update(page=str(page), per_page=str(per_page))
        return await self.get_json("/api/tools", params=params)

    async def get_tool(self, tool_id: str) -> Any:
        return await self.get_json(f"/api/tools/{validate_tool_id(tool_id)}")

    async def execute_tool(self, tool_id: str, tool_input: Dict[str, Any]) -> Any:
        tool_id = validate_tool_id(tool_id)
        return await self.post_json(f"/api/tools/{tool_id}/execute", strip_dangerous_fields(tool_input))

    # =========================================================================
    # Reviews
    # =========================================================================

    async def submit_review(
        self,
        execution_id: str,
        rating: int,
        comment: str,
        agent_id: Optional[str] = None,
    ) -> Any:
        validate_execution_id(execution_id)
        validate_rating(rating)
        if not comment:
            raise InputValidationError("comment is required for new reviews")
        body = _compact({
            "execution_id": execution_id,
            "rating": rating,
            "comment": comment,
            "agent_id": agent_id,
        })
        return await self.post_json("/api/reviews", body)

    async def upvote_review(self, execution_id: str, review_id: str) -> Any:
        validate_execution_id(execution_id)
        return await self.post_json(
            "/api/reviews/upvote", {"review_id": review_id, "execution_id": execution_id}
        )

    # =========================================================================
    # Tool requests
    # =========================================================================

    async def list_tool_requests(self, status: str = "open", page: int = 1, per_page: int = 20) -> Any:
        if status not in TOOL_REQUEST_STATUSES:
            raise InputValidationError(f"status must be one of {', '.join(TOOL_REQUEST_STATUSES)}")
        validate_pagination(page, per_page)
        return await self.get_json(
            "/api/tool-requests",
            params={"status": status, "page": str(page), "per_page": str(per_page)},
        )

    async def request_tool(
        self,
        title: str,
        description: str,
        use_case: Optional[str] = None,
        execution_id: Optional[str] = None,
        agent_id: Optional[str] = None,
    ) -> Any:
        body = _compact({
            "title": title,
            "description": description,
            "use_case": use_case,
            "execution_id": execution_id,
            "agent_id": agent_id,
        })
        return await self.post_json("/api/tool-requests", body)

    async def upvote_tool_request(self, request_id: str, execution_id: Optional[str] = None) -> Any:
        request_id = validate_request_id(request_id)
        return await self.post_json(f"/api/tool-requests/{request_id}", _compact({"execution_id": execution_id}))

    # =========================================================================
    # Favorites
    # =========================================================================

    async def list_favorites(self) -> Any:
        return await self.get_json("/api/favorites")

    async def add_favorite(self, tool_id: str) -> Any:
        return await self.post_json("/api/favorites", {"tool_id": validate_tool_id(tool_id)})

    async def remove_favorite(self, tool_id: str) -> Any:
        return await self.delete_json("/api/favorites", {"tool_id": validate_tool_id(tool_id)})

    # =========================================================================
    # Browser login session
    # =========================================================================

    async def create_login_session(self) -> Dict[str, Any]:
        """Start a one-time login session; returns ``{"token", "url"}``."""
        response = await self._http.request(
            "POST",
            self._session.url("/api/auth/mcp-session"),
            headers={"Content-Type": "application/json"},
            max_retries=0,
        )
        return self._decode(response)

    async def poll_login_session(self, token: str) -> Dict[str, Any]:
        """Returns ``{"status": "pending"|"completed"|"expired", "api_key"?}``."""
        response = await self._http.request(
            "GET",
            self._session.url("/api/auth/mcp-session"),
            params={"token": token},
            max_retries=0,
        )
        return self._decode(response)
