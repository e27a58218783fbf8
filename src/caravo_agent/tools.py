"""
Agent Tool Surface

The operations an agent host exposes to the model: wallet info, login and
logout, catalog search, tool execution, reviews, tool requests and
favorites. Each returns a ``ToolReply`` with display text; failures become
error replies so a bad call never takes the host process down.

Usage:
    tools = await create_agent_tools()
    reply = await tools.search_tools(query="weather")
    print(reply.text)
"""

import asyncio
import functools
import json
import logging
import time
import webbrowser
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import httpx
from web3 import AsyncWeb3

from .adapters.evm.constants import BASE_MAINNET_CAIP2, format_usdc
from .clients.marketplace import MarketplaceClient, validate_execution_id, validate_rating
from .config import Settings, SessionConfig, load_config, load_settings, save_config
from .engine.exceptions import CaravoError, LoginError
from .log import setup_logging
from .schemas.marketplace import ExecutionResult, MarketplaceTool
from .wallet.balances import get_usdc_balance
from .wallet.keystore import Identity, KeyStore

logger = logging.getLogger(__name__)

JSON_OUTPUT_LIMIT = 4000
LOGIN_POLL_INTERVAL = 2.0
LOGIN_TIMEOUT = 300.0


@dataclass
class ToolReply:
    """Text result of a tool call; ``is_error`` marks failures."""
    text: str
    is_error: bool = False


def _json_reply(data: Any) -> ToolReply:
    return ToolReply(json.dumps(data, indent=2))


def _error(message: str) -> ToolReply:
    return ToolReply(f"Error: {message}", is_error=True)


def guarded(func: Callable) -> Callable:
    """Turn package and network errors raised by a tool into error replies."""
    @functools.wraps(func)
    async def wrapper(*args, **kwargs) -> ToolReply:
        try:
            return await func(*args, **kwargs)
        except (CaravoError, httpx.HTTPError) as exc:
            logger.debug("%s failed: %s", func.__name__, exc)
            return _error(str(exc))
    return wrapper


def format_output(output: Optional[Dict[str, Any]]) -> List[str]:
    """
    Render tool output for display.

    Images are listed by URL, text is passed through and JSON is
    pretty-printed, truncated after 4000 characters.
    """
    if not output:
        return []
    lines = []
    for i, image in enumerate(output.get("images") or [], start=1):
        lines.append(f"  Image {i}: {image.get('url')}")
    if isinstance(output.get("text"), str) and output["text"]:
        lines.append(output["text"])
    if "json" in output and output["json"] is not None:
        json_str = json.dumps(output["json"], indent=2)
        if len(json_str) > JSON_OUTPUT_LIMIT:
            json_str = json_str[:JSON_OUTPUT_LIMIT] + "\n... (truncated)"
        lines.append(json_str)
    return lines


def is_payment_required(result: Any) -> bool:
    return isinstance(result, dict) and bool(result.get("x402Version") or result.get("accepts"))


def required_amount_usd(result: Dict[str, Any]) -> str:
    """USDC amount of the first accepted requirement, or ``"?"``."""
    try:
        return format_usdc(result["accepts"][0]["amount"])
    except (KeyError, IndexError, TypeError, ValueError):
        return "?"


class AgentTools:
    """
    Tool handlers bound to one wallet identity and one session.

    ``AgentTools`` owns the ``SessionConfig``: ``login`` and ``logout`` are
    the only places that change the API key.
    """

    def __init__(
        self,
        identity: Identity,
        session: SessionConfig,
        market: MarketplaceClient,
        settings: Optional[Settings] = None,
        web3: Optional[AsyncWeb3] = None,
        open_browser: Callable[[str], Any] = webbrowser.open,
    ):
        self.identity = identity
        self.session = session
        self.market = market
        self.settings = settings or Settings()
        self._web3 = web3
        self._open_browser = open_browser
        self.favorites: Dict[str, MarketplaceTool] = {}

    async def aclose(self) -> None:
        await self.market.aclose()

    # =========================================================================
    # Wallet and account
    # =========================================================================

    async def get_wallet_info(self) -> ToolReply:
        balance = await get_usdc_balance(
            self.identity.address, web3=self._web3, rpc_url=self.settings.rpc_url
        )
        return _json_reply({
            "address": self.identity.address,
            "network": f"Base mainnet ({BASE_MAINNET_CAIP2})",
            "usdc_balance": f"{format_usdc(balance)} USDC" if balance is not None else "unknown (check manually)",
            "note": "Send USDC on Base to this address to enable automatic x402 payments.",
        })

    async def login(
        self,
        poll_interval: float = LOGIN_POLL_INTERVAL,
        timeout: float = LOGIN_TIMEOUT,
    ) -> ToolReply:
        """
        Connect a marketplace account through the browser.

        Opens the login page, polls the session until it is approved,
        expires or ``timeout`` seconds pass, then saves the API key to the
        config file and activates it for this session.
        """
        try:
            api_key = await self._run_login(poll_interval, timeout)
        except (CaravoError, httpx.HTTPError, KeyError) as exc:
            return ToolReply(f"Login failed: {exc}", is_error=True)

        self.session.api_key = api_key
        config = load_config(self.settings.config_file)
        config["api_key"] = api_key
        try:
            save_config(config, self.settings.config_file)
            saved = f"API key saved to {self.settings.config_file}"
        except OSError as exc:
            logger.warning("login: could not write %s: %s", self.settings.config_file, exc)
            saved = "API key could not be saved; it is active for this session only."
        logger.info("login: API key activated")
        return ToolReply("\n".join([
            "✓ Logged in to Caravo!",
            "",
            saved,
            "Balance payments are now active for this session.",
            "Run load_favorite_tools to load your favorited tools.",
        ]))

    async def _run_login(self, poll_interval: float, timeout: float) -> str:
        started = await self.market.create_login_session()
        token, url = started["token"], started["url"]
        self._open_browser(url)
        logger.info("login: opened %s", url)

        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            await asyncio.sleep(poll_interval)
            poll = await self.market.poll_login_session(token)
            status = poll.get("status")
            if status == "completed" and poll.get("api_key"):
                return poll["api_key"]
            if status == "expired":
                raise LoginError("Login expired. Run login again to retry.")
        raise LoginError(f"Login timed out after {int(timeout)} seconds. Run login again.")

    async def logout(self) -> ToolReply:
        if not self.session.api_key:
            return ToolReply("Not logged in, already using x402 wallet payments.")

        self.session.api_key = None
        config = load_config(self.settings.config_file)
        if "api_key" in config:
            config.pop("api_key")
            try:
                save_config(config, self.settings.config_file)
            except OSError as exc:
                logger.warning("logout: could not update %s: %s", self.settings.config_file, exc)

        removed = len(self.favorites)
        self.favorites.clear()
        logger.info("logout: cleared API key, removed %d fav tools", removed)

        lines = ["✓ Logged out of Caravo.", "", f"API key removed from {self.settings.config_file}"]
        if removed:
            lines.append(f"Unregistered {removed} favorited tool(s).")
        lines.append(f"Now using x402 wallet payments ({self.identity.address}).")
        return ToolReply("\n".join(lines))

    # =========================================================================
    # Catalog
    # =========================================================================

    @guarded
    async def list_tags(self) -> ToolReply:
        return _json_reply(await self.market.list_tags())

    @guarded
    async def list_providers(self) -> ToolReply:
        return _json_reply(await self.market.list_providers())

    @guarded
    async def search_tools(
        self,
        query: Optional[str] = None,
        tag: Optional[str] = None,
        provider: Optional[str] = None,
        page: int = 1,
        per_page: int = 10,
    ) -> ToolReply:
        return _json_reply(await self.market.search_tools(query, tag, provider, page, per_page))

    @guarded
    async def get_tool_info(self, tool_id: str) -> ToolReply:
        return _json_reply(await self.market.get_tool(tool_id))

    # =========================================================================
    # Execution
    # =========================================================================

    @guarded
    async def use_tool(self, tool_id: str, input: Dict[str, Any]) -> ToolReply:
        result = await self.market.execute_tool(tool_id, input)
        return self._render_execution(result, f"Tool: {tool_id.strip()}")

    @guarded
    async def call_favorite(self, tool_id: str, args: Dict[str, Any]) -> ToolReply:
        """Execute a favorited tool, checking its required inputs first."""
        tool = self.favorites.get(tool_id)
        if tool is None:
            return _error(f"{tool_id} is not a loaded favorite")
        missing = tool.missing_required(args)
        if missing:
            return _error(f"missing required input(s): {', '.join(missing)}")
        result = await self.market.execute_tool(tool.id, args)
        return self._render_execution(result, tool.name, price=tool.pricing.price_per_call)

    def _render_execution(self, result: Any, label: str, price: Optional[float] = None) -> ToolReply:
        if isinstance(result, dict) and result.get("success"):
            execution = ExecutionResult.model_validate(result)
            exec_id = execution.execution_id
            lines = [f"✓ {label} | Cost: ${execution.cost} ({execution.payment_method})"]
            if exec_id:
                lines.append(f"  Execution ID: {exec_id}")
            lines.extend(format_output(execution.output))
            lines.append("")
            lines.append("IMPORTANT: Present this result to the user FIRST. Then submit a review afterwards.")
            if exec_id:
                lines.append("After responding to the user, rate this tool:")
                lines.append(
                    f'  submit_review(execution_id="{exec_id}", rating=1-5, comment="...") OR upvote an '
                    f'existing review via submit_review(execution_id="{exec_id}", upvote_review_id="<id>")'
                )
            return ToolReply("\n".join(lines))

        if is_payment_required(result):
            header = f"Payment required for {label} (${price})" if price is not None else "Payment required."
            return ToolReply("\n".join([
                header,
                "Fund your wallet to continue:",
                f"  Address: {self.identity.address}",
                f"  Network: Base ({BASE_MAINNET_CAIP2})",
                "  Asset:   USDC",
                f"  Amount:  at least ${required_amount_usd(result)}",
            ]), is_error=True)

        return _error(json.dumps(result))

    # =========================================================================
    # Reviews
    # =========================================================================

    @guarded
    async def submit_review(
        self,
        execution_id: str,
        rating: Optional[int] = None,
        comment: Optional[str] = None,
        agent_id: Optional[str] = None,
        upvote_review_id: Optional[str] = None,
    ) -> ToolReply:
        """Upvote an existing review, or write a new one (rating and comment required)."""
        validate_execution_id(execution_id)

        if upvote_review_id:
            result = await self.market.upvote_review(execution_id, upvote_review_id)
            if not result.get("success"):
                if result.get("error"):
                    return _error(result["error"])
                return ToolReply(json.dumps(result, indent=2), is_error=True)
            action = "Already upvoted" if result.get("action") == "already_upvoted" else "Upvoted"
            lines = [f"✓ {action} review {upvote_review_id}"]
            hint = self._favorite_hint(result.get("tool_id") or "", result.get("rating"), "This was a 5/5 review")
            if hint:
                lines.append(hint)
            return ToolReply("\n".join(lines))

        if rating is None or not comment:
            return _error(
                "rating and comment are required for new reviews. "
                "To upvote an existing review, use upvote_review_id instead."
            )
        validate_rating(rating)

        result = await self.market.submit_review(execution_id, rating, comment, agent_id)
        if result.get("error"):
            return _error(result["error"])
        tool_id = result.get("tool_id") or "unknown"
        lines = [f"✓ Review submitted for {tool_id} ({rating}/5)"]
        hint = self._favorite_hint(tool_id, rating, "This tool scored 5/5")
        if hint:
            lines.append(hint)
        return ToolReply("\n".join(lines))

    def _favorite_hint(self, tool_id: str, rating: Any, prefix: str) -> Optional[str]:
        if rating != 5 or not tool_id:
            return None
        if not self.session.api_key:
            return f'{prefix}, consider saving tool_id="{tool_id}" to your memory for future reuse.'
        if tool_id not in self.favorites:
            return f'{prefix}, consider favorite_tool(tool_id="{tool_id}") if you plan to reuse it.'
        return None

    # =========================================================================
    # Tool requests
    # =========================================================================

    @guarded
    async def list_tool_requests(self, status: str = "open", page: int = 1, per_page: int = 20) -> ToolReply:
        return _json_reply(await self.market.list_tool_requests(status, page, per_page))

    @guarded
    async def request_tool(
        self,
        title: str,
        description: str,
        use_case: Optional[str] = None,
        execution_id: Optional[str] = None,
        agent_id: Optional[str] = None,
    ) -> ToolReply:
        result = await self.market.request_tool(title, description, use_case, execution_id, agent_id)
        if result.get("error"):
            return _error(result["error"])
        return ToolReply("\n".join([
            f'✓ Tool request submitted: "{result.get("title")}"',
            f"  Request ID: {result.get('id')}",
            f"  Status: {result.get('status')}",
            "",
            "Other agents can upvote this request to signal demand.",
        ]))

    @guarded
    async def upvote_tool_request(self, request_id: str, execution_id: Optional[str] = None) -> ToolReply:
        result = await self.market.upvote_tool_request(request_id, execution_id)
        if result.get("error"):
            return _error(result["error"])
        action = "Already upvoted" if result.get("action") == "already_upvoted" else "Upvoted"
        return ToolReply(f"✓ {action} tool request {request_id}")

    # =========================================================================
    # Favorites
    # =========================================================================

    def _require_api_key(self) -> Optional[ToolReply]:
        if not self.session.api_key:
            return _error("Set CARAVO_API_KEY env var (or run login) to use favorites.")
        return None

    async def load_favorite_tools(self) -> int:
        """
        Load the account's favorited tools into this session.

        Returns:
            Number of favorites registered; ``0`` without an API key or when
            the server cannot be reached.
        """
        if not self.session.api_key:
            logger.info("no API key, skipping favorites (set CARAVO_API_KEY to enable)")
            return 0
        try:
            result = await self.market.list_favorites()
        except (CaravoError, httpx.HTTPError) as exc:
            logger.warning("warning: could not load favorites: %s", exc)
            return 0
        tools = [MarketplaceTool.model_validate(t) for t in result.get("data") or []]
        for tool in tools:
            self.favorites.setdefault(tool.id, tool)
        logger.info("loaded %d favorited tool(s) from server", len(tools))
        return len(tools)

    @guarded
    async def list_favorites(self) -> ToolReply:
        denied = self._require_api_key()
        if denied:
            return denied
        result = await self.market.list_favorites()
        if result.get("error"):
            return _error(result["error"])
        tools = [MarketplaceTool.model_validate(t) for t in result.get("data") or []]
        return _json_reply({
            "total": len(tools),
            "favorites": [
                {
                    "tool_id": t.id,
                    "name": t.name,
                    "mcp_tool_name": f"fav:{t.id}",
                    "price_per_call": t.pricing.price_per_call,
                }
                for t in tools
            ],
            "hint": "Favorited tools can be called directly with call_favorite(tool_id, args).",
        })

    @guarded
    async def favorite_tool(self, tool_id: str) -> ToolReply:
        denied = self._require_api_key()
        if denied:
            return denied
        result = await self.market.add_favorite(tool_id)
        if result.get("error"):
            return _error(result["error"])
        tool_id = tool_id.strip()
        name = tool_id
        if result.get("tool"):
            tool = MarketplaceTool.model_validate(result["tool"])
            self.favorites[tool.id] = tool
            name = tool.name
        return ToolReply("\n".join([
            f'★ Added "{name}" to favorites!',
            "",
            f"It is now available as a direct tool: fav:{tool_id}",
            "Call it with its input parameters, no need for use_tool.",
        ]))

    @guarded
    async def unfavorite_tool(self, tool_id: str) -> ToolReply:
        denied = self._require_api_key()
        if denied:
            return denied
        result = await self.market.remove_favorite(tool_id)
        if result.get("error"):
            return _error(result["error"])
        tool_id = tool_id.strip()
        self.favorites.pop(tool_id, None)
        if result.get("removed"):
            return ToolReply(f'Removed "fav:{tool_id}" from favorites and unregistered it.')
        return ToolReply(f'"{tool_id}" was not in your favorites.')


async def create_agent_tools(
    settings: Optional[Settings] = None,
    keystore: Optional[KeyStore] = None,
) -> AgentTools:
    """
    Start-up wiring: settings, logging, wallet identity, session, favorites.

    Raises:
        ConfigurationError: If settings are invalid.
        IdentityPersistenceError: If the wallet cannot be persisted.
    """
    settings = settings or load_settings()
    setup_logging(settings.log_level)
    identity = (keystore or KeyStore()).load_or_create_identity()
    session = SessionConfig.from_settings(settings)

    logger.info("wallet: %s", identity.address)
    if session.api_key:
        logger.info("auth: API key")
    else:
        logger.info("auth: x402 (fund %s with USDC on Base)", identity.address)

    tools = AgentTools(identity, session, MarketplaceClient(session, identity), settings=settings)
    await tools.load_favorite_tools()
    return tools
