"""
Marketplace Schema Models

Typed views of the marketplace objects the agent inspects. Responses are
otherwise handled as plain JSON, so every model ignores unknown fields.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import ConfigDict, Field

from .bases import CanonicalModel


class ToolFieldOption(CanonicalModel):
    label: str
    value: str


class ToolField(CanonicalModel):
    """One input parameter of a marketplace tool.

    Attributes:
        name: Parameter name.
        type: One of "string", "number", "boolean", "select" (others are treated as text).
        description: Human description shown to the agent.
        required: Whether the parameter must be supplied.
        options: Allowed values for "select" fields, plain strings or label/value pairs.
    """
    model_config = ConfigDict(extra="ignore")

    name: str
    type: str = "string"
    description: str = ""
    required: bool = False
    options: Optional[List[Union[str, ToolFieldOption]]] = None

    def option_values(self) -> List[str]:
        return [o if isinstance(o, str) else o.value for o in self.options or []]


class ToolPricing(CanonicalModel):
    model_config = ConfigDict(extra="ignore")

    price_per_call: float = 0.0
    type: str = "per_call"


class MarketplaceTool(CanonicalModel):
    """A tool listed in the marketplace."""
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    description: str = ""
    provider: str = ""
    pricing: ToolPricing = Field(default_factory=ToolPricing)
    input_schema: List[ToolField] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)

    @property
    def price_label(self) -> str:
        price = self.pricing.price_per_call
        return f"${price}/call" if price > 0 else "Free"

    def missing_required(self, args: Dict[str, Any]) -> List[str]:
        """Names of required input fields absent from ``args``."""
        return [f.name for f in self.input_schema if f.required and f.name not in args]


class ExecutionResult(CanonicalModel):
    """Result of ``POST /api/tools/{id}/execute``.

    Attributes:
        success: True when the tool ran.
        execution_id: Id used to review or upvote afterwards.
        cost: Amount charged in USD.
        payment_method: "x402", "balance", ...
        output: Tool output with optional ``images``, ``text`` and ``json`` members.
    """
    model_config = ConfigDict(extra="allow")

    success: bool = False
    execution_id: Optional[str] = None
    cost: Optional[Union[float, str]] = None
    payment_method: Optional[str] = None
    output: Optional[Dict[str, Any]] = None
    error: Optional[Any] = None
