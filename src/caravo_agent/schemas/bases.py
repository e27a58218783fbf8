"""
Base Schema Models for the Caravo agent

Defines the base class every wire model inherits from. It gives each model
a deterministic JSON form and a base64 transport form, which is how x402
payloads travel inside HTTP headers.

Core Classes:
    - CanonicalModel: Pydantic base model with canonical JSON and base64 helpers

Dependencies:
    - pydantic: For data validation and serialization
"""

import base64
import json
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict


class CanonicalModel(BaseModel):
    """
    Pydantic base model with canonical JSON serialization.

    Field aliases carry the camelCase names used on the wire, while Python
    code may populate models by field name as well.

    Example:
        class MyModel(CanonicalModel):
            name: str
            value: int

        model = MyModel(name="test", value=123)
        canonical_json = model.to_canonical_json()  # '{"name":"test","value":123}'
    """

    model_config = ConfigDict(populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert model to a JSON-compatible dictionary using wire names.

        ``None`` fields are dropped so optional members never appear as
        ``null`` on the wire.

        Returns:
            Dict[str, Any]: Dictionary keyed by field aliases.
        """
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_canonical_json(self) -> str:
        """
        Convert model to a compact JSON string with sorted keys.

        Returns:
            str: JSON string with sorted keys and no extra whitespace.
        """
        return json.dumps(
            self.to_dict(),
            separators=(",", ":"),
            sort_keys=True,
            ensure_ascii=False
        )

    def to_base64(self) -> str:
        """Encode the canonical JSON form as standard base64 text."""
        return base64.b64encode(self.to_canonical_json().encode("utf-8")).decode("ascii")

    @classmethod
    def from_base64(cls, data: str):
        """
        Decode a base64 JSON document into a model instance.

        Raises:
            ValueError: If the text is not base64, not JSON, or fails validation
                (``pydantic.ValidationError`` is a ``ValueError``).
        """
        try:
            raw = base64.b64decode(data, validate=True)
        except ValueError as exc:
            raise ValueError(f"Invalid base64 payload: {exc}") from exc
        return cls.model_validate(json.loads(raw))
