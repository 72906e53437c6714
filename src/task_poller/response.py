"""
Response normalization for the default poller hooks.

Responses are mapped onto one explicit payload variant: either data that is
already structured, or raw text that still needs JSON decoding. The default
extractor and checker work on the normalized dictionary only.
"""

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import httpx
import structlog
from pydantic import BaseModel

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StructuredPayload:
    """Payload that is already structured data."""

    data: Mapping[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return dict(self.data)


@dataclass(frozen=True)
class TextPayload:
    """Payload holding a raw JSON body that still needs decoding."""

    text: str | bytes = ""

    def as_dict(self) -> dict[str, Any]:
        """
        Decode the body into a dictionary.

        Bodies that are empty, malformed, or decode to something other than
        a JSON object yield an empty dictionary.
        """
        if not self.text:
            return {}

        try:
            decoded = json.loads(self.text)
        except (TypeError, ValueError) as e:
            logger.debug("Response body is not valid JSON", error=str(e))
            return {}

        if not isinstance(decoded, dict):
            logger.debug(
                "Response body is not a JSON object",
                body_type=type(decoded).__name__,
            )
            return {}
        return decoded


Payload = StructuredPayload | TextPayload


@runtime_checkable
class SupportsPayload(Protocol):
    """Response objects that know how to expose their payload."""

    def payload(self) -> Payload: ...


def to_payload(response: Any) -> Payload:
    """
    Map an opaque response onto the payload variant.

    Args:
        response: Response returned by a request function

    Returns:
        Structured or text payload
    """
    if isinstance(response, StructuredPayload | TextPayload):
        return response
    if isinstance(response, SupportsPayload):
        return response.payload()
    if isinstance(response, httpx.Response):
        return TextPayload(response.content)
    if isinstance(response, str | bytes):
        return TextPayload(response)
    if isinstance(response, BaseModel):
        return StructuredPayload(response.model_dump())
    if isinstance(response, Mapping):
        return StructuredPayload(response)
    if response is not None and hasattr(response, "__dict__"):
        return StructuredPayload(
            {k: v for k, v in vars(response).items() if not k.startswith("_")}
        )

    logger.debug(
        "Unsupported response type, using empty payload",
        response_type=type(response).__name__,
    )
    return StructuredPayload()


def normalize_response(response: Any) -> dict[str, Any]:
    """Normalize a response into a plain dictionary."""
    return to_payload(response).as_dict()
