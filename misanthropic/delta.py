"""
misanthropic - Deltas

The smallest unit of incremental content in a stream. A delta is either a
text fragment or a fragment of a JSON document (tool input). Deltas of the
same variant concatenate in arrival order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from .errors import DeltaMismatch


class Delta:
    """Base class for TextDelta and JsonDelta."""

    TYPE: str = ""
    VARIANT: str = "Delta"

    @property
    def payload(self) -> str:
        raise NotImplementedError

    def _with_payload(self, payload: str) -> "Delta":
        raise NotImplementedError

    def merge(self, other: "Delta") -> "Delta":
        """
        Concatenate ``other`` onto this delta.

        Raises:
            DeltaMismatch: If the variants differ
        """
        if type(other) is not type(self):
            raise DeltaMismatch(
                from_variant=other.VARIANT,
                to_variant=self.VARIANT,
            )
        return self._with_payload(self.payload + other.payload)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Delta":
        """
        Create from a wire delta object.

        Raises:
            ValueError: If the delta type is unknown
            KeyError: If the payload field is missing
        """
        delta_type = data.get("type")
        if delta_type == TextDelta.TYPE:
            return TextDelta(text=_require_str(data, "text"))
        if delta_type == JsonDelta.TYPE:
            return JsonDelta(partial_json=_require_str(data, "partial_json"))
        raise ValueError(f"Unknown delta type: {delta_type!r}")

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError


@dataclass
class TextDelta(Delta):
    """A fragment of text."""
    text: str

    TYPE = "text_delta"
    VARIANT = "TextDelta"

    @property
    def payload(self) -> str:
        return self.text

    def _with_payload(self, payload: str) -> "TextDelta":
        return TextDelta(text=payload)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.TYPE, "text": self.text}


@dataclass
class JsonDelta(Delta):
    """A fragment of a JSON document. Not valid JSON on its own in general."""
    partial_json: str

    TYPE = "input_json_delta"
    VARIANT = "JsonDelta"

    @property
    def payload(self) -> str:
        return self.partial_json

    def _with_payload(self, payload: str) -> "JsonDelta":
        return JsonDelta(partial_json=payload)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.TYPE, "partial_json": self.partial_json}


def merge_deltas(deltas: Iterable[Delta]) -> Optional[Delta]:
    """
    Left-fold deltas with Delta.merge.

    Returns:
        The merged delta, or None for an empty sequence

    Raises:
        DeltaMismatch: At the first pair of differing variants
    """
    acc: Optional[Delta] = None
    for delta in deltas:
        acc = delta if acc is None else acc.merge(delta)
    return acc


def _require_str(data: Dict[str, Any], key: str) -> str:
    value = data[key]
    if not isinstance(value, str):
        raise TypeError(f"{key!r} must be a string, got {type(value).__name__}")
    return value
