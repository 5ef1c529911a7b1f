"""
misanthropic - Data Models

Dataclasses for messages, content blocks and response metadata, with
conversion to and from the API's JSON shapes.
"""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Type, Union

from .delta import Delta, JsonDelta, TextDelta, merge_deltas
from .errors import ContentMismatch, JsonDeltaError, ProtocolError


# ============================================================
# Enums
# ============================================================

class Role(str, Enum):
    """Author of a message."""
    USER = "user"
    ASSISTANT = "assistant"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


class StopReason(str, Enum):
    """Why the model stopped generating tokens."""
    END_TURN = "end_turn"
    MAX_TOKENS = "max_tokens"
    STOP_SEQUENCE = "stop_sequence"
    TOOL_USE = "tool_use"


class CacheControl(str, Enum):
    """Prompt caching breakpoint type."""
    EPHEMERAL = "ephemeral"

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.value}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["CacheControl"]:
        if not data:
            return None
        return cls(data.get("type", cls.EPHEMERAL.value))


class MediaType(str, Enum):
    """Encoding format of an image."""
    JPEG = "image/jpeg"
    PNG = "image/png"
    GIF = "image/gif"
    WEBP = "image/webp"


# ============================================================
# Usage and message metadata
# ============================================================

@dataclass
class Usage:
    """Token usage information."""
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_input_tokens: Optional[int] = None
    cache_read_input_tokens: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Usage:
        """Create from dictionary."""
        return cls(
            input_tokens=data.get("input_tokens") or 0,
            output_tokens=data.get("output_tokens") or 0,
            cache_creation_input_tokens=data.get("cache_creation_input_tokens"),
            cache_read_input_tokens=data.get("cache_read_input_tokens"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        result: Dict[str, Any] = {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
        }
        if self.cache_creation_input_tokens is not None:
            result["cache_creation_input_tokens"] = self.cache_creation_input_tokens
        if self.cache_read_input_tokens is not None:
            result["cache_read_input_tokens"] = self.cache_read_input_tokens
        return result

    def update(self, other: Usage) -> None:
        """
        Merge counts reported later in a stream.

        Output tokens are cumulative and always replaced. Other counts are
        replaced only when the update reports them.
        """
        self.output_tokens = other.output_tokens
        if other.input_tokens:
            self.input_tokens = other.input_tokens
        if other.cache_creation_input_tokens is not None:
            self.cache_creation_input_tokens = other.cache_creation_input_tokens
        if other.cache_read_input_tokens is not None:
            self.cache_read_input_tokens = other.cache_read_input_tokens


@dataclass
class MessageDelta:
    """
    Metadata about a message in progress.

    Despite the name this never carries content; text arrives in
    content block deltas.
    """
    stop_reason: Optional[StopReason] = None
    stop_sequence: Optional[str] = None
    usage: Optional[Usage] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> MessageDelta:
        stop_reason = data.get("stop_reason")
        usage = data.get("usage")
        return cls(
            stop_reason=StopReason(stop_reason) if stop_reason else None,
            stop_sequence=data.get("stop_sequence"),
            usage=Usage.from_dict(usage) if usage else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.stop_reason is not None:
            result["stop_reason"] = self.stop_reason.value
        if self.stop_sequence is not None:
            result["stop_sequence"] = self.stop_sequence
        if self.usage is not None:
            result["usage"] = self.usage.to_dict()
        return result


# ============================================================
# Content blocks
# ============================================================

@dataclass
class Image:
    """Base64 encoded, compressed image data."""
    media_type: MediaType
    data: str

    TYPE = "base64"

    @classmethod
    def from_compressed(cls, media_type: MediaType, raw: bytes) -> Image:
        """
        Encode compressed image bytes (PNG, JPEG, ...).

        The bytes are not validated; the API rejects invalid images.
        """
        return cls(
            media_type=media_type,
            data=base64.b64encode(raw).decode("ascii"),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Image:
        if data.get("type", cls.TYPE) != cls.TYPE:
            raise ValueError(f"Unsupported image source: {data.get('type')!r}")
        return cls(media_type=MediaType(data["media_type"]), data=data["data"])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.TYPE,
            "media_type": self.media_type.value,
            "data": self.data,
        }

    def __str__(self) -> str:
        return f"![Image](data:{self.media_type.value};base64,{self.data})"


class Block:
    """
    A content block of a message, addressed by its position.

    Subclasses are dataclasses; each carries an optional cache_control
    breakpoint and absorbs the delta variant matching its shape.
    """

    TYPE: str = ""
    VARIANT: str = "Block"

    cache_control: Optional[CacheControl]

    def apply_deltas(self, deltas: Iterable[Delta]) -> None:
        """
        Merge deltas and apply the result to this block.

        An empty sequence is a no-op.

        Raises:
            DeltaMismatch: If the deltas are of mixed variants
            ContentMismatch: If the delta variant does not fit this block
            JsonDeltaError: If accumulated tool input is not valid JSON
        """
        merged = merge_deltas(deltas)
        if merged is None:
            return
        self._apply(merged)

    def _apply(self, delta: Delta) -> None:
        raise ContentMismatch(
            delta_variant=delta.VARIANT,
            block_variant=self.VARIANT,
        )

    def mark_cached(self) -> None:
        """Set a prompt caching breakpoint at this block."""
        self.cache_control = CacheControl.EPHEMERAL

    @property
    def is_cached(self) -> bool:
        return self.cache_control is not None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Block:
        """
        Create the block subclass named by the ``type`` tag.

        Raises:
            ValueError: If the block type is unknown
            KeyError: If a required field is missing
        """
        block_type = data.get("type")
        block_class = BLOCK_TYPES.get(block_type)  # type: ignore[arg-type]
        if block_class is None:
            raise ValueError(f"Unknown content block type: {block_type!r}")
        return block_class._from_dict(data)

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> Block:
        raise NotImplementedError

    def _fields_dict(self) -> Dict[str, Any]:
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"type": self.TYPE}
        result.update(self._fields_dict())
        if self.cache_control is not None:
            result["cache_control"] = self.cache_control.to_dict()
        return result


@dataclass
class TextBlock(Block):
    """Text content."""
    text: str = ""
    cache_control: Optional[CacheControl] = None

    TYPE = "text"
    VARIANT = "TextBlock"

    def _apply(self, delta: Delta) -> None:
        if isinstance(delta, TextDelta):
            self.text += delta.text
            return
        super()._apply(delta)

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> TextBlock:
        text = data["text"]
        if not isinstance(text, str):
            raise TypeError("'text' must be a string")
        return cls(
            text=text,
            cache_control=CacheControl.from_dict(data.get("cache_control")),
        )

    def _fields_dict(self) -> Dict[str, Any]:
        return {"text": self.text}

    def __str__(self) -> str:
        return self.text


@dataclass
class ImageBlock(Block):
    """Image content."""
    image: Image
    cache_control: Optional[CacheControl] = None

    TYPE = "image"
    VARIANT = "ImageBlock"

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> ImageBlock:
        return cls(
            image=Image.from_dict(data["source"]),
            cache_control=CacheControl.from_dict(data.get("cache_control")),
        )

    def _fields_dict(self) -> Dict[str, Any]:
        return {"source": self.image.to_dict()}

    def __str__(self) -> str:
        return str(self.image)


@dataclass
class ToolUseBlock(Block):
    """
    A tool call made by the assistant.

    While streaming, ``input`` is rebuilt from the accumulated partial JSON
    each time deltas are applied.
    """
    id: str
    name: str
    input: Any = field(default_factory=dict)
    cache_control: Optional[CacheControl] = None

    TYPE = "tool_use"
    VARIANT = "ToolUseBlock"

    def _apply(self, delta: Delta) -> None:
        if isinstance(delta, JsonDelta):
            try:
                self.input = json.loads(delta.partial_json)
            except json.JSONDecodeError as e:
                raise JsonDeltaError(delta.partial_json, e) from e
            return
        super()._apply(delta)

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> ToolUseBlock:
        return cls(
            id=data["id"],
            name=data["name"],
            input=data.get("input", {}),
            cache_control=CacheControl.from_dict(data.get("cache_control")),
        )

    def _fields_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "input": self.input}

    def __str__(self) -> str:
        return ""


@dataclass
class ToolResultBlock(Block):
    """The result of a tool call, sent back by the user."""
    tool_use_id: str
    content: Content
    is_error: bool = False
    cache_control: Optional[CacheControl] = None

    TYPE = "tool_result"
    VARIANT = "ToolResultBlock"

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> ToolResultBlock:
        return cls(
            tool_use_id=data["tool_use_id"],
            content=Content.from_dict(data.get("content", "")),
            is_error=bool(data.get("is_error", False)),
            cache_control=CacheControl.from_dict(data.get("cache_control")),
        )

    def _fields_dict(self) -> Dict[str, Any]:
        return {
            "tool_use_id": self.tool_use_id,
            "content": self.content.to_dict(),
            "is_error": self.is_error,
        }

    def __str__(self) -> str:
        return ""


BLOCK_TYPES: Dict[str, Type[Block]] = {
    cls.TYPE: cls
    for cls in (TextBlock, ImageBlock, ToolUseBlock, ToolResultBlock)
}


# ============================================================
# Content
# ============================================================

class Content:
    """
    Content of a message: one implicit text part, or a list of blocks.

    Single part content is semantically block 0. Any mutation promotes it
    to multi part with the text as the first TextBlock; promotion is never
    undone.

    Example:
        >>> content = Content("Hello")
        >>> content.is_single_part
        True
        >>> content.push("World")
        >>> [str(b) for b in content.blocks]
        ['Hello', 'World']
    """

    SEP = "\n\n"

    def __init__(self, parts: Union[str, Sequence[Block], None] = None):
        self._text: Optional[str] = None
        self._blocks: Optional[List[Block]] = None

        if isinstance(parts, str):
            self._text = parts
        else:
            self._blocks = list(parts or [])

    @classmethod
    def text(cls, text: str) -> Content:
        """Single part text content."""
        return cls(text)

    @property
    def is_single_part(self) -> bool:
        return self._blocks is None

    @property
    def is_multi_part(self) -> bool:
        return self._blocks is not None

    def promote(self) -> List[Block]:
        """
        Convert single part content to multi part.

        Returns:
            The live list of blocks
        """
        if self._blocks is None:
            self._blocks = [TextBlock(text=self._text or "")]
            self._text = None
        return self._blocks

    @property
    def blocks(self) -> List[Block]:
        """
        Blocks of the content.

        For single part content this is a detached one-block snapshot and
        does not promote.
        """
        if self._blocks is None:
            return [TextBlock(text=self._text or "")]
        return self._blocks

    def __len__(self) -> int:
        if self._blocks is None:
            return 1
        return len(self._blocks)

    def __getitem__(self, index: int) -> Block:
        return self.blocks[index]

    def __iter__(self):
        return iter(self.blocks)

    def is_empty(self) -> bool:
        return len(self) == 0

    def last(self) -> Optional[Block]:
        """The final block, or None for empty content."""
        blocks = self.blocks
        return blocks[-1] if blocks else None

    def push(self, block: Union[str, Block]) -> None:
        """Append a block, promoting single part content first."""
        if isinstance(block, str):
            block = TextBlock(text=block)
        self.promote().append(block)

    def cache(self) -> None:
        """Set a caching breakpoint on the final block."""
        blocks = self.promote()
        if blocks:
            blocks[-1].mark_cached()

    def apply_deltas(self, index: int, deltas: Iterable[Delta]) -> None:
        """
        Apply deltas to the block at ``index``.

        Raises:
            ProtocolError: If there is no block at ``index``
            DeltaError: If the deltas cannot be applied
        """
        blocks = self.promote()
        if not 0 <= index < len(blocks):
            raise ProtocolError(
                f"No content block at index {index} ({len(blocks)} blocks)",
                index=index,
            )
        blocks[index].apply_deltas(deltas)

    def push_delta(self, delta: Delta) -> None:
        """Apply a single delta to the final block."""
        self.apply_deltas(len(self.promote()) - 1, [delta])

    @classmethod
    def from_dict(cls, data: Union[str, List[Dict[str, Any]]]) -> Content:
        if isinstance(data, str):
            return cls(data)
        if not isinstance(data, list):
            raise TypeError("content must be a string or a list of blocks")
        return cls([Block.from_dict(b) for b in data])

    def to_dict(self) -> Union[str, List[Dict[str, Any]]]:
        if self._blocks is None:
            return self._text or ""
        return [b.to_dict() for b in self._blocks]

    def __str__(self) -> str:
        if self._blocks is None:
            return self._text or ""
        return self.SEP.join(str(b) for b in self._blocks)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Content):
            return NotImplemented
        return self._text == other._text and self._blocks == other._blocks

    def __repr__(self) -> str:
        if self._blocks is None:
            return f"Content({self._text!r})"
        return f"Content({self._blocks!r})"


# ============================================================
# Messages
# ============================================================

@dataclass
class Message:
    """A chat message."""
    role: Role
    content: Content = field(default_factory=Content)

    HEADING = "### "

    @classmethod
    def user(cls, content: Union[str, Content]) -> Message:
        """Create a user message."""
        return cls(role=Role.USER, content=_as_content(content))

    @classmethod
    def assistant(cls, content: Union[str, Content]) -> Message:
        """Create an assistant message."""
        return cls(role=Role.ASSISTANT, content=_as_content(content))

    def __len__(self) -> int:
        return len(self.content)

    def tool_use(self) -> Optional[ToolUseBlock]:
        """The final block if it is a tool call."""
        last = self.content.last()
        return last if isinstance(last, ToolUseBlock) else None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Message:
        return cls(
            role=Role(data["role"]),
            content=Content.from_dict(data.get("content", [])),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role.value, "content": self.content.to_dict()}

    def __str__(self) -> str:
        return f"{self.HEADING}{self.role.display_name}{Content.SEP}{self.content}"


@dataclass
class ResponseMessage:
    """
    A message returned by the API, with response metadata.

    When streaming, ``message_start`` delivers one of these with empty
    content; blocks and metadata are filled in as events arrive.
    """
    id: str
    role: Role
    content: Content
    model: str
    stop_reason: Optional[StopReason] = None
    stop_sequence: Optional[str] = None
    usage: Usage = field(default_factory=Usage)

    TYPE = "message"

    @property
    def message(self) -> Message:
        """The message without response metadata."""
        return Message(role=self.role, content=self.content)

    def tool_use(self) -> Optional[ToolUseBlock]:
        return self.message.tool_use()

    def apply_delta(self, delta: MessageDelta) -> None:
        """Apply message metadata. Content is never touched."""
        if delta.stop_reason is not None:
            self.stop_reason = delta.stop_reason
        if delta.stop_sequence is not None:
            self.stop_sequence = delta.stop_sequence
        if delta.usage is not None:
            self.usage.update(delta.usage)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ResponseMessage:
        """Create from dictionary."""
        stop_reason = data.get("stop_reason")
        return cls(
            id=data["id"],
            role=Role(data.get("role", Role.ASSISTANT.value)),
            content=Content.from_dict(data.get("content", [])),
            model=data.get("model", ""),
            stop_reason=StopReason(stop_reason) if stop_reason else None,
            stop_sequence=data.get("stop_sequence"),
            usage=Usage.from_dict(data.get("usage") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return {
            "id": self.id,
            "type": self.TYPE,
            "role": self.role.value,
            "content": self.content.to_dict(),
            "model": self.model,
            "stop_reason": self.stop_reason.value if self.stop_reason else None,
            "stop_sequence": self.stop_sequence,
            "usage": self.usage.to_dict(),
        }

    def __str__(self) -> str:
        return str(self.message)


def _as_content(content: Union[str, Content]) -> Content:
    return content if isinstance(content, Content) else Content(content)
