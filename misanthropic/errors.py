"""
misanthropic - Error Classes

Every error raised or yielded by the client derives from MisanthropicError.

Three families:
- AnthropicError: error objects reported by the API, either as an HTTP
  error body or in place of an event inside a stream
- StreamError: conditions yielded as items by an EventStream
  (transport failures, undecodable frames, server-reported errors)
- DeltaError / ProtocolError: local logic errors raised while folding
  events into a message
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Type, TYPE_CHECKING

if TYPE_CHECKING:
    from .streaming.sse import SSEFrame


class MisanthropicError(Exception):
    """
    Base exception for the misanthropic client.

    Attributes:
        message: Human-readable error message
        code: Error code for programmatic handling
        details: Additional error details
    """

    def __init__(
        self,
        message: str,
        code: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r})"
        )


# ============================================================
# Errors reported by the API
# ============================================================

class AnthropicError(MisanthropicError):
    """
    An error object returned by the API.

    The API reports errors as ``{"type": <error type>, "message": ...}``,
    either as the body of a failed HTTP response or as a stream frame sent
    in place of an event.

    Attributes:
        error_type: The API error type string (e.g. "overloaded_error")
        status_code: HTTP status code the API associates with the error
        transient: Whether the condition resolves without caller action
    """

    error_type: str = "unknown_error"
    status_code: int = 500
    transient: bool = False

    def __init__(
        self,
        message: str,
        error_type: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs
    ):
        if error_type is not None:
            self.error_type = error_type
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message=message, code=self.error_type, **kwargs)

    def __str__(self) -> str:
        return f"{self.error_type} ({self.status_code}): {self.message}"

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        status_code: Optional[int] = None
    ) -> "AnthropicError":
        """
        Create the matching error subclass from an API error object.

        Unrecognized error types become UnknownAPIError, keeping the raw
        type string so future error codes are carried through untouched.
        """
        error_type = data.get("type", "")
        message = data.get("message", "Unknown error")
        error_class = ERROR_CLASSES.get(error_type)

        if error_class is None:
            return UnknownAPIError(
                message=message,
                error_type=error_type or UnknownAPIError.error_type,
                status_code=status_code,
            )

        return error_class(message=message, status_code=status_code)

    @classmethod
    def from_response(
        cls,
        response_data: Dict[str, Any],
        status_code: int
    ) -> "AnthropicError":
        """Create an error from an error response body."""
        error = response_data.get("error")
        if not isinstance(error, dict):
            return UnknownAPIError(
                message=f"HTTP {status_code}",
                status_code=status_code,
            )
        return cls.from_dict(error, status_code=status_code)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the API error object."""
        return {"type": self.error_type, "message": self.message}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AnthropicError):
            return NotImplemented
        return (
            type(self) is type(other)
            and self.error_type == other.error_type
            and self.message == other.message
        )

    def __hash__(self) -> int:
        return hash((type(self), self.error_type, self.message))


class InvalidRequestError(AnthropicError):
    """There was an issue with the format or content of the request."""
    error_type = "invalid_request_error"
    status_code = 400


class AuthenticationError(AnthropicError):
    """
    API key is invalid or missing.

    Also raised by Client when no API key can be found.
    """
    error_type = "authentication_error"
    status_code = 401


class PermissionDeniedError(AnthropicError):
    """The API key does not have permission for the requested resource."""
    error_type = "permission_error"
    status_code = 403


class NotFoundError(AnthropicError):
    """The requested resource was not found."""
    error_type = "not_found_error"
    status_code = 404


class RequestTooLargeError(AnthropicError):
    """The request exceeds the maximum allowed size."""
    # The API does not use the "_error" suffix for this one.
    error_type = "request_too_large"
    status_code = 413


class RateLimitError(AnthropicError):
    """
    The account has hit a rate limit.

    Inside a stream this is transient: the server resumes sending on the
    same connection once the limit clears.
    """
    error_type = "rate_limit_error"
    status_code = 429
    transient = True


class APIError(AnthropicError):
    """An unexpected error occurred internal to the API."""
    error_type = "api_error"
    status_code = 500


class OverloadedError(AnthropicError):
    """
    The API is temporarily overloaded.

    Inside a stream this is transient, like RateLimitError.
    """
    error_type = "overloaded_error"
    status_code = 529
    transient = True


class UnknownAPIError(AnthropicError):
    """An error type this client does not recognize."""
    error_type = "unknown_error"
    status_code = 500


ERROR_CLASSES: Dict[str, Type[AnthropicError]] = {
    cls.error_type: cls
    for cls in (
        InvalidRequestError,
        AuthenticationError,
        PermissionDeniedError,
        NotFoundError,
        RequestTooLargeError,
        RateLimitError,
        APIError,
        OverloadedError,
    )
}


# ============================================================
# Stream errors (yielded as items, not raised)
# ============================================================

class StreamError(MisanthropicError):
    """
    A condition reported by an EventStream.

    Stream errors are yielded as items of the stream rather than raised,
    so that a single bad frame does not end iteration. Use
    ``StreamView.try_collect`` to turn them into exceptions.
    """

    fatal: bool = False

    @property
    def is_transient(self) -> bool:
        """Whether the condition is expected to resolve on its own."""
        return False


class TransportError(StreamError):
    """
    The underlying connection failed.

    Always fatal: the stream yields it once and then ends. Also raised
    by Client when a request cannot be sent.

    Attributes:
        cause: The original exception
    """

    fatal = True

    def __init__(
        self,
        message: str = "Transport error",
        cause: Optional[BaseException] = None,
        **kwargs
    ):
        kwargs.pop("code", None)
        super().__init__(message=message, code="transport_error", **kwargs)
        self.cause = cause


class DecodeError(StreamError):
    """
    A frame did not decode as any known event shape.

    Only the offending frame is lost; the stream continues.

    Attributes:
        cause: The exception raised while decoding
        frame: The raw SSE frame, kept for diagnostics
    """

    def __init__(
        self,
        message: str = "Could not decode frame",
        cause: Optional[BaseException] = None,
        frame: Optional["SSEFrame"] = None,
        **kwargs
    ):
        kwargs.pop("code", None)
        super().__init__(message=message, code="decode_error", **kwargs)
        self.cause = cause
        self.frame = frame


class ServerError(StreamError):
    """
    The server sent an error object in place of an event.

    Attributes:
        error: The AnthropicError reported by the server
        frame: The raw SSE frame containing the error
    """

    def __init__(
        self,
        error: AnthropicError,
        frame: Optional["SSEFrame"] = None,
        **kwargs
    ):
        kwargs.pop("code", None)
        super().__init__(
            message=f"API error: {error}",
            code=error.error_type,
            **kwargs
        )
        self.error = error
        self.frame = frame

    @property
    def is_transient(self) -> bool:
        return self.error.transient


# ============================================================
# Local logic errors (raised while folding events)
# ============================================================

class DeltaError(MisanthropicError):
    """A delta could not be merged or applied."""


class DeltaMismatch(DeltaError):
    """
    Two deltas of different variants were merged.

    Attributes:
        from_variant: Variant name of the delta being merged in
        to_variant: Variant name of the accumulated delta
    """

    def __init__(self, from_variant: str, to_variant: str):
        super().__init__(
            message=f"Cannot merge {from_variant} into {to_variant}.",
            code="delta_mismatch",
        )
        self.from_variant = from_variant
        self.to_variant = to_variant


class ContentMismatch(DeltaError):
    """
    A delta was applied to a block of the wrong shape.

    Attributes:
        delta_variant: Variant name of the delta
        block_variant: Variant name of the target block
    """

    def __init__(self, delta_variant: str, block_variant: str):
        super().__init__(
            message=f"{delta_variant} cannot be applied to {block_variant}.",
            code="content_mismatch",
        )
        self.delta_variant = delta_variant
        self.block_variant = block_variant


class JsonDeltaError(DeltaError):
    """
    Accumulated tool input is not (yet) valid JSON.

    Attributes:
        partial_json: The accumulated fragment that failed to parse
        cause: The json.JSONDecodeError
    """

    def __init__(self, partial_json: str, cause: Exception):
        super().__init__(
            message=f"Invalid tool input JSON: {cause}",
            code="json_delta_error",
        )
        self.partial_json = partial_json
        self.cause = cause


class ProtocolError(MisanthropicError):
    """
    Events arrived in an order the protocol does not allow.

    Attributes:
        index: Content block index involved, if any
    """

    def __init__(self, message: str, index: Optional[int] = None):
        super().__init__(message=message, code="protocol_error")
        self.index = index
