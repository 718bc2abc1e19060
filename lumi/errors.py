from typing import Optional, Sequence, Tuple


class LumiError(Exception):
    """Base class for every failure raised by the Lumi service."""


class NotConfiguredError(LumiError):
    def __init__(self, message: str = "Chat API key not configured") -> None:
        super().__init__(message)


class TransportError(LumiError):
    """Connectivity or timeout failure. The only error that triggers fallback."""

    def __init__(self, message: str, transport: Optional[str] = None) -> None:
        super().__init__(message)
        self.transport = transport


class HTTPError(LumiError):
    def __init__(self, status: int, message: str) -> None:
        super().__init__(f"HTTP Error {status}: {message}")
        self.status = status
        self.message = message


class DecodeError(LumiError):
    def __init__(self, reason: str) -> None:
        super().__init__(f"Decoding error: {reason}")
        self.reason = reason


class EmptyResponseError(LumiError):
    def __init__(self, message: str = "Stream ended without any content") -> None:
        super().__init__(message)


class ExtractionFailure(LumiError):
    def __init__(self, missing: Optional[str] = None) -> None:
        detail = f" (missing {missing})" if missing else ""
        super().__init__(f"No structured payload could be parsed{detail}")
        self.missing = missing


class SchemaResolutionError(LumiError):
    def __init__(self, field: str, aliases_tried: Sequence[str], reason: str = "missing") -> None:
        self.field = field
        self.aliases_tried: Tuple[str, ...] = tuple(aliases_tried)
        self.reason = reason
        super().__init__(f"Could not resolve required field '{field}' ({reason}); tried: {', '.join(self.aliases_tried)}")


class CommandRejected(LumiError):
    def __init__(self, action: str, reason: str) -> None:
        super().__init__(f"Action '{action}' rejected: {reason}")
        self.action = action
        self.reason = reason
