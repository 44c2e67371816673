"""Server errors

- StreamError / CustomStreamError: raised by turn sources, converted into a
  wire `error` event by the coordinator
- InvalidRequestError / InvalidStateError: raised by the router, mapped to
  HTTP 400 / 409 by server.app
"""

from .enums import ErrorCode

DEFAULT_STATUS: dict[ErrorCode, int] = {
    ErrorCode.STREAM_ERROR: 500,
}

DEFAULT_ALLOW_RETRY: dict[ErrorCode, bool] = {
    ErrorCode.STREAM_ERROR: True,
}


class BaseStreamError(Exception):
    """Base for errors that end a turn with a wire `error` event."""

    allow_retry: bool = False


class StreamError(BaseStreamError):
    """Error identified by an ErrorCode; the client shows a generic message."""

    def __init__(self, code: ErrorCode, allow_retry: bool | None = None):
        super().__init__(f"Stream error: {code.value}")
        self.code = code
        self.status_code = DEFAULT_STATUS.get(code, 500)
        self.allow_retry = DEFAULT_ALLOW_RETRY.get(code, False) if allow_retry is None else allow_retry


class CustomStreamError(BaseStreamError):
    """Error whose message is shown to the user verbatim."""

    def __init__(self, message: str, allow_retry: bool = False):
        super().__init__(message)
        self.message = message
        self.allow_retry = allow_retry


class InvalidRequestError(ValueError):
    """The request is malformed or targets the wrong kind of item."""


class InvalidStateError(RuntimeError):
    """The request is well-formed but the thread is not in a state to accept it."""
