"""NotebookLM client exception hierarchy.

Base exceptions for every layer of the client with correlation ID support.

Usage:
    from notebooklm_wire.exceptions import AuthenticationError, RateLimitError

    try:
        url = await downloader.resolve()
    except AuthenticationError as e:
        logger.error("Session expired (correlation_id=%s)", e.correlation_id)
"""

import uuid
from datetime import datetime


class NotebookLMError(Exception):
    """Base exception for all NotebookLM client errors.

    Carries a correlation_id for tracing errors across layers.
    """

    def __init__(self, message: str, *, correlation_id: str | None = None):
        self.correlation_id = correlation_id or str(uuid.uuid4())
        super().__init__(message)


class ProtocolFrameError(NotebookLMError):
    """A complete stream frame could not be decoded.

    Streaming consumers report these and continue with the next frame.
    """

    def __init__(self, message: str, *, payload: bytes | None = None, **kwargs):
        self.payload = payload
        super().__init__(message, **kwargs)


class RPCError(NotebookLMError):
    """Errors returned by a batchexecute RPC call."""

    def __init__(
        self,
        message: str,
        rpc_id: str | None = None,
        *,
        code: int | None = None,
        status_code: int | None = None,
        retryable: bool = False,
        correlation_id: str | None = None,
    ):
        self.rpc_id = rpc_id
        self.code = code
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(message, correlation_id=correlation_id)


class AuthenticationError(NotebookLMError):
    """Credentials are missing, expired or were rejected.

    Raised when a redirect lands on a login page or the RPC endpoint
    answers 401. Never retried.
    """

    def __init__(self, message: str, *, url: str | None = None, **kwargs):
        self.url = url
        super().__init__(message, **kwargs)


class NetworkError(NotebookLMError):
    """Transport failures: timeouts, refused connections, dropped streams."""

    def __init__(self, message: str, *, retryable: bool = True, **kwargs):
        self.retryable = retryable
        super().__init__(message, **kwargs)


class DownloadError(NotebookLMError):
    """Errors from the authenticated media redirect follower."""

    def __init__(self, message: str, *, url: str | None = None, hops: int = 0, **kwargs):
        self.url = url
        self.hops = hops
        super().__init__(message, **kwargs)


class TooManyRedirectsError(DownloadError):
    """The redirect chain exceeded the hop limit."""

    pass


class MalformedRedirectError(DownloadError):
    """A redirect status arrived without a Location header."""

    pass


class UnexpectedResponseError(DownloadError):
    """A hop answered with a status that cannot lead to the media."""

    def __init__(self, message: str, *, status_code: int | None = None, **kwargs):
        self.status_code = status_code
        super().__init__(message, **kwargs)


class RateLimitError(NotebookLMError):
    """A quota-tracked operation would exceed the plan ceiling.

    ``reset_time`` is None for static ceilings that never reset.
    """

    code = 324934

    def __init__(
        self,
        message: str,
        *,
        resource: str,
        used: int,
        limit: int,
        reset_time: datetime | None = None,
        correlation_id: str | None = None,
    ):
        self.resource = resource
        self.used = used
        self.limit = limit
        self.reset_time = reset_time
        super().__init__(message, correlation_id=correlation_id)


class InvalidInputError(NotebookLMError):
    """Input rejected before any request is made (size limits, empty ids)."""

    pass


class ConfigurationError(NotebookLMError):
    """Errors from client configuration."""

    pass


class ArtifactNotFoundError(NotebookLMError):
    """No artifact (or no media URL) could be found for the request."""

    def __init__(self, message: str, *, artifact_id: str | None = None, **kwargs):
        self.artifact_id = artifact_id
        super().__init__(message, **kwargs)
