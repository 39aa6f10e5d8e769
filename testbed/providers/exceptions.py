"""Provider-neutral errors raised by cloud provider implementations."""

from __future__ import annotations


class ProviderError(Exception):
    """Base class for cloud provider failures."""


class ProviderCredentialsError(ProviderError):
    """Cloud credentials are missing or were rejected."""


class ProviderConnectionError(ProviderError):
    """The provider API endpoint could not be reached."""


class ProviderAPIError(ProviderError):
    """The provider API rejected a request.

    Parameters
    ----------
    message : str
        Human-readable description
    error_code : str | None
        Provider error code (e.g. "InvalidGroup.Duplicate")
    operation : str | None
        API operation that failed

    Attributes
    ----------
    error_code : str | None
        Provider error code
    operation : str | None
        API operation that failed
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        operation: str | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.operation = operation
