"""Error taxonomy and transient-error classification.

The Confluent Cloud control plane does not return typed error codes for the
conditions this provider retries on, so classification is done by substring
match on the error message. Every such check lives in this module.
"""

from __future__ import annotations

# Substring signatures returned by the control plane
RATE_LIMIT_SIGNATURE = "Exceeded rate limit"
PROVISIONING_SIGNATURE = "provisioning"
NOT_FOUND_SIGNATURE = "not found"

HTTP_NOT_FOUND = 404


class CCloudError(Exception):
    """Base class for all provider errors."""

    pass


class ApiError(CCloudError):
    """Error returned by a remote API call.

    Attributes:
        status_code: HTTP status code, if the error came from an HTTP response.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthError(CCloudError):
    """Login failed terminally (non-retryable error or deadline exhausted)."""

    pass


class TransientProvisioningError(CCloudError):
    """The remote object is still being provisioned and cannot be created yet."""

    pass


class ResourceError(CCloudError):
    """Terminal error from a resource lifecycle operation.

    The message names the resource kind and the identifiers that locate the
    object (name, environment, cluster) so failures can be diagnosed from the
    host's output alone.
    """

    operation = "operation"

    def __init__(self, resource: str, message: str, **identifiers: str | None) -> None:
        self.resource = resource
        self.identifiers = {k: v for k, v in identifiers.items() if v}
        context = ", ".join(f"{k}={v}" for k, v in self.identifiers.items())
        prefix = f"{self.operation} {resource}"
        if context:
            prefix += f" ({context})"
        super().__init__(f"{prefix} failed: {message}")


class CreateError(ResourceError):
    operation = "create"


class ReadError(ResourceError):
    operation = "read"


class UpdateError(ResourceError):
    operation = "update"


class DeleteError(ResourceError):
    operation = "delete"


class NotFoundError(ReadError):
    """The remote object no longer exists; the host should drop it from state."""

    pass


class ImportFormatError(CCloudError):
    """A composite import key did not have the expected shape."""

    pass


class InvalidResourceError(CCloudError):
    """Declared resource fields failed validation."""

    pass


def is_rate_limited(error: BaseException) -> bool:
    """Check if an error means the API rate limit was exceeded."""
    return RATE_LIMIT_SIGNATURE in str(error)


def is_provisioning(error: BaseException) -> bool:
    """Check if an error means the target is still being provisioned."""
    return PROVISIONING_SIGNATURE in str(error)


def is_not_found(error: BaseException) -> bool:
    """Check if an error means the remote object does not exist."""
    if isinstance(error, ApiError) and error.status_code == HTTP_NOT_FOUND:
        return True
    return NOT_FOUND_SIGNATURE in str(error).lower()
