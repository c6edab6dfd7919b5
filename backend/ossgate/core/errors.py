from fastapi import status


class LinkError(Exception):
    """Base class for failures that are rendered straight to the HTTP caller.

    Subclasses carry only the public message. Secrets, derived keys and raw
    provider responses never end up in ``message``.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequest(LinkError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Bad request"


class MissingBucket(LinkError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Bucket name is required when default bucket is not configured"


class MissingEndpoint(LinkError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Endpoint is required when default endpoint is not configured"


class SigningFailure(LinkError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Failed to generate download URL"


class NotFound(LinkError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Download link not found"


class Gone(LinkError):
    status_code = status.HTTP_410_GONE
    default_message = "Download link has expired"


class QuotaExceeded(LinkError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Download limit exceeded"


class Internal(LinkError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"


class StorageProviderError(Internal):
    default_message = "Storage provider request failed"


class Unauthorized(LinkError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class PermissionDenied(LinkError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "User does not have admin permission"
