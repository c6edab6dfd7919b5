from ossgate.schemas.link import (
    CleanupResponse,
    CreateLinkRequest,
    CreateLinkResponse,
    DeleteResponse,
    DownloadLinkRead,
    ListLinksResponse,
)
from ossgate.schemas.storage import (
    BucketRead,
    ListBucketsResponse,
    ListObjectsResponse,
    ObjectRead,
)
from ossgate.schemas.user import (
    LoginRequest,
    LoginResponse,
    OAuthTokenResponse,
    OAuthUserInfo,
    OperatorRead,
)

__all__ = [
    "CreateLinkRequest",
    "CreateLinkResponse",
    "DownloadLinkRead",
    "ListLinksResponse",
    "DeleteResponse",
    "CleanupResponse",
    "BucketRead",
    "ListBucketsResponse",
    "ObjectRead",
    "ListObjectsResponse",
    "LoginRequest",
    "LoginResponse",
    "OperatorRead",
    "OAuthUserInfo",
    "OAuthTokenResponse",
]
