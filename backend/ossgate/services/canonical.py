"""String-to-sign construction for the OSS V1 and V4 signing protocols.

Nothing in here touches key material; see ``ossgate.services.signing`` for
the HMAC side.
"""

import hashlib
import re
import string
from collections.abc import Mapping
from urllib.parse import quote

V4_ALGORITHM = "OSS4-HMAC-SHA256"
V4_SERVICE = "oss"
V4_TERMINATOR = "aliyun_v4_request"
UNSIGNED_PAYLOAD = "UNSIGNED-PAYLOAD"
DEFAULT_REGION = "cn-hangzhou"

DISPOSITION_PARAM = "response-content-disposition"

# Query parameters OSS treats as sub-resources in the V1 canonical resource.
OSS_SUB_RESOURCES = frozenset(
    {
        "acl",
        "lifecycle",
        "location",
        "logging",
        "notification",
        "partNumber",
        "policy",
        "requestPayment",
        "torrent",
        "uploadId",
        "uploads",
        "versionId",
        "versioning",
        "versions",
        "website",
        "cors",
        "delete",
        "restore",
        "tagging",
        "encryption",
        "inventory",
        "select",
        "x-oss-process",
        "continuation-token",
    }
)

_ALNUM = frozenset(string.ascii_letters + string.digits)
_REGION_RE = re.compile(r"oss-([A-Za-z0-9-]+?)(?:-internal)?\.aliyuncs\.com")


def percent_encode_path(value: str) -> str:
    """Encode an object key for the URL path; unreserved characters and ``/`` stay literal."""
    return quote(value, safe="/")


def percent_encode_rfc3986(value: str) -> str:
    """Encode a query component, keeping only letters, digits and ``-._~``."""
    return quote(value, safe="")


def percent_encode_strict(value: str) -> str:
    """Encode everything except ASCII letters and digits."""
    return "".join(
        chr(byte) if chr(byte) in _ALNUM else f"%{byte:02X}"
        for byte in value.encode("utf-8")
    )


def content_disposition(filename: str | None) -> str | None:
    """Return the encoded ``attachment`` disposition for a filename, or None when blank."""
    if filename is None or not filename.strip():
        return None
    sanitized = filename.replace('"', "")
    return percent_encode_strict(f'attachment; filename="{sanitized}"')


def v1_canonical_resource(
    bucket: str,
    object_key: str,
    encoded_disposition: str | None = None,
) -> str:
    resource = f"/{bucket}/{percent_encode_path(object_key)}"
    if encoded_disposition:
        resource = f"{resource}?{DISPOSITION_PARAM}={encoded_disposition}"
    return resource


def v1_sub_resource_canonical(bucket: str, query: Mapping[str, str]) -> str:
    """Canonical resource for bucket-level requests: ``/bucket/`` plus sorted sub-resources."""
    resource = f"/{bucket}/"
    pairs = []
    for key in sorted(k for k in query if k in OSS_SUB_RESOURCES):
        value = query[key]
        encoded_key = percent_encode_rfc3986(key)
        if value:
            pairs.append(f"{encoded_key}={percent_encode_rfc3986(value)}")
        else:
            pairs.append(encoded_key)
    if pairs:
        resource = f"{resource}?{'&'.join(pairs)}"
    return resource


def v1_string_to_sign(
    date: str,
    canonical_resource: str,
    *,
    verb: str = "GET",
    content_md5: str = "",
    content_type: str = "",
    canonical_headers: str = "",
) -> str:
    """Build ``VERB\\nMD5\\nTYPE\\nDATE\\nHEADERS+RESOURCE``.

    For pre-signed URLs the date slot carries the Unix expiry timestamp.
    """
    return (
        f"{verb}\n{content_md5}\n{content_type}\n{date}\n"
        f"{canonical_headers}{canonical_resource}"
    )


def canonical_query_string(query: str | Mapping[str, str]) -> str:
    """Canonicalize a query for V4 signing.

    ``query`` is either a raw ``a=1&b`` string or a mapping of unencoded
    parameters. Keys and values are encoded independently and the pairs
    sorted by encoded key (value breaks ties), so input order never matters.
    """
    if isinstance(query, Mapping):
        raw_pairs = [(key, value) for key, value in query.items()]
    else:
        raw_pairs = []
        for param in query.removeprefix("?").split("&"):
            if not param:
                continue
            key, _, value = param.partition("=")
            raw_pairs.append((key, value))

    params = sorted(
        (percent_encode_rfc3986(key), percent_encode_rfc3986(value or ""))
        for key, value in raw_pairs
    )
    return "&".join(f"{k}={v}" if v else k for k, v in params)


def normalize_headers(headers: Mapping[str, str]) -> dict[str, str]:
    return {name.lower(): value.strip() for name, value in headers.items()}


def canonical_headers(headers: Mapping[str, str]) -> str:
    normalized = normalize_headers(headers)
    return "\n".join(f"{name}:{normalized[name]}" for name in sorted(normalized))


def signed_headers(headers: Mapping[str, str]) -> str:
    return ";".join(sorted(normalize_headers(headers)))


def v4_canonical_request(
    method: str,
    uri: str,
    query: str | Mapping[str, str],
    headers: Mapping[str, str],
) -> str:
    return "\n".join(
        [
            method.upper(),
            uri,
            canonical_query_string(query),
            canonical_headers(headers),
            signed_headers(headers),
            UNSIGNED_PAYLOAD,
        ]
    )


def v4_scope(date_only: str, region: str) -> str:
    return f"{date_only}/{region}/{V4_SERVICE}/{V4_TERMINATOR}"


def v4_string_to_sign(iso_datetime: str, region: str, canonical_request: str) -> str:
    date_only = iso_datetime[:8]
    digest = hashlib.sha256(canonical_request.encode("utf-8")).hexdigest()
    return f"{V4_ALGORITHM}\n{iso_datetime}\n{v4_scope(date_only, region)}\n{digest}"


def region_from_host(host: str, default: str = DEFAULT_REGION) -> str:
    """Pull ``<region>`` out of an ``oss-<region>.aliyuncs.com`` host."""
    match = _REGION_RE.search(host)
    if match:
        return match.group(1)
    return default
