"""HMAC signing for OSS requests and pre-signed download URLs."""

import base64
import hashlib
import hmac
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime

from ossgate.core.config import Settings
from ossgate.core.errors import MissingBucket, MissingEndpoint, SigningFailure
from ossgate.services import canonical
from ossgate.services.canonical import (
    DISPOSITION_PARAM,
    UNSIGNED_PAYLOAD,
    V4_ALGORITHM,
    V4_SERVICE,
    V4_TERMINATOR,
    percent_encode_path,
    percent_encode_strict,
)


@dataclass(frozen=True)
class SignedUrl:
    url: str
    expires_at: datetime


def _hmac(key: bytes, message: str, digestmod) -> bytes:
    try:
        return hmac.new(key, message.encode("utf-8"), digestmod).digest()
    except (TypeError, ValueError) as exc:
        raise SigningFailure() from exc


def _secret_bytes(secret: str) -> bytes:
    try:
        return secret.encode("utf-8")
    except UnicodeError as exc:
        raise SigningFailure() from exc


def sign_v1(secret: str, string_to_sign: str) -> str:
    """Base64(HMAC-SHA1(secret, string_to_sign))."""
    digest = _hmac(_secret_bytes(secret), string_to_sign, hashlib.sha1)
    return base64.b64encode(digest).decode("ascii")


def derive_v4_signing_key(secret: str, date_only: str, region: str) -> bytes:
    k_date = _hmac(_secret_bytes(f"aliyun_v4{secret}"), date_only, hashlib.sha256)
    k_region = _hmac(k_date, region, hashlib.sha256)
    k_service = _hmac(k_region, V4_SERVICE, hashlib.sha256)
    return _hmac(k_service, V4_TERMINATOR, hashlib.sha256)


def sign_v4(secret: str, date_only: str, region: str, string_to_sign: str) -> str:
    signing_key = derive_v4_signing_key(secret, date_only, region)
    return _hmac(signing_key, string_to_sign, hashlib.sha256).hex()


def build_oss_host(bucket: str, endpoint: str) -> str:
    """Turn an endpoint setting into the base URL of a bucket."""
    trimmed = endpoint.strip().rstrip("/")
    if "{bucket}" in trimmed:
        return trimmed.replace("{bucket}", bucket)
    if trimmed.startswith(("http://", "https://")):
        return f"{trimmed}/{bucket}"
    return f"https://{bucket}.{trimmed}"


def build_signed_url(
    settings: Settings,
    object_key: str,
    expires_at: datetime,
    *,
    bucket_override: str | None = None,
    endpoint_override: str | None = None,
    download_filename: str | None = None,
) -> SignedUrl:
    """Mint a V1 pre-signed GET URL that stays valid until ``expires_at``."""
    bucket = bucket_override or settings.aliyun_default_bucket
    if not bucket:
        raise MissingBucket()
    endpoint = endpoint_override or settings.aliyun_default_endpoint
    if not endpoint:
        raise MissingEndpoint()

    expires = int(expires_at.timestamp())
    disposition = canonical.content_disposition(download_filename)
    resource = canonical.v1_canonical_resource(bucket, object_key, disposition)
    string_to_sign = canonical.v1_string_to_sign(str(expires), resource)
    signature = sign_v1(settings.aliyun_access_key_secret, string_to_sign)

    query = (
        f"OSSAccessKeyId={percent_encode_strict(settings.aliyun_access_key_id)}"
        f"&Expires={expires}"
        f"&Signature={percent_encode_strict(signature)}"
    )
    if disposition:
        query = f"{query}&{DISPOSITION_PARAM}={disposition}"

    host = build_oss_host(bucket, endpoint)
    return SignedUrl(
        url=f"{host}/{percent_encode_path(object_key)}?{query}",
        expires_at=expires_at,
    )


def build_v1_authorization(
    access_key_id: str,
    secret: str,
    date: str,
    canonical_resource: str,
    *,
    verb: str = "GET",
) -> str:
    string_to_sign = canonical.v1_string_to_sign(date, canonical_resource, verb=verb)
    return f"OSS {access_key_id}:{sign_v1(secret, string_to_sign)}"


def build_v4_headers(
    access_key_id: str,
    secret: str,
    *,
    method: str,
    iso_datetime: str,
    host: str,
    path: str,
    query: str | Mapping[str, str] = "",
    additional_headers: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Sign a direct request with V4 and return every header it must carry.

    ``host``, ``x-oss-content-sha256`` and ``x-oss-date`` are always signed;
    caller-supplied headers are merged in lower-cased and trimmed.
    """
    headers = {
        "host": host,
        "x-oss-content-sha256": UNSIGNED_PAYLOAD,
        "x-oss-date": iso_datetime,
    }
    headers.update(canonical.normalize_headers(additional_headers or {}))

    region = canonical.region_from_host(host)
    request = canonical.v4_canonical_request(method, path, query, headers)
    string_to_sign = canonical.v4_string_to_sign(iso_datetime, region, request)
    signature = sign_v4(secret, iso_datetime[:8], region, string_to_sign)

    scope = canonical.v4_scope(iso_datetime[:8], region)
    authorization = f"{V4_ALGORITHM} Credential={access_key_id}/{scope}, Signature={signature}"
    header_list = canonical.signed_headers(headers)
    if header_list:
        authorization = f"{authorization}, AdditionalHeaders={header_list}"

    signed = dict(headers)
    signed["authorization"] = authorization
    return signed
