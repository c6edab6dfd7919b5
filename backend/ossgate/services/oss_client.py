"""Read-only bucket and object listing against the OSS HTTP API."""

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from email.utils import format_datetime
from urllib.parse import quote, urlencode
from xml.etree import ElementTree as ET

import httpx

from ossgate.core.config import Settings, get_settings
from ossgate.core.errors import BadRequest, MissingEndpoint, NotFound, StorageProviderError
from ossgate.schemas import (
    BucketRead,
    ListBucketsResponse,
    ListObjectsResponse,
    ObjectRead,
)
from ossgate.services import canonical
from ossgate.services.signing import build_v1_authorization, build_v4_headers

logger = logging.getLogger(__name__)

MAX_KEYS = 1000


def strip_scheme(endpoint: str) -> str:
    return endpoint.strip().removeprefix("https://").removeprefix("http://").rstrip("/")


def _text(element: ET.Element, tag: str) -> str:
    return (element.findtext(tag) or "").strip()


def parse_buckets_xml(xml: str) -> ListBucketsResponse:
    try:
        root = ET.fromstring(xml)
    except ET.ParseError as exc:
        raise StorageProviderError("Malformed bucket listing from storage provider") from exc

    buckets = [
        BucketRead(
            name=_text(node, "Name"),
            location=_text(node, "Location"),
            creation_date=_text(node, "CreationDate"),
            storage_class=_text(node, "StorageClass"),
            extranet_endpoint=_text(node, "ExtranetEndpoint"),
            intranet_endpoint=_text(node, "IntranetEndpoint"),
        )
        for node in root.iter("Bucket")
    ]
    return ListBucketsResponse(buckets=buckets)


def parse_objects_xml(xml: str) -> ListObjectsResponse:
    try:
        root = ET.fromstring(xml)
        objects = [
            ObjectRead(
                key=_text(node, "Key"),
                last_modified=_text(node, "LastModified"),
                size=int(_text(node, "Size") or 0),
                storage_class=_text(node, "StorageClass"),
            )
            for node in root.iter("Contents")
        ]
    except (ET.ParseError, ValueError) as exc:
        raise StorageProviderError("Malformed object listing from storage provider") from exc

    return ListObjectsResponse(
        objects=objects,
        is_truncated=_text(root, "IsTruncated").lower() == "true",
        next_continuation_token=_text(root, "NextContinuationToken") or None,
    )


class OssClient:
    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._transport = transport

    def _endpoint_host(self) -> str:
        if not self.settings.aliyun_default_endpoint:
            raise MissingEndpoint()
        return strip_scheme(self.settings.aliyun_default_endpoint)

    def _sign(
        self,
        host: str,
        path: str,
        query: Mapping[str, str],
        canonical_resource: str,
        now: datetime,
    ) -> dict[str, str]:
        settings = self.settings
        if settings.oss_signature_version == "v4":
            return build_v4_headers(
                settings.aliyun_access_key_id,
                settings.aliyun_access_key_secret,
                method="GET",
                iso_datetime=now.strftime("%Y%m%dT%H%M%SZ"),
                host=host,
                path=path,
                query=query,
            )
        date = format_datetime(now, usegmt=True)
        return {
            "Date": date,
            "Host": host,
            "Authorization": build_v1_authorization(
                settings.aliyun_access_key_id,
                settings.aliyun_access_key_secret,
                date,
                canonical_resource,
            ),
        }

    async def _get(self, host: str, query: Mapping[str, str], headers: dict[str, str]) -> str:
        url = f"https://{host}/"
        if query:
            url = f"{url}?{urlencode(sorted(query.items()), quote_via=quote)}"

        async with httpx.AsyncClient(
            timeout=self.settings.oss_request_timeout,
            transport=self._transport,
        ) as client:
            try:
                response = await client.get(url, headers=headers)
            except httpx.TimeoutException as exc:
                logger.warning("Storage provider request to %s timed out", host)
                raise StorageProviderError("Storage provider request timed out") from exc
            except httpx.HTTPError as exc:
                logger.warning("Storage provider request to %s failed: %s", host, exc)
                raise StorageProviderError() from exc

        if response.is_error:
            logger.warning(
                "Storage provider returned HTTP %s for %s: %s",
                response.status_code,
                host,
                response.text[:500],
            )
            raise StorageProviderError(f"Storage provider returned HTTP {response.status_code}")
        return response.text

    async def list_buckets(self) -> ListBucketsResponse:
        host = self._endpoint_host()
        headers = self._sign(host, "/", {}, "/", datetime.now(timezone.utc))
        return parse_buckets_xml(await self._get(host, {}, headers))

    async def list_objects(
        self,
        bucket_name: str,
        prefix: str | None = None,
        continuation_token: str | None = None,
    ) -> ListObjectsResponse:
        if not bucket_name:
            raise BadRequest("Bucket name is required")

        buckets = await self.list_buckets()
        bucket = next((b for b in buckets.buckets if b.name == bucket_name), None)
        if bucket is None:
            raise NotFound(f"Bucket '{bucket_name}' not found")

        host = f"{bucket_name}.{strip_scheme(bucket.extranet_endpoint)}"
        query = {"list-type": "2", "max-keys": str(MAX_KEYS)}
        if prefix:
            query["prefix"] = prefix
        if continuation_token:
            query["continuation-token"] = continuation_token

        resource = canonical.v1_sub_resource_canonical(bucket_name, query)
        headers = self._sign(host, f"/{bucket_name}/", query, resource, datetime.now(timezone.utc))
        return parse_objects_xml(await self._get(host, query, headers))
