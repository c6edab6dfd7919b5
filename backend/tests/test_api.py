from dataclasses import replace
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, unquote, urlsplit

import httpx
import pytest

from ossgate.api.deps import get_oauth_client, get_oss_client
from ossgate.services.oauth import OAuthClient
from ossgate.services.oss_client import OssClient

BUCKETS_XML = """<?xml version="1.0" encoding="UTF-8"?>
<ListAllMyBucketsResult>
  <Buckets>
    <Bucket>
      <Name>test-bucket</Name>
      <Location>oss-cn-hangzhou</Location>
      <CreationDate>2024-01-01T00:00:00.000Z</CreationDate>
      <StorageClass>Standard</StorageClass>
      <ExtranetEndpoint>oss-cn-hangzhou.aliyuncs.com</ExtranetEndpoint>
      <IntranetEndpoint>oss-cn-hangzhou-internal.aliyuncs.com</IntranetEndpoint>
    </Bucket>
  </Buckets>
</ListAllMyBucketsResult>"""

OBJECTS_XML = """<?xml version="1.0" encoding="UTF-8"?>
<ListBucketResult>
  <Name>test-bucket</Name>
  <IsTruncated>true</IsTruncated>
  <NextContinuationToken>next-page</NextContinuationToken>
  <Contents>
    <Key>reports/q1.pdf</Key>
    <LastModified>2024-02-01T10:00:00.000Z</LastModified>
    <Size>2048</Size>
    <StorageClass>Standard</StorageClass>
  </Contents>
</ListBucketResult>"""


def oss_transport(seen: list[httpx.Request]) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.host == "oss-cn-hangzhou.aliyuncs.com":
            return httpx.Response(200, text=BUCKETS_XML)
        if request.url.host == "test-bucket.oss-cn-hangzhou.aliyuncs.com":
            return httpx.Response(200, text=OBJECTS_XML)
        return httpx.Response(404)

    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_login_and_me(client):
    bad = await client.post("/auth/login", json={"username": "admin", "password": "wrong"})
    assert bad.status_code == 401

    login_resp = await client.post("/auth/login", json={"username": "admin", "password": "Password123"})
    assert login_resp.status_code == 200
    body = login_resp.json()
    assert body["username"] == "admin"
    assert body["expires_in"] == 3600

    me_resp = await client.get("/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
    assert me_resp.status_code == 200
    assert me_resp.json() == {"username": "admin"}


@pytest.mark.asyncio
async def test_management_routes_require_token(client):
    for method, path in [
        ("POST", "/sign"),
        ("GET", "/links"),
        ("POST", "/cleanup"),
        ("GET", "/buckets"),
    ]:
        resp = await client.request(method, path)
        assert resp.status_code == 401, path
        assert resp.headers["www-authenticate"] == "Bearer"

    resp = await client.get("/links", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_sign_then_redeem_until_quota(client, auth_headers):
    sign_resp = await client.post(
        "/sign",
        json={"object_key": "reports/q1.pdf", "expires_in_seconds": 600, "max_downloads": 1},
        headers=auth_headers,
    )
    assert sign_resp.status_code == 200
    data = sign_resp.json()
    assert data["url"] == f"http://testserver/download/{data['id']}"
    assert data["max_downloads"] == 1

    redirect = await client.get(f"/download/{data['id']}")
    assert redirect.status_code == 307
    location = urlsplit(redirect.headers["location"])
    assert location.netloc == "test-bucket.oss-cn-hangzhou.aliyuncs.com"
    assert location.path == "/reports/q1.pdf"
    query = parse_qs(location.query)
    assert set(query) == {"OSSAccessKeyId", "Expires", "Signature"}

    again = await client.get(f"/download/{data['id']}")
    assert again.status_code == 429
    assert again.json() == {"detail": "Download limit exceeded"}

    info = await client.get(f"/links/{data['id']}", headers=auth_headers)
    assert info.status_code == 200
    assert info.json()["downloads_served"] == 1
    assert info.json()["is_expired"] is True


@pytest.mark.asyncio
async def test_download_filename_sets_disposition(client, auth_headers):
    sign_resp = await client.post(
        "/sign",
        json={"object_key": "reports/q1.pdf", "download_filename": "My Report.pdf"},
        headers=auth_headers,
    )
    link_id = sign_resp.json()["id"]

    redirect = await client.get(f"/download/{link_id}")
    assert redirect.status_code == 307
    raw_query = urlsplit(redirect.headers["location"]).query
    encoded = raw_query.split("response-content-disposition=", 1)[1]
    assert unquote(encoded) == 'attachment; filename="My Report.pdf"'


@pytest.mark.asyncio
async def test_unknown_and_expired_links(client, auth_headers, ticket_store):
    missing = await client.get("/download/3f2504e0-4f89-11d3-9a0c-0305e82c3301")
    assert missing.status_code == 404
    assert missing.json() == {"detail": "Download link not found"}

    malformed = await client.get("/download/not-a-uuid")
    assert malformed.status_code == 404

    sign_resp = await client.post("/sign", json={"object_key": "a.txt"}, headers=auth_headers)
    link_id = sign_resp.json()["id"]
    ticket = await ticket_store.get(link_id)
    await ticket_store.insert(replace(ticket, expires_at=datetime.now(timezone.utc) - timedelta(seconds=1)))

    gone = await client.get(f"/download/{link_id}")
    assert gone.status_code == 410
    assert gone.json() == {"detail": "Download link has expired"}


@pytest.mark.asyncio
async def test_sign_validation(client, auth_headers):
    blank = await client.post("/sign", json={"object_key": "   "}, headers=auth_headers)
    assert blank.status_code == 400

    missing_key = await client.post("/sign", json={}, headers=auth_headers)
    assert missing_key.status_code == 422

    negative_quota = await client.post(
        "/sign", json={"object_key": "a.txt", "max_downloads": -1}, headers=auth_headers
    )
    assert negative_quota.status_code == 422

    far_future = await client.post(
        "/sign", json={"object_key": "a.txt", "expires_in_seconds": 10**12}, headers=auth_headers
    )
    assert far_future.status_code == 400
    assert far_future.json() == {"detail": "Expiry is too far in the future"}


@pytest.mark.asyncio
async def test_list_delete_and_cleanup(client, auth_headers):
    ids = []
    for key in ["one.txt", "two.txt"]:
        resp = await client.post(
            "/sign", json={"object_key": key, "max_downloads": 1}, headers=auth_headers
        )
        ids.append(resp.json()["id"])

    listing = await client.get("/links", headers=auth_headers)
    assert listing.status_code == 200
    body = listing.json()
    assert body["total"] == 2
    assert [link["id"] for link in body["links"]] == list(reversed(ids))
    assert body["links"][0]["download_url"] == f"http://testserver/download/{ids[1]}"

    deleted = await client.delete(f"/links/{ids[0]}", headers=auth_headers)
    assert deleted.json() == {"success": True, "message": "Link deleted successfully"}
    again = await client.delete(f"/links/{ids[0]}", headers=auth_headers)
    assert again.json()["success"] is False
    assert (await client.get(f"/download/{ids[0]}")).status_code == 404

    assert (await client.get(f"/download/{ids[1]}")).status_code == 307
    cleanup = await client.post("/cleanup", headers=auth_headers)
    assert cleanup.status_code == 200
    assert cleanup.json() == {"deleted_count": 1, "evicted_count": 1}

    missing = await client.get(f"/links/{ids[1]}", headers=auth_headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_healthz(client):
    resp = await client.get("/healthz")
    assert resp.status_code == 200
    assert resp.text == "ok"


@pytest.mark.asyncio
async def test_bucket_and_object_listing(client, auth_headers, app_instance):
    seen: list[httpx.Request] = []
    app_instance.dependency_overrides[get_oss_client] = lambda: OssClient(transport=oss_transport(seen))

    buckets = await client.get("/buckets", headers=auth_headers)
    assert buckets.status_code == 200
    assert buckets.json()["buckets"][0]["name"] == "test-bucket"

    objects = await client.get(
        "/objects",
        params={"bucket": "test-bucket", "prefix": "reports/", "continuation-token": "abc"},
        headers=auth_headers,
    )
    assert objects.status_code == 200
    body = objects.json()
    assert body["objects"][0] == {
        "key": "reports/q1.pdf",
        "last_modified": "2024-02-01T10:00:00.000Z",
        "size": 2048,
        "storage_class": "Standard",
    }
    assert body["is_truncated"] is True
    assert body["next_continuation_token"] == "next-page"

    listing_request = seen[-1]
    assert listing_request.url.params["prefix"] == "reports/"
    assert listing_request.url.params["continuation-token"] == "abc"
    assert listing_request.headers["authorization"].startswith("OSS test-key-id:")

    unknown = await client.get("/objects", params={"bucket": "nope"}, headers=auth_headers)
    assert unknown.status_code == 404


@pytest.mark.asyncio
async def test_storage_provider_failure_maps_to_500(client, auth_headers, app_instance):
    transport = httpx.MockTransport(lambda request: httpx.Response(403, text="<Error/>"))
    app_instance.dependency_overrides[get_oss_client] = lambda: OssClient(transport=transport)

    resp = await client.get("/buckets", headers=auth_headers)
    assert resp.status_code == 500
    assert resp.json() == {"detail": "Storage provider returned HTTP 403"}


def oauth_transport(permissions) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(200, json={"access_token": "provider-token", "token_type": "bearer"})
        assert request.headers["authorization"] == "Bearer provider-token"
        return httpx.Response(
            200,
            json={"sub": "42", "username": "alice", "permissions": permissions},
        )

    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_oauth_callback_issues_operator_token(client, app_instance):
    app_instance.dependency_overrides[get_oauth_client] = lambda: OAuthClient(
        transport=oauth_transport({"admin_user": True})
    )

    resp = await client.get("/auth/oauth/callback", params={"code": "abc", "code_verifier": "v" * 43})
    assert resp.status_code == 200
    token = resp.json()["token"]
    assert resp.json()["username"] == "alice"

    me = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json() == {"username": "alice"}


@pytest.mark.asyncio
async def test_oauth_callback_rejects_non_admin(client, app_instance):
    app_instance.dependency_overrides[get_oauth_client] = lambda: OAuthClient(
        transport=oauth_transport({"admin_user": "true"})
    )

    resp = await client.get("/auth/oauth/callback", params={"code": "abc", "code_verifier": "v" * 43})
    assert resp.status_code == 403
    assert resp.json() == {"detail": "User does not have admin permission"}
