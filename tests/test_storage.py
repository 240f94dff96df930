import asyncio
import re

import boto3
import httpx
import pytest
from botocore.stub import ANY, Stubber

from colorbook.errors import TransportError
from colorbook.services.storage import ObjectStorage


@pytest.fixture
def s3():
    client = boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="test",
        aws_secret_access_key="test",
    )
    with Stubber(client) as stub:
        yield client, stub


def storage_for(client):
    return ObjectStorage(client, bucket="colorbook", public_base="https://minio.example.com/colorbook/", key_prefix="cb")


def test_build_key_layout(s3):
    client, _ = s3
    key = storage_for(client).build_key("line-art", ".png")
    assert re.fullmatch(r"cb/line-art/\d{13}_[0-9a-f]{8}\.png", key)


def test_upload_bytes_returns_public_url(s3):
    client, stub = s3
    stub.add_response(
        "put_object",
        {},
        {"Bucket": "colorbook", "Key": "cb/x/a.png", "Body": b"png-bytes", "ContentType": "image/png"},
    )
    url = storage_for(client).upload_bytes(content=b"png-bytes", key="cb/x/a.png")
    assert url == "https://minio.example.com/colorbook/cb/x/a.png"
    stub.assert_no_pending_responses()


def test_upload_failure_is_transport_error(s3):
    client, stub = s3
    stub.add_client_error("put_object", service_error_code="AccessDenied", http_status_code=403)
    with pytest.raises(TransportError):
        storage_for(client).upload_bytes(content=b"x", key="cb/x/a.png", content_type="image/png")


def test_upload_from_url_copies_remote_image(s3):
    client, stub = s3
    stub.add_response(
        "put_object",
        {},
        {"Bucket": "colorbook", "Key": "cb/coloring/c.png", "Body": ANY, "ContentType": "image/jpeg"},
    )
    attempts = []

    def handler(request):
        attempts.append(request.url)
        if len(attempts) == 1:
            return httpx.Response(502)
        return httpx.Response(200, content=b"jpeg", headers={"content-type": "image/jpeg; charset=binary"})

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            return await storage_for(client).upload_from_url("https://kie/out.jpg", "cb/coloring/c.png", http)

    assert asyncio.run(scenario()) == "https://minio.example.com/colorbook/cb/coloring/c.png"
    assert len(attempts) == 2


def test_upload_from_url_gives_up_after_three_attempts(s3):
    client, _ = s3

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(404))) as http:
            await storage_for(client).upload_from_url("https://kie/gone.png", "cb/k.png", http)

    with pytest.raises(TransportError):
        asyncio.run(scenario())
