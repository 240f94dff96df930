from __future__ import annotations

import asyncio
import logging
import mimetypes
import time
import uuid
from typing import Optional

import boto3
import httpx
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from colorbook.config import Settings
from colorbook.errors import TransportError

logger = logging.getLogger(__name__)

DOWNLOAD_ATTEMPTS = 3
DEFAULT_CONTENT_TYPE = "image/png"


def _s3_client(settings: Settings):
    return boto3.session.Session().client(
        "s3",
        region_name=settings.s3_region,
        endpoint_url=settings.required("s3_endpoint"),
        aws_access_key_id=settings.required("s3_access_key_id"),
        aws_secret_access_key=settings.required("s3_secret_access_key"),
        config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
    )


class ObjectStorage:
    """S3-compatible bucket (MinIO in production): put bytes, get a public URL."""

    def __init__(self, client, bucket: str, public_base: str, key_prefix: str = ""):
        self.client = client
        self.bucket = bucket
        self.public_base = public_base.rstrip("/")
        self.key_prefix = key_prefix.strip("/")

    @classmethod
    def from_settings(cls, settings: Settings) -> "ObjectStorage":
        return cls(
            _s3_client(settings),
            bucket=settings.required("s3_bucket_name"),
            public_base=settings.required("s3_public_url"),
            key_prefix=settings.s3_key_prefix,
        )

    def build_key(self, folder: str, ext: str = "png") -> str:
        name = f"{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}.{ext.lstrip('.')}"
        parts = [p for p in (self.key_prefix, folder.strip("/"), name) if p]
        return "/".join(parts)

    def public_url(self, key: str) -> str:
        return f"{self.public_base}/{key}"

    def upload_bytes(self, *, content: bytes, key: str, content_type: Optional[str] = None) -> str:
        if not content_type:
            content_type, _ = mimetypes.guess_type(key)
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=content,
                ContentType=content_type or "application/octet-stream",
            )
        except (BotoCoreError, ClientError) as e:
            raise TransportError(f"Upload of {key} failed: {e}") from e
        logger.info("uploaded %s (%d bytes)", key, len(content))
        return self.public_url(key)

    async def upload_from_url(self, source_url: str, key: str, client: httpx.AsyncClient) -> str:
        """Download ``source_url`` and store it under ``key``."""
        last_error: Optional[Exception] = None
        for attempt in range(1, DOWNLOAD_ATTEMPTS + 1):
            try:
                r = await client.get(source_url, follow_redirects=True, timeout=60.0)
                r.raise_for_status()
                content_type = r.headers.get("content-type", DEFAULT_CONTENT_TYPE).split(";")[0].strip()
                return await asyncio.to_thread(
                    self.upload_bytes, content=r.content, key=key, content_type=content_type
                )
            except (httpx.HTTPError, TransportError) as e:
                last_error = e
                logger.warning("download %s for upload failed (%d/%d): %s", source_url, attempt, DOWNLOAD_ATTEMPTS, e)
        raise TransportError(f"Could not copy {source_url} to storage: {last_error}")
