"""Artifact sink: page content and screenshots in S3-compatible storage.

Objects are keyed ``{env}/{yyyyMMdd}/{id}/{id}_{kind}.{ext}`` where the date
comes from the owning Navigation's id. Uploads never raise; a missing
configuration or a failed upload yields ``None``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, Union

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from ..core.keys import K_CONTENT, K_SCREENSHOT
from .crawl_config import CrawlSettings
from .record_sink import partition_for

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    "html": "text/html; charset=utf-8",
    "png": "image/png",
}

Body = Union[str, bytes]


def artifact_key(environment: str, identifier: str, kind: str, ext: str) -> str:
    return f"{environment}/{partition_for(identifier)}/{identifier}/{identifier}_{kind}.{ext}"


class ArtifactSink:
    def __init__(self, settings: CrawlSettings, client: Any = None) -> None:
        self.settings = settings
        self.client = client
        if self.client is None and settings.s3_enabled:
            self.client = boto3.client(
                "s3",
                endpoint_url=settings.s3_endpoint,
                aws_access_key_id=settings.s3_access_key_id,
                aws_secret_access_key=settings.s3_secret_access_key,
                region_name=settings.s3_region,
                config=BotoConfig(retries={"max_attempts": 3, "mode": "standard"}),
            )
        if self.client is not None:
            logger.info(
                "S3 artifact sink ready endpoint=%s bucket=%s env=%s",
                settings.s3_endpoint,
                settings.s3_bucket,
                settings.environment,
            )
        else:
            logger.error("S3 artifact sink is not configured; artifacts will not be stored")

    @property
    def enabled(self) -> bool:
        return self.client is not None

    async def put(self, identifier: str, kind: str, ext: str, body: Body) -> Optional[str]:
        """Upload ``body`` and return its object key, or ``None``."""

        if self.client is None:
            logger.warning("Artifact upload skipped; S3 not configured id=%s kind=%s", identifier, kind)
            return None
        key = artifact_key(self.settings.environment, identifier, kind, ext)
        data = body.encode("utf-8") if isinstance(body, str) else body
        try:
            await asyncio.to_thread(
                self.client.put_object,
                Bucket=self.settings.s3_bucket,
                Key=key,
                Body=data,
                ContentType=CONTENT_TYPES.get(ext, "application/octet-stream"),
            )
        except (BotoCoreError, ClientError, OSError) as exc:
            logger.error("Artifact upload failed id=%s key=%s error=%s", identifier, key, exc)
            return None
        logger.info("Stored artifact id=%s kind=%s key=%s", identifier, kind, key)
        return key

    async def put_content_html(self, identifier: str, body: Body) -> Optional[str]:
        return await self.put(identifier, K_CONTENT, "html", body)

    async def put_screenshot_png(self, identifier: str, body: bytes) -> Optional[str]:
        return await self.put(identifier, K_SCREENSHOT, "png", body)
