"""
S3-compatible object store holding catalog images and audio.

Media is uploaded by the admin console; the service only stores the public
URLs and removes objects that a mutation replaced or orphaned.
"""

import asyncio
import re
from typing import Any, Optional
from urllib.parse import unquote, urlparse

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from shared.retry import RetryConfig, retry_on_exception


# s3.amazonaws.com, s3.eu-west-1.amazonaws.com, s3-eu-west-1.amazonaws.com
AWS_S3_HOST = re.compile(r"^s3(?:[.-][a-z0-9-]+)?\.amazonaws\.com$")


class ObjectStore:
    """Deletes media objects addressed by their public URL."""

    def __init__(
        self,
        bucket: str,
        public_base_url: str,
        *,
        client: Any = None,
        endpoint_url: Optional[str] = None,
        region: Optional[str] = None,
        retry_config: Optional[RetryConfig] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")
        self.endpoint_url = endpoint_url
        self.region = region
        self.metrics = metrics
        self.logger = get_logger("catalog.object_store")
        self._client = client

        retry = retry_on_exception(
            (BotoCoreError, ClientError),
            retry_config or RetryConfig(max_attempts=3, base_delay=0.2, max_delay=2.0),
        )
        self._delete_with_retry = retry(self._delete_object)

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client(
                "s3",
                endpoint_url=self.endpoint_url,
                region_name=self.region,
            )
        return self._client

    def _is_storage_host(self, host: str) -> bool:
        if self.endpoint_url and host == (urlparse(self.endpoint_url).hostname or "").lower():
            return True
        return bool(AWS_S3_HOST.match(host))

    def key_for_url(self, url: Optional[str]) -> Optional[str]:
        """Map a stored URL back to its object key.

        Only URLs under ``public_base_url`` or on the bucket's own storage
        host are mapped. Anything else returns None, so a URL pointing at a
        foreign host can never address an object in our bucket.
        """
        if not url:
            return None

        prefix = f"{self.public_base_url}/"
        if url.startswith(prefix):
            key = url[len(prefix):]
        else:
            parsed = urlparse(url)
            host = (parsed.hostname or "").lower()
            path = parsed.path.lstrip("/")
            bucket_host = f"{self.bucket}.".lower()

            if host.startswith(bucket_host) and self._is_storage_host(host[len(bucket_host):]):
                # Virtual-hosted style: bucket in the host name
                key = path
            elif self._is_storage_host(host) and path.startswith(f"{self.bucket}/"):
                # Path-style: bucket as the first segment
                key = path[len(self.bucket) + 1:]
            else:
                return None

        key = unquote(key.split("?", 1)[0])
        return key or None

    async def _delete_object(self, key: str):
        await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=key)

    async def delete_url(self, url: Optional[str]) -> bool:
        """Delete the object behind ``url``.

        Returns False instead of raising when the URL cannot be mapped or
        the deletion keeps failing; a stale object never fails a mutation.
        """
        if not url:
            return False

        key = self.key_for_url(url)
        if not key:
            self.logger.warning("URL does not address the media bucket, skipping deletion", url=url)
            self._record("skipped")
            return False

        try:
            await self._delete_with_retry(key)
        except Exception as e:
            self.logger.error("Object deletion failed", bucket=self.bucket, key=key, error=str(e))
            self._record("error")
            return False

        self.logger.info("Object deleted", bucket=self.bucket, key=key)
        self._record("deleted")
        return True

    def _record(self, status: str):
        if self.metrics:
            self.metrics.increment_counter("object_store_deletes_total", status=status)
