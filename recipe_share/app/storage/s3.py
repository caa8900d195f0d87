"""
S3-compatible object storage (AWS S3, Cloudflare R2, MinIO).

Objects are uploaded with a ``public-read`` ACL and addressed by a public
URL of the form ``{S3_PUBLIC_BASE_URL}/{bucket}/{key}``.
"""
import logging
from functools import lru_cache

import boto3
from botocore.client import BaseClient
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from recipe_share.app.core.config import get_settings
from recipe_share.app.storage.base import StorageProvider

logger = logging.getLogger(__name__)


@lru_cache
def _get_s3_client() -> BaseClient:
    settings = get_settings()
    client_kwargs = {}
    if settings.s3_force_path_style:
        # Required for MinIO and most self-hosted endpoints
        client_kwargs["config"] = Config(signature_version="s3v4", s3={"addressing_style": "path"})
    if settings.s3_endpoint_url:
        client_kwargs["endpoint_url"] = settings.s3_endpoint_url
    if settings.aws_access_key_id and settings.aws_secret_access_key:
        client_kwargs["aws_access_key_id"] = settings.aws_access_key_id
        client_kwargs["aws_secret_access_key"] = settings.aws_secret_access_key
    return boto3.client("s3", region_name=settings.s3_region or "auto", **client_kwargs)


class S3StorageProvider(StorageProvider):
    def __init__(self, bucket: str, public_base_url: str, client: BaseClient | None = None):
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")
        self._client = client

    @property
    def client(self) -> BaseClient:
        if self._client is None:
            self._client = _get_s3_client()
        return self._client

    def url_for(self, key: str) -> str:
        return f"{self.public_base_url}/{self.bucket}/{key}"

    def save_bytes(self, key: str, data: bytes, content_type: str) -> str:
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                ACL="public-read",
            )
        except (ClientError, BotoCoreError) as exc:
            logger.exception("Failed to upload object to %s/%s", self.bucket, key)
            raise RuntimeError(f"S3 upload failed: {exc}") from exc
        url = self.url_for(key)
        logger.debug("Uploaded object to %s", url)
        return url
