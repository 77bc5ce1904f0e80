"""
Storage gateway: object writes and URL construction.

Upload logic depends on the StorageGateway protocol only. S3Storage talks to
AWS S3 through boto3 with explicit connect/read timeouts and no automatic
retries; InMemoryStorage keeps objects in a dict for tests and local runs
(STORAGE_BACKEND=memory).
"""
import logging
from typing import Protocol, runtime_checkable
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import ConnectTimeoutError, ReadTimeoutError

from config import Settings
from exceptions import UpstreamTimeout

logger = logging.getLogger(__name__)


@runtime_checkable
class StorageGateway(Protocol):
    bucket_name: str

    def put_object(self, key: str, data: bytes, content_type: str) -> None:
        """Write data under key. Raises on failure."""
        ...

    def url_for(self, key: str) -> str:
        """Deterministic URL of key; no round trip."""
        ...


class S3Storage:
    """AWS S3 bucket. Objects are written private (bucket default)."""

    def __init__(self, bucket_name: str, region: str, timeout: float = 30.0, client=None):
        self.bucket_name = bucket_name
        self.region = region
        self.timeout = timeout
        self.client = client or boto3.client(
            "s3",
            region_name=region,
            config=Config(
                connect_timeout=min(5.0, timeout),
                read_timeout=timeout,
                retries={"max_attempts": 1, "mode": "standard"},
            ),
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3Storage":
        return cls(settings.s3_bucket_name, settings.aws_region, timeout=settings.storage_timeout)

    def put_object(self, key: str, data: bytes, content_type: str) -> None:
        try:
            self.client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (ConnectTimeoutError, ReadTimeoutError) as exc:
            raise UpstreamTimeout(f"S3 put_object timed out for {key}: {exc}") from exc

    def url_for(self, key: str) -> str:
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{quote(key, safe='/')}"

    def delete_object(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket_name, Key=key)
        except (ConnectTimeoutError, ReadTimeoutError) as exc:
            raise UpstreamTimeout(f"S3 delete_object timed out for {key}: {exc}") from exc

    def list_objects(self, prefix: str = "") -> list[str]:
        """Keys under prefix (first page only, up to 1000)."""
        try:
            resp = self.client.list_objects_v2(Bucket=self.bucket_name, Prefix=prefix)
        except (ConnectTimeoutError, ReadTimeoutError) as exc:
            raise UpstreamTimeout(f"S3 list_objects_v2 timed out for {prefix!r}: {exc}") from exc
        return [obj["Key"] for obj in resp.get("Contents", []) if obj.get("Key")]


class InMemoryStorage:
    """Dict-backed gateway. Not shared between processes; contents vanish on restart."""

    def __init__(self, bucket_name: str = "memory"):
        self.bucket_name = bucket_name
        self.objects: dict[str, tuple[bytes, str]] = {}

    def put_object(self, key: str, data: bytes, content_type: str) -> None:
        self.objects[key] = (bytes(data), content_type)

    def url_for(self, key: str) -> str:
        return f"memory://{self.bucket_name}/{key}"

    def delete_object(self, key: str) -> None:
        self.objects.pop(key, None)

    def list_objects(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self.objects if k.startswith(prefix))


def build_storage(settings: Settings) -> StorageGateway:
    if settings.storage_backend == "memory":
        logger.warning("Using in-memory storage; uploads are not persisted")
        return InMemoryStorage(settings.s3_bucket_name)
    return S3Storage.from_settings(settings)
