"""
Object-storage upload for exported reports.

``S3Uploader.upload`` is the only place in the package with its own retry
discipline: a bounded number of attempts with exponential backoff between
them, and an aggregate ``UploadFailure`` once every attempt has failed.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol
from urllib.parse import quote

import boto3
from botocore.config import Config

from ..config import Settings
from ..errors import UploadFailure

logger = logging.getLogger(__name__)

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class ObjectStorageClient(Protocol):
    """The subset of the boto3 S3 client used here."""

    def put_object(self, **kwargs: Any) -> Any: ...


@dataclass(frozen=True)
class ExportArtifact:
    """Reference to an uploaded export. The binary itself is never retained."""

    object_key: str
    url: str
    filename: str
    byte_size: int


@dataclass
class UploadAttempt:
    """Outcome of a single put_object call."""

    number: int
    error: Exception | None = None
    retryable: bool = False

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class UploadOutcome:
    """Success, or exhaustion after every attempt failed."""

    attempts: list[UploadAttempt] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return bool(self.attempts) and self.attempts[-1].succeeded

    @property
    def errors(self) -> list[Exception]:
        return [a.error for a in self.attempts if a.error is not None]


def build_s3_client(settings: Settings) -> ObjectStorageClient:
    """Create a boto3 S3 client with SDK-level retries disabled."""
    return boto3.client(
        "s3",
        region_name=settings.aws_region,
        config=Config(
            connect_timeout=settings.s3_connect_timeout,
            read_timeout=settings.s3_request_timeout,
            retries={"total_max_attempts": 1, "mode": "standard"},
        ),
    )


def build_object_key(datasource: str, filename: str) -> str:
    """Namespace a report file by data source so exports never collide."""
    return f"reports/{datasource}/{filename}"


class S3Uploader:
    """Uploads binaries to a bucket and returns their public URL."""

    def __init__(
        self,
        client: ObjectStorageClient,
        bucket: str,
        region: str = "us-east-1",
        max_attempts: int = 3,
        acl: str | None = "public-read",
        public_base_url: str = "",
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.client = client
        self.bucket = bucket
        self.region = region
        self.max_attempts = max(1, max_attempts)
        self.acl = acl
        self.public_base_url = public_base_url.rstrip("/")
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3Uploader":
        return cls(
            client=build_s3_client(settings),
            bucket=settings.s3_bucket,
            region=settings.aws_region,
            max_attempts=settings.s3_max_attempts,
            acl=settings.s3_acl or None,
            public_base_url=settings.s3_public_base_url,
        )

    def public_url(self, object_key: str) -> str:
        """Deterministic public URL for ``object_key``."""
        if self.public_base_url:
            return f"{self.public_base_url}/{quote(object_key)}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{quote(object_key)}"

    @staticmethod
    def backoff_delay(attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (2s, 4s, ...)."""
        return float(2**attempt)

    def _put(self, binary: bytes, object_key: str, content_type: str) -> None:
        params: dict[str, Any] = {
            "Bucket": self.bucket,
            "Key": object_key,
            "Body": binary,
            "ContentType": content_type,
            "CacheControl": "public, max-age=3600",
        }
        if self.acl:
            params["ACL"] = self.acl
        self.client.put_object(**params)

    async def upload(
        self,
        binary: bytes,
        object_key: str,
        content_type: str = XLSX_CONTENT_TYPE,
    ) -> str:
        """Upload ``binary`` under ``object_key`` and return its public URL.

        Raises:
            UploadFailure: After ``max_attempts`` failed attempts, carrying
                every attempt's error.
        """
        logger.info("Uploading to S3: %s (%dKB)", object_key, round(len(binary) / 1024))
        outcome = UploadOutcome()

        for number in range(1, self.max_attempts + 1):
            attempt = UploadAttempt(number=number)
            try:
                await asyncio.to_thread(self._put, binary, object_key, content_type)
            except Exception as e:
                attempt.error = e
                attempt.retryable = number < self.max_attempts
                logger.error("S3 upload attempt %d failed: %s", number, e)
            outcome.attempts.append(attempt)

            if attempt.succeeded:
                logger.info("Successfully uploaded to S3: %s", object_key)
                return self.public_url(object_key)
            if attempt.retryable:
                await self._sleep(self.backoff_delay(number))

        last_error = outcome.errors[-1]
        raise UploadFailure(
            f"S3 upload failed after {self.max_attempts} attempts: {last_error}",
            attempts=outcome.errors,
        )
