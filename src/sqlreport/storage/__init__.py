"""Object storage for exported reports."""

from .uploader import (
    XLSX_CONTENT_TYPE,
    ExportArtifact,
    ObjectStorageClient,
    S3Uploader,
    build_object_key,
    build_s3_client,
)

__all__ = [
    "XLSX_CONTENT_TYPE",
    "ExportArtifact",
    "ObjectStorageClient",
    "S3Uploader",
    "build_object_key",
    "build_s3_client",
]
