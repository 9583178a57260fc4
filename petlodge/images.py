"""
S3-backed storage for pet images.

Uploads get a fresh key under `<prefix>/<owner>/`; posts store that key
(`pet_image_key`) and resolve it to a short-lived URL when displayed.
"""

import mimetypes
import re
from dataclasses import dataclass
from typing import IO, Any
from uuid import uuid4

import boto3

from ._logging import logger, redact
from .config import StorageOptions
from .exceptions import handle_storage_errors

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def sanitize_filename(filename: str) -> str:
    """Keeps the base name and replaces anything unusual with '-'."""
    base = filename.replace("\\", "/").rsplit("/", 1)[-1]
    cleaned = _UNSAFE_CHARS.sub("-", base).strip("-.")
    return cleaned or "image"


@dataclass
class StoredImage:
    """Result of an upload."""

    key: str
    content_type: str
    size: int | None = None


class ImageStore:
    """Uploads images and resolves their keys to URLs."""

    def __init__(self, options: StorageOptions, client: Any | None = None) -> None:
        self.options = options
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = boto3.client(
                "s3", region_name=self.options.region, endpoint_url=self.options.endpoint_url
            )
        return self._client

    def set_client(self, client: Any) -> None:
        self._client = client

    def build_key(self, owner: str, filename: str) -> str:
        prefix = self.options.prefix.strip("/")
        name = f"{uuid4().hex}-{sanitize_filename(filename)}"
        parts = [p for p in (prefix, owner, name) if p]
        return "/".join(parts)

    def upload_image(
        self,
        body: bytes | IO[bytes],
        filename: str,
        owner: str,
        content_type: str | None = None,
    ) -> StoredImage:
        """
        Uploads an image and returns its newly issued key.

        Raises:
            ValueError: If owner is empty or the content type is not an image
        """
        if not owner:
            raise ValueError("An upload needs an owner")

        content_type = content_type or mimetypes.guess_type(filename)[0] or ""
        if not content_type.startswith("image/"):
            raise ValueError(f"Not an image content type: {content_type or 'unknown'}")

        key = self.build_key(owner, filename)
        size = len(body) if isinstance(body, (bytes, bytearray)) else None

        logger.info(
            "Uploading image",
            extra={
                "bucket": self.options.bucket,
                "operation": "upload_image",
                "key_hash": redact(key),
                "content_type": content_type,
                "size": size,
            },
        )
        with handle_storage_errors(bucket=self.options.bucket, key=key):
            self._get_client().put_object(
                Bucket=self.options.bucket, Key=key, Body=body, ContentType=content_type
            )
        return StoredImage(key=key, content_type=content_type, size=size)

    def get_url(self, key: str, expires_in: int | None = None) -> str:
        """Presigned GET URL for a stored key."""
        if not key:
            raise ValueError("key is required")
        expires = expires_in or self.options.url_expires_in
        logger.debug(
            "Resolving image URL",
            extra={"bucket": self.options.bucket, "operation": "get_url", "key_hash": redact(key)},
        )
        with handle_storage_errors(bucket=self.options.bucket, key=key):
            url: str = self._get_client().generate_presigned_url(
                "get_object",
                Params={"Bucket": self.options.bucket, "Key": key},
                ExpiresIn=expires,
            )
        return url

    def delete_image(self, key: str) -> None:
        """Removes a stored image."""
        if not key:
            raise ValueError("key is required")
        logger.info(
            "Deleting image",
            extra={
                "bucket": self.options.bucket,
                "operation": "delete_image",
                "key_hash": redact(key),
            },
        )
        with handle_storage_errors(bucket=self.options.bucket, key=key):
            self._get_client().delete_object(Bucket=self.options.bucket, Key=key)
