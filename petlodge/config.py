from dataclasses import dataclass

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


@dataclass
class StoreOptions:
    """
    Tables backing the post/comment store.

    Attribute names follow the GraphQL schema the tables were generated from
    (`id` partition key on both tables, `postId` on the by-post comment index).
    """

    posts_table: str = "Post"
    comments_table: str = "Comment"
    comments_by_post_index: str = "byPost"
    region: str = "us-east-1"
    endpoint_url: str | None = None
    default_page_size: int = 10


@dataclass
class StorageOptions:
    """Bucket holding uploaded pet images."""

    bucket: str
    prefix: str = "public"
    region: str = "us-east-1"
    endpoint_url: str | None = None
    url_expires_in: int = 900


@dataclass
class ApiOptions:
    """Connection settings for the alternate REST backend."""

    base_url: str = ""
    timeout: float = 15.0


class PetLodgeSettings(BaseSettings):
    """
    Environment-driven settings (PETLODGE_ prefix, optional .env file).

    Usage:
        settings = PetLodgeSettings()
        store = PostStore(settings.store_options())
    """

    model_config = SettingsConfigDict(
        env_prefix="PETLODGE_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    region: str = "us-east-1"
    dynamodb_endpoint_url: str | None = None
    posts_table: str = "Post"
    comments_table: str = "Comment"
    comments_by_post_index: str = "byPost"
    page_size: int = Field(default=10, ge=1)

    images_bucket: str = ""
    images_prefix: str = "public"
    s3_endpoint_url: str | None = None
    image_url_expires_in: int = Field(default=900, ge=1)

    api_base_url: str = ""
    api_timeout_seconds: float = Field(default=15.0, gt=0)

    def store_options(self) -> StoreOptions:
        return StoreOptions(
            posts_table=self.posts_table,
            comments_table=self.comments_table,
            comments_by_post_index=self.comments_by_post_index,
            region=self.region,
            endpoint_url=self.dynamodb_endpoint_url,
            default_page_size=self.page_size,
        )

    def storage_options(self) -> StorageOptions:
        if not self.images_bucket:
            raise ValueError("PETLODGE_IMAGES_BUCKET is not configured")
        return StorageOptions(
            bucket=self.images_bucket,
            prefix=self.images_prefix,
            region=self.region,
            endpoint_url=self.s3_endpoint_url,
            url_expires_in=self.image_url_expires_in,
        )

    def api_options(self) -> ApiOptions:
        return ApiOptions(base_url=self.api_base_url, timeout=self.api_timeout_seconds)
