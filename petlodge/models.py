"""
Domain records for PetLodge.

Stored attribute names follow the GraphQL schema the tables were generated
from (snake_case for pet fields, camelCase for dates and timestamps), so the
models use aliases and accept either spelling on input.
"""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator


def _split_keywords(value: Any) -> Any:
    # "cat, senior ,indoor" -> ["cat", "senior", "indoor"]
    if isinstance(value, str):
        return [k.strip() for k in value.split(",") if k.strip()]
    return value


class Post(BaseModel):
    """A fostering request as stored in the posts table."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    title: str
    content: str
    description: str = ""
    pet_type: str | None = None
    city: str | None = None
    start_date: date | None = Field(default=None, alias="startDate")
    end_date: date | None = Field(default=None, alias="endDate")
    keywords: list[str] = Field(default_factory=list)
    pet_image: str | None = None
    pet_image_key: str | None = None
    owner: str | None = None
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")

    def to_item(self) -> dict[str, Any]:
        """Plain dict keyed by stored attribute names, ready for the serializer."""
        return self.model_dump(mode="python", by_alias=True, exclude_none=True)


class NewPost(BaseModel):
    """Input for creating a post."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    title: str = Field(min_length=1)
    description: str = ""
    content: str | None = None
    pet_type: str | None = None
    city: str | None = None
    start_date: date | None = Field(default=None, alias="startDate")
    end_date: date | None = Field(default=None, alias="endDate")
    keywords: list[str] = Field(default_factory=list)
    pet_image: str | None = None
    pet_image_key: str | None = None

    @field_validator("keywords", mode="before")
    @classmethod
    def split_keywords(cls, value: Any) -> Any:
        return _split_keywords(value)

    @model_validator(mode="after")
    def check_date_range(self) -> "NewPost":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

    def build_content(self) -> str:
        """Content line shown in listings: "[<pet_type>/<city>] <description>"."""
        if self.content:
            return self.content
        return f"[{self.pet_type or ''}/{self.city or ''}] {self.description}"


class PostUpdate(BaseModel):
    """Partial update for a post; only fields explicitly set are written."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    title: str | None = Field(default=None, min_length=1)
    description: str | None = None
    content: str | None = None
    pet_type: str | None = None
    city: str | None = None
    start_date: date | None = Field(default=None, alias="startDate")
    end_date: date | None = Field(default=None, alias="endDate")
    keywords: list[str] | None = None
    pet_image: str | None = None
    pet_image_key: str | None = None

    @field_validator("keywords", mode="before")
    @classmethod
    def split_keywords(cls, value: Any) -> Any:
        return _split_keywords(value)

    @field_validator("title", "content")
    @classmethod
    def not_removable(cls, value: str | None, info: ValidationInfo) -> str | None:
        # None means REMOVE; a post without these no longer loads
        if value is None:
            raise ValueError(f"{info.field_name} cannot be removed")
        return value

    @model_validator(mode="after")
    def check_date_range(self) -> "PostUpdate":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

    def changes(self) -> dict[str, Any]:
        """Set fields keyed by stored attribute name."""
        return self.model_dump(mode="python", by_alias=True, exclude_unset=True)


class Comment(BaseModel):
    """A reply under a post."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    post_id: str = Field(alias="postId")
    content: str
    owner: str | None = None
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")

    def to_item(self) -> dict[str, Any]:
        return self.model_dump(mode="python", by_alias=True, exclude_none=True)
