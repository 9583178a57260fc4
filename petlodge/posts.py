"""
DynamoDB-backed store for posts and comments.

PostStore is the paginated source the pagers sit on: list_posts() and
list_comments() each issue exactly one Scan/Query call and return a
CursorPage whose next_token is the encoded LastEvaluatedKey.
"""

from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import boto3
from boto3.dynamodb.conditions import Attr, ConditionBase

from ._logging import logger, redact
from .conditions import all_of, compile_condition, merge_params
from .config import StoreOptions
from .exceptions import ConditionalCheckFailedError, PostNotFoundError, handle_dynamo_errors
from .models import Comment, NewPost, Post, PostUpdate
from .pagination import CursorPage, PageToken, Pager, create_pager
from .serializer import DynamoSerializer


@dataclass(frozen=True)
class PostCriteria:
    """
    Fixed set of listing filters, combined with AND.

    Attributes:
        owner: Exact owner (username or user id)
        city: Exact city
        pet_type: Exact pet type
        title_contains: Substring of the title (case-sensitive, as DynamoDB's contains())
        keyword: One of the post keywords
    """

    owner: str | None = None
    city: str | None = None
    pet_type: str | None = None
    title_contains: str | None = None
    keyword: str | None = None

    def is_empty(self) -> bool:
        return self.to_condition() is None

    def to_condition(self) -> ConditionBase | None:
        parts: list[ConditionBase] = []
        if self.owner:
            parts.append(Attr("owner").eq(self.owner))
        if self.city:
            parts.append(Attr("city").eq(self.city))
        if self.pet_type:
            parts.append(Attr("pet_type").eq(self.pet_type))
        if self.title_contains:
            parts.append(Attr("title").contains(self.title_contains))
        if self.keyword:
            parts.append(Attr("keywords").contains(self.keyword))
        return all_of(parts)


def _now() -> datetime:
    # stored with millisecond precision
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


class PostStore:
    """
    Posts and comments on DynamoDB.

    The client is created lazily; set_client() and using_client() allow
    injecting one (tests, LocalStack, per-request credentials).
    """

    def __init__(self, options: StoreOptions | None = None, client: Any | None = None) -> None:
        self.options = options or StoreOptions()
        self.serializer = DynamoSerializer()
        self._client = client
        self._client_context: ContextVar[Any | None] = ContextVar(
            "petlodge_dynamo_client", default=None
        )

    # --- CLIENT MANAGEMENT ---

    def _get_client(self) -> Any:
        ctx_client = self._client_context.get()
        if ctx_client is not None:
            return ctx_client

        if self._client is None:
            self._client = boto3.client(
                "dynamodb",
                region_name=self.options.region,
                endpoint_url=self.options.endpoint_url,
            )
        return self._client

    def set_client(self, client: Any) -> None:
        """Replaces the default client."""
        self._client = client

    @contextmanager
    def using_client(self, client: Any) -> Generator[None, None, None]:
        """
        Scopes a client to a block of code. Thread-safe and async-safe.

        Usage:
            with store.using_client(request_client):
                store.get_post("...")
        """
        token = self._client_context.set(client)
        try:
            yield
        finally:
            self._client_context.reset(token)

    def _page_size(self, limit: int | None) -> int:
        return limit if limit else self.options.default_page_size

    # --- POSTS ---

    def create_post(self, new_post: NewPost | dict[str, Any], owner: str) -> Post:
        """
        Stores a new post owned by `owner` and returns it.

        Raises:
            ValueError: If owner is empty
            pydantic.ValidationError: If the input is invalid
        """
        if not owner:
            raise ValueError("A post needs an owner")
        if not isinstance(new_post, NewPost):
            new_post = NewPost.model_validate(new_post)

        now = _now()
        post = Post(
            id=str(uuid4()),
            title=new_post.title,
            content=new_post.build_content(),
            description=new_post.description,
            pet_type=new_post.pet_type,
            city=new_post.city,
            start_date=new_post.start_date,
            end_date=new_post.end_date,
            keywords=new_post.keywords,
            pet_image=new_post.pet_image,
            pet_image_key=new_post.pet_image_key,
            owner=owner,
            created_at=now,
            updated_at=now,
        )

        table = self.options.posts_table
        kwargs: dict[str, Any] = {
            "TableName": table,
            "Item": self.serializer.to_dynamo(post.to_item()),
        }
        merge_params(kwargs, compile_condition(Attr("id").not_exists(), self.serializer))

        logger.info(
            "Creating post",
            extra={"table": table, "operation": "create_post", "owner_hash": redact(owner)},
        )
        with handle_dynamo_errors(table_name=table):
            self._get_client().put_item(**kwargs)
        logger.info(
            "Post created", extra={"table": table, "operation": "create_post", "post_id": post.id}
        )
        return post

    def get_post(self, post_id: str) -> Post | None:
        """Fetches a post by id, or None."""
        table = self.options.posts_table
        logger.debug(
            "Fetching post", extra={"table": table, "operation": "get_post", "post_id": post_id}
        )
        with handle_dynamo_errors(table_name=table):
            response = self._get_client().get_item(
                TableName=table, Key=self.serializer.to_dynamo({"id": post_id})
            )

        if "Item" not in response:
            logger.info(
                "Post not found", extra={"table": table, "operation": "get_post", "post_id": post_id}
            )
            return None

        return Post.model_validate(self.serializer.from_dynamo(response["Item"]))

    def require_post(self, post_id: str) -> Post:
        """Like get_post, but raises PostNotFoundError instead of returning None."""
        post = self.get_post(post_id)
        if post is None:
            raise PostNotFoundError(post_id)
        return post

    def update_post(
        self, post_id: str, changes: PostUpdate | dict[str, Any], owner: str | None = None
    ) -> Post:
        """
        Applies a partial update and returns the updated post.

        Fields explicitly set to None are removed. When owner is given the
        update only succeeds if the stored owner matches.

        Raises:
            PostNotFoundError: If the post doesn't exist (no owner given)
            ConditionalCheckFailedError: If the post is missing or owned by someone else
        """
        if not isinstance(changes, PostUpdate):
            changes = PostUpdate.model_validate(changes)
        fields = changes.changes()
        fields["updatedAt"] = _now()

        set_parts: list[str] = []
        remove_parts: list[str] = []
        names: dict[str, str] = {}
        values: dict[str, Any] = {}
        for i, (attr, value) in enumerate(fields.items()):
            names[f"#f{i}"] = attr
            if value is None:
                remove_parts.append(f"#f{i}")
            else:
                set_parts.append(f"#f{i} = :f{i}")
                values[f":f{i}"] = self.serializer.to_dynamo_value(value)

        update_expr = "SET " + ", ".join(set_parts)
        if remove_parts:
            update_expr += " REMOVE " + ", ".join(remove_parts)

        condition: ConditionBase = Attr("id").exists()
        if owner is not None:
            condition = condition & Attr("owner").eq(owner)

        table = self.options.posts_table
        kwargs: dict[str, Any] = {
            "TableName": table,
            "Key": self.serializer.to_dynamo({"id": post_id}),
            "UpdateExpression": update_expr,
            "ExpressionAttributeNames": names,
            "ExpressionAttributeValues": values,
            "ReturnValues": "ALL_NEW",
        }
        merge_params(kwargs, compile_condition(condition, self.serializer))

        logger.info(
            "Updating post",
            extra={
                "table": table,
                "operation": "update_post",
                "post_id": post_id,
                "fields": sorted(fields),
            },
        )
        try:
            with handle_dynamo_errors(table_name=table):
                response = self._get_client().update_item(**kwargs)
        except ConditionalCheckFailedError as e:
            if owner is None:
                raise PostNotFoundError(post_id, original_error=e) from e
            raise

        return Post.model_validate(self.serializer.from_dynamo(response["Attributes"]))

    def delete_post(self, post_id: str, owner: str | None = None) -> None:
        """
        Deletes a post. Comments are left in place.

        Raises:
            PostNotFoundError: If the post doesn't exist (no owner given)
            ConditionalCheckFailedError: If the post is missing or owned by someone else
        """
        condition: ConditionBase = Attr("id").exists()
        if owner is not None:
            condition = condition & Attr("owner").eq(owner)

        table = self.options.posts_table
        kwargs: dict[str, Any] = {
            "TableName": table,
            "Key": self.serializer.to_dynamo({"id": post_id}),
        }
        merge_params(kwargs, compile_condition(condition, self.serializer))

        logger.info(
            "Deleting post",
            extra={"table": table, "operation": "delete_post", "post_id": post_id},
        )
        try:
            with handle_dynamo_errors(table_name=table):
                self._get_client().delete_item(**kwargs)
        except ConditionalCheckFailedError as e:
            if owner is None:
                raise PostNotFoundError(post_id, original_error=e) from e
            raise
        logger.info(
            "Delete successful",
            extra={"table": table, "operation": "delete_post", "post_id": post_id},
        )

    def list_posts(
        self,
        criteria: PostCriteria | None = None,
        limit: int | None = None,
        token: PageToken | None = None,
    ) -> CursorPage[Post]:
        """
        Scans a single page of posts.

        `limit` bounds the items *evaluated*, so a filtered page can come back
        short (or empty) while still carrying a next token.

        Usage:
            first = store.list_posts(PostCriteria(city="Berlin"), limit=10)
            if first.has_more:
                second = store.list_posts(PostCriteria(city="Berlin"), 10, first.next_token)
        """
        table = self.options.posts_table
        kwargs: dict[str, Any] = {"TableName": table, "Limit": self._page_size(limit)}

        condition = criteria.to_condition() if criteria else None
        if condition is not None:
            merge_params(
                kwargs,
                compile_condition(condition, self.serializer, expression_key="FilterExpression"),
            )

        start_key = self.serializer.decode_token(token)
        if start_key:
            kwargs["ExclusiveStartKey"] = start_key

        logger.info(
            "Scanning posts page",
            extra={
                "table": table,
                "operation": "list_posts",
                "limit": kwargs["Limit"],
                "has_filter": condition is not None,
                "has_cursor": start_key is not None,
            },
        )
        with handle_dynamo_errors(table_name=table):
            response = self._get_client().scan(**kwargs)

        items = [
            Post.model_validate(self.serializer.from_dynamo(item))
            for item in response.get("Items", [])
        ]
        return CursorPage(
            items=items,
            next_token=self.serializer.encode_token(response.get("LastEvaluatedKey")),
        )

    def list_my_posts(
        self, owner: str, limit: int | None = None, token: PageToken | None = None
    ) -> CursorPage[Post]:
        """Single page of the posts owned by `owner`."""
        if not owner:
            raise ValueError("owner is required to list a user's posts")
        return self.list_posts(PostCriteria(owner=owner), limit=limit, token=token)

    def search_posts(
        self,
        query: str | None = None,
        city: str | None = None,
        pet_type: str | None = None,
        limit: int | None = None,
        token: PageToken | None = None,
    ) -> CursorPage[Post]:
        """Single page of posts whose title contains `query`, optionally by city and pet type."""
        criteria = PostCriteria(
            title_contains=query.strip() if query else None, city=city, pet_type=pet_type
        )
        return self.list_posts(criteria, limit=limit, token=token)

    def posts_pager(
        self, criteria: PostCriteria | None = None, page_size: int | None = None
    ) -> Pager[Post]:
        """Numbered pages over list_posts()."""

        def fetch(token: PageToken | None, size: int) -> CursorPage[Post]:
            return self.list_posts(criteria, limit=size, token=token)

        return create_pager(fetch, page_size=self._page_size(page_size))

    def my_posts_pager(self, owner: str, page_size: int | None = None) -> Pager[Post]:
        """Numbered pages over the posts owned by `owner`."""
        if not owner:
            raise ValueError("owner is required to list a user's posts")
        return self.posts_pager(PostCriteria(owner=owner), page_size=page_size)

    # --- COMMENTS ---

    def add_comment(self, post_id: str, content: str, owner: str) -> Comment:
        """Stores a reply under a post."""
        content = (content or "").strip()
        if not content:
            raise ValueError("Comment content must not be empty")
        if not owner:
            raise ValueError("A comment needs an owner")

        now = _now()
        comment = Comment(
            id=str(uuid4()),
            post_id=post_id,
            content=content,
            owner=owner,
            created_at=now,
            updated_at=now,
        )

        table = self.options.comments_table
        kwargs: dict[str, Any] = {
            "TableName": table,
            "Item": self.serializer.to_dynamo(comment.to_item()),
        }
        merge_params(kwargs, compile_condition(Attr("id").not_exists(), self.serializer))

        logger.info(
            "Adding comment",
            extra={"table": table, "operation": "add_comment", "post_id": post_id},
        )
        with handle_dynamo_errors(table_name=table):
            self._get_client().put_item(**kwargs)
        return comment

    def list_comments(
        self,
        post_id: str,
        limit: int | None = 100,
        token: PageToken | None = None,
        newest_first: bool = False,
    ) -> CursorPage[Comment]:
        """Queries a single page of the comments under a post (by-post index)."""
        table = self.options.comments_table
        kwargs: dict[str, Any] = {
            "TableName": table,
            "IndexName": self.options.comments_by_post_index,
            "KeyConditionExpression": "#pk = :pk",
            "ExpressionAttributeNames": {"#pk": "postId"},
            "ExpressionAttributeValues": {":pk": self.serializer.to_dynamo_value(post_id)},
            "ScanIndexForward": not newest_first,
            "Limit": self._page_size(limit),
        }

        start_key = self.serializer.decode_token(token)
        if start_key:
            kwargs["ExclusiveStartKey"] = start_key

        logger.info(
            "Querying comments page",
            extra={
                "table": table,
                "index": self.options.comments_by_post_index,
                "operation": "list_comments",
                "post_id": post_id,
                "limit": kwargs["Limit"],
                "has_cursor": start_key is not None,
            },
        )
        with handle_dynamo_errors(table_name=table):
            response = self._get_client().query(**kwargs)

        items = [
            Comment.model_validate(self.serializer.from_dynamo(item))
            for item in response.get("Items", [])
        ]
        return CursorPage(
            items=items,
            next_token=self.serializer.encode_token(response.get("LastEvaluatedKey")),
        )

    def comments_pager(
        self, post_id: str, page_size: int | None = None, newest_first: bool = False
    ) -> Pager[Comment]:
        """Numbered pages over list_comments()."""

        def fetch(token: PageToken | None, size: int) -> CursorPage[Comment]:
            return self.list_comments(post_id, limit=size, token=token, newest_first=newest_first)

        return create_pager(fetch, page_size=self._page_size(page_size))
