from .api import CurrentUser, PetLodgeApiClient
from .config import ApiOptions, PetLodgeSettings, StorageOptions, StoreOptions
from .exceptions import (
    AccessDeniedError,
    ApiError,
    ConditionalCheckFailedError,
    ImageNotFoundError,
    InvalidPageTokenError,
    PetLodgeError,
    PostNotFoundError,
    ProvisionedThroughputExceededError,
    RequestTimeoutError,
    SerializationError,
    TableNotFoundError,
    ValidationError,
)
from .images import ImageStore, StoredImage
from .models import Comment, NewPost, Post, PostUpdate
from .pagination import (
    END,
    AsyncPager,
    CursorPage,
    PageResult,
    PageToken,
    Pager,
    TokenMap,
    create_async_pager,
    create_pager,
)
from .posts import PostCriteria, PostStore

__all__ = [
    # Pagination
    "PageToken",
    "CursorPage",
    "PageResult",
    "TokenMap",
    "END",
    "Pager",
    "AsyncPager",
    "create_pager",
    "create_async_pager",
    # Data
    "Post",
    "NewPost",
    "PostUpdate",
    "Comment",
    "PostCriteria",
    "PostStore",
    "ImageStore",
    "StoredImage",
    "PetLodgeApiClient",
    "CurrentUser",
    # Configuration
    "StoreOptions",
    "StorageOptions",
    "ApiOptions",
    "PetLodgeSettings",
    # Exceptions
    "PetLodgeError",
    "TableNotFoundError",
    "PostNotFoundError",
    "ConditionalCheckFailedError",
    "AccessDeniedError",
    "ProvisionedThroughputExceededError",
    "RequestTimeoutError",
    "ValidationError",
    "SerializationError",
    "InvalidPageTokenError",
    "ImageNotFoundError",
    "ApiError",
]
