from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from botocore.exceptions import ClientError


class PetLodgeError(Exception):
    """Base exception for all PetLodge errors."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class TableNotFoundError(PetLodgeError):
    """Raised when the DynamoDB table does not exist."""

    def __init__(self, table_name: str, original_error: Exception | None = None) -> None:
        super().__init__(f"Table '{table_name}' not found", original_error)
        self.table_name = table_name


class PostNotFoundError(PetLodgeError):
    """Raised when a post is required but does not exist."""

    def __init__(self, post_id: str, original_error: Exception | None = None) -> None:
        super().__init__(f"Post '{post_id}' not found", original_error)
        self.post_id = post_id


class ConditionalCheckFailedError(PetLodgeError):
    """Raised when a conditional write fails (missing item or owner mismatch)."""

    def __init__(
        self, condition: str | None = None, original_error: Exception | None = None
    ) -> None:
        msg = "Conditional check failed"
        if condition:
            msg += f": {condition}"
        super().__init__(msg, original_error)
        self.condition = condition


class AccessDeniedError(PetLodgeError):
    """Raised when the caller's credentials are rejected or lack permission."""

    def __init__(
        self, message: str = "Access denied", original_error: Exception | None = None
    ) -> None:
        super().__init__(message, original_error)


class ProvisionedThroughputExceededError(PetLodgeError):
    """Raised when DynamoDB throttles requests."""

    def __init__(
        self, message: str = "Request rate exceeded", original_error: Exception | None = None
    ) -> None:
        super().__init__(message, original_error)


class RequestTimeoutError(PetLodgeError):
    """Raised when a request to AWS times out."""

    def __init__(
        self, message: str = "Request timed out", original_error: Exception | None = None
    ) -> None:
        super().__init__(message, original_error)


class ValidationError(PetLodgeError):
    """Raised for data validation errors reported by DynamoDB."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, original_error)
        self.field = field
        self.value = value


class SerializationError(PetLodgeError):
    """Raised when serialization to DynamoDB format fails (e.g. unsupported type)."""


class InvalidPageTokenError(PetLodgeError):
    """Raised when a page token cannot be decoded back into a DynamoDB key."""


class ImageNotFoundError(PetLodgeError):
    """Raised when an object key does not exist in the image bucket."""

    def __init__(self, key: str, original_error: Exception | None = None) -> None:
        super().__init__(f"Image '{key}' not found", original_error)
        self.key = key


class ApiError(PetLodgeError):
    """Raised by the REST backend client for failed or malformed responses."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, original_error)
        self.status_code = status_code


_ACCESS_DENIED_CODES = (
    "AccessDeniedException",
    "AccessDenied",
    "UnrecognizedClientException",
    "ExpiredTokenException",
    "InvalidSignatureException",
)

_THROTTLING_CODES = (
    "ProvisionedThroughputExceededException",
    "ThrottlingException",
    "RequestLimitExceeded",
    "SlowDown",
)

_TIMEOUT_CODES = ("RequestTimeout", "RequestTimeoutException")


def _error_details(error: ClientError) -> tuple[str, str]:
    code = error.response.get("Error", {}).get("Code", "Unknown")
    message = error.response.get("Error", {}).get("Message", str(error))
    return code, message


@contextmanager
def handle_dynamo_errors(table_name: str | None = None) -> Generator[None, None, None]:
    """
    Context manager that catches botocore.exceptions.ClientError
    and raises the appropriate PetLodgeError subclass.

    Args:
        table_name: Optional table name for better error messages

    Usage:
        with handle_dynamo_errors(table_name="Post"):
            client.get_item(...)
    """
    try:
        yield
    except ClientError as e:
        error_code, error_message = _error_details(e)

        if error_code == "ResourceNotFoundException":
            raise TableNotFoundError(table_name=table_name or "unknown", original_error=e) from e

        if error_code == "ConditionalCheckFailedException":
            raise ConditionalCheckFailedError(original_error=e) from e

        if error_code in _ACCESS_DENIED_CODES:
            raise AccessDeniedError(message=error_message, original_error=e) from e

        if error_code in _THROTTLING_CODES:
            raise ProvisionedThroughputExceededError(message=error_message, original_error=e) from e

        if error_code in ("ValidationException", "SerializationException"):
            raise ValidationError(message=error_message, original_error=e) from e

        if error_code in _TIMEOUT_CODES:
            raise RequestTimeoutError(message=error_message, original_error=e) from e

        raise PetLodgeError(
            message=f"DynamoDB error ({error_code}): {error_message}", original_error=e
        ) from e


@contextmanager
def handle_storage_errors(
    bucket: str | None = None, key: str | None = None
) -> Generator[None, None, None]:
    """
    S3 counterpart of handle_dynamo_errors.

    Usage:
        with handle_storage_errors(bucket="petlodge-images", key=key):
            client.put_object(...)
    """
    try:
        yield
    except ClientError as e:
        error_code, error_message = _error_details(e)

        if error_code in ("NoSuchKey", "404", "NotFound"):
            raise ImageNotFoundError(key=key or "unknown", original_error=e) from e

        if error_code in _ACCESS_DENIED_CODES:
            raise AccessDeniedError(message=error_message, original_error=e) from e

        if error_code in _THROTTLING_CODES:
            raise ProvisionedThroughputExceededError(message=error_message, original_error=e) from e

        if error_code in _TIMEOUT_CODES:
            raise RequestTimeoutError(message=error_message, original_error=e) from e

        raise PetLodgeError(
            message=f"S3 error ({error_code}) on bucket '{bucket or 'unknown'}': {error_message}",
            original_error=e,
        ) from e
