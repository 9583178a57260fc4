import base64
import binascii
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, cast
from uuid import UUID

from boto3.dynamodb.types import TypeDeserializer, TypeSerializer

from .exceptions import InvalidPageTokenError, SerializationError
from .pagination import PageToken


class DynamoSerializer:
    """
    Handles the conversion between Python values and DynamoDB Low-Level format,
    and between DynamoDB keys and opaque page tokens.

    Architectural Note:
    -------------------
    DynamoDB requires numbers to be passed as 'Decimal' to avoid precision loss.
    Pydantic uses 'float'. Boto3's TypeSerializer throws an error if it encounters a float.
    Values are converted recursively on the way in and restored on the way out.

    A LastEvaluatedKey is handed to callers as a PageToken: the key is
    flattened to plain JSON and base64url-encoded so it survives URLs and
    can't be mistaken for something a caller should edit.
    """

    def __init__(self) -> None:
        self._serializer = TypeSerializer()
        self._deserializer = TypeDeserializer()

    def to_dynamo(self, data: dict[str, Any]) -> dict[str, dict[str, Any]]:
        """Converts a standard Python dict to DynamoDB JSON format ({"S": "...", "N": "..."})."""
        clean_data = self._prepare_for_dynamo(data)
        result = {}
        for k, v in clean_data.items():
            if v is None:
                continue
            try:
                result[k] = cast(dict[str, Any], self._serializer.serialize(v))
            except TypeError as e:
                raise SerializationError(
                    f"Failed to serialize field '{k}'. value={v!r} error={e!s}", original_error=e
                ) from e
        return result

    def to_dynamo_value(self, value: Any) -> dict[str, Any]:
        """
        Serializes a single value to DynamoDB format.
        Used for ExpressionAttributeValues. E.g.: 10.5 -> {'N': '10.5'}
        """
        clean_value = self._prepare_for_dynamo(value)
        try:
            return cast(dict[str, Any], self._serializer.serialize(clean_value))
        except TypeError as e:
            raise SerializationError(
                f"Failed to serialize value '{value}'. error={e!s}", original_error=e
            ) from e

    def from_dynamo(self, item: dict[str, Any]) -> dict[str, Any]:
        """Converts DynamoDB JSON format back to standard Python dict."""
        python_data = {k: self._deserializer.deserialize(v) for k, v in item.items()}
        result = self._restore_to_python(python_data)
        assert isinstance(result, dict)
        return result

    def encode_token(self, last_evaluated_key: dict[str, Any] | None) -> PageToken | None:
        """
        Turns a DynamoDB LastEvaluatedKey into a PageToken.

        Input:  {"id": {"S": "abc"}}
        Output: PageToken wrapping base64url('{"id":"abc"}')
        """
        if not last_evaluated_key:
            return None
        plain = self.from_dynamo(last_evaluated_key)
        raw = json.dumps(plain, sort_keys=True, separators=(",", ":"))
        return PageToken(base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii"))

    def decode_token(self, token: PageToken | None) -> dict[str, Any] | None:
        """
        Turns a PageToken back into an ExclusiveStartKey.

        Raises:
            InvalidPageTokenError: If the token was not produced by encode_token
        """
        if token is None:
            return None
        try:
            raw = base64.urlsafe_b64decode(token.value.encode("ascii"))
            plain = json.loads(raw.decode("utf-8"))
        except (binascii.Error, UnicodeError, ValueError) as e:
            raise InvalidPageTokenError("Malformed page token", original_error=e) from e
        if not isinstance(plain, dict) or not plain:
            raise InvalidPageTokenError("Page token does not describe a key")
        return self.to_dynamo(plain)

    def _prepare_for_dynamo(self, value: Any) -> Any:
        """
        Recursively prepares Python values for Boto3 TypeSerializer.

        Converts:
        - float -> Decimal (boto3 requirement)
        - datetime/date -> ISO 8601 string
        - UUID -> string
        - Enum -> value
        """
        if isinstance(value, float):
            # Go through str to avoid float precision artifacts
            return Decimal(str(value))
        if isinstance(value, datetime):
            utc_offset = value.utcoffset()
            if utc_offset is not None and utc_offset.total_seconds() == 0:
                # 'Z' suffix, same as the GraphQL AWSDateTime scalar
                return value.replace(tzinfo=None).isoformat(timespec="milliseconds") + "Z"
            return value.isoformat()
        if isinstance(value, date):
            return value.isoformat()
        if isinstance(value, UUID):
            return str(value)
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, list):
            return [self._prepare_for_dynamo(v) for v in value]
        if isinstance(value, dict):
            return {k: self._prepare_for_dynamo(v) for k, v in value.items()}
        return value

    def _restore_to_python(self, value: Any) -> Any:
        """Recursively converts Decimal back to int (whole numbers) or float."""
        if isinstance(value, Decimal):
            if value % 1 == 0:
                return int(value)
            return float(value)
        if isinstance(value, list):
            return [self._restore_to_python(v) for v in value]
        if isinstance(value, dict):
            return {k: self._restore_to_python(v) for k, v in value.items()}
        return value
