"""
Condition expression helpers.

Conditions are built with boto3's `Attr` objects and compiled to low-level
request parameters by boto3's ConditionExpressionBuilder, which takes care of
reserved keywords and placeholder generation.

Usage:
    from boto3.dynamodb.conditions import Attr

    params = compile_condition(
        Attr("owner").eq("mia") & Attr("city").eq("Berlin"),
        serializer,
        expression_key="FilterExpression",
    )
    client.scan(TableName="Post", **params)
"""

from __future__ import annotations

from collections.abc import Iterable
from functools import reduce
from typing import TYPE_CHECKING, Any

from boto3.dynamodb.conditions import ConditionBase, ConditionExpressionBuilder

if TYPE_CHECKING:
    from .serializer import DynamoSerializer


def all_of(conditions: Iterable[ConditionBase]) -> ConditionBase | None:
    """AND-combines conditions; None when there are none."""
    parts = list(conditions)
    if not parts:
        return None
    return reduce(lambda left, right: left & right, parts)


def compile_condition(
    condition: ConditionBase,
    serializer: DynamoSerializer,
    expression_key: str = "ConditionExpression",
) -> dict[str, Any]:
    """
    Compiles a condition into DynamoDB request parameters.

    Args:
        condition: A boto3 condition object
        serializer: DynamoSerializer for converting values to DynamoDB format
        expression_key: "ConditionExpression" for writes, "FilterExpression" for reads

    Returns:
        Dict with the expression, and ExpressionAttributeNames /
        ExpressionAttributeValues when non-empty
    """
    if not isinstance(condition, ConditionBase):
        raise TypeError(f"Expected boto3 ConditionBase, got {type(condition).__name__}")

    builder = ConditionExpressionBuilder()
    expression = builder.build_expression(condition, is_key_condition=False)

    result: dict[str, Any] = {expression_key: expression.condition_expression}

    if expression.attribute_name_placeholders:
        result["ExpressionAttributeNames"] = dict(expression.attribute_name_placeholders)

    if expression.attribute_value_placeholders:
        result["ExpressionAttributeValues"] = {
            placeholder: serializer.to_dynamo_value(value)
            for placeholder, value in expression.attribute_value_placeholders.items()
        }

    return result


def merge_params(target: dict[str, Any], params: dict[str, Any]) -> dict[str, Any]:
    """
    Merges compiled expression parameters into request kwargs.
    Attribute name/value maps are merged rather than replaced.
    """
    for key, value in params.items():
        if key in ("ExpressionAttributeNames", "ExpressionAttributeValues"):
            target.setdefault(key, {}).update(value)
        else:
            target[key] = value
    return target
