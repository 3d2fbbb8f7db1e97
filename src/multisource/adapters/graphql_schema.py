"""graphql-core integration for multi-source fields.

A multi-source field gains an ``endpointNames`` argument; its resolver reads the
argument, builds the execution context and hands both to
:meth:`MultiSourceField.resolve`. Failures surface as field errors in the
query response.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from graphql import (
    GraphQLArgument,
    GraphQLField,
    GraphQLList,
    GraphQLNonNull,
    GraphQLString,
    get_nullable_type,
    is_interface_type,
    is_list_type,
    is_object_type,
    is_union_type,
)

from multisource.domain.dispatch import ExecutionContext
from multisource.domain.merge import OutputShape

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from graphql import GraphQLOutputType, GraphQLResolveInfo, GraphQLSchema

    from multisource.domain.field import MultiSourceField
    from multisource.domain.targets import TargetRegistry

SELECTOR_ARGUMENT = "endpointNames"
EXTENSION_KEY = "multiInstanceEndpoints"
CONTEXT_KEY = "multisource"

type ContextFactory = Callable[[GraphQLResolveInfo], ExecutionContext]


def shape_for_output_type(type_: GraphQLOutputType) -> OutputShape:
    """Map a GraphQL output type to the merge shape of its values."""

    nullable = get_nullable_type(type_)
    if is_list_type(nullable):
        return OutputShape.COLLECTION
    if is_object_type(nullable) or is_interface_type(nullable) or is_union_type(nullable):
        return OutputShape.COMPOSITE
    return OutputShape.SCALAR


def selector_argument() -> GraphQLArgument:
    return GraphQLArgument(
        GraphQLList(GraphQLNonNull(GraphQLString)),
        description="Names of the upstream endpoints to query; defaults to the first one.",
    )


def execution_context_from_info(info: GraphQLResolveInfo) -> ExecutionContext:
    """Find the execution context in the operation's context value.

    The context value may be an :class:`ExecutionContext` itself or a mapping
    holding one under ``"multisource"``; anything else yields a default context.
    """

    context = info.context
    if isinstance(context, ExecutionContext):
        return context
    if isinstance(context, Mapping):
        candidate = context.get(CONTEXT_KEY)
        if isinstance(candidate, ExecutionContext):
            return candidate
    return ExecutionContext()


def multi_source_resolver(
    field: MultiSourceField,
    *,
    context_factory: ContextFactory = execution_context_from_info,
) -> Callable[..., Awaitable[object]]:
    async def resolve(_source: object, info: GraphQLResolveInfo, **args: Any) -> object:
        return await field.resolve(args.get(SELECTOR_ARGUMENT), context_factory(info))

    return resolve


def multi_source_graphql_field(
    field: MultiSourceField,
    type_: GraphQLOutputType,
    *,
    args: Mapping[str, GraphQLArgument] | None = None,
    description: str | None = None,
    context_factory: ContextFactory = execution_context_from_info,
) -> GraphQLField:
    """Build the ``GraphQLField`` exposing ``field`` with its selector argument."""

    expected = shape_for_output_type(type_)
    if expected is not field.shape:
        raise ValueError(
            f"Field {field.name!r} merges as {field.shape.value} "
            f"but its output type {type_} is a {expected.value}"
        )
    arguments = dict(args or {})
    arguments[SELECTOR_ARGUMENT] = selector_argument()
    return GraphQLField(
        type_,
        args=arguments,
        resolve=multi_source_resolver(field, context_factory=context_factory),
        description=description,
    )


def attach_multi_source_extension(
    schema: GraphQLSchema,
    registry: TargetRegistry | None,
) -> GraphQLSchema:
    """Record the configured endpoints in ``schema.extensions``.

    The entry lists the endpoints in configuration order and maps each name to
    its address. Nothing is recorded without targets.
    """

    if registry is None or not registry.targets:
        return schema

    extensions = dict(schema.extensions or {})
    extensions[EXTENSION_KEY] = {
        "endpoints": [
            {"name": target.name, "endpoint": target.address} for target in registry.targets
        ],
        "endpointMap": {target.name: target.address for target in registry.targets},
    }
    schema.extensions = extensions
    return schema
