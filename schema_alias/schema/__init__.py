"""
Operator schema model: types, alias annotations and the schema parser.
"""

from schema_alias.schema.model import (
    ALIAS_NAMESPACE,
    WILDCARD_SET,
    AliasInfo,
    Argument,
    FunctionSchema,
    SchemaArgType,
    SchemaArgument,
)
from schema_alias.schema.parser import SchemaParseError, parse_schema, parse_schemas, parse_type

__all__ = [
    "ALIAS_NAMESPACE",
    "WILDCARD_SET",
    "AliasInfo",
    "Argument",
    "FunctionSchema",
    "SchemaArgType",
    "SchemaArgument",
    "SchemaParseError",
    "parse_schema",
    "parse_schemas",
    "parse_type",
]
