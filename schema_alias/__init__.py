"""
schema-alias: alias and mutability analysis for operator schemas.

Given an operator schema such as

    aten::add_.Tensor(Tensor(a!) self, Tensor other, *, Scalar alpha=1) -> Tensor(a!)

and optionally the values an individual call passes in, answers:
1. which inputs the call may write to
2. which arguments and returns may share storage, directly or through
   containers
3. whether two identical calls may produce different results
"""

__version__ = "0.1.0"

from schema_alias.analysis.schema_info import SchemaInfo
from schema_alias.registry import (
    OperatorRegistry,
    Tag,
    find_op,
    get_global_registry,
    register_operator,
)
from schema_alias.schema.model import (
    AliasInfo,
    Argument,
    FunctionSchema,
    SchemaArgType,
    SchemaArgument,
)
from schema_alias.schema.parser import SchemaParseError, parse_schema, parse_type
from schema_alias.values import Storage, Tensor

__all__ = [
    "SchemaInfo",
    "OperatorRegistry",
    "Tag",
    "find_op",
    "get_global_registry",
    "register_operator",
    "AliasInfo",
    "Argument",
    "FunctionSchema",
    "SchemaArgType",
    "SchemaArgument",
    "SchemaParseError",
    "parse_schema",
    "parse_type",
    "Storage",
    "Tensor",
]
