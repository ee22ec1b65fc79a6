"""
Parser for operator schema strings.

    aten::native_batch_norm.out(Tensor input, Tensor? weight, ..., *,
        Tensor(a!) out, Tensor(b!) save_mean) -> (Tensor(a!), Tensor(b!))

The grammar is written for lark's Earley parser; the parse tree is turned
into ``FunctionSchema``/``Argument``/``AliasInfo`` objects by
``_SchemaBuilder``. Alias annotation rules:

- ``(a)``, ``(a|b)``: before sets, after sets are the same
- ``(a!)``: the call writes to the value
- ``(a -> *)``: explicit after sets, ``*`` is the wildcard set
- ``!`` with no parentheses: a write to a fresh, unnamed set
- ``Tensor(a)[]``: the element annotation becomes a contained annotation
  of the list, which inherits the element's write flag
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, List, NamedTuple, Optional

from lark import Lark, Token, Transformer
from lark.exceptions import UnexpectedInput, VisitError

from .model import AliasInfo, Argument, FunctionSchema, alias_set
from .types import (
    PRIMITIVE_TYPE_NAMES,
    AnyType,
    DictType,
    FutureType,
    ListType,
    OptionalType,
    PrimitiveType,
    SchemaType,
    TensorType,
    TupleType,
    TypeVariable,
    UnionType,
)


class SchemaParseError(ValueError):
    """A schema string does not follow the operator schema grammar."""


_SCHEMA_GRAMMAR = r"""
    schema: operator_name "(" arguments? ")" "->" returns

    operator_name: namespace? NAME overload?
    namespace: NAME "::"
    overload: "." NAME

    arguments: _argument_item ("," _argument_item)*
    _argument_item: argument | kwarg_marker
    kwarg_marker: "*"
    argument: schema_type NAME ("=" default)?

    returns: "(" ")"                                  -> no_returns
           | "(" return_item ("," return_item)* ")"   -> return_list
           | bare_return
    return_item: schema_type NAME?
    bare_return: _plain_base alias? _suffix*

    schema_type: (_plain_base | tuple_type) alias? _suffix*

    _plain_base: simple_type | generic_type
    simple_type: TYPE_NAME
    generic_type: GENERIC_NAME "(" schema_type ("," schema_type)* ")"
    tuple_type: "(" ")"
              | "(" schema_type ("," schema_type)* ")"

    _suffix: list_suffix | optional_suffix
    list_suffix: "[" INT? "]" alias?
    optional_suffix: "?"

    alias: "(" alias_sets WRITE? after_sets? ")"
         | WRITE                                       -> fresh_write_alias
    after_sets: "->" alias_sets
    alias_sets: ALIAS_NAME ("|" ALIAS_NAME)*

    default: SIGNED_NUMBER                        -> number_default
           | ESCAPED_STRING                       -> string_default
           | SINGLE_QUOTED_STRING                 -> string_default
           | NAME                                 -> name_default
           | "[" "]"                              -> list_default
           | "[" default ("," default)* "]"       -> list_default

    GENERIC_NAME: "Dict" | "Future" | "RRef" | "Await" | "Union"
    TYPE_NAME: /(?!(?:Dict|Future|RRef|Await|Union)\b)[A-Za-z_][A-Za-z0-9_]*/
    NAME: CNAME
    ALIAS_NAME: "*" | CNAME
    WRITE: "!"
    SINGLE_QUOTED_STRING: /'[^']*'/

    %import common.CNAME
    %import common.INT
    %import common.SIGNED_NUMBER
    %import common.ESCAPED_STRING
    %import common.WS
    %ignore WS
"""


class _ParsedType(NamedTuple):
    type: SchemaType
    alias_info: Optional[AliasInfo]
    n: Optional[int]


class _ListSuffix(NamedTuple):
    size: Optional[int]
    alias_info: Optional[AliasInfo]


class _OptionalSuffix:
    """Marks a trailing `?`."""


class _KwargMarker:
    """Marks the `*` separating keyword-only arguments."""


class _SchemaBuilder(Transformer):
    """Builds schema model objects bottom-up from the lark parse tree."""

    def __init__(self):
        super().__init__()
        self._fresh_set_id = 0

    # -- operator name -----------------------------------------------------

    def namespace(self, children):
        return ("namespace", str(children[0]))

    def overload(self, children):
        return ("overload", str(children[0]))

    def operator_name(self, children):
        namespace = ""
        overload = ""
        name = ""
        for child in children:
            if isinstance(child, tuple) and child[0] == "namespace":
                namespace = child[1]
            elif isinstance(child, tuple) and child[0] == "overload":
                overload = child[1]
            else:
                name = str(child)
        if namespace:
            name = f"{namespace}::{name}"
        return name, overload

    # -- alias annotations -------------------------------------------------

    def alias_sets(self, children):
        sets = []
        for token in children:
            qualified = alias_set(str(token))
            sets.append(qualified)
            # Everything after a wildcard is ignored
            if str(token) == "*":
                break
        return frozenset(sets)

    def after_sets(self, children):
        return ("after", children[0])

    def alias(self, children):
        before = children[0]
        is_write = False
        after = None
        for child in children[1:]:
            if isinstance(child, Token) and child.type == "WRITE":
                is_write = True
            elif isinstance(child, tuple) and child[0] == "after":
                after = child[1]
        if after is None:
            after = before
        return AliasInfo(before_sets=before, after_sets=after, is_write=is_write)

    def fresh_write_alias(self, children):
        fresh = alias_set(f"${self._fresh_set_id}")
        self._fresh_set_id += 1
        return AliasInfo(before_sets=frozenset({fresh}), is_write=True)

    # -- types ---------------------------------------------------------------

    def simple_type(self, children):
        name = str(children[0])
        if name == "Tensor":
            return TensorType()
        if name == "Any":
            return AnyType()
        if name in PRIMITIVE_TYPE_NAMES:
            return PrimitiveType(name)
        if name[0].islower():
            return TypeVariable(name)
        raise SchemaParseError(f"Unknown type specifier '{name}'")

    def generic_type(self, children):
        kind = str(children[0])
        inner = [parsed.type for parsed in children[1:]]
        if kind == "Dict":
            if len(inner) != 2:
                raise SchemaParseError(f"Dict expects 2 type arguments, got {len(inner)}")
            return DictType(inner[0], inner[1])
        if kind == "Union":
            return UnionType(tuple(inner))
        if len(inner) != 1:
            raise SchemaParseError(f"{kind} expects 1 type argument, got {len(inner)}")
        return FutureType(kind, inner[0])

    def tuple_type(self, children):
        return TupleType(tuple(parsed.type for parsed in children))

    def list_suffix(self, children):
        size = None
        alias_info = None
        for child in children:
            if isinstance(child, Token):
                size = int(child)
            elif isinstance(child, AliasInfo):
                alias_info = child
        return _ListSuffix(size, alias_info)

    def optional_suffix(self, children):
        return _OptionalSuffix()

    def schema_type(self, children):
        schema_type = children[0]
        alias_info = None
        n = None
        for child in children[1:]:
            if isinstance(child, AliasInfo):
                alias_info = child
            elif isinstance(child, _ListSuffix):
                schema_type = ListType(schema_type)
                n = child.size
                if alias_info is not None:
                    container = child.alias_info
                    if container is None:
                        container = AliasInfo(is_write=alias_info.is_write)
                    alias_info = replace(
                        container,
                        contained_types=container.contained_types + (alias_info,),
                    )
                else:
                    alias_info = child.alias_info
            elif isinstance(child, _OptionalSuffix):
                schema_type = OptionalType(schema_type)
        return _ParsedType(schema_type, alias_info, n)

    # -- defaults ------------------------------------------------------------

    def number_default(self, children):
        text = str(children[0])
        if any(c in text for c in ".eE"):
            return float(text)
        return int(text)

    def string_default(self, children):
        return str(children[0])[1:-1]

    def name_default(self, children):
        text = str(children[0])
        if text == "True":
            return True
        if text == "False":
            return False
        if text == "None":
            return None
        return text

    def list_default(self, children):
        return tuple(children)

    # -- arguments and returns -----------------------------------------------

    def kwarg_marker(self, children):
        return _KwargMarker()

    def argument(self, children):
        parsed = children[0]
        name = str(children[1])
        has_default = len(children) > 2
        return Argument(
            name=name,
            type=parsed.type,
            n=parsed.n,
            has_default=has_default,
            default_value=children[2] if has_default else None,
            alias_info=parsed.alias_info,
        )

    def arguments(self, children):
        result = []
        kwarg_only = False
        for child in children:
            if isinstance(child, _KwargMarker):
                kwarg_only = True
                continue
            if kwarg_only:
                child = replace(child, kwarg_only=True)
            result.append(child)
        return tuple(result)

    def return_item(self, children):
        parsed = children[0]
        name = str(children[1]) if len(children) > 1 else ""
        return Argument(name=name, type=parsed.type, n=parsed.n, alias_info=parsed.alias_info)

    def bare_return(self, children):
        parsed = self.schema_type(children)
        return (Argument(name="", type=parsed.type, n=parsed.n, alias_info=parsed.alias_info),)

    def no_returns(self, children):
        return ()

    def return_list(self, children):
        return tuple(children)

    def returns(self, children):
        # Only reached through the bare_return alternative
        return children[0]

    def schema(self, children):
        name, overload = children[0]
        if len(children) == 3:
            arguments, returns = children[1], children[2]
        else:
            arguments, returns = (), children[1]
        return FunctionSchema(
            name=name,
            overload_name=overload,
            arguments=arguments,
            returns=returns,
        )


# =============================================================================
# PUBLIC ENTRY POINTS
# =============================================================================

_parser: Optional[Lark] = None


def _get_parser() -> Lark:
    global _parser
    if _parser is None:
        _parser = Lark(
            _SCHEMA_GRAMMAR,
            start=["schema", "schema_type"],
            parser="earley",
        )
    return _parser


def _parse(text: str, start: str) -> Any:
    try:
        tree = _get_parser().parse(text, start=start)
    except UnexpectedInput as e:
        raise SchemaParseError(
            f"Invalid schema '{text}' at column {e.column}:\n{e.get_context(text)}"
        ) from e

    try:
        return _SchemaBuilder().transform(tree)
    except VisitError as e:
        if isinstance(e.orig_exc, SchemaParseError):
            raise SchemaParseError(f"Invalid schema '{text}': {e.orig_exc}") from e.orig_exc
        raise


def parse_schema(text: str) -> FunctionSchema:
    """Parse a full operator schema string."""
    return _parse(text, "schema")


def parse_type(text: str) -> SchemaType:
    """Parse a single schema type such as ``Tensor?[]`` or ``Dict(str, Tensor)``."""
    return _parse(text, "schema_type").type


def parse_schemas(texts: List[str]) -> List[FunctionSchema]:
    return [parse_schema(text) for text in texts]
