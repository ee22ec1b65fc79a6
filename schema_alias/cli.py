#!/usr/bin/env python3
"""
CLI entrypoint for schema-alias.

Usage:
    schema-alias "aten::add_.Tensor(Tensor(a!) self, Tensor other, *, Scalar alpha=1) -> Tensor(a!)"
    schema-alias SCHEMA --bind self=@t --bind other=@t       # both share storage t
    schema-alias SCHEMA --bind "tensors=[@a, @b]" --json
    schema-alias SCHEMA --bind training=false --config .schema-alias.yml

Bound values:
    true / false / none     booleans and None
    3, -1, 0.5, 1e-5        numbers
    @name                   a tensor; every @name with the same name shares storage
    [v, v, ...]             a list

Returns:
    0: the call cannot mutate any input
    1: the call may mutate an input
    3: Error
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from lark import Lark, Transformer, v_args
from lark.exceptions import UnexpectedInput

from .analysis.schema_info import SchemaInfo
from .analysis.special_cases import get_training_ops
from .config import SchemaAliasConfig
from .registry import OperatorRegistry, register_builtin_operators
from .schema.model import SchemaArgument
from .schema.parser import SchemaParseError, parse_schema
from .values import Storage, Tensor


logger = logging.getLogger(__name__)


# =============================================================================
# BOUND VALUE SYNTAX
# =============================================================================

_VALUE_GRAMMAR = r"""
    ?value: "true"                      -> true
          | "false"                     -> false
          | "none"                      -> none
          | SIGNED_NUMBER               -> number
          | "@" LABEL                   -> tensor
          | "[" (value ("," value)*)? "]" -> list

    LABEL: /[A-Za-z0-9_]+/

    %import common.SIGNED_NUMBER
    %import common.WS
    %ignore WS
"""

_value_parser: Optional[Lark] = None


def _get_value_parser() -> Lark:
    global _value_parser
    if _value_parser is None:
        _value_parser = Lark(_VALUE_GRAMMAR, start="value", parser="earley")
    return _value_parser


@v_args(inline=True)
class _ValueBuilder(Transformer):
    """Builds Python values; tensors with the same label share one Storage."""

    def __init__(self):
        super().__init__()
        self.storages: Dict[str, Storage] = {}

    def true(self):
        return True

    def false(self):
        return False

    def none(self):
        return None

    def number(self, token):
        text = str(token)
        if any(c in text for c in ".eE"):
            return float(text)
        return int(text)

    def tensor(self, label):
        label = str(label)
        storage = self.storages.setdefault(label, Storage(label))
        return Tensor(storage, label=label)

    def list(self, *items):
        return list(items)


def parse_bindings(bindings: List[str]) -> Dict[str, Any]:
    """Parse ``NAME=VALUE`` strings into a name -> value mapping."""
    builder = _ValueBuilder()
    values: Dict[str, Any] = {}
    for binding in bindings:
        name, sep, text = binding.partition("=")
        name = name.strip()
        if not sep or not name:
            raise ValueError(f"Expected NAME=VALUE, got {binding!r}")
        try:
            tree = _get_value_parser().parse(text)
        except UnexpectedInput as e:
            raise ValueError(f"Cannot parse value for {name}: {text!r} (column {e.column})") from e
        values[name] = builder.transform(tree)
    return values


# =============================================================================
# REPORT
# =============================================================================

def _all_references(info: SchemaInfo) -> List[Tuple[SchemaArgument, str]]:
    refs = []
    for i, argument in enumerate(info.schema.arguments):
        refs.append((SchemaArgument.input(i), argument.name))
    for j, ret in enumerate(info.schema.returns):
        refs.append((SchemaArgument.output(j), ret.name or f"output[{j}]"))
    return refs


def build_report(info: SchemaInfo) -> Dict[str, Any]:
    """Collect every query result for one schema + bindings."""
    refs = _all_references(info)
    alias_pairs = []
    contain_pairs = []
    for a, (lhs, lhs_name) in enumerate(refs):
        for rhs, rhs_name in refs[a + 1:]:
            if info.may_alias(lhs, rhs):
                alias_pairs.append([lhs_name, rhs_name])
            elif info.may_contain_alias(lhs, rhs):
                contain_pairs.append([lhs_name, rhs_name])

    return {
        "schema": str(info.schema),
        "bound": sorted(info.value_map),
        "mutable": {
            argument.name: info.is_mutable(SchemaArgument.input(i))
            for i, argument in enumerate(info.schema.arguments)
        },
        "is_mutable": info.is_mutable(),
        "may_alias": alias_pairs,
        "may_contain_alias": contain_pairs,
        "wildcards": sorted(str(ref) for ref in info.wildcard_set),
        "is_nondeterministic": info.is_nondeterministic(),
    }


def _print_report(report: Dict[str, Any]) -> None:
    print(report["schema"])
    if report["bound"]:
        print(f"Bound: {', '.join(report['bound'])}")
    print()
    print("Mutable inputs:")
    for name, mutable in report["mutable"].items():
        print(f"  {name}: {'yes' if mutable else 'no'}")
    if report["may_alias"]:
        print("May alias:")
        for lhs, rhs in report["may_alias"]:
            print(f"  {lhs} <-> {rhs}")
    if report["may_contain_alias"]:
        print("May contain alias:")
        for lhs, rhs in report["may_contain_alias"]:
            print(f"  {lhs} <-> {rhs}")
    if report["wildcards"]:
        print(f"Wildcards: {', '.join(report['wildcards'])}")
    print(f"Non-deterministic: {'yes' if report['is_nondeterministic'] else 'no'}")


# =============================================================================
# ENTRY POINT
# =============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="schema-alias",
        description="Alias and mutability analysis for operator schemas",
    )
    parser.add_argument("schema", help="Operator schema string")
    parser.add_argument(
        "--bind", action="append", default=[], metavar="NAME=VALUE",
        help="Bind a value to an input argument (repeatable)",
    )
    parser.add_argument(
        "--config", type=Path, default=None,
        help="Path to .schema-alias.yml config file (default: auto-detect in cwd)",
    )
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    parser.add_argument("--verbose", action="store_true", help="Verbose output")
    args = parser.parse_args(argv)

    try:
        config = SchemaAliasConfig.load(args.config)
    except (OSError, yaml.YAMLError, ValueError) as e:
        print(f"Error: cannot load config: {e}", file=sys.stderr)
        return 3

    if args.verbose or config.analysis.verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)

    try:
        registry = OperatorRegistry()
        register_builtin_operators(registry)
        config.apply_to_registry(registry)
        training_ops = get_training_ops() + tuple(config.training_op_schemas())

        schema = parse_schema(args.schema)
        info = SchemaInfo(schema, registry=registry, training_ops=training_ops)
        info.add_argument_values(parse_bindings(args.bind))
        report = build_report(info)
    except SchemaParseError as e:
        print(f"Error: invalid schema: {e}", file=sys.stderr)
        return 3
    except (ValueError, TypeError, IndexError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 3

    if args.json:
        print(json.dumps(report, indent=2))
    else:
        _print_report(report)

    logger.debug(f"{schema.operator_name}: is_mutable={report['is_mutable']}")
    return 1 if report["is_mutable"] else 0


if __name__ == "__main__":
    sys.exit(main())
