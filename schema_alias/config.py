"""
Configuration file loader for ``.schema-alias.yml``.

Provides defaults so the tool works without a config file, while allowing
a project to declare its own flag-dependent training ops and its own
non-deterministic operators.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from .registry import OperatorRegistry, Tag, get_global_registry
from .schema.model import FunctionSchema
from .schema.parser import parse_schemas


logger = logging.getLogger(__name__)

CONFIG_FILE_NAMES = (".schema-alias.yml", ".schema-alias.yaml")


def _get(raw: dict[str, Any], key: str, default: Any) -> Any:
    """Look up ``key`` spelled with dashes or underscores."""
    if key in raw:
        return raw[key]
    return raw.get(key.replace("-", "_"), default)


@dataclass
class AnalysisConfig:
    extra_training_ops: list[str] = field(default_factory=list)
    nondeterministic_ops: list[str] = field(default_factory=list)
    verbose: bool = False


@dataclass
class SchemaAliasConfig:
    """Top-level configuration for schema-alias."""
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)

    @classmethod
    def load(cls, path: Optional[Path] = None, search_dir: Optional[Path] = None) -> "SchemaAliasConfig":
        """
        Load config from ``path``, or from the first config file found in
        ``search_dir`` (cwd by default), falling back to defaults.
        """
        if path is None:
            search_dir = search_dir if search_dir is not None else Path.cwd()
            for name in CONFIG_FILE_NAMES:
                candidate = search_dir / name
                if candidate.exists():
                    path = candidate
                    break
            else:
                return cls()

        logger.debug(f"Loading config from {path}")
        with open(path) as f:
            raw = yaml.safe_load(f) or {}

        if not isinstance(raw, dict):
            raise ValueError(f"{path}: expected a mapping at top level, got {type(raw).__name__}")
        return cls._from_dict(raw)

    @classmethod
    def _from_dict(cls, raw: dict[str, Any]) -> "SchemaAliasConfig":
        analysis_raw = raw.get("analysis") or {}

        extra_training_ops = _get(analysis_raw, "extra-training-ops", [])
        nondeterministic_ops = _get(analysis_raw, "nondeterministic-ops", [])
        verbose = _get(analysis_raw, "verbose", False)

        for key, value in (
            ("extra-training-ops", extra_training_ops),
            ("nondeterministic-ops", nondeterministic_ops),
        ):
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ValueError(f"analysis.{key} must be a list of strings")
        if not isinstance(verbose, bool):
            raise ValueError(f"analysis.verbose must be true or false, got {verbose!r}")

        analysis = AnalysisConfig(
            extra_training_ops=list(extra_training_ops),
            nondeterministic_ops=list(nondeterministic_ops),
            verbose=verbose,
        )
        return cls(analysis=analysis)

    def training_op_schemas(self) -> list[FunctionSchema]:
        return parse_schemas(self.analysis.extra_training_ops)

    def apply_to_registry(self, registry: Optional[OperatorRegistry] = None) -> OperatorRegistry:
        """Tag the configured operators as non-deterministic."""
        registry = registry if registry is not None else get_global_registry()
        for qualified_name in self.analysis.nondeterministic_ops:
            registry.register_qualified(qualified_name, (Tag.NONDETERMINISTIC_SEEDED,))
        return registry

    def to_yaml(self) -> str:
        """Serialise to YAML string."""
        lines = [
            "# .schema-alias.yml",
            "",
            "analysis:",
            f"  verbose: {str(self.analysis.verbose).lower()}",
        ]
        for key, values in (
            ("extra-training-ops", self.analysis.extra_training_ops),
            ("nondeterministic-ops", self.analysis.nondeterministic_ops),
        ):
            if not values:
                lines.append(f"  {key}: []")
                continue
            lines.append(f"  {key}:")
            for value in values:
                # single-quoted YAML: schema defaults may contain double quotes
                quoted = value.replace("'", "''")
                lines.append(f"    - '{quoted}'")
        lines.append("")
        return "\n".join(lines)
