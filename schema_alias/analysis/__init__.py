"""
Call-site alias analysis built on top of the schema model.
"""

from schema_alias.analysis.alias_maps import AliasMaps, generate_alias_maps
from schema_alias.analysis.classification import SchemaClassification, classify_schema
from schema_alias.analysis.schema_info import SchemaInfo

__all__ = [
    "AliasMaps",
    "generate_alias_maps",
    "SchemaClassification",
    "classify_schema",
    "SchemaInfo",
]
