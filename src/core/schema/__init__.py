"""
Schema inference.

The registry (``src.core.schema.registry``) depends on storage and is
imported from its module directly.
"""

from .classifier import classify
from .column_analyzer import ColumnAnalyzer
from .inference import SchemaInferrer, infer_schema

__all__ = [
    "classify",
    "ColumnAnalyzer",
    "SchemaInferrer",
    "infer_schema",
]
