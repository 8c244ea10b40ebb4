"""
app/mappers package marker.
"""

from app.mappers.content_rules import CONTENT_RULES, ContentRule, FieldSpec, FieldType, get_rule
from app.mappers.field_normalizer import ColumnResolution, FieldNormalizer
from app.mappers.schema_classifier import SchemaClassifier

__all__ = [
    "CONTENT_RULES",
    "ColumnResolution",
    "ContentRule",
    "FieldNormalizer",
    "FieldSpec",
    "FieldType",
    "SchemaClassifier",
    "get_rule",
]
