"""Operator contract, registry and built-in rhythmic operators."""

from groove.operators.base import FAMILY_TAGS, IOperator, OperatorFamily
from groove.operators.registry import OperatorRegistry, build_default_registry

__all__ = [
    "FAMILY_TAGS",
    "IOperator",
    "OperatorFamily",
    "OperatorRegistry",
    "build_default_registry",
]
