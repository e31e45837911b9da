"""Flux/derivative evaluation subpackage.

Pointwise flux laws, the compiled RHS kernel and its evaluator, bound
enforcement on committed states and storage accounting.
"""

from .balance import storage_by_component, total_storage
from .bounds import enforce_bounds
from .rhs import DerivativeEvaluator, EvaluationStats

__all__ = [
    "DerivativeEvaluator",
    "EvaluationStats",
    "enforce_bounds",
    "storage_by_component",
    "total_storage",
]
