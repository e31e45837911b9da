"""Mesh and topology subpackage.

Static, validated description of the elements and channel segments.
"""

from .topology import downstream_order, jacobian_sparsity, validate_topology
from .types import Elements, Mesh, Segments

__all__ = [
    "Elements",
    "Mesh",
    "Segments",
    "downstream_order",
    "jacobian_sparsity",
    "validate_topology",
]
