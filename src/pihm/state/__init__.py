"""State vector subpackage.

Layout of the flat ODE state and its named counterpart.
"""

from .layout import ELEMENT_QUANTITIES, SEGMENT_QUANTITIES, Quantity, StateLayout
from .types import State

__all__ = [
    "ELEMENT_QUANTITIES",
    "SEGMENT_QUANTITIES",
    "Quantity",
    "State",
    "StateLayout",
]
