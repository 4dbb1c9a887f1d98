"""Numeric traits for the generic integrators.

:class:`RealField` runs the algorithms on ``float64`` arrays and
:class:`GradientField` on arrays of :class:`Gradient` elements that carry
first-order sensitivities alongside their value.
"""

from .base import RealField, _Field, infer_field, linear_combination
from .gradient import Gradient, GradientField

__all__ = [
    "RealField",
    "GradientField",
    "Gradient",
    "infer_field",
    "linear_combination",
    "_Field",
]
