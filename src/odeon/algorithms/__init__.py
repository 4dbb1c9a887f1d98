""" Public API for the :mod:`~odeon.algorithms` package.
"""

from .dynamics import (ExpandableODE, SecondaryEquations,
                       VariationalEquations, create_rhs_system)
from .fields import Gradient, GradientField, RealField
from .integrators import (Action, Adams, AdaptiveRK, DenseOutputModel,
                          EventHandler, FunctionEventHandler, RungeKutta,
                          StepHandler, StepNormalizer)
from .utils.exceptions import (ConvergenceError, DimensionMismatchError,
                               IllegalStateError, MaxCountExceededError,
                               MinStepSizeError, NoBracketingError,
                               NumberIsTooSmallError, OdeonError)
from .utils.types import _ODEState as ODEState
from .utils.types import _ODEStateAndDerivative as ODEStateAndDerivative

__all__ = [
    "ExpandableODE",
    "SecondaryEquations",
    "VariationalEquations",
    "create_rhs_system",
    "Gradient",
    "GradientField",
    "RealField",
    "RungeKutta",
    "AdaptiveRK",
    "Adams",
    "Action",
    "EventHandler",
    "FunctionEventHandler",
    "StepHandler",
    "StepNormalizer",
    "DenseOutputModel",
    "ODEState",
    "ODEStateAndDerivative",
    "OdeonError",
    "DimensionMismatchError",
    "NumberIsTooSmallError",
    "MaxCountExceededError",
    "ConvergenceError",
    "NoBracketingError",
    "MinStepSizeError",
    "IllegalStateError",
]
