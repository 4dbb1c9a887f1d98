from .base import _DynamicalSystem, _DynamicalSystemProtocol
from .expandable import (ExpandableODE, SecondaryEquations, _EquationsMapper,
                         _EvaluationCounter)
from .rhs import RHSSystem, create_rhs_system
from .variational import VariationalEquations

__all__ = [
    "_DynamicalSystem",
    "_DynamicalSystemProtocol",
    "ExpandableODE",
    "SecondaryEquations",
    "_EquationsMapper",
    "_EvaluationCounter",
    "RHSSystem",
    "create_rhs_system",
    "VariationalEquations",
]
