"""Explicit one-step and multistep integrators.

Fixed-step Runge-Kutta schemes come from :class:`RungeKutta`, embedded
adaptive pairs from :class:`AdaptiveRK` and Adams multistep methods from
:class:`Adams`.  Every integrator accepts ``float64`` states and field
states (see :mod:`~odeon.algorithms.fields`).

Examples
--------
>>> import numpy as np
>>> from odeon.algorithms.dynamics import create_rhs_system
>>> from odeon.algorithms.integrators import AdaptiveRK
>>> system = create_rhs_system(lambda t, y: -y, dim=1)
>>> sol = AdaptiveRK(order=8).propagate(system, np.array([1.0]), np.linspace(0, 1, 11))
"""

from .adams import Adams
from .adams import _AdamsBashforth as AdamsBashforth
from .adams import _AdamsMoulton as AdamsMoulton
from .base import _Integrator
from .configs import _EventConfig as EventConfig
from .configs import _StepSizeConfig as StepSizeConfig
from .events import Action, EventHandler, FunctionEventHandler
from .rk import AdaptiveRK, RungeKutta
from .rk import _ClassicalRK as ClassicalRungeKutta
from .rk import _DOP853 as DormandPrince853
from .rk import _DormandPrince54 as DormandPrince54
from .rk import _Euler as Euler
from .rk import _Gill as Gill
from .rk import _HighamHall54 as HighamHall54
from .rk import _Luther as Luther
from .rk import _Midpoint as Midpoint
from .rk import _ThreeEighths as ThreeEighths
from .sampling import (DenseOutputModel, FixedStepHandler, StepHandler,
                       StepNormalizer, StepNormalizerBounds,
                       StepNormalizerMode)
from .solvers import AllowedSolution
from .solvers import _BracketingSolver as BracketingSolver
from .solvers import _SecantMethod as SecantMethod
from .types import _Solution as Solution

__all__ = [
    "RungeKutta",
    "AdaptiveRK",
    "Adams",
    "Euler",
    "Midpoint",
    "ClassicalRungeKutta",
    "Gill",
    "ThreeEighths",
    "Luther",
    "HighamHall54",
    "DormandPrince54",
    "DormandPrince853",
    "AdamsBashforth",
    "AdamsMoulton",
    "EventConfig",
    "StepSizeConfig",
    "Action",
    "EventHandler",
    "FunctionEventHandler",
    "StepHandler",
    "FixedStepHandler",
    "StepNormalizer",
    "StepNormalizerMode",
    "StepNormalizerBounds",
    "DenseOutputModel",
    "AllowedSolution",
    "BracketingSolver",
    "SecantMethod",
    "Solution",
    "_Integrator",
]
