from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np

from odeon.algorithms.utils.config import (EVENT_CONVERGENCE, EVENT_MAX_CHECK,
                                           EVENT_MAX_ITER, MAX_GROWTH,
                                           MIN_REDUCTION, SAFETY)


@dataclass(frozen=True)
class _EventConfig:
    """Configuration of the detection of one event handler.

    Parameters
    ----------
    max_check_interval : float, default EVENT_MAX_CHECK
        Largest time interval between two sign checks of ``g``.  Steps
        longer than this are split into equal substeps.
    convergence : float, default EVENT_CONVERGENCE
        Absolute time tolerance of the root location.  Steps shorter than
        this never trigger an event.
    max_iteration_count : int, default EVENT_MAX_ITER
        Maximum number of ``g`` evaluations of the root solver.
    """

    max_check_interval: float = EVENT_MAX_CHECK
    convergence: float = EVENT_CONVERGENCE
    max_iteration_count: int = EVENT_MAX_ITER

    def __post_init__(self):
        if not self.max_check_interval > 0.0:
            raise ValueError(f"max_check_interval must be positive, got {self.max_check_interval}")
        if not self.convergence > 0.0:
            raise ValueError(f"convergence must be positive, got {self.convergence}")
        if self.max_iteration_count < 1:
            raise ValueError(f"max_iteration_count must be at least 1, got {self.max_iteration_count}")


@dataclass(frozen=True)
class _StepSizeConfig:
    """Bounds, tolerances and factors of adaptive step-size control.

    Parameters
    ----------
    min_step, max_step : float
        Bounds on the step magnitude.
    abs_tol, rel_tol : float or sequence of float
        Absolute and relative tolerances, scalar or one value per primary
        state component.
    safety : float, default 0.9
        Safety factor applied to the optimal step.
    min_reduction : float, default 0.2
        Smallest factor by which a step may be shrunk.
    max_growth : float, default 10.0
        Largest factor by which a step may be grown.
    initial_step : float or None, default None
        User supplied first step magnitude; ``None`` selects it automatically.
    pi_alpha : float, default 0.0
        Exponent of the previous error ratio in the PI controller, ``0`` for
        pure I control.
    """

    min_step: float
    max_step: float
    abs_tol: Union[float, Sequence[float]]
    rel_tol: Union[float, Sequence[float]]
    safety: float = SAFETY
    min_reduction: float = MIN_REDUCTION
    max_growth: float = MAX_GROWTH
    initial_step: Optional[float] = None
    pi_alpha: float = 0.0

    def __post_init__(self):
        min_step = abs(float(self.min_step))
        max_step = abs(float(self.max_step))
        if min_step > max_step:
            raise ValueError(f"min_step ({min_step}) must not exceed max_step ({max_step})")
        object.__setattr__(self, "min_step", min_step)
        object.__setattr__(self, "max_step", max_step)
        for name in ("abs_tol", "rel_tol"):
            value = getattr(self, name)
            if np.ndim(value) > 0:
                arr = np.array(value, dtype=np.float64)
                arr.setflags(write=False)
                object.__setattr__(self, name, arr)
            else:
                object.__setattr__(self, name, float(value))

    @property
    def is_vector_tolerance(self) -> bool:
        return np.ndim(self.abs_tol) > 0 or np.ndim(self.rel_tol) > 0
