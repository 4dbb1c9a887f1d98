"""Dense output over one accepted step.

An interpolator is handed to step handlers and event states after every
accepted step.  It evaluates the state and derivative at any time,
extrapolating slightly outside the step when asked to.  Handlers must not
keep a reference to the interpolator past :meth:`handle_step` unless they
copy it through :meth:`_StepInterpolator.restrict_step`.

References
----------
Hairer, E.; Norsett, S.; Wanner, G. (1993). "Solving Ordinary Differential
Equations I", section II.6.
"""

import copy
from abc import ABC, abstractmethod
from typing import List, Sequence, Tuple

import numpy as np

from odeon.algorithms.fields.base import linear_combination
from odeon.algorithms.integrators.coefficients.dop853 import A_EXTRA as DOP853_A_EXTRA
from odeon.algorithms.integrators.coefficients.dop853 import B as DOP853_B
from odeon.algorithms.integrators.coefficients.dop853 import C_EXTRA as DOP853_C_EXTRA
from odeon.algorithms.integrators.coefficients.dop853 import D as DOP853_D
from odeon.algorithms.integrators.coefficients.dop853 import \
    D_STAGES as DOP853_D_STAGES
from odeon.algorithms.utils.types import _ODEStateAndDerivative

_DOP853_A_EXTRA = DOP853_A_EXTRA.tolist()
_DOP853_B = DOP853_B.tolist()
_DOP853_C_EXTRA = DOP853_C_EXTRA.tolist()
_DOP853_D = DOP853_D.tolist()


class _StepInterpolator(ABC):
    """Shared bookkeeping of step interpolators.

    Parameters
    ----------
    forward : bool
        Integration direction.
    global_previous, global_current : _ODEStateAndDerivative
        States at both ends of the full step.
    mapper : :class:`~odeon.algorithms.dynamics.expandable._EquationsMapper`
        Mapper splitting complete vectors into primary and secondary blocks.

    Notes
    -----
    The soft bounds returned by :attr:`previous_state` and
    :attr:`current_state` start equal to the global bounds and only change
    in copies made by :meth:`restrict_step`.
    """

    def __init__(self, forward: bool, global_previous: _ODEStateAndDerivative,
                 global_current: _ODEStateAndDerivative, mapper):
        self._forward = forward
        self._global_previous = global_previous
        self._global_current = global_current
        self._soft_previous = global_previous
        self._soft_current = global_current
        self._mapper = mapper
        self._y_previous = mapper.map_state(global_previous)
        self._y_current = mapper.map_state(global_current)

    @property
    def is_forward(self) -> bool:
        return self._forward

    @property
    def previous_state(self) -> _ODEStateAndDerivative:
        return self._soft_previous

    @property
    def current_state(self) -> _ODEStateAndDerivative:
        return self._soft_current

    @property
    def global_previous_state(self) -> _ODEStateAndDerivative:
        return self._global_previous

    @property
    def global_current_state(self) -> _ODEStateAndDerivative:
        return self._global_current

    def restrict_step(self, previous: _ODEStateAndDerivative,
                      current: _ODEStateAndDerivative) -> "_StepInterpolator":
        """Return a copy whose soft bounds are *previous* and *current*."""
        restricted = copy.copy(self)
        restricted._soft_previous = previous
        restricted._soft_current = current
        return restricted

    def get_interpolated_state(self, t: float) -> _ODEStateAndDerivative:
        """State and derivative at time *t*."""
        t0 = self._global_previous.time
        h = self._global_current.time - t0
        theta = 0.0 if h == 0.0 else (t - t0) / h
        y, y_dot = self._compute_interpolated_state(t, theta, h)
        return self._mapper.map_state_and_derivative(t, y, y_dot)

    @abstractmethod
    def _compute_interpolated_state(self, t: float, theta: float, h: float
                                    ) -> Tuple[np.ndarray, np.ndarray]:
        """Return complete state and derivative vectors at *t*.

        *theta* is the normalized position ``(t - t0) / h`` in the global
        step of length *h*.
        """
        pass

    def __repr__(self):
        return (f"{self.__class__.__name__}(t0={self._global_previous.time}, "
                f"t1={self._global_current.time}, forward={self._forward})")


class _RungeKuttaInterpolator(_StepInterpolator):
    """Continuous extension of an explicit Runge-Kutta step.

    Parameters
    ----------
    forward, global_previous, global_current, mapper
        See :class:`_StepInterpolator`.
    k : sequence of numpy.ndarray
        Complete stage derivatives of the step.
    P : sequence of sequence of float
        Dense output table, row ``i`` holding the coefficients of
        ``theta, theta**2, ...`` in the weight ``b_i(theta)`` of stage ``i``.

    Notes
    -----
    The first half of the step is evaluated forward from the previous state
    and the second half backward from the current state, so both ends of
    the step are reproduced exactly.
    """

    def __init__(self, forward, global_previous, global_current, mapper,
                 k: Sequence[np.ndarray], P: Sequence[Sequence[float]]):
        super().__init__(forward, global_previous, global_current, mapper)
        self._k = list(k)
        self._P = P

    def _compute_interpolated_state(self, t, theta, h):
        k = self._k
        rows = self._P[:len(k)]

        if theta <= 0.5:
            coefficients = []
            for row in rows:
                b, power = 0.0, 1.0
                for p in row:
                    b += p * power
                    power *= theta
                coefficients.append(theta * h * b)
            y = self._y_previous + linear_combination(coefficients, k)
        else:
            one_minus_theta_h = (1.0 - theta) * h
            coefficients = []
            for row in rows:
                r, partial, power = 0.0, 0.0, 1.0
                for p in row:
                    partial += power
                    r += p * partial
                    power *= theta
                coefficients.append(-one_minus_theta_h * r)
            y = self._y_current + linear_combination(coefficients, k)

        dot_coefficients = []
        for row in rows:
            d, power = 0.0, 1.0
            for j, p in enumerate(row):
                d += (j + 1) * p * power
                power *= theta
            dot_coefficients.append(d)
        y_dot = linear_combination(dot_coefficients, k)
        return y, y_dot


class _DOP853Interpolator(_StepInterpolator):
    """Seventh-order continuous extension of the Dormand-Prince 8(5,3) step.

    Parameters
    ----------
    forward, global_previous, global_current, mapper
        See :class:`_StepInterpolator`.
    k : sequence of numpy.ndarray
        The 13 complete stage derivatives of the step (last one FSAL).
    h : float
        Signed step size.
    equations : :class:`~odeon.algorithms.dynamics.expandable.ExpandableODE`
        Equations used to evaluate the three extra stages.

    Notes
    -----
    The extra stages are evaluated on first use only and charged to the
    evaluation counter attached to *equations* at that time.  Copies made
    by :meth:`restrict_step` share them.
    """

    def __init__(self, forward, global_previous, global_current, mapper,
                 k: Sequence[np.ndarray], h: float, equations):
        super().__init__(forward, global_previous, global_current, mapper)
        self._k = list(k)
        self._h = h
        self._equations = equations
        self._cache = {}

    def _vectors(self) -> List[np.ndarray]:
        vectors = self._cache.get("v")
        if vectors is not None:
            return vectors

        k = self._k
        t0 = self._global_previous.time
        h = self._h
        extended = list(k)
        for c, row in zip(_DOP853_C_EXTRA, _DOP853_A_EXTRA):
            y_stage = self._y_previous + h * linear_combination(row, extended)
            extended.append(self._equations.compute_derivatives(t0 + c * h, y_stage))

        v0 = linear_combination(_DOP853_B, k)
        v1 = k[0] - v0
        v2 = v0 - v1 - k[12]
        dense_stages = [extended[j] for j in DOP853_D_STAGES]
        vectors = [v0, v1, v2] + [linear_combination(row, dense_stages) for row in _DOP853_D]
        self._cache["v"] = vectors
        return vectors

    def _compute_interpolated_state(self, t, theta, h):
        v0, v1, v2, v3, v4, v5, v6 = self._vectors()
        eta = 1.0 - theta
        two_theta = 2.0 * theta
        theta2 = theta * theta
        dot1 = 1.0 - two_theta
        dot2 = theta * (2.0 - 3.0 * theta)
        dot3 = two_theta * (1.0 + theta * (two_theta - 3.0))
        dot4 = theta2 * (3.0 + theta * (5.0 * theta - 8.0))
        dot5 = theta2 * (3.0 + theta * (-12.0 + theta * (15.0 - 6.0 * theta)))
        dot6 = theta2 * theta * (4.0 + theta * (-15.0 + theta * (18.0 - 7.0 * theta)))

        inner = v3 + theta * (v4 + eta * (v5 + theta * v6))
        if theta <= 0.5:
            y = self._y_previous + theta * h * (v0 + eta * (v1 + theta * (v2 + eta * inner)))
        else:
            y = self._y_current - eta * h * (v0 - theta * (v1 + theta * (v2 + eta * inner)))
        y_dot = linear_combination([1.0, dot1, dot2, dot3, dot4, dot5, dot6],
                                   [v0, v1, v2, v3, v4, v5, v6])
        return y, y_dot
