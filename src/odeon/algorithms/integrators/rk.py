"""Provide explicit Runge-Kutta integrators.

Fixed-step and embedded adaptive variants share a single stage loop.  All
weighted sums of stage derivatives go through
:func:`~odeon.algorithms.fields.base.linear_combination`, so the same code
integrates ``float64`` states and derivative-tracking field states, and the
real part of a field run is bit-for-bit the float run.

References
----------
Hairer, E.; Norsett, S.; Wanner, G. (1993). "Solving Ordinary Differential
Equations I".

Dormand, J. R.; Prince, P. J. (1980). "A family of embedded Runge-Kutta
formulas".

Higham, D. J.; Hall, G. (1990). "Embedded Runge-Kutta formulae with stable
equilibrium states".
"""

from typing import List, Optional

import numpy as np

from odeon.algorithms.dynamics.base import _DynamicalSystem
from odeon.algorithms.fields.base import linear_combination
from odeon.algorithms.integrators.base import _Integrator
from odeon.algorithms.integrators.coefficients import (dop853, dp54, euler,
                                                       gill, hh54, luther,
                                                       midpoint, rk4,
                                                       three_eighths)
from odeon.algorithms.integrators.configs import _StepSizeConfig
from odeon.algorithms.integrators.control import _StepSizeController
from odeon.algorithms.integrators.interpolators import (
    _DOP853Interpolator, _RungeKuttaInterpolator)
from odeon.algorithms.utils.config import (MAX_GROWTH, MIN_REDUCTION, SAFETY,
                                           TOL)


class _RungeKuttaBase(_Integrator):
    """Provide shared functionality of explicit Runge-Kutta schemes.

    Attributes
    ----------
    _C : numpy.ndarray of shape (s,)
        Nodes ``c_i`` in units of the step size, ``c_1 = 0``.
    _A : numpy.ndarray of shape (s, s)
        Strictly lower triangular stage coefficients ``a_ij``.
    _B : numpy.ndarray of shape (s,)
        Weights of the propagated solution.
    _P : numpy.ndarray of shape (s, m)
        Dense output table, see
        :class:`~odeon.algorithms.integrators.interpolators._RungeKuttaInterpolator`.
    _p : int
        Formal order of accuracy.
    _fsal : bool
        True when the last stage is evaluated at the new state and can be
        reused as first stage of the next step.

    Notes
    -----
    The tables are converted once to nested lists of Python floats; the
    stage loop multiplies field elements by plain floats only.
    """

    _C: np.ndarray = None
    _A: np.ndarray = None
    _B: np.ndarray = None
    _P: Optional[np.ndarray] = None
    _p: int = 0
    _fsal: bool = False

    def __init__(self, name: str, **options):
        super().__init__(name, **options)
        s = self._B.size
        self._c = self._C.tolist()
        self._a = [self._A[i, :i].tolist() for i in range(s)]
        self._b = self._B.tolist()
        self._p_rows = None if self._P is None else self._P.tolist()

    @property
    def order(self) -> int:
        return self._p

    @property
    def n_stages(self) -> int:
        return len(self._b)

    def _stages(self, t: float, y: np.ndarray, y_dot: np.ndarray, h: float, f) -> List[np.ndarray]:
        """Return the stage derivatives of a step of size *h* from ``(t, y)``."""
        k = [y_dot]
        for i in range(1, self.n_stages):
            y_stage = y + h * linear_combination(self._a[i], k)
            k.append(f(t + self._c[i] * h, y_stage))
        return k

    def _create_interpolator(self, forward, k, previous, current, h):
        return _RungeKuttaInterpolator(forward, previous, current, self._equations.mapper,
                                       k, self._p_rows)


class _FixedStepRK(_RungeKuttaBase):
    """Explicit Runge-Kutta scheme with a constant step.

    Parameters
    ----------
    step : float
        Step magnitude; its sign is ignored and the direction follows the
        final time.  The last step is shortened to land on the final time.
    **options
        Forwarded to :class:`~odeon.algorithms.integrators.base._Integrator`.
    """

    def __init__(self, name: str, step: float, **options):
        super().__init__(name, **options)
        if not step or not np.isfinite(step):
            raise ValueError(f"Fixed step must be a finite non-zero number, got {step}")
        self.step = abs(float(step))

    def integrate(self, equations, start_state, final_time):
        equations = self._as_expandable(equations)
        self._sanity_checks(equations, start_state, final_time)
        state0 = self._init_integration(equations, start_state, final_time)
        mapper = equations.mapper
        t0 = state0.time
        forward = final_time > t0

        step_start = state0
        if forward:
            h = final_time - t0 if t0 + self.step >= final_time else self.step
        else:
            h = final_time - t0 if t0 - self.step <= final_time else -self.step
        self._step_size = h

        while True:
            t = step_start.time
            y = mapper.map_state(step_start)
            y_dot = mapper.map_derivative(step_start)
            k = self._stages(t, y, y_dot, h, self._compute_derivatives)
            y_end = y + h * linear_combination(self._b, k)

            # land exactly on the final time
            t_end = final_time if h == final_time - t else t + h
            y_dot_end = self._compute_derivatives(t_end, y_end)
            current = mapper.map_state_and_derivative(t_end, y_end, y_dot_end)

            interpolator = self._create_interpolator(forward, k, step_start, current, h)
            step_start = self._accept_step(interpolator, final_time)
            self._step_start = step_start

            if self._is_last_step:
                break
            next_t = step_start.time + h
            if (next_t >= final_time) if forward else (next_t <= final_time):
                h = final_time - step_start.time
            self._step_size = h

        return self._end_integration(step_start)

    def single_step(self, system: _DynamicalSystem, t0: float, y0: np.ndarray, t: float) -> np.ndarray:
        """Take one step from ``(t0, y0)`` to *t* on the primary system only.

        No handlers, events or evaluation budget are involved.
        """
        y0 = np.asarray(y0)
        h = t - t0
        f = system.compute_derivatives
        k = self._stages(t0, y0, np.asarray(f(t0, y0)), h,
                         lambda tt, yy: np.asarray(f(tt, yy)))
        return y0 + h * linear_combination(self._b, k)


class _Euler(_FixedStepRK):
    """Explicit Euler method, order 1, no dense output beyond linear."""

    _C, _A, _B, _P = euler.C, euler.A, euler.B, euler.P
    _p = 1

    def __init__(self, step: float, **opts):
        super().__init__("Euler", step, **opts)


class _Midpoint(_FixedStepRK):
    """Explicit midpoint method, order 2."""

    _C, _A, _B, _P = midpoint.C, midpoint.A, midpoint.B, midpoint.P
    _p = 2

    def __init__(self, step: float, **opts):
        super().__init__("midpoint", step, **opts)


class _ClassicalRK(_FixedStepRK):
    """Implement the classical 4th-order Runge-Kutta method.

    Four stages with weights 1/6, 1/3, 1/3, 1/6. Dense output is a cubic
    in the step fraction built from the stage derivatives.
    """

    _C, _A, _B, _P = rk4.C, rk4.A, rk4.B, rk4.P
    _p = 4

    def __init__(self, step: float, **opts):
        super().__init__("classical Runge-Kutta", step, **opts)


class _Gill(_FixedStepRK):
    """Gill's 4th-order variant of the classical method, designed to limit round-off growth."""

    _C, _A, _B, _P = gill.C, gill.A, gill.B, gill.P
    _p = 4

    def __init__(self, step: float, **opts):
        super().__init__("Gill", step, **opts)


class _ThreeEighths(_FixedStepRK):
    """Kutta's 3/8 rule, order 4."""

    _C, _A, _B, _P = three_eighths.C, three_eighths.A, three_eighths.B, three_eighths.P
    _p = 4

    def __init__(self, step: float, **opts):
        super().__init__("3/8", step, **opts)


class _Luther(_FixedStepRK):
    """Implement Luther's 6th-order Runge-Kutta method.

    Seven stages with nodes involving ``sqrt(21)``; the most accurate of
    the fixed-step schemes at the cost of more function evaluations per
    step.
    """

    _C, _A, _B, _P = luther.C, luther.A, luther.B, luther.P
    _p = 6

    def __init__(self, step: float, **opts):
        super().__init__("Luther", step, **opts)


class _EmbeddedRK(_RungeKuttaBase):
    """Implement an embedded adaptive Runge-Kutta integrator.

    Parameters
    ----------
    name : str
        Identifier passed to the :class:`~odeon.algorithms.integrators.base._Integrator` base class.
    min_step : float, default 0.0
        Lower bound on the step magnitude.  Steps that would have to be
        smaller raise :class:`~odeon.algorithms.utils.exceptions.MinStepSizeError`.
    max_step : float, default inf
        Upper bound on the step magnitude.
    rtol, atol : float or array_like, optional
        Relative and absolute tolerances, scalar or one value per primary
        component.  Defaults are read from :data:`~odeon.algorithms.utils.config.TOL`.
    initial_step : float, optional
        First step magnitude; chosen automatically when omitted.
    safety, min_reduction, max_growth : float, optional
        Controller factors, defaults 0.9, 0.2 and 10.
    pi_alpha : float, default 0.0
        Exponent of the previous error in the PI controller.

    Notes
    -----
    Rejected steps are retried silently with a smaller step.
    """

    def __init__(self, name: str,
                 min_step: float = 0.0,
                 max_step: float = np.inf,
                 rtol=TOL,
                 atol=TOL,
                 initial_step: Optional[float] = None,
                 safety: float = SAFETY,
                 min_reduction: float = MIN_REDUCTION,
                 max_growth: float = MAX_GROWTH,
                 pi_alpha: float = 0.0,
                 **options):
        super().__init__(name, **options)
        self.step_config = _StepSizeConfig(
            min_step=min_step, max_step=max_step, abs_tol=atol, rel_tol=rtol,
            safety=safety, min_reduction=min_reduction, max_growth=max_growth,
            initial_step=initial_step, pi_alpha=pi_alpha,
        )
        self._controller = _StepSizeController(self.step_config, self._p)

    @property
    def controller(self) -> _StepSizeController:
        return self._controller

    def _estimate_error(self, k, y0, y1, h) -> float:
        err = h * linear_combination(self._e, k)
        return self._controller.error_ratio(err, y0, y1)

    def integrate(self, equations, start_state, final_time):
        equations = self._as_expandable(equations)
        self._sanity_checks(equations, start_state, final_time)
        self._controller.set_dimension(equations.primary.dim)
        state0 = self._init_integration(equations, start_state, final_time)
        mapper = equations.mapper
        controller = self._controller
        forward = final_time > state0.time

        step_start = state0
        first_time = True
        h = 0.0

        while True:
            t = step_start.time
            y = mapper.map_state(step_start)
            y_dot = mapper.map_derivative(step_start)

            error = 10.0
            while error >= 1.0:
                if first_time:
                    h = controller.initialize_step(forward, t, y, y_dot, self._compute_derivatives)
                    first_time = False

                if forward:
                    if t + h >= final_time:
                        h = final_time - t
                elif t + h <= final_time:
                    h = final_time - t
                self._step_size = h

                k = self._stages(t, y, y_dot, h, self._compute_derivatives)
                y_new = y + h * linear_combination(self._b, k)
                error = self._estimate_error(k, y, y_new, h)
                if error >= 1.0:
                    h = controller.reject(h, error, forward)

            t_new = final_time if h == final_time - t else t + h
            if self._fsal:
                y_dot_new = k[-1]
            else:
                y_dot_new = self._compute_derivatives(t_new, y_new)
            current = mapper.map_state_and_derivative(t_new, y_new, y_dot_new)

            interpolator = self._create_interpolator(forward, k, step_start, current, h)
            step_start = self._accept_step(interpolator, final_time)
            self._step_start = step_start

            if self._is_last_step:
                break
            h = controller.next_step(h, error, step_start.time, final_time, forward)

        return self._end_integration(step_start)


class _HighamHall54(_EmbeddedRK):
    """Higham-Hall 5(4) pair with continuous 4th-order dense output."""

    _C, _A, _B, _P = hh54.C, hh54.A, hh54.B, hh54.P
    _p = 5
    _fsal = False

    def __init__(self, **opts):
        self._e = hh54.E.tolist()
        super().__init__("Higham-Hall 5(4)", **opts)


class _DormandPrince54(_EmbeddedRK):
    """Implement the Dormand-Prince 5(4) adaptive Runge-Kutta method.

    Seven stages, the last evaluated at the new state so it doubles as the
    first stage of the next step. The step advances with the 5th-order
    weights and the 4th-order companion drives the error estimate.
    """

    _C, _A, _B, _P = dp54.C, dp54.A, dp54.B, dp54.P
    _p = 5
    _fsal = True

    def __init__(self, **opts):
        self._e = dp54.E.tolist()
        super().__init__("Dormand-Prince 5(4)", **opts)


class _DOP853(_EmbeddedRK):
    """Implement the Dormand-Prince 8(5,3) adaptive Runge-Kutta method.

    Twelve stages plus the derivative at the new state, advancing with the
    8th-order weights. The error estimate blends the 5th- and 3rd-order
    companions. Three extra stages are evaluated lazily for the 7th-order
    dense output.
    """

    _C, _A, _B = dop853.C, dop853.A, dop853.B
    _p = 8
    _fsal = True

    def __init__(self, **opts):
        self._e5 = dop853.E5.tolist()
        self._e3 = dop853.E3.tolist()
        super().__init__("Dormand-Prince 8 (5, 3)", **opts)

    def _estimate_error(self, k, y0, y1, h):
        err5 = linear_combination(self._e5, k)
        err3 = linear_combination(self._e3, k)
        return self._controller.dop853_error_ratio(err5, err3, y0, y1, h)

    def _create_interpolator(self, forward, k, previous, current, h):
        return _DOP853Interpolator(forward, previous, current, self._equations.mapper,
                                   k, h, self._equations)


class RungeKutta:
    """Implement a factory class for creating fixed-step Runge-Kutta integrators.

    The available orders are 1 (Euler), 2 (midpoint), 4 (classical) and 6
    (Luther).  Gill and 3/8 are available directly as
    :class:`_Gill` and :class:`_ThreeEighths`.

    Examples
    --------
    >>> rk4 = RungeKutta(order=4, step=0.01)
    >>> luther = RungeKutta(order=6, step=0.05)
    """
    _map = {1: _Euler, 2: _Midpoint, 4: _ClassicalRK, 6: _Luther}

    def __new__(cls, order=4, **opts):
        """Create a fixed-step Runge-Kutta integrator of specified order.

        Parameters
        ----------
        order : int, default 4
            Order of the Runge-Kutta method. Must be 1, 2, 4 or 6.
        **opts
            Additional options passed to the integrator constructor,
            ``step`` is required.

        Returns
        -------
        :class:`~odeon.algorithms.integrators.rk._FixedStepRK`
            Fixed-step integrator for the requested order.

        Raises
        ------
        ValueError
            If the specified order is not supported.
        """
        if order not in cls._map:
            raise ValueError("RK order must be 1, 2, 4, or 6")
        return cls._map[order](**opts)


class AdaptiveRK:
    """Implement a factory class for creating adaptive step-size Runge-Kutta integrators.

    The available orders are 5 (Dormand-Prince 5(4)) and 8 (Dormand-Prince
    8(5,3)).  Higham-Hall 5(4) is available directly as :class:`_HighamHall54`.

    Examples
    --------
    >>> dp54 = AdaptiveRK(order=5, rtol=1e-8, atol=1e-8)
    >>> dop853 = AdaptiveRK(order=8)
    """
    _map = {5: _DormandPrince54, 8: _DOP853}

    def __new__(cls, order=5, **opts):
        """Create an adaptive step-size Runge-Kutta integrator of specified order.

        Parameters
        ----------
        order : int, default 5
            Propagation order, 5 or 8.
        **opts
            Additional options passed to the integrator constructor.

        Returns
        -------
        :class:`~odeon.algorithms.integrators.rk._EmbeddedRK`
            Embedded integrator for the requested order.

        Raises
        ------
        ValueError
            If the specified order is not supported.
        """
        if order not in cls._map:
            raise ValueError("Adaptive RK order not supported")
        return cls._map[order](**opts)
