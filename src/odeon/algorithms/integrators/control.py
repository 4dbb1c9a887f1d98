"""Adaptive step-size control shared by embedded Runge-Kutta and Adams methods.

The controller works on real parts only: error ratios of field states are
computed from the real parts of the field elements, so the float and field
instantiations of an integrator select exactly the same steps.

References
----------
Hairer, E.; Norsett, S.; Wanner, G. (1993). "Solving Ordinary Differential
Equations I", section II.4.
"""

import math
from typing import Callable, Optional

import numba
import numpy as np

from odeon.algorithms.integrators.configs import _StepSizeConfig
from odeon.algorithms.utils.config import FASTMATH
from odeon.algorithms.utils.exceptions import (DimensionMismatchError,
                                               MinStepSizeError)


@numba.njit(cache=False, fastmath=FASTMATH)
def _scaled_rms_kernel(err, y0, y1, atol, rtol):
    n = err.size
    acc = 0.0
    for i in range(n):
        tol = atol[i] + rtol[i] * max(abs(y0[i]), abs(y1[i]))
        r = err[i] / tol
        acc += r * r
    return np.sqrt(acc / n)


@numba.njit(cache=False, fastmath=FASTMATH)
def _dop853_error_kernel(err5, err3, y0, y1, atol, rtol, h):
    n = err5.size
    error1 = 0.0
    error2 = 0.0
    for i in range(n):
        tol = atol[i] + rtol[i] * max(abs(y0[i]), abs(y1[i]))
        r5 = err5[i] / tol
        r3 = err3[i] / tol
        error1 += r5 * r5
        error2 += r3 * r3
    den = error1 + 0.01 * error2
    if den <= 0.0:
        den = 1.0
    return abs(h) * error1 / np.sqrt(n * den)


def _real(values) -> np.ndarray:
    arr = np.asarray(values)
    if arr.dtype == object:
        return np.array([float(v) for v in arr], dtype=np.float64)
    return np.asarray(arr, dtype=np.float64)


class _StepSizeController:
    """Accept/reject decisions and step-size proposals.

    Parameters
    ----------
    config : _StepSizeConfig
        Bounds, tolerances and factors.
    order : int
        Order ``q`` entering the exponent ``-1/(q+1)`` of the step factor.
    on_step_size_change : callable, optional
        ``hook(old, new)`` called by :meth:`commit` whenever the integrator
        adopts a new step size.

    Notes
    -----
    :meth:`set_dimension` must be called once the primary dimension is
    known; it expands scalar tolerances and validates vector ones.
    """

    def __init__(self, config: _StepSizeConfig, order: int,
                 on_step_size_change: Optional[Callable[[float, float], None]] = None):
        self.config = config
        self.order = order
        self.on_step_size_change = on_step_size_change
        self._exponent = -1.0 / (order + 1)
        self._atol = None
        self._rtol = None
        self._previous_error = None

    @property
    def min_step(self) -> float:
        return self.config.min_step

    @property
    def max_step(self) -> float:
        return self.config.max_step

    def set_dimension(self, n: int) -> None:
        """Prepare tolerance vectors for a primary state of dimension *n*.

        Raises
        ------
        :class:`~odeon.algorithms.utils.exceptions.DimensionMismatchError`
            If a vector tolerance does not have *n* components.
        """
        tolerances = []
        for name, value in (("Absolute tolerance", self.config.abs_tol),
                            ("Relative tolerance", self.config.rel_tol)):
            if np.ndim(value) > 0:
                if len(value) != n:
                    raise DimensionMismatchError(name, len(value), n)
                tolerances.append(np.array(value, dtype=np.float64))
            else:
                tolerances.append(np.full(n, float(value)))
        self._atol, self._rtol = tolerances
        self._previous_error = None

    def scale(self, y) -> np.ndarray:
        """Per-component tolerance ``atol + rtol * |y|`` on the primary block."""
        y = _real(y)[:self._atol.size]
        return self._atol + self._rtol * np.abs(y)

    def error_ratio(self, err, y0, y1) -> float:
        """Weighted RMS of ``err / (atol + rtol * max(|y0|, |y1|))`` over the primary block."""
        n = self._atol.size
        return _scaled_rms_kernel(_real(err)[:n], _real(y0)[:n], _real(y1)[:n],
                                  self._atol, self._rtol)

    def dop853_error_ratio(self, err5, err3, y0, y1, h: float) -> float:
        """Combined 5th/3rd order error measure of Dormand-Prince 8(5,3)."""
        n = self._atol.size
        return _dop853_error_kernel(_real(err5)[:n], _real(err3)[:n], _real(y0)[:n],
                                    _real(y1)[:n], self._atol, self._rtol, h)

    def factor(self, error: float) -> float:
        """Step multiplier ``min(max_growth, max(min_reduction, safety * error**exp))``."""
        cfg = self.config
        if error == 0.0:
            return cfg.max_growth
        return min(cfg.max_growth, max(cfg.min_reduction, cfg.safety * error ** self._exponent))

    def filter_step(self, h: float, forward: bool, accept_small: bool) -> float:
        """Clamp *h* to ``[min_step, max_step]`` keeping the integration direction.

        Raises
        ------
        :class:`~odeon.algorithms.utils.exceptions.MinStepSizeError`
            If ``|h| < min_step`` and *accept_small* is False.
        """
        filtered = h
        if abs(h) < self.min_step:
            if not accept_small:
                raise MinStepSizeError(abs(h), self.min_step)
            filtered = self.min_step if forward else -self.min_step
        if filtered > self.max_step:
            filtered = self.max_step
        elif filtered < -self.max_step:
            filtered = -self.max_step
        return filtered

    def reject(self, h: float, error: float, forward: bool) -> float:
        """Smaller step to retry with after a rejected step."""
        return self.filter_step(h * self.factor(error), forward, False)

    def next_step(self, h: float, error: float, t: float, t_end: float, forward: bool) -> float:
        """Step to use after an accepted step ending at *t*, snapped to *t_end*."""
        fac = self.factor(error)
        if self.config.pi_alpha and self._previous_error is not None and error > 0.0:
            cfg = self.config
            fac *= self._previous_error ** self.config.pi_alpha
            fac = min(cfg.max_growth, max(cfg.min_reduction, fac))
        if error > 0.0:
            self._previous_error = error

        scaled = h * fac
        next_t = t + scaled
        next_is_last = next_t >= t_end if forward else next_t <= t_end
        h_new = self.filter_step(scaled, forward, next_is_last)

        filtered_next_t = t + h_new
        if (filtered_next_t >= t_end) if forward else (filtered_next_t <= t_end):
            h_new = t_end - t
        return h_new

    def commit(self, old: float, new: float) -> float:
        """Adopt *new* as step size, notifying :attr:`on_step_size_change`."""
        if self.on_step_size_change is not None and new != old:
            self.on_step_size_change(old, new)
        return new

    def initialize_step(self, forward: bool, t0: float, y0, y_dot0,
                        compute_derivatives: Callable) -> float:
        """Select the first step.

        A user supplied ``initial_step`` wins.  Otherwise one explicit Euler
        trial step estimates the second derivative and the step is chosen
        so that ``h**order * max(|y'|, |y''|)`` is about ``0.01`` in scaled
        units.
        """
        cfg = self.config
        if cfg.initial_step is not None and cfg.initial_step > 0.0:
            return cfg.initial_step if forward else -cfg.initial_step

        n = self._atol.size
        scale = self.scale(y0)
        ratio_y = _real(y0)[:n] / scale
        ratio_dot = _real(y_dot0)[:n] / scale
        y_on_scale2 = float(np.dot(ratio_y, ratio_y))
        y_dot_on_scale2 = float(np.dot(ratio_dot, ratio_dot))

        if y_on_scale2 < 1.0e-10 or y_dot_on_scale2 < 1.0e-10:
            h = 1.0e-6
        else:
            h = 0.01 * math.sqrt(y_on_scale2 / y_dot_on_scale2)
        if not forward:
            h = -h

        y1 = y0 + h * y_dot0
        y_dot1 = compute_derivatives(t0 + h, y1)

        ratio_ddot = (_real(y_dot1)[:n] - _real(y_dot0)[:n]) / scale
        y_ddot_on_scale = math.sqrt(float(np.dot(ratio_ddot, ratio_ddot))) / abs(h)

        max_inv2 = max(math.sqrt(y_dot_on_scale2), y_ddot_on_scale)
        if max_inv2 < 1.0e-15:
            h1 = max(1.0e-6, 0.001 * abs(h))
        else:
            h1 = (0.01 / max_inv2) ** (1.0 / self.order)
        h = min(100.0 * abs(h), h1)
        h = max(h, 1.0e-12 * abs(t0))
        h = min(max(h, self.min_step), self.max_step)
        return h if forward else -h
