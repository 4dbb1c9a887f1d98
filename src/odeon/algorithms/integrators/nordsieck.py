"""Nordsieck history of the Adams methods.

The Nordsieck vector at time ``t`` with step ``h`` is

    [ y, h y', h^2/2 y'', ..., h^k/k! y^(k) ]

Adams integrators keep ``y``, the scaled first derivative ``h y'`` and the
higher order rows ``h^j/j! y^(j)`` for ``j = 2..k`` as separate pieces.
:class:`_AdamsNordsieckTransformer` advances the rows by one step; the
coefficients are computed once per number of steps in exact rational
arithmetic with :mod:`sympy`.

References
----------
Nordsieck, A. (1962). "On numerical integration of ordinary differential
equations". Math. Comp. 16, 22-49.
"""

from functools import lru_cache
from typing import List, Sequence, Tuple

import numpy as np
import sympy as sp

from odeon.algorithms.fields.base import linear_combination
from odeon.algorithms.integrators.interpolators import _StepInterpolator


def _build_p(rows: int) -> sp.Matrix:
    # P[i-1, j-1] = (j+1) * (-i)**j, from the Taylor expansion of y(t - i h)
    return sp.Matrix(rows, rows, lambda r, c: (c + 2) * sp.Integer(-(r + 1)) ** (c + 1))


def _solve_linear(a: List[List[float]], b: List[np.ndarray]) -> List[np.ndarray]:
    """Solve ``a x = b`` for vector right-hand sides.

    *a* is real and is inverted with :func:`numpy.linalg.inv`; the rows of
    *b* may be float or field arrays and are combined with
    :func:`~odeon.algorithms.fields.base.linear_combination`.
    """
    inverse = np.linalg.inv(np.asarray(a, dtype=float))
    return [linear_combination(row.tolist(), b) for row in inverse]


class _AdamsNordsieckTransformer:
    """Step advance of the Nordsieck rows for a given number of steps.

    Use :meth:`get_instance`, instances are cached per *n_steps*.

    Parameters
    ----------
    n_steps : int
        Number of steps of the multistep method (at least 2).
    """

    def __init__(self, n_steps: int):
        rows = n_steps - 1
        self.n_steps = n_steps
        p = _build_p(rows)

        c1 = p.LUsolve(sp.ones(rows, 1))

        shifted = sp.zeros(rows, rows)
        for i in range(1, rows):
            shifted[i, :] = p[i - 1, :]
        update = p.LUsolve(shifted)

        self._c1 = [float(c1[i]) for i in range(rows)]
        self._update = [[float(update[i, j]) for j in range(rows)] for i in range(rows)]

    @classmethod
    @lru_cache(maxsize=None)
    def get_instance(cls, n_steps: int) -> "_AdamsNordsieckTransformer":
        # one read-only transformer per n_steps, shared across integrators
        return cls(n_steps)

    @property
    def n_rows(self) -> int:
        return self.n_steps - 1

    def initialize_high_order_derivatives(self, h: float, t: Sequence[float],
                                          y: Sequence[np.ndarray],
                                          y_dot: Sequence[np.ndarray]) -> List[np.ndarray]:
        """Estimate the rows ``h^j/j! y^(j)`` at ``t[0]`` from a few starter points.

        With ``d_i = t_i - t_0`` the Taylor relations

            y(t_i) - y(t_0) - d_i y'(t_0) = sum_j (d_i/h)^j s_j
            y'(t_i) - y'(t_0)             = sum_j j d_i^(j-1)/h^j s_j

        are written for every point and solved together with one extra
        unknown absorbing the truncation remainder, which is then dropped.
        """
        n = self.n_rows + 1
        a = [[0.0] * n for _ in range(n)]
        b = [None] * n
        y0 = y[0]
        y_dot0 = y_dot[0]
        for i in range(1, len(y)):
            di = t[i] - t[0]
            ratio = di / h
            dik_m1_ohk = 1.0 / h

            row = 2 * i - 2
            dot_row = 2 * i - 1 if 2 * i - 1 < n else None
            for j in range(n):
                dik_m1_ohk *= ratio
                a[row][j] = di * dik_m1_ohk
                if dot_row is not None:
                    a[dot_row][j] = (j + 2) * dik_m1_ohk

            b[row] = y[i] - y0 - di * y_dot0
            if dot_row is not None:
                b[dot_row] = y_dot[i] - y_dot0

        x = _solve_linear(a, b)
        return x[:-1]

    def update_high_order_derivatives_phase1(self, rows: Sequence[np.ndarray]) -> List[np.ndarray]:
        """Shift the rows by one step, before the new derivative is known."""
        return [linear_combination(coefficients, rows) for coefficients in self._update]

    def update_high_order_derivatives_phase2(self, start: np.ndarray, end: np.ndarray,
                                             rows: Sequence[np.ndarray]) -> List[np.ndarray]:
        """Correct the shifted rows with the scaled derivatives at both step ends."""
        delta = start - end
        return [row + c1 * delta for c1, row in zip(self._c1, rows)]


def rescale_nordsieck(scaled: np.ndarray, rows: Sequence[np.ndarray], ratio: float
                      ) -> Tuple[np.ndarray, List[np.ndarray]]:
    """Return the history for a step multiplied by *ratio*.

    ``h y'`` scales with *ratio* and row ``j`` (``h^(j+2)`` terms) with
    ``ratio**(j+2)``.
    """
    new_scaled = scaled * ratio
    power = ratio
    new_rows = []
    for row in rows:
        power *= ratio
        new_rows.append(row * power)
    return new_scaled, new_rows


def taylor_state(y_ref: np.ndarray, scaled: np.ndarray, rows: Sequence[np.ndarray], s: float
                 ) -> np.ndarray:
    """State at normalized abscissa ``s = (t - t_ref) / h`` of the Nordsieck history."""
    coefficients = [s ** (j + 2) for j in range(len(rows) - 1, -1, -1)] + [s]
    vectors = list(reversed(rows)) + [scaled]
    return y_ref + linear_combination(coefficients, vectors)


def taylor_derivative(scaled: np.ndarray, rows: Sequence[np.ndarray], s: float, h: float
                      ) -> np.ndarray:
    """Derivative at normalized abscissa *s* of the Nordsieck history."""
    coefficients = [(j + 2) * s ** (j + 1) for j in range(len(rows) - 1, -1, -1)] + [1.0]
    vectors = list(reversed(rows)) + [scaled]
    return linear_combination(coefficients, vectors) / h


class _NordsieckStepInterpolator(_StepInterpolator):
    """Taylor polynomial of the Nordsieck history around a reference time.

    Parameters
    ----------
    forward, global_previous, global_current, mapper
        See :class:`~odeon.algorithms.integrators.interpolators._StepInterpolator`.
    reference_time : float
        Time the history refers to (the step end).
    scaling_h : float
        Step size the history is scaled with.
    scaled : numpy.ndarray
        ``h y'`` at the reference time.
    rows : sequence of numpy.ndarray
        Higher order rows at the reference time.
    """

    def __init__(self, forward, global_previous, global_current, mapper,
                 reference_time: float, scaling_h: float, scaled: np.ndarray,
                 rows: Sequence[np.ndarray]):
        super().__init__(forward, global_previous, global_current, mapper)
        self._reference_time = reference_time
        self._scaling_h = scaling_h
        self._scaled = scaled
        self._rows = list(rows)
        self._y_reference = self._y_current

    def rescale(self, scaling_h: float) -> "_NordsieckStepInterpolator":
        """Return a copy whose history is scaled for step *scaling_h*."""
        ratio = scaling_h / self._scaling_h
        rescaled = self.restrict_step(self._soft_previous, self._soft_current)
        rescaled._scaled, rescaled._rows = rescale_nordsieck(self._scaled, self._rows, ratio)
        rescaled._scaling_h = scaling_h
        return rescaled

    def _compute_interpolated_state(self, t, theta, h):
        s = (t - self._reference_time) / self._scaling_h
        y = taylor_state(self._y_reference, self._scaled, self._rows, s)
        y_dot = taylor_derivative(self._scaled, self._rows, s, self._scaling_h)
        return y, y_dot
