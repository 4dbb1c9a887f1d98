"""Variational equations for state and parameter sensitivities.

Integrating ``Z' = J(t, y) Z`` alongside ``y' = f(t, y)`` with ``Z(t0) = I``
yields the state transition matrix ``dy(t)/dy(t0)``.  With parameters ``p``
the additional block ``S' = J S + df/dp`` yields ``dy(t)/dp``.

Evaluations made here for finite differences are not charged to the
integrator budget.
"""

from typing import Callable, Optional, Tuple

import numpy as np

from odeon.algorithms.dynamics.base import _DynamicalSystem
from odeon.algorithms.dynamics.expandable import (ExpandableODE,
                                                  SecondaryEquations)
from odeon.algorithms.utils.exceptions import DimensionMismatchError


class VariationalEquations(SecondaryEquations):
    """Secondary equations propagating ``dy/dy0`` and optionally ``dy/dp``.

    Parameters
    ----------
    system : :class:`~odeon.algorithms.dynamics.base._DynamicalSystem`
        Primary system the sensitivities refer to.
    jacobian : callable, optional
        ``jacobian(t, y) -> (n, n)`` array.  When omitted the Jacobian is
        approximated by forward differences of ``system.rhs``.
    h_y : array_like, optional
        Finite difference steps per state component.  Defaults to
        ``sqrt(eps) * max(1, |y_j|)``.
    n_parameters : int, default 0
        Number of parameters whose sensitivities are tracked.
    parameter_jacobian : callable, optional
        ``parameter_jacobian(t, y) -> (n, n_parameters)`` array, required
        when *n_parameters* is positive.

    Examples
    --------
    >>> ode = ExpandableODE(system)
    >>> variational = VariationalEquations(system)
    >>> variational.register(ode)
    >>> state = _ODEState(0.0, y0, [variational.initial_state()])
    """

    def __init__(self, system: _DynamicalSystem,
                 jacobian: Optional[Callable[[float, np.ndarray], np.ndarray]] = None,
                 h_y=None, n_parameters: int = 0,
                 parameter_jacobian: Optional[Callable[[float, np.ndarray], np.ndarray]] = None):
        n = system.dim
        if h_y is not None:
            h_y = np.asarray(h_y, dtype=np.float64)
            if h_y.size != n:
                raise DimensionMismatchError("Finite difference steps", h_y.size, n)
        if n_parameters > 0 and parameter_jacobian is None:
            raise ValueError("parameter_jacobian is required when n_parameters > 0")

        self._system = system
        self._jacobian = jacobian
        self._h_y = h_y
        self._n = n
        self._n_parameters = int(n_parameters)
        self._parameter_jacobian = parameter_jacobian
        self._index: Optional[int] = None

    @property
    def dimension(self) -> int:
        return self._n * (self._n + self._n_parameters)

    @property
    def index(self) -> Optional[int]:
        """Block index assigned by :meth:`register`."""
        return self._index

    def register(self, ode: ExpandableODE) -> int:
        """Append these equations to *ode* and remember the block index."""
        if ode.primary.dim != self._n:
            raise DimensionMismatchError("Primary dimension", ode.primary.dim, self._n)
        self._index = ode.add_secondary_equations(self)
        return self._index

    def initial_state(self) -> np.ndarray:
        """Identity state block followed by zero parameter block, flattened."""
        z0 = np.eye(self._n)
        s0 = np.zeros((self._n, self._n_parameters))
        return np.concatenate((z0.ravel(), s0.ravel()))

    def extract(self, state) -> Tuple[np.ndarray, np.ndarray]:
        """Return ``(dy/dy0, dy/dp)`` from a state or a raw secondary block."""
        if hasattr(state, "get_secondary_state"):
            if self._index is None:
                raise ValueError("Variational equations are not registered")
            block = state.get_secondary_state(self._index)
        else:
            block = np.asarray(state)
        if block.size != self.dimension:
            raise DimensionMismatchError("Variational block", block.size, self.dimension)
        nn = self._n * self._n
        return (block[:nn].reshape(self._n, self._n),
                block[nn:].reshape(self._n, self._n_parameters))

    def _state_jacobian(self, t, y, y_dot):
        if self._jacobian is not None:
            return np.asarray(self._jacobian(t, y))
        jac = np.empty((self._n, self._n), dtype=y.dtype)
        for j in range(self._n):
            if self._h_y is None:
                h = np.sqrt(np.finfo(float).eps) * max(1.0, abs(float(y[j])))
            else:
                h = float(self._h_y[j])
            y_pert = np.array(y)
            y_pert[j] = y_pert[j] + h
            jac[:, j] = (np.asarray(self._system.compute_derivatives(t, y_pert)) - y_dot) / h
        return jac

    def compute_derivatives(self, t, primary, primary_dot, secondary):
        jac = self._state_jacobian(t, primary, primary_dot)
        z, s = self.extract(secondary)
        z_dot = jac @ z
        if self._n_parameters == 0:
            return z_dot.ravel()
        s_dot = jac @ s + np.asarray(self._parameter_jacobian(t, primary))
        return np.concatenate((z_dot.ravel(), s_dot.ravel()))
