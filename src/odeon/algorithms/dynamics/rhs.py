from typing import Callable

import numba
import numpy as np
from numba.core.registry import CPUDispatcher

from odeon.algorithms.dynamics.base import _DynamicalSystem
from odeon.algorithms.utils.config import FASTMATH


class RHSSystem(_DynamicalSystem):
    """Wrap an arbitrary right-hand side into a primary system.

    Parameters
    ----------
    rhs_func : callable
        Function ``f(t, y) -> y'``.
    dim : int
        State dimension.
    name : str, default "Generic RHS"
        Human readable identifier.
    jit : bool, default True
        When True the function is compiled with :func:`numba.njit` (unless it
        is a Numba dispatcher already) and used for ``float64`` states.

    Notes
    -----
    Field states are ``object`` arrays, which compiled code cannot accept.
    They are always routed to the pure Python function, so the same system
    can be integrated in both numeric instantiations.
    """

    def __init__(self, rhs_func: Callable[[float, np.ndarray], np.ndarray], dim: int,
                 name: str = "Generic RHS", jit: bool = True):
        super().__init__(dim)

        if isinstance(rhs_func, CPUDispatcher):
            self._rhs_compiled = rhs_func
            self._rhs_py = rhs_func.py_func
        elif jit:
            self._rhs_compiled = numba.njit(cache=False, fastmath=FASTMATH)(rhs_func)
            self._rhs_py = rhs_func
        else:
            self._rhs_compiled = None
            self._rhs_py = rhs_func

        self.name = name

    @property
    def rhs(self) -> Callable[[float, np.ndarray], np.ndarray]:
        compiled = self._rhs_compiled
        py_func = self._rhs_py
        if compiled is None:
            return py_func

        def _rhs(t, y):
            if y.dtype == object:
                return py_func(t, y)
            return compiled(t, y)

        return _rhs

    def __repr__(self) -> str:
        return f"RHSSystem(name='{self.name}', dim={self.dim})"


def create_rhs_system(rhs_func: Callable[[float, np.ndarray], np.ndarray], dim: int,
                      name: str = "Generic RHS", jit: bool = True) -> RHSSystem:
    """Build a :class:`RHSSystem` from a plain callable."""
    return RHSSystem(rhs_func, dim, name, jit=jit)
