"""Provide the primary equation sets consumed by the integrators.

A primary system is anything exposing a state dimension and a right-hand
side ``f(t, y) -> y'``.  Optional hooks let a system prepare itself at the
start of an integration.
"""

from abc import ABC, abstractmethod
from typing import Callable, Protocol, runtime_checkable

import numpy as np


@runtime_checkable
class _DynamicalSystemProtocol(Protocol):
    """Protocol defining the interface for primary dynamical systems.

    This protocol specifies the minimum interface that any system must
    implement to be integrated, either directly or wrapped in an
    :class:`~odeon.algorithms.dynamics.expandable.ExpandableODE`.
    """

    @property
    def dim(self) -> int:
        """Dimension of the state space."""
        ...

    @property
    def rhs(self) -> Callable[[float, np.ndarray], np.ndarray]:
        ...


class _DynamicalSystem(ABC):
    """Abstract base class for primary dynamical systems.

    Parameters
    ----------
    dim : int
        Dimension of the state space.

    Raises
    ------
    ValueError
        If *dim* is not positive.
    """

    def __init__(self, dim: int):
        if dim <= 0:
            raise ValueError(f"Dimension must be positive, got {dim}")
        self._dim = dim

    @property
    def dim(self) -> int:
        """Dimension of the state space."""
        return self._dim

    @property
    @abstractmethod
    def rhs(self) -> Callable[[float, np.ndarray], np.ndarray]:
        pass

    def init(self, t0: float, y0: np.ndarray, final_time: float) -> None:
        """Hook called once before the first derivative evaluation."""
        pass

    def compute_derivatives(self, t: float, y: np.ndarray) -> np.ndarray:
        """Evaluate the right-hand side at ``(t, y)``."""
        return self.rhs(t, y)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(dim={self.dim})"
