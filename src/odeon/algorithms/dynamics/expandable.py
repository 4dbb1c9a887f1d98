"""Expandable equations model: a primary system plus secondary blocks.

The integrators only ever see a single complete state vector.  The
:class:`_EquationsMapper` splits it into the primary block (index ``0``)
and the secondary blocks (indices ``1, 2, ...`` in registration order),
and :class:`ExpandableODE` evaluates each block in turn.

Every call to :meth:`ExpandableODE.compute_derivatives` is charged to the
:class:`_EvaluationCounter` attached by the running integrator.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

import numpy as np

from odeon.algorithms.dynamics.base import _DynamicalSystem
from odeon.algorithms.utils.exceptions import (DimensionMismatchError,
                                               MaxCountExceededError)
from odeon.algorithms.utils.types import _ODEState, _ODEStateAndDerivative


class _EvaluationCounter:
    """Bounded counter of derivative evaluations.

    Parameters
    ----------
    maximal : int or None, default None
        Largest admissible count, ``None`` for no limit.
    """

    def __init__(self, maximal: Optional[int] = None):
        self.maximal = maximal
        self.count = 0

    def can_increment(self, n: int = 1) -> bool:
        return self.maximal is None or self.count + n <= self.maximal

    def increment(self, n: int = 1) -> None:
        """Add *n* evaluations, raising if the budget would be exceeded.

        Raises
        ------
        :class:`~odeon.algorithms.utils.exceptions.MaxCountExceededError`
            If the new count would exceed :attr:`maximal`.  The count is
            left unchanged in that case.
        """
        if not self.can_increment(n):
            raise MaxCountExceededError(self.maximal)
        self.count += n

    def reset(self) -> None:
        self.count = 0

    def __repr__(self):
        return f"_EvaluationCounter(count={self.count}, maximal={self.maximal})"


class _EquationsMapper:
    """Map between the complete state vector and its blocks.

    Parameters
    ----------
    mapper : _EquationsMapper or None
        Mapper to extend, ``None`` to start with the primary block.
    dimension : int
        Dimension of the block being appended.
    """

    def __init__(self, mapper: Optional["_EquationsMapper"], dimension: int):
        previous = [0] if mapper is None else mapper._start
        self._start = list(previous) + [previous[-1] + dimension]

    @property
    def number_of_equations(self) -> int:
        return len(self._start) - 1

    @property
    def total_dimension(self) -> int:
        return self._start[-1]

    def _bounds(self, index: int):
        if not 0 <= index < self.number_of_equations:
            raise IndexError(f"Equation index {index} outside [0, {self.number_of_equations})")
        return self._start[index], self._start[index + 1]

    def extract_equation_data(self, index: int, complete: np.ndarray) -> np.ndarray:
        """Return a copy of block *index* taken from *complete*."""
        begin, end = self._bounds(index)
        if len(complete) < end:
            raise DimensionMismatchError("Complete state too short", len(complete), end)
        return np.array(complete[begin:end])

    def insert_equation_data(self, index: int, data: np.ndarray, complete: np.ndarray) -> None:
        """Copy *data* into block *index* of *complete* in place."""
        begin, end = self._bounds(index)
        if len(data) != end - begin:
            raise DimensionMismatchError(f"Block {index} dimension", len(data), end - begin)
        complete[begin:end] = data

    def _dtype(self, *blocks):
        return object if any(np.asarray(b).dtype == object for b in blocks) else np.float64

    def map_state(self, state: _ODEState) -> np.ndarray:
        """Build the complete state vector from *state*."""
        n_secondary = self.number_of_equations - 1
        if state.number_of_secondary_states != n_secondary:
            raise DimensionMismatchError(
                "Number of secondary states", state.number_of_secondary_states, n_secondary
            )
        blocks = [state.get_secondary_state(i) for i in range(self.number_of_equations)]
        complete = np.empty(self.total_dimension, dtype=self._dtype(*blocks))
        for i, block in enumerate(blocks):
            self.insert_equation_data(i, block, complete)
        return complete

    def map_derivative(self, state: _ODEStateAndDerivative) -> np.ndarray:
        """Build the complete derivative vector from *state*."""
        blocks = [state.get_secondary_derivative(i) for i in range(self.number_of_equations)]
        complete = np.empty(self.total_dimension, dtype=self._dtype(*blocks))
        for i, block in enumerate(blocks):
            self.insert_equation_data(i, block, complete)
        return complete

    def map_state_and_derivative(self, t: float, y: np.ndarray, y_dot: np.ndarray) -> _ODEStateAndDerivative:
        """Split complete vectors into an :class:`_ODEStateAndDerivative`."""
        if len(y) != self.total_dimension:
            raise DimensionMismatchError("Complete state", len(y), self.total_dimension)
        if len(y_dot) != self.total_dimension:
            raise DimensionMismatchError("Complete derivative", len(y_dot), self.total_dimension)
        n = self.number_of_equations
        return _ODEStateAndDerivative(
            t,
            self.extract_equation_data(0, y),
            self.extract_equation_data(0, y_dot),
            [self.extract_equation_data(i, y) for i in range(1, n)],
            [self.extract_equation_data(i, y_dot) for i in range(1, n)],
        )


class SecondaryEquations(ABC):
    """Equations appended to a primary system.

    Secondary equations see the primary state and its derivative but never
    influence them (typically variational or quadrature equations).
    """

    @property
    @abstractmethod
    def dimension(self) -> int:
        pass

    def init(self, t0: float, primary0: np.ndarray, secondary0: np.ndarray, final_time: float) -> None:
        pass

    @abstractmethod
    def compute_derivatives(self, t: float, primary: np.ndarray, primary_dot: np.ndarray,
                            secondary: np.ndarray) -> np.ndarray:
        """Return the derivative of the secondary block."""
        pass


class ExpandableODE:
    """Primary system extended with any number of secondary equations.

    Parameters
    ----------
    primary : :class:`~odeon.algorithms.dynamics.base._DynamicalSystem`
        Primary equation set.

    Attributes
    ----------
    counter : :class:`_EvaluationCounter` or None
        Counter charged once per :meth:`compute_derivatives` call.  The
        running integrator attaches its own counter for the duration of an
        integration.
    """

    def __init__(self, primary: _DynamicalSystem):
        self._primary = primary
        self._components: List[SecondaryEquations] = []
        self._mapper = _EquationsMapper(None, primary.dim)
        self.counter: Optional[_EvaluationCounter] = None

    @property
    def primary(self) -> _DynamicalSystem:
        return self._primary

    @property
    def mapper(self) -> _EquationsMapper:
        return self._mapper

    @property
    def dimension(self) -> int:
        return self._mapper.total_dimension

    def add_secondary_equations(self, secondary: SecondaryEquations) -> int:
        """Register *secondary* and return its block index (starting at 1)."""
        self._components.append(secondary)
        self._mapper = _EquationsMapper(self._mapper, secondary.dimension)
        return len(self._components)

    def get_secondary_equations(self, index: int) -> SecondaryEquations:
        return self._components[index - 1]

    def init(self, t0: float, y0: np.ndarray, final_time: float) -> None:
        """Forward the start of an integration to every equation set."""
        primary0 = self._mapper.extract_equation_data(0, y0)
        self._primary.init(t0, primary0, final_time)
        for index, component in enumerate(self._components, start=1):
            secondary0 = self._mapper.extract_equation_data(index, y0)
            component.init(t0, primary0, secondary0, final_time)

    def compute_derivatives(self, t: float, y: np.ndarray) -> np.ndarray:
        """Evaluate the complete derivative at ``(t, y)``.

        Raises
        ------
        :class:`~odeon.algorithms.utils.exceptions.DimensionMismatchError`
            If ``len(y)`` differs from :attr:`dimension`.
        :class:`~odeon.algorithms.utils.exceptions.MaxCountExceededError`
            If the attached counter is exhausted.
        """
        if len(y) != self.dimension:
            raise DimensionMismatchError("State dimension", len(y), self.dimension)
        if self.counter is not None:
            self.counter.increment()

        primary = self._mapper.extract_equation_data(0, y)
        primary_dot = np.asarray(self._primary.compute_derivatives(t, primary))

        y_dot = np.empty(self.dimension, dtype=y.dtype)
        self._mapper.insert_equation_data(0, primary_dot, y_dot)
        for index, component in enumerate(self._components, start=1):
            secondary = self._mapper.extract_equation_data(index, y)
            secondary_dot = component.compute_derivatives(t, primary, primary_dot, secondary)
            self._mapper.insert_equation_data(index, np.asarray(secondary_dot), y_dot)
        return y_dot

    def __repr__(self):
        return f"ExpandableODE(primary={self._primary!r}, secondary={len(self._components)})"
