"""Immutable states exchanged between integrators, handlers and users.

A state is split into a primary block and zero or more secondary blocks
(see :class:`~odeon.algorithms.dynamics.expandable.ExpandableODE`).  Block
``0`` is the primary state; secondary blocks are numbered from ``1`` in
registration order.
"""

from typing import Sequence

import numpy as np


def _frozen(values) -> np.ndarray:
    arr = np.array(values, dtype=np.asarray(values).dtype, copy=True)
    if arr.ndim != 1:
        raise ValueError(f"State blocks must be one-dimensional, got shape {arr.shape}")
    arr.setflags(write=False)
    return arr


class _ODEState:
    """Time and state of an ODE system, primary block plus secondary blocks.

    Parameters
    ----------
    time : float
        Time of the state.
    primary_state : array_like
        Primary state vector.
    secondary_states : sequence of array_like, optional
        Secondary state vectors, in registration order.

    Notes
    -----
    Arrays are copied and flagged read-only; instances never change after
    construction.
    """

    def __init__(self, time: float, primary_state, secondary_states: Sequence = ()):
        self._time = float(time)
        self._primary = _frozen(primary_state)
        self._secondary = tuple(_frozen(s) for s in secondary_states)

    @property
    def time(self) -> float:
        return self._time

    @property
    def primary_state(self) -> np.ndarray:
        return self._primary

    @property
    def primary_state_dimension(self) -> int:
        return self._primary.size

    @property
    def number_of_secondary_states(self) -> int:
        return len(self._secondary)

    def get_secondary_state(self, index: int) -> np.ndarray:
        """Return block *index* (``0`` is the primary state)."""
        return self._primary if index == 0 else self._secondary[index - 1]

    def get_secondary_state_dimension(self, index: int) -> int:
        return self.get_secondary_state(index).size

    @property
    def complete_state(self) -> np.ndarray:
        """Concatenation of all blocks."""
        return np.concatenate((self._primary,) + self._secondary)

    def __repr__(self):
        return (f"{self.__class__.__name__}(time={self._time}, "
                f"dim={self._primary.size}, secondary={len(self._secondary)})")


class _ODEStateAndDerivative(_ODEState):
    """State together with its time derivative.

    Parameters
    ----------
    time : float
        Time of the state.
    primary_state, primary_derivative : array_like
        Primary state and its derivative.
    secondary_states, secondary_derivatives : sequence of array_like, optional
        Secondary blocks and their derivatives.
    """

    def __init__(self, time: float, primary_state, primary_derivative,
                 secondary_states: Sequence = (), secondary_derivatives: Sequence = ()):
        super().__init__(time, primary_state, secondary_states)
        self._primary_dot = _frozen(primary_derivative)
        self._secondary_dot = tuple(_frozen(s) for s in secondary_derivatives)

    @property
    def primary_derivative(self) -> np.ndarray:
        return self._primary_dot

    def get_secondary_derivative(self, index: int) -> np.ndarray:
        """Return the derivative of block *index* (``0`` is the primary block)."""
        return self._primary_dot if index == 0 else self._secondary_dot[index - 1]

    @property
    def complete_derivative(self) -> np.ndarray:
        """Concatenation of all block derivatives."""
        return np.concatenate((self._primary_dot,) + self._secondary_dot)
