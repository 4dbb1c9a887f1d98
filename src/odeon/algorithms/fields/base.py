"""Numeric traits shared by the float and derivative-tracking integrators.

Every algorithm in :mod:`~odeon.algorithms.integrators` is written once and
parameterised by a :class:`~odeon.algorithms.fields.base._Field`.  The
field decides how state arrays are stored (``float64`` or ``object``
arrays of field elements) and how real parts are extracted for step-size
control and event location.

Notes
-----
Reductions such as :func:`numpy.dot` use blocked or pairwise summation for
``float64`` but sequential summation for ``object`` arrays.  All weighted
sums of stage vectors therefore go through
:func:`~odeon.algorithms.fields.base.linear_combination`, which accumulates
in a fixed order so both instantiations round identically.
"""

from abc import ABC, abstractmethod
from typing import Any, Sequence

import numpy as np


class _Field(ABC):
    """Define the minimal arithmetic trait an integrator is parameterised by.

    Attributes
    ----------
    dtype : numpy.dtype or type
        Array dtype used to store states of this field.
    """

    dtype: Any = None

    @property
    @abstractmethod
    def zero(self):
        """Additive identity of the field."""
        pass

    @property
    @abstractmethod
    def one(self):
        """Multiplicative identity of the field."""
        pass

    @abstractmethod
    def convert(self, value):
        """Convert a real number (or an element) into a field element."""
        pass

    def real(self, value) -> float:
        """Return the real part of *value*."""
        return float(value)

    @abstractmethod
    def array(self, values: Sequence) -> np.ndarray:
        """Return a fresh 1-D array of field elements built from *values*."""
        pass

    @abstractmethod
    def real_array(self, values: np.ndarray) -> np.ndarray:
        """Return the real parts of *values* as a ``float64`` array."""
        pass

    def __repr__(self):
        return f"{self.__class__.__name__}()"


class RealField(_Field):
    """Plain IEEE double precision arithmetic."""

    dtype = np.float64

    @property
    def zero(self):
        return 0.0

    @property
    def one(self):
        return 1.0

    def convert(self, value):
        return float(value)

    def array(self, values):
        return np.array(values, dtype=np.float64)

    def real_array(self, values):
        return np.asarray(values, dtype=np.float64)

    def __eq__(self, other):
        return isinstance(other, RealField)

    def __hash__(self):
        return hash(RealField)


def linear_combination(coefficients: Sequence[float], vectors: Sequence[np.ndarray]) -> np.ndarray:
    """Return ``sum_i coefficients[i] * vectors[i]`` accumulated left to right.

    Terms with an exactly zero coefficient are skipped.

    Parameters
    ----------
    coefficients : sequence of float
        Real weights.  Must not be longer than *vectors*.
    vectors : sequence of numpy.ndarray
        Arrays of identical shape, either ``float64`` or ``object``.

    Returns
    -------
    numpy.ndarray
        The weighted sum, with the dtype of the vectors.
    """
    acc = None
    for c, v in zip(coefficients, vectors):
        if c == 0.0:
            continue
        term = c * v
        acc = term if acc is None else acc + term
    if acc is None:
        return 0.0 * vectors[0]
    return acc


def infer_field(values: np.ndarray) -> _Field:
    """Return the field matching the elements stored in *values*.

    ``object`` arrays containing at least one
    :class:`~odeon.algorithms.fields.gradient.Gradient` map to a
    :class:`~odeon.algorithms.fields.gradient.GradientField` of the same
    size; anything else is treated as real.
    """
    from odeon.algorithms.fields.gradient import Gradient, GradientField

    arr = np.asarray(values)
    if arr.dtype == object:
        for v in arr.flat:
            if isinstance(v, Gradient):
                return GradientField(v.grad.size)
    return RealField()
