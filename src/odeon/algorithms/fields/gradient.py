"""Forward-mode derivative tracking for the field integrators.

A :class:`~odeon.algorithms.fields.gradient.Gradient` carries a real value
together with its partial derivatives with respect to ``n`` independent
parameters (typically initial conditions or model parameters).  Arrays of
gradients are stored as numpy ``object`` arrays, so vector expressions such
as ``y + h * k`` work unchanged and numpy ufuncs dispatch to the element
methods (``np.sqrt`` calls :meth:`Gradient.sqrt`, ``np.sin`` calls
:meth:`Gradient.sin` and so on).

The real part of every operation is computed with exactly the same IEEE
operation as the plain float path, which is what makes float and field
integrations agree to the last bit.

References
----------
Griewank, A.; Walther, A. (2008). "Evaluating Derivatives: Principles and
Techniques of Algorithmic Differentiation".
"""

import math
from numbers import Real

import numpy as np

from odeon.algorithms.fields.base import _Field


class Gradient:
    """Real value with first-order partial derivatives.

    Parameters
    ----------
    value : float
        Real part.
    grad : array_like
        Partial derivatives, shape (n,).

    Notes
    -----
    Comparisons only look at the real part.
    """

    __slots__ = ("value", "grad")

    def __init__(self, value, grad):
        self.value = float(value)
        self.grad = np.asarray(grad, dtype=np.float64)

    def _lift(self, other):
        if isinstance(other, Gradient):
            return other
        if isinstance(other, Real):
            return None
        return NotImplemented

    def __add__(self, other):
        o = self._lift(other)
        if o is NotImplemented:
            return o
        if o is None:
            return Gradient(self.value + other, self.grad)
        return Gradient(self.value + o.value, self.grad + o.grad)

    __radd__ = __add__

    def __sub__(self, other):
        o = self._lift(other)
        if o is NotImplemented:
            return o
        if o is None:
            return Gradient(self.value - other, self.grad)
        return Gradient(self.value - o.value, self.grad - o.grad)

    def __rsub__(self, other):
        if not isinstance(other, Real):
            return NotImplemented
        return Gradient(other - self.value, -self.grad)

    def __mul__(self, other):
        o = self._lift(other)
        if o is NotImplemented:
            return o
        if o is None:
            return Gradient(self.value * other, self.grad * other)
        return Gradient(self.value * o.value, self.grad * o.value + o.grad * self.value)

    __rmul__ = __mul__

    def __truediv__(self, other):
        o = self._lift(other)
        if o is NotImplemented:
            return o
        if o is None:
            return Gradient(self.value / other, self.grad / other)
        return Gradient(
            self.value / o.value,
            (self.grad * o.value - o.grad * self.value) / (o.value * o.value),
        )

    def __rtruediv__(self, other):
        if not isinstance(other, Real):
            return NotImplemented
        return Gradient(other / self.value, -other * self.grad / (self.value * self.value))

    def __pow__(self, exponent):
        if isinstance(exponent, Gradient):
            return (exponent * self.log()).exp()
        if not isinstance(exponent, Real):
            return NotImplemented
        if exponent == 0:
            return Gradient(1.0, np.zeros_like(self.grad))
        return Gradient(self.value ** exponent, exponent * self.value ** (exponent - 1) * self.grad)

    def __rpow__(self, base):
        if not isinstance(base, Real):
            return NotImplemented
        return (self * math.log(base)).exp()

    def __neg__(self):
        return Gradient(-self.value, -self.grad)

    def __pos__(self):
        return self

    def __abs__(self):
        return self if self.value >= 0.0 else -self

    def sqrt(self):
        s = math.sqrt(self.value)
        return Gradient(s, self.grad / (2.0 * s))

    def exp(self):
        e = math.exp(self.value)
        return Gradient(e, e * self.grad)

    def log(self):
        return Gradient(math.log(self.value), self.grad / self.value)

    def sin(self):
        return Gradient(math.sin(self.value), math.cos(self.value) * self.grad)

    def cos(self):
        return Gradient(math.cos(self.value), -math.sin(self.value) * self.grad)

    def tan(self):
        t = math.tan(self.value)
        return Gradient(t, (1.0 + t * t) * self.grad)

    def arctan(self):
        return Gradient(math.atan(self.value), self.grad / (1.0 + self.value * self.value))

    def _real(self, other):
        return other.value if isinstance(other, Gradient) else other

    def __lt__(self, other):
        return self.value < self._real(other)

    def __le__(self, other):
        return self.value <= self._real(other)

    def __gt__(self, other):
        return self.value > self._real(other)

    def __ge__(self, other):
        return self.value >= self._real(other)

    def __eq__(self, other):
        if isinstance(other, (Gradient, Real)):
            return self.value == self._real(other)
        return NotImplemented

    __hash__ = None

    def __float__(self):
        return self.value

    def __repr__(self):
        return f"Gradient({self.value!r}, {self.grad.tolist()!r})"


class GradientField(_Field):
    """Field of :class:`Gradient` elements with *n_parameters* derivatives.

    Parameters
    ----------
    n_parameters : int
        Number of independent parameters tracked by every element.

    Examples
    --------
    Sensitivities of a state with respect to its own initial value::

        field = GradientField(2)
        y0 = field.array([field.variable(0.0, 0), field.variable(1.0, 1)])
    """

    dtype = object

    def __init__(self, n_parameters: int):
        if n_parameters < 0:
            raise ValueError(f"Number of parameters must be non-negative, got {n_parameters}")
        self.n_parameters = int(n_parameters)

    @property
    def zero(self):
        return Gradient(0.0, np.zeros(self.n_parameters))

    @property
    def one(self):
        return Gradient(1.0, np.zeros(self.n_parameters))

    def constant(self, value) -> Gradient:
        """Return an element with zero derivatives."""
        return Gradient(value, np.zeros(self.n_parameters))

    def variable(self, value, index: int) -> Gradient:
        """Return the independent parameter number *index* at *value*."""
        if not 0 <= index < self.n_parameters:
            raise ValueError(f"Parameter index {index} outside [0, {self.n_parameters})")
        grad = np.zeros(self.n_parameters)
        grad[index] = 1.0
        return Gradient(value, grad)

    def convert(self, value):
        if isinstance(value, Gradient):
            if value.grad.size != self.n_parameters:
                raise ValueError(
                    f"Gradient size {value.grad.size} != field size {self.n_parameters}"
                )
            return value
        return self.constant(value)

    def array(self, values):
        out = np.empty(len(values), dtype=object)
        for i, v in enumerate(values):
            out[i] = self.convert(v)
        return out

    def real_array(self, values):
        return np.array([float(v) for v in values], dtype=np.float64)

    def jacobian(self, values) -> np.ndarray:
        """Stack the gradients of *values* into a ``(len(values), n)`` array."""
        jac = np.zeros((len(values), self.n_parameters))
        for i, v in enumerate(values):
            if isinstance(v, Gradient):
                jac[i] = v.grad
        return jac

    def __eq__(self, other):
        return isinstance(other, GradientField) and other.n_parameters == self.n_parameters

    def __hash__(self):
        return hash((GradientField, self.n_parameters))

    def __repr__(self):
        return f"GradientField(n_parameters={self.n_parameters})"
