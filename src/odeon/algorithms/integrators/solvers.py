"""Bracketing root finder used to locate events.

The secant family implemented here (Pegasus, Illinois and plain regula
falsi) always keeps the root bracketed, so the side of the root on which
the returned abscissa lies can be chosen.  Event location relies on this to
return a time at which ``g`` has already changed sign.

References
----------
Dowell, M.; Jarratt, P. (1972). "The Pegasus method for computing the root
of an equation". BIT 12, 503-508.
"""

from enum import Enum
from typing import Callable

from odeon.algorithms.utils.config import (SOLVER_FUNCTION_ACCURACY,
                                           SOLVER_RELATIVE_ACCURACY)
from odeon.algorithms.utils.exceptions import (ConvergenceError,
                                               NoBracketingError)


class AllowedSolution(Enum):
    """Side of the root on which a bracketing solver may return."""

    ANY_SIDE = "any"
    LEFT_SIDE = "left"
    RIGHT_SIDE = "right"
    BELOW_SIDE = "below"
    ABOVE_SIDE = "above"


class _SecantMethod(Enum):
    REGULA_FALSI = "regula-falsi"
    ILLINOIS = "illinois"
    PEGASUS = "pegasus"


class _BracketingSolver:
    """Secant-type solver that keeps the root bracketed.

    Parameters
    ----------
    absolute_accuracy : float
        Absolute accuracy on the abscissa.
    relative_accuracy : float, default SOLVER_RELATIVE_ACCURACY
        Relative accuracy on the abscissa.
    function_value_accuracy : float, default SOLVER_FUNCTION_ACCURACY
        Values of ``|f|`` below this are treated as zero.
    method : _SecantMethod, default PEGASUS
        Update rule of the retained end point.

    Notes
    -----
    When the secant point falls outside the current bracket or the secant
    slope vanishes, a bisection step is taken instead.
    """

    def __init__(self, absolute_accuracy: float,
                 relative_accuracy: float = SOLVER_RELATIVE_ACCURACY,
                 function_value_accuracy: float = SOLVER_FUNCTION_ACCURACY,
                 method: _SecantMethod = _SecantMethod.PEGASUS):
        self.absolute_accuracy = absolute_accuracy
        self.relative_accuracy = relative_accuracy
        self.function_value_accuracy = function_value_accuracy
        self.method = method
        self.evaluations = 0

    def _evaluate(self, f, x, max_eval):
        if self.evaluations >= max_eval:
            raise ConvergenceError(
                f"root solver exceeded {max_eval} function evaluations"
            )
        self.evaluations += 1
        return float(f(x))

    def solve(self, max_eval: int, f: Callable[[float], float], lower: float, upper: float,
              allowed: AllowedSolution = AllowedSolution.ANY_SIDE) -> float:
        """Return a root of *f* in ``[lower, upper]``.

        Parameters
        ----------
        max_eval : int
            Maximum number of evaluations of *f*, end points included.
        f : callable
            Scalar function.
        lower, upper : float
            Bracket with ``lower < upper``.
        allowed : AllowedSolution
            Side of the root the result must lie on.

        Raises
        ------
        :class:`~odeon.algorithms.utils.exceptions.NoBracketingError`
            If *f* has the same strict sign at both end points.
        :class:`~odeon.algorithms.utils.exceptions.ConvergenceError`
            If *max_eval* evaluations are not enough.
        """
        self.evaluations = 0
        x0, x1 = float(lower), float(upper)
        f0 = self._evaluate(f, x0, max_eval)
        f1 = self._evaluate(f, x1, max_eval)

        if f0 == 0.0:
            return x0
        if f1 == 0.0:
            return x1
        if f0 * f1 > 0.0:
            raise NoBracketingError(x0, x1, f0, f1)

        ftol = self.function_value_accuracy
        atol = self.absolute_accuracy
        rtol = self.relative_accuracy
        inverted = False

        while True:
            lo, hi = (x0, x1) if x0 < x1 else (x1, x0)
            x = 0.5 * (x0 + x1)
            if f1 != f0:
                secant = x1 - f1 * (x1 - x0) / (f1 - f0)
                if lo < secant < hi:
                    x = secant
            fx = self._evaluate(f, x, max_eval)

            if fx == 0.0:
                return x

            if f1 * fx < 0.0:
                x0, f0 = x1, f1
                inverted = not inverted
            elif self.method is _SecantMethod.ILLINOIS:
                f0 *= 0.5
            elif self.method is _SecantMethod.PEGASUS:
                f0 *= f1 / (f1 + fx)
            elif x == x1:
                # regula falsi stalled on a fixed end point
                x0 = 0.5 * (x0 + x1 - max(rtol * abs(x1), atol))
                f0 = self._evaluate(f, x0, max_eval)

            x1, f1 = x, fx

            if abs(f1) <= ftol:
                if allowed is AllowedSolution.ANY_SIDE:
                    return x1
                if allowed is AllowedSolution.LEFT_SIDE and inverted:
                    return x1
                if allowed is AllowedSolution.RIGHT_SIDE and not inverted:
                    return x1
                if allowed is AllowedSolution.BELOW_SIDE and f1 <= 0.0:
                    return x1
                if allowed is AllowedSolution.ABOVE_SIDE and f1 >= 0.0:
                    return x1

            if abs(x1 - x0) < max(rtol * abs(x1), atol):
                if allowed is AllowedSolution.LEFT_SIDE:
                    return x1 if inverted else x0
                if allowed is AllowedSolution.RIGHT_SIDE:
                    return x0 if inverted else x1
                if allowed is AllowedSolution.BELOW_SIDE:
                    return x1 if f1 <= 0.0 else x0
                if allowed is AllowedSolution.ABOVE_SIDE:
                    return x1 if f1 >= 0.0 else x0
                return x1
