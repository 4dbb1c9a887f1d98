import math

import pytest

from odeon.algorithms.integrators.solvers import (AllowedSolution,
                                                  _BracketingSolver,
                                                  _SecantMethod)
from odeon.algorithms.utils.exceptions import (ConvergenceError,
                                               NoBracketingError)

ROOT2 = math.sqrt(2.0)


def _increasing(x):
    return x * x - 2.0


def _decreasing(x):
    return 2.0 - x * x


@pytest.mark.parametrize("method", list(_SecantMethod))
def test_methods_find_the_root(method):
    solver = _BracketingSolver(1e-12, method=method)
    root = solver.solve(100, lambda x: x - 0.3 + 0.01 * x * x, 0.0, 1.0)

    assert abs(root - (-50.0 + math.sqrt(2500.0 + 30.0))) < 1e-11
    assert 2 < solver.evaluations <= 100


@pytest.mark.parametrize("method", [_SecantMethod.PEGASUS, _SecantMethod.ILLINOIS])
def test_superlinear_methods_on_curved_functions(method):
    solver = _BracketingSolver(1e-13, method=method)
    assert abs(solver.solve(100, _increasing, 0.0, 2.0) - ROOT2) < 1e-12
    assert abs(solver.solve(100, math.sin, 3.0, 4.0) - math.pi) < 1e-12
    assert abs(solver.solve(100, lambda x: math.exp(x) - 2.0, -1.0, 3.0) - math.log(2.0)) < 1e-12


@pytest.mark.parametrize("f, allowed, check", [
    (_increasing, AllowedSolution.LEFT_SIDE, lambda x: x <= ROOT2),
    (_increasing, AllowedSolution.RIGHT_SIDE, lambda x: x >= ROOT2),
    (_increasing, AllowedSolution.BELOW_SIDE, lambda x: _increasing(x) <= 0.0),
    (_increasing, AllowedSolution.ABOVE_SIDE, lambda x: _increasing(x) >= 0.0),
    (_decreasing, AllowedSolution.LEFT_SIDE, lambda x: x <= ROOT2),
    (_decreasing, AllowedSolution.RIGHT_SIDE, lambda x: x >= ROOT2),
    (_decreasing, AllowedSolution.BELOW_SIDE, lambda x: _decreasing(x) <= 0.0),
    (_decreasing, AllowedSolution.ABOVE_SIDE, lambda x: _decreasing(x) >= 0.0),
])
def test_allowed_side_is_respected(f, allowed, check):
    solver = _BracketingSolver(1e-10)
    x = solver.solve(100, f, 0.0, 2.0, allowed)

    assert abs(x - ROOT2) < 1e-9
    assert check(x)


def test_root_on_end_point_is_returned_immediately():
    solver = _BracketingSolver(1e-10)
    assert solver.solve(100, lambda x: x, 0.0, 1.0) == 0.0
    assert solver.evaluations == 2
    assert solver.solve(100, lambda x: x - 1.0, 0.0, 1.0) == 1.0


def test_no_bracketing_raises():
    solver = _BracketingSolver(1e-10)
    with pytest.raises(NoBracketingError) as info:
        solver.solve(100, lambda x: x * x + 1.0, -1.0, 1.0)
    assert info.value.lower == -1.0
    assert info.value.upper == 1.0


def test_evaluation_budget_raises():
    solver = _BracketingSolver(1e-15)
    with pytest.raises(ConvergenceError):
        solver.solve(3, _increasing, 0.0, 2.0)
