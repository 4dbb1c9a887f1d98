import math

import numpy as np
import pytest

from odeon.algorithms.fields import GradientField
from odeon.algorithms.integrators.nordsieck import (
    _AdamsNordsieckTransformer, _solve_linear, rescale_nordsieck,
    taylor_derivative, taylor_state)


def _monomial_history(degree, n_rows, t, h):
    """Exact Nordsieck pieces of ``y = t**degree`` at *t* for step *h*."""
    def derivative(order):
        if order > degree:
            return 0.0
        return math.factorial(degree) / math.factorial(degree - order) * t ** (degree - order)

    y = np.array([t ** degree])
    scaled = np.array([h * derivative(1)])
    rows = [np.array([h ** j / math.factorial(j) * derivative(j)]) for j in range(2, n_rows + 2)]
    return y, scaled, rows


def test_two_step_coefficients():
    transformer = _AdamsNordsieckTransformer(2)
    assert transformer.n_rows == 1
    assert transformer._c1 == [-0.5]
    assert transformer._update == [[0.0]]


def test_instances_are_cached():
    assert _AdamsNordsieckTransformer.get_instance(4) is _AdamsNordsieckTransformer.get_instance(4)
    assert _AdamsNordsieckTransformer.get_instance(4) is not _AdamsNordsieckTransformer.get_instance(5)


@pytest.mark.parametrize("n_steps", [2, 3, 4, 5, 6])
def test_update_is_exact_on_polynomials(n_steps):
    transformer = _AdamsNordsieckTransformer.get_instance(n_steps)
    t, h = 0.3, 0.1
    y, scaled, rows = _monomial_history(n_steps, transformer.n_rows, t, h)
    y_end, scaled_end, rows_end = _monomial_history(n_steps, transformer.n_rows, t + h, h)

    np.testing.assert_allclose(taylor_state(y, scaled, rows, 1.0), y_end, rtol=1e-12)

    shifted = transformer.update_high_order_derivatives_phase1(rows)
    updated = transformer.update_high_order_derivatives_phase2(scaled, scaled_end, shifted)
    for got, expected in zip(updated, rows_end):
        np.testing.assert_allclose(got, expected, rtol=1e-10, atol=1e-14)


@pytest.mark.parametrize("n_steps", [2, 3, 4, 5])
def test_initialization_recovers_polynomial_rows(n_steps):
    transformer = _AdamsNordsieckTransformer.get_instance(n_steps)
    h = 0.2
    n_points = (n_steps + 3) // 2
    t = [1.0 + i * h for i in range(n_points)]
    y = [np.array([ti ** n_steps]) for ti in t]
    y_dot = [np.array([n_steps * ti ** (n_steps - 1)]) for ti in t]

    rows = transformer.initialize_high_order_derivatives(h, t, y, y_dot)
    _, _, expected = _monomial_history(n_steps, transformer.n_rows, t[0], h)

    assert len(rows) == transformer.n_rows
    for got, exp in zip(rows, expected):
        np.testing.assert_allclose(got, exp, rtol=1e-9, atol=1e-12)


def test_rescaled_history_describes_the_same_polynomial():
    _, scaled, rows = _monomial_history(4, 3, 0.5, 0.1)
    y = np.array([0.5 ** 4])
    ratio = 0.37
    new_scaled, new_rows = rescale_nordsieck(scaled, rows, ratio)

    for s in (-1.0, -0.4, 0.6):
        np.testing.assert_allclose(taylor_state(y, new_scaled, new_rows, s / ratio),
                                   taylor_state(y, scaled, rows, s), rtol=1e-13)
        np.testing.assert_allclose(taylor_derivative(new_scaled, new_rows, s / ratio, 0.1 * ratio),
                                   taylor_derivative(scaled, rows, s, 0.1), rtol=1e-12)


def test_taylor_derivative_of_monomial():
    h = 0.1
    _, scaled, rows = _monomial_history(3, 2, 0.5, h)
    # derivative of t**3 at 0.5 + 0.5 h
    np.testing.assert_allclose(taylor_derivative(scaled, rows, 0.5, h),
                               [3.0 * 0.55 ** 2], rtol=1e-13)


def test_solve_linear_matches_numpy():
    a = [[2.0, 1.0, -1.0], [-3.0, -1.0, 2.0], [-2.0, 1.0, 2.0]]
    b = [np.array([8.0, 1.0]), np.array([-11.0, 0.0]), np.array([-3.0, 2.0])]
    x = _solve_linear(a, b)
    expected = np.linalg.solve(np.array(a), np.array(b))
    np.testing.assert_allclose(np.array(x), expected, rtol=1e-12, atol=1e-12)


def test_solve_linear_field_rows_share_real_parts():
    a = [[2.0, 1.0, -1.0], [-3.0, -1.0, 2.0], [-2.0, 1.0, 2.0]]
    values = [8.0, -11.0, -3.0]
    field = GradientField(1)
    x_float = _solve_linear(a, [np.array([v]) for v in values])
    x_field = _solve_linear(a, [field.array([field.variable(v, 0)]) for v in values])

    for xf, xg in zip(x_float, x_field):
        assert float(xg[0]) == xf[0]
    # d x / d b for b = (1, 1, 1) * p is the row sum of the inverse
    np.testing.assert_allclose([field.jacobian(xg)[0, 0] for xg in x_field],
                               np.linalg.inv(np.array(a)).sum(axis=1), rtol=1e-12)


def test_solve_linear_rejects_singular_matrix():
    with pytest.raises(np.linalg.LinAlgError):
        _solve_linear([[1.0, 2.0], [2.0, 4.0]], [np.array([1.0]), np.array([2.0])])
