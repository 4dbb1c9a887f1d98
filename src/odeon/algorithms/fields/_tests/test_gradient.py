import math

import numpy as np
import pytest

from odeon.algorithms.fields import (Gradient, GradientField, RealField,
                                     infer_field, linear_combination)


@pytest.fixture
def field():
    return GradientField(2)


def test_product_rule(field):
    x = field.variable(3.0, 0)
    y = field.variable(-2.0, 1)
    z = x * y + 2.0 * x
    assert z.value == -6.0 + 6.0
    np.testing.assert_allclose(z.grad, [-2.0 + 2.0, 3.0])


def test_quotient_and_reverse_operations(field):
    x = field.variable(2.0, 0)
    q = 1.0 / x
    assert q.value == 0.5
    np.testing.assert_allclose(q.grad, [-0.25, 0.0])
    r = 5.0 - x
    assert r.value == 3.0
    np.testing.assert_allclose(r.grad, [-1.0, 0.0])
    s = x / field.variable(4.0, 1)
    np.testing.assert_allclose(s.grad, [0.25, -2.0 / 16.0])


def test_elementary_functions(field):
    x = field.variable(0.7, 0)
    assert np.sqrt(np.array([x], dtype=object))[0].value == math.sqrt(0.7)
    np.testing.assert_allclose(x.sqrt().grad, [0.5 / math.sqrt(0.7), 0.0])
    np.testing.assert_allclose(x.exp().grad, [math.exp(0.7), 0.0])
    np.testing.assert_allclose(x.sin().grad, [math.cos(0.7), 0.0])
    np.testing.assert_allclose(x.cos().grad, [-math.sin(0.7), 0.0])
    np.testing.assert_allclose((x ** 3).grad, [3 * 0.7 ** 2, 0.0])
    np.testing.assert_allclose(x.log().grad, [1 / 0.7, 0.0])


def test_comparison_uses_real_part(field):
    a = field.variable(1.0, 0)
    b = field.constant(2.0)
    assert a < b
    assert b >= 2.0
    assert abs(-a).value == 1.0
    assert abs(-a).grad[0] == 1.0
    assert max(a, b) is b


def test_real_part_matches_float_arithmetic(field):
    rng = np.random.default_rng(12)
    values = rng.normal(size=(4, 3))
    coeffs = [0.25, -1.0 / 3.0, 0.0, 7.0 / 11.0]
    float_vectors = [v for v in values]
    grad_vectors = [field.array(v) for v in values]

    expected = 0.1 + 0.3 * linear_combination(coeffs, float_vectors)
    got = 0.1 + 0.3 * linear_combination(coeffs, grad_vectors)
    assert np.array_equal(field.real_array(got), expected)


def test_linear_combination_all_zero_coefficients():
    out = linear_combination([0.0, 0.0], [np.ones(3), np.ones(3)])
    assert np.array_equal(out, np.zeros(3))


def test_infer_field():
    assert infer_field(np.zeros(3)) == RealField()
    f = GradientField(3)
    y = f.array([f.variable(1.0, 0), 2.0, 3.0])
    assert infer_field(y) == GradientField(3)


def test_jacobian_and_conversion_errors(field):
    y = field.array([field.variable(1.0, 0), 4.0])
    np.testing.assert_array_equal(field.jacobian(y), [[1.0, 0.0], [0.0, 0.0]])
    with pytest.raises(ValueError):
        field.convert(Gradient(1.0, [1.0, 2.0, 3.0]))
    with pytest.raises(ValueError):
        field.variable(0.0, 5)
