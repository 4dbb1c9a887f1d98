import numpy as np
import pytest

from odeon.algorithms.dynamics import (ExpandableODE, VariationalEquations,
                                       create_rhs_system)
from odeon.algorithms.fields import GradientField
from odeon.algorithms.integrators import AdaptiveRK
from odeon.algorithms.utils.exceptions import DimensionMismatchError
from odeon.algorithms.utils.types import _ODEState

DECAY_RATE = 0.7
MU = 0.5


def _harmonic(t, y):
    return np.array([y[1], -y[0]])


def _harmonic_jacobian(t, y):
    return np.array([[0.0, 1.0], [-1.0, 0.0]])


def _decay(t, y):
    return np.array([-DECAY_RATE * y[0]])


def _van_der_pol(t, y):
    return np.array([y[1], MU * (1.0 - y[0] * y[0]) * y[1] - y[0]])


def _stm(t):
    return np.array([[np.cos(t), np.sin(t)], [-np.sin(t), np.cos(t)]])


def _integrate(system, variational, y0, t1, tol=1e-12):
    ode = ExpandableODE(system)
    variational.register(ode)
    start = _ODEState(0.0, y0, [variational.initial_state()])
    final = AdaptiveRK(order=8, rtol=tol, atol=tol).integrate(ode, start, t1)
    return final


@pytest.mark.parametrize("jacobian", [_harmonic_jacobian, None])
def test_state_transition_matrix_of_oscillator(jacobian):
    system = create_rhs_system(_harmonic, dim=2, name="harmonic")
    variational = VariationalEquations(system, jacobian=jacobian)
    final = _integrate(system, variational, [0.0, 1.0], 2.0)

    stm, sensitivities = variational.extract(final)
    assert sensitivities.shape == (2, 0)
    np.testing.assert_allclose(stm, _stm(2.0), atol=1e-6)
    np.testing.assert_allclose(final.primary_state, [np.sin(2.0), np.cos(2.0)], atol=1e-10)


def test_parameter_sensitivity_of_decay():
    system = create_rhs_system(_decay, dim=1, name="decay")
    variational = VariationalEquations(
        system, jacobian=lambda t, y: np.array([[-DECAY_RATE]]), n_parameters=1,
        parameter_jacobian=lambda t, y: np.array([[-y[0]]]))
    t1 = 1.5
    final = _integrate(system, variational, [2.0], t1)

    stm, sensitivities = variational.extract(final)
    decay = np.exp(-DECAY_RATE * t1)
    np.testing.assert_allclose(stm, [[decay]], rtol=1e-9)
    np.testing.assert_allclose(sensitivities, [[-t1 * 2.0 * decay]], rtol=1e-9)


def test_finite_differences_agree_with_gradient_field():
    y0 = [2.0, 0.0]
    t1 = 1.0

    system = create_rhs_system(_van_der_pol, dim=2, name="van der Pol")
    variational = VariationalEquations(system)
    final = _integrate(system, variational, y0, t1, tol=1e-11)
    stm, _ = variational.extract(final)

    plain = create_rhs_system(_van_der_pol, dim=2, name="van der Pol", jit=False)
    field = GradientField(2)
    start = _ODEState(0.0, field.array([field.variable(y0[0], 0), field.variable(y0[1], 1)]))
    final_field = AdaptiveRK(order=8, rtol=1e-11, atol=1e-11).integrate(plain, start, t1)

    np.testing.assert_allclose(stm, field.jacobian(final_field.primary_state), atol=1e-6)


def test_extract_and_registration_checks():
    system = create_rhs_system(_harmonic, dim=2, name="harmonic")
    variational = VariationalEquations(system)

    assert variational.dimension == 4
    np.testing.assert_array_equal(variational.initial_state(), [1.0, 0.0, 0.0, 1.0])
    with pytest.raises(ValueError):
        variational.extract(_ODEState(0.0, [0.0, 1.0], [np.zeros(4)]))
    with pytest.raises(DimensionMismatchError):
        variational.extract(np.zeros(3))

    other = ExpandableODE(create_rhs_system(_decay, dim=1, name="decay"))
    with pytest.raises(DimensionMismatchError):
        variational.register(other)

    ode = ExpandableODE(system)
    assert variational.register(ode) == 1
    assert variational.index == 1


def test_constructor_checks():
    system = create_rhs_system(_harmonic, dim=2, name="harmonic")
    with pytest.raises(DimensionMismatchError):
        VariationalEquations(system, h_y=[1e-6])
    with pytest.raises(ValueError):
        VariationalEquations(system, n_parameters=1)
