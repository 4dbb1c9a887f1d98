import numpy as np
import pytest

from odeon.algorithms.dynamics import (ExpandableODE, SecondaryEquations,
                                       _EvaluationCounter, create_rhs_system)
from odeon.algorithms.utils.exceptions import (DimensionMismatchError,
                                               MaxCountExceededError)
from odeon.algorithms.utils.types import _ODEState


class _Quadrature(SecondaryEquations):
    """Accumulate the integral of the first primary component."""

    def __init__(self):
        self.initialized_at = None

    @property
    def dimension(self):
        return 1

    def init(self, t0, primary0, secondary0, final_time):
        self.initialized_at = (t0, final_time)

    def compute_derivatives(self, t, primary, primary_dot, secondary):
        return np.array([primary[0]])


@pytest.fixture
def ode():
    def rhs(t, y):
        return np.array([y[1], -y[0]])

    system = create_rhs_system(rhs, dim=2, name="oscillator")
    return ExpandableODE(system)


def test_secondary_blocks_are_indexed_from_one(ode):
    assert ode.add_secondary_equations(_Quadrature()) == 1
    assert ode.add_secondary_equations(_Quadrature()) == 2
    assert ode.dimension == 4
    assert ode.mapper.number_of_equations == 3


def test_compute_derivatives_concatenates_blocks(ode):
    ode.add_secondary_equations(_Quadrature())
    y_dot = ode.compute_derivatives(0.0, np.array([1.0, 2.0, 5.0]))
    np.testing.assert_array_equal(y_dot, [2.0, -1.0, 1.0])


def test_dimension_mismatch_is_checked_before_counting(ode):
    ode.counter = _EvaluationCounter(3)
    with pytest.raises(DimensionMismatchError):
        ode.compute_derivatives(0.0, np.zeros(3))
    assert ode.counter.count == 0


def test_counter_enforces_budget(ode):
    ode.counter = _EvaluationCounter(2)
    ode.compute_derivatives(0.0, np.zeros(2))
    ode.compute_derivatives(0.0, np.zeros(2))
    with pytest.raises(MaxCountExceededError) as info:
        ode.compute_derivatives(0.0, np.zeros(2))
    assert info.value.max_count == 2
    assert ode.counter.count == 2


def test_unlimited_counter():
    counter = _EvaluationCounter()
    for _ in range(1000):
        counter.increment()
    assert counter.count == 1000
    counter.reset()
    assert counter.count == 0


def test_init_reaches_secondary_equations(ode):
    quad = _Quadrature()
    ode.add_secondary_equations(quad)
    ode.init(0.5, np.array([1.0, 0.0, 0.0]), 3.0)
    assert quad.initialized_at == (0.5, 3.0)


def test_mapper_round_trip_and_checks(ode):
    ode.add_secondary_equations(_Quadrature())
    mapper = ode.mapper
    state = _ODEState(1.0, [1.0, 2.0], [[3.0]])
    complete = mapper.map_state(state)
    np.testing.assert_array_equal(complete, [1.0, 2.0, 3.0])

    sd = mapper.map_state_and_derivative(1.0, complete, np.array([4.0, 5.0, 6.0]))
    np.testing.assert_array_equal(sd.primary_state, [1.0, 2.0])
    np.testing.assert_array_equal(sd.get_secondary_derivative(1), [6.0])
    np.testing.assert_array_equal(sd.complete_derivative, [4.0, 5.0, 6.0])

    with pytest.raises(DimensionMismatchError):
        mapper.map_state(_ODEState(1.0, [1.0, 2.0]))
    with pytest.raises(DimensionMismatchError):
        mapper.map_state(_ODEState(1.0, [1.0, 2.0], [[3.0, 4.0]]))
    with pytest.raises(DimensionMismatchError):
        mapper.map_state_and_derivative(1.0, np.zeros(2), np.zeros(3))


def test_states_are_read_only():
    state = _ODEState(0.0, np.array([1.0, 2.0]))
    with pytest.raises(ValueError):
        state.primary_state[0] = 5.0
