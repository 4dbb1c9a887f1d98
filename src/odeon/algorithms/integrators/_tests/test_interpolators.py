import numpy as np
import pytest

from odeon.algorithms.dynamics.rhs import create_rhs_system
from odeon.algorithms.integrators.rk import (_DOP853, _ClassicalRK,
                                             _DormandPrince54, _Euler, _Gill,
                                             _HighamHall54, _Luther, _Midpoint,
                                             _ThreeEighths)
from odeon.algorithms.integrators.sampling import StepHandler
from odeon.algorithms.utils.types import _ODEState


class _Capture(StepHandler):
    def __init__(self):
        self.steps = []

    def handle_step(self, interpolator, is_last):
        self.steps.append(interpolator)


@pytest.fixture(scope="module")
def harmonic():
    return create_rhs_system(lambda t, y: np.array([y[1], -y[0]]), dim=2, name="harmonic")


def _exact(t):
    return np.array([np.sin(t), np.cos(t)])


def _exact_dot(t):
    return np.array([np.cos(t), -np.sin(t)])


def _capture(integrator, system, t0, t1):
    capture = _Capture()
    integrator.add_step_handler(capture)
    integrator.integrate(system, _ODEState(t0, _exact(t0)), t1)
    return capture.steps


@pytest.mark.parametrize("make, tol", [
    (lambda: _Euler(step=0.01), 2e-2),
    (lambda: _Midpoint(step=0.02), 1e-3),
    (lambda: _ClassicalRK(step=0.1), 1e-4),
    (lambda: _Gill(step=0.1), 1e-4),
    (lambda: _ThreeEighths(step=0.1), 1e-4),
    (lambda: _Luther(step=0.1), 1e-4),
    (lambda: _HighamHall54(rtol=1e-10, atol=1e-10), 1e-7),
    (lambda: _DormandPrince54(rtol=1e-10, atol=1e-10), 1e-7),
    (lambda: _DOP853(rtol=1e-10, atol=1e-10), 1e-8),
])
def test_dense_output_tracks_solution(harmonic, make, tol):
    steps = _capture(make(), harmonic, 0.0, 2.0)
    assert steps

    for interpolator in steps:
        t0 = interpolator.previous_state.time
        t1 = interpolator.current_state.time
        for theta in (0.25, 0.5, 0.75):
            t = t0 + theta * (t1 - t0)
            state = interpolator.get_interpolated_state(t)
            assert state.time == t
            np.testing.assert_allclose(state.primary_state, _exact(t), atol=tol)
            np.testing.assert_allclose(state.primary_derivative, _exact_dot(t), atol=10 * tol)


@pytest.mark.parametrize("make", [
    lambda: _ClassicalRK(step=0.1),
    lambda: _DormandPrince54(rtol=1e-8, atol=1e-8),
    lambda: _DOP853(rtol=1e-8, atol=1e-8),
])
def test_dense_output_reproduces_step_ends(harmonic, make):
    steps = _capture(make(), harmonic, 0.0, 2.0)

    for interpolator in steps:
        previous = interpolator.previous_state
        current = interpolator.current_state
        start = interpolator.get_interpolated_state(previous.time)
        end = interpolator.get_interpolated_state(current.time)
        np.testing.assert_array_equal(start.primary_state, previous.primary_state)
        np.testing.assert_array_equal(end.primary_state, current.primary_state)

    for before, after in zip(steps[:-1], steps[1:]):
        assert before.current_state.time == after.previous_state.time
        np.testing.assert_array_equal(before.current_state.primary_state,
                                      after.previous_state.primary_state)


def test_backward_dense_output(harmonic):
    steps = _capture(_DOP853(rtol=1e-10, atol=1e-10), harmonic, 2.0, 0.0)

    for interpolator in steps:
        assert not interpolator.is_forward
        t0 = interpolator.previous_state.time
        t1 = interpolator.current_state.time
        assert t1 < t0
        t = 0.5 * (t0 + t1)
        np.testing.assert_allclose(interpolator.get_interpolated_state(t).primary_state,
                                   _exact(t), atol=1e-8)


def test_restricted_copy_keeps_global_bounds(harmonic):
    steps = _capture(_DOP853(rtol=1e-8, atol=1e-8), harmonic, 0.0, 1.0)
    interpolator = steps[0]
    t0 = interpolator.previous_state.time
    t1 = interpolator.current_state.time
    middle = interpolator.get_interpolated_state(0.5 * (t0 + t1))

    restricted = interpolator.restrict_step(interpolator.previous_state, middle)
    assert restricted.current_state is middle
    assert restricted.global_current_state is interpolator.global_current_state
    assert interpolator.current_state is interpolator.global_current_state

    t = 0.25 * (t0 + t1)
    np.testing.assert_array_equal(restricted.get_interpolated_state(t).primary_state,
                                  interpolator.get_interpolated_state(t).primary_state)


def test_dop853_extra_stages_are_counted_once(harmonic):
    counts = []

    class _Probe(StepHandler):
        def handle_step(self, interpolator, is_last):
            before = integrator.get_evaluations()
            t = 0.5 * (interpolator.previous_state.time + interpolator.current_state.time)
            interpolator.get_interpolated_state(t)
            interpolator.get_interpolated_state(t)
            counts.append(integrator.get_evaluations() - before)

    integrator = _DOP853(rtol=1e-8, atol=1e-8)
    integrator.add_step_handler(_Probe())
    integrator.integrate(harmonic, _ODEState(0.0, _exact(0.0)), 1.0)

    assert counts
    assert all(c == 3 for c in counts)
