import numpy as np
import pytest
from scipy.integrate import solve_ivp

from odeon.algorithms.dynamics.rhs import create_rhs_system
from odeon.algorithms.integrators import Adams
from odeon.algorithms.integrators.adams import (_AdamsBashforth, _AdamsMoulton,
                                                _MultistepIntegrator)
from odeon.algorithms.integrators.events import (Action, EventHandler,
                                                 FunctionEventHandler)
from odeon.algorithms.integrators.rk import _DOP853, _ClassicalRK
from odeon.algorithms.integrators.sampling import StepHandler
from odeon.algorithms.utils.exceptions import (IllegalStateError,
                                               MaxCountExceededError,
                                               MinStepSizeError,
                                               NumberIsTooSmallError)
from odeon.algorithms.utils.types import _ODEState

GRAVITY = 9.81
MU = 1.0


def _van_der_pol(t, y):
    return np.array([y[1], MU * (1.0 - y[0] * y[0]) * y[1] - y[0]])


class _Capture(StepHandler):
    def __init__(self):
        self.steps = []

    def handle_step(self, interpolator, is_last):
        self.steps.append(interpolator)


class _Bounce(EventHandler):
    def __init__(self):
        self.times = []

    def g(self, state):
        return state.primary_state[0]

    def event_occurred(self, state, increasing):
        if increasing:
            return Action.CONTINUE
        self.times.append(state.time)
        return Action.RESET_STATE

    def reset_state(self, state):
        return _ODEState(state.time, [0.0, -0.9 * state.primary_state[1]])


@pytest.fixture(scope="module")
def harmonic():
    return create_rhs_system(lambda t, y: np.array([y[1], -y[0]]), dim=2, name="harmonic")


def _start(t):
    return _ODEState(t, [np.sin(t), np.cos(t)])


@pytest.mark.parametrize("n_steps", [3, 4, 5])
@pytest.mark.parametrize("corrector", [False, True])
def test_adams_tracks_harmonic_oscillator(harmonic, n_steps, corrector):
    integrator = Adams(n_steps=n_steps, corrector=corrector, rtol=1e-10, atol=1e-10)
    final = integrator.integrate(harmonic, _start(0.0), 3.0)

    assert final.time == 3.0
    np.testing.assert_allclose(final.primary_state, [np.sin(3.0), np.cos(3.0)], atol=1e-5)
    np.testing.assert_allclose(final.primary_derivative, [np.cos(3.0), -np.sin(3.0)], atol=1e-5)


@pytest.mark.parametrize("corrector", [False, True])
def test_adams_backward(harmonic, corrector):
    integrator = Adams(n_steps=4, corrector=corrector, rtol=1e-10, atol=1e-10)
    final = integrator.integrate(harmonic, _start(3.0), 0.0)

    assert final.time == 0.0
    np.testing.assert_allclose(final.primary_state, [0.0, 1.0], atol=1e-5)


@pytest.mark.parametrize("corrector", [False, True])
def test_tighter_tolerance_is_more_accurate(harmonic, corrector):
    errors, counts = [], []
    for tol in (1e-6, 1e-10):
        integrator = Adams(n_steps=4, corrector=corrector, rtol=tol, atol=tol)
        final = integrator.integrate(harmonic, _start(0.0), 3.0)
        errors.append(np.max(np.abs(final.primary_state - [np.sin(3.0), np.cos(3.0)])))
        counts.append(integrator.get_evaluations())

    assert errors[1] < errors[0]
    assert counts[1] > counts[0]


def test_names_and_orders():
    ab = Adams(n_steps=4)
    am = Adams(n_steps=4, corrector=True)

    assert isinstance(ab, _AdamsBashforth)
    assert isinstance(am, _AdamsMoulton)
    assert str(ab) == "ODEON-Adams-Bashforth"
    assert str(am) == "ODEON-Adams-Moulton"
    assert ab.order == 4
    assert am.order == 5
    assert ab.step_config.max_growth == 2.0 ** 0.25


def test_too_few_steps_raise():
    with pytest.raises(NumberIsTooSmallError):
        Adams(n_steps=1)
    with pytest.raises(NumberIsTooSmallError):
        Adams(n_steps=1, corrector=True)


def test_multistep_base_is_abstract():
    with pytest.raises(TypeError):
        _MultistepIntegrator("multistep", 4, 4)


def test_default_starter_shares_bounds_and_tolerances():
    integrator = Adams(n_steps=4, min_step=1e-8, max_step=0.5, rtol=1e-9, atol=1e-11)
    starter = integrator.get_starter_integrator()

    assert isinstance(starter, _DOP853)
    assert starter.step_config.min_step == 1e-8
    assert starter.step_config.max_step == 0.5
    assert starter.step_config.rel_tol == 1e-9
    assert starter.step_config.abs_tol == 1e-11


def test_steps_respect_max_step_and_interpolate(harmonic):
    capture = _Capture()
    integrator = Adams(n_steps=5, corrector=True, max_step=0.05, rtol=1e-10, atol=1e-10)
    integrator.add_step_handler(capture)
    integrator.integrate(harmonic, _start(0.0), 2.0)

    assert capture.steps[0].previous_state.time == 0.0
    assert capture.steps[-1].current_state.time == 2.0
    for before, after in zip(capture.steps[:-1], capture.steps[1:]):
        assert before.current_state.time == after.previous_state.time

    for interpolator in capture.steps:
        t0 = interpolator.previous_state.time
        t1 = interpolator.current_state.time
        assert 0.0 < t1 - t0 <= 0.05 + 1e-15
        t = 0.5 * (t0 + t1)
        state = interpolator.get_interpolated_state(t)
        np.testing.assert_allclose(state.primary_state, [np.sin(t), np.cos(t)], atol=1e-6)
        np.testing.assert_array_equal(interpolator.get_interpolated_state(t1).primary_state,
                                      interpolator.current_state.primary_state)


def test_starter_evaluations_are_charged(harmonic):
    integrator = Adams(n_steps=4, rtol=1e-8, atol=1e-8)
    integrator.integrate(harmonic, _start(0.0), 2.0)

    starter_count = integrator.get_starter_integrator().get_evaluations()
    assert starter_count > 0
    assert integrator.get_evaluations() > starter_count


def test_starter_stopping_early_is_an_illegal_state(harmonic):
    integrator = Adams(n_steps=4)
    integrator.set_starter_integrator(_ClassicalRK(step=1.0))
    with pytest.raises(IllegalStateError):
        integrator.integrate(harmonic, _start(0.0), 1.0)


def test_starter_failure_is_an_illegal_state(harmonic):
    integrator = Adams(n_steps=4)
    integrator.set_starter_integrator(
        _DOP853(min_step=0.5, max_step=1.0, rtol=1e-12, atol=1e-12))
    with pytest.raises(IllegalStateError) as info:
        integrator.integrate(harmonic, _start(0.0), 10.0)
    assert isinstance(info.value.__cause__, MinStepSizeError)


@pytest.mark.parametrize("budget", [15, 300])
def test_budget_covers_starter_and_main_loop(harmonic, budget):
    integrator = Adams(n_steps=4, rtol=1e-10, atol=1e-10)
    integrator.set_max_evaluations(budget)
    with pytest.raises(MaxCountExceededError) as info:
        integrator.integrate(harmonic, _start(0.0), 100.0)
    assert info.value.max_count == budget


def test_stop_event(harmonic):
    integrator = Adams(n_steps=4, corrector=True, rtol=1e-10, atol=1e-10)
    integrator.add_event_handler(FunctionEventHandler(lambda t, y: y[0]), convergence=1e-12)
    final = integrator.integrate(harmonic, _start(0.5), 10.0)

    assert abs(final.time - np.pi) < 1e-8


def test_reset_restarts_history():
    falling = create_rhs_system(lambda t, y: np.array([y[1], -GRAVITY]), dim=2, name="falling")
    bounce = _Bounce()
    integrator = Adams(n_steps=4, corrector=True, rtol=1e-10, atol=1e-10)
    integrator.add_event_handler(bounce, convergence=1e-12)
    final = integrator.integrate(falling, _ODEState(0.0, [1.0, 0.0]), 1.5)

    t1 = np.sqrt(2.0 / GRAVITY)
    assert final.time == 1.5
    np.testing.assert_allclose(bounce.times, [t1, t1 + 1.8 * t1], atol=1e-8)


class _Kick(EventHandler):
    def __init__(self, time):
        self.time = time
        self.times = []

    def g(self, state):
        return state.time - self.time

    def event_occurred(self, state, increasing):
        self.times.append(state.time)
        return Action.RESET_DERIVATIVES


class _CountingStarter(_DOP853):
    def __init__(self, **opts):
        super().__init__(**opts)
        self.runs = []

    def integrate(self, equations, start_state, final_time):
        self.runs.append(start_state.time)
        return super().integrate(equations, start_state, final_time)


def test_history_restarts_once_per_reset(harmonic):
    kick = _Kick(0.9)
    starter = _CountingStarter(rtol=1e-11, atol=1e-11)
    integrator = Adams(n_steps=4, rtol=1e-11, atol=1e-11)
    integrator.set_starter_integrator(starter)
    integrator.add_event_handler(kick, convergence=1e-12)
    final = integrator.integrate(harmonic, _start(0.0), 20.0)

    assert final.time == 20.0
    assert len(kick.times) == 1
    assert len(starter.runs) == 2
    assert starter.runs[0] == 0.0
    assert abs(starter.runs[1] - 0.9) < 1e-10
    np.testing.assert_allclose(final.primary_state, [np.sin(20.0), np.cos(20.0)], atol=1e-5)


def test_reset_close_to_final_time(harmonic):
    kick = _Kick(0.9)
    starter = _CountingStarter()
    integrator = Adams(n_steps=4)
    integrator.set_starter_integrator(starter)
    integrator.add_event_handler(kick)
    final = integrator.integrate(harmonic, _start(0.0), 1.0)

    assert final.time == 1.0
    assert len(starter.runs) == 2


def test_adams_bashforth_4_on_unit_interval(harmonic):
    counts = []
    for tol in (1e-4, 1e-6):
        integrator = Adams(n_steps=4, rtol=tol, atol=tol)
        assert integrator.name == "Adams-Bashforth"
        assert integrator.order == 4
        final = integrator.integrate(harmonic, _start(0.0), 1.0)

        assert final.time == 1.0
        error = np.max(np.abs(final.primary_state - [np.sin(1.0), np.cos(1.0)]))
        assert error < 100.0 * tol
        counts.append(integrator.get_evaluations())

    assert counts[0] <= counts[1]


def test_agrees_with_scipy_reference():
    system = create_rhs_system(_van_der_pol, dim=2, name="van der Pol")
    integrator = Adams(n_steps=5, corrector=True, rtol=1e-11, atol=1e-11)
    final = integrator.integrate(system, _ODEState(0.0, [2.0, 0.0]), 5.0)

    reference = solve_ivp(_van_der_pol, (0.0, 5.0), [2.0, 0.0], method="DOP853",
                          rtol=1e-13, atol=1e-13)
    np.testing.assert_allclose(final.primary_state, reference.y[:, -1], atol=1e-6)
