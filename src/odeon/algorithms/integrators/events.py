"""Event handlers and the per-handler detection state.

An event is a sign change of a scalar switching function ``g(state)``.
After every accepted step the integrator asks each :class:`_EventState`
whether ``g`` changed sign over the step, locates the root with a
bracketing solver on the dense output, and lets the handler decide what
happens next (see :class:`Action`).
"""

import math
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Optional

import numpy as np

from odeon.algorithms.integrators.configs import _EventConfig
from odeon.algorithms.integrators.solvers import (AllowedSolution,
                                                  _BracketingSolver)
from odeon.algorithms.utils.types import _ODEState, _ODEStateAndDerivative


class Action(Enum):
    """What the integrator does after an event."""

    CONTINUE = "continue"
    RESET_STATE = "reset_state"
    RESET_DERIVATIVES = "reset_derivatives"
    STOP = "stop"


class EventHandler(ABC):
    """Switching function together with the reaction to its zeros."""

    def init(self, initial_state: _ODEStateAndDerivative, final_time: float) -> None:
        pass

    @abstractmethod
    def g(self, state: _ODEStateAndDerivative) -> float:
        """Switching function; events are its sign changes."""
        pass

    @abstractmethod
    def event_occurred(self, state: _ODEStateAndDerivative, increasing: bool) -> Action:
        """React to a zero of :meth:`g`.

        Parameters
        ----------
        state : _ODEStateAndDerivative
            State at the event.
        increasing : bool
            True when ``g`` increases with time across the event.
        """
        pass

    def reset_state(self, state: _ODEStateAndDerivative) -> _ODEState:
        """New state after a :attr:`Action.RESET_STATE` event."""
        return state


class FunctionEventHandler(EventHandler):
    """Event handler built from a plain ``g(t, y)`` callable.

    Parameters
    ----------
    g_fn : callable
        ``g_fn(t, y) -> float`` evaluated on the primary state.
    direction : int, default 0
        ``0`` reacts to every crossing, ``+1`` only to increasing ones and
        ``-1`` only to decreasing ones.
    terminal : bool, default True
        Stop the integration at a matching crossing.
    """

    def __init__(self, g_fn: Callable[[float, np.ndarray], float], direction: int = 0,
                 terminal: bool = True):
        if direction not in (-1, 0, 1):
            raise ValueError(f"direction must be -1, 0 or +1, got {direction}")
        self.g_fn = g_fn
        self.direction = direction
        self.terminal = terminal

    def g(self, state):
        return float(self.g_fn(state.time, state.primary_state))

    def event_occurred(self, state, increasing):
        if self.direction != 0 and increasing != (self.direction > 0):
            return Action.CONTINUE
        return Action.STOP if self.terminal else Action.CONTINUE


class _EventState:
    """Detection state of one event handler over an integration.

    Parameters
    ----------
    handler : EventHandler
        Wrapped handler.
    config : _EventConfig
        Check interval, convergence threshold and iteration budget.
    solver : _BracketingSolver, optional
        Root solver, Pegasus with absolute accuracy ``config.convergence``
        by default.
    """

    def __init__(self, handler: EventHandler, config: _EventConfig,
                 solver: Optional[_BracketingSolver] = None):
        self.handler = handler
        self.config = config
        self.solver = solver if solver is not None else _BracketingSolver(config.convergence)

        self._t0 = math.nan
        self._g0 = math.nan
        self._g0_positive = True
        self._pending_event = False
        self._pending_event_time = math.nan
        self._previous_event_time = math.nan
        self._increasing = True
        self._forward = True
        self._next_action = Action.CONTINUE
        self._restarted = False

    @property
    def max_check_interval(self) -> float:
        return self.config.max_check_interval

    @property
    def convergence(self) -> float:
        return self.config.convergence

    @property
    def max_iteration_count(self) -> int:
        return self.config.max_iteration_count

    @property
    def event_time(self) -> float:
        """Time of the pending event, or +/- infinity in the integration direction."""
        if self._pending_event:
            return self._pending_event_time
        return math.inf if self._forward else -math.inf

    def reinitialize_begin(self, interpolator) -> None:
        """Evaluate ``g`` at the start of the integration."""
        self._forward = interpolator.is_forward
        s0 = interpolator.previous_state
        self._t0 = s0.time
        self._g0 = self.handler.g(s0)
        if self._g0 == 0.0:
            self._g0 = self._g_after_start(interpolator)
        self._g0_positive = self._g0 >= 0.0
        self._restarted = False

    def _g_after_start(self, interpolator) -> float:
        # g vanishes exactly at start, look slightly inside the step
        epsilon = max(self.solver.absolute_accuracy,
                      abs(self.solver.relative_accuracy * self._t0))
        offset = 0.5 * epsilon if self._forward else -0.5 * epsilon
        return self.handler.g(interpolator.get_interpolated_state(self._t0 + offset))

    def restart(self, state: _ODEStateAndDerivative) -> None:
        """Restart detection from the state produced by a reset.

        When ``g`` vanishes at *state* its sign is taken just inside the
        next step.
        """
        self._t0 = state.time
        self._g0 = self.handler.g(state)
        self._restarted = self._g0 == 0.0
        if not self._restarted:
            self._g0_positive = self._g0 >= 0.0

    def evaluate_step(self, interpolator) -> bool:
        """Return True if an event occurs during the step of *interpolator*."""
        self._forward = interpolator.is_forward
        if self._restarted:
            self._g0 = self._g_after_start(interpolator)
            self._g0_positive = self._g0 >= 0.0
            self._restarted = False
        t1 = interpolator.current_state.time
        dt = t1 - self._t0
        convergence = self.convergence
        if abs(dt) < convergence:
            return False

        n = max(1, int(math.ceil(abs(dt) / self.max_check_interval)))
        h = dt / n

        def f(t):
            return self.handler.g(interpolator.get_interpolated_state(t))

        ta = self._t0
        ga = self._g0
        i = 0
        while i < n:
            tb = t1 if i == n - 1 else self._t0 + (i + 1) * h
            gb = f(tb)

            if self._g0_positive ^ (gb >= 0.0):
                self._increasing = gb >= ga
                if self._forward:
                    root = self.solver.solve(self.max_iteration_count, f, ta, tb,
                                             AllowedSolution.RIGHT_SIDE)
                else:
                    root = self.solver.solve(self.max_iteration_count, f, tb, ta,
                                             AllowedSolution.LEFT_SIDE)

                previous = self._previous_event_time
                if (not math.isnan(previous)
                        and abs(root - ta) <= convergence
                        and abs(root - previous) <= convergence):
                    # root already handled, retry the substep past it
                    while True:
                        ta = ta + convergence if self._forward else ta - convergence
                        ga = f(ta)
                        if not ((self._g0_positive ^ (ga >= 0.0)) and (self._forward ^ (ta >= tb))):
                            break
                    if self._forward ^ (ta >= tb):
                        continue
                    self._pending_event_time = root
                    self._pending_event = True
                    return True
                if math.isnan(previous) or abs(previous - root) > convergence:
                    self._pending_event_time = root
                    self._pending_event = True
                    return True

            ta = tb
            ga = gb
            i += 1

        self._pending_event = False
        self._pending_event_time = math.nan
        return False

    def step_accepted(self, state: _ODEStateAndDerivative) -> None:
        """Record the end of an accepted (possibly truncated) step."""
        self._t0 = state.time
        self._g0 = self.handler.g(state)
        if self._pending_event and abs(self._pending_event_time - self._t0) <= self.convergence:
            self._previous_event_time = self._t0
            self._g0_positive = self._increasing
            self._next_action = self.handler.event_occurred(
                state, not (self._increasing ^ self._forward)
            )
        else:
            self._g0_positive = self._g0 >= 0.0
            self._next_action = Action.CONTINUE

    def stop(self) -> bool:
        return self._next_action is Action.STOP

    def reset(self, state: _ODEStateAndDerivative) -> Optional[_ODEState]:
        """Return the state to restart from, or None when no reset is due."""
        if not (self._pending_event
                and abs(self._pending_event_time - state.time) <= self.convergence):
            return None

        if self._next_action is Action.RESET_STATE:
            new_state = self.handler.reset_state(state)
        elif self._next_action is Action.RESET_DERIVATIVES:
            new_state = state
        else:
            new_state = None
        self._pending_event = False
        self._pending_event_time = math.nan
        return new_state
