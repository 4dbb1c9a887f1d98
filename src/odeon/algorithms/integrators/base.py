"""Provide the integration driver shared by all integrators.

:class:`_Integrator` owns everything that does not depend on the stepping
scheme: step and event handler registration, the evaluation budget, the
start-of-integration bookkeeping and the processing of accepted steps
(event location, truncation and resets, step handler notification).

References
----------
Hairer, E., Norsett, S. P., & Wanner, G. (1993). "Solving Ordinary
Differential Equations I: Non-stiff Problems".
"""

import math
from abc import ABC, abstractmethod
from typing import List, Optional, Union

import numpy as np

from odeon.algorithms.dynamics.base import _DynamicalSystem
from odeon.algorithms.dynamics.expandable import (ExpandableODE,
                                                  _EvaluationCounter)
from odeon.algorithms.fields.base import _Field, infer_field
from odeon.algorithms.integrators.configs import _EventConfig
from odeon.algorithms.integrators.events import EventHandler, _EventState
from odeon.algorithms.integrators.sampling import DenseOutputModel, StepHandler
from odeon.algorithms.integrators.solvers import _BracketingSolver
from odeon.algorithms.integrators.types import _Solution
from odeon.algorithms.utils.config import (EVENT_CONVERGENCE, EVENT_MAX_CHECK,
                                           EVENT_MAX_ITER)
from odeon.algorithms.utils.exceptions import (DimensionMismatchError,
                                               NumberIsTooSmallError)
from odeon.algorithms.utils.types import _ODEState, _ODEStateAndDerivative
from odeon.utils.log_config import logger


class _Integrator(ABC):
    """Define the driver every concrete integrator builds on.

    Parameters
    ----------
    name : str
        Human-readable identifier of the method.
    field : _Field, optional
        Numeric field of the states.  Inferred from the start state when
        omitted.
    **options
        Extra keyword arguments stored in :attr:`options`.

    Notes
    -----
    Subclasses implement :attr:`order` and :meth:`integrate`.  A typical
    :meth:`integrate` calls :meth:`_sanity_checks` and
    :meth:`_init_integration`, then loops over steps and hands each
    accepted step to :meth:`_accept_step` until :attr:`_is_last_step` is
    set.

    Instances are not reentrant: handlers and counters belong to one
    integration at a time.
    """

    def __init__(self, name: str, field: Optional[_Field] = None, **options):
        self.name = name
        self.field = field
        self.options = options
        self._step_handlers: List[StepHandler] = []
        self._event_states: List[_EventState] = []
        self._max_evaluations: Optional[int] = None
        self._counter = _EvaluationCounter(None)
        self._equations: Optional[ExpandableODE] = None
        self._step_start: Optional[_ODEStateAndDerivative] = None
        self._step_size = math.nan
        self._is_last_step = False
        self._reset_occurred = False
        self._states_initialized = False

    @property
    @abstractmethod
    def order(self) -> int:
        """Order of accuracy of the integrator."""
        pass

    @abstractmethod
    def integrate(self, equations: Union[ExpandableODE, _DynamicalSystem],
                  start_state: _ODEState, final_time: float) -> _ODEStateAndDerivative:
        """Integrate *equations* from *start_state* up to *final_time*.

        Parameters
        ----------
        equations : ExpandableODE or _DynamicalSystem
            Equations to integrate; a bare primary system is wrapped.
        start_state : _ODEState
            Initial time and state (primary and secondary blocks).
        final_time : float
            Target time, before or after the start time.

        Returns
        -------
        _ODEStateAndDerivative
            State at *final_time*, or at the time of a stopping event.
        """
        pass

    def add_step_handler(self, handler: StepHandler) -> None:
        self._step_handlers.append(handler)

    def get_step_handlers(self) -> List[StepHandler]:
        return list(self._step_handlers)

    def clear_step_handlers(self) -> None:
        self._step_handlers.clear()

    def add_event_handler(self, handler: EventHandler,
                          max_check_interval: float = EVENT_MAX_CHECK,
                          convergence: float = EVENT_CONVERGENCE,
                          max_iteration_count: int = EVENT_MAX_ITER,
                          solver: Optional[_BracketingSolver] = None) -> None:
        """Register *handler*; ties between events are resolved in registration order."""
        config = _EventConfig(max_check_interval, convergence, max_iteration_count)
        self._event_states.append(_EventState(handler, config, solver))

    def get_event_handlers(self) -> List[EventHandler]:
        return [state.handler for state in self._event_states]

    def clear_event_handlers(self) -> None:
        self._event_states.clear()

    def set_max_evaluations(self, max_evaluations: Optional[int]) -> None:
        """Limit derivative evaluations per integration, ``None`` for no limit."""
        if max_evaluations is not None and max_evaluations < 0:
            max_evaluations = None
        self._max_evaluations = max_evaluations

    def get_max_evaluations(self) -> Optional[int]:
        return self._max_evaluations

    def get_evaluations(self) -> int:
        """Derivative evaluations performed by the last (or running) integration."""
        return self._counter.count

    def get_current_step_start(self) -> Optional[_ODEStateAndDerivative]:
        return self._step_start

    def get_current_signed_stepsize(self) -> float:
        return self._step_size

    def _as_expandable(self, equations) -> ExpandableODE:
        if isinstance(equations, ExpandableODE):
            return equations
        if not hasattr(equations, "rhs"):
            raise ValueError(f"System must implement 'rhs' method for {self.name}")
        return ExpandableODE(equations)

    def _sanity_checks(self, equations: ExpandableODE, start_state: _ODEState,
                       final_time: float) -> None:
        """Check dimensions and the length of the integration interval.

        Raises
        ------
        :class:`~odeon.algorithms.utils.exceptions.DimensionMismatchError`
            If the primary state does not match the primary system.
        :class:`~odeon.algorithms.utils.exceptions.NumberIsTooSmallError`
            If the interval is shorter than 1000 ulps of its end points.
        """
        expected = equations.primary.dim
        if start_state.primary_state_dimension != expected:
            raise DimensionMismatchError("Primary state dimension",
                                         start_state.primary_state_dimension, expected)
        n_secondary = equations.mapper.number_of_equations - 1
        if start_state.number_of_secondary_states != n_secondary:
            raise DimensionMismatchError("Number of secondary states",
                                         start_state.number_of_secondary_states, n_secondary)

        t0 = start_state.time
        threshold = 1000.0 * np.spacing(max(abs(t0), abs(final_time)))
        dt = abs(t0 - final_time)
        if dt <= threshold:
            raise NumberIsTooSmallError("too small integration interval", dt, threshold)

    def _compute_derivatives(self, t: float, y: np.ndarray) -> np.ndarray:
        return self._equations.compute_derivatives(t, y)

    def _init_integration(self, equations: ExpandableODE, start_state: _ODEState,
                          final_time: float) -> _ODEStateAndDerivative:
        """Attach the counter, initialise equations and handlers, and evaluate ``y'(t0)``."""
        self._equations = equations
        self._counter = _EvaluationCounter(self._max_evaluations)
        equations.counter = self._counter

        t0 = start_state.time
        y0 = equations.mapper.map_state(start_state)
        field = self.field if self.field is not None else infer_field(y0)
        y0 = field.array(y0)
        logger.debug(f"{self}: integrating from t={t0} to t={final_time} "
                     f"({equations.dimension} equations, {field!r})")

        equations.init(t0, y0, final_time)
        y_dot0 = self._compute_derivatives(t0, y0)
        state0 = equations.mapper.map_state_and_derivative(t0, y0, y_dot0)

        for event_state in self._event_states:
            event_state.handler.init(state0, final_time)
        for handler in self._step_handlers:
            handler.init(state0, final_time)

        self._step_start = state0
        self._is_last_step = False
        self._reset_occurred = False
        self._states_initialized = False
        return state0

    def _end_integration(self, final_state: _ODEStateAndDerivative) -> _ODEStateAndDerivative:
        logger.debug(f"{self}: reached t={final_state.time} after "
                     f"{self._counter.count} evaluations")
        if self._equations is not None:
            self._equations.counter = None
        return final_state

    def _accept_step(self, interpolator, t_end: float) -> _ODEStateAndDerivative:
        """Process an accepted step: locate events, notify handlers, apply resets.

        Sets :attr:`_is_last_step` and :attr:`_reset_occurred` and returns the
        state the next step starts from.
        """
        self._reset_occurred = False
        previous_state = interpolator.global_previous_state
        current_state = interpolator.global_current_state
        restricted = interpolator

        if not self._states_initialized:
            for event_state in self._event_states:
                event_state.reinitialize_begin(interpolator)
            self._states_initialized = True

        sign = 1.0 if interpolator.is_forward else -1.0
        order = {id(es): i for i, es in enumerate(self._event_states)}

        def chronological(es):
            return (sign * es.event_time, order[id(es)])

        occurring = [es for es in self._event_states if es.evaluate_step(restricted)]

        while occurring:
            occurring.sort(key=chronological)
            current_event = occurring.pop(0)

            event_state = restricted.get_interpolated_state(current_event.event_time)
            restricted = restricted.restrict_step(previous_state, event_state)
            logger.debug(f"{self}: event {type(current_event.handler).__name__} "
                         f"at t={event_state.time}")

            current_event.step_accepted(event_state)
            self._is_last_step = current_event.stop()

            for handler in self._step_handlers:
                handler.handle_step(restricted, self._is_last_step)

            if self._is_last_step:
                logger.info(f"{self}: integration stopped by event at t={event_state.time}")
                return event_state

            new_state = current_event.reset(event_state)
            if new_state is not None:
                mapper = self._equations.mapper
                y = mapper.map_state(new_state)
                y_dot = self._compute_derivatives(new_state.time, y)
                self._reset_occurred = True
                reset_state = mapper.map_state_and_derivative(new_state.time, y, y_dot)
                for es in self._event_states:
                    es.restart(reset_state)
                return reset_state

            previous_state = event_state
            restricted = restricted.restrict_step(event_state, current_state)

            if current_event.evaluate_step(restricted):
                occurring.append(current_event)

        for event_state in self._event_states:
            event_state.step_accepted(current_state)
            self._is_last_step = self._is_last_step or event_state.stop()
        self._is_last_step = (self._is_last_step
                              or abs(current_state.time - t_end) <= np.spacing(abs(t_end)))

        for handler in self._step_handlers:
            handler.handle_step(restricted, self._is_last_step)

        return current_state

    def propagate(self, system, y0, t_vals) -> _Solution:
        """Integrate *system* from ``y0`` at ``t_vals[0]`` and sample at *t_vals*.

        Parameters
        ----------
        system : _DynamicalSystem or ExpandableODE
            System to integrate.
        y0 : numpy.ndarray
            Initial primary state.
        t_vals : array_like
            Monotonic sample times with at least two entries.

        Returns
        -------
        :class:`~odeon.algorithms.integrators.types._Solution`
            Samples up to ``t_vals[-1]``, or up to and including the stop
            time when a terminal event ends the integration early.
        """
        t_vals = np.asarray(t_vals, dtype=float)
        self.validate_inputs(system, y0, t_vals)

        equations = self._as_expandable(system)
        if equations.mapper.number_of_equations != 1:
            raise ValueError("propagate only supports systems without secondary equations")

        if np.all(t_vals == t_vals[0]):
            y0_arr = np.asarray(y0)
            deriv0 = np.asarray(equations.primary.compute_derivatives(t_vals[0], y0_arr))
            return _Solution(times=t_vals.copy(),
                             states=np.repeat(y0_arr[None, :], t_vals.size, axis=0),
                             derivatives=np.repeat(deriv0[None, :], t_vals.size, axis=0))

        model = DenseOutputModel()
        self.add_step_handler(model)
        try:
            final_state = self.integrate(equations, _ODEState(t_vals[0], y0), t_vals[-1])
        finally:
            self._step_handlers.remove(model)

        forward = t_vals[-1] > t_vals[0]
        t_stop = final_state.time
        reached = t_vals <= t_stop if forward else t_vals >= t_stop
        states = [model.get_interpolated_state(t) for t in t_vals[reached]]
        if not reached[-1]:
            states.append(final_state)
        return _Solution.from_states(states)

    def validate_inputs(self, system, y0: np.ndarray, t_vals: np.ndarray) -> None:
        """Validate that the input arguments form a consistent propagation task.

        Raises
        ------
        ValueError
            If ``len(y0)`` differs from the system dimension, if ``t_vals``
            has fewer than two points, or if it is not strictly monotonic.
        """
        dim = system.primary.dim if isinstance(system, ExpandableODE) else system.dim
        if len(y0) != dim:
            raise ValueError(f"Initial state dimension {len(y0)} != system dimension {dim}")
        if len(t_vals) < 2:
            raise ValueError("Must provide at least 2 time points")
        dt = np.diff(t_vals)
        if np.all(dt == 0.0):
            return
        if not (np.all(dt > 0) or np.all(dt < 0)):
            raise ValueError("Time values must be strictly monotonic (either increasing or decreasing)")

    def __str__(self):
        return f"ODEON-{self.name}"

    def __repr__(self):
        return f"{self.__class__.__name__}(name='{self.name}', options={self.options})"
