"""Step handlers: raw step callbacks, fixed-step sampling and dense output storage."""

import bisect
import math
from abc import ABC, abstractmethod
from enum import Enum
from typing import List

import numpy as np

from odeon.algorithms.utils.exceptions import DimensionMismatchError
from odeon.algorithms.utils.types import _ODEStateAndDerivative


class StepHandler(ABC):
    """Callback invoked after every accepted step."""

    def init(self, initial_state: _ODEStateAndDerivative, final_time: float) -> None:
        pass

    @abstractmethod
    def handle_step(self, interpolator, is_last: bool) -> None:
        """Handle the step described by *interpolator*.

        Parameters
        ----------
        interpolator : :class:`~odeon.algorithms.integrators.interpolators._StepInterpolator`
            Dense output of the step, valid between its soft bounds.
        is_last : bool
            True for the final step of the integration.
        """
        pass


class FixedStepHandler(ABC):
    """Callback receiving states on a regular time grid (see :class:`StepNormalizer`)."""

    def init(self, initial_state: _ODEStateAndDerivative, final_time: float) -> None:
        pass

    @abstractmethod
    def handle_step(self, state: _ODEStateAndDerivative, is_last: bool) -> None:
        pass


class StepNormalizerMode(Enum):
    """Grid of a :class:`StepNormalizer`.

    ``INCREMENT`` places samples at ``t0 + k*h``; ``MULTIPLES`` places them at
    the integer multiples of ``h``.
    """

    INCREMENT = "increment"
    MULTIPLES = "multiples"


class StepNormalizerBounds(Enum):
    """Whether the integration end points are passed to the fixed step handler."""

    NEITHER = (False, False)
    FIRST = (True, False)
    LAST = (False, True)
    BOTH = (True, True)

    @property
    def first_included(self) -> bool:
        return self.value[0]

    @property
    def last_included(self) -> bool:
        return self.value[1]


class StepNormalizer(StepHandler):
    """Adapt an integrator with variable steps to a :class:`FixedStepHandler`.

    Parameters
    ----------
    h : float
        Sampling period; its sign is ignored.
    handler : FixedStepHandler
        Handler receiving the sampled states.
    mode : StepNormalizerMode, default INCREMENT
        Sampling grid.
    bounds : StepNormalizerBounds, default FIRST
        End points passed to *handler* even when off the grid.
    """

    def __init__(self, h: float, handler: FixedStepHandler,
                 mode: StepNormalizerMode = StepNormalizerMode.INCREMENT,
                 bounds: StepNormalizerBounds = StepNormalizerBounds.FIRST):
        self.h = abs(h)
        self.handler = handler
        self.mode = mode
        self.bounds = bounds
        self._reset()

    def _reset(self):
        self._h = self.h
        self._first_time = math.nan
        self._last_time = math.nan
        self._last_state = None
        self._forward = True

    def init(self, initial_state, final_time):
        self._reset()
        self.handler.init(initial_state, final_time)

    def handle_step(self, interpolator, is_last):
        if self._last_state is None:
            self._first_time = interpolator.previous_state.time
            self._last_time = self._first_time
            self._last_state = interpolator.previous_state
            self._forward = interpolator.current_state.time >= self._last_time
            if not self._forward:
                self._h = -self.h

        h = self._h
        if self.mode is StepNormalizerMode.INCREMENT:
            next_time = self._last_time + h
        else:
            next_time = (math.floor(self._last_time / h) + 1) * h
            if abs(next_time - self._last_time) <= np.spacing(max(abs(next_time), abs(self._last_time))):
                next_time += h

        while self._is_next_in_step(next_time, interpolator):
            self._do_normalized_step(False)
            self._store_step(interpolator, next_time)
            next_time += h

        if is_last:
            current_time = interpolator.current_state.time
            add_last = self.bounds.last_included and self._last_time != current_time
            self._do_normalized_step(not add_last)
            if add_last:
                self._store_step(interpolator, current_time)
                self._do_normalized_step(True)

    def _is_next_in_step(self, next_time, interpolator) -> bool:
        current_time = interpolator.current_state.time
        return next_time <= current_time if self._forward else next_time >= current_time

    def _do_normalized_step(self, is_last):
        if not self.bounds.first_included and self._first_time == self._last_time:
            return
        self.handler.handle_step(self._last_state, is_last)

    def _store_step(self, interpolator, t):
        self._last_time = t
        self._last_state = interpolator.get_interpolated_state(t)


class DenseOutputModel(StepHandler):
    """Store every step of an integration for later continuous evaluation.

    Examples
    --------
    >>> model = DenseOutputModel()
    >>> integrator.add_step_handler(model)
    >>> integrator.integrate(system, start, 10.0)
    >>> model.get_interpolated_state(3.7).primary_state
    """

    def __init__(self):
        self._steps: List = []
        self._initial_time = math.nan
        self._final_time = math.nan
        self._forward = True

    @property
    def initial_time(self) -> float:
        return self._initial_time

    @property
    def final_time(self) -> float:
        return self._final_time

    @property
    def is_forward(self) -> bool:
        return self._forward

    def __len__(self):
        return len(self._steps)

    def init(self, initial_state, final_time):
        self._steps = []
        self._initial_time = initial_state.time
        self._final_time = final_time
        self._forward = True

    def handle_step(self, interpolator, is_last):
        if not self._steps:
            self._initial_time = interpolator.previous_state.time
            self._forward = interpolator.is_forward
        self._steps.append(interpolator)
        if is_last:
            self._final_time = interpolator.current_state.time

    def append(self, model: "DenseOutputModel") -> None:
        """Concatenate the steps of *model* after the steps stored here.

        Raises
        ------
        :class:`~odeon.algorithms.utils.exceptions.DimensionMismatchError`
            If the two models hold states of different dimensions.
        ValueError
            If the directions differ or the time ranges are not contiguous.
        """
        if not model._steps:
            return
        if not self._steps:
            self._initial_time = model._initial_time
            self._forward = model._forward
        else:
            mine = self._steps[0].previous_state
            theirs = model._steps[0].previous_state
            if mine.primary_state_dimension != theirs.primary_state_dimension:
                raise DimensionMismatchError("Primary state dimension",
                                             theirs.primary_state_dimension,
                                             mine.primary_state_dimension)
            if mine.number_of_secondary_states != theirs.number_of_secondary_states:
                raise DimensionMismatchError("Number of secondary states",
                                             theirs.number_of_secondary_states,
                                             mine.number_of_secondary_states)
            if self._forward != model._forward:
                raise ValueError("Propagation direction mismatch")

            last = self._steps[-1]
            step = last.current_state.time - last.previous_state.time
            gap = model._initial_time - self._final_time
            if abs(gap) > 1.0e-3 * abs(step):
                raise ValueError(f"Hole of length {gap} between time ranges")

        self._steps.extend(model._steps)
        self._final_time = model._final_time

    def get_interpolated_state(self, time: float) -> _ODEStateAndDerivative:
        """State at *time*, extrapolated from the first or last step outside the range."""
        if not self._steps:
            raise ValueError("Dense output model holds no step")
        sign = 1.0 if self._forward else -1.0
        starts = [sign * s.previous_state.time for s in self._steps]
        index = bisect.bisect_right(starts, sign * time) - 1
        index = min(max(index, 0), len(self._steps) - 1)
        return self._steps[index].get_interpolated_state(time)
