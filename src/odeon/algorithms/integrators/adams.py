"""Provide the Adams-Bashforth and Adams-Moulton multistep integrators.

Both methods carry their history as a Nordsieck vector (see
:mod:`~odeon.algorithms.integrators.nordsieck`) so the step size can change
freely: rescaling the history replaces recomputing past points.  The
history is bootstrapped by a one-step starter integrator, Dormand-Prince
8(5,3) unless another one is configured.

References
----------
Hairer, E.; Norsett, S.; Wanner, G. (1993). "Solving Ordinary Differential
Equations I", section III.1.
"""

import math
from abc import abstractmethod
from typing import List, Optional

import numpy as np

from odeon.algorithms.fields.base import linear_combination
from odeon.algorithms.integrators.base import _Integrator
from odeon.algorithms.integrators.configs import _StepSizeConfig
from odeon.algorithms.integrators.control import _StepSizeController
from odeon.algorithms.integrators.nordsieck import (
    _AdamsNordsieckTransformer, _NordsieckStepInterpolator, rescale_nordsieck,
    taylor_state)
from odeon.algorithms.integrators.rk import _DOP853
from odeon.algorithms.integrators.sampling import StepHandler
from odeon.algorithms.utils.config import MIN_REDUCTION, SAFETY, TOL
from odeon.algorithms.utils.exceptions import (IllegalStateError,
                                               MaxCountExceededError,
                                               NumberIsTooSmallError,
                                               OdeonError)
from odeon.utils.log_config import logger


class _InitializationCompleted(Exception):
    """Interrupt the starter once enough points are known."""


class _NordsieckInitializer(StepHandler):
    """Collect the starter's step end points and build the first history.

    Parameters
    ----------
    n_points : int
        Number of points (start point included) to collect.
    transformer : _AdamsNordsieckTransformer
        Transformer solving for the higher order rows.
    mapper : _EquationsMapper
        Mapper of the integrated equations.
    """

    def __init__(self, n_points: int, transformer: _AdamsNordsieckTransformer, mapper):
        self.n_points = n_points
        self.mapper = mapper
        self.transformer = transformer
        self.t: List[float] = []
        self.y: List[np.ndarray] = []
        self.y_dot: List[np.ndarray] = []
        self.step_start = math.nan
        self.step_size = math.nan
        self.scaled = None
        self.rows = None

    def _store(self, state):
        self.t.append(state.time)
        self.y.append(self.mapper.map_state(state))
        self.y_dot.append(self.mapper.map_derivative(state))

    def handle_step(self, interpolator, is_last):
        # end points are exact, no interpolation needed
        if not self.t:
            self._store(interpolator.previous_state)
        self._store(interpolator.current_state)

        if len(self.t) == self.n_points:
            self.step_start = self.t[0]
            self.step_size = (self.t[-1] - self.t[0]) / (self.n_points - 1)
            self.scaled = self.step_size * self.y_dot[0]
            self.rows = self.transformer.initialize_high_order_derivatives(
                self.step_size, self.t, self.y, self.y_dot)
            raise _InitializationCompleted()


class _MultistepIntegrator(_Integrator):
    """Define the shared machinery of Nordsieck-based multistep methods.

    Parameters
    ----------
    name : str
        Method name.
    n_steps : int
        Number of past steps the method combines, at least 2.
    order : int
        Order of the method.
    min_step, max_step, rtol, atol
        Step bounds and tolerances, also used by the default starter.
    safety, min_reduction : float, optional
        Controller factors.  The maximal growth is ``2**(1/order)``.
    **options
        Forwarded to :class:`~odeon.algorithms.integrators.base._Integrator`.

    Raises
    ------
    :class:`~odeon.algorithms.utils.exceptions.NumberIsTooSmallError`
        If *n_steps* is smaller than 2.
    """

    def __init__(self, name: str, n_steps: int, order: int,
                 min_step: float = 0.0,
                 max_step: float = np.inf,
                 rtol=TOL,
                 atol=TOL,
                 safety: float = SAFETY,
                 min_reduction: float = MIN_REDUCTION,
                 **options):
        if n_steps < 2:
            raise NumberIsTooSmallError(
                "multistep methods need at least two previous points", n_steps, 2)
        super().__init__(name, **options)
        self.n_steps = n_steps
        self._order = order
        self.step_config = _StepSizeConfig(
            min_step=min_step, max_step=max_step, abs_tol=atol, rel_tol=rtol,
            safety=safety, min_reduction=min_reduction, max_growth=2.0 ** (1.0 / order),
        )
        self._controller = _StepSizeController(self.step_config, order,
                                               on_step_size_change=self._rescale)
        self._transformer = _AdamsNordsieckTransformer.get_instance(n_steps)
        self._starter = _DOP853(min_step=min_step, max_step=max_step, rtol=rtol, atol=atol)
        self._scaled = None
        self._nordsieck: Optional[List[np.ndarray]] = None

    @property
    def order(self) -> int:
        return self._order

    @property
    def controller(self) -> _StepSizeController:
        return self._controller

    def get_starter_integrator(self) -> _Integrator:
        return self._starter

    def set_starter_integrator(self, starter: _Integrator) -> None:
        """Replace the one-step integrator that bootstraps the history."""
        self._starter = starter

    def _rescale(self, old: float, new: float) -> None:
        self._scaled, self._nordsieck = rescale_nordsieck(self._scaled, self._nordsieck,
                                                          new / old)
        self._step_size = new

    def _start(self, state, final_time: float) -> None:
        """Run the starter from *state* until the first history is known.

        Sets the step size, the scaled derivative and the Nordsieck rows
        at the time of *state*.

        Raises
        ------
        :class:`~odeon.algorithms.utils.exceptions.IllegalStateError`
            If the starter ends before collecting enough points or fails
            with an integration error.
        :class:`~odeon.algorithms.utils.exceptions.MaxCountExceededError`
            If the starter exhausts the remaining evaluation budget.
        """
        starter = self._starter
        starter.clear_event_handlers()
        starter.clear_step_handlers()
        initializer = _NordsieckInitializer((self.n_steps + 3) // 2, self._transformer,
                                           self._equations.mapper)
        starter.add_step_handler(initializer)

        remaining = None
        if self._max_evaluations is not None:
            remaining = self._max_evaluations - self._counter.count
        starter.set_max_evaluations(remaining)

        equations = self._equations
        try:
            starter.integrate(equations, state, final_time)
        except _InitializationCompleted:
            pass
        except MaxCountExceededError as exc:
            raise MaxCountExceededError(self._max_evaluations) from exc
        except OdeonError as exc:
            raise IllegalStateError(f"{self}: starter integrator failed: {exc}") from exc
        else:
            raise IllegalStateError(f"{self}: starter integrator stopped early")
        finally:
            # starter evaluations are charged to this integration
            equations.counter = self._counter
            self._counter.count += starter.get_evaluations()
            starter.clear_step_handlers()

        self._step_size = initializer.step_size
        self._scaled = initializer.scaled
        self._nordsieck = initializer.rows
        logger.debug(f"{self}: history started at t={initializer.step_start} "
                     f"with h={initializer.step_size} ({starter.get_evaluations()} evaluations)")

    def integrate(self, equations, start_state, final_time):
        equations = self._as_expandable(equations)
        self._sanity_checks(equations, start_state, final_time)
        self._controller.set_dimension(equations.primary.dim)
        state0 = self._init_integration(equations, start_state, final_time)
        mapper = equations.mapper
        controller = self._controller
        transformer = self._transformer
        forward = final_time > state0.time

        self._start(state0, final_time)
        step_start = state0

        while True:
            t = step_start.time
            y = mapper.map_state(step_start)

            error = 10.0
            while error >= 1.0:
                h = self._step_size
                if (t + h >= final_time) if forward else (t + h <= final_time):
                    h = controller.commit(h, final_time - t)
                t_end = final_time if h == final_time - t else t + h

                y_predicted = taylor_state(y, self._scaled, self._nordsieck, 1.0)
                y_dot = self._compute_derivatives(t_end, y_predicted)
                predicted_scaled = h * y_dot
                predicted_nordsieck = transformer.update_high_order_derivatives_phase1(
                    self._nordsieck)
                predicted_nordsieck = transformer.update_high_order_derivatives_phase2(
                    self._scaled, predicted_scaled, predicted_nordsieck)

                error = self._estimate_error(y, y_predicted, predicted_scaled,
                                             predicted_nordsieck)
                if error >= 1.0:
                    controller.commit(h, controller.reject(h, error, forward))

            y_end, y_dot_end, scaled_end, nordsieck_end = self._complete_step(
                t_end, y_predicted, y_dot, predicted_scaled, predicted_nordsieck, h)
            current = mapper.map_state_and_derivative(t_end, y_end, y_dot_end)

            interpolator = _NordsieckStepInterpolator(forward, step_start, current, mapper,
                                                      t_end, h, scaled_end, nordsieck_end)
            step_start = self._accept_step(interpolator, final_time)
            self._step_start = step_start
            self._scaled = scaled_end
            self._nordsieck = nordsieck_end

            if self._is_last_step:
                break

            if self._reset_occurred:
                self._start(step_start, final_time)
                h = self._step_size
            h_new = controller.next_step(h, error, step_start.time, final_time, forward)
            controller.commit(h, h_new)

        return self._end_integration(step_start)

    @abstractmethod
    def _estimate_error(self, y, y_predicted, predicted_scaled, predicted_nordsieck) -> float:
        """Scaled error of the predicted step, accepted when below 1."""
        pass

    @abstractmethod
    def _complete_step(self, t_end, y_predicted, y_dot, predicted_scaled,
                       predicted_nordsieck, h):
        """Return the end state, its derivative and the history of the accepted step."""
        pass


class _AdamsBashforth(_MultistepIntegrator):
    """Explicit Adams-Bashforth method of order *n_steps*.

    The error is estimated from the difference between the predicted state
    and the state rebuilt from the updated history; one derivative
    evaluation per step.
    """

    def __init__(self, n_steps: int, **opts):
        super().__init__("Adams-Bashforth", n_steps, n_steps, **opts)

    def _estimate_error(self, y, y_predicted, predicted_scaled, predicted_nordsieck):
        rows = len(predicted_nordsieck)
        coefficients = [(-1.0) ** k for k in range(rows - 1, -1, -1)]
        variation = linear_combination(coefficients, predicted_nordsieck[::-1]) - predicted_scaled
        return self._controller.error_ratio(y_predicted - y + variation, y, y_predicted)

    def _complete_step(self, t_end, y_predicted, y_dot, predicted_scaled,
                       predicted_nordsieck, h):
        return y_predicted, y_dot, predicted_scaled, predicted_nordsieck


class _AdamsMoulton(_MultistepIntegrator):
    """Implicit Adams-Moulton method of order *n_steps* + 1.

    Each step runs one predict-evaluate-correct-evaluate sequence: the
    Adams-Bashforth prediction is corrected once and the derivative is
    evaluated again at the corrected state.
    """

    def __init__(self, n_steps: int, **opts):
        super().__init__("Adams-Moulton", n_steps, n_steps + 1, **opts)
        self._corrected = None

    def _estimate_error(self, y, y_predicted, predicted_scaled, predicted_nordsieck):
        coefficients = [1.0 if row % 2 else -1.0 for row in range(len(predicted_nordsieck))]
        corrected = linear_combination(coefficients, predicted_nordsieck) + (y + predicted_scaled)
        self._corrected = corrected
        return self._controller.error_ratio(corrected - y_predicted, y, corrected)

    def _complete_step(self, t_end, y_predicted, y_dot, predicted_scaled,
                       predicted_nordsieck, h):
        corrected = self._corrected
        y_dot_corrected = self._compute_derivatives(t_end, corrected)
        corrected_scaled = h * y_dot_corrected
        nordsieck = self._transformer.update_high_order_derivatives_phase2(
            predicted_scaled, corrected_scaled, predicted_nordsieck)
        return corrected, y_dot_corrected, corrected_scaled, nordsieck


class Adams:
    """Implement a factory class for creating Adams multistep integrators.

    Examples
    --------
    >>> ab = Adams(n_steps=4, rtol=1e-8, atol=1e-8)
    >>> am = Adams(n_steps=4, corrector=True)
    """

    def __new__(cls, n_steps=4, corrector=False, **opts):
        """Create an Adams-Bashforth or Adams-Moulton integrator.

        Parameters
        ----------
        n_steps : int, default 4
            Number of steps, at least 2.
        corrector : bool, default False
            Return the Adams-Moulton predictor-corrector instead of the
            explicit Adams-Bashforth method.
        **opts
            Additional options passed to the integrator constructor.
        """
        if corrector:
            return _AdamsMoulton(n_steps, **opts)
        return _AdamsBashforth(n_steps, **opts)
