"""Result containers returned by :meth:`_Integrator.propagate`."""

from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np
import pandas as pd

from odeon.algorithms.utils.types import _ODEState, _ODEStateAndDerivative


@dataclass
class _Solution:
    """Sampled trajectory.

    Attributes
    ----------
    times : numpy.ndarray
        Sample times, shape (n_points,), monotonic in either direction.
    states : numpy.ndarray
        Primary states, shape (n_points, n_dim).
    derivatives : numpy.ndarray or None, optional
        Primary derivatives at the sample times, same shape as *states*.
        When provided :meth:`interpolate` uses cubic Hermite polynomials,
        otherwise it falls back to linear interpolation.
    """

    times: np.ndarray
    states: np.ndarray
    derivatives: Optional[np.ndarray] = None

    def __post_init__(self):
        if len(self.times) != len(self.states):
            raise ValueError(
                f"Times and states must have same length: "
                f"{len(self.times)} != {len(self.states)}"
            )
        if self.derivatives is not None and len(self.derivatives) != len(self.times):
            raise ValueError(
                "If provided, derivatives must have the same length as times "
                f"({len(self.derivatives)} != {len(self.times)})"
            )

    @classmethod
    def from_states(cls, states: Sequence[_ODEStateAndDerivative]) -> "_Solution":
        """Stack a sequence of states into a solution."""
        return cls(
            times=np.array([s.time for s in states]),
            states=np.array([s.primary_state for s in states]),
            derivatives=np.array([s.primary_derivative for s in states]),
        )

    def interpolate(self, t: Union[np.ndarray, float]) -> np.ndarray:
        """Evaluate the trajectory at arbitrary times inside the sampled span.

        Parameters
        ----------
        t : float or array_like
            Query time(s).

        Returns
        -------
        numpy.ndarray
            Shape ``(n_dim,)`` for a scalar *t*, ``(n_times, n_dim)`` otherwise.

        Raises
        ------
        ValueError
            If a query time lies outside ``[times[0], times[-1]]``.
        """
        t_arr = np.atleast_1d(t).astype(float)
        times = self.times
        states = self.states
        derivatives = self.derivatives
        if times[-1] < times[0]:
            times = times[::-1]
            states = states[::-1]
            derivatives = None if derivatives is None else derivatives[::-1]

        if np.any(t_arr < times[0]) or np.any(t_arr > times[-1]):
            raise ValueError("Interpolation times must lie within the solution interval.")

        idxs = np.searchsorted(times, t_arr, side="right") - 1
        idxs = np.clip(idxs, 0, len(times) - 2)

        t0 = times[idxs]
        h = times[idxs + 1] - t0
        s = (t_arr - t0) / h
        y0 = states[idxs]
        y1 = states[idxs + 1]

        if derivatives is None:
            y_out = y0 + (y1 - y0) * s[:, None]
        else:
            f0 = derivatives[idxs]
            f1 = derivatives[idxs + 1]
            s2 = s * s
            s3 = s2 * s
            h00 = 2 * s3 - 3 * s2 + 1
            h10 = s3 - 2 * s2 + s
            h01 = -2 * s3 + 3 * s2
            h11 = s3 - s2
            y_out = (h00[:, None] * y0
                     + h10[:, None] * (h[:, None] * f0)
                     + h01[:, None] * y1
                     + h11[:, None] * (h[:, None] * f1))

        if np.isscalar(t):
            return y_out[0]
        return y_out

    def to_df(self, columns: Optional[Sequence[str]] = None) -> pd.DataFrame:
        """Return the samples as a :class:`pandas.DataFrame` with a leading ``time`` column.

        Parameters
        ----------
        columns : sequence of str, optional
            State column names, ``y0, y1, ...`` by default.
        """
        n_dim = self.states.shape[1]
        if columns is None:
            columns = [f"y{i}" for i in range(n_dim)]
        if len(columns) != n_dim:
            raise ValueError(f"Expected {n_dim} column names, got {len(columns)}")
        df = pd.DataFrame(self.states, columns=list(columns))
        df.insert(0, "time", self.times)
        return df


__all__ = ["_Solution", "_ODEState", "_ODEStateAndDerivative"]
