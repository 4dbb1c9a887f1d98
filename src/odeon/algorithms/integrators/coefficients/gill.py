import numpy as np

_SQ2 = np.sqrt(2.0)

C = np.array([0.0, 1.0 / 2.0, 1.0 / 2.0, 1.0])

A = np.array([
    [0.0, 0.0, 0.0, 0.0],
    [1.0 / 2.0, 0.0, 0.0, 0.0],
    [(_SQ2 - 1.0) / 2.0, (2.0 - _SQ2) / 2.0, 0.0, 0.0],
    [0.0, -_SQ2 / 2.0, (2.0 + _SQ2) / 2.0, 0.0],
])

B = np.array([1.0 / 6.0, (2.0 - _SQ2) / 6.0, (2.0 + _SQ2) / 6.0, 1.0 / 6.0])

# same continuous extension as the classical method, middle stages
# weighted by (1 -/+ 1/sqrt(2))
P = np.array([
    [1.0, -3.0 / 2.0, 2.0 / 3.0],
    [0.0, 1.0 - 1.0 / _SQ2, -2.0 / 3.0 * (1.0 - 1.0 / _SQ2)],
    [0.0, 1.0 + 1.0 / _SQ2, -2.0 / 3.0 * (1.0 + 1.0 / _SQ2)],
    [0.0, -1.0 / 2.0, 2.0 / 3.0],
])
