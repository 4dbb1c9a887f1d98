import numpy as np

C = np.array([0.0, 1.0 / 2.0, 1.0 / 2.0, 1.0])

A = np.array([
    [0.0, 0.0, 0.0, 0.0],
    [1.0 / 2.0, 0.0, 0.0, 0.0],
    [0.0, 1.0 / 2.0, 0.0, 0.0],
    [0.0, 0.0, 1.0, 0.0],
])

B = np.array([1.0 / 6.0, 1.0 / 3.0, 1.0 / 3.0, 1.0 / 6.0])

# b_i(theta) = sum_j P[i, j] * theta**(j + 1)
P = np.array([
    [1.0, -3.0 / 2.0, 2.0 / 3.0],
    [0.0, 1.0, -2.0 / 3.0],
    [0.0, 1.0, -2.0 / 3.0],
    [0.0, -1.0 / 2.0, 2.0 / 3.0],
])
