import numpy as np

C = np.array([0.0, 1.0 / 3.0, 2.0 / 3.0, 1.0])

A = np.array([
    [0.0, 0.0, 0.0, 0.0],
    [1.0 / 3.0, 0.0, 0.0, 0.0],
    [-1.0 / 3.0, 1.0, 0.0, 0.0],
    [1.0, -1.0, 1.0, 0.0],
])

B = np.array([1.0 / 8.0, 3.0 / 8.0, 3.0 / 8.0, 1.0 / 8.0])

P = np.array([
    [1.0, -15.0 / 8.0, 1.0],
    [0.0, 15.0 / 8.0, -3.0 / 2.0],
    [0.0, 3.0 / 8.0, 0.0],
    [0.0, -3.0 / 8.0, 1.0 / 2.0],
])
