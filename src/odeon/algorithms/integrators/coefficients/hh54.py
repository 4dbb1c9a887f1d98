import numpy as np

C = np.array([0.0, 2.0 / 9.0, 1.0 / 3.0, 1.0 / 2.0, 3.0 / 5.0, 1.0, 1.0])

A = np.zeros((7, 7))
A[1, :1] = [2.0 / 9.0]
A[2, :2] = [1.0 / 12.0, 1.0 / 4.0]
A[3, :3] = [1.0 / 8.0, 0.0, 3.0 / 8.0]
A[4, :4] = [91.0 / 500.0, -27.0 / 100.0, 78.0 / 125.0, 8.0 / 125.0]
A[5, :5] = [-11.0 / 20.0, 27.0 / 20.0, 12.0 / 5.0, -36.0 / 5.0, 5.0]
A[6, :6] = [1.0 / 12.0, 0.0, 27.0 / 32.0, -4.0 / 3.0, 125.0 / 96.0, 5.0 / 48.0]

B = np.array([1.0 / 12.0, 0.0, 27.0 / 32.0, -4.0 / 3.0, 125.0 / 96.0, 5.0 / 48.0, 0.0])

# error estimate is h * sum(E * k)
E = np.array([-1.0 / 20.0, 0.0, 81.0 / 160.0, -6.0 / 5.0, 25.0 / 32.0, 1.0 / 16.0, -1.0 / 10.0])

P = np.array([
    [1.0, -15.0 / 4.0, 16.0 / 3.0, -5.0 / 2.0],
    [0.0, 0.0, 0.0, 0.0],
    [0.0, 459.0 / 32.0, -243.0 / 8.0, 135.0 / 8.0],
    [0.0, -22.0, 152.0 / 3.0, -30.0],
    [0.0, 375.0 / 32.0, -625.0 / 24.0, 125.0 / 8.0],
    [0.0, -5.0 / 16.0, 5.0 / 12.0, 0.0],
    [0.0, 0.0, 0.0, 0.0],
])
