import numpy as np

C = np.array([0.0])

A = np.array([[0.0]])

B = np.array([1.0])

P = np.array([[1.0]])
