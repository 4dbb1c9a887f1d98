"""Global numeric defaults shared by the integrators."""

# Default scalar tolerance for adaptive integrators
TOL = 1e-10

FASTMATH = False  # Global flag for Numba's fastmath option

# Step-size controller factors
SAFETY = 0.9
MIN_REDUCTION = 0.2
MAX_GROWTH = 10.0

# Event detection defaults
EVENT_MAX_CHECK = float("inf")
EVENT_CONVERGENCE = 1e-10
EVENT_MAX_ITER = 100

# Root solver accuracies
SOLVER_RELATIVE_ACCURACY = 1e-14
SOLVER_FUNCTION_ACCURACY = 1e-15
