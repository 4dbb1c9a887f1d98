"""
Custom exceptions for the algorithms package.
"""


class OdeonError(Exception):
    """Base exception for odeon errors.

    Parameters
    ----------
    message : str
        The error message.
    """

    def __init__(self, message: str):
        super().__init__(message)


class DimensionMismatchError(OdeonError):
    """Raised when an array does not have the dimension an operation expects.

    Parameters
    ----------
    message : str
        The error message.
    actual : int
        Dimension that was supplied.
    expected : int
        Dimension that was required.
    """

    def __init__(self, message: str, actual: int, expected: int):
        super().__init__(f"{message}: got {actual}, expected {expected}")
        self.actual = actual
        self.expected = expected


class NumberIsTooSmallError(OdeonError):
    """Raised when a count or an interval is below its admissible minimum.

    Parameters
    ----------
    message : str
        The error message.
    value : float
        Offending value.
    minimum : float
        Smallest admissible value.
    """

    def __init__(self, message: str, value: float, minimum: float):
        super().__init__(f"{message}: {value} < {minimum}")
        self.value = value
        self.minimum = minimum


class MaxCountExceededError(OdeonError):
    """Raised when the derivative evaluation budget is exhausted.

    Parameters
    ----------
    max_count : int
        The configured budget.
    """

    def __init__(self, max_count: int):
        super().__init__(f"maximal count ({max_count}) exceeded")
        self.max_count = max_count


class ConvergenceError(OdeonError):
    """Raised when an algorithm fails to converge.

    Parameters
    ----------
    message : str
        The error message.
    """

    def __init__(self, message: str):
        super().__init__(message)


class NoBracketingError(OdeonError):
    """Raised when a root solver is given an interval without a sign change.

    Parameters
    ----------
    lower, upper : float
        Interval end points.
    f_lower, f_upper : float
        Function values at the end points.
    """

    def __init__(self, lower: float, upper: float, f_lower: float, f_upper: float):
        super().__init__(
            f"function values at endpoints do not have different signs, "
            f"endpoints: [{lower}, {upper}], values: [{f_lower}, {f_upper}]"
        )
        self.lower = lower
        self.upper = upper
        self.f_lower = f_lower
        self.f_upper = f_upper


class MinStepSizeError(OdeonError):
    """Raised when the step-size controller would go below the minimal step.

    Parameters
    ----------
    step : float
        Magnitude of the step that was requested.
    min_step : float
        Configured lower bound.
    """

    def __init__(self, step: float, min_step: float):
        super().__init__(
            f"minimal step size ({min_step:.2e}) reached, integration needs {step:.2e}"
        )
        self.step = step
        self.min_step = min_step


class IllegalStateError(OdeonError):
    """Raised when an integrator cannot reach the state it needs to proceed.

    Parameters
    ----------
    message : str
        The error message.
    """

    def __init__(self, message: str):
        super().__init__(message)
