"""Explicit ODE integration with dense output, events and sensitivities."""

from .algorithms import *  # noqa: F401,F403
from .algorithms import __all__

__version__ = "0.1.0"
