import logging
import os
import sys

LOG_LEVEL_ENV = "ODEON_LOG_LEVEL"


def setup_logging(level=None, format_string='%(asctime)s - %(name)s - %(levelname)s - %(message)s'):
    """Configure stdout logging for odeon.

    Parameters
    ----------
    level : int or str, optional
        Logging level.  Read from the ``ODEON_LOG_LEVEL`` environment
        variable when omitted, ``INFO`` if that is unset.
    format_string : str
        Record format passed to :func:`logging.basicConfig`.
    """
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV, "INFO").upper()
    logging.basicConfig(
        level=level,
        format=format_string,
        stream=sys.stdout
    )
    logging.getLogger("odeon").setLevel(level)


setup_logging()

# integrators log start/end and events at DEBUG, terminal stops at INFO
logger = logging.getLogger("odeon")
