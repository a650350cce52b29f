"""Utils for handmorph."""

import math
import time
from importlib.resources import files

import numpy as np

pkg_name = 'handmorph'
data_files = files(pkg_name) / 'data'


def return_none(*args, **kwargs):
    """
    An empty function that returns None no matter the arguments.
    Often used as a "do nothing" general callback function.
    """
    return None


# --------------------------------------------------------------------------------------
# Constants


class HandLandmark:
    WRIST = 0
    THUMB_CMC = 1
    THUMB_MCP = 2
    THUMB_IP = 3
    THUMB_TIP = 4
    INDEX_FINGER_MCP = 5
    INDEX_FINGER_PIP = 6
    INDEX_FINGER_DIP = 7
    INDEX_FINGER_TIP = 8
    MIDDLE_FINGER_MCP = 9
    MIDDLE_FINGER_PIP = 10
    MIDDLE_FINGER_DIP = 11
    MIDDLE_FINGER_TIP = 12
    RING_FINGER_MCP = 13
    RING_FINGER_PIP = 14
    RING_FINGER_DIP = 15
    RING_FINGER_TIP = 16
    PINKY_MCP = 17
    PINKY_PIP = 18
    PINKY_DIP = 19
    PINKY_TIP = 20


# --------------------------------------------------------------------------------------
# Numeric utils


def clamp01(x: float) -> float:
    """
    Clamp a scalar into [0, 1]. Non-finite values map to 0.

    >>> clamp01(1.7)
    1.0
    >>> clamp01(-3)
    0.0
    >>> clamp01(float('nan'))
    0.0
    """
    x = float(x)
    if not math.isfinite(x):
        return 0.0
    return min(1.0, max(0.0, x))


def ensure_rng(rng=None) -> np.random.Generator:
    """
    Return a numpy Generator from a Generator, an integer seed, or None.

    >>> g = np.random.default_rng(3)
    >>> ensure_rng(g) is g
    True
    >>> isinstance(ensure_rng(42), np.random.Generator)
    True
    """
    if isinstance(rng, np.random.Generator):
        return rng
    return np.random.default_rng(rng)


# --------------------------------------------------------------------------------------
# String utils


def format_milliseconds_time(timestamp):
    """Format milliseconds as a string."""
    formatted_time = time.strftime('%H:%M:%S', time.localtime(timestamp))
    milliseconds = int((timestamp % 1) * 1000)
    return f"{formatted_time}.{milliseconds:03d}"


def current_time_string_with_milliseconds():
    """Get the current time with milliseconds, as a string."""
    return format_milliseconds_time(time.time())


def format_float(value, ndigits=4):
    return f"{value:.{ndigits}f}"


def format_dict_values(d: dict, ndigits=3) -> dict:
    """
    Round the float values of a dict, for display and logging.

    >>> format_dict_values({'interaction': 0.123456, 'shape': 'heart'})
    {'interaction': '0.123', 'shape': 'heart'}
    """
    return {
        k: format_float(v, ndigits) if isinstance(v, float) else v
        for k, v in d.items()
    }
