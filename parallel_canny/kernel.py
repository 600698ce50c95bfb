"""One dimensional Gaussian smoothing kernel."""

import math

import numpy as np

from parallel_canny.errors import InvalidParameterError


def kernel_size(sigma: float) -> int:
    """Number of taps for ``sigma``: ``1 + 2*ceil(2.5*sigma)``, always odd."""
    return 1 + 2 * math.ceil(2.5 * sigma)


def make_gaussian_kernel(sigma: float) -> np.ndarray:
    """Return a normalized float32 Gaussian kernel of ``kernel_size(sigma)`` taps.

    Raises InvalidParameterError when sigma is not a positive finite number.
    """
    if not math.isfinite(sigma) or sigma <= 0:
        raise InvalidParameterError(f"sigma must be a positive number, got {sigma!r}")

    windowsize = kernel_size(sigma)
    center = windowsize // 2
    x = np.arange(-center, center + 1, dtype=np.float64)
    weights = np.exp(-0.5 * x * x / (sigma * sigma)) / (sigma * math.sqrt(2.0 * math.pi))
    return (weights / weights.sum()).astype(np.float32)
