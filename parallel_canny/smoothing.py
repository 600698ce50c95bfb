"""Separable Gaussian smoothing split across the worker group.

The x pass is row-partitioned and gathered; the y pass is column-partitioned
and merged by a sum-reduction of buffers that are zero outside each worker's
columns.
"""

import numpy as np

from parallel_canny.kernel import make_gaussian_kernel
from parallel_canny.utils import setup_logger

logger = setup_logger("parallel_canny.smoothing")

BOOST_BLUR_FACTOR = 90.0


def truncated_dot(data, kernel):
    """Convolve every row of ``data`` with ``kernel``, dropping off-image taps.

    Returns ``(dot, norm)`` where ``norm[i]`` is the sum of the kernel weights
    that landed inside the row at position ``i``. Both are float32 and are
    accumulated tap by tap from the left end of the kernel.
    """
    data = np.asarray(data, dtype=np.float32)
    n = data.shape[-1]
    center = len(kernel) // 2
    dot = np.zeros(data.shape, dtype=np.float32)
    norm = np.zeros(n, dtype=np.float32)
    for offset in range(-center, center + 1):
        lo, hi = max(0, -offset), min(n, n - offset)
        if lo >= hi:
            continue
        weight = kernel[center + offset]
        dot[..., lo:hi] += data[..., lo + offset:hi + offset] * weight
        norm[lo:hi] += weight
    return dot, norm


def blur_x(image, kernel, row_start, row_end):
    """Blur rows ``[row_start, row_end)`` across columns, float precision."""
    dot, norm = truncated_dot(image[row_start:row_end], kernel)
    return dot / norm


def blur_y(tempim, kernel, col_start, col_end):
    """Blur columns ``[col_start, col_end)`` down the rows of ``tempim``.

    The result is boosted, rounded and stored as int16 in a full-size buffer
    that is zero outside the given columns.
    """
    rows, cols = tempim.shape
    smoothed = np.zeros((rows, cols), dtype=np.int16)
    if col_start >= col_end:
        return smoothed
    dot, norm = truncated_dot(tempim[:, col_start:col_end].T, kernel)
    boosted = dot.astype(np.float64) * BOOST_BLUR_FACTOR / norm.astype(np.float64) + 0.5
    smoothed[:, col_start:col_end] = boosted.astype(np.int16).T
    return smoothed


def gaussian_smooth(ctx, plan, image, sigma):
    """Blur ``image`` with a Gaussian of standard deviation ``sigma``.

    Every worker returns the same full int16 smoothed image.
    """
    kernel = make_gaussian_kernel(sigma)
    if ctx.is_leader:
        logger.info(f"[Process {ctx.rank}] The kernel has {len(kernel)} elements")
        for i, weight in enumerate(kernel):
            logger.debug(f"kernel[{i}] = {weight:f}")

    row_start, row_end = plan.row_range()
    partial = blur_x(image, kernel, row_start, row_end)
    logger.debug(f"[Process {ctx.rank}] finished blur x on rows {row_start}-{row_end}")
    ctx.barrier()
    tempim = ctx.allgather_rows(partial, plan.row_counts())

    col_start, col_end = plan.col_range()
    partial = blur_y(tempim, kernel, col_start, col_end)
    logger.debug(f"[Process {ctx.rank}] finished blur y on columns {col_start}-{col_end}")
    ctx.barrier()
    return ctx.allreduce_sum(partial)
