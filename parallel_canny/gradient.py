"""First derivatives, gradient magnitude and gradient direction.

The differential filters are ``[-1 0 +1]`` across columns for x and the same
filter down the rows for y, with one-sided differences at the image borders.
"""

import numpy as np

from parallel_canny.utils import setup_logger

logger = setup_logger("parallel_canny.gradient")


def derivative_x(smoothed, row_start, row_end):
    """Central difference across columns for rows ``[row_start, row_end)``."""
    block = smoothed[row_start:row_end]
    delta_x = np.zeros(block.shape, dtype=np.int16)
    if block.shape[1] < 2:
        return delta_x
    delta_x[:, 1:-1] = block[:, 2:] - block[:, :-2]
    delta_x[:, 0] = block[:, 1] - block[:, 0]
    delta_x[:, -1] = block[:, -1] - block[:, -2]
    return delta_x


def derivative_y(smoothed, col_start, col_end):
    """Central difference down the rows for columns ``[col_start, col_end)``.

    Returns a full-size buffer that is zero outside the given columns.
    """
    delta_y = np.zeros(smoothed.shape, dtype=np.int16)
    if smoothed.shape[0] < 2 or col_start >= col_end:
        return delta_y
    block = smoothed[:, col_start:col_end]
    target = delta_y[:, col_start:col_end]
    target[1:-1] = block[2:] - block[:-2]
    target[0] = block[1] - block[0]
    target[-1] = block[-1] - block[-2]
    return delta_y


def derivative_x_y(ctx, plan, smoothed):
    """Return the merged ``(delta_x, delta_y)`` images on every worker."""
    row_start, row_end = plan.row_range()
    partial_x = derivative_x(smoothed, row_start, row_end)
    logger.debug(f"[Process {ctx.rank}] finished derivative x")
    ctx.barrier()
    delta_x = ctx.allgather_rows(partial_x, plan.row_counts())

    col_start, col_end = plan.col_range()
    partial_y = derivative_y(smoothed, col_start, col_end)
    logger.debug(f"[Process {ctx.rank}] finished derivative y")
    ctx.barrier()
    delta_y = ctx.allreduce_sum(partial_y)
    return delta_x, delta_y


def magnitude(delta_x, delta_y):
    """``round(sqrt(dx^2 + dy^2))`` as int16."""
    sq1 = delta_x.astype(np.int32) ** 2
    sq2 = delta_y.astype(np.int32) ** 2
    total = sq1.astype(np.float32) + sq2.astype(np.float32)
    return (np.sqrt(total.astype(np.float64)) + 0.5).astype(np.int16)


def magnitude_x_y(ctx, plan, delta_x, delta_y):
    row_start, row_end = plan.row_range()
    partial = magnitude(delta_x[row_start:row_end], delta_y[row_start:row_end])
    logger.debug(f"[Process {ctx.rank}] finished magnitude")
    ctx.barrier()
    return ctx.allgather_rows(partial, plan.row_counts())


def angle_radians(x, y):
    """Angle of the vectors ``(x, y)`` in ``[0, 2*pi)``; 0 for the null vector."""
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    ang = np.arctan2(np.abs(y), np.abs(x))
    ang = np.select(
        [x >= 0, y >= 0],
        [np.where(y >= 0, ang, 2 * np.pi - ang), np.pi - ang],
        default=np.pi + ang,
    )
    return np.where((x == 0) & (y == 0), 0.0, ang)


def radian_direction(delta_x, delta_y, xdirtag=-1, ydirtag=-1):
    """Direction up the gradient, counterclockwise from the positive x axis.

    ``xdirtag``/``ydirtag`` describe how the derivative was taken: -1 for a
    ``[-1 0 1]`` filter and 1 for ``[1 0 -1]``. Returns a float32 image.
    """
    dx = delta_x.astype(np.float64)
    dy = delta_y.astype(np.float64)
    if xdirtag == 1:
        dx = -dx
    if ydirtag == -1:
        dy = -dy
    return angle_radians(dx, dy).astype(np.float32)


def gradient_direction(ctx, plan, delta_x, delta_y):
    row_start, row_end = plan.row_range()
    partial = radian_direction(delta_x[row_start:row_end], delta_y[row_start:row_end])
    logger.debug(f"[Process {ctx.rank}] finished direction")
    ctx.barrier()
    return ctx.allgather_rows(partial, plan.row_counts())
