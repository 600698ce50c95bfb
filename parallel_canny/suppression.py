"""Non-maximum suppression of the gradient magnitude image."""

import numpy as np

from parallel_canny.utils import setup_logger

logger = setup_logger("parallel_canny.suppression")

NO_EDGE = 255
POSSIBLE_EDGE = 128
EDGE = 0


def interior_rows(plan):
    """Rows of this worker's range that have a neighbour above and below."""
    row_start, row_end = plan.row_range()
    return max(row_start, 1), min(row_end, plan.rows - 1)


def suppress_rows(mag, gradx, grady, row_start, row_end):
    """Suppression test for rows ``[row_start, row_end)``, columns 1..cols-2.

    Returns a full-size uint8 buffer holding POSSIBLE_EDGE where the pixel is a
    local maximum along the gradient, NO_EDGE where it was tested and
    rejected, and 0 everywhere outside the tested window.
    """
    rows, cols = mag.shape
    result = np.zeros((rows, cols), dtype=np.uint8)
    if row_start >= row_end or cols < 3:
        return result

    inner = (slice(row_start, row_end), slice(1, cols - 1))

    def shifted(dr, dc):
        return mag[row_start + dr:row_end + dr, 1 + dc:cols - 1 + dc].astype(np.int32)

    m00 = mag[inner].astype(np.int32)
    gx = gradx[inner].astype(np.int32)
    gy = grady[inner].astype(np.int32)
    N, S, E, W = shifted(-1, 0), shifted(1, 0), shifted(0, 1), shifted(0, -1)
    NE, NW, SE, SW = shifted(-1, 1), shifted(-1, -1), shifted(1, 1), shifted(1, -1)

    safe_m00 = np.where(m00 == 0, 1, m00).astype(np.float32)
    xperp = -gx.astype(np.float32) / safe_m00
    yperp = gy.astype(np.float32) / safe_m00

    def interp(a, b):
        return a.astype(np.float32) * xperp + b.astype(np.float32) * yperp

    # Octants named by (gx >= 0, gy >= 0, |gx| >= |gy|).
    octants = [
        (gx >= 0) & (gy >= 0) & (gx >= gy),
        (gx >= 0) & (gy >= 0) & (gx < gy),
        (gx >= 0) & (gy < 0) & (gx >= -gy),
        (gx >= 0) & (gy < 0) & (gx < -gy),
        (gx < 0) & (gy >= 0) & (-gx >= gy),
        (gx < 0) & (gy >= 0) & (-gx < gy),
        (gx < 0) & (gy < 0) & (-gx > -gy),
        (gx < 0) & (gy < 0) & (-gx <= -gy),
    ]
    mag1 = np.select(octants, [
        interp(m00 - W, NW - W),    # 111
        interp(N - NW, N - m00),    # 110
        interp(m00 - W, W - SW),    # 101
        interp(S - SW, m00 - S),    # 100
        interp(E - m00, NE - E),    # 011
        interp(NE - N, N - m00),    # 010
        interp(E - m00, E - SE),    # 001
        interp(SE - S, m00 - S),    # 000
    ])
    mag2 = np.select(octants, [
        interp(m00 - E, SE - E),
        interp(S - SE, S - m00),
        interp(m00 - E, E - NE),
        interp(N - NE, m00 - N),
        interp(W - m00, SW - W),
        interp(SW - S, S - m00),
        interp(W - m00, W - NW),
        interp(NW - N, m00 - N),
    ])

    rejected = (m00 == 0) | (mag1 > 0.0) | (mag2 > 0.0) | (mag2 == 0.0)
    result[inner] = np.where(rejected, NO_EDGE, POSSIBLE_EDGE)
    return result


def non_max_supp(ctx, plan, mag, gradx, grady):
    """Return the merged suppression map (POSSIBLE_EDGE / NO_EDGE) on every worker."""
    row_start, row_end = interior_rows(plan)
    partial = suppress_rows(mag, gradx, grady, row_start, row_end)
    logger.debug(f"[Process {ctx.rank}] finished non-maximum suppression")
    ctx.barrier()
    merged = ctx.allreduce_sum(partial)
    return np.where(merged == POSSIBLE_EDGE, POSSIBLE_EDGE, NO_EDGE).astype(np.uint8)
