"""Hysteresis thresholding of the suppressed magnitude image.

The high threshold is the ``thigh`` percentage point of the histogram of
magnitudes that survived non-maximum suppression; the low threshold is a
fraction ``tlow`` of it. Pixels at or above the high threshold are edges, and
edges are followed through 8-connected neighbours whose magnitude stays above
the low threshold.
"""

import numpy as np

from parallel_canny.suppression import EDGE, NO_EDGE, POSSIBLE_EDGE
from parallel_canny.utils import setup_logger

logger = setup_logger("parallel_canny.hysteresis")

HISTOGRAM_BINS = 32768

NEIGHBOURS = ((0, 1), (-1, 1), (-1, 0), (-1, -1), (0, -1), (1, -1), (1, 0), (1, 1))


def seed_edge_map(nms):
    """Copy the possible edges of ``nms``; the image border can never be an edge."""
    labels = np.where(nms == POSSIBLE_EDGE, POSSIBLE_EDGE, NO_EDGE).astype(np.uint8)
    labels[0, :] = NO_EDGE
    labels[-1, :] = NO_EDGE
    labels[:, 0] = NO_EDGE
    labels[:, -1] = NO_EDGE
    return labels


def magnitude_histogram(mag, labels):
    """Counts of magnitude values over the POSSIBLE_EDGE pixels of a block."""
    values = mag[labels == POSSIBLE_EDGE].astype(np.int64)
    return np.bincount(values, minlength=HISTOGRAM_BINS)[:HISTOGRAM_BINS].astype(np.int64)


def compute_thresholds(hist, tlow, thigh):
    """Return ``(lowthreshold, highthreshold)`` derived from a merged histogram.

    The scan starts at bin 1 and stops one bin below the highest non-empty bin
    at the latest. An empty histogram gives a high threshold of 1.
    """
    counts = np.asarray(hist[1:], dtype=np.int64)
    nonzero = np.flatnonzero(counts)
    maximum_mag = int(nonzero[-1]) + 1 if nonzero.size else 0
    numedges = int(counts.sum())
    highcount = int(numedges * thigh + 0.5)

    running = np.cumsum(counts)
    reached = int(np.searchsorted(running, highcount, side="left")) + 1
    highthreshold = max(1, min(reached, maximum_mag - 1))
    lowthreshold = int(highthreshold * tlow + 0.5)
    return lowthreshold, highthreshold


def follow_edges(labels, mag, row, col, lowval):
    """Promote every POSSIBLE_EDGE pixel connected to ``(row, col)`` above ``lowval``.

    Uses an explicit stack; a pixel's label doubles as its visited flag.
    """
    stack = [(row, col)]
    while stack:
        r, c = stack.pop()
        for dr, dc in NEIGHBOURS:
            rr, cc = r + dr, c + dc
            if labels[rr, cc] == POSSIBLE_EDGE and mag[rr, cc] > lowval:
                labels[rr, cc] = EDGE
                stack.append((rr, cc))


def trace_strong_edges(labels, mag, row_start, row_end, lowthreshold, highthreshold):
    """Mark strong pixels of rows ``[row_start, row_end)`` and trace from them."""
    block = labels[row_start:row_end]
    strong = (block == POSSIBLE_EDGE) & (mag[row_start:row_end] >= highthreshold)
    for r, c in zip(*np.nonzero(strong)):
        r += row_start
        # An earlier trace may already have reached this pixel.
        if labels[r, c] == POSSIBLE_EDGE:
            labels[r, c] = EDGE
            follow_edges(labels, mag, r, c, lowthreshold)
    return labels


def apply_hysteresis(ctx, plan, mag, nms, tlow, thigh):
    """Return ``(edge, lowthreshold, highthreshold)``.

    ``edge`` holds EDGE/NO_EDGE on the leader and is None elsewhere. Every
    worker traces over its own full copy of the seeded map, so traces may run
    into other workers' rows; the per-worker edge indicators are summed on the
    leader and any pixel marked by at least one worker is an edge.
    """
    labels = seed_edge_map(nms)
    row_start, row_end = plan.row_range()

    local_hist = magnitude_histogram(mag[row_start:row_end], labels[row_start:row_end])
    hist = ctx.allreduce_sum(local_hist)
    lowthreshold, highthreshold = compute_thresholds(hist, tlow, thigh)
    if ctx.is_leader:
        logger.info(
            f"[Process {ctx.rank}] The input low and high fractions of {tlow:f} and {thigh:f} "
            f"computed to magnitude thresholds of {lowthreshold} {highthreshold}"
        )

    trace_strong_edges(labels, mag, row_start, row_end, lowthreshold, highthreshold)
    logger.debug(f"[Process {ctx.rank}] finished hysteresis")

    marked = (labels == EDGE).astype(np.int32)
    ctx.barrier()
    votes = ctx.reduce_sum(marked, root=0)
    if votes is None:
        return None, lowthreshold, highthreshold
    edge = np.where(votes > 0, EDGE, NO_EDGE).astype(np.uint8)
    return edge, lowthreshold, highthreshold
