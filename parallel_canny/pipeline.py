"""Canny edge detection executed in lockstep by a worker group."""

import math
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional

import numpy as np

from parallel_canny.errors import InvalidParameterError, StageError
from parallel_canny.gradient import derivative_x_y, gradient_direction, magnitude_x_y
from parallel_canny.hysteresis import apply_hysteresis
from parallel_canny.smoothing import gaussian_smooth
from parallel_canny.suppression import non_max_supp
from parallel_canny.utils import setup_logger

logger = setup_logger("parallel_canny.pipeline")

DEFAULT_SIGMA = 1.0
DEFAULT_TLOW = 0.3
DEFAULT_THIGH = 0.7


@dataclass
class CannyResult:
    edge: Optional[np.ndarray]
    direction: Optional[np.ndarray]
    low_threshold: int
    high_threshold: int


def validate_inputs(image, sigma, tlow, thigh):
    """Raise InvalidParameterError for anything the pipeline cannot process."""
    image = np.asarray(image)
    if image.ndim != 2 or image.size == 0:
        raise InvalidParameterError(f"expected a non-empty 2-D raster, got shape {image.shape}")
    if image.dtype != np.uint8:
        raise InvalidParameterError(f"expected one byte per pixel, got dtype {image.dtype}")
    if not math.isfinite(sigma) or sigma <= 0:
        raise InvalidParameterError(f"sigma must be a positive number, got {sigma!r}")
    for name, value in (("tlow", tlow), ("thigh", thigh)):
        if not math.isfinite(value):
            raise InvalidParameterError(f"{name} must be a finite number, got {value!r}")
    return image


@contextmanager
def stage(ctx, name):
    """Run one pipeline stage; abort the whole group if it fails anywhere."""
    ctx.barrier()
    if ctx.is_leader:
        logger.info(f"[Process {ctx.rank}] {name}")
    start_time = time.time()
    try:
        yield
    except Exception as exc:
        logger.error(f"[Process {ctx.rank}] ERROR in stage '{name}': {exc!r}")
        ctx.abort(1)
        raise StageError(name, ctx.rank, str(exc)) from exc
    if ctx.is_leader:
        logger.info(f"[Process {ctx.rank}] {name} took {time.time() - start_time:.4f} seconds")


def canny(ctx, image, sigma=DEFAULT_SIGMA, tlow=DEFAULT_TLOW, thigh=DEFAULT_THIGH,
          want_direction=False):
    """Detect edges in ``image`` with every worker of ``ctx`` taking a share.

    All workers must call this with the same raster and parameters. The edge
    map (EDGE=0, NO_EDGE=255) and the optional float32 gradient direction are
    returned on the leader only; the thresholds are returned everywhere.
    """
    image = validate_inputs(image, sigma, tlow, thigh)
    rows, cols = image.shape
    plan = ctx.plan(rows, cols)
    row_start, row_end = plan.row_range()
    col_start, col_end = plan.col_range()
    logger.debug(
        f"[Process {ctx.rank}] Assigned rows {row_start} to {row_end} "
        f"and columns {col_start} to {col_end} of a {rows}x{cols} image"
    )

    with stage(ctx, "Smoothing the image using a gaussian kernel"):
        smoothed = gaussian_smooth(ctx, plan, image, sigma)

    with stage(ctx, "Computing the X and Y first derivatives"):
        delta_x, delta_y = derivative_x_y(ctx, plan, smoothed)
    del smoothed

    direction = None
    if want_direction:
        with stage(ctx, "Computing the gradient direction"):
            direction = gradient_direction(ctx, plan, delta_x, delta_y)
        if not ctx.is_leader:
            direction = None

    with stage(ctx, "Computing the magnitude of the gradient"):
        mag = magnitude_x_y(ctx, plan, delta_x, delta_y)

    with stage(ctx, "Doing the non-maximal suppression"):
        nms = non_max_supp(ctx, plan, mag, delta_x, delta_y)
    del delta_x, delta_y

    with stage(ctx, "Doing hysteresis thresholding"):
        edge, lowthreshold, highthreshold = apply_hysteresis(ctx, plan, mag, nms, tlow, thigh)

    return CannyResult(edge, direction, lowthreshold, highthreshold)
