import cv2
import numpy as np
import pytest

from parallel_canny.collective import run_threaded


@pytest.fixture
def step_image():
    """8x8 raster: left half 10, right half 200."""
    image = np.full((8, 8), 10, dtype=np.uint8)
    image[:, 4:] = 200
    return image


@pytest.fixture
def shapes_image():
    """Small synthetic scene with a rectangle, a circle and some noise."""
    image = np.zeros((26, 21), dtype=np.uint8)
    cv2.rectangle(image, (3, 4), (15, 18), 180, -1)
    cv2.circle(image, (13, 12), 5, 90, -1)
    rng = np.random.default_rng(7)
    noise = rng.integers(0, 12, size=image.shape, dtype=np.uint8)
    return cv2.add(image, noise)


@pytest.fixture
def on_workers():
    """Run ``fn(ctx, plan, *args)`` on a thread group; the plan follows ``args[0]``."""

    def _run(size, fn, *args, **kwargs):
        def target(ctx):
            rows, cols = args[0].shape[:2]
            return fn(ctx, ctx.plan(rows, cols), *args, **kwargs)

        return run_threaded(size, target)

    return _run
