import math

import numpy as np
import pytest

from parallel_canny.gradient import (
    derivative_x,
    derivative_x_y,
    derivative_y,
    gradient_direction,
    magnitude,
    magnitude_x_y,
    radian_direction,
)


def test_x_derivative_uses_one_sided_differences_at_the_borders():
    smoothed = np.array([[0, 10, 30, 60], [5, 5, 5, 5]], dtype=np.int16)
    np.testing.assert_array_equal(derivative_x(smoothed, 0, 2), [[10, 30, 50, 30], [0, 0, 0, 0]])


def test_y_derivative_is_zero_outside_the_columns():
    smoothed = np.array([[0, 0, 0], [4, 8, 1], [10, 20, 3]], dtype=np.int16)
    delta_y = derivative_y(smoothed, 1, 2)
    np.testing.assert_array_equal(delta_y[:, 1], [8, 20, 12])
    assert not delta_y[:, 0].any() and not delta_y[:, 2].any()


def test_single_column_image_has_no_x_gradient():
    smoothed = np.arange(5, dtype=np.int16).reshape(5, 1)
    assert not derivative_x(smoothed, 0, 5).any()


@pytest.mark.parametrize("dx,dy,expected", [(3, 4, 5), (0, 0, 0), (1, 1, 1), (1, 2, 2), (2, 3, 4), (-6, 8, 10)])
def test_magnitude_rounds_to_nearest(dx, dy, expected):
    result = magnitude(np.array([dx], dtype=np.int16), np.array([dy], dtype=np.int16))
    assert result.dtype == np.int16
    assert int(result[0]) == expected


@pytest.mark.parametrize("dx,dy,angle", [
    (1, 0, 0.0),
    (0, -1, math.pi / 2),
    (-1, 0, math.pi),
    (0, 1, 3 * math.pi / 2),
    (1, -1, math.pi / 4),
    (0, 0, 0.0),
])
def test_direction_points_up_the_gradient(dx, dy, angle):
    result = radian_direction(np.array([[dx]], dtype=np.int16), np.array([[dy]], dtype=np.int16))
    assert result.dtype == np.float32
    assert math.isclose(float(result[0, 0]), angle, abs_tol=1e-6)


def test_direction_tags_flip_the_axes():
    dx = np.array([[1]], dtype=np.int16)
    dy = np.array([[0]], dtype=np.int16)
    assert math.isclose(float(radian_direction(dx, dy, xdirtag=1)[0, 0]), math.pi, abs_tol=1e-6)
    dy = np.array([[1]], dtype=np.int16)
    dx = np.array([[0]], dtype=np.int16)
    assert math.isclose(float(radian_direction(dx, dy, ydirtag=1)[0, 0]), math.pi / 2, abs_tol=1e-6)


def test_direction_range():
    rng = np.random.default_rng(3)
    dx = rng.integers(-500, 500, size=(20, 20)).astype(np.int16)
    dy = rng.integers(-500, 500, size=(20, 20)).astype(np.int16)
    angles = radian_direction(dx, dy)
    assert (angles >= 0).all() and (angles < 2 * math.pi).all()


@pytest.mark.parametrize("workers", [2, 3, 6])
def test_gradient_stage_is_partition_invariant(on_workers, shapes_image, workers):
    smoothed = shapes_image.astype(np.int16) * 90

    def stage(ctx, plan, smoothed):
        delta_x, delta_y = derivative_x_y(ctx, plan, smoothed)
        mag = magnitude_x_y(ctx, plan, delta_x, delta_y)
        direction = gradient_direction(ctx, plan, delta_x, delta_y)
        return delta_x, delta_y, mag, direction

    reference = on_workers(1, stage, smoothed)[0]
    for result in on_workers(workers, stage, smoothed):
        for got, want in zip(result, reference):
            np.testing.assert_array_equal(got, want)
