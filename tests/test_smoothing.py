import numpy as np
import pytest

from parallel_canny.kernel import make_gaussian_kernel
from parallel_canny.smoothing import BOOST_BLUR_FACTOR, blur_y, gaussian_smooth, truncated_dot


def test_border_taps_are_dropped_and_renormalized():
    kernel = make_gaussian_kernel(1.0)
    row = np.full((1, 10), 50, dtype=np.uint8)
    dot, norm = truncated_dot(row, kernel)

    np.testing.assert_allclose(norm[0], kernel[3:].sum(), rtol=1e-6)
    np.testing.assert_allclose(norm[1], kernel[2:].sum(), rtol=1e-6)
    np.testing.assert_allclose(norm[5], 1.0, rtol=1e-5)
    # Renormalizing keeps a flat row flat right up to the border.
    np.testing.assert_allclose(dot / norm, 50.0, rtol=1e-5)


def test_kernel_wider_than_image():
    kernel = make_gaussian_kernel(3.0)
    row = np.array([[0, 100]], dtype=np.uint8)
    center = len(kernel) // 2
    dot, norm = truncated_dot(row, kernel)

    pair = kernel[center] + kernel[center + 1]
    np.testing.assert_allclose(norm[0], [pair, pair], rtol=1e-6)
    np.testing.assert_allclose((dot / norm)[0], [100 * kernel[center + 1] / pair, 100 * kernel[center] / pair],
                               rtol=1e-5)


@pytest.mark.parametrize("workers", [1, 3])
@pytest.mark.parametrize("value", [0, 1, 100, 255])
def test_uniform_image_is_scaled_by_the_boost_factor(on_workers, workers, value):
    image = np.full((9, 6), value, dtype=np.uint8)
    for smoothed in on_workers(workers, gaussian_smooth, image, 1.2):
        assert smoothed.dtype == np.int16
        np.testing.assert_array_equal(smoothed, int(value * BOOST_BLUR_FACTOR + 0.5))


def test_blur_y_leaves_other_columns_zero():
    tempim = np.full((5, 6), 10.0, dtype=np.float32)
    smoothed = blur_y(tempim, make_gaussian_kernel(1.0), 2, 4)
    assert not smoothed[:, :2].any() and not smoothed[:, 4:].any()
    np.testing.assert_array_equal(smoothed[:, 2:4], 900)


def test_step_row_matches_hand_computed_values(on_workers, step_image):
    smoothed = on_workers(1, gaussian_smooth, step_image, 1.0)[0]
    expected = [900, 981, 1904, 6038, 12862, 16996, 17919, 18000]
    for row in smoothed:
        np.testing.assert_array_equal(row, expected)


@pytest.mark.parametrize("workers", [2, 4, 5])
def test_partition_invariance(on_workers, shapes_image, workers):
    reference = on_workers(1, gaussian_smooth, shapes_image, 1.4)[0]
    for smoothed in on_workers(workers, gaussian_smooth, shapes_image, 1.4):
        np.testing.assert_array_equal(smoothed, reference)
