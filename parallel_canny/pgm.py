"""Binary PGM rasters and the raw gradient-direction dump."""

import os

import cv2
import numpy as np

from parallel_canny.errors import PGMFormatError


def read_pgm(path):
    """Read a binary (P5) PGM file into a ``(rows, cols)`` uint8 array."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"Could not find image: {path}")
    with open(path, "rb") as f:
        magic = f.read(2)
    if magic != b"P5":
        raise PGMFormatError(f"The file {path} is not in PGM format")

    image = cv2.imread(path, cv2.IMREAD_GRAYSCALE)
    if image is None:
        raise PGMFormatError(f"Error reading the image data of {path}")
    return image


def write_pgm(path, image):
    """Write a uint8 raster as a binary PGM file."""
    image = np.ascontiguousarray(image, dtype=np.uint8)
    if image.ndim != 2:
        raise ValueError(f"expected a 2-D raster, got shape {image.shape}")
    if not cv2.imwrite(path, image, [cv2.IMWRITE_PXM_BINARY, 1]):
        raise OSError(f"Error writing the edge image, {path}")


def write_direction(path, direction):
    """Dump ``rows*cols`` native float32 values with no header."""
    np.ascontiguousarray(direction, dtype=np.float32).tofile(path)


def output_name(infile, sigma, tlow, thigh, ext="pgm"):
    """``<infile>_s_<sigma>_l_<tlow>_h_<thigh>.<ext>``, two decimals each."""
    return f"{infile}_s_{sigma:3.2f}_l_{tlow:3.2f}_h_{thigh:3.2f}.{ext}"
