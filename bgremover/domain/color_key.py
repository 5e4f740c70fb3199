from __future__ import annotations

import math

import numpy as np

from bgremover.domain.background_remover import BackgroundRemover
from bgremover.domain.pixel_buffer import Color3, PixelBuffer

TOLERANCE_MIN = 0.0
TOLERANCE_MAX = 100.0
# 0-100 slider onto the 0-255 channel range.
THRESHOLD_PER_TOLERANCE_STEP = 2.55


def clamp_tolerance(tolerance: float) -> float:
    value = float(tolerance)
    if math.isnan(value):
        return TOLERANCE_MIN
    return max(TOLERANCE_MIN, min(TOLERANCE_MAX, value))


def tolerance_to_threshold(tolerance: float) -> np.float32:
    return np.float32(clamp_tolerance(tolerance)) * np.float32(THRESHOLD_PER_TOLERANCE_STEP)


def sample_background_color(image: PixelBuffer) -> Color3:
    """Mean RGB of the four corner pixels; alpha is ignored.

    Assumes the background reaches every corner. Subjects touching a corner
    or multi-colored backgrounds skew the estimate.
    """
    rgb = image.as_array()[..., :3]
    corners = rgb[[0, 0, -1, -1], [0, -1, 0, -1]].astype(np.float32)
    mean = corners.sum(axis=0) / np.float32(4)
    return Color3(float(mean[0]), float(mean[1]), float(mean[2]))


def background_mask(image: PixelBuffer, tolerance: float) -> np.ndarray:
    """Boolean (height, width) array, True where the pixel is keyed out."""
    reference = np.array(sample_background_color(image), dtype=np.float32)
    threshold = tolerance_to_threshold(tolerance)

    diff = image.as_array()[..., :3].astype(np.float32) - reference
    distance = np.sqrt((diff * diff).sum(axis=-1))
    return distance <= threshold


class ColorKeyRemover(BackgroundRemover):
    """Keys out every pixel close to the corner-sampled background color.

    Matched pixels become (0, 0, 0, 0) so no color fringe survives blending;
    the rest are copied unchanged, alpha included. The input buffer is never
    written to.
    """

    def remove(self, image: PixelBuffer, tolerance: float) -> PixelBuffer:
        mask = background_mask(image, tolerance)
        output = image.as_array().copy()
        output[mask] = 0
        return PixelBuffer.from_array(output)
