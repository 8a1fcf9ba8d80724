"""Per-pixel difference map between the design and the rendered page."""
from __future__ import annotations

import logging
from typing import Optional

import numpy as np
from skimage.metrics import structural_similarity

from ..presets import InspectionParams
from ..raster import PixelBuffer

logger = logging.getLogger(__name__)

_LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float32)


def compute_difference_map(
    design: PixelBuffer,
    page: PixelBuffer,
    params: InspectionParams,
) -> np.ndarray:
    """Return a ``float32`` array of shape ``(height, width)``.

    Values below the threshold are zeroed.  In ``"euclidean"`` mode the value
    is the RGB distance; in ``"combined"`` mode it is the largest of the
    color, luma, alpha and perceptual signals that pass their own threshold.
    """

    if design.size != page.size:
        raise ValueError(f"Buffers differ in size: {design.size} vs {page.size}")

    rgb_a = design.rgb().astype(np.float32)
    rgb_b = page.rgb().astype(np.float32)
    color = _euclidean(rgb_a, rgb_b)

    if params.diff_mode == "euclidean":
        diff_map = _threshold(color, params.diff_threshold)
    else:
        signals = (
            _threshold(color, params.diff_threshold),
            _threshold(_luma(rgb_a, rgb_b), params.luma_threshold),
            _threshold(_alpha(design, page), params.alpha_threshold),
            _threshold(_redmean(rgb_a, rgb_b), params.perceptual_threshold),
        )
        diff_map = np.maximum.reduce(signals)

    logger.debug(
        "Difference map (%s): %d of %d pixels above threshold",
        params.diff_mode,
        int(np.count_nonzero(diff_map)),
        diff_map.size,
    )
    return diff_map


def _euclidean(rgb_a: np.ndarray, rgb_b: np.ndarray) -> np.ndarray:
    delta = rgb_a - rgb_b
    return np.sqrt(np.sum(delta * delta, axis=2))


def _luma(rgb_a: np.ndarray, rgb_b: np.ndarray) -> np.ndarray:
    return np.abs((rgb_a - rgb_b) @ _LUMA_WEIGHTS)


def _alpha(design: PixelBuffer, page: PixelBuffer) -> np.ndarray:
    return np.abs(design.alpha().astype(np.float32) - page.alpha().astype(np.float32))


def _redmean(rgb_a: np.ndarray, rgb_b: np.ndarray) -> np.ndarray:
    # scaled by 1/3 so that a uniform gray shift scores like the euclidean distance
    r_mean = (rgb_a[:, :, 0] + rgb_b[:, :, 0]) / 2.0
    delta = rgb_a - rgb_b
    weighted = (
        (2.0 + r_mean / 256.0) * delta[:, :, 0] ** 2
        + 4.0 * delta[:, :, 1] ** 2
        + (2.0 + (255.0 - r_mean) / 256.0) * delta[:, :, 2] ** 2
    )
    return np.sqrt(weighted / 3.0)


def _threshold(values: np.ndarray, threshold: float) -> np.ndarray:
    return np.where(values >= threshold, values, 0.0).astype(np.float32)


def calculate_similarity(diff_map: np.ndarray) -> float:
    """Share of pixels with no difference, in ``[0, 1]``."""

    if diff_map.size == 0:
        return 1.0
    return 1.0 - float(np.count_nonzero(diff_map)) / float(diff_map.size)


def compute_ssim(design: PixelBuffer, page: PixelBuffer) -> Optional[float]:
    """Structural similarity of the grayscale pair, or ``None`` if too small."""

    gray_a = design.gray()
    gray_b = page.gray()
    win_size = min(7, *gray_a.shape)
    if win_size % 2 == 0:
        win_size -= 1
    if win_size < 3:
        return None
    score = structural_similarity(gray_a, gray_b, win_size=win_size, data_range=255)
    return float(score)
