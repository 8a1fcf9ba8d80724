"""Turn a difference map into bounding regions.

The map is binarised, closed with a square kernel to bridge small gaps and
remove speckle, and split into 4-connected components.  Each component's
box is grown by a fixed margin and clamped to the image.  Components whose
count of originally differing pixels is below ``min_region_area_px`` are
discarded as noise.
"""
from __future__ import annotations

import logging
from typing import List

import cv2
import numpy as np

from ..presets import InspectionParams
from .types import Region

logger = logging.getLogger(__name__)


def binarize(diff_map: np.ndarray) -> np.ndarray:
    return np.where(diff_map > 0, 255, 0).astype(np.uint8)


def morphology_close(mask: np.ndarray, kernel_px: int) -> np.ndarray:
    kernel_size = max(1, int(kernel_px))
    if kernel_size % 2 == 0:
        kernel_size += 1
    kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (kernel_size, kernel_size))
    return cv2.morphologyEx(mask, cv2.MORPH_CLOSE, kernel)


def extract_regions(diff_map: np.ndarray, params: InspectionParams) -> List[Region]:
    """Return regions in detection order (top-most, then left-most first)."""

    if diff_map.size == 0:
        return []
    raw_mask = binarize(diff_map)
    if not raw_mask.any():
        return []

    closed = morphology_close(raw_mask, params.morph_kernel_px)
    count, labels, stats, _ = cv2.connectedComponentsWithStats(closed, connectivity=4)
    raw_counts = np.bincount(labels[raw_mask > 0], minlength=count)

    height, width = diff_map.shape
    margin = params.region_margin_px
    order = sorted(
        range(1, count),
        key=lambda label: (int(stats[label, cv2.CC_STAT_TOP]), int(stats[label, cv2.CC_STAT_LEFT]), label),
    )

    regions: List[Region] = []
    dropped = 0
    for label in order:
        area = int(raw_counts[label])
        if area < params.min_region_area_px:
            dropped += 1
            continue
        left = int(stats[label, cv2.CC_STAT_LEFT])
        top = int(stats[label, cv2.CC_STAT_TOP])
        comp_w = int(stats[label, cv2.CC_STAT_WIDTH])
        comp_h = int(stats[label, cv2.CC_STAT_HEIGHT])
        x0 = max(0, left - margin)
        y0 = max(0, top - margin)
        x1 = min(width, left + comp_w + margin)
        y1 = min(height, top + comp_h + margin)
        regions.append(
            Region(
                id=len(regions) + 1,
                x=x0,
                y=y0,
                width=x1 - x0,
                height=y1 - y0,
                area=area,
            )
        )

    logger.debug(
        "Extracted %d regions from %d components (%d below %d px)",
        len(regions),
        count - 1,
        dropped,
        params.min_region_area_px,
    )
    return regions
