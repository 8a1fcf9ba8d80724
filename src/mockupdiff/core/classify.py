"""Geometry based UI element heuristics and severity grading."""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from ..presets import InspectionParams
from .types import ElementType, Region, Severity

logger = logging.getLogger(__name__)

_DEFAULT_PARAMS = InspectionParams()


def classify_by_features(
    width: float,
    height: float,
    x: float,
    y: float,
    image_width: float,
    image_height: float,
) -> ElementType:
    """Return the first matching element type; rules are checked in order.

    1. header      top 20% of the image, ``height < 60`` and ``width > 200``
    2. text        ``height < 40``, ``width > 150`` and aspect ratio > 3
    3. button      ``60 <= width <= 200``, ``25 <= height <= 60``, aspect ratio < 4
    4. icon        ``width < 80``, ``height < 80`` and aspect ratio < 2
    5. navigation  ``width > 300`` and ``height < 100``
    6. container   ``width * height > 8000``
    7. footer      bottom 20% of the image and ``height < 100``
    8. element     anything else
    """

    area = width * height
    aspect_ratio = width / height if height > 0 else float("inf")
    is_top = y < image_height * 0.2
    is_bottom = y > image_height * 0.8

    if is_top and height < 60 and width > 200:
        return "header"
    if height < 40 and width > 150 and aspect_ratio > 3:
        return "text"
    if 60 <= width <= 200 and 25 <= height <= 60 and aspect_ratio < 4:
        return "button"
    if width < 80 and height < 80 and aspect_ratio < 2:
        return "icon"
    if width > 300 and height < 100:
        return "navigation"
    if area > 8000:
        return "container"
    if is_bottom and height < 100:
        return "footer"
    return "element"


def calculate_severity(area: int, params: Optional[InspectionParams] = None) -> Severity:
    params = params or _DEFAULT_PARAMS
    if area > params.severity_critical_area:
        return "critical"
    if area > params.severity_medium_area:
        return "medium"
    return "minor"


def classify_regions(
    regions: Sequence[Region],
    image_width: int,
    image_height: int,
    params: InspectionParams,
) -> List[Region]:
    classified = []
    for region in regions:
        element_type = classify_by_features(
            region.width, region.height, region.x, region.y, image_width, image_height
        )
        logger.debug("Region %d (%dx%d) classified as %s", region.id, region.width, region.height, element_type)
        classified.append(region.classified(element_type, params.classification_confidence))
    return classified
