"""Merge fragmented regions and drop near-duplicates."""
from __future__ import annotations

import logging
import math
from typing import List, Sequence

from ..presets import InspectionParams
from .types import Region

logger = logging.getLogger(__name__)


def overlap_area(a: Region, b: Region) -> int:
    left = max(a.x, b.x)
    right = min(a.right, b.right)
    top = max(a.y, b.y)
    bottom = min(a.bottom, b.bottom)
    if left < right and top < bottom:
        return (right - left) * (bottom - top)
    return 0


def should_merge(a: Region, b: Region, params: InspectionParams) -> bool:
    """Decide whether two regions describe the same discrepancy.

    Sizes here are bounding-box areas.  Pairs whose sizes differ by more
    than ``merge_max_area_ratio`` are never merged.
    """

    area_a = a.box_area
    area_b = b.box_area
    smaller = min(area_a, area_b)
    larger = max(area_a, area_b)
    if smaller <= 0 or larger / smaller > params.merge_max_area_ratio:
        return False

    (cx1, cy1), (cx2, cy2) = a.center, b.center
    distance = math.hypot(cx1 - cx2, cy1 - cy2)
    size_ratio = smaller / larger
    overlap_ratio = overlap_area(a, b) / smaller
    threshold = params.merge_distance_px

    close = distance < threshold * params.merge_near_factor and size_ratio > params.merge_size_ratio
    partial_overlap = params.merge_overlap_min < overlap_ratio < params.merge_overlap_max
    aligned = (
        (abs(cy1 - cy2) < params.merge_align_px or abs(cx1 - cx2) < params.merge_align_px)
        and distance < threshold
        and size_ratio > params.merge_align_size_ratio
    )
    return close or partial_overlap or aligned


def create_merged_region(group: Sequence[Region], region_id: int) -> Region:
    x0 = min(r.x for r in group)
    y0 = min(r.y for r in group)
    x1 = max(r.right for r in group)
    y1 = max(r.bottom for r in group)
    return Region(
        id=region_id,
        x=x0,
        y=y0,
        width=x1 - x0,
        height=y1 - y0,
        area=sum(r.area for r in group),
        sub_regions=len(group),
    )


def merge_regions(regions: Sequence[Region], params: InspectionParams) -> List[Region]:
    """Greedy merge, largest box first.

    Each unprocessed anchor absorbs every later unprocessed region that
    :func:`should_merge` accepts against the anchor itself.  Equal box areas
    are ordered by region id so the outcome does not depend on input order.
    """

    if len(regions) <= 1:
        return list(regions)

    ordered = sorted(regions, key=lambda r: (-r.box_area, r.id))
    used = [False] * len(ordered)
    merged: List[Region] = []

    for i, anchor in enumerate(ordered):
        if used[i]:
            continue
        used[i] = True
        group = [anchor]
        for j in range(i + 1, len(ordered)):
            if used[j]:
                continue
            if should_merge(anchor, ordered[j], params):
                group.append(ordered[j])
                used[j] = True

        if len(group) == 1:
            merged.append(anchor.with_id(len(merged) + 1))
        else:
            logger.debug("Merged %d regions into region %d", len(group), len(merged) + 1)
            merged.append(create_merged_region(group, len(merged) + 1))

    return merged


def deduplicate_regions(regions: Sequence[Region], params: InspectionParams) -> List[Region]:
    """Drop regions covered beyond ``dedup_overlap_ratio`` by another one.

    Of two duplicates the one with the larger box is kept, in the slot of
    the first.  Passes repeat until nothing is removed, so no remaining pair
    overlaps beyond the ratio.
    """

    current = list(regions)
    while len(current) > 1:
        kept: List[Region] = []
        for region in current:
            duplicate_of = _find_duplicate(region, kept, params.dedup_overlap_ratio)
            if duplicate_of is None:
                kept.append(region)
            elif region.box_area > kept[duplicate_of].box_area:
                kept[duplicate_of] = region
        if len(kept) == len(current):
            break
        current = kept
    return [region.with_id(index) for index, region in enumerate(current, start=1)]


def _find_duplicate(region: Region, kept: Sequence[Region], ratio: float) -> int | None:
    for index, other in enumerate(kept):
        overlap = overlap_area(region, other)
        if overlap == 0:
            continue
        if overlap / region.box_area > ratio or overlap / other.box_area > ratio:
            return index
    return None


def merge_and_deduplicate(regions: Sequence[Region], params: InspectionParams) -> List[Region]:
    merged = merge_regions(regions, params)
    deduped = deduplicate_regions(merged, params)
    logger.info(
        "Region cleanup: %d detected, %d after merge, %d after dedup",
        len(regions),
        len(merged),
        len(deduped),
    )
    return deduped
