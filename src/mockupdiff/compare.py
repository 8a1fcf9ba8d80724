"""Design-versus-page inspection pipeline.

``inspect_images`` runs the stages strictly in order:

normalize -> difference map -> region extraction -> merge/dedup ->
classification -> screenshots and descriptions.

It never raises; failures come back as ``InspectionResult(success=False)``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .core.classify import classify_regions
from .core.diff import calculate_similarity, compute_difference_map, compute_ssim
from .core.extraction import extract_regions
from .core.merge import merge_and_deduplicate
from .core.types import Issue
from .describe import DescriptionProvider
from .overlay import build_overlays
from .presets import InspectionParams, OverlayStyle
from .raster import ImageSource
from .report import ReportSynthesizer
from .utils.normalize import normalize_pair

logger = logging.getLogger(__name__)

NO_DIFFERENCE_MESSAGE = "Page is highly consistent with design mockup, no significant differences found"


@dataclass(frozen=True)
class InspectionResult:
    success: bool
    regions: List[Issue] = field(default_factory=list)
    similarity: Optional[float] = None
    ssim: Optional[float] = None
    overlay_image: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        data: Dict[str, object] = {
            "success": self.success,
            "regions": [issue.to_dict() for issue in self.regions],
        }
        if self.similarity is not None:
            data["similarity"] = self.similarity
        if self.ssim is not None:
            data["ssim"] = self.ssim
        if self.overlay_image is not None:
            data["overlayImage"] = self.overlay_image
        if self.message is not None:
            data["message"] = self.message
        if self.error is not None:
            data["error"] = self.error
        return data


def inspect_images(
    design: ImageSource,
    page: ImageSource,
    *,
    params: Optional[InspectionParams] = None,
    style: Optional[OverlayStyle] = None,
    description_provider: Optional[DescriptionProvider] = None,
) -> InspectionResult:
    """Compare a design mockup with a rendered page and list discrepancies."""

    params = params or InspectionParams()
    style = style or OverlayStyle()
    try:
        return _run(design, page, params, style, description_provider)
    except Exception as exc:
        logger.exception("Inspection failed")
        return InspectionResult(success=False, error=str(exc) or type(exc).__name__, regions=[])


def _run(
    design: ImageSource,
    page: ImageSource,
    params: InspectionParams,
    style: OverlayStyle,
    provider: Optional[DescriptionProvider],
) -> InspectionResult:
    pair = normalize_pair(design, page)
    diff_map = compute_difference_map(pair.design, pair.page, params)
    similarity = calculate_similarity(diff_map)
    ssim = compute_ssim(pair.design, pair.page)

    regions = extract_regions(diff_map, params)
    regions = merge_and_deduplicate(regions, params)
    logger.info(
        "Found %d difference regions, overall similarity: %.1f%%",
        len(regions),
        similarity * 100,
    )

    overlays = build_overlays(pair, regions, style)
    if not regions:
        return InspectionResult(
            success=True,
            similarity=similarity,
            ssim=ssim,
            regions=[],
            overlay_image=overlays.numbered.to_data_url(),
            message=NO_DIFFERENCE_MESSAGE,
        )

    classified = classify_regions(regions, pair.width, pair.height, params)
    synthesizer = ReportSynthesizer(params, style, provider)
    issues = synthesizer.synthesize(classified, overlays.clean)
    logger.info("Inspection complete, %d issues reported", len(issues))

    return InspectionResult(
        success=True,
        similarity=similarity,
        ssim=ssim,
        regions=issues,
        overlay_image=overlays.numbered.to_data_url(),
    )
