"""Issue assembly and JSON report helpers."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple

from .core.classify import calculate_severity
from .core.types import Issue, Region
from .describe import (
    Description,
    DescriptionProvider,
    RegionFeatures,
    RegionScreenshot,
    TemplateDescriptionProvider,
    describe_from_caption,
    fallback_description,
)
from .errors import ExternalServiceError
from .overlay import crop_region
from .presets import InspectionParams, OverlayStyle
from .raster import RasterSurface

if TYPE_CHECKING:  # pragma: no cover
    from .compare import InspectionResult

logger = logging.getLogger(__name__)


def build_screenshots(
    regions: Sequence[Region],
    clean_overlay: RasterSurface,
    params: InspectionParams,
    style: OverlayStyle,
) -> List[RegionScreenshot]:
    image_size = (clean_overlay.width, clean_overlay.height)
    screenshots = []
    for region in regions:
        crop = crop_region(clean_overlay, region, style)
        screenshots.append(
            RegionScreenshot(
                region=region,
                png=crop.to_png(),
                features=RegionFeatures.from_region(region, params),
                image_size=image_size,
            )
        )
    logger.debug("Generated %d region screenshots", len(screenshots))
    return screenshots


class ReportSynthesizer:
    """Describe every region and build the final :class:`Issue` list.

    ``provider`` is optional: its free text for each crop is folded into the
    element wording by :func:`describe_from_caption`.  The
    first time it raises :class:`ExternalServiceError` it is skipped for
    the remaining regions of the run so a slow or dead service costs at
    most one timeout.
    """

    def __init__(
        self,
        params: InspectionParams,
        style: OverlayStyle,
        provider: Optional[DescriptionProvider] = None,
    ) -> None:
        self.params = params
        self.style = style
        self.provider = provider
        self.template = TemplateDescriptionProvider()
        self._provider_disabled = False

    def describe(self, screenshot: RegionScreenshot) -> Description:
        if self.provider is not None and not self._provider_disabled:
            try:
                text = self.provider.describe(screenshot.png, screenshot.element_type)
                if not isinstance(text, str) or not text.strip():
                    raise ExternalServiceError(f"Provider returned no text ({type(text).__name__})")
                return describe_from_caption(text.strip(), screenshot)
            except ExternalServiceError as exc:
                logger.warning(
                    "Description service failed for region %d, using templates for the rest of the run: %s",
                    screenshot.region.id,
                    exc,
                )
                self._provider_disabled = True
            except Exception as exc:
                logger.warning(
                    "Description provider raised for region %d, using template: %s",
                    screenshot.region.id,
                    exc,
                )
        try:
            return self.template.describe(screenshot)
        except Exception:
            logger.exception("Template description failed for region %d", screenshot.region.id)
            return fallback_description(screenshot.element_type)

    def synthesize(self, regions: Sequence[Region], clean_overlay: RasterSurface) -> List[Issue]:
        screenshots = build_screenshots(regions, clean_overlay, self.params, self.style)
        issues = []
        for shot in screenshots:
            region = shot.region
            description = self.describe(shot)
            issues.append(
                Issue(
                    id=region.id,
                    x=region.x,
                    y=region.y,
                    width=region.width,
                    height=region.height,
                    element_type=shot.element_type,
                    confidence=(
                        region.confidence
                        if region.confidence is not None
                        else self.params.classification_confidence
                    ),
                    severity=calculate_severity(region.area, self.params),
                    description=description.title,
                    suggestion=description.suggestion,
                    screenshot=shot.data_url,
                    area=region.area,
                    sub_regions=region.sub_regions,
                )
            )
        return issues


def write_json_report(result: "InspectionResult", path: str | Path) -> None:
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    data = result.to_dict()
    with out_path.open("w", encoding="utf-8") as handle:
        json.dump(data, handle, ensure_ascii=False, indent=2)


def result_to_json(result: "InspectionResult") -> str:
    return json.dumps(result.to_dict(), ensure_ascii=False, indent=2)


def severity_counts(issues: Sequence[Issue]) -> Tuple[int, int, int]:
    """Return ``(critical, medium, minor)`` totals."""

    critical = sum(1 for issue in issues if issue.severity == "critical")
    medium = sum(1 for issue in issues if issue.severity == "medium")
    return critical, medium, len(issues) - critical - medium
