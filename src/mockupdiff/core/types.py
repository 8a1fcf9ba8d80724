from dataclasses import dataclass, replace
from typing import Dict, Literal, Optional, Tuple

ElementType = Literal[
    "header",
    "text",
    "button",
    "icon",
    "navigation",
    "container",
    "footer",
    "element",
]
Severity = Literal["critical", "medium", "minor"]

ELEMENT_TYPES: Tuple[str, ...] = (
    "header",
    "text",
    "button",
    "icon",
    "navigation",
    "container",
    "footer",
    "element",
)
SEVERITIES: Tuple[str, ...] = ("critical", "medium", "minor")


@dataclass(frozen=True)
class Region:
    """Bounding box of one detected discrepancy.

    ``area`` is the number of differing pixels found inside the component,
    not ``width * height``.
    """

    id: int
    x: int
    y: int
    width: int
    height: int
    area: int
    element_type: Optional[ElementType] = None
    confidence: Optional[float] = None
    sub_regions: Optional[int] = None

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def box_area(self) -> int:
        return self.width * self.height

    @property
    def center(self) -> Tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2

    def with_id(self, region_id: int) -> "Region":
        return replace(self, id=region_id)

    def classified(self, element_type: ElementType, confidence: float) -> "Region":
        if self.element_type is not None:
            raise ValueError(f"Region {self.id} is already classified as {self.element_type}")
        return replace(self, element_type=element_type, confidence=confidence)

    def to_dict(self) -> Dict[str, object]:
        data: Dict[str, object] = {
            "id": self.id,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "area": self.area,
        }
        if self.element_type is not None:
            data["elementType"] = self.element_type
            data["confidence"] = self.confidence
        if self.sub_regions is not None:
            data["subRegions"] = self.sub_regions
        return data


@dataclass(frozen=True)
class Issue:
    """Final report entry for one classified region."""

    id: int
    x: int
    y: int
    width: int
    height: int
    element_type: ElementType
    confidence: float
    severity: Severity
    description: str
    suggestion: str
    screenshot: str
    area: int
    sub_regions: Optional[int] = None

    def to_dict(self) -> Dict[str, object]:
        data: Dict[str, object] = {
            "id": self.id,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "elementType": self.element_type,
            "confidence": self.confidence,
            "severity": self.severity,
            "description": self.description,
            "suggestion": self.suggestion,
            "screenshot": self.screenshot,
            "area": self.area,
        }
        if self.sub_regions is not None:
            data["subRegions"] = self.sub_regions
        return data
