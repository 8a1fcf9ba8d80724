"""Inspection parameter presets and color helpers."""
from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Dict, Iterable, Mapping, Optional, Tuple

Color = Tuple[float, float, float]

DIFF_MODES = ("euclidean", "combined")


@dataclass(frozen=True)
class OverlayStyle:
    """Colors and stroke sizes used when drawing the overlay and crops."""

    stroke_color: Color = (1.0, 0.0, 0.0)
    marker_text_color: Color = (1.0, 1.0, 1.0)
    overlay_stroke_px: int = 4
    crop_border_px: int = 3
    marker_radius_px: int = 12
    marker_offset_px: int = 15
    blend_alpha: float = 0.5

    def with_overrides(
        self,
        *,
        stroke_color: Optional[Color] = None,
        marker_text_color: Optional[Color] = None,
    ) -> "OverlayStyle":
        return replace(
            self,
            stroke_color=stroke_color or self.stroke_color,
            marker_text_color=marker_text_color or self.marker_text_color,
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "stroke_color": self.stroke_color,
            "marker_text_color": self.marker_text_color,
            "overlay_stroke_px": self.overlay_stroke_px,
            "crop_border_px": self.crop_border_px,
            "marker_radius_px": self.marker_radius_px,
            "marker_offset_px": self.marker_offset_px,
            "blend_alpha": self.blend_alpha,
        }


@dataclass(frozen=True)
class InspectionParams:
    """Thresholds driving difference detection, merging and reporting."""

    # difference mapper
    diff_threshold: float = 25.0
    diff_mode: str = "euclidean"
    luma_threshold: float = 20.0
    alpha_threshold: float = 32.0
    perceptual_threshold: float = 30.0
    # region extractor
    morph_kernel_px: int = 15
    region_margin_px: int = 15
    min_region_area_px: int = 500
    # merger / deduplicator
    merge_distance_px: float = 80.0
    merge_near_factor: float = 0.8
    merge_size_ratio: float = 0.3
    merge_overlap_min: float = 0.1
    merge_overlap_max: float = 0.9
    merge_align_px: float = 25.0
    merge_align_size_ratio: float = 0.2
    merge_max_area_ratio: float = 10.0
    dedup_overlap_ratio: float = 0.7
    # classifier / report
    severity_critical_area: int = 8000
    severity_medium_area: int = 2000
    classification_confidence: float = 0.85
    description_timeout_s: float = 10.0

    def __post_init__(self) -> None:
        if self.diff_mode not in DIFF_MODES:
            raise ValueError(
                f"Unknown diff mode '{self.diff_mode}'. Available: {', '.join(DIFF_MODES)}"
            )
        if self.morph_kernel_px < 1:
            raise ValueError("morph_kernel_px must be at least 1")
        if self.severity_medium_area > self.severity_critical_area:
            raise ValueError("severity_medium_area must not exceed severity_critical_area")

    def to_dict(self) -> Dict[str, object]:
        return {field.name: getattr(self, field.name) for field in fields(self)}

    def copy(self, **overrides: object) -> "InspectionParams":
        return replace(self, **overrides)


@dataclass(frozen=True)
class Preset:
    """Bundle of parameters, overlay styling and metadata."""

    name: str
    description: str
    params: InspectionParams
    style: OverlayStyle

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "description": self.description,
            "params": self.params.to_dict(),
            "style": self.style.to_dict(),
        }


_DEFAULT_STYLE = OverlayStyle()

PRESETS: Mapping[str, Preset] = {
    "strict": Preset(
        name="strict",
        description="Large, high-contrast discrepancies only.",
        params=InspectionParams(
            diff_threshold=40.0,
            morph_kernel_px=11,
            region_margin_px=12,
            min_region_area_px=900,
            merge_distance_px=60.0,
        ),
        style=_DEFAULT_STYLE,
    ),
    "balanced": Preset(
        name="balanced",
        description="Default mix of sensitivity and noise rejection.",
        params=InspectionParams(),
        style=_DEFAULT_STYLE,
    ),
    "loose": Preset(
        name="loose",
        description="Maximum sensitivity; reports small regions too.",
        params=InspectionParams(
            diff_threshold=15.0,
            diff_mode="combined",
            morph_kernel_px=19,
            region_margin_px=18,
            min_region_area_px=200,
            merge_distance_px=100.0,
        ),
        style=_DEFAULT_STYLE,
    ),
}


def get_preset(name: str) -> Preset:
    key = name.lower()
    if key not in PRESETS:
        raise KeyError(f"Unknown preset '{name}'. Available: {', '.join(sorted(PRESETS))}")
    return PRESETS[key]


def iter_presets() -> Iterable[Preset]:
    return PRESETS.values()


def parse_color(value: Optional[str]) -> Optional[Color]:
    """Parse an overlay color given on the command line.

    Accepts ``#RRGGBB`` / ``#RRGGBBAA`` (the alpha byte is ignored) and
    ``r,g,b`` triples in either 0-1 or 0-255 scale.  Blank input means
    "keep the preset color" and yields ``None``.
    """

    text = (value or "").strip()
    if not text:
        return None
    if text.startswith("#"):
        digits = text[1:]
        if len(digits) not in (6, 8):
            raise ValueError(f"Hex color '{text}' must be #RRGGBB or #RRGGBBAA")
        try:
            channels = [int(digits[i : i + 2], 16) / 255.0 for i in (0, 2, 4)]
        except ValueError:
            raise ValueError(f"Hex color '{text}' contains non-hex digits") from None
        return channels[0], channels[1], channels[2]

    parts = [part.strip() for part in text.replace(";", ",").split(",")]
    if len(parts) != 3:
        raise ValueError(f"Color '{text}' must have three comma separated channels")
    channels = [float(part) for part in parts]
    if any(channel < 0 for channel in channels):
        raise ValueError(f"Color '{text}' has negative channels")
    scale = 255.0 if any(channel > 1.0 for channel in channels) else 1.0
    return channels[0] / scale, channels[1] / scale, channels[2] / scale


def color_to_rgb255(color: Color) -> Tuple[int, int, int]:
    """Convert a 0-1 float color into 0-255 integer channels."""

    return tuple(int(round(max(0.0, min(channel, 1.0)) * 255)) for channel in color)  # type: ignore[return-value]
