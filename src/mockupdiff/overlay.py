"""Composite overlays and per-region screenshots."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .core.types import Region
from .presets import OverlayStyle, color_to_rgb255
from .raster import RasterSurface
from .utils.normalize import NormalizedPair


@dataclass(frozen=True)
class Overlays:
    """``numbered`` is shown to the user; ``clean`` is the source for crops."""

    numbered: RasterSurface
    clean: RasterSurface


def composite(pair: NormalizedPair, style: OverlayStyle) -> RasterSurface:
    """Blend the page semi-transparently over the design."""

    surface = RasterSurface.from_buffer(pair.design)
    surface.draw_image(pair.page, 0, 0, pair.width, pair.height, alpha=style.blend_alpha)
    return surface


def draw_region_boxes(
    surface: RasterSurface,
    regions: Sequence[Region],
    style: OverlayStyle,
    *,
    numbered: bool,
) -> None:
    stroke = color_to_rgb255(style.stroke_color)
    text_color = color_to_rgb255(style.marker_text_color)
    for index, region in enumerate(regions, start=1):
        surface.stroke_rect(region.x, region.y, region.width, region.height, stroke, style.overlay_stroke_px)
        if not numbered:
            continue
        cx = region.x + style.marker_offset_px
        cy = region.y + style.marker_offset_px
        surface.fill_circle(cx, cy, style.marker_radius_px, stroke)
        surface.draw_text_centered(str(index), cx, cy, text_color)


def build_overlays(pair: NormalizedPair, regions: Sequence[Region], style: OverlayStyle) -> Overlays:
    base = composite(pair, style)
    clean = base.crop(0, 0, base.width, base.height)
    numbered = base
    draw_region_boxes(clean, regions, style, numbered=False)
    draw_region_boxes(numbered, regions, style, numbered=True)
    return Overlays(numbered=numbered, clean=clean)


def crop_region(surface: RasterSurface, region: Region, style: OverlayStyle) -> RasterSurface:
    """Cut ``region`` out of ``surface`` and frame it with a border."""

    crop = surface.crop(region.x, region.y, region.width, region.height)
    crop.stroke_rect(0, 0, crop.width, crop.height, color_to_rgb255(style.stroke_color), style.crop_border_px)
    return crop
