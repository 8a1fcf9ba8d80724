from __future__ import annotations

"""Bring the design and page rasters to a common size."""

from dataclasses import dataclass
import logging

from ..raster import ImageSource, PixelBuffer, RasterSurface, decode_image

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NormalizedPair:
    """Design and page buffers of identical dimensions."""

    design: PixelBuffer
    page: PixelBuffer
    source_sizes: tuple[tuple[int, int], tuple[int, int]]

    @property
    def width(self) -> int:
        return self.design.width

    @property
    def height(self) -> int:
        return self.design.height


def _redraw(buffer: PixelBuffer, width: int, height: int) -> PixelBuffer:
    if buffer.size == (width, height):
        return buffer
    surface = RasterSurface.create(width, height)
    surface.draw_image(buffer, 0, 0, width, height)
    return surface.to_buffer()


def normalize_pair(design: ImageSource, page: ImageSource) -> NormalizedPair:
    """Resample both images to ``min(w1, w2) x min(h1, h2)``.

    Each image is scaled (not cropped) into the common target, so content
    beyond the smaller extent is never compared.
    """

    design_buf = decode_image(design)
    page_buf = decode_image(page)

    target_w = min(design_buf.width, page_buf.width)
    target_h = min(design_buf.height, page_buf.height)
    logger.debug(
        "Normalizing design %dx%d and page %dx%d to %dx%d",
        design_buf.width,
        design_buf.height,
        page_buf.width,
        page_buf.height,
        target_w,
        target_h,
    )
    return NormalizedPair(
        design=_redraw(design_buf, target_w, target_h),
        page=_redraw(page_buf, target_w, target_h),
        source_sizes=(design_buf.size, page_buf.size),
    )
