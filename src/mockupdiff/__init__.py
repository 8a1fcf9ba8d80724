"""Design mockup versus rendered page visual inspection."""

from __future__ import annotations

from .compare import InspectionResult, inspect_images
from .core.types import Issue, Region
from .describe import CaptionDescriptionProvider, DescriptionProvider, TemplateDescriptionProvider
from .errors import DecodeError, ExternalServiceError, InspectionError, InvalidImageError
from .presets import InspectionParams, OverlayStyle, get_preset, iter_presets
from .raster import PixelBuffer, RasterSurface, decode_image

__all__ = [
    "inspect_images",
    "InspectionResult",
    "Issue",
    "Region",
    "DescriptionProvider",
    "TemplateDescriptionProvider",
    "CaptionDescriptionProvider",
    "InspectionError",
    "InvalidImageError",
    "DecodeError",
    "ExternalServiceError",
    "InspectionParams",
    "OverlayStyle",
    "get_preset",
    "iter_presets",
    "PixelBuffer",
    "RasterSurface",
    "decode_image",
]

__version__ = "0.1.0"
