"""In-memory raster primitives.

Everything the pipeline needs from a "canvas" lives here: an immutable
:class:`PixelBuffer` that the diff stages read, and a mutable
:class:`RasterSurface` used to composite, draw and crop.  Pixels are stored
as ``uint8`` arrays of shape ``(height, width, 4)`` in RGBA order.  OpenCV
is used for resampling, drawing and PNG encoding; it expects BGR(A) only at
the decode/encode boundary.
"""
from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple, Union

import cv2
import numpy as np

from .errors import DecodeError, InvalidImageError

logger = logging.getLogger(__name__)

RGB = Tuple[int, int, int]
ImageSource = Union["PixelBuffer", "RasterSurface", np.ndarray, bytes, str, Path]

_DATA_URI_PREFIX = "data:"


@dataclass(frozen=True, eq=False)
class PixelBuffer:
    """Immutable RGBA raster of a fixed size."""

    width: int
    height: int
    pixels: np.ndarray

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise InvalidImageError(f"Invalid image dimensions: {self.width}x{self.height}")
        if self.pixels.shape != (self.height, self.width, 4) or self.pixels.dtype != np.uint8:
            raise InvalidImageError(
                f"Pixel array of shape {self.pixels.shape} ({self.pixels.dtype}) "
                f"does not match {self.width}x{self.height} RGBA"
            )
        self.pixels.setflags(write=False)

    @classmethod
    def from_array(cls, array: np.ndarray) -> "PixelBuffer":
        """Build a buffer from a gray, RGB or RGBA array (copied)."""

        rgba = _to_rgba(np.asarray(array))
        height, width = rgba.shape[:2]
        return cls(width=width, height=height, pixels=rgba)

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def rgb(self) -> np.ndarray:
        return self.pixels[:, :, :3]

    def alpha(self) -> np.ndarray:
        return self.pixels[:, :, 3]

    def gray(self) -> np.ndarray:
        return cv2.cvtColor(np.ascontiguousarray(self.rgb()), cv2.COLOR_RGB2GRAY)


def _to_rgba(array: np.ndarray) -> np.ndarray:
    if array.ndim not in (2, 3) or array.shape[0] == 0 or array.shape[1] == 0:
        raise InvalidImageError(f"Invalid image dimensions: {array.shape}")
    if array.dtype == np.uint16:
        array = (array // 257).astype(np.uint8)
    elif array.dtype != np.uint8:
        array = np.clip(array, 0, 255).astype(np.uint8)
    if array.ndim == 2:
        return cv2.cvtColor(np.ascontiguousarray(array), cv2.COLOR_GRAY2RGBA)
    channels = array.shape[2]
    if channels == 1:
        return cv2.cvtColor(np.ascontiguousarray(array[:, :, 0]), cv2.COLOR_GRAY2RGBA)
    if channels == 3:
        return cv2.cvtColor(np.ascontiguousarray(array), cv2.COLOR_RGB2RGBA)
    if channels == 4:
        return np.array(array, dtype=np.uint8, copy=True)
    raise InvalidImageError(f"Unsupported channel count: {channels}")


class RasterSurface:
    """Mutable RGBA drawing surface.

    The operations mirror what a 2D canvas offers: create, draw another
    image (optionally scaled and with a global alpha), read pixels back
    and export the result as an image.
    """

    def __init__(self, pixels: np.ndarray) -> None:
        if pixels.ndim != 3 or pixels.shape[2] != 4 or pixels.dtype != np.uint8:
            raise InvalidImageError(f"Surface requires an RGBA uint8 array, got {pixels.shape}")
        if pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise InvalidImageError(f"Invalid surface dimensions: {pixels.shape[1]}x{pixels.shape[0]}")
        self._pixels = np.ascontiguousarray(pixels)

    @classmethod
    def create(cls, width: int, height: int) -> "RasterSurface":
        """Return a fully transparent surface."""

        if width <= 0 or height <= 0:
            raise InvalidImageError(f"Invalid surface dimensions: {width}x{height}")
        return cls(np.zeros((height, width, 4), dtype=np.uint8))

    @classmethod
    def from_buffer(cls, buffer: PixelBuffer) -> "RasterSurface":
        return cls(np.array(buffer.pixels, copy=True))

    @property
    def width(self) -> int:
        return int(self._pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self._pixels.shape[0])

    def draw_image(
        self,
        source: Union[PixelBuffer, "RasterSurface"],
        x: int = 0,
        y: int = 0,
        width: int | None = None,
        height: int | None = None,
        *,
        alpha: float = 1.0,
    ) -> None:
        """Composite ``source`` (scaled to ``width`` x ``height``) at ``(x, y)``."""

        src = source.pixels if isinstance(source, PixelBuffer) else source._pixels
        target_w = width if width is not None else src.shape[1]
        target_h = height if height is not None else src.shape[0]
        if target_w <= 0 or target_h <= 0:
            return
        src = resize_rgba(src, target_w, target_h)

        x0, y0 = max(0, x), max(0, y)
        x1, y1 = min(self.width, x + target_w), min(self.height, y + target_h)
        if x0 >= x1 or y0 >= y1:
            return
        src = src[y0 - y : y1 - y, x0 - x : x1 - x]
        dst = self._pixels[y0:y1, x0:x1]

        alpha = max(0.0, min(alpha, 1.0))
        if alpha >= 1.0 and bool(np.all(src[:, :, 3] == 255)):
            dst[...] = src
            return
        self._pixels[y0:y1, x0:x1] = _source_over(src, dst, alpha)

    def crop(self, x: int, y: int, width: int, height: int) -> "RasterSurface":
        """Return a copy of the given rectangle, clipped to the surface."""

        x0, y0 = max(0, x), max(0, y)
        x1, y1 = min(self.width, x + width), min(self.height, y + height)
        if x0 >= x1 or y0 >= y1:
            raise InvalidImageError(f"Crop rectangle {x},{y},{width},{height} lies outside the surface")
        return RasterSurface(np.array(self._pixels[y0:y1, x0:x1], copy=True))

    def stroke_rect(self, x: int, y: int, width: int, height: int, color: RGB, line_width: int) -> None:
        if width <= 0 or height <= 0:
            return
        cv2.rectangle(
            self._pixels,
            (int(x), int(y)),
            (int(x + width - 1), int(y + height - 1)),
            (*color, 255),
            thickness=max(1, int(line_width)),
        )

    def fill_circle(self, cx: int, cy: int, radius: int, color: RGB) -> None:
        cv2.circle(
            self._pixels,
            (int(cx), int(cy)),
            int(radius),
            (*color, 255),
            thickness=cv2.FILLED,
            lineType=cv2.LINE_AA,
        )

    def draw_text_centered(self, text: str, cx: int, cy: int, color: RGB, *, scale: float = 0.5) -> None:
        font = cv2.FONT_HERSHEY_SIMPLEX
        (text_w, text_h), _ = cv2.getTextSize(text, font, scale, 2)
        origin = (int(cx - text_w / 2), int(cy + text_h / 2))
        cv2.putText(self._pixels, text, origin, font, scale, (*color, 255), thickness=2, lineType=cv2.LINE_AA)

    def get_pixels(self) -> np.ndarray:
        return np.array(self._pixels, copy=True)

    def to_buffer(self) -> PixelBuffer:
        return PixelBuffer(width=self.width, height=self.height, pixels=self.get_pixels())

    def to_png(self) -> bytes:
        return encode_png(self._pixels)

    def to_data_url(self) -> str:
        return png_data_url(self.to_png())


def _source_over(src: np.ndarray, dst: np.ndarray, alpha: float) -> np.ndarray:
    src_a = src[:, :, 3:4].astype(np.float32) / 255.0 * alpha
    dst_a = dst[:, :, 3:4].astype(np.float32) / 255.0
    out_a = src_a + dst_a * (1.0 - src_a)
    src_rgb = src[:, :, :3].astype(np.float32)
    dst_rgb = dst[:, :, :3].astype(np.float32)
    with np.errstate(invalid="ignore", divide="ignore"):
        out_rgb = (src_rgb * src_a + dst_rgb * dst_a * (1.0 - src_a)) / out_a
    out_rgb = np.where(out_a > 0, out_rgb, 0.0)
    out = np.empty_like(dst)
    out[:, :, :3] = np.clip(np.rint(out_rgb), 0, 255).astype(np.uint8)
    out[:, :, 3] = np.clip(np.rint(out_a[:, :, 0] * 255.0), 0, 255).astype(np.uint8)
    return out


def resize_rgba(pixels: np.ndarray, width: int, height: int) -> np.ndarray:
    if pixels.shape[0] == height and pixels.shape[1] == width:
        return pixels
    interpolation = (
        cv2.INTER_AREA if width < pixels.shape[1] or height < pixels.shape[0] else cv2.INTER_LINEAR
    )
    return cv2.resize(pixels, (width, height), interpolation=interpolation)


def decode_image(source: ImageSource) -> PixelBuffer:
    """Decode ``source`` into a :class:`PixelBuffer`.

    Accepts an existing buffer or surface, a numpy array (gray/RGB/RGBA),
    encoded image bytes, a ``data:`` URI or a filesystem path.
    """

    if isinstance(source, PixelBuffer):
        return source
    if isinstance(source, RasterSurface):
        return source.to_buffer()
    if isinstance(source, np.ndarray):
        return PixelBuffer.from_array(source)
    if isinstance(source, str) and source.startswith(_DATA_URI_PREFIX):
        return decode_bytes(data_uri_payload(source))
    if isinstance(source, (str, Path)):
        path = Path(source)
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise DecodeError(f"Could not read image file {path}: {exc}") from exc
        return decode_bytes(data)
    if isinstance(source, (bytes, bytearray, memoryview)):
        return decode_bytes(bytes(source))
    raise DecodeError(f"Unsupported image source type: {type(source).__name__}")


def decode_bytes(data: bytes) -> PixelBuffer:
    if not data:
        raise DecodeError("Empty image data")
    raw = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
    if raw is None:
        raise DecodeError("Image data could not be decoded")
    if raw.ndim == 3 and raw.shape[2] == 3:
        raw = cv2.cvtColor(raw, cv2.COLOR_BGR2RGB)
    elif raw.ndim == 3 and raw.shape[2] == 4:
        raw = cv2.cvtColor(raw, cv2.COLOR_BGRA2RGBA)
    buffer = PixelBuffer.from_array(raw)
    logger.debug("Decoded %dx%d image (%d bytes)", buffer.width, buffer.height, len(data))
    return buffer


def data_uri_payload(uri: str) -> bytes:
    header, sep, payload = uri.partition(",")
    if not sep:
        raise DecodeError("Malformed data URI: missing ',' separator")
    if not header.endswith(";base64"):
        raise DecodeError("Only base64 encoded data URIs are supported")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"Malformed base64 payload: {exc}") from exc


def encode_png(pixels: np.ndarray) -> bytes:
    ok, encoded = cv2.imencode(".png", cv2.cvtColor(pixels, cv2.COLOR_RGBA2BGRA))
    if not ok:
        raise DecodeError("PNG encoding failed")
    return encoded.tobytes()


def png_data_url(png: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")
