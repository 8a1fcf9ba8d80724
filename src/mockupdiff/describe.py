"""Natural-language descriptions for classified regions.

:class:`TemplateDescriptionProvider` is deterministic and always available.
Pluggable providers only return free text for a PNG crop and an element
type hint; :func:`describe_from_caption` folds that text into the element
specific wording.  :class:`CaptionDescriptionProvider` gets the text from an
HTTP image-captioning service and reports every failure as
:class:`~mockupdiff.errors.ExternalServiceError`.
"""
from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass
from time import monotonic
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

import requests

from .core.classify import calculate_severity
from .core.types import ElementType, Region, Severity
from .errors import ExternalServiceError
from .presets import InspectionParams
from .raster import png_data_url

logger = logging.getLogger(__name__)

SEVERITY_WORDING: Dict[str, str] = {
    "critical": "significant",
    "medium": "obvious",
    "minor": "minor",
}

CAPTION_PROMPTS: Dict[str, str] = {
    "header": "Analyse the UI problems of this page header: check height, alignment and spacing against the design mockup",
    "text": "Analyse this text area: check font size, color, line height and alignment",
    "button": "Analyse the styling of this button: check size, border radius, color and padding",
    "icon": "Analyse how this icon is displayed: check size, color, position and alignment",
    "navigation": "Analyse the layout of this navigation area: check spacing, alignment and responsiveness",
    "container": "Analyse the layout of this container: check width, padding, background and border",
    "footer": "Analyse this page footer: check height, content layout and alignment",
    "element": "Analyse this UI element: check whether position, size and style match the design mockup",
}


@dataclass(frozen=True)
class Description:
    title: str
    suggestion: str


@dataclass(frozen=True)
class RegionFeatures:
    """Shape flags derived from a region's box and pixel count."""

    aspect_ratio: float
    is_large_area: bool
    is_small_icon: bool
    is_wide_element: bool
    is_tall_element: bool
    severity: Severity

    @classmethod
    def from_region(cls, region: Region, params: InspectionParams) -> "RegionFeatures":
        width, height = region.width, region.height
        aspect_ratio = width / height if height else float("inf")
        return cls(
            aspect_ratio=aspect_ratio,
            is_large_area=region.area > params.severity_critical_area,
            is_small_icon=width < 80 and height < 80,
            is_wide_element=aspect_ratio > 3,
            is_tall_element=width > 0 and height / width > 2,
            severity=calculate_severity(region.area, params),
        )


@dataclass(frozen=True)
class RegionScreenshot:
    """Bordered crop of one region plus everything needed to describe it."""

    region: Region
    png: bytes
    features: RegionFeatures
    image_size: Tuple[int, int]

    @property
    def element_type(self) -> ElementType:
        return self.region.element_type or "element"

    @property
    def data_url(self) -> str:
        return png_data_url(self.png)


class DescriptionProvider(Protocol):
    """Anything that turns a region crop into free text.

    ``image_png`` is the bordered PNG crop and ``element_type`` the
    classifier's hint.  Failures should raise; the caller falls back to
    :class:`TemplateDescriptionProvider`.
    """

    def describe(self, image_png: bytes, element_type: str) -> str:
        ...


def round_px(value: float) -> int:
    """Round half up, the way CSS pixel values are usually quoted."""

    return int(math.floor(value + 0.5))


def format_px(value: float) -> str:
    """``8.0`` -> ``"8"``, ``9.6`` -> ``"9.6"``."""

    rounded = round(value, 1)
    if rounded == int(rounded):
        return str(int(rounded))
    return f"{rounded:.1f}"


def page_position(region: Region, image_width: int, image_height: int) -> str:
    """Coarse location label from the region centre."""

    cx, cy = region.center
    if cy < image_height * 0.2:
        return "page top"
    if cy > image_height * 0.8:
        return "page bottom"
    if cx < image_width * 0.3:
        return "page middle-left"
    if cx > image_width * 0.7:
        return "page middle-right"
    return "page center area"


def fallback_description(element_type: str) -> Description:
    return Description(
        title=f"{element_type} element differs from design mockup, needs further adjustment",
        suggestion=f"Please check the style settings of this {element_type} against design mockup",
    )


class TemplateDescriptionProvider:
    """Deterministic wording keyed by element type and shape flags."""

    def __init__(self) -> None:
        self._builders: Dict[str, Callable[[Region, RegionFeatures, str, str], Description]] = {
            "header": self._header,
            "text": self._text,
            "button": self._button,
            "icon": self._icon,
            "navigation": self._navigation,
            "container": self._container,
            "footer": self._footer,
        }

    def describe(self, screenshot: RegionScreenshot) -> Description:
        region = screenshot.region
        features = screenshot.features
        position = page_position(region, *screenshot.image_size)
        severity = SEVERITY_WORDING[features.severity]
        builder = self._builders.get(screenshot.element_type, self._element)
        return builder(region, features, position, severity)

    @staticmethod
    def _header(region: Region, features: RegionFeatures, position: str, severity: str) -> Description:
        return Description(
            title=(
                f"Header area layout in {position} has {severity} differences from design mockup, "
                "overall height or content distribution needs adjustment"
            ),
            suggestion=(
                f"Set header fixed height to {region.height}px, "
                "use flexbox to keep content vertically centered"
            ),
        )

    @staticmethod
    def _text(region: Region, features: RegionFeatures, position: str, severity: str) -> Description:
        if features.is_wide_element:
            return Description(
                title=(
                    f"Long text area in {position} has {severity} differences from design mockup, "
                    "may involve line breaks, alignment or letter spacing issues"
                ),
                suggestion=(
                    "Check text-align, adjust letter-spacing and word-spacing, "
                    f"keep the text width within {round_px(region.width * 0.9)}px"
                ),
            )
        return Description(
            title=(
                f"Text area in {position} has {severity} differences from design mockup, "
                "font size or line height may be inconsistent"
            ),
            suggestion=(
                f"Recommend font-size: {max(12, round_px(region.height * 0.8))}px, "
                f"line-height: {format_px(region.height * 1.2)}px"
            ),
        )

    @staticmethod
    def _button(region: Region, features: RegionFeatures, position: str, severity: str) -> Description:
        padding = f"{round_px(region.height * 0.25)}px {round_px(region.width * 0.1)}px"
        radius = format_px(min(region.height * 0.2, 8))
        if features.is_wide_element:
            return Description(
                title=(
                    f"Wide button style in {position} has {severity} differences from design mockup, "
                    "its aspect ratio is unbalanced"
                ),
                suggestion=(
                    f"Limit button max-width to {round_px(region.width * 0.75)}px, "
                    f"set padding: {padding}, border-radius: {radius}px"
                ),
            )
        if features.is_small_icon:
            return Description(
                title=(
                    f"Small button in {position} does not match design mockup, "
                    "it may be too small or lack padding"
                ),
                suggestion=(
                    "Increase button minimum size to 32×32px, "
                    f"set padding: {padding}, border-radius: {radius}px"
                ),
            )
        return Description(
            title=(
                f"Button style in {position} has {severity} differences from design mockup, "
                "size or border radius needs adjustment"
            ),
            suggestion=(
                f"Set button size to {region.width}×{region.height}px, "
                f"padding: {padding}, border-radius: {radius}px"
            ),
        )

    @staticmethod
    def _icon(region: Region, features: RegionFeatures, position: str, severity: str) -> Description:
        side = min(region.width, region.height)
        if features.is_small_icon:
            return Description(
                title=(
                    f"Small icon in {position} has {severity} differences from design mockup, "
                    "it may be too small or blurry"
                ),
                suggestion=(
                    f"Standardize icon size to {max(24, side)}px (at least 24×24px), "
                    "prefer SVG for crisp rendering"
                ),
            )
        return Description(
            title=f"Icon size in {position} does not match design mockup, it renders too large or distorted",
            suggestion=f"Adjust icon size to {side}×{side}px and keep it square",
        )

    @staticmethod
    def _navigation(region: Region, features: RegionFeatures, position: str, severity: str) -> Description:
        if features.is_wide_element:
            return Description(
                title=(
                    f"Navigation bar width in {position} has {severity} differences from design mockup, "
                    "it may stretch across the whole container"
                ),
                suggestion=(
                    "Limit the navigation container max-width, "
                    f"set the gap between navigation items to {round_px(region.width * 0.03)}px"
                ),
            )
        return Description(
            title=f"Navigation spacing or alignment in {position} does not match design mockup",
            suggestion=(
                f"Set navigation item margin: 0 {round_px(region.width * 0.02)}px, "
                "keep items horizontally centered"
            ),
        )

    @staticmethod
    def _container(region: Region, features: RegionFeatures, position: str, severity: str) -> Description:
        if features.is_tall_element:
            return Description(
                title=(
                    f"Tall container in {position} has {severity} differences from design mockup, "
                    "its vertical content distribution deviates"
                ),
                suggestion=(
                    f"Set container height to {region.height}px (or min-height), "
                    "use overflow-y: auto and check the spacing between stacked items"
                ),
            )
        if features.is_large_area:
            return Description(
                title=(
                    f"Large container in {position} has {severity} differences from design mockup, "
                    "the overall layout structure deviates"
                ),
                suggestion=(
                    f"Re-check container max-width: {region.width}px, "
                    f"padding: {round_px(region.height * 0.03)}px, and the spacing of inner elements"
                ),
            )
        return Description(
            title=(
                f"Container in {position} has {severity} differences from design mockup, "
                "margins or content arrangement need work"
            ),
            suggestion="Adjust container padding to 16px and use margin: auto for centering",
        )

    @staticmethod
    def _footer(region: Region, features: RegionFeatures, position: str, severity: str) -> Description:
        return Description(
            title=(
                f"Footer height or content layout in {position} has {severity} "
                "differences from design mockup"
            ),
            suggestion=(
                f"Set footer min-height to {max(60, region.height)}px, "
                "use flexbox to center its content"
            ),
        )

    @staticmethod
    def _element(region: Region, features: RegionFeatures, position: str, severity: str) -> Description:
        if features.is_large_area:
            return Description(
                title=(
                    f"Large area in {position} has {severity} visual differences from design mockup, "
                    "background or layout may be off"
                ),
                suggestion="Check background-color, border and overall layout settings in this area",
            )
        if features.is_small_icon:
            return Description(
                title=(
                    f"Small element in {position} displays inconsistently with design mockup, "
                    "it may be too small or missing"
                ),
                suggestion="Ensure a minimum display size and check visibility and opacity",
            )
        return Description(
            title=f"UI element in {position} has {severity} visual differences from design mockup",
            suggestion="Check position, size and style properties of this element against design mockup",
        )


_COLOR_WORDS = re.compile(r"\b(colou?r|hue|shade|background)\b", re.IGNORECASE)
_SIZE_WORDS = re.compile(r"\b(size|large|small|big|tiny|wide|narrow)\b", re.IGNORECASE)
_POSITION_WORDS = re.compile(r"\b(position|align\w*|offset|shifted)\b", re.IGNORECASE)
_SPACING_WORDS = re.compile(r"\b(spacing|padding|margin|gap)\b", re.IGNORECASE)


def build_caption_prompt(element_type: str) -> str:
    base = CAPTION_PROMPTS.get(element_type, CAPTION_PROMPTS["element"])
    return (
        f"This is a UI review screenshot showing a {element_type} element. {base}. "
        "Describe the concrete problem and how to fix it."
    )


def parse_caption_response(payload: Any) -> str:
    """Extract ``generated_text`` from a list or object response."""

    if isinstance(payload, list) and payload and isinstance(payload[0], dict):
        text = payload[0].get("generated_text")
    elif isinstance(payload, dict):
        text = payload.get("generated_text")
    else:
        text = None
    if not isinstance(text, str) or not text.strip():
        raise ExternalServiceError(f"Unexpected caption response shape: {type(payload).__name__}")
    return text.strip()


def describe_from_caption(caption: str, screenshot: RegionScreenshot) -> Description:
    """Steer the element wording with keywords found in ``caption``."""

    region = screenshot.region
    element_type = screenshot.element_type
    has_color = bool(_COLOR_WORDS.search(caption))
    has_size = bool(_SIZE_WORDS.search(caption))
    has_position = bool(_POSITION_WORDS.search(caption))
    has_spacing = bool(_SPACING_WORDS.search(caption))
    excerpt = caption[:50] + ("..." if len(caption) > 50 else "")

    if element_type == "text" and has_color and has_size:
        title = "Text color and font size do not match design mockup"
        suggestion = f"Align the text color and set font-size: {format_px(max(14, region.height * 0.6))}px"
    elif has_color:
        title = f"{element_type.capitalize()} colors do not match design mockup"
        suggestion = "Check color, background-color and border-color against the design values"
    elif has_size:
        title = f"{element_type.capitalize()} size differs noticeably from design mockup"
        suggestion = f"Adjust the element to about {region.width}×{region.height}px"
    elif has_spacing:
        title = f"{element_type.capitalize()} spacing does not match design mockup"
        suggestion = (
            f"Review padding and margin, e.g. padding: {round_px(region.height * 0.25)}px "
            f"{round_px(region.width * 0.1)}px"
        )
    elif has_position:
        title = f"{element_type.capitalize()} position or alignment deviates from design mockup"
        suggestion = f"Move the element to x={region.x}px, y={region.y}px and re-check its alignment"
    else:
        title = f"{element_type.capitalize()} shows visual differences from design mockup"
        suggestion = "Compare the style properties of this element with the design mockup"
    return Description(title=f'{title} (service note: "{excerpt}")', suggestion=suggestion)


class CaptionDescriptionProvider:
    """Description provider backed by an HTTP image-captioning endpoint.

    The endpoint receives ``{"inputs": <data uri>, "parameters": {...}}``
    and is expected to answer ``[{"generated_text": ...}]`` or
    ``{"generated_text": ...}``.  ``timeout`` bounds the whole exchange:
    it is passed to ``requests`` for connect/read and the streamed body is
    abandoned once the same number of seconds has elapsed in total.
    """

    def __init__(
        self,
        url: str,
        *,
        token: Optional[str] = None,
        timeout: float = 10.0,
        max_new_tokens: int = 150,
        temperature: float = 0.7,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not url:
            raise ValueError("Caption service URL is required")
        self.url = url
        self.token = token
        self.timeout = timeout
        self.max_new_tokens = max_new_tokens
        self.temperature = temperature
        self._session = session

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _read_body(self, resp: requests.Response, deadline: float) -> bytes:
        chunks = []
        for chunk in resp.iter_content(chunk_size=8192):
            if monotonic() > deadline:
                raise ExternalServiceError(f"Caption service did not answer within {self.timeout:g}s")
            chunks.append(chunk)
        return b"".join(chunks)

    def describe(self, image_png: bytes, element_type: str) -> str:
        """Return the service's free text for ``image_png``."""

        payload = {
            "inputs": png_data_url(image_png),
            "parameters": {
                "text": build_caption_prompt(element_type),
                "max_new_tokens": self.max_new_tokens,
                "temperature": self.temperature,
            },
        }
        post = self._session.post if self._session is not None else requests.post
        deadline = monotonic() + self.timeout
        try:
            resp = post(self.url, headers=self._headers(), json=payload, timeout=self.timeout, stream=True)
            try:
                resp.raise_for_status()
                body = self._read_body(resp, deadline)
            finally:
                resp.close()
            data = json.loads(body)
        except requests.RequestException as exc:
            raise ExternalServiceError(f"Caption service request failed: {exc}") from exc
        except ValueError as exc:
            raise ExternalServiceError(f"Caption service returned invalid JSON: {exc}") from exc
        caption = parse_caption_response(data)
        logger.debug("Caption for %s region: %s", element_type, caption)
        return caption
