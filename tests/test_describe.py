from pathlib import Path
import json
import sys

import pytest
import requests

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from mockupdiff import describe
from mockupdiff.core.types import Region
from mockupdiff.describe import (
    CaptionDescriptionProvider,
    RegionFeatures,
    RegionScreenshot,
    TemplateDescriptionProvider,
    build_caption_prompt,
    describe_from_caption,
    fallback_description,
    format_px,
    page_position,
    parse_caption_response,
    round_px,
)
from mockupdiff.errors import ExternalServiceError
from mockupdiff.presets import InspectionParams

PARAMS = InspectionParams()


def _screenshot(element_type, x, y, width, height, area, image_size=(800, 600)):
    region = Region(
        id=1,
        x=x,
        y=y,
        width=width,
        height=height,
        area=area,
        element_type=element_type,
        confidence=0.85,
    )
    return RegionScreenshot(
        region=region,
        png=b"\x89PNG fake",
        features=RegionFeatures.from_region(region, PARAMS),
        image_size=image_size,
    )


class _FakeResponse:
    def __init__(self, payload, status=200, chunk_size=None):
        self._body = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
        self.status_code = status
        self.chunk_size = chunk_size or max(1, len(self._body))
        self.closed = False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def iter_content(self, chunk_size=1):
        for start in range(0, len(self._body), self.chunk_size):
            yield self._body[start : start + self.chunk_size]

    def close(self):
        self.closed = True


def test_pixel_formatting():
    assert round_px(12.5) == 13
    assert round_px(112.5) == 113
    assert format_px(8.0) == "8"
    assert format_px(9.6) == "9.6"


def test_page_position_labels():
    def region(cx, cy):
        return Region(id=1, x=cx - 5, y=cy - 5, width=10, height=10, area=50)

    assert page_position(region(400, 50), 800, 600) == "page top"
    assert page_position(region(400, 550), 800, 600) == "page bottom"
    assert page_position(region(100, 300), 800, 600) == "page middle-left"
    assert page_position(region(700, 300), 800, 600) == "page middle-right"
    assert page_position(region(400, 300), 800, 600) == "page center area"


def test_button_suggestion_quotes_padding_and_radius():
    shot = _screenshot("button", 100, 200, 150, 40, 3000)
    description = TemplateDescriptionProvider().describe(shot)
    assert "padding: 10px 15px" in description.suggestion
    assert "border-radius: 8px" in description.suggestion
    assert "max-width to 113px" in description.suggestion
    assert description.title.startswith("Wide button style in page middle-left has obvious")


def test_regular_button_quotes_its_size():
    shot = _screenshot("button", 100, 200, 100, 40, 3000)
    description = TemplateDescriptionProvider().describe(shot)
    assert description.suggestion == "Set button size to 100×40px, padding: 10px 10px, border-radius: 8px"


def test_wide_button_limits_max_width():
    shot = _screenshot("button", 100, 200, 200, 30, 1500)
    description = TemplateDescriptionProvider().describe(shot)
    assert "max-width to 150px" in description.suggestion
    assert "border-radius: 6px" in description.suggestion


def test_template_wording_per_type():
    provider = TemplateDescriptionProvider()
    text = provider.describe(_screenshot("text", 0, 300, 80, 30, 500))
    assert "font-size: 24px" in text.suggestion
    assert "line-height: 36px" in text.suggestion

    icon = provider.describe(_screenshot("icon", 10, 300, 20, 20, 300))
    assert "24px" in icon.suggestion

    footer = provider.describe(_screenshot("footer", 0, 560, 90, 40, 1000))
    assert "min-height to 60px" in footer.suggestion
    assert "page bottom" in footer.title

    large = provider.describe(_screenshot("element", 300, 250, 150, 150, 9000))
    assert "significant" in large.title


def test_fallback_description_names_type():
    description = fallback_description("icon")
    assert description.title.startswith("icon element differs")
    assert "icon" in description.suggestion


def test_parse_caption_response_shapes():
    assert parse_caption_response([{"generated_text": " too small "}]) == "too small"
    assert parse_caption_response({"generated_text": "fine"}) == "fine"
    with pytest.raises(ExternalServiceError):
        parse_caption_response({"error": "loading"})
    with pytest.raises(ExternalServiceError):
        parse_caption_response([])


def test_caption_keywords_steer_wording():
    shot = _screenshot("text", 0, 300, 200, 30, 1000)
    description = describe_from_caption("The font color and size look wrong", shot)
    assert description.title.startswith("Text color and font size")
    assert 'service note: "The font color and size look wrong"' in description.title

    long_caption = "x" * 80 + " padding"
    spacing = describe_from_caption(long_caption, _screenshot("button", 0, 300, 150, 40, 1000))
    assert "spacing" in spacing.title
    assert '"' + "x" * 50 + '..."' in spacing.title


def test_tall_container_wording():
    shot = _screenshot("container", 300, 100, 60, 300, 6000)
    assert shot.features.is_tall_element
    description = TemplateDescriptionProvider().describe(shot)
    assert description.title.startswith("Tall container in page center area has obvious")
    assert "height to 300px" in description.suggestion


def test_caption_provider_posts_data_url(monkeypatch):
    calls = {}
    response = _FakeResponse([{"generated_text": "The button is not aligned with the grid"}])

    def fake_post(url, headers=None, json=None, timeout=None, stream=False):
        calls.update(url=url, headers=headers, json=json, timeout=timeout, stream=stream)
        return response

    monkeypatch.setattr(describe.requests, "post", fake_post)
    provider = CaptionDescriptionProvider("http://caption.local/model", token="secret", timeout=3.0)
    text = provider.describe(b"\x89PNG crop", "button")

    assert text == "The button is not aligned with the grid"
    assert calls["url"] == "http://caption.local/model"
    assert calls["timeout"] == 3.0
    assert calls["stream"] is True
    assert calls["headers"]["Authorization"] == "Bearer secret"
    assert calls["json"]["inputs"].startswith("data:image/png;base64,")
    assert calls["json"]["parameters"]["text"] == build_caption_prompt("button")
    assert calls["json"]["parameters"]["max_new_tokens"] == 150
    assert response.closed


def test_caption_provider_errors_become_service_errors(monkeypatch):
    def failing_post(*args, **kwargs):
        raise requests.Timeout("timed out")

    monkeypatch.setattr(describe.requests, "post", failing_post)
    provider = CaptionDescriptionProvider("http://caption.local/model")
    with pytest.raises(ExternalServiceError):
        provider.describe(b"png", "icon")

    monkeypatch.setattr(describe.requests, "post", lambda *a, **k: _FakeResponse({}, status=503))
    with pytest.raises(ExternalServiceError):
        provider.describe(b"png", "icon")

    monkeypatch.setattr(describe.requests, "post", lambda *a, **k: _FakeResponse(b"<html>busy</html>"))
    with pytest.raises(ExternalServiceError):
        provider.describe(b"png", "icon")


def test_slow_body_is_cut_off_at_the_total_timeout(monkeypatch):
    ticks = iter([100.0, 101.0, 102.5, 104.0, 105.0])
    monkeypatch.setattr(describe, "monotonic", lambda: next(ticks))
    response = _FakeResponse([{"generated_text": "x" * 40}], chunk_size=8)
    monkeypatch.setattr(describe.requests, "post", lambda *a, **k: response)

    provider = CaptionDescriptionProvider("http://caption.local/model", timeout=3.0)
    with pytest.raises(ExternalServiceError, match="within 3s"):
        provider.describe(b"png", "text")
    assert response.closed


def test_caption_provider_requires_url():
    with pytest.raises(ValueError):
        CaptionDescriptionProvider("")
