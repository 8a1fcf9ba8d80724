from pathlib import Path
import sys

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from mockupdiff import inspect_images
from mockupdiff.compare import NO_DIFFERENCE_MESSAGE
from mockupdiff.core.merge import overlap_area
from mockupdiff.errors import ExternalServiceError
from mockupdiff.presets import get_preset
from mockupdiff.raster import encode_png


def _white(width=400, height=300):
    return np.full((height, width, 3), 255, dtype=np.uint8)


def _with_block(image, x, y, width, height, rgb=(255, 0, 0)):
    image = image.copy()
    image[y : y + height, x : x + width] = rgb
    return image


class _DeadService:
    def __init__(self):
        self.calls = 0

    def describe(self, image_png, element_type):
        self.calls += 1
        raise ExternalServiceError("timeout")


class _HintedCaptioner:
    def describe(self, image_bytes, element_type_hint):
        return f"The {element_type_hint} is shifted to the right"


def test_identical_images_report_no_differences():
    result = inspect_images(_white(), _white())
    assert result.success
    assert result.regions == []
    assert result.similarity == 1.0
    assert result.message == NO_DIFFERENCE_MESSAGE
    assert result.overlay_image.startswith("data:image/png;base64,")
    assert result.ssim == pytest.approx(1.0)


def test_single_block_becomes_critical_issue():
    result = inspect_images(_white(), _with_block(_white(), 50, 50, 100, 100))
    assert result.success
    assert result.message is None
    assert result.similarity == pytest.approx(1 - 10000 / 120000)
    assert len(result.regions) == 1
    issue = result.regions[0]
    assert (issue.x, issue.y, issue.width, issue.height) == (35, 35, 130, 130)
    assert issue.area == 10000
    assert issue.severity == "critical"
    assert issue.element_type == "container"
    assert issue.confidence == 0.85
    assert issue.screenshot.startswith("data:image/png;base64,")
    assert 0.0 <= result.similarity <= 1.0


def test_encoded_inputs_and_size_mismatch():
    design = encode_png(np.dstack([_white(800, 600), np.full((600, 800), 255, dtype=np.uint8)]))
    page = _with_block(_white(), 150, 100, 100, 100, rgb=(0, 0, 0))
    result = inspect_images(design, page)
    assert result.success
    assert len(result.regions) == 1
    assert result.regions[0].x == 135


def test_invalid_input_returns_failure():
    result = inspect_images(b"not an image", _white())
    assert not result.success
    assert result.regions == []
    assert result.error
    assert "error" in result.to_dict()

    empty = inspect_images(np.zeros((0, 10, 3), dtype=np.uint8), _white())
    assert not empty.success


def test_repeated_runs_are_identical():
    page = _with_block(_with_block(_white(), 20, 20, 60, 30), 250, 180, 90, 90, rgb=(0, 0, 255))
    first = inspect_images(_white(), page)
    second = inspect_images(_white(), page)
    assert first.to_dict() == second.to_dict()


def test_regions_are_numbered_and_disjoint():
    page = _white(600, 400)
    for x, y in ((20, 20), (300, 40), (60, 250), (400, 280)):
        page = _with_block(page, x, y, 50, 50, rgb=(0, 120, 0))
    result = inspect_images(_white(600, 400), page)
    assert [issue.id for issue in result.regions] == list(range(1, len(result.regions) + 1))
    for i, a in enumerate(result.regions):
        assert a.x >= 0 and a.y >= 0 and a.x + a.width <= 600 and a.y + a.height <= 400
        for b in result.regions[i + 1 :]:
            overlap = overlap_area(a, b)
            assert overlap / (a.width * a.height) <= 0.7
            assert overlap / (b.width * b.height) <= 0.7


def test_dead_description_service_falls_back_to_templates():
    service = _DeadService()
    page = _with_block(_with_block(_white(), 20, 20, 60, 60), 250, 180, 90, 90)
    result = inspect_images(_white(), page, description_provider=service)
    assert result.success
    assert service.calls == 1
    assert len(result.regions) == 2
    assert all(issue.description for issue in result.regions)


def test_strict_preset_ignores_faint_changes():
    page = _with_block(_white(), 50, 50, 100, 100, rgb=(235, 235, 235))
    assert inspect_images(_white(), page).regions
    strict = get_preset("strict")
    result = inspect_images(_white(), page, params=strict.params, style=strict.style)
    assert result.regions == []
    assert result.message == NO_DIFFERENCE_MESSAGE


def test_bytes_and_hint_provider_reaches_issue_description():
    result = inspect_images(
        _white(),
        _with_block(_white(), 50, 50, 100, 100),
        description_provider=_HintedCaptioner(),
    )
    assert result.success
    (issue,) = result.regions
    assert issue.description == (
        "Container position or alignment deviates from design mockup "
        '(service note: "The container is shifted to the right")'
    )
    assert issue.suggestion == "Move the element to x=35px, y=35px and re-check its alignment"
