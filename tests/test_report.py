from pathlib import Path
import json
import sys

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from mockupdiff.compare import InspectionResult
from mockupdiff.core.types import Region
from mockupdiff.errors import ExternalServiceError
from mockupdiff.presets import InspectionParams, OverlayStyle
from mockupdiff.raster import PixelBuffer, RasterSurface
from mockupdiff.report import ReportSynthesizer, result_to_json, severity_counts, write_json_report


def _surface():
    return RasterSurface.from_buffer(PixelBuffer.from_array(np.full((300, 400, 3), 240, dtype=np.uint8)))


def _regions():
    return [
        Region(id=1, x=10, y=100, width=130, height=130, area=10000, element_type="container", confidence=0.85),
        Region(id=2, x=200, y=150, width=40, height=40, area=900, element_type="icon", confidence=0.85),
    ]


class _FailingProvider:
    def __init__(self, exc):
        self.exc = exc
        self.calls = 0

    def describe(self, image_png, element_type):
        self.calls += 1
        raise self.exc


class _StaticProvider:
    def __init__(self):
        self.hints = []

    def describe(self, image_png, element_type):
        assert image_png.startswith(b"\x89PNG")
        self.hints.append(element_type)
        return f"{element_type} background colour is off"


def test_synthesize_builds_issues_in_region_order():
    issues = ReportSynthesizer(InspectionParams(), OverlayStyle()).synthesize(_regions(), _surface())
    assert [issue.id for issue in issues] == [1, 2]
    first, second = issues
    assert first.severity == "critical"
    assert second.severity == "minor"
    assert first.element_type == "container"
    assert first.screenshot.startswith("data:image/png;base64,")
    assert first.description and first.suggestion
    assert first.to_dict()["elementType"] == "container"


def test_service_failure_disables_provider_for_the_run():
    provider = _FailingProvider(ExternalServiceError("down"))
    synthesizer = ReportSynthesizer(InspectionParams(), OverlayStyle(), provider)
    issues = synthesizer.synthesize(_regions(), _surface())
    assert provider.calls == 1
    assert len(issues) == 2
    assert all("service note" not in issue.description for issue in issues)


def test_unexpected_provider_error_falls_back_per_region():
    provider = _FailingProvider(RuntimeError("boom"))
    synthesizer = ReportSynthesizer(InspectionParams(), OverlayStyle(), provider)
    synthesizer.synthesize(_regions(), _surface())
    assert provider.calls == 2


def test_provider_text_is_folded_into_descriptions():
    provider = _StaticProvider()
    issues = ReportSynthesizer(InspectionParams(), OverlayStyle(), provider).synthesize(_regions(), _surface())
    assert provider.hints == ["container", "icon"]
    assert issues[0].description == (
        'Container colors do not match design mockup (service note: "container background colour is off")'
    )
    assert issues[1].description.startswith("Icon colors do not match design mockup")


def test_blank_provider_text_falls_back_to_templates():
    class _Silent:
        calls = 0

        def describe(self, image_png, element_type):
            _Silent.calls += 1
            return "   "

    issues = ReportSynthesizer(InspectionParams(), OverlayStyle(), _Silent()).synthesize(_regions(), _surface())
    assert _Silent.calls == 1
    assert all("service note" not in issue.description for issue in issues)


def test_template_failure_uses_generic_fallback(monkeypatch):
    synthesizer = ReportSynthesizer(InspectionParams(), OverlayStyle())

    def broken(screenshot):
        raise ZeroDivisionError

    monkeypatch.setattr(synthesizer.template, "describe", broken)
    issues = synthesizer.synthesize(_regions()[:1], _surface())
    assert issues[0].description == "container element differs from design mockup, needs further adjustment"


def test_json_report(tmp_path):
    issues = ReportSynthesizer(InspectionParams(), OverlayStyle()).synthesize(_regions(), _surface())
    result = InspectionResult(success=True, regions=issues, similarity=0.9)
    out = tmp_path / "nested" / "report.json"
    write_json_report(result, out)
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["success"] is True
    assert data["similarity"] == pytest.approx(0.9)
    assert len(data["regions"]) == 2
    assert "error" not in data
    assert json.loads(result_to_json(result)) == data
    assert severity_counts(issues) == (1, 0, 1)
