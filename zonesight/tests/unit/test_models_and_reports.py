"""
Test suite for result models and the JSON report sink.
"""

import asyncio
import json

import pytest

from zonesight.data.reports import JsonReportSink
from zonesight.shared.models.analysis import CaptureResult, ValidationResult
from zonesight.shared.models.combined import ZoneDescriptor
from zonesight.shared.utils.error_policy import PersistenceFailure
from zonesight.strategy.swing import SwingPolicy
from zonesight.tests.fixtures.analyses import entry_analysis, primary_analysis
from zonesight.tests.fixtures.market_data import uptrend_frame


def _combined():
    return SwingPolicy().combine(primary_analysis(), entry_analysis())


def test_capture_needs_exactly_one_source():
    with pytest.raises(ValueError):
        CaptureResult("EURUSD", "1D")
    with pytest.raises(ValueError):
        CaptureResult("EURUSD", "1D", image_path="a.png", series=uptrend_frame())


def test_capture_describe():
    image = CaptureResult("EURUSD", "1D", image_path="charts/EURUSD_1D.png")
    series = CaptureResult("EURUSD", "30", series=uptrend_frame())
    assert image.describe() == {"timeframe": "1D", "mode": "image", "path": "charts/EURUSD_1D.png"}
    assert series.describe() == {"timeframe": "30", "mode": "series", "bars": 28}


def test_validation_result_valid_ignores_warnings():
    assert ValidationResult.from_lists([], ["wide zone"]).valid
    assert not ValidationResult.from_lists(["Missing trend"], []).valid


@pytest.mark.parametrize("high,low,renderable", [
    (1.1050, 1.1020, True),
    (1.1020, 1.1050, False),
    (1.1050, 1.1050, False),
    (None, 1.1020, False),
])
def test_zone_descriptor_renderable(high, low, renderable):
    zone = ZoneDescriptor(price_high=high, price_low=low, color_hint="#0066FF", label="zone")
    assert zone.is_renderable is renderable


def test_attach_is_once_only():
    combined = _combined()
    combined.attach("report_location", "reports/a.json")
    assert combined.report_location == "reports/a.json"

    with pytest.raises(ValueError, match="already attached"):
        combined.attach("report_location", "reports/b.json")
    with pytest.raises(ValueError, match="unknown field"):
        combined.attach("valid", False)


def test_errors_and_warnings_merge_both_validations():
    combined = SwingPolicy().combine(primary_analysis(trend=None), entry_analysis(inside_parent_zone=False))
    assert not combined.valid
    assert len(combined.errors) == len(combined.primary_validation.errors) + len(combined.entry_validation.errors)
    assert combined.errors


def test_to_dict_is_json_serializable():
    combined = _combined()
    combined.attach("output_images", {"1D": "out/1D.png"})
    data = json.loads(json.dumps(combined.to_dict()))
    assert data["strategy"] == "swing"
    assert data["primary_zone"]["price_high"] == 1.1050
    assert data["entry_validation"]["valid"] is True
    assert data["output_images"] == {"1D": "out/1D.png"}


def test_json_sink_writes_report(tmp_path):
    sink = JsonReportSink(str(tmp_path / "reports"))
    location = asyncio.run(sink.save("EURUSD_swing_test", _combined()))

    assert location == str(tmp_path / "reports" / "EURUSD_swing_test.json")
    saved = json.loads((tmp_path / "reports" / "EURUSD_swing_test.json").read_text())
    assert saved["instrument"] == "EURUSD"
    assert saved["valid"] is True


def test_json_sink_failure_is_persistence_failure(tmp_path):
    blocker = tmp_path / "reports"
    blocker.write_text("not a directory")
    sink = JsonReportSink(str(blocker))

    with pytest.raises(PersistenceFailure, match="EURUSD_swing_test"):
        asyncio.run(sink.save("EURUSD_swing_test", _combined()))
