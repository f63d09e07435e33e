"""
Test suite for the analysis orchestrator.

Runs the full pipeline against fake capture, AI and report providers.
"""

import asyncio
from pathlib import Path

import pytest

from zonesight.engine.orchestrator import Orchestrator
from zonesight.shared.config.defaults import Settings
from zonesight.shared.utils.error_policy import (
    AnalysisFailure,
    CaptureFailure,
    InsufficientTimeframeDataError,
    UnknownStrategyError,
)
from zonesight.tests.fixtures.analyses import daily_payload, entry_payload
from zonesight.tests.fixtures.fakes import FakeCapture, FakeProvider, MemorySink, NoSleep
from zonesight.tests.fixtures.market_data import uptrend_frame, write_chart_png


def _settings(tmp_path, fallback=True):
    return Settings().with_overrides(
        directories={"output": str(tmp_path / "out"), "reports": str(tmp_path / "reports")},
        retry={"max_retries": 3, "delay_seconds": 1.0, "factor": 2.0},
        analysis={"enable_local_fallback": fallback},
    )


def _images(tmp_path):
    return {
        "1D": str(write_chart_png(tmp_path / "charts" / "EURUSD_1D.png")),
        "30": str(write_chart_png(tmp_path / "charts" / "EURUSD_30.png")),
    }


def _provider(**entry_overrides):
    return FakeProvider({"1D": daily_payload(), "30": entry_payload(**entry_overrides)})


def _orchestrator(tmp_path, capture, provider=None, sink=None, fallback=True, sleep=None):
    return Orchestrator(
        _settings(tmp_path, fallback),
        capture_provider=capture,
        analysis_provider=provider,
        report_sink=sink or MemorySink(),
        sleep=sleep or NoSleep(),
    )


def test_capture_provider_is_required():
    with pytest.raises(ValueError, match="capture_provider is required"):
        Orchestrator(Settings())


def test_valid_setup_end_to_end(tmp_path):
    capture = FakeCapture(images=_images(tmp_path))
    provider = _provider()
    sink = MemorySink()
    orchestrator = _orchestrator(tmp_path, capture, provider, sink)

    combined = asyncio.run(orchestrator.run_analysis("EURUSD", "swing"))

    assert combined.valid
    assert combined.status == "confirmed"
    assert combined.signal == "buy"
    assert combined.confidence == pytest.approx(0.775)
    assert combined.primary.source == "ai"

    assert set(combined.raw_captures) == {"1D", "30"}
    assert combined.raw_captures["1D"]["mode"] == "image"
    assert set(combined.output_images) == {"1D", "30"}
    for path in combined.output_images.values():
        assert Path(path).is_file()
    assert combined.rendering_errors == []

    assert combined.report_location.startswith("memory://EURUSD_swing_")
    assert list(sink.saved.values()) == [combined]

    assert capture.calls == ["1D", "30"]
    assert capture.initialized == 1
    assert capture.closed == 1


def test_entry_prompt_receives_primary_zone(tmp_path):
    provider = _provider()
    orchestrator = _orchestrator(tmp_path, FakeCapture(images=_images(tmp_path)), provider)

    asyncio.run(orchestrator.run_analysis("EURUSD", "swing"))

    assert provider.calls("1D") == 1
    assert provider.calls("30") == 1
    assert "1.10200 - 1.10500" in provider.prompts["30"][0]


def test_entry_outside_zone_is_reported_but_not_rendered(tmp_path):
    sink = MemorySink()
    orchestrator = _orchestrator(
        tmp_path, FakeCapture(images=_images(tmp_path)), _provider(inside_daily_zone=False), sink
    )

    combined = asyncio.run(orchestrator.run_analysis("EURUSD", "swing"))

    assert not combined.valid
    assert "Entry pattern is not inside the Daily zone (containment rule)" in combined.errors
    assert combined.output_images == {}
    assert combined.raw_captures is not None
    assert combined.report_location is not None
    assert len(sink.saved) == 1


def test_unknown_strategy_touches_no_resource(tmp_path):
    capture = FakeCapture(images=_images(tmp_path))
    orchestrator = _orchestrator(tmp_path, capture, _provider())

    with pytest.raises(UnknownStrategyError):
        asyncio.run(orchestrator.run_analysis("EURUSD", "position"))

    assert capture.initialized == 0
    assert capture.calls == []


def test_missing_timeframe_aborts_before_analysis(tmp_path):
    images = _images(tmp_path)
    capture = FakeCapture(images={"1D": images["1D"]})
    provider = _provider()
    sleep = NoSleep()
    orchestrator = _orchestrator(tmp_path, capture, provider, sleep=sleep)

    with pytest.raises(InsufficientTimeframeDataError) as excinfo:
        asyncio.run(orchestrator.run_analysis("EURUSD", "swing"))

    assert excinfo.value.missing == ("30",)
    assert capture.calls == ["1D", "30", "30", "30"]
    assert sleep.delays == [1.0, 2.0]
    assert provider.calls("1D") == 0
    assert capture.closed == 1


def test_capture_retry_recovers(tmp_path):
    capture = FakeCapture(images=_images(tmp_path), failures={"30": 2})
    sleep = NoSleep()
    orchestrator = _orchestrator(tmp_path, capture, _provider(), sleep=sleep)

    combined = asyncio.run(orchestrator.run_analysis("EURUSD", "swing"))

    assert combined.valid
    assert capture.calls == ["1D", "30", "30", "30"]
    assert sleep.delays == [1.0, 2.0]


def test_initialize_failure_is_capture_failure(tmp_path):
    capture = FakeCapture(images=_images(tmp_path), fail_initialize=True)
    orchestrator = _orchestrator(tmp_path, capture, _provider())

    with pytest.raises(CaptureFailure, match="browser did not start"):
        asyncio.run(orchestrator.run_analysis("EURUSD", "swing"))
    assert capture.closed == 0


def test_release_errors_are_not_raised(tmp_path):
    capture = FakeCapture(images=_images(tmp_path), fail_close=True)
    orchestrator = _orchestrator(tmp_path, capture, _provider())

    combined = asyncio.run(orchestrator.run_analysis("EURUSD", "swing"))

    assert combined.valid
    assert capture.closed == 1


def test_progress_stages_and_sink_errors_swallowed(tmp_path):
    stages = []

    def sink(stage, payload):
        stages.append(stage)
        if stage == "captured":
            raise RuntimeError("websocket closed")

    orchestrator = _orchestrator(tmp_path, FakeCapture(images=_images(tmp_path)), _provider())
    combined = asyncio.run(orchestrator.run_analysis("EURUSD", "swing", progress=sink))

    assert combined.valid
    assert stages == ["start", "captured", "analyzing", "analyzing", "rendering", "done"]


def test_async_progress_sink(tmp_path):
    payloads = []

    async def sink(stage, payload):
        payloads.append((stage, payload))

    orchestrator = _orchestrator(tmp_path, FakeCapture(images=_images(tmp_path)), _provider())
    asyncio.run(orchestrator.run_analysis("EURUSD", "swing", progress=sink))

    analyzing = [p for stage, p in payloads if stage == "analyzing"]
    assert [p["timeframe"] for p in analyzing] == ["1D", "30"]
    done = payloads[-1]
    assert done[0] == "done"
    assert done[1]["valid"] is True


def test_local_fallback_replaces_failing_provider(tmp_path):
    provider = FakeProvider({"1D": daily_payload(), "30": entry_payload()}, failures={"30": 99})
    orchestrator = _orchestrator(tmp_path, FakeCapture(images=_images(tmp_path)), provider)

    combined = asyncio.run(orchestrator.run_analysis("EURUSD", "swing"))

    assert provider.calls("30") == 3
    assert combined.entry.source == "fallback"
    assert combined.entry.reasoning.startswith("Local heuristic fallback")
    assert combined.entry.confidence == pytest.approx(0.4)
    assert combined.valid
    assert combined.confidence == pytest.approx(0.6)
    # The screenshot fallback cannot read prices, so only the Daily zone is drawn
    assert set(combined.output_images) == {"1D"}
    assert len(combined.rendering_errors) == 1
    assert combined.rendering_errors[0].startswith("30:")


def test_disabled_fallback_fails_run(tmp_path):
    provider = FakeProvider({"1D": daily_payload(), "30": entry_payload()}, failures={"30": 99})
    capture = FakeCapture(images=_images(tmp_path))
    orchestrator = _orchestrator(tmp_path, capture, provider, fallback=False)

    with pytest.raises(AnalysisFailure, match="Only 1 of 2 timeframes"):
        asyncio.run(orchestrator.run_analysis("EURUSD", "swing"))
    assert capture.closed == 1


def test_malformed_reply_is_analysis_failure(tmp_path):
    provider = FakeProvider({"1D": "the chart looks bullish", "30": entry_payload()})
    orchestrator = _orchestrator(tmp_path, FakeCapture(images=_images(tmp_path)), provider, fallback=False)

    with pytest.raises(AnalysisFailure):
        asyncio.run(orchestrator.run_analysis("EURUSD", "swing"))

    assert provider.calls("1D") == 3
    assert provider.calls("30") == 0


def test_without_provider_everything_is_local(tmp_path):
    orchestrator = _orchestrator(tmp_path, FakeCapture(images=_images(tmp_path)), provider=None)

    combined = asyncio.run(orchestrator.run_analysis("EURUSD", "swing"))

    assert combined.primary.source == "fallback"
    assert combined.entry.source == "fallback"
    assert combined.primary.trend == "uptrend"
    assert combined.signal == "buy"


def test_persistence_failure_still_returns(tmp_path):
    orchestrator = _orchestrator(
        tmp_path, FakeCapture(images=_images(tmp_path)), _provider(), sink=MemorySink(fail=True)
    )

    combined = asyncio.run(orchestrator.run_analysis("EURUSD", "swing"))

    assert combined.valid
    assert combined.report_location is None


def test_series_mode_renders_candle_charts(tmp_path):
    frame = uptrend_frame()
    provider = _provider()
    capture = FakeCapture(frames={"1D": frame, "30": frame})
    orchestrator = _orchestrator(tmp_path, capture, provider)

    combined = asyncio.run(orchestrator.run_analysis("EURUSD", "swing"))

    assert combined.valid
    assert combined.raw_captures["30"] == {"timeframe": "30", "mode": "series", "bars": len(frame)}
    assert "CHART DATA:" in provider.prompts["1D"][0]
    assert set(combined.output_images) == {"1D", "30"}
    for path in combined.output_images.values():
        assert Path(path).is_file()


def test_analyze_all_records_failures(tmp_path):
    orchestrator = _orchestrator(tmp_path, FakeCapture(images=_images(tmp_path)), _provider())

    results = asyncio.run(orchestrator.analyze_all(["EURUSD", "GBPUSD"], ["swing", "position"]))

    assert [(r.instrument, r.strategy, r.ok) for r in results] == [
        ("EURUSD", "swing", True),
        ("EURUSD", "position", False),
        ("GBPUSD", "swing", True),
        ("GBPUSD", "position", False),
    ]
    assert "Unknown strategy" in results[1].error


class TrackingCapture(FakeCapture):
    """FakeCapture that records how many capture sessions are open at once."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.active = 0
        self.max_active = 0

    async def initialize(self):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        await asyncio.sleep(0)
        return await super().initialize()

    async def close(self, handle):
        await asyncio.sleep(0)
        self.active -= 1
        await super().close(handle)


def test_concurrent_runs_share_capture_serially(tmp_path):
    capture = TrackingCapture(images=_images(tmp_path))
    # Built outside any event loop, as the CLI does
    orchestrator = _orchestrator(tmp_path, capture, _provider())

    async def two_runs():
        return await asyncio.gather(
            orchestrator.run_analysis("EURUSD", "swing"),
            orchestrator.run_analysis("EURUSD", "swing"),
        )

    first = asyncio.run(two_runs())
    second = asyncio.run(two_runs())

    assert all(c.valid for c in first + second)
    assert capture.max_active == 1
    assert capture.initialized == 4
    assert capture.closed == 4


def test_rendered_surfaces_are_released_after_run(tmp_path):
    orchestrator = _orchestrator(tmp_path, FakeCapture(images=_images(tmp_path)), _provider())

    combined = asyncio.run(orchestrator.run_analysis("EURUSD", "swing"))

    assert set(combined.output_images) == {"1D", "30"}
    assert orchestrator.renderer._surfaces == {}
