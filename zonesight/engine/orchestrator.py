"""
Analysis Orchestrator - Main Pipeline Controller

Coordinates the multi-timeframe analysis pipeline:
1. Resolve the strategy policy
2. Acquire the capture resource
3. Capture both timeframes (retried, time-bounded)
4. Analyze each timeframe through the AI provider (retried, local fallback)
5. Combine and validate
6. Render zone overlays (valid setups only, best effort)
7. Persist the report
8. Release the capture resource

Per-timeframe failures are recorded in the run context; only the failures
that leave the run without two timeframes abort it.
"""

import asyncio
import inspect
import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from zonesight.ai.schema import parse_timeframe_payload
from zonesight.analysis.fallback import LocalFallbackAnalyzer
from zonesight.analysis.series_formatter import format_series_for_ai
from zonesight.contracts.ai_contract import AnalysisProvider
from zonesight.contracts.capture_contract import CaptureProvider
from zonesight.contracts.report_contract import ReportSink
from zonesight.contracts.strategy_contract import PromptContext, StrategyPolicy
from zonesight.data.reports import JsonReportSink
from zonesight.engine.context import AnalysisRunContext
from zonesight.geometry.renderer import ZoneRenderer
from zonesight.geometry.series_chart import render_series_chart
from zonesight.geometry.tick_reader import discover_ticks
from zonesight.shared.config.defaults import DEFAULT_SETTINGS, Settings
from zonesight.shared.models.analysis import CaptureResult, TimeframeAnalysis, TimeframeSpec
from zonesight.shared.models.combined import CombinedAnalysis, DrawingInstruction
from zonesight.shared.models.geometry import Calibration, Rect, TextNode
from zonesight.shared.utils.error_policy import (
    AnalysisFailure,
    CaptureFailure,
    InsufficientTimeframeDataError,
    PersistenceFailure,
    RenderingFailure,
)
from zonesight.shared.utils.logging_utils import (
    TimingContext,
    format_run_summary,
    log_pipeline_stage,
    log_rejection,
)
from zonesight.shared.utils.retry import with_fallback, with_retry
from zonesight.strategy.registry import get_policy

logger = logging.getLogger(__name__)


ProgressSink = Callable[[str, Dict[str, Any]], Any]


@dataclass
class BatchResult:
    """Outcome of one instrument/strategy pair in a batch."""
    instrument: str
    strategy: str
    combined: Optional[CombinedAnalysis] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.combined is not None


class Orchestrator:
    """
    Main pipeline orchestrator.

    Usage:
        orchestrator = Orchestrator(settings, capture_provider=DirectoryChartCapture("screens"),
                                    analysis_provider=OpenAIVisionProvider(settings.openai))
        combined = await orchestrator.run_analysis("EURUSD", "swing")
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        capture_provider: Optional[CaptureProvider] = None,
        analysis_provider: Optional[AnalysisProvider] = None,
        report_sink: Optional[ReportSink] = None,
        renderer: Optional[ZoneRenderer] = None,
        fallback: Optional[LocalFallbackAnalyzer] = None,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        """
        Initialize orchestrator.

        Args:
            settings: Runtime settings (read-only during a run)
            capture_provider: Source of chart images or OHLCV series
            analysis_provider: AI provider; None means local analysis only
            report_sink: Report persistence (defaults to JSON files in the reports dir)
            renderer: Zone renderer (defaults to one built from settings)
            fallback: Local heuristic analyzer (defaults to one built from settings)
            sleep: Awaitable used between retry attempts
        """
        if capture_provider is None:
            raise ValueError("capture_provider is required")

        self.settings = settings or DEFAULT_SETTINGS
        self.capture_provider = capture_provider
        self.analysis_provider = analysis_provider
        self.report_sink = report_sink or JsonReportSink(self.settings.directories.reports)
        self.renderer = renderer or ZoneRenderer(self.settings.geometry, self.settings.render)
        self.fallback = fallback or LocalFallbackAnalyzer(self.settings.analysis, self.settings.zones)
        self._sleep = sleep
        self._lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None

        logger.info(
            "Orchestrator initialized: capture=%s provider=%s fallback=%s",
            type(capture_provider).__name__,
            type(analysis_provider).__name__ if analysis_provider else None,
            self.settings.analysis.enable_local_fallback,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run_analysis(
        self,
        instrument: str,
        strategy_name: str,
        progress: Optional[ProgressSink] = None,
    ) -> CombinedAnalysis:
        """
        Execute the full pipeline for one instrument and strategy.

        Raises:
            UnknownStrategyError: No policy registered under strategy_name
            CaptureFailure: Capture resource could not be initialized
            InsufficientTimeframeDataError: A required timeframe could not be captured
            AnalysisFailure: Fewer than two timeframes were analyzed
        """
        policy = get_policy(strategy_name, self.settings)

        async with self._run_lock():
            now = datetime.now(timezone.utc)
            context = AnalysisRunContext(
                instrument=instrument,
                strategy=policy.name,
                run_id=uuid.uuid4().hex,
                timestamp=now,
                timeframes=policy.get_timeframes(),
            )
            started = time.perf_counter()
            await self._progress(progress, "start", {
                "instrument": instrument,
                "strategy": policy.name,
                "run_id": context.run_id,
                "timeframes": context.identifiers,
            })

            async with self._capture_session():
                await self._capture_timeframes(context)
                await self._progress(progress, "captured", {
                    "instrument": instrument,
                    "captured": list(context.captures),
                    "failed": context.capture_errors,
                })

                missing = context.missing_captures()
                if missing:
                    logger.error("%s: missing timeframe data %s", instrument, missing)
                    raise InsufficientTimeframeDataError(missing, list(context.captures))

                await self._analyze_timeframes(context, policy, progress)

                analyses = context.ordered_analyses()
                if len(analyses) < 2:
                    raise AnalysisFailure(
                        f"Only {len(analyses)} of 2 timeframes analyzed for {instrument}: "
                        f"{context.analysis_errors}"
                    )

                combined = policy.combine(analyses[0], analyses[1])
                context.combined = combined
                combined.attach("raw_captures", {tf: c.describe() for tf, c in context.captures.items()})

                if not combined.valid:
                    log_rejection(instrument, policy.name, combined.errors, combined.warnings)

                await self._progress(progress, "rendering", {
                    "instrument": instrument,
                    "valid": combined.valid,
                    "skipped": not combined.valid,
                })
                combined.attach("output_images", self._render(context, policy) if combined.valid else {})

                await self._persist(context)

            await self._progress(progress, "done", {
                "instrument": instrument,
                "strategy": policy.name,
                "valid": combined.valid,
                "status": combined.status,
                "signal": combined.signal,
                "confidence": combined.confidence,
                "duration_ms": int((time.perf_counter() - started) * 1000),
            })
            return combined

    async def analyze_all(
        self,
        instruments: Optional[List[str]] = None,
        strategies: Optional[List[str]] = None,
    ) -> List[BatchResult]:
        """
        Run every instrument against every strategy, one pair at a time.

        A failed pair is recorded in its BatchResult; the batch continues.
        """
        instruments = list(instruments or self.settings.trading_pairs)
        strategies = list(strategies or self.settings.active_strategies)
        started = time.perf_counter()
        results: List[BatchResult] = []

        for instrument in instruments:
            for strategy in strategies:
                try:
                    combined = await self.run_analysis(instrument, strategy)
                    results.append(BatchResult(instrument, strategy, combined=combined))
                except Exception as e:
                    logger.error("Batch run failed for %s/%s: %s", instrument, strategy, e)
                    results.append(BatchResult(instrument, strategy, error=str(e)))

        successes = [
            {
                "instrument": r.instrument,
                "strategy": r.strategy,
                "signal": r.combined.signal,
                "confidence": r.combined.confidence,
                "valid": r.combined.valid,
            }
            for r in results if r.ok
        ]
        failures = [
            {"instrument": r.instrument, "strategy": r.strategy, "error": r.error}
            for r in results if not r.ok
        ]
        logger.info("\n%s", format_run_summary(successes, failures, time.perf_counter() - started))
        return results

    def _run_lock(self) -> asyncio.Lock:
        """Run lock of the running event loop, created on first use in that loop."""
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    async def _progress(self, sink: Optional[ProgressSink], stage: str, payload: Dict[str, Any]) -> None:
        try:
            line = {"stage": stage, "ts": int(time.time()), **payload}
            logger.info("PIPELINE %s | %s", stage, json.dumps(line, default=str))
            if sink is not None:
                result = sink(stage, payload)
                if inspect.isawaitable(result):
                    await result
        except Exception as e:
            logger.debug("Progress sink error at %s ignored: %s", stage, e)

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _capture_session(self) -> AsyncIterator[Any]:
        try:
            handle = await self.capture_provider.initialize()
        except CaptureFailure:
            raise
        except Exception as e:
            raise CaptureFailure(f"Failed to initialize capture resource: {e}") from e

        try:
            yield handle
        finally:
            try:
                await self.capture_provider.close(handle)
            except Exception as e:
                logger.warning("Capture resource release failed: %s", e)

    async def _capture_timeframes(self, context: AnalysisRunContext) -> None:
        retry = self.settings.retry
        timeout = self.settings.analysis.capture_timeout

        for spec in context.timeframes:
            log_pipeline_stage("CAPTURE", context.instrument, "START", {"timeframe": spec.identifier})

            async def capture_once(spec: TimeframeSpec = spec) -> CaptureResult:
                try:
                    return await asyncio.wait_for(
                        self.capture_provider.capture(context.instrument, spec), timeout=timeout
                    )
                except asyncio.TimeoutError as e:
                    raise CaptureFailure(
                        f"Capture of {spec.identifier} timed out after {timeout}s", timeframe=spec.identifier
                    ) from e

            try:
                capture = await with_retry(
                    capture_once,
                    retries=retry.max_retries,
                    min_delay=retry.delay_seconds,
                    factor=retry.factor,
                    operation_name=f"capture {context.instrument} {spec.identifier}",
                    sleep=self._sleep,
                )
            except Exception as e:
                context.capture_errors[spec.identifier] = str(e)
                log_pipeline_stage("CAPTURE", context.instrument, "FAILED", {"timeframe": spec.identifier, "error": str(e)})
                continue

            context.captures[spec.identifier] = capture
            log_pipeline_stage("CAPTURE", context.instrument, "COMPLETE", {"timeframe": spec.identifier, "mode": capture.mode})

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    async def _analyze_timeframes(
        self,
        context: AnalysisRunContext,
        policy: StrategyPolicy,
        progress: Optional[ProgressSink],
    ) -> None:
        primary_tf = context.timeframes[0].identifier

        for index, spec in enumerate(context.timeframes):
            tf = spec.identifier
            capture = context.captures[tf]
            parent = context.analyses.get(primary_tf) if index == 1 else None

            await self._progress(progress, "analyzing", {
                "instrument": context.instrument,
                "timeframe": tf,
                "index": index,
            })

            if index == 1 and parent is None:
                context.analysis_errors[tf] = f"{primary_tf} analysis unavailable"
                logger.error("%s %s: skipped, %s analysis unavailable", context.instrument, tf, primary_tf)
                continue

            try:
                with TimingContext(f"Analysis {tf}", context.instrument):
                    analysis = await self._analyze_one(context, policy, index, capture, parent)
            except Exception as e:
                context.analysis_errors[tf] = str(e)
                logger.error("%s %s analysis failed: %s", context.instrument, tf, e)
                continue

            context.analyses[tf] = analysis
            logger.info(
                "%s %s analyzed (%s): signal=%s pattern=%s confidence=%s",
                context.instrument, tf, analysis.source, analysis.signal, analysis.pattern, analysis.confidence,
            )

    async def _analyze_one(
        self,
        context: AnalysisRunContext,
        policy: StrategyPolicy,
        index: int,
        capture: CaptureResult,
        parent: Optional[TimeframeAnalysis],
    ) -> TimeframeAnalysis:
        digest = None
        if capture.mode == "series":
            digest = format_series_for_ai(capture.series, context.instrument, capture.timeframe)
        prompt = policy.build_prompt(index, PromptContext(
            instrument=context.instrument,
            mode=capture.mode,
            primary=parent,
            series_digest=digest,
        ))

        retry = self.settings.retry
        timeout = self.settings.analysis.ai_timeout
        provider = self.analysis_provider

        async def ask_provider() -> TimeframeAnalysis:
            try:
                payload = await asyncio.wait_for(provider.analyze(capture, prompt), timeout=timeout)
            except asyncio.TimeoutError as e:
                raise AnalysisFailure(
                    f"AI analysis of {capture.timeframe} timed out after {timeout}s", timeframe=capture.timeframe
                ) from e
            return parse_timeframe_payload(payload, context.instrument, capture.timeframe)

        async def primary() -> TimeframeAnalysis:
            if provider is None:
                raise AnalysisFailure("No AI provider configured", timeframe=capture.timeframe)
            return await with_retry(
                ask_provider,
                retries=retry.max_retries,
                min_delay=retry.delay_seconds,
                factor=retry.factor,
                operation_name=f"AI analysis {context.instrument} {capture.timeframe}",
                sleep=self._sleep,
            )

        async def local() -> TimeframeAnalysis:
            return self.fallback.analyze(capture, policy.name, index, parent)

        return await with_fallback(
            primary,
            local,
            enabled=self.settings.analysis.enable_local_fallback,
            operation_name=f"analysis {context.instrument} {capture.timeframe}",
        )

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _render(self, context: AnalysisRunContext, policy: StrategyPolicy) -> Dict[str, str]:
        outputs: Dict[str, str] = {}
        bases: List[str] = []
        combined = context.combined

        try:
            for instruction in policy.drawing_instructions(combined):
                capture = context.captures.get(instruction.timeframe)
                if capture is None:
                    continue
                try:
                    path = self._render_one(context, capture, instruction, bases)
                except RenderingFailure as e:
                    logger.warning("%s %s rendering failed: %s", context.instrument, instruction.timeframe, e)
                    combined.record_rendering_error(f"{instruction.timeframe}: {e}")
                    continue
                outputs[instruction.timeframe] = path
        finally:
            # Overlays belong to this run only
            for base in bases:
                self.renderer.release(base)
        return outputs

    def _output_path(self, context: AnalysisRunContext, timeframe: str, suffix: str = "") -> str:
        name = f"{context.report_id}_{timeframe}{suffix}.png"
        return str(Path(self.settings.directories.output) / name)

    def _render_one(self, context: AnalysisRunContext, capture: CaptureResult,
                    instruction: DrawingInstruction, bases: List[str]) -> str:
        if capture.mode == "series":
            base_path, calibration = render_series_chart(
                capture.series,
                self._output_path(context, capture.timeframe, "_chart"),
                instrument=context.instrument,
                title=f"{context.instrument} {capture.timeframe}",
                geometry=self.settings.geometry,
                render=self.settings.render,
            )
            chart_rect = None
        else:
            base_path = capture.image_path
            chart_rect = _sidecar_rect(capture.metadata)
            calibration = self._image_calibration(capture, instruction, chart_rect)

        bases.append(base_path)

        path, placement = self.renderer.render(
            base_path,
            instruction,
            self._output_path(context, capture.timeframe),
            calibration=calibration,
            chart_rect=chart_rect,
            instrument=context.instrument,
        )
        logger.debug("%s %s band placed via %s", context.instrument, capture.timeframe, placement.mode)
        return path

    def _image_calibration(self, capture: CaptureResult, instruction: DrawingInstruction,
                           chart_rect: Optional[Rect]) -> Optional[Calibration]:
        """Explicit range from the analysis if present, else price-axis labels recorded with the screenshot."""
        zone = instruction.zone
        if zone.chart_price_high is not None and zone.chart_price_low is not None:
            return None

        nodes = _sidecar_nodes(capture.metadata)
        if not nodes or chart_rect is None:
            return None

        reference = None
        if zone.price_high is not None and zone.price_low is not None:
            reference = (zone.price_high + zone.price_low) / 2
        viewport_width = float(capture.metadata.get("viewport_width") or chart_rect.right)
        ticks = discover_ticks(nodes, chart_rect, viewport_width, reference, self.settings.geometry)
        if len(ticks) < 2:
            return None
        return Calibration(visible_high=None, visible_low=None, ticks=tuple(ticks))

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def _persist(self, context: AnalysisRunContext) -> None:
        combined = context.combined
        try:
            location = await self.report_sink.save(context.report_id, combined)
        except PersistenceFailure as e:
            logger.error("Report for %s not saved: %s", context.instrument, e)
            return
        combined.attach("report_location", location)
        logger.debug("%s report location: %s", context.instrument, location)


def _sidecar_rect(metadata: Dict[str, Any]) -> Optional[Rect]:
    raw = metadata.get("chart_rect")
    if not raw or len(raw) != 4:
        return None
    left, top, width, height = (float(v) for v in raw)
    return Rect(left, top, width, height)


def _sidecar_nodes(metadata: Dict[str, Any]) -> List[TextNode]:
    nodes = []
    for item in metadata.get("text_nodes") or []:
        try:
            nodes.append(TextNode(
                text=str(item["text"]),
                left=float(item["left"]),
                top=float(item["top"]),
                width=float(item["width"]),
                height=float(item["height"]),
            ))
        except (KeyError, TypeError, ValueError):
            continue
    return nodes
