"""
ZoneSight CLI - Command-line interface.

Runs the two-timeframe zone analysis against pre-captured screenshots or
OHLCV series fetched through ccxt.
"""
import asyncio
import json
from typing import List, Optional

import typer

from zonesight import __version__
from zonesight.shared.config.defaults import Settings
from zonesight.shared.models.combined import CombinedAnalysis
from zonesight.shared.utils.error_policy import ZoneSightError
from zonesight.shared.utils.logging_utils import configure_logging

app = typer.Typer(help="📐 ZoneSight - Multi-timeframe supply/demand zone analyzer")

SOURCES = ("screenshots", "ccxt")


def _build_orchestrator(settings: Settings, source: str, no_ai: bool):
    from zonesight.ai.openai_vision import OpenAIVisionProvider
    from zonesight.data.adapters.ccxt_series import CcxtSeriesCapture
    from zonesight.data.adapters.file_capture import DirectoryChartCapture
    from zonesight.engine.orchestrator import Orchestrator

    if source == "screenshots":
        capture = DirectoryChartCapture(settings.directories.screenshots)
    elif source == "ccxt":
        capture = CcxtSeriesCapture(settings.exchange)
    else:
        raise typer.BadParameter(f"source must be one of {', '.join(SOURCES)}")

    provider = None
    if not no_ai and settings.openai.api_key:
        provider = OpenAIVisionProvider(settings.openai)
    elif not no_ai:
        typer.echo("⚠️  OPENAI_API_KEY not set, using local analysis only")

    return Orchestrator(settings, capture_provider=capture, analysis_provider=provider)


def _load_settings(fallback: Optional[bool], log_level: Optional[str]) -> Settings:
    settings = Settings.from_env()
    if fallback is not None:
        settings = settings.with_overrides(analysis={"enable_local_fallback": fallback})
    configure_logging(log_level or settings.log_level)
    return settings


def _print_result(combined: CombinedAnalysis, as_json: bool) -> None:
    if as_json:
        typer.echo(json.dumps(combined.to_dict(), default=str, indent=2))
        return

    marker = "✅ VALID" if combined.valid else "❌ INVALID"
    typer.echo(f"\n{marker}  {combined.instrument} {combined.strategy.upper()} ({combined.status})")
    typer.echo("=" * 60)
    typer.echo(f"Signal:     {str(combined.signal).upper()}")
    typer.echo(f"Trend:      {combined.trend}")
    typer.echo(f"Pattern:    {combined.pattern}")
    typer.echo(f"Confidence: {combined.confidence * 100:.1f}%")
    typer.echo(f"Zone:       {combined.primary_zone.price_low} - {combined.primary_zone.price_high}")

    for error in combined.errors:
        typer.echo(f"  ❌ {error}")
    for warning in combined.warnings:
        typer.echo(f"  ⚠️  {warning}")
    for timeframe, path in (combined.output_images or {}).items():
        typer.echo(f"  🖼️  {timeframe}: {path}")
    for error in combined.rendering_errors:
        typer.echo(f"  🖌️  {error}")
    if combined.report_location:
        typer.echo(f"  💾 Report: {combined.report_location}")


@app.command()
def analyze(
    instrument: str = typer.Argument(..., help="Instrument, e.g. EURUSD or XAUUSD"),
    strategy: str = typer.Option("swing", help="Strategy (swing/scalping)"),
    source: str = typer.Option("screenshots", help="Chart source (screenshots/ccxt)"),
    no_ai: bool = typer.Option(False, "--no-ai", help="Skip the AI provider, analyze locally"),
    fallback: Optional[bool] = typer.Option(None, "--fallback/--no-fallback", help="Local fallback on AI failure"),
    as_json: bool = typer.Option(False, "--json", help="Print the combined result as JSON"),
    log_level: Optional[str] = typer.Option(None, help="Console log level"),
):
    """
    📐 Analyze one instrument with one strategy.

    Captures both timeframes, analyzes them, validates the setup, draws the
    zones and saves a JSON report.
    """
    settings = _load_settings(fallback, log_level)
    orchestrator = _build_orchestrator(settings, source, no_ai)

    try:
        combined = asyncio.run(orchestrator.run_analysis(instrument.upper(), strategy))
    except ZoneSightError as e:
        typer.echo(f"❌ Analysis failed: {e}")
        raise typer.Exit(code=1)

    _print_result(combined, as_json)


@app.command()
def batch(
    instruments: Optional[List[str]] = typer.Option(None, "--instrument", "-i", help="Instrument (repeatable)"),
    strategies: Optional[List[str]] = typer.Option(None, "--strategy", "-s", help="Strategy (repeatable)"),
    source: str = typer.Option("screenshots", help="Chart source (screenshots/ccxt)"),
    no_ai: bool = typer.Option(False, "--no-ai", help="Skip the AI provider, analyze locally"),
    log_level: Optional[str] = typer.Option(None, help="Console log level"),
):
    """
    📊 Analyze every configured instrument with every active strategy.
    """
    settings = _load_settings(None, log_level)
    orchestrator = _build_orchestrator(settings, source, no_ai)

    results = asyncio.run(orchestrator.analyze_all(
        [i.upper() for i in instruments] if instruments else None,
        strategies or None,
    ))

    for result in results:
        if result.ok:
            _print_result(result.combined, as_json=False)
        else:
            typer.echo(f"\n❌ {result.instrument} {result.strategy.upper()}: {result.error}")

    if not any(r.ok for r in results):
        raise typer.Exit(code=1)


@app.command()
def version():
    """Display ZoneSight version information."""
    typer.echo(f"📐 ZoneSight v{__version__}")
    typer.echo("Multi-timeframe supply/demand zone analyzer")


if __name__ == "__main__":
    app()
