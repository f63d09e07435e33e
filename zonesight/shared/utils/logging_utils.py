"""
Logging utilities for the analysis pipeline.

Provides consistent, structured logging helpers for tracking pipeline flow,
rejected setups, timing, and the end-of-batch summary.
"""

import sys
import time
from typing import Any, Dict, Iterable, Optional

from loguru import logger


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Replace loguru's default sink with a console sink (and optional file sink).

    Args:
        level: Minimum level for the console sink
        log_file: Optional path for a rotating DEBUG-level file sink
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )
    if log_file:
        logger.add(log_file, level="DEBUG", rotation="10 MB", retention=5)


def log_pipeline_stage(
    stage_name: str,
    instrument: str,
    status: str = "START",
    data: Optional[Dict[str, Any]] = None,
    level: str = "INFO"
) -> None:
    """
    Log a pipeline stage with consistent formatting.

    Args:
        stage_name: Name of the pipeline stage (e.g., "CAPTURE", "ANALYSIS")
        instrument: Instrument being processed
        status: Stage status ("START", "COMPLETE", "FAILED")
        data: Optional additional data to log
        level: Log level ("DEBUG", "INFO", "WARNING", "ERROR")
    """
    log_func = getattr(logger, level.lower(), logger.info)

    if status == "START":
        log_func(f"{'─' * 60}")
        log_func(f"🔄 [{stage_name}] Starting for {instrument}")
    elif status == "COMPLETE":
        duration_msg = f" ({data.get('duration_ms', 0):.0f}ms)" if data and 'duration_ms' in data else ""
        log_func(f"✅ [{stage_name}] Completed for {instrument}{duration_msg}")
        if data:
            for key, value in data.items():
                if key != 'duration_ms':
                    log_func(f"   └─ {key}: {value}")
    elif status == "FAILED":
        log_func(f"❌ [{stage_name}] Failed for {instrument}")
        if data:
            log_func(f"   └─ Reason: {data.get('reason', 'Unknown')}")
            if 'error' in data:
                log_func(f"   └─ Error: {data['error']}")


def log_rejection(
    instrument: str,
    stage: str,
    errors: Iterable[str],
    warnings: Iterable[str] = (),
    level: str = "INFO"
) -> None:
    """
    Log an invalid setup with the validation messages that rejected it.

    Args:
        instrument: Instrument symbol
        stage: Where the rejection happened (e.g. "1D", "combine")
        errors: Validation errors
        warnings: Validation warnings
        level: Log level
    """
    log_func = getattr(logger, level.lower(), logger.info)

    log_func(f"🚫 REJECTED: {instrument} at {stage}")
    for error in errors:
        log_func(f"   └─ Error: {error}")
    for warning in warnings:
        log_func(f"   └─ Warning: {warning}")


def log_timing(
    operation_name: str,
    duration_ms: float,
    instrument: Optional[str] = None,
    level: str = "DEBUG"
) -> None:
    """Log timing information for an operation."""
    log_func = getattr(logger, level.lower(), logger.debug)

    instrument_str = f" [{instrument}]" if instrument else ""

    if duration_ms < 1000:
        emoji = "⚡"
    elif duration_ms < 10000:
        emoji = "⏱️"
    else:
        emoji = "🐌"

    log_func(f"{emoji} {operation_name}{instrument_str}: {duration_ms:.0f}ms")


def format_run_summary(
    successes: Iterable[Dict[str, Any]],
    failures: Iterable[Dict[str, Any]],
    duration_sec: float,
) -> str:
    """
    Format a batch completion summary.

    Args:
        successes: Dicts with instrument, strategy, signal, confidence, valid
        failures: Dicts with instrument, strategy, error
        duration_sec: Total batch duration in seconds

    Returns:
        Formatted summary string
    """
    successes = list(successes)
    failures = list(failures)
    total = len(successes) + len(failures)

    lines = [
        "=" * 60,
        "📊 ANALYSIS SUMMARY",
        "=" * 60,
        f"Pairs Analyzed:   {total}",
        f"✅ Completed:      {len(successes)}",
        f"❌ Failed:         {len(failures)}",
        f"⏱️  Total Duration: {duration_sec:.2f}s",
    ]

    if successes:
        lines.append("")
        lines.append("Signals:")
        for item in successes:
            marker = "VALID" if item.get("valid") else "INVALID"
            lines.append(
                f"  • {item.get('instrument')} {str(item.get('strategy', '')).upper()}: "
                f"{str(item.get('signal', 'wait')).upper()} "
                f"({float(item.get('confidence') or 0) * 100:.0f}%) [{marker}]"
            )

    if failures:
        lines.append("")
        lines.append("Failures:")
        for item in failures:
            lines.append(
                f"  • {item.get('instrument')} {str(item.get('strategy', '')).upper()}: {item.get('error')}"
            )

    lines.append("=" * 60)
    return "\n".join(lines)


class TimingContext:
    """Context manager for timing operations."""

    def __init__(self, operation_name: str, instrument: Optional[str] = None):
        self.operation_name = operation_name
        self.instrument = instrument
        self.start_time = None
        self.duration_ms = None

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration_ms = (time.time() - self.start_time) * 1000
        log_timing(self.operation_name, self.duration_ms, self.instrument)
        return False
