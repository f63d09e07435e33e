"""
Default configuration for ZoneSight.

Every group is a plain dataclass with defaults; `Settings.from_env()` reads
the process environment once at startup and `Settings.with_overrides()`
applies per-run overrides (CLI flags) without touching the base object.
"""
import os
from dataclasses import dataclass, field, replace
from typing import Dict, Mapping, Optional, Tuple


def _split(value: str) -> Tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ZoneConfig:
    """Zone width band and overlay colours."""
    min_pips: float = 20.0
    max_pips: float = 30.0
    buy_color: str = "#0066FF"
    sell_color: str = "#FF0033"
    opacity: float = 0.3
    pip_overrides: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class SwingConfig:
    """Daily bias + 30 minute entry."""
    daily_timeframe: str = "1D"
    entry_timeframe: str = "30"
    daily_bars: int = 200
    entry_bars: int = 300
    confidence_threshold: float = 0.5


@dataclass(frozen=True)
class ScalpingConfig:
    """15 minute bias + 5 minute entry."""
    primary_timeframe: str = "15"
    entry_timeframe: str = "5"
    primary_bars: int = 200
    entry_bars: int = 300
    confidence_threshold: float = 0.80
    patterns: Tuple[str, ...] = (
        "bullish_engulfing", "bearish_engulfing", "pin_bar", "breakout", "breakdown",
    )
    sessions: Tuple[str, ...] = ("LDN", "NY")
    news_blackout_min: int = 0
    zone_style: str = "wick_to_wick"  # wick_to_wick | body_to_body


@dataclass(frozen=True)
class RetryConfig:
    max_retries: int = 3
    delay_seconds: float = 2.0
    factor: float = 2.0


@dataclass(frozen=True)
class GeometryConfig:
    """Constants of the price -> pixel mapping."""
    auto_scale_margin_pct: float = 0.03
    top_inset: float = 70
    bottom_inset: float = 45
    min_band_height: float = 18
    fallback_height_fraction: float = 0.25
    fallback_min_height: float = 20
    fallback_max_height: float = 200
    fallback_top_fraction: float = 0.375
    max_overlays: int = 3
    max_surfaces: int = 16
    tick_edge_distance: float = 80
    tick_min_width: float = 15
    tick_max_width: float = 150
    tick_min_height: float = 10
    tick_max_height: float = 40
    tick_dedupe_tolerance: float = 0.001
    tick_magnitude_factor: float = 5.0


@dataclass(frozen=True)
class RenderConfig:
    band_alpha: float = 0.18
    line_width: int = 3
    font_size: int = 16
    draw_labels: bool = True
    watermark: bool = True
    chart_width: int = 1600
    chart_height: int = 900


@dataclass(frozen=True)
class AnalysisConfig:
    enable_local_fallback: bool = True
    fallback_confidence: float = 0.4
    capture_timeout: float = 60.0
    ai_timeout: float = 90.0
    save_raw_captures: bool = True


@dataclass(frozen=True)
class DirectoryConfig:
    output: str = "./output"
    reports: str = "./reports"
    screenshots: str = "./screenshots"
    logs: str = "./logs"


@dataclass(frozen=True)
class OpenAIConfig:
    api_key: Optional[str] = None
    model: str = "gpt-4o"
    max_tokens: int = 4096
    temperature: float = 0.2
    base_url: str = "https://api.openai.com/v1"


@dataclass(frozen=True)
class Settings:
    """Aggregate, read-only configuration for one process."""
    trading_pairs: Tuple[str, ...] = ("XAUUSD", "EURUSD", "GBPUSD")
    active_strategies: Tuple[str, ...] = ("swing", "scalping")
    exchange: str = "binance"
    log_level: str = "INFO"
    zones: ZoneConfig = field(default_factory=ZoneConfig)
    swing: SwingConfig = field(default_factory=SwingConfig)
    scalping: ScalpingConfig = field(default_factory=ScalpingConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    geometry: GeometryConfig = field(default_factory=GeometryConfig)
    render: RenderConfig = field(default_factory=RenderConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    directories: DirectoryConfig = field(default_factory=DirectoryConfig)
    openai: OpenAIConfig = field(default_factory=OpenAIConfig)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Unset variables keep the dataclass defaults.
        """
        env = os.environ if environ is None else environ
        base = cls()

        def get(name: str, default):
            value = env.get(name)
            if value is None or value == "":
                return default
            if isinstance(default, bool):
                return _as_bool(value)
            if isinstance(default, int):
                return int(value)
            if isinstance(default, float):
                return float(value)
            if isinstance(default, tuple):
                return _split(value)
            return value

        zones = replace(
            base.zones,
            min_pips=get("ZONE_MIN_PIPS", base.zones.min_pips),
            max_pips=get("ZONE_MAX_PIPS", base.zones.max_pips),
            buy_color=get("BUY_ZONE_COLOR", base.zones.buy_color),
            sell_color=get("SELL_ZONE_COLOR", base.zones.sell_color),
            opacity=get("ZONE_OPACITY", base.zones.opacity),
        )
        swing = replace(
            base.swing,
            daily_timeframe=get("SWING_DAILY_TIMEFRAME", base.swing.daily_timeframe),
            entry_timeframe=get("SWING_ENTRY_TIMEFRAME", base.swing.entry_timeframe),
            daily_bars=get("SWING_DAILY_BARS", base.swing.daily_bars),
            entry_bars=get("SWING_ENTRY_BARS", base.swing.entry_bars),
            confidence_threshold=get("SWING_CONFIDENCE_THRESHOLD", base.swing.confidence_threshold),
        )
        scalping = replace(
            base.scalping,
            primary_timeframe=get("SCALPING_PRIMARY_TIMEFRAME", base.scalping.primary_timeframe),
            entry_timeframe=get("SCALPING_ENTRY_TIMEFRAME", base.scalping.entry_timeframe),
            primary_bars=get("SCALPING_PRIMARY_BARS", base.scalping.primary_bars),
            entry_bars=get("SCALPING_ENTRY_BARS", base.scalping.entry_bars),
            confidence_threshold=get("SCALPING_CONFIDENCE_THRESHOLD", base.scalping.confidence_threshold),
            patterns=get("SCALPING_PATTERNS", base.scalping.patterns),
            sessions=get("SCALPING_SESSIONS", base.scalping.sessions),
            news_blackout_min=get("SCALPING_NEWS_BLACKOUT_MIN", base.scalping.news_blackout_min),
            zone_style=get("SCALPING_ZONE_STYLE", base.scalping.zone_style),
        )
        # RETRY_DELAY is milliseconds
        retry = replace(
            base.retry,
            max_retries=get("MAX_RETRIES", base.retry.max_retries),
            delay_seconds=get("RETRY_DELAY", base.retry.delay_seconds * 1000) / 1000.0,
        )
        analysis = replace(
            base.analysis,
            enable_local_fallback=get("ENABLE_LOCAL_FALLBACK", base.analysis.enable_local_fallback),
            fallback_confidence=get("FALLBACK_CONFIDENCE", base.analysis.fallback_confidence),
            capture_timeout=get("CAPTURE_TIMEOUT", base.analysis.capture_timeout),
            ai_timeout=get("AI_TIMEOUT", base.analysis.ai_timeout),
            save_raw_captures=get("SAVE_RAW_SCREENSHOTS", base.analysis.save_raw_captures),
        )
        render = replace(
            base.render,
            draw_labels=get("ZONE_DRAW_LABELS", base.render.draw_labels),
            watermark=get("ZONE_WATERMARK", base.render.watermark),
            font_size=get("ZONE_FONT_SIZE", base.render.font_size),
        )
        directories = replace(
            base.directories,
            output=get("OUTPUT_DIR", base.directories.output),
            reports=get("REPORTS_DIR", base.directories.reports),
            screenshots=get("SCREENSHOTS_DIR", base.directories.screenshots),
            logs=get("LOGS_DIR", base.directories.logs),
        )
        openai = replace(
            base.openai,
            api_key=env.get("OPENAI_API_KEY") or None,
            model=get("OPENAI_MODEL", base.openai.model),
            max_tokens=get("OPENAI_MAX_TOKENS", base.openai.max_tokens),
            base_url=get("OPENAI_BASE_URL", base.openai.base_url),
        )

        return cls(
            trading_pairs=get("TRADING_PAIRS", base.trading_pairs),
            active_strategies=tuple(s.lower() for s in get("ACTIVE_STRATEGIES", base.active_strategies)),
            exchange=get("CCXT_EXCHANGE", base.exchange),
            log_level=get("LOG_LEVEL", base.log_level).upper(),
            zones=zones,
            swing=swing,
            scalping=scalping,
            retry=retry,
            geometry=base.geometry,
            render=render,
            analysis=analysis,
            directories=directories,
            openai=openai,
        )

    def with_overrides(self, **groups) -> "Settings":
        """
        Return a copy with selected fields replaced.

        Group fields accept a mapping that is merged into the existing group;
        scalar fields are replaced directly.

        Example:
            settings.with_overrides(swing={"confidence_threshold": 0.7})
        """
        changes = {}
        for name, value in groups.items():
            if not hasattr(self, name):
                raise ValueError(f"Unknown settings group: {name}")
            current = getattr(self, name)
            if isinstance(value, Mapping) and hasattr(current, "__dataclass_fields__"):
                changes[name] = replace(current, **value)
            else:
                changes[name] = value
        return replace(self, **changes)


DEFAULT_SETTINGS = Settings()
