"""Runtime configuration."""

from zonesight.shared.config.defaults import (
    DEFAULT_SETTINGS,
    AnalysisConfig,
    DirectoryConfig,
    GeometryConfig,
    OpenAIConfig,
    RenderConfig,
    RetryConfig,
    ScalpingConfig,
    Settings,
    SwingConfig,
    ZoneConfig,
)

__all__ = [
    "DEFAULT_SETTINGS",
    "AnalysisConfig",
    "DirectoryConfig",
    "GeometryConfig",
    "OpenAIConfig",
    "RenderConfig",
    "RetryConfig",
    "ScalpingConfig",
    "Settings",
    "SwingConfig",
    "ZoneConfig",
]
