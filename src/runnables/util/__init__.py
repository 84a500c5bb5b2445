"""Utility helpers package."""

from runnables.util.logging import configure_logging, get_logger
from runnables.util.observability import (
    EventLogger,
    MetricsCollector,
    ObservabilityManager,
    create_observability_manager,
)
from runnables.util.paths import TextPath

__all__ = [
    "EventLogger",
    "MetricsCollector",
    "ObservabilityManager",
    "TextPath",
    "configure_logging",
    "create_observability_manager",
    "get_logger",
]
