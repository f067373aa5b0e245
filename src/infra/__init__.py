"""
Infrastructure module - logging, notifications, and per-execution metering.

Settings live in src.infra.config and are imported from there directly.
"""

from .logging_config import setup_logging

from .notifications import (
    LoggingNotifier,
    WebhookNotifier,
    create_notifier,
)

from .usage import (
    ApiCallMeter,
    metered,
    record_api_call,
)

__all__ = [
    # logging
    "setup_logging",
    # notifications
    "LoggingNotifier",
    "WebhookNotifier",
    "create_notifier",
    # usage
    "ApiCallMeter",
    "metered",
    "record_api_call",
]
