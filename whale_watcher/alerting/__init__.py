"""Alert output."""

from .logger import AlertLogger, WhaleAlertFormatter, setup_app_logging

__all__ = ["AlertLogger", "WhaleAlertFormatter", "setup_app_logging"]
