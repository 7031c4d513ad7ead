"""Tuning knobs for reconciliation runs."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env
from .errors import ConfigurationError

DEFAULT_SAVE_INTERVAL = 10
DEFAULT_REQUEST_DELAY_SECONDS = 0.5


@dataclass(frozen=True, slots=True)
class ReconcileSettings:
    save_interval: int = DEFAULT_SAVE_INTERVAL
    request_delay_seconds: float = DEFAULT_REQUEST_DELAY_SECONDS


def get_reconcile_settings() -> ReconcileSettings:
    save_interval = optional_env("RELINKER_SAVE_INTERVAL", int, DEFAULT_SAVE_INTERVAL)
    delay = optional_env("RELINKER_REQUEST_DELAY", float, DEFAULT_REQUEST_DELAY_SECONDS)
    if save_interval < 1:
        raise ConfigurationError("RELINKER_SAVE_INTERVAL must be at least 1")
    if delay < 0:
        raise ConfigurationError("RELINKER_REQUEST_DELAY must be non-negative")
    return ReconcileSettings(save_interval=save_interval, request_delay_seconds=delay)
