"""
billing_config -- single public entrypoint for engine configuration.

Responsibility:
    ``get_engine_settings()`` is the only way services obtain configuration.
    It loads a YAML file (the packaged ``defaults.yaml`` when no path is
    given) and returns a frozen ``EngineSettings``.

Failure modes:
    - ``FileNotFoundError`` -- the given path does not exist.
    - ``ValueError`` -- unknown keys or invalid values.
"""

from __future__ import annotations

import logging
from pathlib import Path

from billing_config.loader import load_settings
from billing_config.schema import EngineSettings

_logger = logging.getLogger("billing_kernel.config")

_DEFAULTS_FILE = Path(__file__).parent / "defaults.yaml"


def get_engine_settings(path: Path | str | None = None) -> EngineSettings:
    """Load engine settings from ``path`` or the packaged defaults."""
    source = Path(path) if path is not None else _DEFAULTS_FILE
    settings = load_settings(source)
    _logger.info(
        "engine_settings_loaded",
        extra={
            "source": str(source),
            "default_currency": settings.default_currency,
            "default_payment_terms_days": settings.default_payment_terms_days,
            "tick_interval_seconds": settings.tick_interval_seconds,
        },
    )
    return settings


__all__ = ["EngineSettings", "get_engine_settings"]
