"""
Configuration Loader (``billing_config.loader``).

Responsibility
--------------
Loads an engine settings YAML file and parses it into the frozen
``EngineSettings`` dataclass.  Callers go through
``billing_config.get_engine_settings()``; this module is its implementation.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown key, wrong shape or out-of-range value  -> ``ValueError``.
"""

from __future__ import annotations

from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from billing_config.schema import EngineSettings

_TRIGGER_TYPES = frozenset({"BEFORE_DUE", "ON_DUE", "AFTER_DUE"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Postconditions:
        - Returns a ``dict`` (empty if the YAML document is empty).
    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top-level document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level YAML document must be a mapping")
    return data


def parse_decimal(value: Any, key: str) -> Decimal:
    """Parse a Decimal from YAML (string, int or float)."""
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"{key}: cannot parse decimal from {value!r}") from exc


def parse_settings(data: dict[str, Any]) -> EngineSettings:
    """
    Parse ``EngineSettings`` from a dict, merging over dataclass defaults.

    Raises:
        ValueError: on unknown keys or invalid values.
    """
    known = {f.name for f in fields(EngineSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown engine setting(s): {', '.join(unknown)}")

    values: dict[str, Any] = dict(data)

    if "default_payment_terms_days" in values:
        terms = int(values["default_payment_terms_days"])
        if terms < 0:
            raise ValueError("default_payment_terms_days must be >= 0")
        values["default_payment_terms_days"] = terms

    if "tick_interval_seconds" in values:
        interval = int(values["tick_interval_seconds"])
        if interval <= 0:
            raise ValueError("tick_interval_seconds must be > 0")
        values["tick_interval_seconds"] = interval

    if "max_daily_interest_rate" in values:
        rate = parse_decimal(values["max_daily_interest_rate"], "max_daily_interest_rate")
        if rate < 0:
            raise ValueError("max_daily_interest_rate must be >= 0")
        values["max_daily_interest_rate"] = rate

    if "reminder_templates" in values:
        templates = values["reminder_templates"]
        if not isinstance(templates, dict):
            raise ValueError("reminder_templates must be a mapping")
        bad = sorted(set(templates) - _TRIGGER_TYPES)
        if bad:
            raise ValueError(f"reminder_templates: unknown trigger type(s): {', '.join(bad)}")
        merged = EngineSettings().reminder_templates
        merged.update({k: str(v) for k, v in templates.items()})
        values["reminder_templates"] = merged

    for key in (
        "default_currency",
        "default_document_type",
        "generation_template_type",
        "generation_fallback_template_type",
        "attachment_content_type",
    ):
        if key in values:
            if not values[key]:
                raise ValueError(f"{key} must not be empty")
            values[key] = str(values[key])

    return EngineSettings(**values)


def load_settings(path: Path) -> EngineSettings:
    return parse_settings(load_yaml_file(path))
