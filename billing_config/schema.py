"""
EngineSettings schema.

Typed, frozen view of the engine configuration.  YAML files are parsed into
this dataclass by ``billing_config.loader``; services receive the instance
(or individual values from it) through their constructors and never read
files themselves.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


def _default_reminder_templates() -> dict[str, str]:
    return {
        "BEFORE_DUE": "PAYMENT_DUE_SOON",
        "ON_DUE": "PAYMENT_DUE_TODAY",
        "AFTER_DUE": "OVERDUE_REMINDER",
    }


@dataclass(frozen=True)
class EngineSettings:
    """Engine-wide defaults and limits."""

    default_currency: str = "EUR"
    default_document_type: str = "SALES"
    default_payment_terms_days: int = 14

    # Generation path: primary template, then fallback when the primary is missing
    generation_template_type: str = "INVOICE_SEND"
    generation_fallback_template_type: str = "INVOICE_SEND"

    # Trigger type -> template used when a rule is created without one
    reminder_templates: dict[str, str] = field(
        default_factory=_default_reminder_templates
    )

    attachment_content_type: str = "application/pdf"
    max_daily_interest_rate: Decimal = Decimal("0.01")
    tick_interval_seconds: int = 300
