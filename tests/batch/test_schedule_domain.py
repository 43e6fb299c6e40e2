"""
Tests for billing_batch.domain.schedule -- validation order, defaults,
partial updates, due evaluation and document request building.
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from billing_kernel.exceptions import ValidationError

from billing_batch.domain.schedule import (
    CreateScheduleRequest,
    UpdateScheduleRequest,
    apply_update,
    build_document_request,
    is_due,
    new_schedule,
    normalize_lines,
    validate_schedule,
)
from billing_batch.domain.types import Frequency, ScheduleLine

from fakes import make_line, make_schedule


def _request(**overrides) -> CreateScheduleRequest:
    values = dict(
        name="Hosting",
        contact_id=uuid4(),
        frequency=Frequency.MONTHLY,
        start_date=date(2025, 1, 15),
        lines=(make_line(),),
    )
    values.update(overrides)
    return CreateScheduleRequest(**values)


def _new(request: CreateScheduleRequest, **defaults):
    kwargs = dict(
        schedule_id=uuid4(),
        tenant_id="acme",
        created_by=uuid4(),
        default_currency="EUR",
        default_document_type="SALES",
        default_payment_terms_days=14,
    )
    kwargs.update(defaults)
    return new_schedule(request, **kwargs)


# =============================================================================
# Validation
# =============================================================================


class TestValidation:

    @pytest.mark.parametrize(
        "overrides, field, message",
        [
            ({"name": ""}, "name", "name is required"),
            ({"contact_id": None}, "contact_id", "contact is required"),
            ({"start_date": None}, "start_date", "start date is required"),
            (
                {"end_date": date(2025, 1, 1)},
                "end_date",
                "end date cannot be before start date",
            ),
            ({"frequency": "DAILY"}, "frequency", "invalid frequency"),
            (
                {"payment_terms_days": -1},
                "payment_terms_days",
                "payment terms days cannot be negative",
            ),
            ({"lines": ()}, "lines", "at least one line item is required"),
            (
                {"lines": (make_line(description=""),)},
                "lines.description",
                "line description is required",
            ),
            (
                {"lines": (make_line(quantity=Decimal("-2")),)},
                "lines.quantity",
                "line quantity must be positive",
            ),
            (
                {"lines": (make_line(unit_price=Decimal("-0.01")),)},
                "lines.unit_price",
                "line unit price cannot be negative",
            ),
        ],
    )
    def test_rejections(self, overrides, field, message):
        with pytest.raises(ValidationError) as exc_info:
            _new(_request(**overrides))
        assert exc_info.value.field == field
        assert exc_info.value.message == message

    def test_first_violation_wins(self):
        with pytest.raises(ValidationError) as exc_info:
            _new(_request(name="", frequency="DAILY", lines=()))
        assert exc_info.value.message == "name is required"

    def test_zero_quantity_defaulted_before_validation(self):
        schedule = _new(_request(lines=(make_line(quantity=Decimal("0")),)))
        assert schedule.lines[0].quantity == Decimal("1")

    def test_zero_unit_price_allowed(self):
        schedule = _new(_request(lines=(make_line(unit_price=Decimal("0")),)))
        assert schedule.lines[0].unit_price == Decimal("0")

    def test_end_date_equal_to_start_allowed(self):
        assert _new(_request(end_date=date(2025, 1, 15))).end_date == date(2025, 1, 15)


# =============================================================================
# Construction defaults
# =============================================================================


class TestNewSchedule:

    def test_first_cycle_due_on_start_date(self):
        schedule = _new(_request())
        assert schedule.next_generation_date == date(2025, 1, 15)
        assert schedule.is_active is True
        assert schedule.generated_count == 0

    def test_engine_defaults_applied(self):
        schedule = _new(_request(), default_currency="GBP", default_payment_terms_days=30)
        assert schedule.currency == "GBP"
        assert schedule.document_type == "SALES"
        assert schedule.payment_terms_days == 30
        assert schedule.attach_document is True

    def test_explicit_zero_payment_terms_kept(self):
        assert _new(_request(payment_terms_days=0)).payment_terms_days == 0

    def test_explicit_values_win_over_defaults(self):
        schedule = _new(_request(currency="USD", attach_document=False))
        assert schedule.currency == "USD"
        assert schedule.attach_document is False

    def test_string_frequency_parsed(self):
        assert _new(_request(frequency="QUARTERLY")).frequency is Frequency.QUARTERLY

    def test_lines_numbered_in_order(self):
        schedule = _new(
            _request(lines=(make_line(description="a"), make_line(description="b")))
        )
        assert [(l.line_number, l.description) for l in schedule.lines] == [(1, "a"), (2, "b")]


class TestNormalizeLines:

    def test_renumbers_and_defaults_quantity(self):
        lines = normalize_lines(
            [
                ScheduleLine(description="x", quantity=Decimal("0"), unit_price=Decimal("5"), line_number=7),
                ScheduleLine(description="y", quantity=Decimal("3"), unit_price=Decimal("5")),
            ]
        )
        assert [(l.line_number, l.quantity) for l in lines] == [(1, Decimal("1")), (2, Decimal("3"))]


# =============================================================================
# Updates
# =============================================================================


class TestApplyUpdate:

    def test_none_fields_unchanged(self, tenant):
        schedule = make_schedule(tenant, reference="PO-1")
        updated = apply_update(schedule, UpdateScheduleRequest(name="Renamed"))
        assert updated.name == "Renamed"
        assert updated.reference == "PO-1"
        assert updated.lines == schedule.lines

    def test_lines_replaced_and_normalized(self, tenant):
        schedule = make_schedule(tenant)
        updated = apply_update(
            schedule,
            UpdateScheduleRequest(lines=(make_line(description="new", quantity=Decimal("0")),)),
        )
        assert len(updated.lines) == 1
        assert updated.lines[0].description == "new"
        assert updated.lines[0].quantity == Decimal("1")

    def test_invalid_result_rejected(self, tenant):
        with pytest.raises(ValidationError, match="at least one line"):
            apply_update(make_schedule(tenant), UpdateScheduleRequest(lines=()))

    def test_invalid_frequency_rejected(self, tenant):
        with pytest.raises(ValidationError, match="invalid frequency"):
            apply_update(make_schedule(tenant), UpdateScheduleRequest(frequency="HOURLY"))

    def test_next_generation_date_not_touched(self, tenant):
        schedule = make_schedule(tenant, next_generation_date=date(2025, 3, 15))
        updated = apply_update(schedule, UpdateScheduleRequest(frequency=Frequency.WEEKLY))
        assert updated.next_generation_date == date(2025, 3, 15)


# =============================================================================
# Due evaluation
# =============================================================================


class TestIsDue:

    def test_due_on_and_after_next_date(self, tenant):
        schedule = make_schedule(tenant)
        assert not is_due(schedule, date(2025, 1, 14))
        assert is_due(schedule, date(2025, 1, 15))
        assert is_due(schedule, date(2025, 1, 16))

    def test_inactive_never_due(self, tenant):
        assert not is_due(make_schedule(tenant, is_active=False), date(2025, 1, 16))

    def test_end_date_inclusive(self, tenant):
        schedule = make_schedule(tenant, end_date=date(2025, 1, 16))
        assert is_due(schedule, date(2025, 1, 16))
        assert not is_due(schedule, date(2025, 1, 17))


class TestBuildDocumentRequest:

    def test_dates_and_terms(self, tenant):
        schedule = make_schedule(tenant, payment_terms_days=30, reference="PO-7")
        request = build_document_request(schedule, date(2025, 1, 16), tenant.actor_id)
        assert request.issue_date == date(2025, 1, 16)
        assert request.due_date == date(2025, 2, 15)
        assert request.exchange_rate == Decimal("1")
        assert request.reference == "PO-7"
        assert request.created_by == tenant.actor_id
        assert request.contact_id == schedule.contact_id

    def test_zero_payment_terms_due_on_issue(self, tenant):
        request = build_document_request(
            make_schedule(tenant, payment_terms_days=0), date(2025, 1, 16), None,
        )
        assert request.due_date == date(2025, 1, 16)

    def test_stored_zero_quantity_redefaulted(self, tenant):
        schedule = make_schedule(
            tenant,
            lines=(make_line(quantity=Decimal("0"), line_id=uuid4(), line_number=1),),
        )
        request = build_document_request(schedule, date(2025, 1, 16), None)
        assert request.lines[0].quantity == Decimal("1")
        assert request.lines[0].line_id is None

    def test_lines_copied_one_to_one(self, tenant):
        lines = (make_line(description="a", line_number=1), make_line(description="b", line_number=2))
        request = build_document_request(
            replace(make_schedule(tenant), lines=lines), date(2025, 1, 16), None,
        )
        assert [l.description for l in request.lines] == ["a", "b"]


def test_persisted_schedule_passes_validation(tenant):
    validate_schedule(make_schedule(tenant))
