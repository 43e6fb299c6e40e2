"""Tests for billing_batch.services.schedule_service -- schedule CRUD."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from billing_config.schema import EngineSettings
from billing_kernel.exceptions import (
    CollaboratorError,
    DocumentNotFoundError,
    NotConfiguredError,
    ScheduleNotFoundError,
    ValidationError,
)

from billing_batch.domain.schedule import (
    CreateFromDocumentRequest,
    CreateScheduleRequest,
    UpdateScheduleRequest,
)
from billing_batch.domain.types import Frequency
from billing_batch.services.schedule_service import ScheduleService

from fakes import FakeDocumentService, InMemoryScheduleStore, make_document, make_line


@pytest.fixture
def store():
    return InMemoryScheduleStore()


@pytest.fixture
def documents():
    return FakeDocumentService()


@pytest.fixture
def service(store, documents):
    return ScheduleService(store, documents)


def _request(**overrides) -> CreateScheduleRequest:
    values = dict(
        name="Hosting",
        contact_id=uuid4(),
        contact_name="Initech",
        frequency=Frequency.MONTHLY,
        start_date=date(2025, 2, 1),
        lines=(make_line(), make_line(description="Backups", quantity=Decimal("0"))),
    )
    values.update(overrides)
    return CreateScheduleRequest(**values)


class TestCreate:

    def test_defaults(self, service, store, tenant):
        schedule = service.create(tenant, _request())

        assert schedule.tenant_id == "acme"
        assert schedule.next_generation_date == date(2025, 2, 1)
        assert schedule.is_active is True
        assert schedule.generated_count == 0
        assert schedule.currency == "EUR"
        assert schedule.document_type == "SALES"
        assert schedule.payment_terms_days == 14
        assert schedule.attach_document is True
        assert schedule.created_by == tenant.actor_id
        assert store.get(tenant, schedule.schedule_id) == schedule

    def test_lines_numbered_and_quantity_defaulted(self, service, tenant):
        schedule = service.create(tenant, _request())
        assert [line.line_number for line in schedule.lines] == [1, 2]
        assert schedule.lines[1].quantity == Decimal("1")

    def test_explicit_zero_payment_terms_kept(self, service, tenant):
        assert service.create(tenant, _request(payment_terms_days=0)).payment_terms_days == 0

    def test_string_frequency_accepted(self, service, tenant):
        assert service.create(tenant, _request(frequency="QUARTERLY")).frequency is Frequency.QUARTERLY

    def test_settings_supply_defaults(self, store, tenant):
        settings = EngineSettings(default_currency="USD", default_payment_terms_days=30)
        schedule = ScheduleService(store, settings=settings).create(tenant, _request())
        assert schedule.currency == "USD"
        assert schedule.payment_terms_days == 30

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"name": ""}, "name is required"),
            ({"contact_id": None}, "contact is required"),
            ({"frequency": "FORTNIGHTLY"}, "invalid frequency"),
            ({"lines": ()}, "at least one line item is required"),
            ({"end_date": date(2025, 1, 1)}, "end date cannot be before start date"),
        ],
    )
    def test_invalid_request_not_stored(self, service, store, tenant, overrides, message):
        with pytest.raises(ValidationError, match=message):
            service.create(tenant, _request(**overrides))
        assert store.mutations == []


class TestCreateFromDocument:

    def test_copies_document_fields(self, service, documents, tenant):
        source = make_document(
            currency="USD",
            document_type="SALES",
            lines=(make_line(description="Licence", unit_price=Decimal("40.00")),),
        )
        documents.documents[source.document_id] = source

        schedule = service.create_from_document(
            tenant,
            CreateFromDocumentRequest(
                document_id=source.document_id,
                name="Licence renewal",
                frequency=Frequency.YEARLY,
                start_date=date(2026, 1, 1),
            ),
        )

        assert schedule.contact_id == source.contact_id
        assert schedule.contact_name == "Initech"
        assert schedule.currency == "USD"
        assert [line.description for line in schedule.lines] == ["Licence"]
        assert schedule.frequency is Frequency.YEARLY

    def test_requires_document_service(self, store, tenant):
        request = CreateFromDocumentRequest(uuid4(), "x", Frequency.MONTHLY, date(2025, 1, 1))
        with pytest.raises(NotConfiguredError) as excinfo:
            ScheduleService(store).create_from_document(tenant, request)
        assert excinfo.value.code == "NOT_CONFIGURED"
        assert excinfo.value.collaborator == "document service"
        assert str(excinfo.value) == "create_from_document requires a document service"
        assert store.list(tenant) == []

    def test_missing_document_propagates(self, service, tenant):
        request = CreateFromDocumentRequest(uuid4(), "x", Frequency.MONTHLY, date(2025, 1, 1))
        with pytest.raises(DocumentNotFoundError):
            service.create_from_document(tenant, request)

    def test_lookup_failure_wrapped(self, store, tenant):
        class BrokenDocuments(FakeDocumentService):
            def get_document(self, tenant, document_id):
                raise TimeoutError("documents api timed out")

        request = CreateFromDocumentRequest(uuid4(), "x", Frequency.MONTHLY, date(2025, 1, 1))
        with pytest.raises(CollaboratorError, match="get document: documents api timed out"):
            ScheduleService(store, BrokenDocuments()).create_from_document(tenant, request)


class TestUpdateAndLifecycle:

    def test_update_without_lines_keeps_lines(self, service, tenant):
        created = service.create(tenant, _request())
        updated = service.update(tenant, created.schedule_id, UpdateScheduleRequest(name="Hosting v2"))
        assert updated.name == "Hosting v2"
        assert updated.lines == created.lines

    def test_update_with_lines_replaces_all(self, service, tenant):
        created = service.create(tenant, _request())
        updated = service.update(
            tenant,
            created.schedule_id,
            UpdateScheduleRequest(lines=(make_line(description="Only line"),)),
        )
        assert [(line.line_number, line.description) for line in updated.lines] == [(1, "Only line")]

    def test_update_validates(self, service, store, tenant):
        created = service.create(tenant, _request())
        with pytest.raises(ValidationError, match="payment terms days cannot be negative"):
            service.update(tenant, created.schedule_id, UpdateScheduleRequest(payment_terms_days=-1))
        assert store.get(tenant, created.schedule_id).payment_terms_days == 14

    def test_update_missing(self, service, tenant):
        with pytest.raises(ScheduleNotFoundError):
            service.update(tenant, uuid4(), UpdateScheduleRequest(name="x"))

    def test_pause_resume(self, service, tenant):
        created = service.create(tenant, _request())
        service.pause(tenant, created.schedule_id)
        assert service.get(tenant, created.schedule_id).is_active is False
        assert service.list(tenant, active_only=True) == []
        service.resume(tenant, created.schedule_id)
        assert service.get(tenant, created.schedule_id).is_active is True

    def test_delete(self, service, tenant):
        created = service.create(tenant, _request())
        service.delete(tenant, created.schedule_id)
        with pytest.raises(ScheduleNotFoundError):
            service.get(tenant, created.schedule_id)

    def test_list_is_per_tenant(self, service, tenant, other_tenant):
        service.create(tenant, _request(name="B"))
        service.create(tenant, _request(name="A"))
        service.create(other_tenant, _request(name="C"))
        assert [s.name for s in service.list(tenant)] == ["A", "B"]

    def test_created_is_logged(self, service, tenant, captured_logs):
        created = service.create(tenant, _request())
        [record] = [r for r in captured_logs() if r["message"] == "schedule_created"]
        assert record["schedule_id"] == str(created.schedule_id)
        assert record["frequency"] == "MONTHLY"
