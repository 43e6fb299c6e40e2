"""
NotificationDispatcher -- template -> attachment -> send pipeline.

Contract:
    ``send(tenant, request, document)`` returns a ``DispatchOutcome`` and
    NEVER raises.  Every collaborator failure is caught, labelled with the
    stage that failed, and reported through the outcome.

Pipeline:
    1. No notification service configured     -> NO_CONFIG
    2. Resolve tenant (company name) and contact
    3. recipient = override, else contact email; empty -> SKIPPED
    4. Template lookup.  When the request carries a fallback type (generation
       path) a failed lookup retries with it; otherwise (reminder path) a
       failed lookup is final                -> FAILED "get template: ..."
    5. Render                                 -> FAILED "render template: ..."
    6. Subject override applied after render
    7. Attachment (best-effort): failure is noted in ``error`` and the send
       proceeds without it
    8. Send                                   -> FAILED "send email: ..."
                                              -> SENT with the delivery log id

Architecture: billing_batch/services.  Depends on billing_batch.ports only.
"""

from __future__ import annotations

from billing_kernel.logging_config import get_logger

from billing_batch.domain.results import DispatchOutcome
from billing_batch.domain.types import (
    Attachment,
    BillingDocument,
    DeliveryStatus,
    NotificationRequest,
    TemplateData,
    TenantScope,
)
from billing_batch.ports import (
    AttachmentService,
    ContactDirectory,
    NotificationService,
    TenantDirectory,
)

logger = get_logger("batch.dispatcher")


class NotificationDispatcher:
    """Sends one notification per call with graceful degradation.

    Every collaborator is optional.  A missing notification service yields
    NO_CONFIG; a missing attachment service means no attachment; missing
    directories mean the document snapshot supplies names and addresses.
    """

    def __init__(
        self,
        notification_service: NotificationService | None = None,
        attachment_service: AttachmentService | None = None,
        tenant_directory: TenantDirectory | None = None,
        contact_directory: ContactDirectory | None = None,
        attachment_content_type: str = "application/pdf",
    ):
        self._notifications = notification_service
        self._attachments = attachment_service
        self._tenants = tenant_directory
        self._contacts = contact_directory
        self._attachment_content_type = attachment_content_type

    @property
    def is_configured(self) -> bool:
        return self._notifications is not None

    def send(
        self,
        tenant: TenantScope,
        request: NotificationRequest,
        document: BillingDocument,
    ) -> DispatchOutcome:
        if self._notifications is None:
            return self._finish(
                document,
                DispatchOutcome(
                    sent=False,
                    status=DeliveryStatus.NO_CONFIG,
                    error="notification service not configured",
                ),
            )

        # Tenant
        tenant_info = None
        if self._tenants is not None:
            try:
                tenant_info = self._tenants.get_tenant(tenant.tenant_id)
            except Exception as exc:
                return self._failed(document, f"get tenant: {exc}")
        company_name = tenant_info.name if tenant_info is not None else ""

        # Contact and recipient
        recipient_name = request.recipient_name or document.contact_name
        contact_email = document.contact_email
        if self._contacts is not None and request.contact_id is not None:
            try:
                contact = self._contacts.get_contact(tenant.tenant_id, request.contact_id)
                recipient_name = request.recipient_name or contact.name
                contact_email = contact.email
            except Exception as exc:
                if not request.recipient_email_override:
                    return self._failed(document, f"get contact: {exc}")
                logger.warning(
                    "contact_lookup_failed_using_override",
                    extra={"document_id": str(document.document_id), "error": str(exc)},
                )

        recipient = request.recipient_email_override or contact_email
        if not recipient:
            return self._finish(
                document,
                DispatchOutcome(
                    sent=False,
                    status=DeliveryStatus.SKIPPED,
                    error="no recipient email available",
                ),
            )

        # Template
        try:
            template = self._notifications.get_template(tenant, request.template_type)
        except Exception as exc:
            fallback = request.fallback_template_type
            if not fallback or fallback == request.template_type:
                return self._failed(document, f"get template: {exc}")
            logger.info(
                "template_fallback",
                extra={"template_type": request.template_type, "fallback": fallback},
            )
            try:
                template = self._notifications.get_template(tenant, fallback)
            except Exception as fallback_exc:
                return self._failed(document, f"get template: {fallback_exc}")

        # Render
        data = TemplateData(
            company_name=company_name,
            contact_name=recipient_name,
            message=request.message or "",
            document_number=document.number,
            total_amount=f"{document.outstanding:.2f}",
            currency=document.currency,
            due_date=document.due_date.isoformat(),
            issue_date=document.issue_date.isoformat(),
            days_overdue=request.days_overdue,
            days_until_due=request.days_until_due,
        )
        try:
            rendered = self._notifications.render(template, data)
        except Exception as exc:
            return self._failed(document, f"render template: {exc}")

        subject = request.subject_override or rendered.subject

        # Attachment (best-effort)
        attachments: tuple[Attachment, ...] = ()
        note: str | None = None
        if request.attach_document and self._attachments is not None:
            try:
                content = self._attachments.generate(document, tenant, tenant_info)
                attachments = (
                    Attachment(
                        filename=f"{document.number}.pdf",
                        content=content,
                        content_type=self._attachment_content_type,
                    ),
                )
            except Exception as exc:
                note = f"generate attachment: {exc}"
                logger.warning(
                    "attachment_failed",
                    extra={"document_id": str(document.document_id), "error": str(exc)},
                )

        # Send
        try:
            log_id = self._notifications.send(
                tenant,
                email_type=request.email_type,
                to_email=recipient,
                to_name=recipient_name,
                subject=subject,
                body_html=rendered.body_html,
                body_text=rendered.body_text,
                attachments=attachments,
                related_id=document.document_id,
            )
        except Exception as exc:
            return self._failed(document, f"send email: {exc}")

        return self._finish(
            document,
            DispatchOutcome(
                sent=True,
                status=DeliveryStatus.SENT,
                log_id=log_id,
                error=note,
            ),
        )

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _failed(self, document: BillingDocument, error: str) -> DispatchOutcome:
        return self._finish(
            document,
            DispatchOutcome(sent=False, status=DeliveryStatus.FAILED, error=error),
        )

    def _finish(self, document: BillingDocument, outcome: DispatchOutcome) -> DispatchOutcome:
        log = logger.warning if outcome.status is DeliveryStatus.FAILED else logger.info
        log(
            "notification_dispatched",
            extra={
                "document_id": str(document.document_id),
                "document_number": document.number,
                "status": outcome.status.value,
                "log_id": outcome.log_id,
                "error": outcome.error,
            },
        )
        return outcome
