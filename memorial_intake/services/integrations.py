"""
Which external systems this deployment can talk to.

Email is mandatory; every other adapter is either present (configured client)
or None, and orchestrators check presence explicitly before scheduling a step.
"""

from typing import Optional

from memorial_intake.config import Settings
from memorial_intake.services.crm import CrmContacts
from memorial_intake.services.email_sender import EmailSender
from memorial_intake.services.invoice_issuer import InvoiceIssuer
from memorial_intake.services.record_store import RecordStore
from memorial_intake.services.task_board import TaskCreator


class Integrations:

    def __init__(self, email: Optional[EmailSender], tasks: Optional[TaskCreator] = None,
                 records: Optional[RecordStore] = None, crm: Optional[CrmContacts] = None,
                 invoices: Optional[InvoiceIssuer] = None):
        self.email = email
        self.tasks = tasks
        self.records = records
        self.crm = crm
        self.invoices = invoices

    @classmethod
    def from_settings(cls, settings: Settings) -> "Integrations":
        return cls(
            email=EmailSender(settings.sendgrid_api_key) if settings.email_configured else None,
            tasks=TaskCreator(settings.clickup_api_key) if settings.task_board_configured else None,
            records=(
                RecordStore(settings.supabase_url, settings.supabase_service_key)
                if settings.record_store_configured else None
            ),
            crm=(
                CrmContacts(settings.ghl_api_key, settings.ghl_location_id)
                if settings.crm_configured else None
            ),
            invoices=(
                InvoiceIssuer(settings.stripe_secret_key, currency=settings.business.currency)
                if settings.invoicing_configured else None
            ),
        )
