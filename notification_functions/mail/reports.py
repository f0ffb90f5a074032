import html
import logging
from datetime import datetime
from typing import Any, Dict, Optional

import google.cloud.firestore
from firebase_admin import firestore
from google.api_core.exceptions import FailedPrecondition
from pydantic import BaseModel, Field

from ..config import Settings, settings as default_settings
from ..notifications.exceptions import DispatchError
from ..notifications.schemas import DeliveryStatus, DispatchOutcome, OutcomeStatus
from .transport import SESEmailTransport

logger = logging.getLogger(__name__)

# Report fields listed in the email, in display order
REPORT_FIELDS = [
    ('reason', 'Reason'),
    ('description', 'Description'),
    ('reporterId', 'Reported by'),
    ('reportedUserId', 'Reported user'),
    ('chatId', 'Chat'),
    ('listingId', 'Listing'),
]


class ReportEvent(BaseModel):
    """A `reports/{id}` document was created"""
    recordId: str
    report: Dict[str, Any] = Field(default_factory=dict)

    @property
    def email_status(self) -> Optional[str]:
        return self.report.get('emailStatus')


class ReportMailer:
    """Emails moderators about new reports and records the outcome on the report."""

    def __init__(self,
                 transport: SESEmailTransport,
                 firestore_db: google.cloud.firestore.Client,
                 config: Optional[Settings] = None):
        self.transport = transport
        self.firestore_db = firestore_db
        self.config = config or default_settings

    def handle_report_created(self, event: ReportEvent) -> DispatchOutcome:
        """
        Send the moderator email for a report, once.

        A report whose stored `emailStatus` is already `sent` or `failed` is
        left alone, so redelivered events send nothing. A missing
        `emailStatus` counts as pending.
        """
        report_ref = self.firestore_db.collection(self.config.reports_collection).document(event.recordId)
        snapshot = report_ref.get()
        if not snapshot.exists:
            logger.info(f"Report {event.recordId} no longer exists, skipping")
            return self._skipped(event.recordId, "report deleted")

        event = ReportEvent(recordId=event.recordId, report=snapshot.to_dict() or {})
        status = event.email_status
        if status is not None and status != DeliveryStatus.PENDING.value:
            logger.info(f"Report {event.recordId} has email status {status}, skipping")
            return self._skipped(event.recordId, f"email status is {status}")

        try:
            self.transport.send_message(
                self.config.email_sender,
                self.config.report_recipients,
                self.build_subject(event),
                self.build_html(event),
            )
        except DispatchError as e:
            logger.error(f"Error emailing report {event.recordId}: {e.detail}")
            self._record(report_ref, snapshot.update_time, {
                'emailStatus': DeliveryStatus.FAILED.value,
                'emailError': e.detail,
                'emailFailedAt': firestore.SERVER_TIMESTAMP,
            })
            outcome = DispatchOutcome.for_failure(e.detail)
        else:
            self._record(report_ref, snapshot.update_time, {
                'emailStatus': DeliveryStatus.SENT.value,
                'emailedAt': firestore.SERVER_TIMESTAMP,
            })
            logger.info(f"Emailed report {event.recordId}")
            outcome = DispatchOutcome(status=OutcomeStatus.SENT)

        outcome.recordId = event.recordId
        return outcome

    def _record(self,
                report_ref: google.cloud.firestore.DocumentReference,
                last_update_time: Optional[datetime],
                fields: Dict[str, Any]) -> None:
        # Only lands if the report is unchanged since it was read as pending
        option = self.firestore_db.write_option(last_update_time=last_update_time)
        try:
            report_ref.update(fields, option=option)
        except FailedPrecondition:
            logger.warning(f"Report {report_ref.id} changed during email dispatch, keeping stored status")

    @staticmethod
    def _skipped(record_id: str, reason: str) -> DispatchOutcome:
        outcome = DispatchOutcome.for_skip(reason)
        outcome.recordId = record_id
        return outcome

    @staticmethod
    def build_subject(event: ReportEvent) -> str:
        reason = event.report.get('reason') or 'Unspecified'
        return f"New report: {reason}"

    @staticmethod
    def build_html(event: ReportEvent) -> str:
        rows = []
        for field, label in REPORT_FIELDS:
            value = event.report.get(field)
            if value in (None, ''):
                continue
            rows.append(
                f"<tr><th align=\"left\">{html.escape(label)}</th>"
                f"<td>{html.escape(str(value))}</td></tr>"
            )

        return (
            f"<h2>New report {html.escape(event.recordId)}</h2>"
            f"<table>{''.join(rows)}</table>"
        )
