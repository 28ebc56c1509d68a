"""Capture-event reconciliation against live Zoho invoice balances.

No local record of applied payments is kept: the invoice balance fetched
immediately before each write is the ledger. A zero balance short-circuits
every later delivery of the same capture, and a capture larger than the
remaining balance is never applied.
"""

from decimal import ROUND_HALF_UP, Decimal

from payrelay.common.errors import InvoiceNotFound, RelayError, UpstreamError
from payrelay.common.logging import logger
from payrelay.common.metrics import reconciliation_outcomes_total
from payrelay.services.authnet.schemas import CaptureEvent
from payrelay.services.reconciliation.ledger import TransactionLedger
from payrelay.services.reconciliation.models import ReconciliationOutcome, ReconciliationResult
from payrelay.services.zoho.client import ZohoBooksClient


CAPTURE_EVENT_TYPE = "authcapture.created"
OVERPAYMENT_EPSILON = Decimal("0.0001")
CENT = Decimal("0.01")


def is_capture(event_type: str) -> bool:
    """Match both `authcapture.created` and `net.authorize.payment.authcapture.created`."""

    return event_type == CAPTURE_EVENT_TYPE or event_type.endswith("." + CAPTURE_EVENT_TYPE)


class ReconciliationService:
    """Applies captured amounts to invoices at most once."""

    def __init__(
        self,
        books: ZohoBooksClient,
        ledger: TransactionLedger | None = None,
        service_name: str = "payrelay",
    ) -> None:
        self.books = books
        self.ledger = ledger
        self.service_name = service_name

    def _result(self, outcome: ReconciliationOutcome, event: CaptureEvent, **fields) -> ReconciliationResult:
        reconciliation_outcomes_total.labels(service=self.service_name, outcome=outcome.value).inc()
        return ReconciliationResult(
            outcome=outcome,
            invoice_id=event.invoice_reference,
            transaction_id=event.gateway_transaction_id,
            captured_amount=event.captured_amount,
            **fields,
        )

    async def reconcile(self, event: CaptureEvent) -> ReconciliationResult:
        """Resolve, gate, and apply one capture event.

        Business mismatches come back as outcomes. Auth and upstream failures
        while reading or writing propagate.
        """

        if not is_capture(event.event_type):
            logger.info("webhook event ignored event_type=%s", event.event_type)
            return self._result(ReconciliationOutcome.IGNORED, event, detail=event.event_type)

        if not event.invoice_reference:
            logger.warning(
                "capture without invoice reference transaction_id=%s description=%r",
                event.gateway_transaction_id,
                event.description,
            )
            return self._result(ReconciliationOutcome.NO_INVOICE_FOUND, event)

        # Amounts are decided and written in whole cents.
        if event.captured_amount is not None:
            event = event.model_copy(
                update={"captured_amount": event.captured_amount.quantize(CENT, rounding=ROUND_HALF_UP)}
            )
        captured = event.captured_amount
        if captured is None or captured <= 0:
            logger.warning(
                "capture with unusable amount transaction_id=%s amount=%s",
                event.gateway_transaction_id,
                captured,
            )
            return self._result(ReconciliationOutcome.INVALID_AMOUNT, event)

        try:
            invoice = await self.books.fetch_invoice(event.invoice_reference)
        except InvoiceNotFound:
            logger.warning("capture references unknown invoice invoice_id=%s", event.invoice_reference)
            return self._result(ReconciliationOutcome.NO_INVOICE_FOUND, event, detail="invoice not found")

        balance = invoice.balance
        if balance <= 0:
            logger.info(
                "invoice already settled invoice_id=%s transaction_id=%s",
                invoice.invoice_id,
                event.gateway_transaction_id,
            )
            return self._result(ReconciliationOutcome.ALREADY_SETTLED, event, balance=balance)

        if captured > balance + OVERPAYMENT_EPSILON:
            logger.warning(
                "overpayment needs manual review invoice_id=%s transaction_id=%s captured=%s balance=%s",
                invoice.invoice_id,
                event.gateway_transaction_id,
                captured,
                balance,
            )
            return self._result(
                ReconciliationOutcome.OVERPAYMENT,
                event,
                balance=balance,
                detail="captured amount exceeds invoice balance",
            )

        txn_id = event.gateway_transaction_id
        if self.ledger is not None and txn_id and not await self.ledger.claim(txn_id):
            logger.info("transaction already reconciled transaction_id=%s", txn_id)
            return self._result(ReconciliationOutcome.DUPLICATE, event, balance=balance)

        try:
            payment = await self.books.record_payment(
                invoice,
                captured,
                reference=txn_id,
                description=f"Authorize.Net transaction {txn_id}",
            )
        except RelayError as exc:
            # A timeout or unreadable reply may hide a recorded payment; keep
            # the claim unless Zoho answered with an explicit error code.
            maybe_written = isinstance(exc, UpstreamError) and exc.code is None
            if self.ledger is not None and txn_id and not maybe_written:
                await self.ledger.release(txn_id)
            raise

        logger.info(
            "payment applied invoice_id=%s transaction_id=%s amount=%s payment_id=%s",
            invoice.invoice_id,
            txn_id,
            captured,
            payment.payment_id,
        )
        return self._result(
            ReconciliationOutcome.APPLIED,
            event,
            balance=balance - captured,
            payment_id=payment.payment_id,
        )
