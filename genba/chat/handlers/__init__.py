"""Draft commit handlers, one module per business document."""

from genba.chat.handlers.billing import parse_billing_command, update_site_billing_settings
from genba.chat.handlers.estimate import commit_estimate_draft
from genba.chat.handlers.invoice import commit_invoice_draft, draft_invoice_from_progress
from genba.chat.handlers.receipt import commit_receipt_draft
from genba.chat.handlers.report import commit_report_draft

__all__ = [
    "commit_estimate_draft",
    "commit_invoice_draft",
    "commit_receipt_draft",
    "commit_report_draft",
    "draft_invoice_from_progress",
    "parse_billing_command",
    "update_site_billing_settings",
]
