"""
Credit note number generation.

Numbers embed the parent invoice number and the UTC creation time so they
are readable in reports:

    NC-<invoice number>-<yyyyMMddHHmmss>-<suffix>

A timestamp alone collides when two notes are created for the same invoice
within one second, so a short random suffix is appended.
"""

import secrets
from datetime import datetime

CREDIT_NOTE_PREFIX = "NC"
SUFFIX_BYTES = 3  # 6 hex chars


def generate_credit_note_number(invoice_number: str, created_at: datetime) -> str:
    """
    Build a credit note number for an invoice.

    Args:
        invoice_number: Number of the invoice receiving the credit note
        created_at: Creation timestamp (UTC)

    Returns:
        Credit note number, e.g. ``NC-1001-20240115093000-a1b2c3``
    """
    if not invoice_number:
        raise ValueError("Invoice number is required")

    stamp = created_at.strftime("%Y%m%d%H%M%S")
    suffix = secrets.token_hex(SUFFIX_BYTES)
    return f"{CREDIT_NOTE_PREFIX}-{invoice_number}-{stamp}-{suffix}"
