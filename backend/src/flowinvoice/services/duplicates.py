"""
Duplicate invoice number detection for a single import batch.

A number is a duplicate when it is already stored or was accepted earlier
in the same batch. The first occurrence in a batch wins.
"""

import logging

from flowinvoice.infrastructure.repository import InvoiceRepository

logger = logging.getLogger(__name__)


class DuplicateDetector:
    """
    Tracks invoice numbers for exactly one import call.

    Create a new detector per batch; the in-batch set must never be
    shared between calls.
    """

    def __init__(self, repository: InvoiceRepository) -> None:
        self.repository = repository
        self.seen_in_batch: set[str] = set()

    async def exists(self, number: str) -> bool:
        """Storage check. Storage errors propagate to the caller."""
        return await self.repository.invoice_exists(number)

    async def is_duplicate(self, number: str) -> bool:
        """True if the number is stored or already accepted in this batch."""
        if number in self.seen_in_batch:
            logger.debug(f"Invoice {number} repeated within batch")
            return True
        if await self.exists(number):
            logger.debug(f"Invoice {number} already stored")
            return True
        return False

    def mark_seen(self, number: str) -> None:
        """Record that the number was accepted into this batch."""
        self.seen_in_batch.add(number)
