"""
In-memory invoice store for 402 challenges
"""

from datetime import datetime
from typing import Callable, Dict, Optional

import structlog

from arcade.payments.models import Invoice, normalize_address, utcnow

logger = structlog.get_logger()


class InvoiceStore:
    """
    Issues invoices for payers and keeps them until they are swept.

    Each payer has at most one current invoice. Repeated challenges inside
    the TTL reuse it; a new one is issued only after it expires. Invoices are
    immutable once created, and memory is reclaimed by sweep_expired(),
    which the backend runs periodically.
    """

    def __init__(
        self,
        amount: int,
        network: str,
        ttl_seconds: int = 300,
        currency: str = "USDC",
        description: str = "Gasless Arcade Premium Play",
        clock: Callable[[], datetime] = utcnow,
    ):
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self.amount = amount
        self.network = network
        self.ttl_seconds = ttl_seconds
        self.currency = currency
        self.description = description
        self._clock = clock
        self._invoices: Dict[str, Invoice] = {}
        self._current: Dict[str, str] = {}

    def generate(self, payer: str) -> Invoice:
        """Create and store a fresh invoice for payer, making it the current one"""
        if not payer or not payer.strip():
            raise ValueError("payer address is required")

        invoice = Invoice.issue(
            address=payer,
            amount=self.amount,
            network=self.network,
            ttl_seconds=self.ttl_seconds,
            currency=self.currency,
            description=self.description,
            now=self._clock(),
        )
        self._invoices[invoice.id] = invoice
        self._current[invoice.address] = invoice.id

        logger.info(
            "invoice_generated",
            invoice_id=invoice.id,
            payer=invoice.address,
            amount=invoice.amount,
            expires_at=invoice.expires_at.isoformat(),
        )
        return invoice

    def current(self, payer: str) -> Optional[Invoice]:
        """The payer's unexpired invoice, if any"""
        invoice_id = self._current.get(normalize_address(payer))
        invoice = self._invoices.get(invoice_id) if invoice_id else None
        if invoice is None or invoice.is_expired(self._clock()):
            return None
        return invoice

    def current_or_generate(self, payer: str) -> Invoice:
        return self.current(payer) or self.generate(payer)

    def get(self, invoice_id: str) -> Optional[Invoice]:
        return self._invoices.get(invoice_id)

    def sweep_expired(self, now: Optional[datetime] = None) -> int:
        """Drop expired invoices, returning how many were removed"""
        now = now or self._clock()
        expired = [i for i, inv in self._invoices.items() if inv.is_expired(now)]
        for invoice_id in expired:
            invoice = self._invoices.pop(invoice_id)
            if self._current.get(invoice.address) == invoice_id:
                del self._current[invoice.address]
        if expired:
            logger.info("invoices_swept", count=len(expired), remaining=len(self._invoices))
        return len(expired)

    def __len__(self) -> int:
        return len(self._invoices)

    def __contains__(self, invoice_id: str) -> bool:
        return invoice_id in self._invoices
