"""
Server-side x402 paywall
Free-play accounting, 402 challenges and payment verification
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional

import structlog

from arcade.payments.invoices import InvoiceStore
from arcade.payments.ledger import PaymentLedger
from arcade.payments.models import (
    Invoice,
    PaymentRecord,
    PaymentRequiredResponse,
    PaymentRequirements,
    normalize_address,
)
from arcade.payments.verifier import PaymentVerifier, proof_digest

logger = structlog.get_logger()

TOKEN_DECIMALS = 6


def format_token_amount(amount: int, decimals: int = TOKEN_DECIMALS) -> str:
    """Render a smallest-unit amount in whole tokens, e.g. 10000 -> '0.01'"""
    value = Decimal(amount) / Decimal(10 ** decimals)
    return format(value.normalize(), "f")


class FreePlayCounter:
    """Per-payer count of plays served without payment"""

    def __init__(self):
        self._counts: Dict[str, int] = {}

    def get(self, address: str) -> int:
        return self._counts.get(normalize_address(address), 0)

    def increment(self, address: str) -> int:
        key = normalize_address(address)
        self._counts[key] = self._counts.get(key, 0) + 1
        return self._counts[key]


@dataclass
class AccessDecision:
    """Result of a gated request"""
    allowed: bool
    is_premium: bool = False
    free_play_remaining: Optional[int] = None
    challenge: Optional[PaymentRequiredResponse] = None
    invoice: Optional[Invoice] = None


class PaywallGate:
    """
    Gates a resource behind free plays followed by an x402 payment.

    A payer with a ledger record is always let through. Otherwise up to
    free_play_limit plays are served for free; after that each request gets
    a 402 challenge built from the static requirements template and the
    payer's current invoice until a payment header verifies.
    """

    def __init__(
        self,
        ledger: PaymentLedger,
        invoices: InvoiceStore,
        verifier: PaymentVerifier,
        requirements: PaymentRequirements,
        free_play_limit: int = 3,
        free_plays: Optional[FreePlayCounter] = None,
    ):
        if free_play_limit < 0:
            raise ValueError(f"free_play_limit must be non-negative, got {free_play_limit}")
        self.ledger = ledger
        self.invoices = invoices
        self.verifier = verifier
        self.requirements = requirements
        self.free_play_limit = free_play_limit
        self.free_plays = free_plays or FreePlayCounter()

    @property
    def amount(self) -> int:
        return self.requirements.amount

    def verify(self, payer: str, payment_header: Optional[str] = None) -> bool:
        """True if payer has paid or payment_header proves payment now"""
        if self.ledger.has_paid(payer):
            return True

        if not payment_header:
            return False

        is_valid, error = self.verifier.verify(payer, payment_header)
        if not is_valid:
            logger.info("payment_verification_failed", payer=normalize_address(payer), error=error)
            return False

        self.record(payer, payment_header)
        return True

    def record(self, payer: str, proof: str) -> PaymentRecord:
        return self.ledger.record(payer, self.amount, proof_digest(proof))

    def payment_required(self, invoice: Invoice) -> PaymentRequiredResponse:
        """Combine the requirements template with a payer's invoice"""
        requirements = self.requirements.model_copy(
            update={"invoiceId": invoice.id, "description": invoice.description}
        )
        return PaymentRequiredResponse(
            message=(
                f"Premium access requires payment of "
                f"{format_token_amount(invoice.amount)} {invoice.currency}"
            ),
            paymentRequirements=requirements,
        )

    def check_access(self, payer: str, payment_header: Optional[str] = None) -> AccessDecision:
        """Decide whether a play request is served, and how"""
        if self.verify(payer, payment_header):
            return AccessDecision(allowed=True, is_premium=True)

        used = self.free_plays.get(payer)
        if used < self.free_play_limit:
            self.free_plays.increment(payer)
            remaining = self.free_play_limit - used - 1
            logger.info("free_play_served", payer=normalize_address(payer), remaining=remaining)
            return AccessDecision(allowed=True, free_play_remaining=remaining)

        invoice = self.invoices.current_or_generate(payer)
        logger.info("payment_challenge_issued", payer=invoice.address, invoice_id=invoice.id)
        return AccessDecision(
            allowed=False,
            challenge=self.payment_required(invoice),
            invoice=invoice,
        )
