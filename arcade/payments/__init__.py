"""
Gasless Arcade Payment Module
x402 paywall, invoices, ledger and EIP-3009 authorizations
"""

from arcade.payments.models import (
    Invoice,
    PaymentRecord,
    PaymentRequirements,
    PaymentRequiredResponse,
    TransferAuthorization,
    PaymentPayload,
    SignedAuthorization,
    PaymentResult,
)
from arcade.payments.invoices import InvoiceStore
from arcade.payments.ledger import PaymentLedger
from arcade.payments.authorization import AuthorizationSigner, AuthorizationError
from arcade.payments.verifier import PaymentVerifier, PaymentHeaderError, decode_payment_header
from arcade.payments.gate import PaywallGate, FreePlayCounter, AccessDecision

__all__ = [
    "Invoice",
    "PaymentRecord",
    "PaymentRequirements",
    "PaymentRequiredResponse",
    "TransferAuthorization",
    "PaymentPayload",
    "SignedAuthorization",
    "PaymentResult",
    "InvoiceStore",
    "PaymentLedger",
    "AuthorizationSigner",
    "AuthorizationError",
    "PaymentVerifier",
    "PaymentHeaderError",
    "decode_payment_header",
    "PaywallGate",
    "FreePlayCounter",
    "AccessDecision",
]
