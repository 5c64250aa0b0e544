"""
Payment header decoding and verification
"""

import base64
import binascii
import hashlib
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Set, Tuple

from pydantic import ValidationError
import structlog

from arcade.payments.authorization import nonce_bytes, recover_signer
from arcade.payments.models import PaymentPayload

logger = structlog.get_logger()

BEARER_PREFIX = "Bearer "


class PaymentHeaderError(Exception):
    """The payment header is missing or cannot be decoded"""


class HeaderKind(str, Enum):
    BEARER = "bearer"
    SIGNATURE = "signature"
    PAYLOAD = "payload"


@dataclass(frozen=True)
class DecodedHeader:
    kind: HeaderKind
    raw: bytes
    payload: Optional[PaymentPayload] = None


def proof_digest(header: str) -> str:
    """Stable reference to a payment header for the ledger"""
    return "0x" + hashlib.sha256(header.strip().encode()).hexdigest()


def decode_payment_header(header: Optional[str]) -> DecodedHeader:
    """
    Decode an X-Payment header value.

    Accepts a bearer token, base64 of raw signature bytes, or base64 of an
    x402 JSON payload.
    """
    if header is None or not header.strip():
        raise PaymentHeaderError("Payment header is empty")

    value = header.strip()
    if value.startswith(BEARER_PREFIX):
        token = value[len(BEARER_PREFIX):].strip()
        if not token:
            raise PaymentHeaderError("Bearer token is empty")
        return DecodedHeader(kind=HeaderKind.BEARER, raw=token.encode())

    try:
        raw = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise PaymentHeaderError(f"Payment header is not valid base64: {e}") from e

    if not raw:
        raise PaymentHeaderError("Payment header decodes to nothing")

    if raw[:1] == b"{":
        # Raw signature bytes can start with "{" too
        try:
            payload = PaymentPayload.model_validate_json(raw)
            return DecodedHeader(kind=HeaderKind.PAYLOAD, raw=raw, payload=payload)
        except ValidationError:
            logger.debug("payment_header_not_a_payload")

    return DecodedHeader(kind=HeaderKind.SIGNATURE, raw=raw)


class PaymentVerifier:
    """
    Decides whether a payment header proves payment.

    In the default mode any header that decodes is accepted. Strict mode
    requires an x402 payload whose EIP-712 signature recovers to the payer,
    pays the expected recipient at least the expected amount, is inside its
    validity window and carries a nonce that has not been seen before.
    """

    def __init__(
        self,
        strict: bool = False,
        domain: Optional[dict] = None,
        pay_to: Optional[str] = None,
        amount: int = 0,
        clock: Callable[[], float] = time.time,
    ):
        if strict and (domain is None or pay_to is None):
            raise ValueError("strict verification needs a domain and a pay_to address")
        self.strict = strict
        self.domain = domain
        self.pay_to = pay_to
        self.amount = amount
        self._clock = clock
        self._seen_nonces: Set[Tuple[str, bytes]] = set()

    def verify(self, payer: str, header: Optional[str]) -> Tuple[bool, Optional[str]]:
        """
        Verify header for payer.

        Returns:
            Tuple of (is_valid, error_message)
        """
        try:
            decoded = decode_payment_header(header)
        except PaymentHeaderError as e:
            logger.info("payment_header_rejected", payer=payer, error=str(e))
            return False, str(e)

        if not self.strict:
            return True, None

        if decoded.payload is None:
            return False, "Strict verification requires an x402 payment payload"
        return self._verify_payload(payer, decoded.payload)

    def _verify_payload(self, payer: str, payload: PaymentPayload) -> Tuple[bool, Optional[str]]:
        try:
            authorization = payload.authorization
        except ValidationError:
            return False, "Malformed authorization"

        if authorization.from_address.lower() != payer.lower():
            return False, "Authorization sender does not match payer"

        if authorization.to.lower() != self.pay_to.lower():
            return False, "Recipient mismatch"

        if authorization.value < self.amount:
            return False, f"Insufficient amount: got {authorization.value}, expected {self.amount}"

        now = int(self._clock())
        if authorization.valid_after > now:
            return False, "Payment authorization not yet valid"
        if authorization.valid_before <= now:
            return False, "Payment authorization expired"

        try:
            nonce = nonce_bytes(authorization.nonce)
        except ValueError:
            return False, "Malformed nonce"

        nonce_key = (authorization.from_address.lower(), nonce)
        if nonce_key in self._seen_nonces:
            return False, "Payment authorization nonce already used"

        try:
            recovered = recover_signer(self.domain, authorization, payload.signature)
        except Exception as e:
            logger.warning("payment_signature_recovery_failed", payer=payer, error=str(e))
            return False, "Invalid signature"

        if recovered.lower() != payer.lower():
            return False, "Invalid signature"

        self._seen_nonces.add(nonce_key)
        return True, None
