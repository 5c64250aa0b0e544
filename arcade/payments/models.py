"""
x402-compliant payment models for Gasless Arcade
Invoices, ledger records, 402 requirements and signed authorizations
"""

import base64
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_address(address: str) -> str:
    """Canonical key for a payer address"""
    return address.strip().lower()


class Invoice(BaseModel):
    """Server-issued description of the payment that clears a 402 for one payer"""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    address: str = Field(description="Payer address, lower-cased")
    amount: int = Field(ge=0, description="Amount in smallest unit")
    currency: str = "USDC"
    network: str
    description: str = "Gasless Arcade Premium Play"
    created_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime

    @field_validator("address")
    @classmethod
    def normalize_payer(cls, v: str) -> str:
        v = normalize_address(v)
        if not v:
            raise ValueError("payer address must not be empty")
        return v

    @model_validator(mode="after")
    def check_expiry(self):
        if self.expires_at <= self.created_at:
            raise ValueError("expires_at must be after created_at")
        return self

    @classmethod
    def issue(
        cls,
        address: str,
        amount: int,
        network: str,
        ttl_seconds: int,
        currency: str = "USDC",
        description: str = "Gasless Arcade Premium Play",
        now: Optional[datetime] = None,
    ) -> "Invoice":
        created_at = now or utcnow()
        return cls(
            address=address,
            amount=amount,
            currency=currency,
            network=network,
            description=description,
            created_at=created_at,
            expires_at=created_at + timedelta(seconds=ttl_seconds),
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) >= self.expires_at


class PaymentRecord(BaseModel):
    """Ledger entry proving a payer has paid"""
    model_config = ConfigDict(frozen=True)

    address: str
    amount: int
    proof: str = Field(description="Payment header or its digest")
    timestamp: datetime = Field(default_factory=utcnow)


class PaymentRequirements(BaseModel):
    """Single payment option advertised in a 402 response"""
    scheme: str = Field(default="exact", description="Payment scheme")
    network: str = Field(description="Blockchain network")
    payTo: str = Field(description="Recipient wallet address")
    asset: str = Field(description="Token contract address")
    maxAmountRequired: str = Field(description="Amount in smallest unit")
    maxTimeoutSeconds: int = Field(default=300)
    description: Optional[str] = None
    invoiceId: Optional[str] = None

    @field_validator("maxAmountRequired", mode="before")
    @classmethod
    def check_amount(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            v = str(v)
        if not isinstance(v, str) or not (v.isascii() and v.isdigit()):
            raise ValueError("maxAmountRequired must be a whole number of smallest units")
        return v

    @property
    def amount(self) -> int:
        return int(self.maxAmountRequired)


class PaymentRequiredResponse(BaseModel):
    """x402 Payment Required response body (HTTP 402)"""
    error: str = "Payment required"
    message: str
    paymentRequirements: PaymentRequirements


class TransferAuthorization(BaseModel):
    """EIP-3009 TransferWithAuthorization message fields"""
    model_config = ConfigDict(populate_by_name=True)

    from_address: str = Field(alias="from")
    to: str
    value: int = Field(ge=0)
    valid_after: int = Field(default=0, alias="validAfter")
    valid_before: int = Field(alias="validBefore")
    nonce: str = Field(description="0x-prefixed 32-byte hex")

    def to_message(self) -> dict:
        return self.model_dump(by_alias=True)


class PaymentPayload(BaseModel):
    """x402 payment payload carried in the X-Payment header"""
    x402Version: int = 1
    scheme: str = "exact"
    network: str
    payload: dict = Field(description="Contains signature and authorization")

    @property
    def signature(self) -> str:
        return self.payload.get("signature", "")

    @property
    def authorization(self) -> TransferAuthorization:
        return TransferAuthorization.model_validate(self.payload.get("authorization", {}))


class SignedAuthorization(BaseModel):
    """A signed transfer authorization ready to be presented to the paywall"""
    authorization: TransferAuthorization
    signature: str = Field(description="0x-prefixed 65-byte signature hex")
    network: str

    def signature_bytes(self) -> bytes:
        return bytes.fromhex(self.signature.removeprefix("0x"))

    def to_header(self) -> str:
        """Base64 of the raw signature bytes, the default X-Payment value"""
        return base64.b64encode(self.signature_bytes()).decode()

    def to_payload(self) -> PaymentPayload:
        return PaymentPayload(
            network=self.network,
            payload={
                "signature": self.signature,
                "authorization": self.authorization.to_message(),
            },
        )

    def to_payload_header(self) -> str:
        """Base64 of the JSON x402 payload, required by strict verification"""
        return base64.b64encode(self.to_payload().model_dump_json().encode()).decode()


class PaymentResult(BaseModel):
    """Outcome of one agent payment attempt"""
    success: bool
    amount: int = 0
    header: Optional[str] = None
    signature: Optional[str] = None
    nonce: Optional[str] = None
    tx_hash: Optional[str] = None
    error: Optional[str] = None
    settled_at: datetime = Field(default_factory=utcnow)


class VerifyPaymentRequest(BaseModel):
    """Body of POST /verify-payment"""
    address: str = ""
    paymentHeader: Optional[str] = None
