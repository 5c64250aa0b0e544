"""
Idempotent payment ledger keyed by payer address
"""

from typing import Dict, List, Optional

import structlog

from arcade.payments.models import PaymentRecord, normalize_address

logger = structlog.get_logger()


class PaymentLedger:
    """Holds at most one authoritative payment record per payer"""

    def __init__(self):
        self._records: Dict[str, PaymentRecord] = {}

    def has_paid(self, address: str) -> bool:
        return normalize_address(address) in self._records

    def record(self, address: str, amount: int, proof: str) -> PaymentRecord:
        """
        Record a payment for address.

        A second call for a payer that already has a record returns the
        existing record unchanged.
        """
        key = normalize_address(address)
        existing = self._records.get(key)
        if existing is not None:
            logger.debug("payment_already_recorded", payer=key)
            return existing

        record = PaymentRecord(address=key, amount=amount, proof=proof)
        self._records[key] = record
        logger.info("payment_recorded", payer=key, amount=amount)
        return record

    def get(self, address: str) -> Optional[PaymentRecord]:
        return self._records.get(normalize_address(address))

    def history(self, address: str) -> List[PaymentRecord]:
        record = self.get(address)
        return [record] if record else []

    def __len__(self) -> int:
        return len(self._records)
