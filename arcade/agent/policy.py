"""
Spending policy for the auto-pay agent
Per-transaction and daily ceilings with a lazy midnight reset
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Callable, Optional, Tuple, Union

import structlog

from arcade.config import AgentConfig

logger = structlog.get_logger()

Amount = Union[Decimal, int, float, str]


def to_decimal(amount: Amount) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))


@dataclass(frozen=True)
class PolicyDecision:
    allowed: bool
    reason: Optional[str] = None


class ReservationState(str, Enum):
    PENDING = "pending"
    COMMITTED = "committed"
    RELEASED = "released"


class Reservation:
    """Amount held against the daily ceiling while a payment is in flight"""

    def __init__(self, policy: "SpendingPolicy", amount: Decimal):
        self.policy = policy
        self.amount = amount
        self.state = ReservationState.PENDING

    def commit(self) -> None:
        if self.state is not ReservationState.PENDING:
            return
        self.policy._reserved -= self.amount
        self.policy.record_spend(self.amount)
        self.state = ReservationState.COMMITTED

    def release(self) -> None:
        if self.state is not ReservationState.PENDING:
            return
        self.policy._reserved -= self.amount
        self.state = ReservationState.RELEASED
        logger.debug("spend_reservation_released", amount=str(self.amount))


class SpendingPolicy:
    """
    Stateful spending guard for one agent.

    can_pay() is a dry run. A payment that goes ahead must either call
    record_spend() afterwards or, when the check and the payment are
    separated by an await, take a Reservation with reserve() so concurrent
    attempts see the held amount.
    """

    def __init__(
        self,
        max_per_transaction: Amount,
        max_per_day: Amount,
        auto_pay_enabled: bool = True,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.max_per_transaction = to_decimal(max_per_transaction)
        self.max_per_day = to_decimal(max_per_day)
        if self.max_per_transaction < 0 or self.max_per_day < 0:
            raise ValueError("spending limits must be non-negative")
        self.auto_pay_enabled = auto_pay_enabled
        self._clock = clock
        self.daily_spent = Decimal("0")
        self.last_reset = clock()
        self._reserved = Decimal("0")

    @classmethod
    def from_config(cls, config: AgentConfig, clock: Callable[[], datetime] = datetime.now) -> "SpendingPolicy":
        return cls(
            max_per_transaction=config.max_payment_per_tx_decimal,
            max_per_day=config.daily_spending_limit_decimal,
            auto_pay_enabled=config.auto_pay_enabled,
            clock=clock,
        )

    @property
    def reserved(self) -> Decimal:
        return self._reserved

    def _reset_if_new_day(self) -> None:
        now = self._clock()
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        if self.last_reset < midnight:
            logger.info(
                "daily_spending_reset",
                previous_spent=str(self.daily_spent),
                last_reset=self.last_reset.isoformat(),
            )
            self.daily_spent = Decimal("0")
            self.last_reset = now

    def can_pay(self, amount: Amount, enforce_limits: bool = True) -> PolicyDecision:
        """Check amount against the rules without changing spend totals"""
        amount = to_decimal(amount)
        self._reset_if_new_day()

        if not self.auto_pay_enabled:
            return PolicyDecision(False, "Auto-pay disabled")

        if not enforce_limits:
            return PolicyDecision(True)

        if amount > self.max_per_transaction:
            return PolicyDecision(
                False, f"Amount exceeds max payment per tx ({self.max_per_transaction})"
            )

        if self.daily_spent + self._reserved + amount > self.max_per_day:
            return PolicyDecision(False, "Daily spending limit would be exceeded")

        return PolicyDecision(True)

    def reserve(
        self, amount: Amount, enforce_limits: bool = True
    ) -> Tuple[PolicyDecision, Optional[Reservation]]:
        """Check and hold amount in one step; no reservation when denied"""
        amount = to_decimal(amount)
        decision = self.can_pay(amount, enforce_limits=enforce_limits)
        if not decision.allowed:
            return decision, None
        self._reserved += amount
        return decision, Reservation(self, amount)

    def record_spend(self, amount: Amount) -> None:
        amount = to_decimal(amount)
        self._reset_if_new_day()
        self.daily_spent += amount
        logger.info(
            "spend_recorded",
            amount=str(amount),
            daily_spent=str(self.daily_spent),
            daily_limit=str(self.max_per_day),
        )

    def snapshot(self) -> dict:
        return {
            "auto_pay_enabled": self.auto_pay_enabled,
            "max_per_transaction": str(self.max_per_transaction),
            "max_per_day": str(self.max_per_day),
            "daily_spent": str(self.daily_spent),
            "reserved": str(self._reserved),
            "last_reset": self.last_reset.isoformat(),
        }
