"""
Gasless Arcade Auto-Pay Agent
Answers x402 challenges with signed EIP-3009 authorizations within a spending policy
"""

import asyncio
from decimal import Decimal
from enum import Enum
from typing import List, Optional

import httpx
from web3 import Web3
import structlog

from arcade.agent.advisory import AdvisoryGate, PaymentContext
from arcade.agent.policy import SpendingPolicy
from arcade.config import AgentConfig, get_agent_config
from arcade.payments.authorization import AuthorizationError, AuthorizationSigner
from arcade.payments.models import PaymentRequiredResponse, PaymentRequirements, PaymentResult

logger = structlog.get_logger()

PAYMENT_HEADER = "X-Payment"


class AgentState(str, Enum):
    """Where the agent is in a payment attempt"""
    IDLE = "idle"
    CHECKING_POLICY = "checking_policy"
    CHECKING_ADVISORY = "checking_advisory"
    SIGNING = "signing"
    RECORDING = "recording"
    DENIED = "denied"


class PaymentAgent:
    """
    Autonomous payer that:
    1. Checks each charge against its SpendingPolicy
    2. Optionally asks the AdvisoryGate for a second opinion
    3. Signs an EIP-3009 authorization for approved charges
    4. Records the spend and hands back the payment header
    5. Polls its watched resource, answering 402s as they appear
    """

    def __init__(
        self,
        config: Optional[AgentConfig] = None,
        policy: Optional[SpendingPolicy] = None,
        advisory: Optional[AdvisoryGate] = None,
        signer: Optional[AuthorizationSigner] = None,
        client: Optional[httpx.AsyncClient] = None,
        w3: Optional[Web3] = None,
    ):
        self.config = config or get_agent_config()

        if signer is None:
            signer = AuthorizationSigner(
                private_key=self.config.require_private_key(),
                chain_id=self.config.chain_id,
                verifying_contract=self.config.usdc_address,
                token_name=self.config.token_name,
                token_version=self.config.token_version,
                timeout_seconds=self.config.authorization_timeout_seconds,
                network=self.config.network,
            )
        self.signer = signer
        self.address = signer.address
        self.policy = policy or SpendingPolicy.from_config(self.config)

        self.ai_mode = self.config.ai_mode
        if self.ai_mode != "rules" and advisory is None and not self.config.advisory_api_key:
            logger.warning(
                "advisory_credentials_missing",
                requested_mode=self.ai_mode,
                fallback_mode="rules",
            )
            self.ai_mode = "rules"
        if self.ai_mode != "rules" and advisory is None:
            advisory = AdvisoryGate.from_config(self.config, self.policy)
        self.advisory = advisory if self.ai_mode != "rules" else None

        self.client = client or httpx.AsyncClient(timeout=30.0)
        self.w3 = w3 or Web3(Web3.HTTPProvider(self.config.rpc_url))
        self.state = AgentState.IDLE
        self.running = False
        self.payments: List[PaymentResult] = []

    def _to_tokens(self, amount: int) -> Decimal:
        return Decimal(amount) / Decimal(10 ** self.config.token_decimals)

    def _deny(self, amount: int, reason: Optional[str]) -> PaymentResult:
        """Record a refused attempt; the state stays DENIED until the next one starts"""
        self.state = AgentState.DENIED
        logger.info("payment_denied", amount=amount, reason=reason)
        result = PaymentResult(success=False, amount=amount, error=reason)
        self.payments.append(result)
        return result

    async def process_payment(self, requirements: PaymentRequirements) -> PaymentResult:
        """Run one payment attempt through policy, advisory and signing"""
        amount = requirements.amount
        tokens = self._to_tokens(amount)

        logger.info(
            "payment_processing",
            amount=str(tokens),
            recipient=requirements.payTo,
            description=requirements.description,
        )

        # Check and reserve with no await in between
        self.state = AgentState.CHECKING_POLICY
        rule_decision = self.policy.can_pay(tokens)
        decision, reservation = self.policy.reserve(
            tokens, enforce_limits=self.ai_mode != "advisory"
        )
        if not decision.allowed:
            return self._deny(amount, decision.reason)

        if self.advisory is not None:
            self.state = AgentState.CHECKING_ADVISORY
            context = PaymentContext(
                amount=tokens,
                recipient=requirements.payTo,
                network=requirements.network,
                description=requirements.description or "",
                invoice_id=requirements.invoiceId,
                daily_spent=self.policy.daily_spent,
                daily_limit=self.policy.max_per_day,
                max_per_transaction=self.policy.max_per_transaction,
                rule_decision=rule_decision,
            )
            ai_decision = await self.advisory.evaluate(context)
            if not ai_decision.allowed:
                reservation.release()
                return self._deny(amount, ai_decision.reason)

        self.state = AgentState.SIGNING
        try:
            signed = self.signer.authorize(requirements.payTo, amount)
        except AuthorizationError as e:
            reservation.release()
            self.state = AgentState.IDLE
            logger.error("payment_failed", amount=amount, error=str(e))
            result = PaymentResult(success=False, amount=amount, error=str(e))
            self.payments.append(result)
            return result

        self.state = AgentState.RECORDING
        reservation.commit()
        header = (
            signed.to_payload_header()
            if self.config.payment_header_format == "payload"
            else signed.to_header()
        )
        result = PaymentResult(
            success=True,
            amount=amount,
            header=header,
            signature=signed.signature,
            nonce=signed.authorization.nonce,
        )
        self.payments.append(result)
        self.state = AgentState.IDLE

        logger.info(
            "payment_authorized",
            amount=str(tokens),
            daily_spent=str(self.policy.daily_spent),
            signature=signed.signature[:30] + "...",
        )
        return result

    async def fetch(self, url: str, params: Optional[dict] = None) -> httpx.Response:
        """GET a gated resource, paying and retrying once on a 402"""
        response = await self.client.get(url, params=params)
        if response.status_code != 402:
            return response

        try:
            challenge = PaymentRequiredResponse.model_validate(response.json())
        except ValueError as e:
            logger.warning("payment_challenge_invalid", url=url, error=str(e))
            return response

        logger.info(
            "payment_challenge_received",
            url=url,
            amount=challenge.paymentRequirements.maxAmountRequired,
            invoice_id=challenge.paymentRequirements.invoiceId,
        )

        result = await self.process_payment(challenge.paymentRequirements)
        if not result.success:
            return response

        return await self.client.get(url, params=params, headers={PAYMENT_HEADER: result.header})

    async def read_balance(self) -> int:
        return await asyncio.to_thread(self.w3.eth.get_balance, self.address)

    async def poll_once(self) -> None:
        """One tick of the agent loop; errors are logged, never raised"""
        try:
            balance = await self.read_balance()
            logger.debug("agent_listening", balance=balance)
        except Exception as e:
            logger.warning("balance_read_failed", error=str(e))

        if not self.config.watch_path:
            return

        url = f"{self.config.backend_url.rstrip('/')}{self.config.watch_path}"
        try:
            response = await self.fetch(url, params={"address": self.address})
            logger.debug("watched_resource_polled", url=url, status=response.status_code)
        except Exception as e:
            logger.warning("agent_poll_failed", url=url, error=str(e))

    async def start(self) -> None:
        """Run the polling loop until stop() is called"""
        logger.info(
            "agent_starting",
            address=self.address,
            chain_id=self.config.chain_id,
            backend_url=self.config.backend_url,
            ai_mode=self.ai_mode,
            **self.policy.snapshot(),
        )

        try:
            balance = await self.read_balance()
            if balance == 0:
                logger.warning("agent_balance_zero", address=self.address)
        except Exception as e:
            logger.warning("balance_read_failed", error=str(e))

        self.running = True
        while self.running:
            await self.poll_once()
            await asyncio.sleep(self.config.poll_interval_seconds)

    async def stop(self) -> None:
        """Stop the loop and release HTTP clients"""
        logger.info("agent_stopping", address=self.address)
        self.running = False
        await self.client.aclose()
        if self.advisory is not None:
            await self.advisory.aclose()
        logger.info("agent_stopped")

    def status(self) -> dict:
        return {
            "address": self.address,
            "state": self.state.value,
            "ai_mode": self.ai_mode,
            "payments": len(self.payments),
            "policy": self.policy.snapshot(),
        }
