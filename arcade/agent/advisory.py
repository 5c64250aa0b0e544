"""
AI advisory gate for agent payments
One chat-completion request per payment, with deterministic fallbacks
"""

import asyncio
import json
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Union

import httpx
import structlog

from arcade.agent.policy import PolicyDecision, SpendingPolicy
from arcade.config import AgentConfig

logger = structlog.get_logger()

SYSTEM_INSTRUCTION = "You are a payment security agent. Always respond with valid JSON only."

TEXT_FALLBACK_REASON = "AI decision (parsed from text)"


@dataclass(frozen=True)
class AIDecision:
    allowed: bool
    reason: str

    @classmethod
    def from_policy(cls, decision: PolicyDecision) -> "AIDecision":
        return cls(
            allowed=decision.allowed,
            reason=decision.reason or ("Rule check passed" if decision.allowed else "Rule check failed"),
        )


@dataclass(frozen=True)
class Parsed:
    decision: AIDecision


@dataclass(frozen=True)
class Unparseable:
    raw_text: str


ParseResult = Union[Parsed, Unparseable]


@dataclass
class PaymentContext:
    """What the advisory model is asked to judge"""
    amount: Decimal
    recipient: str
    network: str
    description: str = ""
    invoice_id: Optional[str] = None
    currency: str = "USDC"
    daily_spent: Decimal = Decimal("0")
    daily_limit: Decimal = Decimal("0")
    max_per_transaction: Decimal = Decimal("0")
    rule_decision: Optional[PolicyDecision] = None


def parse_advisory_response(text: str) -> ParseResult:
    """Find the first JSON object in text and read allowed/reason from it"""
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            obj, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        if isinstance(obj, dict):
            return Parsed(
                AIDecision(
                    allowed=obj.get("allowed") is True,
                    reason=str(obj.get("reason") or "AI evaluation"),
                )
            )
        start = text.find("{", start + 1)
    return Unparseable(text)


def keyword_fallback(text: str) -> AIDecision:
    """Best-effort reading of a free-text answer"""
    lowered = text.lower()
    return AIDecision(
        allowed="allowed" in lowered or "approve" in lowered,
        reason=TEXT_FALLBACK_REASON,
    )


def build_messages(context: PaymentContext) -> List[dict]:
    prompt = f"""You are an AI payment agent for a blockchain gaming platform. Evaluate whether to approve this payment request.

Payment Details:
- Amount: {context.amount} {context.currency}
- Invoice ID: {context.invoice_id or "n/a"}
- Description: {context.description or "n/a"}
- Recipient: {context.recipient or "Unknown"}
- Network: {context.network}
- Daily spending so far: {context.daily_spent:.4f} {context.currency}
- Daily limit: {context.daily_limit} {context.currency}
- Max per transaction: {context.max_per_transaction} {context.currency}

Rules:
1. Amount must be reasonable for gaming (typically 0.01-0.05 {context.currency})
2. Daily spending should not exceed limits
3. Only approve legitimate gaming payments
4. Reject suspicious or unusually large amounts

Respond with ONLY a JSON object in this exact format:
{{
  "allowed": true or false,
  "reason": "brief explanation"
}}"""
    return [
        {"role": "system", "content": SYSTEM_INSTRUCTION},
        {"role": "user", "content": prompt},
    ]


class CompletionClient:
    """Minimal client for an OpenAI-compatible chat-completions endpoint"""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str,
        temperature: float = 0.3,
        max_tokens: int = 200,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout,
            transport=transport,
        )

    async def complete(self, messages: List[dict]) -> str:
        response = await self.client.post(
            "/chat/completions",
            json={
                "model": self.model,
                "messages": messages,
                "temperature": self.temperature,
                "max_tokens": self.max_tokens,
            },
        )
        response.raise_for_status()
        data = response.json()
        return data["choices"][0]["message"]["content"] or ""

    async def aclose(self) -> None:
        await self.client.aclose()


class AdvisoryGate:
    """
    Second opinion on a payment from a text-generation model.

    evaluate() always returns an AIDecision: the model's JSON answer, a
    keyword reading of its free text, or, when the call fails or times out,
    the rule-based SpendingPolicy decision.
    """

    def __init__(
        self,
        client: Optional[CompletionClient],
        policy: SpendingPolicy,
        timeout_seconds: float = 10.0,
    ):
        self.client = client
        self.policy = policy
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_config(cls, config: AgentConfig, policy: SpendingPolicy) -> "AdvisoryGate":
        client = None
        if config.advisory_api_key:
            client = CompletionClient(
                api_key=config.advisory_api_key,
                base_url=config.advisory_base_url,
                model=config.advisory_model,
                temperature=config.advisory_temperature,
                max_tokens=config.advisory_max_tokens,
                timeout=config.advisory_timeout_seconds,
            )
        return cls(client, policy, timeout_seconds=config.advisory_timeout_seconds)

    def _rule_fallback(self, context: PaymentContext) -> AIDecision:
        decision = context.rule_decision or self.policy.can_pay(context.amount)
        return AIDecision.from_policy(decision)

    async def evaluate(self, context: PaymentContext) -> AIDecision:
        if self.client is None:
            logger.warning("advisory_client_unavailable", fallback="rules")
            return self._rule_fallback(context)

        try:
            text = await asyncio.wait_for(
                self.client.complete(build_messages(context)),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("advisory_timeout", timeout=self.timeout_seconds, fallback="rules")
            return self._rule_fallback(context)
        except Exception as e:
            logger.warning("advisory_request_failed", error=str(e), fallback="rules")
            return self._rule_fallback(context)

        result = parse_advisory_response(text)
        if isinstance(result, Parsed):
            decision = result.decision
        else:
            logger.warning("advisory_response_unparseable", response=result.raw_text[:200])
            decision = keyword_fallback(result.raw_text)

        logger.info(
            "advisory_decision",
            allowed=decision.allowed,
            reason=decision.reason,
            amount=str(context.amount),
        )
        return decision

    async def aclose(self) -> None:
        if self.client is not None:
            await self.client.aclose()
