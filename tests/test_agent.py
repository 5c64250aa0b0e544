"""
Tests for the auto-pay agent
"""

import asyncio
import base64
import pytest
from decimal import Decimal
from unittest.mock import MagicMock

import httpx

from arcade.agent.advisory import AIDecision, AdvisoryGate
from arcade.agent.agent import PAYMENT_HEADER, AgentState, PaymentAgent
from arcade.config import AgentConfig, ConfigurationError
from arcade.payments.models import PaymentPayload
from arcade.payments.authorization import recover_signer

from tests.factories import PaymentRequirementsFactory


class StubAdvisory:
    """Advisory gate returning a fixed decision after yielding to the loop"""

    def __init__(self, decision: AIDecision):
        self.decision = decision
        self.contexts = []

    async def evaluate(self, context):
        self.contexts.append(context)
        await asyncio.sleep(0)
        return self.decision

    async def aclose(self):
        pass


def make_agent(config, advisory=None, handler=None) -> PaymentAgent:
    transport = httpx.MockTransport(handler or (lambda r: httpx.Response(200, json={})))
    return PaymentAgent(
        config,
        advisory=advisory,
        client=httpx.AsyncClient(transport=transport),
        w3=MagicMock(),
    )


class TestAgentSetup:
    """Test construction and mode selection"""

    def test_missing_key_raises(self):
        with pytest.raises(ConfigurationError):
            make_agent(AgentConfig(agent_private_key=""))

    def test_placeholder_key_raises(self):
        with pytest.raises(ConfigurationError):
            make_agent(AgentConfig(agent_private_key="0xyour_private_key_here"))

    def test_address_from_key(self, agent_config, payer_account):
        assert make_agent(agent_config).address == payer_account.address

    def test_advisory_mode_without_key_degrades(self, agent_config):
        config = agent_config.model_copy(update={"ai_mode": "advisory", "advisory_api_key": ""})
        agent = make_agent(config)
        assert agent.ai_mode == "rules"
        assert agent.advisory is None

    def test_advisory_mode_with_key(self, agent_config):
        config = agent_config.model_copy(update={"ai_mode": "both", "advisory_api_key": "k"})
        agent = make_agent(config)
        assert agent.ai_mode == "both"
        assert isinstance(agent.advisory, AdvisoryGate)


class TestProcessPayment:
    """Test policy, advisory and signing in one attempt"""

    @pytest.mark.asyncio
    async def test_approved_payment(self, agent_config, payer_account):
        agent = make_agent(agent_config)
        requirements = PaymentRequirementsFactory(maxAmountRequired="10000")

        result = await agent.process_payment(requirements)

        assert result.success
        assert result.amount == 10_000
        assert base64.b64decode(result.header).hex() == result.signature[2:]
        assert agent.policy.daily_spent == Decimal("0.01")
        assert agent.state is AgentState.IDLE
        assert agent.payments == [result]

    @pytest.mark.asyncio
    async def test_payload_header_format(self, agent_config, payer_account):
        config = agent_config.model_copy(update={"payment_header_format": "payload"})
        agent = make_agent(config)
        requirements = PaymentRequirementsFactory(maxAmountRequired="10000")

        result = await agent.process_payment(requirements)
        payload = PaymentPayload.model_validate_json(base64.b64decode(result.header))

        assert payload.authorization.to.lower() == requirements.payTo.lower()
        assert payload.authorization.value == 10_000
        recovered = recover_signer(agent.signer.domain, payload.authorization, payload.signature)
        assert recovered == payer_account.address

    @pytest.mark.asyncio
    async def test_auto_pay_disabled(self, agent_config):
        agent = make_agent(agent_config.model_copy(update={"auto_pay_enabled": False}))
        result = await agent.process_payment(PaymentRequirementsFactory(maxAmountRequired="10000"))

        assert not result.success
        assert result.error == "Auto-pay disabled"
        assert agent.policy.daily_spent == Decimal("0")

    @pytest.mark.asyncio
    async def test_over_per_transaction_limit(self, agent_config):
        agent = make_agent(agent_config)
        result = await agent.process_payment(PaymentRequirementsFactory(maxAmountRequired="60000"))

        assert not result.success
        assert result.error == "Amount exceeds max payment per tx (0.05)"
        assert result.header is None

    @pytest.mark.asyncio
    async def test_denied_state_visible_until_next_attempt(self, agent_config):
        agent = make_agent(agent_config)

        await agent.process_payment(PaymentRequirementsFactory(maxAmountRequired="60000"))
        assert agent.status()["state"] == "denied"

        result = await agent.process_payment(PaymentRequirementsFactory(maxAmountRequired="10000"))
        assert result.success
        assert agent.status()["state"] == "idle"

    @pytest.mark.asyncio
    async def test_daily_limit_reached(self, agent_config):
        agent = make_agent(agent_config)
        agent.policy.record_spend("0.48")

        result = await agent.process_payment(PaymentRequirementsFactory(maxAmountRequired="30000"))

        assert not result.success
        assert result.error == "Daily spending limit would be exceeded"

    @pytest.mark.asyncio
    async def test_concurrent_payments_respect_daily_limit(self, agent_config):
        config = agent_config.model_copy(update={"ai_mode": "both", "advisory_api_key": "k"})
        agent = make_agent(config, advisory=StubAdvisory(AIDecision(True, "ok")))
        agent.policy.record_spend("0.45")
        requirements = PaymentRequirementsFactory(maxAmountRequired="30000")

        results = await asyncio.gather(*(agent.process_payment(requirements) for _ in range(3)))

        assert sum(r.success for r in results) == 1
        assert agent.policy.daily_spent == Decimal("0.48")
        assert agent.policy.reserved == Decimal("0")

    @pytest.mark.asyncio
    async def test_advisory_veto(self, agent_config):
        config = agent_config.model_copy(update={"ai_mode": "both", "advisory_api_key": "k"})
        advisory = StubAdvisory(AIDecision(False, "Suspicious recipient"))
        agent = make_agent(config, advisory=advisory)

        result = await agent.process_payment(PaymentRequirementsFactory(maxAmountRequired="10000"))

        assert not result.success
        assert result.error == "Suspicious recipient"
        assert agent.policy.daily_spent == Decimal("0")
        assert agent.policy.reserved == Decimal("0")
        assert advisory.contexts[0].rule_decision.allowed

    @pytest.mark.asyncio
    async def test_advisory_mode_skips_limits(self, agent_config):
        config = agent_config.model_copy(update={"ai_mode": "advisory", "advisory_api_key": "k"})
        advisory = StubAdvisory(AIDecision(True, "Fine"))
        agent = make_agent(config, advisory=advisory)

        result = await agent.process_payment(PaymentRequirementsFactory(maxAmountRequired="60000"))

        assert result.success
        assert not advisory.contexts[0].rule_decision.allowed
        assert agent.policy.daily_spent == Decimal("0.06")

    @pytest.mark.asyncio
    async def test_advisory_mode_still_honours_disabled(self, agent_config):
        config = agent_config.model_copy(
            update={"ai_mode": "advisory", "advisory_api_key": "k", "auto_pay_enabled": False}
        )
        advisory = StubAdvisory(AIDecision(True, "Fine"))
        agent = make_agent(config, advisory=advisory)

        result = await agent.process_payment(PaymentRequirementsFactory(maxAmountRequired="10000"))

        assert result.error == "Auto-pay disabled"
        assert advisory.contexts == []

    @pytest.mark.asyncio
    async def test_bad_recipient_releases_reservation(self, agent_config):
        agent = make_agent(agent_config)
        result = await agent.process_payment(PaymentRequirementsFactory(payTo="nowhere", maxAmountRequired="10000"))

        assert not result.success
        assert agent.policy.reserved == Decimal("0")
        assert agent.policy.daily_spent == Decimal("0")


class TestFetch:
    """Test paying a gated resource"""

    @pytest.mark.asyncio
    async def test_pays_and_retries_on_402(self, agent_config):
        seen = []

        def handler(request):
            seen.append(request.headers.get(PAYMENT_HEADER))
            if PAYMENT_HEADER not in request.headers:
                challenge = {
                    "error": "Payment required",
                    "message": "Premium access requires payment of 0.01 USDC",
                    "paymentRequirements": PaymentRequirementsFactory(maxAmountRequired="10000").model_dump(),
                }
                return httpx.Response(402, json=challenge)
            return httpx.Response(200, json={"allowed": True, "isPremium": True})

        agent = make_agent(agent_config, handler=handler)
        response = await agent.fetch("http://arcade.test/play", params={"address": agent.address})

        assert response.status_code == 200
        assert seen[0] is None
        assert seen[1] == agent.payments[0].header

    @pytest.mark.asyncio
    async def test_denied_payment_returns_402(self, agent_config):
        def handler(request):
            challenge = {
                "message": "Premium access requires payment of 1 USDC",
                "paymentRequirements": PaymentRequirementsFactory(maxAmountRequired="1000000").model_dump(),
            }
            return httpx.Response(402, json=challenge)

        agent = make_agent(agent_config, handler=handler)
        response = await agent.fetch("http://arcade.test/play")

        assert response.status_code == 402
        assert len(agent.payments) == 1 and not agent.payments[0].success

    @pytest.mark.asyncio
    async def test_malformed_challenge_is_not_paid(self, agent_config):
        def handler(request):
            challenge = {
                "message": "Premium access requires payment of 0.01 USDC",
                "paymentRequirements": dict(
                    PaymentRequirementsFactory().model_dump(), maxAmountRequired="0.01"
                ),
            }
            return httpx.Response(402, json=challenge)

        agent = make_agent(agent_config, handler=handler)
        response = await agent.fetch("http://arcade.test/play")

        assert response.status_code == 402
        assert agent.payments == []
        assert agent.policy.daily_spent == Decimal("0")

    @pytest.mark.asyncio
    async def test_poll_once_swallows_errors(self, agent_config):
        def handler(request):
            raise httpx.ConnectError("backend down")

        agent = make_agent(agent_config, handler=handler)
        agent.w3.eth.get_balance.side_effect = RuntimeError("rpc down")

        await agent.poll_once()

        assert agent.payments == []

    @pytest.mark.asyncio
    async def test_status(self, agent_config):
        agent = make_agent(agent_config)
        await agent.stop()
        status = agent.status()
        assert status["state"] == "idle"
        assert status["ai_mode"] == "rules"
        assert status["policy"]["max_per_day"] == "0.5"
