"""
Auto-pay agent for Gasless Arcade
Spending policy, AI advisory gate and the payment loop
"""

from arcade.agent.policy import SpendingPolicy, PolicyDecision, Reservation
from arcade.agent.advisory import (
    AdvisoryGate,
    AIDecision,
    CompletionClient,
    PaymentContext,
    Parsed,
    Unparseable,
    parse_advisory_response,
    keyword_fallback,
)
from arcade.agent.agent import PaymentAgent, AgentState

__all__ = [
    "SpendingPolicy",
    "PolicyDecision",
    "Reservation",
    "AdvisoryGate",
    "AIDecision",
    "CompletionClient",
    "PaymentContext",
    "Parsed",
    "Unparseable",
    "parse_advisory_response",
    "keyword_fallback",
    "PaymentAgent",
    "AgentState",
]
