"""
Shared server state, request dependencies and rate limiting
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address
import structlog

from arcade.config import ArcadeConfig
from arcade.game.rewards import RewardService
from arcade.game.service import GameService
from arcade.payments.authorization import build_domain
from arcade.payments.gate import PaywallGate
from arcade.payments.invoices import InvoiceStore
from arcade.payments.ledger import PaymentLedger
from arcade.payments.models import PaymentRequirements
from arcade.payments.verifier import PaymentVerifier

logger = structlog.get_logger()


def get_client_key(request: Request) -> str:
    """Get client identifier for rate limiting - uses IP address"""
    return get_remote_address(request)


def get_payer_key(request: Request) -> str:
    """Get payer address for rate limiting gated plays"""
    address = request.query_params.get("address", "")
    if address:
        return address.lower()
    return get_remote_address(request)


limiter = Limiter(key_func=get_client_key)


@dataclass
class ArcadeServices:
    """Process-wide state owned by one backend instance"""
    config: ArcadeConfig
    ledger: PaymentLedger
    invoices: InvoiceStore
    gate: PaywallGate
    game: GameService
    rewards: Optional[RewardService] = None


def build_services(config: ArcadeConfig) -> ArcadeServices:
    """Construct the paywall and game services from configuration"""
    requirements = PaymentRequirements(
        scheme="exact",
        network=config.network,
        payTo=config.pay_to_address,
        asset=config.asset_address,
        maxAmountRequired=str(config.game_fee_amount),
        maxTimeoutSeconds=config.max_timeout_seconds,
    )
    verifier = PaymentVerifier(
        strict=config.strict_payment_verification,
        domain=build_domain(config.chain_id, config.asset_address),
        pay_to=config.pay_to_address,
        amount=config.game_fee_amount,
    )
    ledger = PaymentLedger()
    invoices = InvoiceStore(
        amount=config.game_fee_amount,
        network=config.network,
        ttl_seconds=config.invoice_ttl_seconds,
        currency=config.game_fee_currency,
    )
    gate = PaywallGate(
        ledger=ledger,
        invoices=invoices,
        verifier=verifier,
        requirements=requirements,
        free_play_limit=config.free_play_limit,
    )

    rewards = None
    if config.reward_private_key:
        try:
            rewards = RewardService(
                private_key=config.reward_private_key,
                rpc_url=config.rpc_url,
                chain_id=config.chain_id,
                reward_rate=config.reward_rate,
                claim_window_seconds=config.reward_claim_window_seconds,
                testnet_mode=config.reward_testnet_mode,
            )
        except Exception as e:
            logger.error("reward_service_init_failed", error=str(e))
    else:
        logger.warning("reward_service_disabled", reason="REWARD_PRIVATE_KEY not set")

    return ArcadeServices(
        config=config,
        ledger=ledger,
        invoices=invoices,
        gate=gate,
        game=GameService(),
        rewards=rewards,
    )


def get_services(request: Request) -> ArcadeServices:
    return request.app.state.services
