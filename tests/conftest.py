"""
Pytest configuration and shared fixtures
"""

import pytest
import structlog
from fastapi.testclient import TestClient
from eth_account import Account

from arcade.config import AgentConfig, ArcadeConfig
from arcade.payments.authorization import AuthorizationSigner
from arcade.server.app import create_app
from arcade.server.dependencies import limiter

USDC_ADDRESS = "0xc21223249CA28397B4B6541dfFaEcC539BfF0c59"
CHAIN_ID = 338
GAME_FEE = 10_000


@pytest.fixture
def test_account():
    """Create a test Ethereum account"""
    return Account.create()


@pytest.fixture
def payer_account():
    """Fixed account used as the paying player"""
    return Account.from_key("0x1234567890abcdef1234567890abcdef1234567890abcdef1234567890abcdef")


@pytest.fixture
def payee_account():
    """Fixed account that receives game fees"""
    return Account.from_key("0xabcdef1234567890abcdef1234567890abcdef1234567890abcdef1234567890")


@pytest.fixture
def signer(payer_account):
    """Authorization signer for the paying player"""
    return AuthorizationSigner(
        private_key=payer_account.key,
        chain_id=CHAIN_ID,
        verifying_contract=USDC_ADDRESS,
    )


@pytest.fixture
def arcade_config(payee_account) -> ArcadeConfig:
    """Backend config with rewards disabled"""
    return ArcadeConfig(
        pay_to_address=payee_account.address,
        game_fee_amount=GAME_FEE,
        free_play_limit=3,
        reward_private_key="",
    )


@pytest.fixture
def agent_config(payer_account) -> AgentConfig:
    """Agent config with auto-pay on and the default limits"""
    return AgentConfig(
        agent_private_key="0x" + payer_account.key.hex().removeprefix("0x"),
        auto_pay_enabled=True,
        max_payment_per_tx=0.05,
        daily_spending_limit=0.50,
        ai_mode="rules",
        advisory_api_key="",
    )


@pytest.fixture
def app(arcade_config):
    """Fresh backend with its own ledger, invoices and counters"""
    return create_app(arcade_config)


@pytest.fixture
def client(app) -> TestClient:
    """Create FastAPI test client (sync)"""
    return TestClient(app)


@pytest.fixture(autouse=True)
def disable_rate_limits():
    """Rate limiter state is module-level, keep it out of the way of tests"""
    limiter.enabled = False
    yield
    limiter.enabled = True


@pytest.fixture(autouse=True)
def reset_structlog():
    """configure_logging binds the current (captured) stream, restore defaults after each test"""
    yield
    structlog.reset_defaults()
