"""
End-to-end paywall demo: a player burns its free plays, hits the 402,
and the auto-pay agent answers it with a signed EIP-3009 authorization.

Runs the backend in-process over an ASGI transport, so no server or RPC
node is needed. Balance reads are skipped.

    python scripts/demo_paywall_flow.py
"""

import asyncio
import sys
from pathlib import Path
from unittest.mock import MagicMock

import httpx
from eth_account import Account
from web3 import Web3

sys.path.append(str(Path(__file__).parent.parent))

from arcade.agent.agent import PaymentAgent
from arcade.config import AgentConfig, ArcadeConfig
from arcade.log import configure_logging
from arcade.server.app import create_app

BACKEND_URL = "http://arcade.test"


async def main():
    configure_logging("INFO", "text")

    payee = Account.create()
    player = Account.create()

    app = create_app(ArcadeConfig(pay_to_address=payee.address, free_play_limit=3))
    client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url=BACKEND_URL)

    agent = PaymentAgent(
        AgentConfig(
            agent_private_key=Web3.to_hex(player.key),
            backend_url=BACKEND_URL,
            auto_pay_enabled=True,
            max_payment_per_tx=0.05,
            daily_spending_limit=0.50,
        ),
        client=client,
        w3=MagicMock(),
    )

    for attempt in range(1, 6):
        response = await agent.fetch(f"{BACKEND_URL}/play", params={"address": agent.address})
        body = response.json()
        print(
            f"play {attempt}: HTTP {response.status_code} "
            f"premium={body.get('isPremium')} free_left={body.get('freePlayRemaining')}"
        )

    print("agent status:", agent.status())
    await agent.stop()


if __name__ == "__main__":
    asyncio.run(main())
