"""
Score rewards paid in the chain's native token
"""

import asyncio
import time
import uuid
from typing import Callable, List, Optional, Set, Tuple

from eth_account import Account
from pydantic import BaseModel, Field
from web3 import Web3
import structlog

from arcade.payments.models import normalize_address

logger = structlog.get_logger()

NATIVE_DECIMALS = 18
REWARD_GAME_MODE = "classic"


class RewardClaim(BaseModel):
    """Body of POST /claim-reward"""
    address: str = Field(min_length=1)
    score: int = Field(ge=0)
    gameMode: str = Field(min_length=1)


class RewardRecord(BaseModel):
    address: str
    score: int
    reward_amount: int
    game_mode: str
    tx_hash: str
    timestamp: float


class RewardResult(BaseModel):
    success: bool
    reward_amount: int = 0
    tx_hash: Optional[str] = None
    error: Optional[str] = None

    @property
    def reward_amount_formatted(self) -> str:
        return str(self.reward_amount / 10 ** NATIVE_DECIMALS)


class RewardService:
    """
    Pays players for classic-mode scores.

    Supports two modes:
    - testnet_mode=True: Simulate transfers (check balance, log, fake tx hash)
    - testnet_mode=False: Send a real native-token transfer from the reward wallet
    """

    def __init__(
        self,
        private_key: str,
        rpc_url: str,
        chain_id: int,
        reward_rate: int = 100,
        claim_window_seconds: int = 300,
        testnet_mode: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        self.account = Account.from_key(private_key)
        self.address = self.account.address
        self.w3 = Web3(Web3.HTTPProvider(rpc_url))
        self.chain_id = chain_id
        self.reward_rate = reward_rate
        self.claim_window_seconds = claim_window_seconds
        self.testnet_mode = testnet_mode
        self._clock = clock
        self._rewards: List[RewardRecord] = []
        self._pending: Set[Tuple[str, int, str]] = set()

        logger.info(
            "reward_service_initialized",
            wallet=self.address,
            mode="testnet" if testnet_mode else "production",
        )

    def calculate_reward(self, score: int) -> int:
        """Whole tokens earned for score, in wei"""
        return (score // self.reward_rate) * 10 ** NATIVE_DECIMALS

    def _recently_claimed(self, address: str, score: int, game_mode: str) -> bool:
        cutoff = self._clock() - self.claim_window_seconds
        return any(
            r.address == address and r.score == score and r.game_mode == game_mode
            and r.timestamp >= cutoff
            for r in self._rewards
        )

    async def send_reward(self, address: str, score: int, game_mode: str) -> RewardResult:
        if game_mode != REWARD_GAME_MODE or score < self.reward_rate:
            return RewardResult(
                success=False,
                error=f"Rewards only available for {REWARD_GAME_MODE} mode with score >= {self.reward_rate}",
            )

        player = normalize_address(address)
        reward_amount = self.calculate_reward(score)

        claim_key = (player, score, game_mode)
        if claim_key in self._pending or self._recently_claimed(player, score, game_mode):
            return RewardResult(
                success=False,
                reward_amount=reward_amount,
                error="Reward already claimed for this game session",
            )

        # Held until the claim is recorded or abandoned
        self._pending.add(claim_key)
        try:
            return await self._pay(player, score, game_mode, reward_amount)
        finally:
            self._pending.discard(claim_key)

    async def _pay(self, player: str, score: int, game_mode: str, reward_amount: int) -> RewardResult:
        try:
            balance = await asyncio.to_thread(self.w3.eth.get_balance, self.address)
            if balance < reward_amount:
                return RewardResult(
                    success=False,
                    reward_amount=reward_amount,
                    error="Insufficient funds in reward wallet",
                )

            if self.testnet_mode:
                tx_hash = f"0xsim_{uuid.uuid4().hex}"
                logger.info(
                    "reward_transfer_simulated",
                    to_address=player,
                    amount=reward_amount,
                    mode="testnet",
                )
            else:
                tx_hash = await asyncio.to_thread(self._transfer, player, reward_amount)

        except Exception as e:
            logger.error("reward_transfer_failed", to_address=player, error=str(e))
            return RewardResult(success=False, reward_amount=reward_amount, error=str(e))

        self._rewards.append(
            RewardRecord(
                address=player,
                score=score,
                reward_amount=reward_amount,
                game_mode=game_mode,
                tx_hash=tx_hash,
                timestamp=self._clock(),
            )
        )
        return RewardResult(success=True, reward_amount=reward_amount, tx_hash=tx_hash)

    def _transfer(self, to_address: str, amount: int) -> str:
        tx = {
            "to": Web3.to_checksum_address(to_address),
            "value": amount,
            "nonce": self.w3.eth.get_transaction_count(self.address),
            "gas": 21000,
            "gasPrice": self.w3.eth.gas_price,
            "chainId": self.chain_id,
        }
        signed_tx = self.w3.eth.account.sign_transaction(tx, self.account.key)
        tx_hash = self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)

        logger.info("reward_transfer_sent", tx_hash=tx_hash.hex(), to_address=to_address, amount=amount)

        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=120)
        if receipt.status != 1:
            raise RuntimeError("Reward transaction reverted on-chain")
        return tx_hash.hex()

    def get_reward_history(self, address: str) -> List[RewardRecord]:
        player = normalize_address(address)
        return [r for r in self._rewards if r.address == player]
