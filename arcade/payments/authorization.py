"""
EIP-3009 transfer authorizations
Builds EIP-712 typed data and signs it with the payer's key
"""

import secrets
import time
from typing import Callable, Optional

from eth_account import Account
from eth_account.messages import encode_typed_data
from web3 import Web3
import structlog

from arcade.payments.models import SignedAuthorization, TransferAuthorization

logger = structlog.get_logger()

NONCE_BYTES = 32

EIP712_DOMAIN_TYPE = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

TRANSFER_WITH_AUTHORIZATION_TYPE = [
    {"name": "from", "type": "address"},
    {"name": "to", "type": "address"},
    {"name": "value", "type": "uint256"},
    {"name": "validAfter", "type": "uint256"},
    {"name": "validBefore", "type": "uint256"},
    {"name": "nonce", "type": "bytes32"},
]


class AuthorizationError(Exception):
    """Key material is invalid or the signing primitive failed"""


def generate_nonce() -> str:
    """Fresh random bytes32 nonce as 0x-prefixed hex"""
    return "0x" + secrets.token_bytes(NONCE_BYTES).hex()


def nonce_bytes(nonce: str) -> bytes:
    """Decode a hex nonce, rejecting anything that is not exactly 32 bytes"""
    raw = bytes.fromhex(nonce.removeprefix("0x"))
    if len(raw) != NONCE_BYTES:
        raise ValueError(f"nonce must be {NONCE_BYTES} bytes, got {len(raw)}")
    return raw


def build_domain(
    chain_id: int,
    verifying_contract: str,
    name: str = "USD Coin",
    version: str = "2",
) -> dict:
    """EIP-712 domain binding a signature to one token contract on one chain"""
    return {
        "name": name,
        "version": version,
        "chainId": chain_id,
        "verifyingContract": Web3.to_checksum_address(verifying_contract),
    }


def build_typed_data(domain: dict, authorization: TransferAuthorization) -> dict:
    """Create EIP-712 typed data for a TransferWithAuthorization message"""
    return {
        "types": {
            "EIP712Domain": EIP712_DOMAIN_TYPE,
            "TransferWithAuthorization": TRANSFER_WITH_AUTHORIZATION_TYPE,
        },
        "primaryType": "TransferWithAuthorization",
        "domain": domain,
        "message": {
            "from": Web3.to_checksum_address(authorization.from_address),
            "to": Web3.to_checksum_address(authorization.to),
            "value": authorization.value,
            "validAfter": authorization.valid_after,
            "validBefore": authorization.valid_before,
            "nonce": nonce_bytes(authorization.nonce),
        },
    }


def recover_signer(domain: dict, authorization: TransferAuthorization, signature: str) -> str:
    """Recover the address that signed authorization under domain"""
    encoded = encode_typed_data(full_message=build_typed_data(domain, authorization))
    return Account.recover_message(encoded, signature=signature)


class AuthorizationSigner:
    """
    Signs EIP-3009 TransferWithAuthorization messages for one wallet.

    Each call produces a new random nonce and a validity window of
    [valid_after, now + timeout_seconds). Nothing is stored; replay
    protection is the verifier's job.
    """

    def __init__(
        self,
        private_key: str,
        chain_id: int,
        verifying_contract: str,
        token_name: str = "USD Coin",
        token_version: str = "2",
        timeout_seconds: int = 300,
        network: str = "cronos-testnet",
        clock: Callable[[], float] = time.time,
    ):
        try:
            self.account = Account.from_key(private_key)
        except Exception as e:
            raise AuthorizationError(f"Invalid private key: {e}") from e

        if timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {timeout_seconds}")

        self.address = self.account.address
        self.domain = build_domain(chain_id, verifying_contract, token_name, token_version)
        self.timeout_seconds = timeout_seconds
        self.network = network
        self._clock = clock

    def build_authorization(
        self,
        recipient: str,
        amount: int,
        nonce: Optional[str] = None,
        valid_after: int = 0,
    ) -> TransferAuthorization:
        now = int(self._clock())
        return TransferAuthorization(
            from_address=self.address,
            to=Web3.to_checksum_address(recipient),
            value=int(amount),
            valid_after=valid_after,
            valid_before=now + self.timeout_seconds,
            nonce=nonce or generate_nonce(),
        )

    def sign(self, authorization: TransferAuthorization) -> SignedAuthorization:
        """Sign a prepared authorization"""
        try:
            encoded = encode_typed_data(
                full_message=build_typed_data(self.domain, authorization)
            )
            signed = self.account.sign_message(encoded)
        except Exception as e:
            logger.error("authorization_signing_failed", error=str(e))
            raise AuthorizationError(f"Signing failed: {e}") from e

        return SignedAuthorization(
            authorization=authorization,
            signature="0x" + bytes(signed.signature).hex(),
            network=self.network,
        )

    def authorize(self, recipient: str, amount: int) -> SignedAuthorization:
        """Build and sign a fresh authorization paying amount to recipient"""
        try:
            authorization = self.build_authorization(recipient, amount)
        except ValueError as e:
            raise AuthorizationError(f"Invalid authorization fields: {e}") from e

        signed = self.sign(authorization)
        logger.info(
            "authorization_signed",
            payer=self.address,
            recipient=authorization.to,
            value=authorization.value,
            valid_before=authorization.valid_before,
            signature=signed.signature[:18] + "...",
        )
        return signed
