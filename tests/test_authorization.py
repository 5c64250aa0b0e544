"""
Tests for EIP-3009 authorization signing and strict verification
"""

import base64
import pytest

from eth_account import Account
from web3 import Web3

from arcade.payments.authorization import (
    AuthorizationError,
    AuthorizationSigner,
    build_typed_data,
    generate_nonce,
    recover_signer,
)
from arcade.payments.verifier import PaymentVerifier

from tests.conftest import CHAIN_ID, USDC_ADDRESS
from tests.factories import TransferAuthorizationFactory

RECIPIENT = "0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb1"


class FixedClock:
    def __init__(self, now=1_700_000_000):
        self.now = now

    def __call__(self):
        return self.now


class TestAuthorizationSigner:
    """Test typed-data signing"""

    def test_invalid_key_rejected(self):
        with pytest.raises(AuthorizationError):
            AuthorizationSigner("0xnot-a-key", CHAIN_ID, USDC_ADDRESS)

    def test_domain(self, signer):
        assert signer.domain == {
            "name": "USD Coin",
            "version": "2",
            "chainId": 338,
            "verifyingContract": Web3.to_checksum_address(USDC_ADDRESS),
        }

    def test_build_authorization_window(self, payer_account):
        signer = AuthorizationSigner(
            payer_account.key, CHAIN_ID, USDC_ADDRESS, timeout_seconds=300, clock=FixedClock()
        )
        auth = signer.build_authorization(RECIPIENT.lower(), 10_000)

        assert auth.from_address == payer_account.address
        assert auth.to.lower() == RECIPIENT.lower()
        assert auth.value == 10_000
        assert auth.valid_after == 0
        assert auth.valid_before == 1_700_000_300
        assert auth.nonce.startswith("0x") and len(auth.nonce) == 66

    def test_same_message_same_signature(self, signer):
        auth = signer.build_authorization(RECIPIENT, 10_000, nonce="0x" + "11" * 32)

        first = signer.sign(auth)
        second = signer.sign(auth)

        assert first.signature == second.signature
        assert len(first.signature_bytes()) == 65

    def test_signature_recovers_to_signer(self, signer, payer_account):
        signed = signer.authorize(RECIPIENT, 10_000)
        recovered = recover_signer(signer.domain, signed.authorization, signed.signature)
        assert recovered == payer_account.address

    def test_other_domain_recovers_elsewhere(self, signer, payer_account):
        signed = signer.authorize(RECIPIENT, 10_000)
        other = dict(signer.domain, chainId=25)
        assert recover_signer(other, signed.authorization, signed.signature) != payer_account.address

    def test_nonces_are_unique(self, signer):
        nonces = {signer.authorize(RECIPIENT, 10_000).authorization.nonce for _ in range(20)}
        assert len(nonces) == 20
        assert len({generate_nonce() for _ in range(1000)}) == 1000

    def test_header_is_raw_signature(self, signer):
        signed = signer.authorize(RECIPIENT, 10_000)
        assert base64.b64decode(signed.to_header()) == signed.signature_bytes()

    def test_typed_data_nonce_bytes(self):
        auth = TransferAuthorizationFactory(nonce="0x" + "ab" * 32)
        typed = build_typed_data({"name": "USD Coin"}, auth)
        assert typed["primaryType"] == "TransferWithAuthorization"
        assert typed["message"]["nonce"] == bytes.fromhex("ab" * 32)

    def test_invalid_recipient(self, signer):
        with pytest.raises(AuthorizationError):
            signer.authorize("not-an-address", 10_000)


class TestStrictVerification:
    """Test signer recovery, amount checks and replay protection"""

    @pytest.fixture
    def clock(self):
        return FixedClock()

    @pytest.fixture
    def strict_signer(self, payer_account, clock):
        return AuthorizationSigner(payer_account.key, CHAIN_ID, USDC_ADDRESS, clock=clock)

    @pytest.fixture
    def verifier(self, strict_signer, clock):
        return PaymentVerifier(
            strict=True,
            domain=strict_signer.domain,
            pay_to=RECIPIENT,
            amount=10_000,
            clock=clock,
        )

    def test_valid_payload_accepted(self, verifier, strict_signer, payer_account):
        header = strict_signer.authorize(RECIPIENT, 10_000).to_payload_header()
        assert verifier.verify(payer_account.address, header) == (True, None)

    def test_replayed_nonce_rejected(self, verifier, strict_signer, payer_account):
        header = strict_signer.authorize(RECIPIENT, 10_000).to_payload_header()
        assert verifier.verify(payer_account.address, header)[0]

        valid, error = verifier.verify(payer_account.address, header)
        assert not valid
        assert "nonce" in error

    def test_raw_signature_rejected(self, verifier, strict_signer, payer_account):
        header = strict_signer.authorize(RECIPIENT, 10_000).to_header()
        valid, error = verifier.verify(payer_account.address, header)
        assert not valid
        assert "payload" in error

    def test_wrong_payer_rejected(self, verifier, strict_signer):
        header = strict_signer.authorize(RECIPIENT, 10_000).to_payload_header()
        valid, _ = verifier.verify(Account.create().address, header)
        assert not valid

    def test_wrong_recipient_rejected(self, verifier, strict_signer, payer_account):
        header = strict_signer.authorize(Account.create().address, 10_000).to_payload_header()
        assert verifier.verify(payer_account.address, header) == (False, "Recipient mismatch")

    def test_short_payment_rejected(self, verifier, strict_signer, payer_account):
        header = strict_signer.authorize(RECIPIENT, 9_999).to_payload_header()
        valid, error = verifier.verify(payer_account.address, header)
        assert not valid
        assert "Insufficient amount" in error

    def test_expired_authorization_rejected(self, verifier, strict_signer, payer_account, clock):
        header = strict_signer.authorize(RECIPIENT, 10_000).to_payload_header()
        clock.now += 301
        assert verifier.verify(payer_account.address, header) == (False, "Payment authorization expired")

    def test_forged_signature_rejected(self, verifier, strict_signer, payer_account, test_account):
        forger = AuthorizationSigner(test_account.key, CHAIN_ID, USDC_ADDRESS, clock=strict_signer._clock)
        auth = strict_signer.build_authorization(RECIPIENT, 10_000)
        forged = forger.sign(auth)

        assert verifier.verify(payer_account.address, forged.to_payload_header()) == (False, "Invalid signature")

    @staticmethod
    def with_nonce(signed, nonce):
        payload = signed.to_payload()
        payload.payload["authorization"]["nonce"] = nonce
        return base64.b64encode(payload.model_dump_json().encode()).decode()

    @pytest.mark.parametrize(
        "respell",
        [
            lambda n: n.removeprefix("0x"),
            lambda n: "0x" + n[2:].upper(),
            lambda n: "0x" + " ".join(n[i:i + 2] for i in range(2, len(n), 2)),
        ],
    )
    def test_respelled_nonce_is_a_replay(self, verifier, strict_signer, payer_account, respell):
        signed = strict_signer.authorize(RECIPIENT, 10_000)
        assert verifier.verify(payer_account.address, signed.to_payload_header()) == (True, None)

        replay = self.with_nonce(signed, respell(signed.authorization.nonce))
        assert verifier.verify(payer_account.address, replay) == (
            False,
            "Payment authorization nonce already used",
        )

    @pytest.mark.parametrize("nonce", ["0x1234", "0x" + "ab" * 33, "0xnothex"])
    def test_malformed_nonce_rejected(self, verifier, strict_signer, payer_account, nonce):
        signed = strict_signer.authorize(RECIPIENT, 10_000)
        header = self.with_nonce(signed, nonce)
        assert verifier.verify(payer_account.address, header) == (False, "Malformed nonce")

    def test_signer_refuses_short_nonce(self, strict_signer):
        authorization = strict_signer.build_authorization(RECIPIENT, 10_000, nonce="0x1234")
        with pytest.raises(AuthorizationError):
            strict_signer.sign(authorization)

    def test_strict_mode_needs_domain(self):
        with pytest.raises(ValueError):
            PaymentVerifier(strict=True)
