"""
Tests for the agent command-line interface
"""

import json
import pytest

import arcade.config
from arcade.agent.cli import main

VALID_KEY = "0x" + "ab" * 32
RECIPIENT = "0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb1"


@pytest.fixture(autouse=True)
def fresh_agent_config(monkeypatch):
    """Rebuild the config singleton from the test environment"""
    monkeypatch.setattr(arcade.config, "_agent_config", None)
    monkeypatch.setenv("AUTO_PAY_ENABLED", "true")
    monkeypatch.setenv("MAX_PAYMENT_PER_TX", "0.05")
    monkeypatch.setenv("DAILY_SPENDING_LIMIT", "0.50")
    yield


def read_json(capsys) -> dict:
    return json.loads(capsys.readouterr().out)


class TestAgentCLI:
    """Test CLI commands"""

    def test_no_command(self):
        assert main([]) == 1

    def test_check_allowed(self, capsys):
        assert main(["--json", "check", "0.03"]) == 0
        assert read_json(capsys) == {"allowed": True, "reason": None}

    def test_check_denied(self, capsys):
        assert main(["--json", "check", "0.10"]) == 0
        assert read_json(capsys)["reason"] == "Amount exceeds max payment per tx (0.05)"

    def test_check_invalid_amount(self, capsys):
        assert main(["--json", "check", "lots"]) == 2

    def test_sign(self, monkeypatch, capsys):
        monkeypatch.setenv("AGENT_PRIVATE_KEY", VALID_KEY)

        assert main(["--json", "sign", RECIPIENT, "10000"]) == 0
        data = read_json(capsys)
        assert data["authorization"]["value"] == 10000
        assert data["signature"].startswith("0x")

    def test_status_without_key(self, monkeypatch, capsys):
        monkeypatch.setenv("AGENT_PRIVATE_KEY", "")

        assert main(["--json", "status"]) == 1
        assert "AGENT_PRIVATE_KEY" in read_json(capsys)["error"]

    def test_status(self, monkeypatch, capsys):
        monkeypatch.setenv("AGENT_PRIVATE_KEY", VALID_KEY)

        assert main(["--json", "status"]) == 0
        data = read_json(capsys)
        assert data["max_per_transaction"] == "0.05"
        assert data["ai_mode"] == "rules"
