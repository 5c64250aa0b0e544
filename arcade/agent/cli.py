#!/usr/bin/env python3
"""
arcade-agent: command-line driver for the auto-pay agent

Usage:
    python -m arcade.agent run
    python -m arcade.agent check 0.03 [--json]
    python -m arcade.agent sign <recipient> <amount_units> [--json]
    python -m arcade.agent status [--json]
"""

import argparse
import asyncio
import json as json_lib
import signal
import sys
from decimal import Decimal, InvalidOperation
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
import structlog

from arcade.agent.agent import PaymentAgent
from arcade.agent.policy import SpendingPolicy
from arcade.config import ConfigurationError, get_agent_config
from arcade.log import configure_logging
from arcade.payments.authorization import AuthorizationError, AuthorizationSigner

logger = structlog.get_logger()
console = Console()


class AgentCLI:
    """Thin wrapper turning agent operations into console output"""

    def __init__(self, json_output: bool = False):
        self.config = get_agent_config()
        self.json_output = json_output

    def _output(self, data: dict, human_message=None):
        """Output data in JSON or human-readable format"""
        if self.json_output:
            print(json_lib.dumps(data, indent=2, default=str))
        elif human_message is not None:
            console.print(human_message)

    def check(self, amount: str) -> int:
        """Dry-run the spending rules for an amount in whole tokens"""
        try:
            value = Decimal(amount)
        except InvalidOperation:
            self._output({"error": f"Invalid amount: {amount}"}, f"[red]Invalid amount: {amount}[/red]")
            return 2

        decision = SpendingPolicy.from_config(self.config).can_pay(value)
        if decision.allowed:
            message = f"[green]✓ {value} USDC would be approved[/green]"
        else:
            message = f"[red]✗ {value} USDC denied: {decision.reason}[/red]"
        self._output({"allowed": decision.allowed, "reason": decision.reason}, message)
        return 0

    def sign(self, recipient: str, amount: int) -> int:
        """Sign one authorization and print the payment header"""
        signer = AuthorizationSigner(
            private_key=self.config.require_private_key(),
            chain_id=self.config.chain_id,
            verifying_contract=self.config.usdc_address,
            token_name=self.config.token_name,
            token_version=self.config.token_version,
            timeout_seconds=self.config.authorization_timeout_seconds,
            network=self.config.network,
        )
        signed = signer.authorize(recipient, amount)
        header = (
            signed.to_payload_header()
            if self.config.payment_header_format == "payload"
            else signed.to_header()
        )
        self._output(
            {
                "header": header,
                "signature": signed.signature,
                "authorization": signed.authorization.to_message(),
            },
            Panel(
                f"[bold]From:[/bold] {signed.authorization.from_address}\n"
                f"[bold]To:[/bold] {signed.authorization.to}\n"
                f"[bold]Value:[/bold] {signed.authorization.value}\n"
                f"[bold]Valid before:[/bold] {signed.authorization.valid_before}\n"
                f"[bold]Nonce:[/bold] {signed.authorization.nonce}\n\n"
                f"[bold]X-Payment:[/bold] [cyan]{header}[/cyan]",
                title="Signed authorization",
                border_style="green",
            ),
        )
        return 0

    def status(self) -> int:
        """Show wallet address and spending rules"""
        address = AuthorizationSigner(
            private_key=self.config.require_private_key(),
            chain_id=self.config.chain_id,
            verifying_contract=self.config.usdc_address,
        ).address
        policy = SpendingPolicy.from_config(self.config)

        if self.json_output:
            self._output({"address": address, "ai_mode": self.config.ai_mode, **policy.snapshot()})
            return 0

        table = Table(title="Auto-Pay Agent", show_header=True, header_style="bold magenta")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="white")
        table.add_row("Address", address)
        table.add_row("Chain ID", str(self.config.chain_id))
        table.add_row("USDC contract", self.config.usdc_address)
        table.add_row("Backend", self.config.backend_url)
        table.add_row("Auto-pay enabled", str(policy.auto_pay_enabled))
        table.add_row("Max per tx", f"{policy.max_per_transaction} USDC")
        table.add_row("Daily limit", f"{policy.max_per_day} USDC")
        table.add_row("AI mode", self.config.ai_mode)
        console.print(table)
        return 0

    def run(self) -> int:
        """Run the polling loop until interrupted"""
        agent = PaymentAgent(self.config)

        async def run_agent():
            loop = asyncio.get_running_loop()

            def request_stop():
                logger.info("shutdown_signal_received")
                agent.running = False

            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, request_stop)
            try:
                await agent.start()
            finally:
                await agent.stop()

        asyncio.run(run_agent())
        return 0


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="arcade-agent",
        description="Gasless Arcade auto-pay agent",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  arcade-agent run
  arcade-agent check 0.03
  arcade-agent sign 0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb1 10000 --json
  arcade-agent status
        """
    )

    parser.add_argument("--json", "-j", action="store_true", help="Output in JSON format")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("run", help="Run the agent loop")

    check_parser = subparsers.add_parser("check", help="Dry-run the spending rules")
    check_parser.add_argument("amount", help="Amount in whole tokens, e.g. 0.03")

    sign_parser = subparsers.add_parser("sign", help="Sign a transfer authorization")
    sign_parser.add_argument("recipient", help="Recipient address")
    sign_parser.add_argument("amount", type=int, help="Amount in smallest unit")

    subparsers.add_parser("status", help="Show agent address and rules")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    config = get_agent_config()
    configure_logging(config.log_level, config.log_format)
    cli = AgentCLI(json_output=args.json)

    try:
        if args.command == "run":
            return cli.run()
        if args.command == "check":
            return cli.check(args.amount)
        if args.command == "sign":
            return cli.sign(args.recipient, args.amount)
        if args.command == "status":
            return cli.status()
    except (ConfigurationError, AuthorizationError) as e:
        logger.error("agent_configuration_invalid", error=str(e))
        cli._output({"error": str(e)}, f"[red]{e}[/red]")
        return 1

    return 1


if __name__ == "__main__":
    sys.exit(main())
