#!/usr/bin/env python3
"""Bridge deposit script.

Lists an owner's bridgeable balances on an external chain and, optionally,
asks the relayer to sweep them into a platform account.

Usage:
    python scripts/bridge_deposit.py --chain eth --owner 0x... --platform swth1... [--deposit]

Options:
    --chain     External chain (eth, bsc)
    --owner     Owner address on the external chain
    --platform  Platform (bech32) address to credit
    --denom     Only consider these denoms (repeatable)
    --deposit   Submit deposits (needs OWNER_PRIVATE_KEY in the environment)
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from swthbridge.api import TradeHubAPIClient
from swthbridge.bridge import DepositFlowCoordinator, DepositStatus, get_bridge_client, make_local_sign_callback
from swthbridge.config import configure_logging, get_settings
from swthbridge.network import StaticConfigProvider
from swthbridge.tokens import TokenRegistry

logger = logging.getLogger(__name__)


async def main() -> int:
    parser = argparse.ArgumentParser(description="Deposit external-chain balances into the platform")
    parser.add_argument("--chain", required=True)
    parser.add_argument("--owner", required=True)
    parser.add_argument("--platform", required=True)
    parser.add_argument("--denom", action="append", dest="denoms")
    parser.add_argument("--deposit", action="store_true")
    args = parser.parse_args()

    configure_logging()
    settings = get_settings()
    logger.info(f"Settings: {settings.get_safe_dict()}")

    provider = StaticConfigProvider(settings.build_network_config())
    config = provider.get_config()
    if not config.rest_url:
        print(f"No REST URL for {config.network.value}; set NETWORK_CONFIG_FILE or REST_URL")
        return 1

    api = TradeHubAPIClient(config.rest_url, timeout=settings.http_timeout)
    registry = TokenRegistry(api)
    await registry.initialize()

    client = get_bridge_client(args.chain, provider)
    balances = await client.get_external_balances(registry.tokens.values(), args.owner, args.denoms)
    balances = [b for b in balances if b.external_balance > 0]

    if not balances:
        print("No bridgeable balances found")
        return 0

    for item in balances:
        decimals = registry.get_decimals(item.denom) or 0
        human = item.external_balance.scaleb(-decimals)
        usd = registry.get_usd_value(item.denom)
        usd_str = f" (~${human * usd:,.2f})" if usd is not None else ""
        print(f"  {registry.get_token_name(item.denom):<12} {human}{usd_str}")

    if not args.deposit:
        return 0

    private_key = os.getenv("OWNER_PRIVATE_KEY")
    if not private_key:
        logger.error("OWNER_PRIVATE_KEY is not set")
        return 1

    account = client.get_eth_signer(private_key)
    coordinator = DepositFlowCoordinator({client.blockchain: client})
    sign = make_local_sign_callback(account)

    failures = 0
    for item in balances:
        result = await coordinator.deposit(item, args.platform, args.owner, sign)
        print(f"  {item.denom}: {result.status.value} {result.message}")
        if result.status == DepositStatus.REJECTED:
            failures += 1

    return 1 if failures else 0


if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
