"""
Standalone script to inspect the current liquidation candidates and optionally liquidate them once.

Usage:
    python liquidate_once.py [chain_id]
"""

import asyncio
import logging
import sys

from dotenv import load_dotenv
load_dotenv()

from liqbot.liquidation.config_loader import load_chain_config
from liqbot.liquidation.connection import connect_to_protocol
from liqbot.liquidation.executor import get_executor
from liqbot.liquidation.liquidator import try_to_liquidate
from liqbot.liquidation.strategy import select_for_liquidation

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")
logger = logging.getLogger("liquidate_once")


async def main(chain_id=None):
    config = load_chain_config(chain_id)
    connection = await connect_to_protocol(config)

    await connection.store.poll_once()
    state = connection.store.state
    logger.info("State: %s", state.to_dict())

    riskiest_vaults = await connection.get_vaults(config.RISKIEST_VAULTS_QUERY_SIZE)
    vaults = select_for_liquidation(riskiest_vaults, state, config.MAX_VAULTS_TO_LIQUIDATE)

    if not vaults:
        logger.info("Nothing to liquidate. Exiting.")
        return

    for vault in vaults:
        logger.info("  %s (collateral ratio %s)", vault, vault.collateral_ratio(state.price))

    executor = get_executor(connection)
    if executor is None:
        logger.info("No WALLET_KEY configured; read-only. Exiting.")
        return

    answer = input(f"LIQUIDATE {len(vaults)} VAULT(S)? (y/n)")
    if answer != "y":
        logger.info("Exiting.")
        return

    outcome = await try_to_liquidate(connection, executor)
    logger.info("Outcome: %s", outcome.name)


if __name__ == "__main__":
    asyncio.run(main(int(sys.argv[1]) if len(sys.argv) > 1 else None))
