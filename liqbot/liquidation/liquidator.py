"""
A single liquidation attempt: fetch the riskiest Vaults, select a batch and submit it.
"""

import json
import logging
from decimal import Decimal

from web3 import Web3

from .logfile import write_to_log_file
from .logging_config import SUCCESS, setup_logger
from .models import ZERO, LiquidationOutcome, LiquidationReceipt, ReceiptStatus
from .notifications import post_error_notification, post_liquidation_result_notification
from .strategy import select_for_liquidation

logger = setup_logger()

DEFAULT_MAX_VAULTS_TO_LIQUIDATE = 10
RISKIEST_VAULTS_QUERY_SIZE = 1000

# Rough gas requirements:
#  * In normal mode:
#     - using Stability Pool: 400K + n * 176K
#     - using redistribution: 377K + n * 174K
#  * In recovery mode:
#     - using Stability Pool: 415K + n * 178K
#     - using redistribution: 391K + n * 178K
#
# 500K + n * 200K covers all cases, including starting in recovery mode and
# ending in normal mode, with some margin.
BASE_GAS_LIMIT = 500_000
GAS_LIMIT_PER_VAULT = 200_000


def _report(level: int, message: str) -> None:
    logger.log(level, message)
    write_to_log_file(message)


def gas_limit_for(vault_count: int) -> int:
    return BASE_GAS_LIMIT + GAS_LIMIT_PER_VAULT * vault_count


def _notify(config, notify_func, *args) -> None:
    if not getattr(config, "NOTIFY", False):
        return
    try:
        notify_func(*args, config)
    except Exception as ex:
        logger.error("Liquidator: Failed to post notification: %s", ex, exc_info=True)


def _economics_summary(receipt: LiquidationReceipt, price: Decimal) -> str:
    details = receipt.details
    gas_used = receipt.gas_used or 0
    gas_price = receipt.effective_gas_price or 0
    gas_cost = Decimal(Web3.from_wei(gas_used * gas_price, "ether")) * price

    total_compensation = (
        details.collateral_gas_compensation * price
        + details.debt_gas_compensation
        - (details.miner_cut if details.miner_cut is not None else ZERO)
    )

    if total_compensation >= gas_cost:
        result = f"${total_compensation - gas_cost:.2f} profit"
    else:
        result = f"${gas_cost - total_compensation:.2f} loss"

    return (
        f"Received {details.collateral_gas_compensation:.4f} RBTC + "
        f"{details.debt_gas_compensation:.2f} BPD compensation ({result}) "
        f"for liquidating {len(details.liquidated_addresses)} Vault(s)."
    )


async def try_to_liquidate(connection, executor=None) -> LiquidationOutcome:
    """
    Attempt one batch liquidation against the current protocol state.

    Args:
        connection: Protocol connection exposing `store.state`, `get_vaults` and
            `populate_liquidate`.
        executor: Signing executor; None runs in read-only mode.

    Returns:
        The outcome of the attempt. Never raises.
    """
    config = connection.config
    limit = getattr(config, "MAX_VAULTS_TO_LIQUIDATE", None)
    if limit is None:
        limit = DEFAULT_MAX_VAULTS_TO_LIQUIDATE
    query_size = getattr(config, "RISKIEST_VAULTS_QUERY_SIZE", None)
    if query_size is None:
        query_size = RISKIEST_VAULTS_QUERY_SIZE

    try:
        riskiest_vaults = await connection.get_vaults(query_size, sorted_by="ascendingCollateralRatio")
        # The store may have moved on to a newer block while the query was in flight
        state = connection.store.state
        vaults = select_for_liquidation(riskiest_vaults, state, limit)
    except Exception as ex:
        logger.error("Liquidator: Failed to select Vaults for liquidation: %s", ex, exc_info=True)
        write_to_log_file(f"Failed to select Vaults for liquidation: {ex}")
        return LiquidationOutcome.FAILURE

    if not vaults:
        _report(logging.INFO, "There is nothing to liquidate.")
        return LiquidationOutcome.NOTHING_TO_LIQUIDATE

    addresses = [vault.owner_address for vault in vaults]

    if executor is None:
        _report(logging.INFO, f"Skipping liquidation of {len(vaults)} Vault(s) in read-only mode.")
        return LiquidationOutcome.SKIPPED_IN_READ_ONLY_MODE

    try:
        liquidation = await connection.populate_liquidate(addresses, gas_limit_for(len(vaults)))

        raw_populated_tx = json.dumps(liquidation.raw_transaction, default=str)
        _report(logging.INFO, f"Liquidation Raw Populated Tx: {raw_populated_tx}")

        max_gas_price_gwei = getattr(config, "MAX_GAS_PRICE_GWEI", None)
        if max_gas_price_gwei is not None:
            gas_price = await executor.gas_price_wei()
            if gas_price > Web3.to_wei(max_gas_price_gwei, "gwei"):
                _report(
                    logging.WARNING,
                    f"Skipping liquidation of {len(vaults)} Vault(s): gas price "
                    f"{Web3.from_wei(gas_price, 'gwei')} gwei exceeds {max_gas_price_gwei} gwei.",
                )
                return LiquidationOutcome.SKIPPED_DUE_TO_HIGH_COST

        expected_compensation = executor.estimate_compensation(vaults, state.price)
        _report(
            logging.INFO,
            f"Attempting to liquidate {len(vaults)} Vault(s) (expecting ${expected_compensation:.2f} compensation) ...",
        )

        receipt = await executor.execute(liquidation)
        _report(logging.INFO, f"Receipt: {json.dumps(receipt.to_dict())}")

        if receipt.status is ReceiptStatus.FAILED:
            if receipt.transaction_hash:
                message = f"TX {receipt.transaction_hash} failed."
                _report(logging.ERROR, message)
            else:
                message = "Liquidation TX was not included by miners."
                _report(logging.WARNING, message)
            _notify(config, post_error_notification, message)
            return LiquidationOutcome.FAILURE

        summary = _economics_summary(receipt, state.price)
        _report(SUCCESS, summary)
        _notify(
            config,
            post_liquidation_result_notification,
            receipt.details.liquidated_addresses,
            receipt.transaction_hash,
            summary,
        )
        return LiquidationOutcome.SUCCESS

    except Exception as ex:
        logger.error("Liquidator: Unexpected error: %s", ex, exc_info=True)
        write_to_log_file(f"Unexpected error: {ex!r}")
        _notify(config, post_error_notification, f"Unexpected error in liquidation: {ex}")
        return LiquidationOutcome.FAILURE
