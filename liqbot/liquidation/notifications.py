"""
Apprise notification functions for the liquidation bot.
"""

import time
from typing import List, Optional

from apprise import Apprise

from .config_loader import ChainConfig
from .logging_config import setup_logger

logger = setup_logger()


def setup_apprise_notification_object(config: ChainConfig) -> Apprise:
    """Set up the Apprise notification engine."""
    apprise = Apprise()
    apprise.add(config.NOTIFICATION_URL)
    return apprise


def post_liquidation_result_notification(
    liquidated_addresses: List[str], liq_tx_hash: Optional[str], summary: str, config: ChainConfig
) -> bool:
    """Post a notification about a completed liquidation."""
    message = (
        ":moneybag: *Liquidation Completed* :moneybag:\n\n"
        f"*Vaults liquidated*: `{len(liquidated_addresses)}`\n"
    )
    message += "".join(f"• `{address}`\n" for address in liquidated_addresses)

    if liq_tx_hash:
        liq_tx_url = f"{config.EXPLORER_URL}/tx/{liq_tx_hash}"
        message += f"• Liquidation Transaction: <{liq_tx_url}|View Transaction on Explorer>\n"

    message += (
        f"\n{summary}\n"
        f"Time of liquidation: {time.strftime('%Y-%m-%d %H:%M:%S')}\n"
        f"Network: `{config.CHAIN_NAME}`"
    )
    logger.info("Liquidation result notification:\n%s", message)

    apprise = setup_apprise_notification_object(config)
    return apprise.notify(body=message, title="Liquidation Completed")


def post_error_notification(message: str, config: ChainConfig) -> bool:
    """Post an error notification."""
    error_message = f":rotating_light: *Error Notification* :rotating_light:\n\n{message}\n\n"
    error_message += f"Time: {time.strftime('%Y-%m-%d %H:%M:%S')}\n"
    error_message += f"Network: `{config.CHAIN_NAME}`"

    logger.info("Error notification:\n%s", error_message)

    apprise = setup_apprise_notification_object(config)
    return apprise.notify(body=error_message, title="Error Notification")
