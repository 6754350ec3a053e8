"""Module for handling API routes"""

import asyncio
import os

from flask import Blueprint, jsonify, make_response

from .bot_manager import LiquidationBot
from .config_loader import load_chain_config
from .logfile import write_to_log_file
from .logging_config import setup_logger

logger = setup_logger()

liquidation = Blueprint("liquidation", __name__)


def start_monitor(chain_id=None):
    """Run the liquidation bot for the configured chain until it stops."""
    try:
        config = load_chain_config(chain_id)
        bot = LiquidationBot(config)

        # Store on module level for route access before app context is available
        start_monitor._bot = bot

        asyncio.run(bot.run())
    except Exception as ex:
        logger.critical("Fatal error: %s", ex, exc_info=True)
        write_to_log_file(f"Fatal error: {ex!r}")
        # Startup failures are fatal
        os._exit(1)

    return bot


def _get_bot():
    """Get the running bot instance."""
    return getattr(start_monitor, "_bot", None)


@liquidation.route("/status", methods=["GET"])
def get_status():
    bot = _get_bot()

    if not bot or not bot.task:
        return jsonify({"error": "Liquidation bot not initialized"}), 500

    task = bot.task
    state = bot.connection.store.state
    response = {
        "chain_id": bot.config.CHAIN_ID,
        "read_only": bot.executor is None,
        "running": task.running,
        "attempts": task.attempts,
        "last_outcome": task.last_outcome.value if task.last_outcome else None,
        "state": state.to_dict() if state else None,
    }

    return make_response(jsonify(response))
