"""
Custom exceptions for the liquidation bot.
"""


class LiquidationBotError(Exception):
    """Base exception for all liquidation bot errors."""


class ConfigError(LiquidationBotError):
    """Raised for configuration-related errors."""


class ChainIdMismatchError(LiquidationBotError):
    """Raised when the RPC endpoint serves a different chain than configured."""


class LiquidationError(LiquidationBotError):
    """Raised for errors during liquidation execution."""


class TransactionBuildError(LiquidationError):
    """Raised when building a liquidation transaction fails."""
