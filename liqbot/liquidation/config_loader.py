"""
Config Loader module
"""

import os
from typing import Any, Dict, Optional

import yaml
from web3 import Web3

from .exceptions import ConfigError

PACKAGE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
CONFIG_PATH = os.path.join(PACKAGE_DIR, "config.yaml")
ABI_DIR = os.path.join(PACKAGE_DIR, "liquidation", "abi")

CONTRACT_NAMES = ["VAULT_MANAGER", "STABILITY_POOL", "PRICE_FEED", "MULTI_VAULT_GETTER"]


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


class ChainConfig:
    """
    Chain Config object to access config variables.

    Values are looked up in the environment first, then in the chain section of
    config.yaml, then its contracts, then the global section.
    """

    required_env_vars = [
        "HTTP_RPC_URL",
    ]

    def __init__(self, chain_id: int, global_config: Dict[str, Any], chain_config: Dict[str, Any]):
        self.CHAIN_ID = chain_id
        self.CHAIN_NAME = chain_config["name"]
        self._global = global_config
        self._chain = chain_config

        # validate env
        self.validate()
        self.HTTP_RPC_URL = os.environ["HTTP_RPC_URL"]

        # No key means read-only mode
        self.WALLET_KEY = os.environ.get("WALLET_KEY", "") or None

        self.NOTIFICATION_URL = os.environ.get("NOTIFICATION_URL", "")
        self.NOTIFY = _env_bool("NOTIFY", bool(self.NOTIFICATION_URL))

        self.MAX_VAULTS_TO_LIQUIDATE = self._get_int("MAX_VAULTS_TO_LIQUIDATE")
        self.RISKIEST_VAULTS_QUERY_SIZE = self._get_int("RISKIEST_VAULTS_QUERY_SIZE")
        self.POLL_INTERVAL_SECONDS = self._get_float("POLL_INTERVAL_SECONDS")
        self.RECEIPT_TIMEOUT_SECONDS = self._get_float("RECEIPT_TIMEOUT_SECONDS")
        self.RETRY_DELAY = self._get_float("RETRY_DELAY")
        self.MAX_RETRIES = self._get_int("MAX_RETRIES")

        max_gas_price = os.environ.get("MAX_GAS_PRICE_GWEI", self._global.get("MAX_GAS_PRICE_GWEI"))
        self.MAX_GAS_PRICE_GWEI = float(max_gas_price) if max_gas_price not in (None, "") else None

        for name in CONTRACT_NAMES:
            setattr(self, f"{name}_ADDRESS", self._get_address(name))

    def __getattr__(self, name: str) -> Any:
        """Look up config values in chain-specific, then contracts, then global config."""
        if name.startswith("_"):
            raise AttributeError(name)
        if name in self._chain:
            return self._chain[name]
        if name in self._chain.get("contracts", {}):
            return self._chain["contracts"][name]
        if name in self._global:
            return self._global[name]
        raise AttributeError(f"Config has no attribute '{name}'")

    def abi_path(self, contract_name: str) -> str:
        return os.path.join(ABI_DIR, f"{contract_name}.json")

    def _lookup(self, key: str) -> Optional[Any]:
        value = os.environ.get(key)
        if value not in (None, ""):
            return value
        for section in (self._chain, self._chain.get("contracts", {}), self._global):
            if key in section and section[key] not in (None, ""):
                return section[key]
        return None

    def _get_int(self, key: str) -> int:
        value = self._lookup(key)
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid integer for {key}: {value!r}") from exc

    def _get_float(self, key: str) -> float:
        value = self._lookup(key)
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid number for {key}: {value!r}") from exc

    def _get_address(self, name: str) -> str:
        value = self._lookup(f"{name}_ADDRESS") or self._lookup(name)
        if not value:
            raise ConfigError(f"Missing {name} contract address for {self.CHAIN_NAME}")
        try:
            return Web3.to_checksum_address(value)
        except ValueError as exc:
            raise ConfigError(f"Invalid {name} contract address: {value}") from exc

    def validate(self) -> None:
        """
        Validates that all required environment variables are set.
        Raises an error if any are missing.
        """
        missing_keys = [key for key in self.required_env_vars if not os.getenv(key)]
        if missing_keys:
            raise ConfigError(f"Missing required environment variables: {', '.join(missing_keys)}")


def load_chain_config(chain_id: Optional[int] = None, config_path: str = CONFIG_PATH) -> ChainConfig:
    if chain_id is None:
        chain_id = int(os.environ.get("CHAIN_ID", "30"))

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found at {config_path}") from exc
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing YAML file: {e}") from e

    if chain_id not in config["chains"]:
        raise ConfigError(f"No configuration found for chain ID {chain_id}")

    return ChainConfig(chain_id=chain_id, global_config=config["global"], chain_config=config["chains"][chain_id])
