"""
Contract instance creation utilities.
"""

import json

from web3 import AsyncWeb3
from web3.contract import AsyncContract

from .config_loader import ChainConfig

CONTRACT_ABIS = {
    "VAULT_MANAGER": "VaultManager",
    "STABILITY_POOL": "StabilityPool",
    "PRICE_FEED": "PriceFeed",
    "MULTI_VAULT_GETTER": "MultiVaultGetter",
}


def load_abi(abi_path: str) -> list:
    with open(abi_path, "r", encoding="utf-8") as file:
        interface = json.load(file)
    return interface["abi"]


def create_contract_instance(w3: AsyncWeb3, address: str, abi_path: str) -> AsyncContract:
    """
    Create and return an async Web3 contract instance.

    Args:
        w3: The AsyncWeb3 instance to bind the contract to.
        address: The address of the contract.
        abi_path: Path to the ABI JSON file.

    Returns:
        Web3 contract instance.
    """
    return w3.eth.contract(address=address, abi=load_abi(abi_path))


def create_protocol_contracts(w3: AsyncWeb3, config: ChainConfig) -> dict:
    """Instantiate every protocol contract the bot talks to, keyed by config name."""
    return {
        name: create_contract_instance(w3, getattr(config, f"{name}_ADDRESS"), config.abi_path(abi_name))
        for name, abi_name in CONTRACT_ABIS.items()
    }
