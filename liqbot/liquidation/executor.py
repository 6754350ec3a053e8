"""
Signs and submits liquidation transactions, and turns receipts into typed results.
"""

from decimal import Decimal
from typing import Any, Iterable, Optional

from web3 import Web3
from web3.exceptions import TimeExhausted
from web3.logs import DISCARD

from .connection import ProtocolConnection, from_wei
from .logging_config import setup_logger
from .models import (
    COLLATERAL_GAS_COMPENSATION_DIVISOR,
    DEBT_GAS_COMPENSATION,
    ZERO,
    LiquidationDetails,
    LiquidationReceipt,
    PopulatedLiquidation,
    ReceiptStatus,
    Vault,
)

logger = setup_logger()


class Executor:
    """Executes populated liquidations with the connection's signer."""

    def __init__(self, connection: ProtocolConnection, receipt_timeout: Optional[float] = None):
        if connection.signer is None:
            raise ValueError("Executor requires a connection with a signer")
        self.connection = connection
        self.w3 = connection.w3
        self.signer = connection.signer
        self.receipt_timeout = receipt_timeout or connection.config.RECEIPT_TIMEOUT_SECONDS

    @staticmethod
    def estimate_compensation(vaults: Iterable[Vault], price: Decimal) -> Decimal:
        """Expected gas compensation in debt-token terms for liquidating `vaults` at `price`."""
        vaults = list(vaults)
        collateral = sum((vault.collateral for vault in vaults), ZERO)
        return collateral / COLLATERAL_GAS_COMPENSATION_DIVISOR * price + DEBT_GAS_COMPENSATION * len(vaults)

    async def gas_price_wei(self) -> int:
        return await self.w3.eth.gas_price

    async def execute(self, liquidation: PopulatedLiquidation) -> LiquidationReceipt:
        transaction = dict(liquidation.raw_transaction)
        if "nonce" not in transaction:
            transaction["nonce"] = await self.w3.eth.get_transaction_count(self.signer.address, "pending")
        if "gasPrice" not in transaction and "maxFeePerGas" not in transaction:
            transaction["gasPrice"] = await self.gas_price_wei()

        signed_tx = self.signer.sign_transaction(transaction)
        tx_hash = await self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        logger.info("Executor: Sent liquidation transaction %s", Web3.to_hex(tx_hash))

        try:
            tx_receipt = await self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        except TimeExhausted:
            logger.warning(
                "Executor: Transaction %s not mined within %s seconds.", Web3.to_hex(tx_hash), self.receipt_timeout
            )
            return LiquidationReceipt(status=ReceiptStatus.FAILED)

        return self.parse_receipt(tx_receipt)

    def parse_receipt(self, tx_receipt: Any) -> LiquidationReceipt:
        tx_hash = tx_receipt["transactionHash"]
        receipt = LiquidationReceipt(
            status=ReceiptStatus.SUCCEEDED if tx_receipt["status"] == 1 else ReceiptStatus.FAILED,
            transaction_hash=Web3.to_hex(tx_hash),
            gas_used=tx_receipt.get("gasUsed"),
            effective_gas_price=tx_receipt.get("effectiveGasPrice"),
        )
        if receipt.status is ReceiptStatus.FAILED:
            return receipt

        events = self.connection.vault_manager.events
        liquidations = events.Liquidation().process_receipt(tx_receipt, errors=DISCARD)
        liquidated_vaults = events.VaultLiquidated().process_receipt(tx_receipt, errors=DISCARD)

        receipt.details = LiquidationDetails(
            collateral_gas_compensation=sum(
                (from_wei(event["args"]["_collGasCompensation"]) for event in liquidations), ZERO
            ),
            debt_gas_compensation=sum(
                (from_wei(event["args"]["_BPDGasCompensation"]) for event in liquidations), ZERO
            ),
            liquidated_addresses=[event["args"]["_borrower"] for event in liquidated_vaults],
        )
        return receipt


def get_executor(connection: ProtocolConnection) -> Optional[Executor]:
    """Return an Executor when the connection can sign, None for read-only mode."""
    if connection.signer is None:
        return None
    return Executor(connection)
