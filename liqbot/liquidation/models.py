"""
Data classes for protocol state, liquidation candidates and transaction results.
"""

from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

ZERO = Decimal(0)
ONE = Decimal(1)
INFINITY = Decimal("Infinity")

# Protocol constants (Money Protocol / Liquity v1)
MINIMUM_COLLATERAL_RATIO = Decimal("1.1")
CRITICAL_COLLATERAL_RATIO = Decimal("1.5")
COLLATERAL_GAS_COMPENSATION_DIVISOR = Decimal(200)  # 0.5%
DEBT_GAS_COMPENSATION = Decimal(200)


@dataclass(frozen=True)
class Vault:
    """
    A collateral/debt position. The protocol-wide total is represented with the
    same type and an empty owner address.
    """

    collateral: Decimal = ZERO
    debt: Decimal = ZERO
    owner_address: str = ""

    def collateral_ratio(self, price: Decimal) -> Decimal:
        if self.debt == ZERO:
            return INFINITY
        return self.collateral * price / self.debt

    def collateral_ratio_is_below_minimum(self, price: Decimal) -> bool:
        return self.collateral_ratio(price) < MINIMUM_COLLATERAL_RATIO

    def collateral_ratio_is_below_critical(self, price: Decimal) -> bool:
        return self.collateral_ratio(price) < CRITICAL_COLLATERAL_RATIO

    def subtract(self, other: "Vault") -> "Vault":
        return self.subtract_collateral(other.collateral).subtract_debt(other.debt)

    def subtract_collateral(self, amount: Decimal) -> "Vault":
        return replace(self, collateral=max(self.collateral - amount, ZERO))

    def subtract_debt(self, amount: Decimal) -> "Vault":
        return replace(self, debt=max(self.debt - amount, ZERO))

    def apply_redistribution(
        self, stake: Decimal, pending_collateral_per_stake: Decimal, pending_debt_per_stake: Decimal
    ) -> "Vault":
        """Add redistribution rewards that the protocol has not yet applied to this position."""
        return replace(
            self,
            collateral=self.collateral + stake * pending_collateral_per_stake,
            debt=self.debt + stake * pending_debt_per_stake,
        )

    def __str__(self) -> str:
        owner = f"{self.owner_address} " if self.owner_address else ""
        return f"{owner}{{ collateral: {self.collateral}, debt: {self.debt} }}"


@dataclass(frozen=True)
class LiquidationState:
    """The part of the protocol state that liquidation eligibility depends on."""

    total: Vault
    price: Decimal
    stability_pool_debt_capacity: Decimal

    @property
    def recovery_mode(self) -> bool:
        return self.total.collateral_ratio_is_below_critical(self.price)


@dataclass(frozen=True)
class SystemSnapshot(LiquidationState):
    """Protocol-wide state as loaded from chain at a given block."""

    riskiest_vault: Optional[Vault] = None
    block_number: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "block_number": self.block_number,
            "total_collateral": str(self.total.collateral),
            "total_debt": str(self.total.debt),
            "price": str(self.price),
            "stability_pool_debt_capacity": str(self.stability_pool_debt_capacity),
            "recovery_mode": self.recovery_mode,
        }


class LiquidationOutcome(Enum):
    """Terminal result of a single liquidation attempt."""

    NOTHING_TO_LIQUIDATE = "nothing_to_liquidate"
    SKIPPED_IN_READ_ONLY_MODE = "skipped_in_read_only_mode"
    SKIPPED_DUE_TO_HIGH_COST = "skipped_due_to_high_cost"
    FAILURE = "failure"
    SUCCESS = "success"


class ReceiptStatus(Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class PopulatedLiquidation:
    """An unsigned liquidation transaction ready to be handed to the executor."""

    raw_transaction: Dict[str, Any]
    addresses: List[str]
    gas_limit: int


@dataclass
class LiquidationDetails:
    """Compensation and liquidated addresses parsed from a successful liquidation receipt."""

    collateral_gas_compensation: Decimal
    debt_gas_compensation: Decimal
    liquidated_addresses: List[str] = field(default_factory=list)
    miner_cut: Optional[Decimal] = None


@dataclass
class LiquidationReceipt:
    """Result of executing a populated liquidation."""

    status: ReceiptStatus
    transaction_hash: Optional[str] = None
    gas_used: Optional[int] = None
    effective_gas_price: Optional[int] = None
    details: Optional[LiquidationDetails] = None

    def to_dict(self) -> Dict[str, Any]:
        details = None
        if self.details:
            details = {
                "collateral_gas_compensation": str(self.details.collateral_gas_compensation),
                "debt_gas_compensation": str(self.details.debt_gas_compensation),
                "liquidated_addresses": self.details.liquidated_addresses,
                "miner_cut": None if self.details.miner_cut is None else str(self.details.miner_cut),
            }
        return {
            "status": self.status.value,
            "transaction_hash": self.transaction_hash,
            "gas_used": self.gas_used,
            "effective_gas_price": self.effective_gas_price,
            "details": details,
        }
