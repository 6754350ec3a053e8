"""
Liquidation candidate selection.

Vaults are liquidated one after another inside a single transaction, and every
liquidation changes the system totals and the stability pool. Eligibility of the
next Vault therefore has to be evaluated against the state left behind by the
previous ones, which is what the simulation here keeps track of.
"""

from dataclasses import replace
from decimal import Decimal
from typing import Iterable, List

from .models import COLLATERAL_GAS_COMPENSATION_DIVISOR, ONE, ZERO, LiquidationState, Vault


def _liquidatable_in_normal_mode(state: LiquidationState, vault: Vault) -> bool:
    return vault.collateral_ratio_is_below_minimum(state.price)


def _liquidatable_in_recovery_mode(state: LiquidationState, vault: Vault) -> bool:
    return vault.collateral_ratio_is_below_minimum(state.price) or (
        vault.collateral_ratio(state.price) < state.total.collateral_ratio(state.price)
        and vault.debt <= state.stability_pool_debt_capacity
    )


def is_liquidatable(state: LiquidationState, vault: Vault) -> bool:
    """Whether `vault` can be liquidated given the current system state."""
    if state.recovery_mode:
        return _liquidatable_in_recovery_mode(state, vault)
    return _liquidatable_in_normal_mode(state, vault)


def _try_to_offset(state: LiquidationState, offset: Vault) -> LiquidationState:
    capacity = state.stability_pool_debt_capacity

    if offset.debt == ZERO or offset.debt <= capacity:
        # Completely offset
        return replace(
            state,
            stability_pool_debt_capacity=capacity - offset.debt,
            total=state.total.subtract(offset),
        )

    if capacity > ZERO:
        # Partially offset, emptying the pool; the rest is redistributed and stays in the total
        return replace(
            state,
            stability_pool_debt_capacity=ZERO,
            total=state.total.subtract_debt(capacity).subtract_collateral(offset.collateral * capacity / offset.debt),
        )

    # Empty pool, no offset
    return state


def simulate_liquidation(state: LiquidationState, vault: Vault) -> LiquidationState:
    """Return the state that results from liquidating `vault`. `state` is left untouched."""
    collateral_gas_compensation = vault.collateral / COLLATERAL_GAS_COMPENSATION_DIVISOR

    # Below 100% in recovery mode the protocol skips the stability pool and redistributes
    if not state.recovery_mode or vault.collateral_ratio(state.price) > ONE:
        state = _try_to_offset(state, vault.subtract_collateral(collateral_gas_compensation))

    return replace(state, total=state.total.subtract_collateral(collateral_gas_compensation))


def _by_descending_collateral(vault: Vault) -> Decimal:
    return -vault.collateral


def select_for_liquidation(candidates: Iterable[Vault], state: LiquidationState, limit: int) -> List[Vault]:
    """
    Greedily pick up to `limit` Vaults to liquidate, biggest collateral first.

    Args:
        candidates: Vaults to choose from. Not modified.
        state: System state before any of the liquidations.
        limit: Maximum number of Vaults to select.

    Returns:
        The selected Vaults in the order they would be liquidated.
    """
    remaining = sorted(candidates, key=_by_descending_collateral)  # bigger Vaults first
    selected: List[Vault] = []

    for _ in range(limit):
        index = next((i for i, vault in enumerate(remaining) if is_liquidatable(state, vault)), None)
        if index is None:
            break

        vault = remaining.pop(index)
        selected.append(vault)
        state = simulate_liquidation(state, vault)

    return selected
