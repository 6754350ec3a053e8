"""
Tests for a single liquidation attempt against fake protocol and executor collaborators.
"""

import logging
from dataclasses import replace
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from liqbot.liquidation import liquidator
from liqbot.liquidation.liquidator import gas_limit_for, try_to_liquidate
from liqbot.liquidation.models import (
    LiquidationDetails,
    LiquidationOutcome,
    LiquidationReceipt,
    ReceiptStatus,
    SystemSnapshot,
)

from conftest import FakeConnection, FakeExecutor, make_state, make_vault

VAULT_A = make_vault(10, 2000, "0xA")
VAULT_B = make_vault(5, 1000, "0xB")
VAULT_C = make_vault(20, 2000, "0xC")


def _price_drop_state() -> SystemSnapshot:
    return make_state(1000, 100000, 200, 2500, cls=SystemSnapshot)


def _success_receipt(addresses) -> LiquidationReceipt:
    return LiquidationReceipt(
        status=ReceiptStatus.SUCCEEDED,
        transaction_hash="0xabc",
        gas_used=1_000_000,
        effective_gas_price=60_000_000,
        details=LiquidationDetails(
            collateral_gas_compensation=Decimal("0.075"),
            debt_gas_compensation=Decimal(400),
            liquidated_addresses=list(addresses),
        ),
    )


def test_gas_limit_grows_with_batch_size():
    assert gas_limit_for(1) == 700_000
    assert gas_limit_for(10) == 2_500_000


@pytest.mark.asyncio
async def test_nothing_to_liquidate_when_query_is_empty(config):
    connection = FakeConnection(config, _price_drop_state(), [])

    outcome = await try_to_liquidate(connection, FakeExecutor())

    assert outcome is LiquidationOutcome.NOTHING_TO_LIQUIDATE
    assert connection.populated == []
    assert connection.queries == [(1000, "ascendingCollateralRatio")]


@pytest.mark.asyncio
async def test_nothing_to_liquidate_when_no_vault_qualifies(config):
    connection = FakeConnection(config, _price_drop_state(), [VAULT_C])

    outcome = await try_to_liquidate(connection, FakeExecutor())

    assert outcome is LiquidationOutcome.NOTHING_TO_LIQUIDATE
    assert connection.populated == []


@pytest.mark.asyncio
async def test_selection_uses_state_loaded_during_query(config):
    connection = FakeConnection(config, _price_drop_state(), [VAULT_A])
    query = connection.get_vaults

    async def get_vaults_while_price_recovers(first, sorted_by="ascendingCollateralRatio"):
        vaults = await query(first, sorted_by)
        # A new block lands while the query is in flight; VAULT_A is back at ratio 1.5
        connection.store.state = replace(connection.store.state, price=Decimal(300))
        return vaults

    connection.get_vaults = get_vaults_while_price_recovers

    outcome = await try_to_liquidate(connection, None)

    assert outcome is LiquidationOutcome.NOTHING_TO_LIQUIDATE


@pytest.mark.asyncio
async def test_read_only_mode_skips_without_populating(config, durable_log):
    connection = FakeConnection(config, _price_drop_state(), [VAULT_A])

    outcome = await try_to_liquidate(connection, None)

    assert outcome is LiquidationOutcome.SKIPPED_IN_READ_ONLY_MODE
    assert connection.populated == []
    assert "read-only mode" in (durable_log / "output.log").read_text()


@pytest.mark.asyncio
async def test_price_drop_scenario_liquidates_both_vaults(config):
    connection = FakeConnection(config, _price_drop_state(), [VAULT_B, VAULT_C, VAULT_A])
    executor = FakeExecutor(receipt=_success_receipt(["0xA", "0xB"]))

    outcome = await try_to_liquidate(connection, executor)

    assert outcome is LiquidationOutcome.SUCCESS
    assert connection.populated == [(["0xA", "0xB"], gas_limit_for(2))]
    assert len(executor.executed) == 1


@pytest.mark.asyncio
async def test_batch_size_is_limited_by_config(config):
    vaults = [make_vault(i, 1000, f"0x{i}") for i in range(1, 6)]
    connection = FakeConnection(config, make_state(1000, 100000, 200, 100000, cls=SystemSnapshot), vaults)
    config.MAX_VAULTS_TO_LIQUIDATE = 2

    outcome = await try_to_liquidate(connection, FakeExecutor(receipt=_success_receipt(["0x5", "0x4"])))

    assert outcome is LiquidationOutcome.SUCCESS
    assert connection.populated == [(["0x5", "0x4"], gas_limit_for(2))]


@pytest.mark.asyncio
async def test_zero_batch_size_liquidates_nothing(config):
    config.MAX_VAULTS_TO_LIQUIDATE = 0
    connection = FakeConnection(config, _price_drop_state(), [VAULT_A, VAULT_B])

    outcome = await try_to_liquidate(connection, FakeExecutor(receipt=_success_receipt(["0xA"])))

    assert outcome is LiquidationOutcome.NOTHING_TO_LIQUIDATE
    assert connection.populated == []


@pytest.mark.asyncio
async def test_failed_receipt_without_hash_reports_not_included(config, caplog):
    connection = FakeConnection(config, _price_drop_state(), [VAULT_A])
    executor = FakeExecutor(receipt=LiquidationReceipt(status=ReceiptStatus.FAILED))

    with caplog.at_level(logging.INFO, logger="liquidation_bot"):
        outcome = await try_to_liquidate(connection, executor)

    assert outcome is LiquidationOutcome.FAILURE
    assert "not included" in caplog.text


@pytest.mark.asyncio
async def test_failed_receipt_with_hash_reports_transaction(config, caplog):
    connection = FakeConnection(config, _price_drop_state(), [VAULT_A])
    executor = FakeExecutor(receipt=LiquidationReceipt(status=ReceiptStatus.FAILED, transaction_hash="0xdead"))

    with caplog.at_level(logging.INFO, logger="liquidation_bot"):
        outcome = await try_to_liquidate(connection, executor)

    assert outcome is LiquidationOutcome.FAILURE
    assert "TX 0xdead failed." in caplog.text
    assert "not included" not in caplog.text


@pytest.mark.asyncio
async def test_unexpected_error_is_mapped_to_failure(config, durable_log):
    connection = FakeConnection(config, _price_drop_state(), [VAULT_A])
    executor = FakeExecutor(error=RuntimeError("nonce too low"))

    outcome = await try_to_liquidate(connection, executor)

    assert outcome is LiquidationOutcome.FAILURE
    assert "nonce too low" in (durable_log / "output.log").read_text()


@pytest.mark.asyncio
async def test_query_error_is_mapped_to_failure(config):
    connection = FakeConnection(config, _price_drop_state(), [VAULT_A])

    async def broken_get_vaults(first, sorted_by="ascendingCollateralRatio"):
        raise ConnectionError("rpc down")

    connection.get_vaults = broken_get_vaults

    assert await try_to_liquidate(connection, FakeExecutor()) is LiquidationOutcome.FAILURE


@pytest.mark.asyncio
async def test_high_gas_price_skips_liquidation(config):
    config.MAX_GAS_PRICE_GWEI = 10
    connection = FakeConnection(config, _price_drop_state(), [VAULT_A])
    executor = FakeExecutor(receipt=_success_receipt(["0xA"]), gas_price=20 * 10**9)

    outcome = await try_to_liquidate(connection, executor)

    assert outcome is LiquidationOutcome.SKIPPED_DUE_TO_HIGH_COST
    assert executor.executed == []


@pytest.mark.asyncio
async def test_gas_price_below_cap_liquidates(config):
    config.MAX_GAS_PRICE_GWEI = 10
    connection = FakeConnection(config, _price_drop_state(), [VAULT_A])
    executor = FakeExecutor(receipt=_success_receipt(["0xA"]), gas_price=5 * 10**9)

    assert await try_to_liquidate(connection, executor) is LiquidationOutcome.SUCCESS


def test_economics_summary_reports_profit():
    receipt = _success_receipt(["0xA", "0xB"])

    summary = liquidator._economics_summary(receipt, Decimal(200))

    # 0.075 * 200 + 400 compensation against 0.00006 RBTC * 200 gas cost
    assert "$414.99 profit" in summary
    assert "2 Vault(s)" in summary


def test_economics_summary_reports_loss_with_miner_cut():
    receipt = _success_receipt(["0xA"])
    receipt.details.miner_cut = Decimal(500)

    summary = liquidator._economics_summary(receipt, Decimal(200))

    assert "$85.01 loss" in summary


@pytest.mark.asyncio
async def test_success_is_notified_when_enabled(config, monkeypatch):
    config.NOTIFY = True
    notify = MagicMock(return_value=True)
    monkeypatch.setattr(liquidator, "post_liquidation_result_notification", notify)
    connection = FakeConnection(config, _price_drop_state(), [VAULT_A])

    outcome = await try_to_liquidate(connection, FakeExecutor(receipt=_success_receipt(["0xA"])))

    assert outcome is LiquidationOutcome.SUCCESS
    notify.assert_called_once()
    assert notify.call_args.args[0] == ["0xA"]


@pytest.mark.asyncio
async def test_notification_errors_do_not_change_outcome(config, monkeypatch):
    config.NOTIFY = True
    monkeypatch.setattr(liquidator, "post_error_notification", MagicMock(side_effect=RuntimeError("slack down")))
    connection = FakeConnection(config, _price_drop_state(), [VAULT_A])
    executor = FakeExecutor(receipt=LiquidationReceipt(status=ReceiptStatus.FAILED))

    assert await try_to_liquidate(connection, executor) is LiquidationOutcome.FAILURE
