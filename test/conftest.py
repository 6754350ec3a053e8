from decimal import Decimal
from pathlib import Path

import pytest
from dotenv import load_dotenv

from liqbot.liquidation.config_loader import ChainConfig, load_chain_config
from liqbot.liquidation.executor import Executor
from liqbot.liquidation.logfile import setup_log_file
from liqbot.liquidation.models import LiquidationState, PopulatedLiquidation, SystemSnapshot, Vault

TEST_CHAIN_ID = 31
ENV_EXAMPLE_PATH = Path(__file__).resolve().parent.parent / ".env.example"


def make_vault(collateral, debt, owner="") -> Vault:
    return Vault(collateral=Decimal(str(collateral)), debt=Decimal(str(debt)), owner_address=owner)


def make_state(collateral, debt, price, pool, cls=LiquidationState, **kwargs) -> LiquidationState:
    return cls(
        total=make_vault(collateral, debt),
        price=Decimal(str(price)),
        stability_pool_debt_capacity=Decimal(str(pool)),
        **kwargs,
    )


class FakeStore:
    def __init__(self, state):
        self.state = state


class FakeConnection:
    """Stands in for ProtocolConnection; records populated liquidations."""

    def __init__(self, config, state, vaults):
        self.config = config
        self.store = FakeStore(state)
        self.vaults = list(vaults)
        self.populated = []
        self.queries = []

    async def get_vaults(self, first, sorted_by="ascendingCollateralRatio"):
        self.queries.append((first, sorted_by))
        return self.vaults[:first]

    async def populate_liquidate(self, addresses, gas_limit):
        self.populated.append((list(addresses), gas_limit))
        return PopulatedLiquidation(
            raw_transaction={"to": "0x1111111111111111111111111111111111111111", "gas": gas_limit},
            addresses=list(addresses),
            gas_limit=gas_limit,
        )


class FakeExecutor:
    """Stands in for Executor; returns a canned receipt or raises."""

    estimate_compensation = staticmethod(Executor.estimate_compensation)

    def __init__(self, receipt=None, error=None, gas_price=0):
        self.receipt = receipt
        self.error = error
        self.gas_price = gas_price
        self.executed = []

    async def gas_price_wei(self):
        return self.gas_price

    async def execute(self, liquidation):
        self.executed.append(liquidation)
        if self.error:
            raise self.error
        return self.receipt


@pytest.fixture(autouse=True)
def durable_log(tmp_path):
    """Keep the durable log of every test in its own directory."""
    logs_dir = tmp_path / "durable"
    setup_log_file(str(logs_dir))
    return logs_dir


@pytest.fixture()
def config() -> ChainConfig:
    load_dotenv(dotenv_path=ENV_EXAMPLE_PATH)
    return load_chain_config(TEST_CHAIN_ID)


@pytest.fixture()
def normal_state() -> SystemSnapshot:
    # Total collateral ratio 2.0
    return make_state(1000, 100000, 200, 50000, cls=SystemSnapshot)


@pytest.fixture()
def recovery_state() -> SystemSnapshot:
    # Total collateral ratio 1.4
    return make_state(700, 100000, 200, 50000, cls=SystemSnapshot)
