import asyncio
from typing import Optional

from .config_loader import ChainConfig
from .connection import ProtocolConnection, connect_to_protocol
from .executor import Executor, get_executor
from .logfile import log_startup
from .logging_config import asyncio_exception_handler, setup_logger
from .models import SystemSnapshot
from .task import LiquidationTask

logger = setup_logger()


def have_undercollateralized_vaults(state: SystemSnapshot) -> bool:
    """Cheap check on the riskiest Vault to decide whether a liquidation attempt is worth running."""
    riskiest_vault = state.riskiest_vault
    if riskiest_vault is None:
        return False

    recovery_mode = state.recovery_mode
    if recovery_mode:
        result = riskiest_vault.collateral_ratio(state.price) < state.total.collateral_ratio(state.price)
    else:
        result = riskiest_vault.collateral_ratio_is_below_minimum(state.price)

    logger.debug(
        "LiquidationBot: block %s, total %s, price %s, recovery mode %s, riskiest Vault %s, undercollateralized %s",
        state.block_number, state.total, state.price, recovery_mode, riskiest_vault, result,
    )
    return result


class LiquidationBot:
    """Connects to the protocol and triggers liquidation attempts on state changes."""

    def __init__(self, config: ChainConfig):
        self.config = config
        self.connection: Optional[ProtocolConnection] = None
        self.executor: Optional[Executor] = None
        self.task: Optional[LiquidationTask] = None

    async def setup(self) -> None:
        self.connection = await connect_to_protocol(self.config)
        self.executor = get_executor(self.connection)
        self.task = LiquidationTask(self.connection, self.executor)

        if not self.executor:
            logger.warning("No 'WALLET_KEY' configured; running in read-only mode.")

        store = self.connection.store
        store.on_loaded = self._on_loaded
        store.subscribe(self._on_state_change)

    def _on_loaded(self) -> None:
        logger.info("Waiting for price drops...")
        if have_undercollateralized_vaults(self.connection.store.state):
            self.task.schedule()

    def _on_state_change(self, new_state: SystemSnapshot, old_state: Optional[SystemSnapshot]) -> None:
        if have_undercollateralized_vaults(new_state):
            self.task.schedule()

    async def run(self) -> None:
        asyncio.get_running_loop().set_exception_handler(asyncio_exception_handler)
        log_startup()
        await self.setup()
        await self.connection.store.start()

    def stop(self) -> None:
        if self.connection:
            self.connection.store.stop()
