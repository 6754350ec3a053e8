"""
Connection to the protocol contracts and a block-polled store of the system state.
"""

import asyncio
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, List, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3, Web3
from web3.exceptions import ContractLogicError

from .config_loader import ChainConfig
from .contracts import create_protocol_contracts
from .decorators import retry_rpc
from .exceptions import ChainIdMismatchError, TransactionBuildError
from .logging_config import setup_logger
from .models import PopulatedLiquidation, SystemSnapshot, Vault

logger = setup_logger()

StateListener = Callable[[SystemSnapshot, Optional[SystemSnapshot]], None]


def from_wei(value: int) -> Decimal:
    return Decimal(Web3.from_wei(value, "ether"))


@dataclass(frozen=True)
class RedistributionIndex:
    """Cumulative redistributed collateral and debt per unit of stake."""

    collateral_per_stake: Decimal
    debt_per_stake: Decimal


def vault_from_combined_data(data: Any, index: RedistributionIndex) -> Vault:
    """Build a Vault from a MultiVaultGetter entry, including pending redistribution rewards."""
    owner, debt, coll, stake, snapshot_collateral, snapshot_debt = data
    vault = Vault(collateral=from_wei(coll), debt=from_wei(debt), owner_address=Web3.to_checksum_address(owner))
    return vault.apply_redistribution(
        from_wei(stake),
        index.collateral_per_stake - from_wei(snapshot_collateral),
        index.debt_per_stake - from_wei(snapshot_debt),
    )


class ProtocolConnection:
    """Handle on the deployed protocol: state reads and liquidation transaction population."""

    def __init__(self, w3: AsyncWeb3, config: ChainConfig, signer: Optional[LocalAccount] = None):
        self.w3 = w3
        self.config = config
        self.signer = signer

        contracts = create_protocol_contracts(w3, config)
        self.vault_manager = contracts["VAULT_MANAGER"]
        self.stability_pool = contracts["STABILITY_POOL"]
        self.price_feed = contracts["PRICE_FEED"]
        self.multi_vault_getter = contracts["MULTI_VAULT_GETTER"]

        self.store = BlockPolledStore(self, config.POLL_INTERVAL_SECONDS)

    async def _get_redistribution_index(self, block: Any = "latest") -> RedistributionIndex:
        l_collateral, l_debt = await asyncio.gather(
            self.vault_manager.functions.L_RBTC().call(block_identifier=block),
            self.vault_manager.functions.L_BPDDebt().call(block_identifier=block),
        )
        return RedistributionIndex(from_wei(l_collateral), from_wei(l_debt))

    async def get_vaults(
        self, first: int, sorted_by: str = "ascendingCollateralRatio", block: Any = "latest"
    ) -> List[Vault]:
        """
        Fetch up to `first` Vaults from the sorted list.

        Args:
            first: Number of Vaults to return.
            sorted_by: "ascendingCollateralRatio" for riskiest first, or
                "descendingCollateralRatio".
            block: Block identifier to read at.

        Returns:
            List of Vaults with pending redistribution applied.
        """
        if sorted_by == "ascendingCollateralRatio":
            start_index = -1
        elif sorted_by == "descendingCollateralRatio":
            start_index = 0
        else:
            raise ValueError(f"Unknown sort order: {sorted_by}")

        raw_vaults, index = await asyncio.gather(
            self.multi_vault_getter.functions.getMultipleSortedVaults(start_index, first).call(
                block_identifier=block
            ),
            self._get_redistribution_index(block),
        )
        return [vault_from_combined_data(data, index) for data in raw_vaults]

    async def get_snapshot(self, block_number: int) -> SystemSnapshot:
        coll, debt, price, pool_deposits, riskiest = await asyncio.gather(
            self.vault_manager.functions.getEntireSystemColl().call(block_identifier=block_number),
            self.vault_manager.functions.getEntireSystemDebt().call(block_identifier=block_number),
            self.price_feed.functions.lastGoodPrice().call(block_identifier=block_number),
            self.stability_pool.functions.getTotalBPDDeposits().call(block_identifier=block_number),
            self.get_vaults(1, block=block_number),
        )
        return SystemSnapshot(
            total=Vault(collateral=from_wei(coll), debt=from_wei(debt)),
            price=from_wei(price),
            stability_pool_debt_capacity=from_wei(pool_deposits),
            riskiest_vault=riskiest[0] if riskiest else None,
            block_number=block_number,
        )

    async def populate_liquidate(self, addresses: List[str], gas_limit: int) -> PopulatedLiquidation:
        """Build an unsigned batch liquidation transaction for `addresses`."""
        if not addresses:
            raise TransactionBuildError("No addresses to liquidate")
        if self.signer is None:
            raise TransactionBuildError("Cannot populate a liquidation without a signer")

        try:
            raw_transaction = await self.vault_manager.functions.batchLiquidateVaults(addresses).build_transaction(
                {"from": self.signer.address, "gas": gas_limit}
            )
        except (ContractLogicError, ValueError) as ex:
            raise TransactionBuildError(f"Failed to build liquidation transaction: {ex}") from ex

        return PopulatedLiquidation(raw_transaction=dict(raw_transaction), addresses=list(addresses), gas_limit=gas_limit)


class BlockPolledStore:
    """
    Keeps the latest SystemSnapshot, refreshed once per new block.

    `on_loaded` is called once after the first successful load; subscribed
    listeners are called with (new_state, old_state) on every later block, even
    when the snapshot is unchanged.
    """

    def __init__(self, connection: ProtocolConnection, poll_interval: float):
        self.connection = connection
        self.poll_interval = poll_interval
        self.state: Optional[SystemSnapshot] = None
        self.on_loaded: Optional[Callable[[], None]] = None
        self._listeners: List[StateListener] = []
        self._running = False

        config = connection.config
        self._fetch_block_number = retry_rpc(logger, config.MAX_RETRIES, config.RETRY_DELAY)(self._block_number)
        self._fetch_snapshot = retry_rpc(logger, config.MAX_RETRIES, config.RETRY_DELAY)(connection.get_snapshot)

    @property
    def loaded(self) -> bool:
        return self.state is not None

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _block_number(self) -> int:
        return await self.connection.w3.eth.block_number

    async def poll_once(self) -> bool:
        """Refresh the state if a new block arrived. Returns True if it did."""
        block_number = await self._fetch_block_number()
        if self.state is not None and block_number <= self.state.block_number:
            return False

        new_state = await self._fetch_snapshot(block_number)
        old_state = self.state
        self.state = new_state

        if old_state is None:
            logger.info("BlockPolledStore: Loaded state at block %s.", block_number)
            if self.on_loaded:
                self.on_loaded()
            return True

        for listener in list(self._listeners):
            listener(new_state, old_state)
        return True

    async def start(self) -> None:
        self._running = True
        while self._running:
            try:
                await self.poll_once()
            except Exception as ex:
                logger.error("BlockPolledStore: Failed to refresh state: %s", ex, exc_info=True)
            await asyncio.sleep(self.poll_interval)

    def stop(self) -> None:
        self._running = False


async def connect_to_protocol(config: ChainConfig) -> ProtocolConnection:
    """
    Connect to the configured RPC endpoint and verify it serves the expected chain.

    Raises:
        ChainIdMismatchError: If the endpoint reports a different chain id.
    """
    w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(config.HTTP_RPC_URL))
    chain_id = await w3.eth.chain_id

    if chain_id != config.CHAIN_ID:
        raise ChainIdMismatchError(f"chainId mismatch (got {chain_id} instead of {config.CHAIN_ID})")

    signer = Account.from_key(config.WALLET_KEY) if config.WALLET_KEY else None
    if signer:
        logger.info("Connected to chain %s as %s.", chain_id, signer.address)
    else:
        logger.info("Connected to chain %s without a signer.", chain_id)

    return ProtocolConnection(w3, config, signer)
