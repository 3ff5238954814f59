"""External yield source interface and a simulated lending pool."""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

from src.core.access import Capability
from src.core.chain import Chain, Component, operation
from src.core.errors import InsufficientBalanceError, ZeroAmountError
from src.core.fixed_point import bps_of, mul_div_down, mul_div_up
from src.core.models.token import FungibleToken

logger = logging.getLogger(__name__)

# Liquidity index precision
RAY = 10**27


class YieldSource(ABC):
    """
    Interface consumed by vaults for idle-balance deployment.

    Implementations take custody of supplied assets and pay them back on
    withdraw; ``withdraw`` returns the amount actually sent, which may be
    less than requested when the source is short of liquidity.
    """

    address: str

    @abstractmethod
    def supply(self, asset: FungibleToken, amount: int, on_behalf_of: str, *, sender: str) -> None:
        """Pull ``amount`` of asset from sender and credit ``on_behalf_of``."""
        ...

    @abstractmethod
    def withdraw(self, asset: FungibleToken, amount: int, to: str, *, sender: str) -> int:
        """Debit sender's position and send up to ``amount`` to ``to``."""
        ...

    @abstractmethod
    def balance_of(self, asset: FungibleToken, account: str) -> int:
        """Current redeemable position of account, interest included."""
        ...


class SimulatedLendingPool(Component, YieldSource):
    """
    Lending pool with a per-asset liquidity index.

    Positions are stored as scaled balances; interest raises the index, so
    every supplier's balance grows pro rata. An optional per-asset liquidity
    cap limits how much can leave in a single withdraw, which is how partial
    fills are simulated.
    """

    _state_fields = ("_index", "_scaled", "_total_scaled", "_liquidity_cap")

    def __init__(self, chain: Chain, address: str):
        super().__init__(chain, address)
        self._index: Dict[str, int] = {}
        self._scaled: Dict[Tuple[str, str], int] = {}
        self._total_scaled: Dict[str, int] = {}
        self._liquidity_cap: Dict[str, Optional[int]] = {}

    # Views

    def liquidity_index(self, asset: FungibleToken) -> int:
        return self._index.get(asset.address, RAY)

    def balance_of(self, asset: FungibleToken, account: str) -> int:
        scaled = self._scaled.get((asset.address, account), 0)
        return mul_div_down(scaled, self.liquidity_index(asset), RAY)

    def total_supplied(self, asset: FungibleToken) -> int:
        return mul_div_down(self._total_scaled.get(asset.address, 0), self.liquidity_index(asset), RAY)

    def available_liquidity(self, asset: FungibleToken) -> int:
        cash = asset.balance_of(self.address)
        cap = self._liquidity_cap.get(asset.address)
        return cash if cap is None else min(cash, cap)

    # YieldSource

    @operation
    def supply(self, asset: FungibleToken, amount: int, on_behalf_of: str, *, sender: str) -> None:
        if amount <= 0:
            raise ZeroAmountError("Supply amount must be positive")
        scaled = mul_div_down(amount, RAY, self.liquidity_index(asset))
        asset.transfer_from(sender, self.address, amount, sender=self.address)
        key = (asset.address, on_behalf_of)
        self._scaled[key] = self._scaled.get(key, 0) + scaled
        self._total_scaled[asset.address] = self._total_scaled.get(asset.address, 0) + scaled
        logger.debug(f"Pool {self.address}: supplied {amount} {asset.symbol} for {on_behalf_of}")

    @operation
    def withdraw(self, asset: FungibleToken, amount: int, to: str, *, sender: str) -> int:
        if amount <= 0:
            raise ZeroAmountError("Withdraw amount must be positive")
        position = self.balance_of(asset, sender)
        received = min(amount, position, self.available_liquidity(asset))
        if received == 0:
            logger.warning(f"Pool {self.address}: no {asset.symbol} liquidity for {sender}")
            return 0

        key = (asset.address, sender)
        scaled = min(mul_div_up(received, RAY, self.liquidity_index(asset)), self._scaled.get(key, 0))
        self._scaled[key] -= scaled
        self._total_scaled[asset.address] -= scaled
        asset.transfer(to, received, sender=self.address)

        if received < amount:
            logger.warning(
                f"Pool {self.address}: partial withdraw {received}/{amount} {asset.symbol}"
            )
        return received

    # Market simulation

    @operation
    def accrue(self, asset: FungibleToken, amount: int, *, sender: str) -> int:
        """
        Pay ``amount`` of interest into the pool and raise the index.

        Args:
            asset: Asset receiving interest
            amount: Interest paid in by ``sender``
            sender: Funding account

        Returns:
            New liquidity index
        """
        total_scaled = self._total_scaled.get(asset.address, 0)
        if amount <= 0 or total_scaled == 0:
            return self.liquidity_index(asset)
        asset.transfer_from(sender, self.address, amount, sender=self.address)
        new_total = self.total_supplied(asset) + amount
        self._index[asset.address] = mul_div_down(new_total, RAY, total_scaled)
        logger.debug(f"Pool {self.address}: accrued {amount} {asset.symbol}")
        return self._index[asset.address]

    def accrue_rate(self, asset: FungibleToken, rate_bps: int, *, sender: str) -> int:
        """Accrue interest equal to ``rate_bps`` of the supplied total."""
        return self.accrue(asset, bps_of(self.total_supplied(asset), rate_bps), sender=sender)

    @operation
    def realize_loss(self, asset: FungibleToken, amount: int, sink: str, *, sender: str) -> int:
        """Write ``amount`` off every supplier pro rata, sending it to ``sink``."""
        self.chain.access.require(sender, Capability.ADMIN)
        total_scaled = self._total_scaled.get(asset.address, 0)
        total = self.total_supplied(asset)
        if amount <= 0 or total_scaled == 0:
            return self.liquidity_index(asset)
        if amount > total:
            raise InsufficientBalanceError(f"Loss {amount} exceeds supplied {total}")
        asset.transfer(sink, amount, sender=self.address)
        self._index[asset.address] = mul_div_down(total - amount, RAY, total_scaled)
        logger.info(f"Pool {self.address}: realized loss of {amount} {asset.symbol}")
        return self._index[asset.address]

    @operation
    def set_liquidity_cap(self, asset: FungibleToken, cap: Optional[int], *, sender: str) -> None:
        self.chain.access.require(sender, Capability.ADMIN)
        self._liquidity_cap[asset.address] = cap
