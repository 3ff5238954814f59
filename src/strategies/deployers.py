"""Direct and swap-then-deposit deployers."""

import logging
from typing import TYPE_CHECKING

from src.core.models.token import FungibleToken
from src.reallocation.adapters import PricedSwapper
from src.strategies.base import FundsDeployer
from src.vaults.vault import ValueVault

if TYPE_CHECKING:
    from src.strategies.strategy import YieldStrategy

logger = logging.getLogger(__name__)


class VaultDeployer(FundsDeployer):
    """Deposits the strategy asset straight into a vault of the same asset."""

    @property
    def name(self) -> str:
        return "vault"

    def vault_asset(self, strategy: "YieldStrategy") -> FungibleToken:
        return strategy.asset

    def deploy(self, strategy: "YieldStrategy", vault: ValueVault, amount: int) -> None:
        if amount <= 0:
            return
        strategy.asset.approve(vault.address, amount, sender=strategy.address)
        vault.deposit(amount, strategy.address, sender=strategy.address)

    def free(self, strategy: "YieldStrategy", vault: ValueVault, amount: int) -> int:
        amount = min(amount, vault.max_withdraw(strategy.address))
        if amount <= 0:
            return 0
        vault.withdraw(amount, strategy.address, strategy.address, sender=strategy.address)
        return amount

    def free_all(self, strategy: "YieldStrategy", vault: ValueVault) -> int:
        shares = vault.balance_of(strategy.address)
        if shares == 0 or vault.preview_redeem(shares) == 0:
            return 0
        return vault.redeem(shares, strategy.address, strategy.address, sender=strategy.address)

    def deployed_value(self, strategy: "YieldStrategy", vault: ValueVault) -> int:
        return vault.max_withdraw(strategy.address)


class SwapVaultDeployer(FundsDeployer):
    """
    Swaps the strategy asset into another asset before depositing.

    Used when the yield lives in a vault of a different asset. The deployed
    position is valued by quoting the vault withdrawal back into the
    strategy asset, so swap costs show up as reported loss.
    """

    def __init__(self, swapper: PricedSwapper, target_asset: FungibleToken):
        self.swapper = swapper
        self.target_asset = target_asset

    @property
    def name(self) -> str:
        return "swap_vault"

    def vault_asset(self, strategy: "YieldStrategy") -> FungibleToken:
        return self.target_asset

    def deploy(self, strategy: "YieldStrategy", vault: ValueVault, amount: int) -> None:
        if amount <= 0:
            return
        strategy.asset.approve(self.swapper.address, amount, sender=strategy.address)
        received = self.swapper.swap_exact_in(
            strategy.asset, self.target_asset, amount, strategy.address, sender=strategy.address
        )
        strategy.asset.approve(self.swapper.address, 0, sender=strategy.address)
        if received <= 0:
            return
        self.target_asset.approve(vault.address, received, sender=strategy.address)
        vault.deposit(received, strategy.address, sender=strategy.address)
        logger.debug(f"Strategy {strategy.address}: swapped {amount} into {received} {self.target_asset.symbol}")

    def free(self, strategy: "YieldStrategy", vault: ValueVault, amount: int) -> int:
        if amount <= 0:
            return 0
        needed = self.swapper.quote_in(self.target_asset, strategy.asset, amount)
        needed = min(needed, vault.max_withdraw(strategy.address))
        if needed <= 0:
            return 0
        vault.withdraw(needed, strategy.address, strategy.address, sender=strategy.address)
        return self._swap_back(strategy, needed)

    def free_all(self, strategy: "YieldStrategy", vault: ValueVault) -> int:
        shares = vault.balance_of(strategy.address)
        if shares == 0 or vault.preview_redeem(shares) == 0:
            return 0
        assets = vault.redeem(shares, strategy.address, strategy.address, sender=strategy.address)
        return self._swap_back(strategy, assets)

    def deployed_value(self, strategy: "YieldStrategy", vault: ValueVault) -> int:
        position = vault.max_withdraw(strategy.address)
        if position == 0:
            return 0
        return self.swapper.quote(self.target_asset, strategy.asset, position)

    def _swap_back(self, strategy: "YieldStrategy", amount: int) -> int:
        self.target_asset.approve(self.swapper.address, amount, sender=strategy.address)
        received = self.swapper.swap_exact_in(
            self.target_asset, strategy.asset, amount, strategy.address, sender=strategy.address
        )
        self.target_asset.approve(self.swapper.address, 0, sender=strategy.address)
        return received
