"""Base funds deployer abstract class."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from src.core.models.token import FungibleToken
from src.vaults.vault import ValueVault

if TYPE_CHECKING:
    from src.strategies.strategy import YieldStrategy


class FundsDeployer(ABC):
    """
    Abstract base class for strategy fund movement.

    Deployers implement the logic for:
    - Deploying idle strategy balance into the bound vault
    - Freeing funds back to the strategy on withdraw
    - Valuing the deployed position in the strategy's asset

    A deployer is chosen when the strategy is built and holds no ledger
    state of its own; the vault is always passed in by the strategy.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Deployer name."""
        pass

    @abstractmethod
    def vault_asset(self, strategy: "YieldStrategy") -> FungibleToken:
        """Asset the bound vault must hold for this deployer."""
        pass

    @abstractmethod
    def deploy(self, strategy: "YieldStrategy", vault: ValueVault, amount: int) -> None:
        """
        Move ``amount`` of the strategy's idle asset into the vault.

        Args:
            strategy: Owning strategy (holds the funds)
            vault: Bound vault
            amount: Strategy-asset units to deploy
        """
        pass

    @abstractmethod
    def free(self, strategy: "YieldStrategy", vault: ValueVault, amount: int) -> int:
        """
        Bring up to ``amount`` of strategy asset back to the strategy.

        Returns:
            Strategy-asset units actually freed
        """
        pass

    @abstractmethod
    def free_all(self, strategy: "YieldStrategy", vault: ValueVault) -> int:
        """Exit the whole vault position; returns strategy-asset units freed."""
        pass

    @abstractmethod
    def deployed_value(self, strategy: "YieldStrategy", vault: ValueVault) -> int:
        """Value of the vault position in strategy-asset units."""
        pass
