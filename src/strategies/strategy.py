"""Yield-tracking strategy that turns realized profit into donation shares."""

import logging
from enum import Enum
from typing import Optional, Tuple

from src.core.access import Capability
from src.core.chain import Chain, operation
from src.core.errors import (
    AssetMismatchError,
    InsufficientBalanceError,
    LiquidityError,
    PreconditionError,
    ZeroAddressError,
    ZeroAmountError,
)
from src.core.fixed_point import mul_div_down, mul_div_up
from src.core.models.records import DepositRecord, ReportRecord, WithdrawRecord
from src.core.models.token import FungibleToken
from src.strategies.base import FundsDeployer
from src.strategies.deployers import VaultDeployer
from src.vaults.vault import ValueVault

logger = logging.getLogger(__name__)


class StrategyState(Enum):
    """Reporting lifecycle."""

    UNINITIALIZED = "uninitialized"
    TRACKING = "tracking"


class YieldStrategy(FungibleToken):
    """
    Single-vault wrapper exposing its own share token.

    Each report compares current value (idle balance plus the deployed
    position) against the stored baseline:

    - growth mints floor(profit * supply / baseline) shares to the donation
      recipient, so depositors keep their principal and the donation
      recipient captures the yield;
    - a drop burns up to floor(loss * supply / baseline) shares from the
      donation recipient before depositor principal is touched.

    The first report only initializes the baseline. Once tracking, deposits
    and exits first realize any pending change, so shares are always priced
    at the baseline and principal flows move it one for one.
    """

    _state_fields = FungibleToken._state_fields + ("baseline", "donation_recipient")
    _ref_fields = ("_vault",)

    def __init__(
        self,
        chain: Chain,
        address: str,
        asset: FungibleToken,
        vault: ValueVault,
        donation_recipient: str,
        deployer: Optional[FundsDeployer] = None,
        symbol: Optional[str] = None,
    ):
        """
        Initialize strategy.

        Args:
            chain: Shared runtime
            address: Strategy address
            asset: Asset accepted from depositors
            vault: Bound vault; must hold ``deployer.vault_asset``
            donation_recipient: Receiver of minted donation shares
            deployer: Fund movement variant (default: direct vault deposit)
            symbol: Share token symbol (default "ys" + asset symbol)
        """
        if not donation_recipient:
            raise ZeroAddressError("Donation recipient must be non-empty")
        self._asset = asset
        self.deployer = deployer or VaultDeployer()
        self._check_vault_asset(vault)
        super().__init__(chain, address, symbol or f"ys{asset.symbol}", asset.decimals)
        self._vault = vault
        self.donation_recipient = donation_recipient
        self.baseline = 0

    @property
    def asset(self) -> FungibleToken:
        return self._asset

    @property
    def vault(self) -> ValueVault:
        return self._vault

    @property
    def state(self) -> StrategyState:
        return StrategyState.UNINITIALIZED if self.baseline == 0 else StrategyState.TRACKING

    # ========== VIEWS ==========

    def idle_assets(self) -> int:
        return self._asset.balance_of(self.address)

    def deployed_assets(self) -> int:
        return self.deployer.deployed_value(self, self._vault)

    def total_assets(self) -> int:
        return self.idle_assets() + self.deployed_assets()

    def convert_to_shares(self, assets: int) -> int:
        supply = self.total_supply
        if supply == 0:
            return assets
        total = self.total_assets()
        if total == 0:
            return 0
        return mul_div_down(assets, supply, total)

    def convert_to_assets(self, shares: int) -> int:
        supply = self.total_supply
        if supply == 0:
            return shares
        return mul_div_down(shares, self.total_assets(), supply)

    def max_withdraw(self, owner: str) -> int:
        return self.convert_to_assets(self.balance_of(owner))

    # ========== HOLDER OPERATIONS ==========

    @operation
    def deposit(self, amount: int, receiver: str, *, sender: str) -> int:
        """Deposit assets, mint strategy shares and deploy the idle balance."""
        if amount <= 0:
            raise ZeroAmountError("Deposit amount must be positive")
        if not receiver:
            raise ZeroAddressError("Deposit receiver must be non-empty")
        self._realize_pending()

        supply = self.total_supply
        total = self.total_assets()
        if supply > 0 and total == 0:
            raise PreconditionError(f"Strategy {self.address} has shares outstanding but no assets")
        shares = amount if supply == 0 else mul_div_down(amount, supply, total)
        if shares == 0:
            raise ZeroAmountError(f"Deposit of {amount} mints zero shares")

        self._asset.transfer_from(sender, self.address, amount, sender=self.address)
        self._mint(receiver, shares)
        if self.baseline > 0:
            self.baseline += amount
        self.chain.emit(DepositRecord(self.chain.now, self.address, sender, receiver, amount, shares))

        self.deploy_funds(self.idle_assets())
        logger.info(f"Strategy {self.address}: deposit {amount} -> {shares} shares for {receiver}")
        return shares

    @operation
    def withdraw(self, amount: int, receiver: str, owner: str, *, sender: str) -> int:
        """Withdraw exactly ``amount`` assets; returns shares burned (rounded up)."""
        if amount <= 0:
            raise ZeroAmountError("Withdraw amount must be positive")
        if not receiver or not owner:
            raise ZeroAddressError("Withdraw receiver and owner must be non-empty")
        self._realize_pending()
        supply = self.total_supply
        total = self.total_assets()
        if supply == 0 or total == 0:
            raise InsufficientBalanceError(f"Strategy {self.address} holds nothing to withdraw")
        shares = mul_div_up(amount, supply, total)
        self._exit(sender, receiver, owner, amount, shares)
        return shares

    @operation
    def redeem(self, shares: int, receiver: str, owner: str, *, sender: str) -> int:
        """Burn ``shares`` for their floor-rounded asset value."""
        if shares <= 0:
            raise ZeroAmountError("Redeem shares must be positive")
        if not receiver or not owner:
            raise ZeroAddressError("Redeem receiver and owner must be non-empty")
        self._realize_pending()
        assets = self.convert_to_assets(shares)
        if assets == 0:
            raise ZeroAmountError(f"Redeem of {shares} shares pays zero assets")
        self._exit(sender, receiver, owner, assets, shares)
        return assets

    # ========== REPORTING ==========

    @operation
    def report(self, *, sender: str) -> Tuple[int, int]:
        """
        Realize profit or loss against the baseline.

        Returns:
            Tuple of (profit, loss) in asset units
        """
        self.chain.access.require(sender, Capability.KEEPER, Capability.ADMIN)
        return self._realize()

    def _realize_pending(self) -> None:
        """Report an unrealized change so holder flows are priced on the baseline."""
        if self.baseline > 0 and self.total_assets() != self.baseline:
            self._realize()

    def _realize(self) -> Tuple[int, int]:
        current = self.total_assets()

        if self.baseline == 0:
            self.baseline = current
            self.chain.emit(ReportRecord(self.chain.now, self.address, 0, 0, 0, 0, current))
            logger.info(f"Strategy {self.address}: baseline initialized at {current}")
            return 0, 0

        profit = loss = minted = burned = 0
        supply = self.total_supply
        if current > self.baseline:
            profit = current - self.baseline
            if supply > 0:
                minted = mul_div_down(profit, supply, self.baseline)
                if minted > 0:
                    self._mint(self.donation_recipient, minted)
        elif current < self.baseline:
            loss = self.baseline - current
            if supply > 0:
                burned = min(
                    mul_div_down(loss, supply, self.baseline),
                    self.balance_of(self.donation_recipient),
                )
                if burned > 0:
                    self._burn(self.donation_recipient, burned)

        self.baseline = current
        self.chain.emit(ReportRecord(self.chain.now, self.address, profit, loss, minted, burned, current))
        logger.info(
            f"Strategy {self.address}: report profit={profit} loss={loss} "
            f"minted={minted} burned={burned} baseline={current}"
        )

        if minted > 0:
            self._notify_recipient("receive_shares", minted)
        elif burned > 0:
            self._notify_recipient("absorb_loss")
        return profit, loss

    def _notify_recipient(self, hook: str, *args) -> None:
        """Call a donation-recipient hook if the recipient is a contract that has one."""
        recipient = self.chain.resolve(self.donation_recipient)
        callback = getattr(recipient, hook, None)
        if callback is None:
            return
        self.chain.best_effort(f"donation {hook}", callback, self, *args, sender=self.address)

    # ========== FUND MOVEMENT ==========

    def deploy_funds(self, amount: int) -> None:
        if amount > 0:
            self.deployer.deploy(self, self._vault, amount)

    def free_funds(self, amount: int) -> int:
        if amount <= 0:
            return 0
        return self.deployer.free(self, self._vault, amount)

    # ========== ADMINISTRATION ==========

    @operation
    def set_vault(self, vault: ValueVault, *, sender: str) -> None:
        """Rebind to another vault of the same asset, moving the position."""
        self.chain.access.require(sender, Capability.ADMIN)
        if vault is self._vault:
            return
        self._check_vault_asset(vault)
        freed = self.deployer.free_all(self, self._vault)
        old = self._vault
        self._vault = vault
        self.deploy_funds(self.idle_assets())
        logger.info(f"Strategy {self.address}: moved {freed} from {old.address} to {vault.address}")

    @operation
    def set_donation_recipient(self, recipient: str, *, sender: str) -> None:
        self.chain.access.require(sender, Capability.ADMIN)
        if not recipient:
            raise ZeroAddressError("Donation recipient must be non-empty")
        self.donation_recipient = recipient

    # ========== INTERNALS ==========

    def _check_vault_asset(self, vault: ValueVault) -> None:
        expected = self.deployer.vault_asset(self)
        if vault.asset is not expected:
            raise AssetMismatchError(
                f"Vault {vault.address} holds {vault.asset.symbol}, expected {expected.symbol}"
            )

    def _exit(self, sender: str, receiver: str, owner: str, assets: int, shares: int) -> None:
        balance = self.balance_of(owner)
        if balance < shares:
            raise InsufficientBalanceError(f"{owner} holds {balance} shares, needs {shares}")
        if sender != owner:
            self._spend_allowance(owner, sender, shares)
        self._burn(owner, shares)
        if self.baseline > 0:
            self.baseline = max(0, self.baseline - assets)

        idle = self.idle_assets()
        if idle < assets:
            self.free_funds(assets - idle)
            idle = self.idle_assets()
            if idle < assets:
                raise LiquidityError(assets, idle)

        self._asset.transfer(receiver, assets, sender=self.address)
        self.chain.emit(WithdrawRecord(self.chain.now, self.address, sender, receiver, owner, assets, shares))
        logger.info(f"Strategy {self.address}: withdraw {assets} for {shares} shares from {owner}")
