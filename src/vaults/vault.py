"""Pooled single-asset vault with proportional shares and fee checkpointing."""

import logging
from typing import Optional

from config.settings import Settings, get_settings
from src.core.access import Capability
from src.core.chain import Chain, operation
from src.core.errors import (
    HaltedError,
    InsufficientBalanceError,
    LiquidityError,
    PreconditionError,
    ZeroAddressError,
    ZeroAmountError,
)
from src.core.fixed_point import bps_of, mul_div_down, mul_div_up
from src.core.models.records import DepositRecord, FeeRecord, LiquidityRecord, WithdrawRecord
from src.core.models.token import FungibleToken
from src.vaults.yield_source import YieldSource

logger = logging.getLogger(__name__)


class ValueVault(FungibleToken):
    """
    Pooled store of one asset that issues proportional shares.

    The vault is its own share token. Total assets are the idle balance it
    holds plus its position in the external yield source:

        total_assets = idle + external

    Rounding always favours the pool: deposits and redeems floor, withdraws
    round the burned shares up.
    """

    _state_fields = FungibleToken._state_fields + (
        "checkpoint",
        "checkpoint_timestamp",
        "fee_rate_bps",
        "fee_recipient",
        "halted",
    )

    def __init__(
        self,
        chain: Chain,
        address: str,
        asset: FungibleToken,
        yield_source: Optional[YieldSource] = None,
        fee_rate_bps: Optional[int] = None,
        fee_recipient: str = "",
        auto_deploy: Optional[bool] = None,
        symbol: Optional[str] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize vault.

        Args:
            chain: Shared runtime
            address: Vault address
            asset: Underlying asset; bound for the vault's lifetime
            yield_source: Optional external source for idle balance
            fee_rate_bps: Performance fee (default from settings)
            fee_recipient: Receiver of fee shares
            auto_deploy: Forward idle balance on deposit (default from settings)
            symbol: Share token symbol (default "v" + asset symbol)
            settings: Settings override
        """
        super().__init__(chain, address, symbol or f"v{asset.symbol}", asset.decimals)
        self.settings = settings or get_settings()
        self._asset = asset
        self.yield_source = yield_source
        self.auto_deploy = self.settings.auto_deploy_idle if auto_deploy is None else auto_deploy

        rate = self.settings.default_fee_rate_bps if fee_rate_bps is None else fee_rate_bps
        self._validate_fee(rate, fee_recipient)
        self.fee_rate_bps = rate
        self.fee_recipient = fee_recipient

        # None until the first take_fees()
        self.checkpoint: Optional[int] = None
        self.checkpoint_timestamp: Optional[int] = None
        self.halted = False

    @property
    def asset(self) -> FungibleToken:
        return self._asset

    # ========== VIEWS ==========

    def idle_assets(self) -> int:
        return self._asset.balance_of(self.address)

    def external_assets(self) -> int:
        if self.yield_source is None:
            return 0
        return self.yield_source.balance_of(self._asset, self.address)

    def total_assets(self) -> int:
        return self.idle_assets() + self.external_assets()

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

    def preview_deposit(self, assets: int) -> int:
        return self.convert_to_shares(assets)

    def preview_withdraw(self, assets: int) -> int:
        """Shares burned by withdraw(assets); rounds up."""
        supply = self.total_supply
        if supply == 0:
            return assets
        return mul_div_up(assets, supply, self.total_assets())

    def preview_redeem(self, shares: int) -> int:
        return self.convert_to_assets(shares)

    def max_withdraw(self, owner: str) -> int:
        return self.convert_to_assets(self.balance_of(owner))

    def max_redeem(self, owner: str) -> int:
        return self.balance_of(owner)

    def share_price(self) -> int:
        """Assets per one whole share (10 ** decimals units)."""
        return self.convert_to_assets(10 ** self.decimals)

    # ========== HOLDER OPERATIONS ==========

    @operation
    def deposit(self, amount: int, receiver: str, *, sender: str) -> int:
        """
        Deposit assets and mint proportional shares.

        Args:
            amount: Assets pulled from sender (requires allowance)
            receiver: Share receiver
            sender: Calling address

        Returns:
            Shares minted
        """
        self._require_active()
        if amount <= 0:
            raise ZeroAmountError("Deposit amount must be positive")
        if not receiver:
            raise ZeroAddressError("Deposit receiver must be non-empty")
        self._settle_fees()

        supply = self.total_supply
        total = self.total_assets()
        if supply > 0 and total == 0:
            raise PreconditionError(f"Vault {self.address} has shares outstanding but no assets")
        shares = amount if supply == 0 else mul_div_down(amount, supply, total)
        if shares == 0:
            raise ZeroAmountError(f"Deposit of {amount} mints zero shares")

        self._asset.transfer_from(sender, self.address, amount, sender=self.address)
        self._mint(receiver, shares)
        if self.checkpoint is not None:
            self.checkpoint += amount
        self.chain.emit(DepositRecord(self.chain.now, self.address, sender, receiver, amount, shares))

        if self.auto_deploy and self.yield_source is not None:
            self._supply(self.idle_assets())

        logger.info(f"Vault {self.address}: deposit {amount} -> {shares} shares for {receiver}")
        return shares

    @operation
    def withdraw(self, amount: int, receiver: str, owner: str, *, sender: str) -> int:
        """
        Withdraw exactly ``amount`` assets, burning shares rounded up.

        Returns:
            Shares burned
        """
        self._require_active()
        if amount <= 0:
            raise ZeroAmountError("Withdraw amount must be positive")
        if not receiver or not owner:
            raise ZeroAddressError("Withdraw receiver and owner must be non-empty")
        self._settle_fees()

        supply = self.total_supply
        total = self.total_assets()
        if supply == 0 or total == 0:
            raise InsufficientBalanceError(f"Vault {self.address} holds nothing to withdraw")
        shares = mul_div_up(amount, supply, total)

        self._exit(sender, receiver, owner, amount, shares)
        return shares

    @operation
    def redeem(self, shares: int, receiver: str, owner: str, *, sender: str) -> int:
        """
        Burn ``shares`` and pay out their floor-rounded asset value.

        Returns:
            Assets sent to receiver
        """
        self._require_active()
        if shares <= 0:
            raise ZeroAmountError("Redeem shares must be positive")
        if not receiver or not owner:
            raise ZeroAddressError("Redeem receiver and owner must be non-empty")
        self._settle_fees()

        assets = self.preview_redeem(shares)
        if assets == 0:
            raise ZeroAmountError(f"Redeem of {shares} shares pays zero assets")

        self._exit(sender, receiver, owner, assets, shares)
        return assets

    # ========== FEES ==========

    @operation
    def take_fees(self, *, sender: str) -> int:
        """
        Checkpoint total value and mint performance-fee shares on growth.

        The first call only initializes the checkpoint. Later calls charge
        ``fee_rate_bps`` of the growth since the checkpoint, converted to
        shares at the pre-mint price, then move the checkpoint to the value
        captured before the mint.

        Deposits, withdrawals and redeems settle fees the same way before
        they move the checkpoint by their principal.

        Returns:
            Fee shares minted
        """
        self.chain.access.require(sender, Capability.KEEPER, Capability.ADMIN)
        self._require_active()

        current = self.total_assets()
        if self.checkpoint is None:
            self.checkpoint = current
            self.checkpoint_timestamp = self.chain.now
            logger.info(f"Vault {self.address}: fee checkpoint initialized at {current}")
            return 0
        return self._charge_fees(current)

    def _settle_fees(self) -> None:
        """Charge growth since the checkpoint before principal moves it."""
        if self.checkpoint is None:
            return
        current = self.total_assets()
        if current != self.checkpoint:
            self._charge_fees(current)

    def _charge_fees(self, current: int) -> int:
        fee_assets = 0
        fee_shares = 0
        # No fee shares without holders
        if current > self.checkpoint and self.fee_rate_bps > 0 and self.total_supply > 0:
            fee_assets = bps_of(current - self.checkpoint, self.fee_rate_bps)
            fee_shares = self.convert_to_shares(fee_assets)
            if fee_shares > 0:
                self._mint(self.fee_recipient, fee_shares)

        self.checkpoint = current
        self.checkpoint_timestamp = self.chain.now
        self.chain.emit(
            FeeRecord(self.chain.now, self.address, self.fee_recipient, fee_assets, fee_shares, current)
        )
        if fee_shares:
            logger.info(f"Vault {self.address}: fee {fee_assets} assets -> {fee_shares} shares")
        return fee_shares

    # ========== LIQUIDITY MANAGEMENT ==========

    @operation
    def supply_to_external(self, amount: int, *, sender: str) -> int:
        """Move idle balance into the yield source. Zero is a no-op."""
        self.chain.access.require(sender, Capability.MANAGER, Capability.ADMIN)
        self._require_active()
        if amount == 0:
            return 0
        if self.yield_source is None:
            raise PreconditionError(f"Vault {self.address} has no yield source")
        idle = self.idle_assets()
        if amount > idle:
            raise InsufficientBalanceError(f"Cannot supply {amount}, idle is {idle}")
        self._supply(amount)
        return amount

    @operation
    def withdraw_from_external(self, amount: int, *, sender: str) -> int:
        """Pull ``amount`` back from the yield source; short receipt is fatal."""
        self.chain.access.require(sender, Capability.MANAGER, Capability.ADMIN)
        self._require_active()
        if amount == 0:
            return 0
        return self._pull(amount)

    # ========== ADMINISTRATION ==========

    @operation
    def set_fee_rate(self, rate_bps: int, *, sender: str) -> None:
        self.chain.access.require(sender, Capability.ADMIN)
        if rate_bps > self.settings.max_fee_rate_bps:
            raise PreconditionError(f"Fee {rate_bps} bps above max {self.settings.max_fee_rate_bps}")
        self._validate_fee(rate_bps, self.fee_recipient)
        self.fee_rate_bps = rate_bps

    @operation
    def set_fee_recipient(self, recipient: str, *, sender: str) -> None:
        self.chain.access.require(sender, Capability.ADMIN)
        self._validate_fee(self.fee_rate_bps, recipient)
        self.fee_recipient = recipient

    @operation
    def set_halted(self, halted: bool, *, sender: str) -> None:
        self.chain.access.require(sender, Capability.ADMIN)
        self.halted = halted
        logger.info(f"Vault {self.address}: halted={halted}")

    # ========== INTERNALS ==========

    def _require_active(self) -> None:
        if self.halted:
            raise HaltedError(f"Vault {self.address} is halted")

    @staticmethod
    def _validate_fee(rate_bps: int, recipient: str) -> None:
        if rate_bps < 0 or rate_bps > 10_000:
            raise PreconditionError(f"Fee rate out of range: {rate_bps}")
        if rate_bps > 0 and not recipient:
            raise ZeroAddressError("A non-zero fee needs a fee recipient")

    def _exit(self, sender: str, receiver: str, owner: str, assets: int, shares: int) -> None:
        balance = self.balance_of(owner)
        if balance < shares:
            raise InsufficientBalanceError(f"{owner} holds {balance} shares, needs {shares}")
        if sender != owner:
            self._spend_allowance(owner, sender, shares)
        self._burn(owner, shares)
        if self.checkpoint is not None:
            self.checkpoint = max(0, self.checkpoint - assets)

        idle = self.idle_assets()
        if idle < assets:
            self._pull(assets - idle)

        self._asset.transfer(receiver, assets, sender=self.address)
        self.chain.emit(WithdrawRecord(self.chain.now, self.address, sender, receiver, owner, assets, shares))
        logger.info(f"Vault {self.address}: withdraw {assets} for {shares} shares from {owner}")

    def _supply(self, amount: int) -> None:
        if amount <= 0:
            return
        self._asset.approve(self.yield_source.address, amount, sender=self.address)
        self.yield_source.supply(self._asset, amount, self.address, sender=self.address)
        self.chain.emit(LiquidityRecord(self.chain.now, self.address, "supply", amount, amount))
        logger.debug(f"Vault {self.address}: supplied {amount} to {self.yield_source.address}")

    def _pull(self, amount: int) -> int:
        if self.yield_source is None:
            raise LiquidityError(amount, 0)
        received = self.yield_source.withdraw(self._asset, amount, self.address, sender=self.address)
        if received < amount:
            raise LiquidityError(amount, received)
        self.chain.emit(LiquidityRecord(self.chain.now, self.address, "withdraw", amount, received))
        logger.debug(f"Vault {self.address}: pulled {received} from {self.yield_source.address}")
        return received
