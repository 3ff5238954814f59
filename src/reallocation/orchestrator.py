"""Atomic cross-entity position migration with optional swap."""

import logging
from typing import TYPE_CHECKING, Any, Dict, Optional, Set, Union

from config.settings import Settings, get_settings
from src.core.access import Capability
from src.core.chain import Chain, Component, operation
from src.core.errors import (
    AdapterNotAllowedError,
    AuthorizationError,
    DeadlineExpiredError,
    PreconditionError,
    SameEntityError,
    SlippageError,
    SwapFailedError,
    ZeroAddressError,
    ZeroAmountError,
)
from src.core.fixed_point import mul_div_down
from src.core.models.records import MigrationRecord
from src.reallocation.adapters import SwapAdapter
from src.reallocation.registry import EntityRegistry

if TYPE_CHECKING:
    from src.strategies.strategy import YieldStrategy
    from src.vaults.vault import ValueVault

    Entity = Union[ValueVault, YieldStrategy]

logger = logging.getLogger(__name__)


class ReallocationOrchestrator(Component):
    """
    Moves a holder's position from one vault/strategy to another.

    A migration withdraws the owner's value from the source into the
    orchestrator's custody, swaps it through an allow-listed adapter when the
    assets differ, and deposits the result into the target for the owner.
    The whole sequence runs in one savepoint: any failure leaves every
    balance exactly as it was.

    Owners approve the orchestrator on their source shares beforehand.
    """

    _state_fields = ("_allowed_adapters",)

    def __init__(self, chain: Chain, address: str, settings: Optional[Settings] = None):
        super().__init__(chain, address)
        self.settings = settings or get_settings()
        self.registry = EntityRegistry(chain)
        self._allowed_adapters: Set[str] = set()

    def _snapshot(self) -> Dict[str, Any]:
        state = super()._snapshot()
        state["_registry_entries"] = dict(self.registry._entries)
        return state

    def _restore(self, state: Dict[str, Any]) -> None:
        state = dict(state)
        self.registry._entries = state.pop("_registry_entries")
        super()._restore(state)

    # ========== CONFIGURATION ==========

    @operation
    def set_adapter_allowed(self, adapter: SwapAdapter, allowed: bool, *, sender: str) -> None:
        self.chain.access.require(sender, Capability.ADMIN)
        if allowed:
            self._allowed_adapters.add(adapter.address)
        else:
            self._allowed_adapters.discard(adapter.address)
        logger.info(f"Orchestrator {self.address}: adapter {adapter.address} allowed={allowed}")

    def is_adapter_allowed(self, adapter: Optional[SwapAdapter]) -> bool:
        return adapter is not None and adapter.address in self._allowed_adapters

    @operation
    def register_entity(self, profile: str, asset_symbol: str, entity: "Entity", *, sender: str) -> None:
        self.chain.access.require(sender, Capability.ADMIN)
        self.registry.register(profile, asset_symbol, entity.address)

    @operation
    def unregister_entity(self, profile: str, asset_symbol: str, *, sender: str) -> bool:
        self.chain.access.require(sender, Capability.ADMIN)
        return self.registry.unregister(profile, asset_symbol)

    def default_deadline(self) -> int:
        return self.chain.now + self.settings.migration_deadline_seconds

    # ========== MIGRATION ==========

    @operation
    def migrate(
        self,
        owner: str,
        source: "Entity",
        target: "Entity",
        share_amount: int,
        adapter: Optional[SwapAdapter] = None,
        payload: bytes = b"",
        min_out: int = 0,
        deadline: Optional[int] = None,
        *,
        sender: str,
    ) -> MigrationRecord:
        """
        Move ``share_amount`` of the owner's source shares into target.

        Args:
            owner: Holder of the source shares; always receives target shares
            source: Vault or strategy to exit
            target: Vault or strategy to enter
            share_amount: Source shares to migrate
            adapter: Swap adapter, required when assets differ
            payload: Opaque route handed to the adapter
            min_out: Minimum target-asset output of the swap
            deadline: Latest chain time (default: now + configured window)
            sender: Owner or an AGENT

        Returns:
            MigrationRecord summarizing the move
        """
        deadline = self.default_deadline() if deadline is None else deadline
        self._validate(owner, source, target, share_amount, adapter, deadline, sender)

        # Realize pending profit/loss before valuing shares
        if callable(getattr(source, "report", None)):
            self.chain.best_effort("pre-migration report", source.report, sender=self.address)

        supply = source.total_supply
        if supply == 0:
            raise ZeroAmountError(f"Source {source.address} has no shares outstanding")
        assets_from = mul_div_down(share_amount, source.total_assets(), supply)
        if assets_from == 0:
            raise ZeroAmountError(f"{share_amount} shares of {source.address} are worth nothing")

        shares_burned = source.withdraw(assets_from, self.address, owner, sender=self.address)

        if source.asset is target.asset:
            amount_to_deposit = assets_from
        else:
            amount_to_deposit = self._swap(owner, source, target, assets_from, adapter, payload, min_out)

        target.asset.approve(target.address, amount_to_deposit, sender=self.address)
        shares_minted = target.deposit(amount_to_deposit, owner, sender=self.address)

        record = self.chain.emit(
            MigrationRecord(
                timestamp=self.chain.now,
                owner=owner,
                source=source.address,
                target=target.address,
                shares_burned=shares_burned,
                assets_in=assets_from,
                assets_out=amount_to_deposit,
                shares_minted=shares_minted,
                adapter=adapter.address if adapter is not None and source.asset is not target.asset else None,
            )
        )
        logger.info(
            f"Orchestrator {self.address}: migrated {shares_burned} {source.symbol} -> "
            f"{shares_minted} {target.symbol} for {owner} ({assets_from} -> {amount_to_deposit})"
        )
        return record

    def migrate_profile(
        self,
        owner: str,
        from_profile: str,
        to_profile: str,
        source_asset: str,
        share_amount: int,
        target_asset: Optional[str] = None,
        adapter: Optional[SwapAdapter] = None,
        payload: bytes = b"",
        min_out: int = 0,
        deadline: Optional[int] = None,
        *,
        sender: str,
    ) -> MigrationRecord:
        """Resolve both entities through the registry, then migrate."""
        source = self.registry.resolve(from_profile, source_asset)
        target = self.registry.resolve(to_profile, target_asset or source_asset)
        return self.migrate(
            owner, source, target, share_amount, adapter, payload, min_out, deadline, sender=sender
        )

    # ========== INTERNALS ==========

    def _validate(
        self,
        owner: str,
        source: "Entity",
        target: "Entity",
        share_amount: int,
        adapter: Optional[SwapAdapter],
        deadline: int,
        sender: str,
    ) -> None:
        if not owner or source is None or target is None:
            raise ZeroAddressError("Owner, source and target are required")
        if sender != owner and not self.chain.access.is_authorized(sender, Capability.AGENT):
            raise AuthorizationError(sender, Capability.AGENT.value)
        if self.chain.now > deadline:
            raise DeadlineExpiredError(f"Deadline {deadline} passed (now {self.chain.now})")
        if share_amount <= 0:
            raise ZeroAmountError("Share amount must be positive")
        if source is target or source.address == target.address:
            raise SameEntityError(f"Source and target are both {source.address}")
        if source.asset is not target.asset and not self.is_adapter_allowed(adapter):
            label = adapter.address if adapter is not None else "none"
            raise AdapterNotAllowedError(f"Adapter {label} is not allow-listed")

    def _swap(
        self,
        owner: str,
        source: "Entity",
        target: "Entity",
        amount_in: int,
        adapter: SwapAdapter,
        payload: bytes,
        min_out: int,
    ) -> int:
        before = target.asset.balance_of(self.address)
        source_before = source.asset.balance_of(self.address)
        source.asset.approve(adapter.address, amount_in, sender=self.address)
        try:
            adapter.execute(payload, sender=self.address)
        except Exception as e:
            raise SwapFailedError(f"Adapter {adapter.address} failed: {e}") from e
        source.asset.approve(adapter.address, 0, sender=self.address)

        # Input the adapter left unspent goes back to the owner
        unspent = amount_in - (source_before - source.asset.balance_of(self.address))
        if unspent > 0:
            source.asset.transfer(owner, unspent, sender=self.address)
            logger.info(f"Swap via {adapter.address}: refunded {unspent} {source.asset.symbol} to {owner}")

        received = target.asset.balance_of(self.address) - before
        if received < min_out:
            raise SlippageError(min_out, received)
        if received <= 0:
            raise ZeroAmountError(f"Adapter {adapter.address} returned no {target.asset.symbol}")
        logger.debug(f"Swap via {adapter.address}: {amount_in} -> {received}")
        return received
