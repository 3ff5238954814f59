"""Weighted multi-recipient donation ledger with pull-based claiming."""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from config.settings import Settings, get_settings
from src.core.access import Capability
from src.core.chain import Chain, Component, operation
from src.core.constants import DONATION_PRESETS
from src.core.errors import (
    InsufficientBalanceError,
    PreconditionError,
    ZeroAddressError,
    ZeroAmountError,
)
from src.core.fixed_point import mul_div_down, mul_div_up
from src.core.models.records import ClaimRecord, DonationCreditRecord, RecipientsUpdatedRecord
from src.core.models.token import FungibleToken

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Recipient:
    """One donation beneficiary."""

    address: str
    weight: int
    active: bool = True

    def to_dict(self) -> dict:
        return {"address": self.address, "weight": self.weight, "active": self.active}


def preset_recipients(preset: str, addresses: Sequence[str]) -> List[Recipient]:
    """Pair ``addresses`` with the weights of a named preset."""
    weights = DONATION_PRESETS.get(preset.lower())
    if weights is None:
        raise PreconditionError(f"Unknown donation preset: {preset}")
    if len(addresses) != len(weights):
        raise PreconditionError(f"Preset {preset} needs {len(weights)} addresses, got {len(addresses)}")
    return [Recipient(address, weight) for address, weight in zip(addresses, weights)]


class DonationLedger(Component):
    """
    Splits credited share amounts across weighted recipients.

    Tokens arrive first (minted or transferred to the ledger), then are
    credited with ``receive_shares``. Each active recipient gets
    floor(amount * weight / total_weight); the rounding remainder stays in
    the ledger's holdings. Recipients pull their balances with ``claim``.

    Invariants per token:
        sum(claimable) <= accounted <= held balance

    A claim lowers claimable and accounted together; ``claimed`` is a
    running total kept outside ``accounted``.
    """

    _state_fields = ("_recipients", "_accounted", "_claimable", "_claimed")

    def __init__(self, chain: Chain, address: str, recipients: Iterable[Recipient] = ()):
        super().__init__(chain, address)
        self._recipients: List[Recipient] = []
        self._accounted: Dict[str, int] = {}
        self._claimable: Dict[Tuple[str, str], int] = {}
        self._claimed: Dict[Tuple[str, str], int] = {}
        for recipient in recipients:
            self._add(recipient)

    @classmethod
    def from_preset(
        cls,
        chain: Chain,
        address: str,
        addresses: Sequence[str],
        preset: Optional[str] = None,
        settings: Optional[Settings] = None,
    ) -> "DonationLedger":
        """
        Build a ledger whose recipients follow a weight preset.

        Args:
            chain: Shared runtime
            address: Ledger address
            addresses: Three recipient addresses, in weight order
            preset: Preset name (default: settings.default_donation_preset)
            settings: Settings override
        """
        preset = preset or (settings or get_settings()).default_donation_preset
        return cls(chain, address, preset_recipients(preset, addresses))

    # ========== VIEWS ==========

    @property
    def recipients(self) -> List[Recipient]:
        return list(self._recipients)

    @property
    def total_weight(self) -> int:
        return sum(r.weight for r in self._recipients if r.active)

    def accounted(self, token: FungibleToken) -> int:
        return self._accounted.get(token.address, 0)

    def unaccounted(self, token: FungibleToken) -> int:
        """Held balance not yet credited to anyone."""
        return max(0, token.balance_of(self.address) - self.accounted(token))

    def claimable(self, token: FungibleToken, recipient: str) -> int:
        return self._claimable.get((token.address, recipient), 0)

    def claimed(self, token: FungibleToken, recipient: str) -> int:
        return self._claimed.get((token.address, recipient), 0)

    def total_claimable(self, token: FungibleToken) -> int:
        return sum(v for (t, _), v in self._claimable.items() if t == token.address)

    # ========== CREDITING ==========

    @operation
    def receive_shares(self, token: FungibleToken, amount: int, *, sender: str) -> int:
        """
        Credit ``amount`` of already-held ``token`` to the active recipients.

        Args:
            token: Share token held by the ledger
            amount: Units to credit
            sender: Strategy or administrator

        Returns:
            Units actually assigned to recipients (amount minus remainder)
        """
        self.chain.access.require(sender, Capability.STRATEGY, Capability.ADMIN)
        return self._credit(token, amount)

    @operation
    def sync(self, token: FungibleToken, *, sender: str) -> int:
        """
        Reconcile accounting with the held balance of ``token``.

        Credits shares minted while a credit notification failed, or absorbs
        shares burned from the ledger by a strategy loss.

        Returns:
            Net change of the accounted total (negative after a loss)
        """
        self.chain.access.require(sender, Capability.STRATEGY, Capability.KEEPER, Capability.ADMIN)
        pending = self.unaccounted(token)
        if pending > 0:
            self._credit(token, pending)
            logger.info(f"Ledger {self.address}: synced {pending} unaccounted {token.symbol}")
            return pending
        return -self._absorb(token)

    @operation
    def absorb_loss(self, token: FungibleToken, *, sender: str) -> int:
        """
        Shrink accounting after shares were burned from the ledger.

        The deficit (accounted minus held) comes out of the uncredited
        rounding remainder first, then out of every recipient's claimable
        balance pro rata, rounded up so the books never exceed holdings.

        Returns:
            Units removed from the accounted total
        """
        self.chain.access.require(sender, Capability.STRATEGY, Capability.KEEPER, Capability.ADMIN)
        return self._absorb(token)

    def _absorb(self, token: FungibleToken) -> int:
        accounted = self.accounted(token)
        deficit = accounted - token.balance_of(self.address)
        if deficit <= 0:
            return 0

        total_claimable = self.total_claimable(token)
        from_remainder = min(deficit, accounted - total_claimable)
        remaining = deficit - from_remainder
        removed = from_remainder

        if remaining > 0 and total_claimable > 0:
            for (t, recipient), balance in list(self._claimable.items()):
                if t != token.address or balance == 0:
                    continue
                cut = min(balance, mul_div_up(balance, remaining, total_claimable))
                self._claimable[(t, recipient)] = balance - cut
                removed += cut

        self._accounted[token.address] = accounted - removed
        logger.info(f"Ledger {self.address}: absorbed {removed} {token.symbol} of burned donations")
        return removed

    def _credit(self, token: FungibleToken, amount: int) -> int:
        if amount <= 0:
            raise ZeroAmountError("Credited amount must be positive")
        held = token.balance_of(self.address)
        accounted = self.accounted(token)
        if held < accounted + amount:
            raise InsufficientBalanceError(
                f"Ledger holds {held} {token.symbol}, cannot account {accounted} + {amount}"
            )
        active = [r for r in self._recipients if r.active and r.weight > 0]
        total_weight = sum(r.weight for r in active)
        if total_weight == 0:
            raise PreconditionError(f"Ledger {self.address} has no active recipients")

        assigned = 0
        for recipient in active:
            share = mul_div_down(amount, recipient.weight, total_weight)
            key = (token.address, recipient.address)
            self._claimable[key] = self._claimable.get(key, 0) + share
            assigned += share
        self._accounted[token.address] = accounted + amount

        self.chain.emit(DonationCreditRecord(self.chain.now, self.address, token.address, amount, total_weight))
        logger.info(
            f"Ledger {self.address}: credited {amount} {token.symbol} to {len(active)} recipients "
            f"(remainder {amount - assigned})"
        )
        return assigned

    # ========== CLAIMING ==========

    @operation
    def claim(self, token: FungibleToken, *, sender: str) -> int:
        """Pay the caller's whole claimable balance of ``token``."""
        amount = self._claim(token, sender)
        if amount == 0:
            raise ZeroAmountError(f"{sender} has nothing to claim in {token.symbol}")
        return amount

    @operation
    def claim_multiple(self, tokens: Sequence[FungibleToken], *, sender: str) -> Dict[str, int]:
        """
        Claim every token in ``tokens`` with a non-zero balance.

        Returns:
            Mapping of token symbol to amount paid
        """
        paid = {}
        for token in tokens:
            amount = self._claim(token, sender)
            if amount > 0:
                paid[token.symbol] = amount
        if not paid:
            raise ZeroAmountError(f"{sender} has nothing to claim")
        return paid

    def _claim(self, token: FungibleToken, recipient: str) -> int:
        key = (token.address, recipient)
        amount = self._claimable.get(key, 0)
        if amount == 0:
            return 0
        # Zero the balance before paying out
        self._claimable[key] = 0
        self._claimed[key] = self._claimed.get(key, 0) + amount
        self._accounted[token.address] = self.accounted(token) - amount
        token.transfer(recipient, amount, sender=self.address)
        self.chain.emit(ClaimRecord(self.chain.now, self.address, token.address, recipient, amount))
        logger.info(f"Ledger {self.address}: {recipient} claimed {amount} {token.symbol}")
        return amount

    # ========== RECIPIENT CONFIGURATION ==========

    @operation
    def apply_preset(self, preset: str, addresses: Sequence[str], *, sender: str) -> None:
        """
        Replace all recipients with a named weight preset.

        Args:
            preset: One of DONATION_PRESETS ("balanced", "focused", "equal")
            addresses: Exactly three recipient addresses, in weight order
            sender: Administrator
        """
        self.chain.access.require(sender, Capability.ADMIN)
        recipients = preset_recipients(preset, addresses)

        self._recipients = []
        for recipient in recipients:
            self._add(recipient)
        self._emit_update(preset.lower())

    @operation
    def add_recipient(self, address: str, weight: int, *, sender: str) -> None:
        self.chain.access.require(sender, Capability.ADMIN)
        self._add(Recipient(address, weight))
        self._emit_update(None)

    @operation
    def update_recipient(self, address: str, weight: int, active: bool = True, *, sender: str) -> None:
        self.chain.access.require(sender, Capability.ADMIN)
        if weight <= 0:
            raise ZeroAmountError("Recipient weight must be positive")
        for i, recipient in enumerate(self._recipients):
            if recipient.address == address:
                self._recipients[i] = Recipient(address, weight, active)
                self._emit_update(None)
                return
        raise PreconditionError(f"Unknown recipient: {address}")

    def _add(self, recipient: Recipient) -> None:
        if not recipient.address:
            raise ZeroAddressError("Recipient address must be non-empty")
        if recipient.weight <= 0:
            raise ZeroAmountError("Recipient weight must be positive")
        if any(r.address == recipient.address for r in self._recipients):
            raise PreconditionError(f"Duplicate recipient: {recipient.address}")
        self._recipients.append(recipient)

    def _emit_update(self, preset: Optional[str]) -> None:
        self.chain.emit(
            RecipientsUpdatedRecord(
                self.chain.now,
                self.address,
                preset,
                tuple((r.address, r.weight, r.active) for r in self._recipients),
            )
        )
        logger.info(f"Ledger {self.address}: recipients updated (preset={preset})")
