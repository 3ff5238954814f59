"""Fungible token ledger used for underlying assets and share tokens."""

import logging
from typing import Dict, Tuple

from src.core.access import Capability
from src.core.chain import Chain, Component, operation
from src.core.errors import (
    InsufficientAllowanceError,
    InsufficientBalanceError,
    ZeroAddressError,
)
from src.core.models.records import TransferRecord

logger = logging.getLogger(__name__)


class FungibleToken(Component):
    """
    Balance and allowance ledger for one fungible token.

    Vaults and strategies subclass this for their share token; plain
    instances model underlying assets.
    """

    _state_fields = ("_balances", "_allowances", "_total_supply")

    def __init__(self, chain: Chain, address: str, symbol: str, decimals: int = 18):
        super().__init__(chain, address)
        self.symbol = symbol
        self.decimals = decimals
        self._balances: Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}
        self._total_supply = 0

    # Views

    @property
    def total_supply(self) -> int:
        return self._total_supply

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    # Public operations

    def transfer(self, to: str, amount: int, *, sender: str) -> bool:
        self._transfer(sender, to, amount)
        return True

    def approve(self, spender: str, amount: int, *, sender: str) -> bool:
        if not spender:
            raise ZeroAddressError("Spender must be non-empty")
        if amount < 0:
            raise ValueError("Allowance cannot be negative")
        self._allowances[(sender, spender)] = amount
        return True

    def transfer_from(self, owner: str, to: str, amount: int, *, sender: str) -> bool:
        if self.balance_of(owner) < amount:
            raise InsufficientBalanceError(
                f"{self.symbol}: {owner} holds {self.balance_of(owner)}, needs {amount}"
            )
        self._spend_allowance(owner, sender, amount)
        self._transfer(owner, to, amount)
        return True

    # Internal ledger moves (checks precede every mutation)

    def _transfer(self, frm: str, to: str, amount: int) -> None:
        if not frm or not to:
            raise ZeroAddressError("Transfer endpoints must be non-empty")
        if amount < 0:
            raise ValueError("Transfer amount cannot be negative")
        balance = self.balance_of(frm)
        if balance < amount:
            raise InsufficientBalanceError(
                f"{self.symbol}: {frm} holds {balance}, needs {amount}"
            )
        self._balances[frm] = balance - amount
        self._balances[to] = self.balance_of(to) + amount
        self.chain.emit(TransferRecord(self.chain.now, self.address, frm, to, amount))

    def _spend_allowance(self, owner: str, spender: str, amount: int) -> None:
        if owner == spender:
            return
        current = self.allowance(owner, spender)
        if current < amount:
            raise InsufficientAllowanceError(
                f"{self.symbol}: {spender} allowed {current} by {owner}, needs {amount}"
            )
        self._allowances[(owner, spender)] = current - amount

    def _mint(self, to: str, amount: int) -> None:
        if not to:
            raise ZeroAddressError("Mint receiver must be non-empty")
        if amount < 0:
            raise ValueError("Mint amount cannot be negative")
        self._balances[to] = self.balance_of(to) + amount
        self._total_supply += amount

    def _burn(self, frm: str, amount: int) -> None:
        balance = self.balance_of(frm)
        if balance < amount:
            raise InsufficientBalanceError(
                f"{self.symbol}: cannot burn {amount} from {frm} holding {balance}"
            )
        self._balances[frm] = balance - amount
        self._total_supply -= amount


class MintableToken(FungibleToken):
    """Underlying asset with a capability-gated faucet for simulations."""

    @operation
    def mint(self, to: str, amount: int, *, sender: str) -> None:
        self.chain.access.require(sender, Capability.MINTER, Capability.ADMIN)
        self._mint(to, amount)
