"""Keyed (profile, asset) -> entity table used for profile migrations."""

import logging
from typing import Dict, List, Optional, Tuple

from src.core.chain import Chain
from src.core.errors import PreconditionError, ZeroAddressError

logger = logging.getLogger(__name__)


class EntityRegistry:
    """
    Explicit table mapping (profile, asset symbol) to a vault or strategy.

    Stores addresses only; entities are resolved through the chain so the
    table can be captured by savepoints like any other ledger state.
    """

    def __init__(self, chain: Chain):
        self.chain = chain
        self._entries: Dict[Tuple[str, str], str] = {}

    def register(self, profile: str, asset_symbol: str, entity_address: str) -> None:
        if not profile or not asset_symbol:
            raise PreconditionError("Profile and asset symbol must be non-empty")
        if not entity_address:
            raise ZeroAddressError("Entity address must be non-empty")
        if self.chain.resolve(entity_address) is None:
            raise PreconditionError(f"Unknown entity: {entity_address}")
        self._entries[(profile, asset_symbol)] = entity_address
        logger.debug(f"Registry: {profile}/{asset_symbol} -> {entity_address}")

    def unregister(self, profile: str, asset_symbol: str) -> bool:
        return self._entries.pop((profile, asset_symbol), None) is not None

    def lookup(self, profile: str, asset_symbol: str) -> Optional[str]:
        return self._entries.get((profile, asset_symbol))

    def resolve(self, profile: str, asset_symbol: str):
        """Return the registered entity or raise PreconditionError."""
        address = self.lookup(profile, asset_symbol)
        if address is None:
            raise PreconditionError(f"No entity registered for {profile}/{asset_symbol}")
        return self.chain.resolve(address)

    def profiles(self) -> List[str]:
        return sorted({profile for profile, _ in self._entries})

    def assets_for(self, profile: str) -> List[str]:
        return sorted(asset for p, asset in self._entries if p == profile)
