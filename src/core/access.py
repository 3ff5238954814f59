"""Capability table shared by every component."""

import logging
from enum import Enum
from typing import Iterable, Set, Tuple

from .errors import AuthorizationError

logger = logging.getLogger(__name__)


class Capability(Enum):
    """Capabilities checked at the start of privileged operations."""

    ADMIN = "admin"          # configuration of any component
    KEEPER = "keeper"        # report(), take_fees()
    MANAGER = "manager"      # vault <-> yield source liquidity moves
    STRATEGY = "strategy"    # may credit shares into a donation ledger
    AGENT = "agent"          # may migrate positions on behalf of owners
    MINTER = "minter"        # test/simulation faucet on plain tokens


class AccessControl:
    """
    Explicit (capability, principal) -> bool table.

    Granting and revoking are plain table edits; who may edit the table is
    decided outside the engine.
    """

    def __init__(self, grants: Iterable[Tuple[Capability, str]] = ()):
        self._grants: Set[Tuple[Capability, str]] = set(grants)

    def grant(self, capability: Capability, principal: str) -> None:
        self._grants.add((capability, principal))
        logger.debug(f"Granted {capability.value} to {principal}")

    def revoke(self, capability: Capability, principal: str) -> None:
        self._grants.discard((capability, principal))
        logger.debug(f"Revoked {capability.value} from {principal}")

    def is_authorized(self, principal: str, capability: Capability) -> bool:
        return (capability, principal) in self._grants

    def require(self, principal: str, *capabilities: Capability) -> None:
        """
        Raise unless principal holds at least one of the capabilities.

        Args:
            principal: Calling address
            *capabilities: Acceptable capabilities (any one suffices)

        Raises:
            AuthorizationError: If none is held
        """
        if any(self.is_authorized(principal, c) for c in capabilities):
            return
        raise AuthorizationError(principal, "|".join(c.value for c in capabilities))
