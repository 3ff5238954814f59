"""In-process ledger runtime: clock, component registry, savepoints and events.

Every public mutating operation runs inside ``Chain.atomic()``. A savepoint
copies the declared state of every registered component; an exception inside
the block restores all of it (and truncates the event log) before propagating,
so no partial result is ever observable.
"""

import copy
import functools
import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Type, TypeVar

from .access import AccessControl
from .errors import ReentrancyError, ZeroAddressError
from .models.records import Record

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Component:
    """
    Base class for stateful participants registered on a chain.

    Subclasses list the attributes that make up their ledger state in
    ``_state_fields``; only those are captured by savepoints. Attributes
    pointing at other components go in ``_ref_fields`` and are captured by
    reference.
    """

    _state_fields: Tuple[str, ...] = ()
    _ref_fields: Tuple[str, ...] = ()

    def __init__(self, chain: "Chain", address: str):
        if not address:
            raise ZeroAddressError("Component address must be non-empty")
        self.chain = chain
        self.address = address
        self._entered = False
        chain.register(self)

    def _snapshot(self) -> Dict[str, Any]:
        state = {name: copy.deepcopy(getattr(self, name)) for name in self._state_fields}
        state.update({name: getattr(self, name) for name in self._ref_fields})
        return state

    def _restore(self, state: Dict[str, Any]) -> None:
        for name, value in state.items():
            setattr(self, name, value)

    @contextmanager
    def _guard(self) -> Iterator[None]:
        if self._entered:
            raise ReentrancyError(f"Re-entrant call into {self.address}")
        self._entered = True
        try:
            yield
        finally:
            self._entered = False

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.address!r})"


def operation(fn: Callable[..., T]) -> Callable[..., T]:
    """Run a component method atomically and under its re-entrancy guard."""

    @functools.wraps(fn)
    def wrapper(self: Component, *args, **kwargs):
        with self.chain.atomic():
            with self._guard():
                return fn(self, *args, **kwargs)

    return wrapper


class Chain:
    """
    Shared runtime for tokens, vaults, strategies, ledgers and orchestrators.

    Holds the clock (unix seconds), the address registry, the capability
    table and the append-only event log.
    """

    def __init__(self, start_time: int = 1_700_000_000, access: Optional[AccessControl] = None):
        self.now = start_time
        self.access = access or AccessControl()
        self.events: List[Record] = []
        self._components: Dict[str, Component] = {}
        self._depth = 0

    # Registry

    def register(self, component: Component) -> None:
        if component.address in self._components:
            raise ValueError(f"Address already registered: {component.address}")
        self._components[component.address] = component

    def resolve(self, address: str) -> Optional[Component]:
        return self._components.get(address)

    def components_of(self, kind: Type[T]) -> List[T]:
        return [c for c in self._components.values() if isinstance(c, kind)]

    # Clock

    def advance(self, seconds: int) -> int:
        """Move the clock forward and return the new time."""
        if seconds < 0:
            raise ValueError("Clock cannot move backwards")
        self.now += seconds
        return self.now

    # Events

    def emit(self, record: Record) -> Record:
        self.events.append(record)
        return record

    def events_of(self, kind: Type[T]) -> List[T]:
        return [e for e in self.events if isinstance(e, kind)]

    # Atomicity

    @property
    def in_operation(self) -> bool:
        return self._depth > 0

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Open a savepoint; roll every component back if the block raises."""
        saved = {addr: c._snapshot() for addr, c in self._components.items()}
        event_count = len(self.events)
        self._depth += 1
        try:
            yield
        except BaseException:
            for addr, state in saved.items():
                self._components[addr]._restore(state)
            del self.events[event_count:]
            logger.debug(f"Rolled back savepoint at depth {self._depth}")
            raise
        finally:
            self._depth -= 1

    def best_effort(self, label: str, fn: Callable[..., T], *args, **kwargs) -> Optional[T]:
        """
        Call ``fn`` in its own savepoint and swallow any failure.

        A failed call is rolled back, logged at WARNING and reported as None.
        """
        try:
            with self.atomic():
                return fn(*args, **kwargs)
        except Exception as e:
            logger.warning(f"Best-effort call '{label}' failed: {e}")
            return None
