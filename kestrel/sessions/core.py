"""
KestrelSessions - Core types.

Defines the session capability interface and the partial implementation
shared by concrete sessions:
- SessionInterface: What callers may do with a session
- AbstractSession: Parameter groups, CSRF token and started flag
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping, Protocol, runtime_checkable

from .faults import SessionReservedNameFault
from .params import ParameterGroup
from .token import Token


# ============================================================================
# SessionInterface - Capability Contract
# ============================================================================

@runtime_checkable
class SessionInterface(Protocol):
    """
    Session capability interface.

    Sessions are explicit, request-scoped containers of named parameter
    groups plus a CSRF token. Lifecycle methods (start/commit/destroy) are
    provided by a concrete binding to a storage backend.
    """

    def start(self) -> SessionInterface:
        ...

    def commit(self) -> SessionInterface:
        ...

    def destroy(self) -> SessionInterface:
        ...

    def clear(self) -> SessionInterface:
        ...

    def has_started(self) -> bool:
        ...

    def get(self, name: str) -> ParameterGroup:
        ...

    def set(self, name: str, values: Mapping[str, Any]) -> SessionInterface:
        ...

    def get_csrf_token(self) -> Token:
        ...


# ============================================================================
# AbstractSession - Shared State Handling
# ============================================================================

class AbstractSession(ABC):
    """
    Partial session implementation that concrete sessions inherit from.

    Handles getting and setting group data and the CSRF token. The started
    flag and the token are lifecycle state: only the concrete binding
    changes them, through ``_set_started`` and ``_set_csrf_token``.
    """

    #: Group names the concrete binding stores its own state under.
    reserved_names: frozenset[str] = frozenset()

    def __init__(self) -> None:
        self._groups: dict[str, ParameterGroup] = {}
        self._started = False
        self._csrf_token: Token | None = None

    # ========================================================================
    # Lifecycle (implemented by concrete bindings)
    # ========================================================================

    @abstractmethod
    def start(self) -> AbstractSession:
        ...

    @abstractmethod
    def commit(self) -> AbstractSession:
        ...

    @abstractmethod
    def destroy(self) -> AbstractSession:
        ...

    # ========================================================================
    # State
    # ========================================================================

    def has_started(self) -> bool:
        return self._started

    def _set_started(self, value: bool) -> AbstractSession:
        self._started = value
        return self

    def clear(self) -> AbstractSession:
        """
        Clear all groups.

        Outstanding references to groups see them emptied; the next ``get``
        creates fresh groups.
        """
        for group in self._groups.values():
            group.clear_data()
        self._groups = {}
        return self

    def get(self, name: str) -> ParameterGroup:
        """
        Get the named group, creating an empty one on first reference.

        Repeated calls return the same instance until ``set`` or ``clear``.
        """
        self._check_name(name)
        group = self._groups.get(name)
        if group is None:
            group = ParameterGroup(name)
            self._groups[name] = group
        return group

    def set(self, name: str, values: Mapping[str, Any]) -> AbstractSession:
        """Replace the named group wholesale."""
        self._check_name(name)
        self._groups[name] = ParameterGroup(name, values)
        return self

    def get_csrf_token(self) -> Token:
        if self._csrf_token is None:
            self._csrf_token = Token()
        return self._csrf_token

    def _set_csrf_token(self, value: str | None) -> AbstractSession:
        # Restored values may not be strings
        self._csrf_token = Token(str(value) if value is not None else None)
        return self

    def _discard_csrf_token(self) -> None:
        self._csrf_token = None

    def _check_name(self, name: str) -> None:
        if name in self.reserved_names:
            raise SessionReservedNameFault(name)

    @property
    def groups(self) -> dict[str, ParameterGroup]:
        """Snapshot of the current groups keyed by name."""
        return dict(self._groups)
