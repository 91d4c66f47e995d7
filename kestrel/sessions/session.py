"""
KestrelSessions - Backend-bound session.

BackendSession drives the session lifecycle against a SessionBackend:
1. Start - Open the backend session, rotate the id if due, load raw data
2. Mutation - Handler reads/writes parameter groups and the CSRF token
3. Commit - Write non-empty groups and reserved keys back, close backend
4. Destroy - Erase the backend session and all in-memory state

Transport of the session id (cookie, header, URL) is left to the caller:
the resolved id is exposed as ``BackendSession.id`` after ``start()``.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from .backend import SessionBackend, as_flag
from .core import AbstractSession
from .faults import (
    SessionAlreadyActiveFault,
    SessionAlreadyStartedFault,
    SessionBackendDisabledFault,
    SessionConfigurationFault,
    SessionNotStartedFault,
    SessionStoreCorruptedFault,
    hash_session_id,
)


#: Reserved backend key holding the id expiration timestamp.
ID_EXPIRATION_KEY = "@id_expiration_interval"

#: Reserved backend key holding the CSRF token value.
CSRF_KEY = "@csrf"

RESERVED_KEYS = frozenset({ID_EXPIRATION_KEY, CSRF_KEY})


def _system_clock() -> int:
    return int(time.time())


def clean_options(options: Mapping[str, Any] | None) -> dict[str, Any]:
    """
    Validate and normalise backend options.

    The session id travels through an external transport, so the backend
    must never emit cookies itself or accept ids embedded in URLs.

    Raises:
        SessionConfigurationFault: A transport option is enabled
    """
    cleaned = dict(options or {})

    # Name is handled independently
    cleaned.pop("name", None)

    cleaned["use_cookies"] = as_flag(cleaned.get("use_cookies", False))
    if cleaned["use_cookies"]:
        raise SessionConfigurationFault("use_cookies", "must be false")

    # URL based session ids stay disabled
    cleaned["use_only_cookies"] = as_flag(cleaned.get("use_only_cookies", True))
    if not cleaned["use_only_cookies"]:
        raise SessionConfigurationFault("use_only_cookies", "must be true")

    cleaned["use_trans_sid"] = as_flag(cleaned.get("use_trans_sid", False))
    if cleaned["use_trans_sid"]:
        raise SessionConfigurationFault("use_trans_sid", "must be false")

    return cleaned


# ============================================================================
# BackendSession - Lifecycle State Machine
# ============================================================================

class BackendSession(AbstractSession):
    """
    Session bound to a storage backend.

    States: unstarted -> started -> (committed | destroyed), where both end
    states can be started again. Commit keeps configuration; destroy also
    drops the CSRF token and every group.

    Name, id, options and id expiration interval are frozen while the
    session is started.

    Args:
        backend: Storage backend (shared per process or per worker)
        name: Session name (None = backend default)
        options: Backend configuration directives
        id_expiration_interval: Seconds between id rotations (None = never)
        clock: Callable returning the current epoch time in seconds
        logger: Optional logger

    Example:
        >>> session = BackendSession(MemoryBackend(), name="app", id_expiration_interval=300)
        >>> session.start()
        >>> session.set("profile", {"lang": "en"})
        >>> token = session.get_csrf_token().value
        >>> session.commit()
        >>> cookie_value = session.id
    """

    reserved_names = RESERVED_KEYS

    def __init__(
        self,
        backend: SessionBackend,
        name: str | None = None,
        options: Mapping[str, Any] | None = None,
        id_expiration_interval: int | None = None,
        *,
        clock: Callable[[], int] | None = None,
        logger: logging.Logger | None = None,
    ):
        super().__init__()
        self.backend = backend
        self.clock = clock or _system_clock
        self.logger = logger or logging.getLogger("kestrel.sessions")

        self.name = name
        self.options = options or {}
        self.id = None
        self.id_expiration_interval = id_expiration_interval
        self._id_expires_at: int | None = None

        # Event callbacks (for observability)
        self._event_handlers: list[Callable[[dict[str, Any]], None]] = []

    # ========================================================================
    # Configuration
    # ========================================================================

    def _guard(self, attribute: str) -> None:
        if self.has_started():
            raise SessionAlreadyStartedFault(attribute)

    @property
    def name(self) -> str:
        """Session name (falls back to the backend default)."""
        return self._name or self.backend.default_name

    @name.setter
    def name(self, value: str | None) -> None:
        self._guard("name")
        self._name = value or None

    @property
    def id(self) -> str | None:
        """
        Session id.

        Before ``start()`` this is the id to load (None = assign a new one);
        afterwards it is the id resolved by the backend.
        """
        return self._id

    @id.setter
    def id(self, value: str | None) -> None:
        self._guard("id")
        self._id = value or None

    @property
    def options(self) -> dict[str, Any]:
        return dict(self._options)

    @options.setter
    def options(self, value: Mapping[str, Any]) -> None:
        self._guard("options")
        self._options = clean_options(value)

    @property
    def id_expiration_interval(self) -> int | None:
        """Seconds between id rotations, None to never rotate."""
        return self._id_expiration_interval

    @id_expiration_interval.setter
    def id_expiration_interval(self, value: int | None) -> None:
        self._guard("id_expiration_interval")
        if value is not None and value < 0:
            raise SessionConfigurationFault("id_expiration_interval", "must not be negative")
        self._id_expiration_interval = int(value) if value else None

    @property
    def id_expires_at(self) -> int | None:
        """Epoch second after which the id is rotated on the next start."""
        return self._id_expires_at

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def start(self) -> BackendSession:
        """
        Start the session.

        Raises:
            SessionBackendDisabledFault: Backend sessions are disabled
            SessionAlreadyActiveFault: A backend session is already active
            SessionStoreCorruptedFault: Stored data cannot be loaded into groups
        """
        if self.backend.is_disabled():
            raise SessionBackendDisabledFault()
        if self.backend.is_active():
            raise SessionAlreadyActiveFault(active_name=self.backend.current_name())

        self.backend.open(self.name, self._id, self._options)
        data = self.backend.data
        loaded_id = self.backend.id

        try:
            rotated = self._rotate_if_due(data)
            self._id = self.backend.id
            self._load(data)
        except (TypeError, ValueError) as e:
            self.backend.abort()
            self.clear()
            self._discard_csrf_token()
            self._id_expires_at = None
            self.logger.error(
                f"Failed to load session {hash_session_id(loaded_id)}: {e}"
            )
            raise SessionStoreCorruptedFault(
                session_id=loaded_id,
                message=f"Session data for '{self.name}' cannot be loaded: {e}",
            ) from e

        if rotated:
            self._emit_event("session_rotated")
        self._set_started(True)
        self._emit_event("session_started")
        return self

    def _rotate_if_due(self, data: dict[str, Any]) -> bool:
        if self._id_expiration_interval is None:
            return False

        now = self.clock()
        expiry = now + self._id_expiration_interval

        recorded = data.pop(ID_EXPIRATION_KEY, None)
        if recorded is None:
            recorded = expiry

        rotated = False
        # Expired, or further out than a fresh interval allows
        if (
            not isinstance(recorded, (int, float))
            or recorded < now
            or recorded > expiry
        ):
            old_id = self.backend.id
            self.backend.regenerate_id(delete_old=True)
            recorded = expiry
            rotated = True
            self.logger.info(
                f"Rotated session id {hash_session_id(old_id)} -> "
                f"{hash_session_id(self.backend.id)}"
            )

        self._id_expires_at = recorded
        return rotated

    def _load(self, data: dict[str, Any]) -> None:
        for key in list(data):
            values = data.pop(key)
            if key == ID_EXPIRATION_KEY:
                continue
            elif key == CSRF_KEY:
                self._set_csrf_token(values)
            else:
                self.set(key, values)

    def commit(self) -> BackendSession:
        """
        Write session data back to the backend and close it.

        If the backend's active session is no longer this one, nothing is
        written and the session stays started.

        Raises:
            SessionNotStartedFault: Session has not started
        """
        if not self.has_started():
            raise SessionNotStartedFault()

        # Session was changed outside of this instance so do nothing
        if not self._owns_backend():
            self.logger.warning(
                f"Skipping commit of '{self.name}': backend session changed externally"
            )
            self._emit_event("session_commit_skipped")
            return self

        data = self.backend.data
        for name, group in self._groups.items():
            if not group.count():
                continue
            data[name] = group.get_data()

        if self._id_expires_at is not None:
            data[ID_EXPIRATION_KEY] = self._id_expires_at
        data[CSRF_KEY] = self.get_csrf_token().value

        self.backend.close()

        self._set_started(False)
        self._emit_event("session_committed")
        return self

    def destroy(self) -> BackendSession:
        """
        Erase the session from the backend and drop all in-memory state.

        A no-op when the backend's active session is not this one.
        """
        if not self._owns_backend():
            self._emit_event("session_destroy_skipped")
            return self

        self.clear()
        self.backend.destroy()
        self._discard_csrf_token()
        self._id_expires_at = None
        self._set_started(False)
        self._emit_event("session_destroyed")
        return self

    def regenerate_id(self) -> BackendSession:
        """
        Rotate the session id now, keeping data (e.g. after login).

        Raises:
            SessionNotStartedFault: Session has not started
        """
        if not self.has_started():
            raise SessionNotStartedFault()

        self.backend.regenerate_id(delete_old=True)
        self._id = self.backend.id
        if self._id_expiration_interval is not None:
            self._id_expires_at = self.clock() + self._id_expiration_interval
        self._emit_event("session_rotated")
        return self

    def _owns_backend(self) -> bool:
        return self.backend.is_active() and self.backend.current_name() == self.name

    # ========================================================================
    # Observability
    # ========================================================================

    def on_event(self, handler: Callable[[dict[str, Any]], None]) -> None:
        """
        Register event handler for observability.

        Args:
            handler: Callable that receives event dict
        """
        self._event_handlers.append(handler)

    def _emit_event(self, event_name: str) -> None:
        event_data: dict[str, Any] = {
            "event": event_name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "session_name": self.name,
        }
        if self._id:
            event_data["session_id_hash"] = hash_session_id(self._id)

        for handler in self._event_handlers:
            try:
                handler(event_data)
            except Exception as e:
                self.logger.error(f"Event handler error: {e}")

        self.logger.debug(f"Session event: {event_name}", extra={"session_event": event_data})

    def __repr__(self) -> str:
        state = "started" if self.has_started() else "idle"
        return f"BackendSession(name={self.name!r}, {state})"
