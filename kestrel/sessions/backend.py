"""
KestrelSessions - Session storage backends.

Defines the SessionBackend protocol consumed by BackendSession and two
reference implementations:
- MemoryBackend: In-memory storage (dev/testing)
- FileBackend: One JSON file per session (debugging)

A backend models what a server's native session mechanism provides: a
status (disabled / none / active), the name and id of the active session,
and a raw key/value buffer that is loaded on open and flushed on close.
Backends are passed to sessions explicitly; there is no module-level
active session.
"""

from __future__ import annotations

import copy
import json
import logging
import re
import secrets
import time
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Mapping, Protocol

from .faults import (
    SessionAlreadyActiveFault,
    SessionBackendDisabledFault,
    SessionNotStartedFault,
    SessionStoreCorruptedFault,
    SessionStoreUnavailableFault,
    hash_session_id,
)


DEFAULT_SESSION_NAME = "KESTRELSESSID"
DEFAULT_GC_MAXLIFETIME = 1440
DEFAULT_SID_LENGTH = 32

_VALID_ID = re.compile(r"^[A-Za-z0-9_,-]{1,256}$")
_FALSE_STRINGS = frozenset({"", "0", "false", "off", "no", "none"})


def as_flag(value: Any) -> bool:
    """Interpret an ini-style option value as a boolean."""
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_STRINGS
    return bool(value)


class BackendStatus(str, Enum):
    """Backend session status."""

    DISABLED = "disabled"
    NONE = "none"
    ACTIVE = "active"


# ============================================================================
# SessionBackend Protocol
# ============================================================================

class SessionBackend(Protocol):
    """
    Storage backend interface consumed by BackendSession.

    Backends are responsible ONLY for holding raw session data keyed by
    session id - they do NOT know about parameter groups, CSRF tokens or
    id rotation policy.

    Attributes:
        data: Raw key/value buffer of the active session
        default_name: Name used when a session does not configure one
    """

    data: dict[str, Any]
    default_name: str

    @property
    def id(self) -> str | None:
        """Id of the active session."""
        ...

    def is_disabled(self) -> bool:
        ...

    def is_active(self) -> bool:
        ...

    def current_name(self) -> str:
        """Name of the active (or most recently configured) session."""
        ...

    def open(self, name: str, session_id: str | None, options: Mapping[str, Any]) -> str:
        """
        Open a session and load its raw data into ``data``.

        Args:
            name: Session name
            session_id: Id to load, or None to have one assigned
            options: Backend configuration directives

        Returns:
            Resolved session id

        Raises:
            SessionBackendDisabledFault: Backend is disabled
            SessionAlreadyActiveFault: A session is already active
        """
        ...

    def regenerate_id(self, delete_old: bool = True) -> str:
        """Assign a new id to the active session, keeping ``data``."""
        ...

    def close(self) -> None:
        """Persist ``data`` under the active id and end the session."""
        ...

    def destroy(self) -> None:
        """Erase the active session from storage and end it."""
        ...

    def abort(self) -> None:
        """End the active session without writing ``data``."""
        ...


# ============================================================================
# BaseBackend - Shared Status Handling
# ============================================================================

class BaseBackend:
    """
    Base class for backends that store session records by id.

    Subclasses implement ``_read``, ``_write``, ``_delete`` and
    ``_collect``. A record is a dict ``{"data": {...}, "modified_at": float}``.

    Options honoured by ``open``:
        gc_maxlifetime: Seconds after which an untouched record is treated
            as absent (0 or None disables the check). Default 1440.
        use_strict_mode: Replace supplied ids unknown to the store with a
            fresh one. Default False.
        sid_length: Bytes of entropy for generated ids. Default 32.
    """

    store_name = "base"

    def __init__(
        self,
        *,
        enabled: bool = True,
        default_name: str | None = None,
        clock: Callable[[], float] | None = None,
        logger: logging.Logger | None = None,
    ):
        self.default_name = default_name or DEFAULT_SESSION_NAME
        self.clock = clock or time.time
        self.logger = logger or logging.getLogger("kestrel.sessions.backend")
        self.data: dict[str, Any] = {}
        self._status = BackendStatus.NONE if enabled else BackendStatus.DISABLED
        self._name: str | None = None
        self._id: str | None = None
        self._options: dict[str, Any] = {}

    # ========================================================================
    # Status
    # ========================================================================

    @property
    def status(self) -> BackendStatus:
        return self._status

    @property
    def id(self) -> str | None:
        return self._id

    def is_disabled(self) -> bool:
        return self._status is BackendStatus.DISABLED

    def is_active(self) -> bool:
        return self._status is BackendStatus.ACTIVE

    def current_name(self) -> str:
        return self._name or self.default_name

    def enable(self) -> None:
        if self._status is BackendStatus.DISABLED:
            self._status = BackendStatus.NONE

    def disable(self) -> None:
        if self.is_active():
            raise SessionAlreadyActiveFault(active_name=self._name)
        self._status = BackendStatus.DISABLED

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def open(self, name: str, session_id: str | None, options: Mapping[str, Any]) -> str:
        if self.is_disabled():
            raise SessionBackendDisabledFault()
        if self.is_active():
            raise SessionAlreadyActiveFault(active_name=self._name)

        options = dict(options or {})

        if session_id is not None and not _VALID_ID.match(session_id):
            self.logger.warning(f"Discarding malformed session id for '{name}'")
            session_id = None

        record = None
        if session_id is not None:
            record = self._read(session_id)
            if record is not None and self._is_stale(record, options):
                self.logger.debug(f"Discarding stale session {hash_session_id(session_id)}")
                self._delete(session_id)
                record = None
            if record is None and as_flag(options.get("use_strict_mode", False)):
                self.logger.info(f"Rejecting uninitialized session id for '{name}' (strict mode)")
                session_id = None

        if session_id is None:
            session_id = self._generate_id(options)

        self._name = name or self.default_name
        self._id = session_id
        self._options = options
        self.data = dict(record["data"]) if record else {}
        self._status = BackendStatus.ACTIVE
        return session_id

    def regenerate_id(self, delete_old: bool = True) -> str:
        if not self.is_active():
            raise SessionNotStartedFault(message="Cannot regenerate id without an active session.")

        old_id = self._id
        new_id = self._generate_id(self._options)
        if delete_old and old_id is not None:
            self._delete(old_id)
        self._id = new_id
        return new_id

    def close(self) -> None:
        if not self.is_active():
            return
        self._write(self._id, {"data": self.data, "modified_at": self.clock()})
        self._end()

    def destroy(self) -> None:
        if not self.is_active():
            return
        self._delete(self._id)
        self._end()

    def abort(self) -> None:
        if not self.is_active():
            return
        self._end()

    def gc(self, maxlifetime: int | None = None) -> int:
        """
        Remove records not modified within ``maxlifetime`` seconds.

        Returns:
            Number of records removed
        """
        if maxlifetime is None:
            maxlifetime = self._options.get("gc_maxlifetime", DEFAULT_GC_MAXLIFETIME)
        removed = self._collect(self.clock() - int(maxlifetime))
        self.logger.info(f"Collected {removed} stale sessions from {self.store_name} store")
        return removed

    def _end(self) -> None:
        self._status = BackendStatus.NONE
        self._id = None
        self.data = {}

    def _is_stale(self, record: Mapping[str, Any], options: Mapping[str, Any]) -> bool:
        maxlifetime = options.get("gc_maxlifetime", DEFAULT_GC_MAXLIFETIME)
        if not maxlifetime:
            return False
        return record.get("modified_at", 0) < self.clock() - int(maxlifetime)

    def _generate_id(self, options: Mapping[str, Any]) -> str:
        length = int(options.get("sid_length", DEFAULT_SID_LENGTH))
        while True:
            session_id = secrets.token_urlsafe(length)
            if self._read(session_id) is None:
                return session_id

    # ========================================================================
    # Storage hooks
    # ========================================================================

    def _read(self, session_id: str) -> dict[str, Any] | None:
        raise NotImplementedError

    def _write(self, session_id: str, record: dict[str, Any]) -> None:
        raise NotImplementedError

    def _delete(self, session_id: str) -> None:
        raise NotImplementedError

    def _collect(self, cutoff: float) -> int:
        raise NotImplementedError


# ============================================================================
# MemoryBackend - In-Memory Storage
# ============================================================================

class MemoryBackend(BaseBackend):
    """
    In-memory session backend for development and testing.

    Records are deep-copied on read and write so the open buffer never
    aliases stored data.

    NOT suitable for production (no persistence across restarts).

    Example:
        >>> backend = MemoryBackend()
        >>> sid = backend.open("app", None, {})
        >>> backend.data["cart"] = {"items": 3}
        >>> backend.close()
        >>> backend.open("app", sid, {}) == sid
        True
    """

    store_name = "memory"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._records: dict[str, dict[str, Any]] = {}

    def _read(self, session_id: str) -> dict[str, Any] | None:
        record = self._records.get(session_id)
        return copy.deepcopy(record) if record is not None else None

    def _write(self, session_id: str, record: dict[str, Any]) -> None:
        self._records[session_id] = copy.deepcopy(record)

    def _delete(self, session_id: str) -> None:
        self._records.pop(session_id, None)

    def _collect(self, cutoff: float) -> int:
        stale = [
            session_id
            for session_id, record in self._records.items()
            if record.get("modified_at", 0) < cutoff
        ]
        for session_id in stale:
            del self._records[session_id]
        return len(stale)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def peek(self, session_id: str) -> dict[str, Any] | None:
        """Return a copy of the stored raw data for ``session_id``."""
        record = self._read(session_id)
        return record["data"] if record is not None else None

    def get_stats(self) -> dict[str, Any]:
        """Get store statistics."""
        return {
            "total_sessions": len(self._records),
            "status": self._status.value,
        }


# ============================================================================
# FileBackend - File-Based Storage
# ============================================================================

class FileBackend(BaseBackend):
    """
    File-based session backend for debugging and development.

    Features:
    - One file per session (JSON)
    - Human-readable format
    - Atomic writes (temp file, then rename)

    Values stored in sessions must be JSON-serializable.

    Example:
        >>> backend = FileBackend(directory="/tmp/sessions")
        >>> sid = backend.open("app", None, {})
    """

    store_name = "file"

    def __init__(self, directory: str | Path, **kwargs):
        super().__init__(**kwargs)
        self.directory = Path(directory)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SessionStoreUnavailableFault(store_name=self.store_name, cause=str(e))

    def _get_path(self, session_id: str) -> Path:
        return self.directory / f"sess_{session_id}.json"

    def _read(self, session_id: str) -> dict[str, Any] | None:
        path = self._get_path(session_id)
        if not path.exists():
            return None

        try:
            record = json.loads(path.read_text())
        except json.JSONDecodeError as e:
            raise SessionStoreCorruptedFault(
                session_id=session_id,
                message=f"Session file corrupted: {e}",
            )
        except OSError as e:
            raise SessionStoreUnavailableFault(store_name=self.store_name, cause=str(e))

        if not isinstance(record, dict) or not isinstance(record.get("data"), dict):
            raise SessionStoreCorruptedFault(
                session_id=session_id,
                message="Session file has no data mapping",
            )
        return record

    def _write(self, session_id: str, record: dict[str, Any]) -> None:
        path = self._get_path(session_id)
        payload = json.dumps(record, indent=2)

        try:
            temp_path = path.with_suffix(".tmp")
            temp_path.write_text(payload)
            temp_path.replace(path)
        except OSError as e:
            raise SessionStoreUnavailableFault(store_name=self.store_name, cause=str(e))

    def _delete(self, session_id: str) -> None:
        try:
            self._get_path(session_id).unlink(missing_ok=True)
        except OSError as e:
            raise SessionStoreUnavailableFault(store_name=self.store_name, cause=str(e))

    def _collect(self, cutoff: float) -> int:
        removed = 0
        for path in self.directory.glob("sess_*.json"):
            try:
                record = json.loads(path.read_text())
                if record.get("modified_at", 0) < cutoff:
                    path.unlink()
                    removed += 1
            except (OSError, ValueError, AttributeError) as e:
                # Skip unreadable files
                self.logger.debug(f"Skipping {path.name} during gc: {e}")
        return removed

    def get_stats(self) -> dict[str, Any]:
        """Get store statistics."""
        files = list(self.directory.glob("sess_*.json"))
        return {
            "total_sessions": len(files),
            "total_size_bytes": sum(p.stat().st_size for p in files),
            "directory": str(self.directory),
            "status": self._status.value,
        }
