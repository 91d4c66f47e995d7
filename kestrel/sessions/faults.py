"""
KestrelSessions - Fault definitions.

Defines session-specific faults on top of the Kestrel fault system.
All session errors are structured Faults, not bare exceptions.

Lifecycle faults (already started, not started) signal programming errors;
backend faults (disabled, already active) signal environment problems and
should be reported separately from request-level failures.
"""

from __future__ import annotations

import hashlib

from kestrel.faults.core import Fault, FaultDomain, Severity


def hash_session_id(session_id: str) -> str:
    """Hash session ID for logging (privacy)."""
    return f"sha256:{hashlib.sha256(session_id.encode()).hexdigest()[:16]}"


# ============================================================================
# Session Fault Base
# ============================================================================

class SessionFault(Fault):
    """
    Base class for session-related faults.
    """

    domain = FaultDomain.SESSION


# ============================================================================
# Lifecycle Faults
# ============================================================================

class SessionAlreadyStartedFault(SessionFault):
    """
    A configuration setter was used while the session is started.

    Name, id, options and id expiration interval are frozen for the
    duration of an active session.
    """

    code = "SESSION_ALREADY_STARTED"
    message = "Session has already started."
    severity = Severity.ERROR
    public = False
    retryable = False

    def __init__(self, attribute: str | None = None, **kwargs):
        super().__init__(**kwargs)
        self.attribute = attribute
        if attribute:
            self.message = f"Session has already started; cannot change '{attribute}'."


class SessionNotStartedFault(SessionFault):
    """commit() was called without a prior successful start()."""

    code = "SESSION_NOT_STARTED"
    message = "Session has not started."
    severity = Severity.ERROR
    public = False
    retryable = False


class SessionReservedNameFault(SessionFault):
    """A group name collides with a key the backend binding stores itself."""

    code = "SESSION_RESERVED_NAME"
    message = "Group name is reserved."
    severity = Severity.ERROR
    public = False
    retryable = False

    def __init__(self, name: str | None = None, **kwargs):
        super().__init__(**kwargs)
        self.name = name
        if name:
            self.message = f"Group name '{name}' is reserved."


# ============================================================================
# Backend Faults
# ============================================================================

class SessionBackendDisabledFault(SessionFault):
    """
    The storage backend reports sessions as disabled.
    """

    code = "SESSION_BACKEND_DISABLED"
    message = "Sessions are disabled."
    severity = Severity.FATAL
    public = False
    retryable = False


class SessionAlreadyActiveFault(SessionFault):
    """
    The storage backend already has an active session.

    Raised regardless of which session instance owns the active session.
    """

    code = "SESSION_ALREADY_ACTIVE"
    message = "Session is already active."
    severity = Severity.ERROR
    public = False
    retryable = False

    def __init__(self, active_name: str | None = None, **kwargs):
        super().__init__(**kwargs)
        self.active_name = active_name
        if active_name:
            self.message = f"Session '{active_name}' is already active."


class SessionConfigurationFault(SessionFault):
    """
    Session configuration rejected.

    Raised when options request backend-managed cookie transport or
    URL-embedded session ids, or when a configuration value is out of range.
    """

    code = "SESSION_INVALID_CONFIGURATION"
    message = "Invalid session configuration"
    severity = Severity.FATAL
    public = False
    retryable = False

    def __init__(self, option: str, reason: str, **kwargs):
        super().__init__(**kwargs)
        self.option = option
        self.reason = reason
        self.message = f"Invalid session configuration: {option} {reason}"


# ============================================================================
# Storage Faults
# ============================================================================

class SessionStoreUnavailableFault(SessionFault):
    """
    Session store is unavailable.

    Examples: unwritable directory, file system error.
    """

    domain = FaultDomain.IO
    code = "SESSION_STORE_UNAVAILABLE"
    message = "Session storage unavailable"
    severity = Severity.ERROR
    public = False
    retryable = True

    def __init__(self, store_name: str, cause: str | None = None, **kwargs):
        super().__init__(**kwargs)
        self.store_name = store_name
        self.cause = cause
        if cause:
            self.message = f"Session store '{store_name}' unavailable: {cause}"
        else:
            self.message = f"Session store '{store_name}' unavailable"


class SessionStoreCorruptedFault(SessionFault):
    """
    Session data in store is corrupted.

    Data cannot be deserialized or is structurally invalid.
    """

    domain = FaultDomain.IO
    code = "SESSION_STORE_CORRUPTED"
    message = "Session data corrupted"
    severity = Severity.ERROR
    public = False
    retryable = False

    def __init__(self, session_id: str | None = None, **kwargs):
        super().__init__(**kwargs)
        self.session_id_hash = hash_session_id(session_id) if session_id else None
