"""
KestrelSessions - Server-side session state for Kestrel.

This package provides explicit, backend-bound session management with:
- Named parameter groups, created lazily and replaced wholesale
- Per-session CSRF tokens from a cryptographic source
- Periodic session id rotation against fixation and hijacking
- Injected storage backends (memory, file) instead of global state
- Transport-agnostic design (cookie or header, emitted by the caller)

Philosophy:
- Sessions are explicit (no hidden globals)
- Configuration is frozen while a session is started
- Sessions yield to out-of-band changes instead of clobbering them
"""

from .params import ParameterGroup
from .token import Token

from .core import (
    SessionInterface,
    AbstractSession,
)

from .backend import (
    SessionBackend,
    BackendStatus,
    BaseBackend,
    MemoryBackend,
    FileBackend,
)

from .session import (
    BackendSession,
    clean_options,
    ID_EXPIRATION_KEY,
    CSRF_KEY,
)

from .transport import (
    TransportPolicy,
    SessionTransport,
    CookieTransport,
    HeaderTransport,
    create_transport,
)

from .factory import (
    create_backend,
    create_session,
    create_session_transport,
)

from .faults import (
    SessionFault,
    SessionAlreadyStartedFault,
    SessionNotStartedFault,
    SessionReservedNameFault,
    SessionBackendDisabledFault,
    SessionAlreadyActiveFault,
    SessionConfigurationFault,
    SessionStoreUnavailableFault,
    SessionStoreCorruptedFault,
)

__all__ = [
    # Core types
    "ParameterGroup",
    "Token",
    "SessionInterface",
    "AbstractSession",
    # Backend binding
    "BackendSession",
    "clean_options",
    "ID_EXPIRATION_KEY",
    "CSRF_KEY",
    # Storage
    "SessionBackend",
    "BackendStatus",
    "BaseBackend",
    "MemoryBackend",
    "FileBackend",
    # Transport
    "TransportPolicy",
    "SessionTransport",
    "CookieTransport",
    "HeaderTransport",
    "create_transport",
    # Factories
    "create_backend",
    "create_session",
    "create_session_transport",
    # Faults
    "SessionFault",
    "SessionAlreadyStartedFault",
    "SessionNotStartedFault",
    "SessionReservedNameFault",
    "SessionBackendDisabledFault",
    "SessionAlreadyActiveFault",
    "SessionConfigurationFault",
    "SessionStoreUnavailableFault",
    "SessionStoreCorruptedFault",
]
