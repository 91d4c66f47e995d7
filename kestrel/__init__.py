"""
Kestrel - Server-side session state management.

A session is a short-lived, per-client container of named parameter groups
plus a CSRF token, bound to an explicit storage backend.

Example:
    ```python
    from kestrel.sessions import BackendSession, MemoryBackend

    backend = MemoryBackend()
    session = BackendSession(backend, name="app", id_expiration_interval=900)
    session.start()
    session.get("profile").set("lang", "en")
    session.commit()
    ```
"""

__version__ = "0.1.0"

from .config import ConfigLoader, ConfigError, SessionConfig
from .faults import Fault, FaultDomain, Severity
from .sessions import (
    ParameterGroup,
    Token,
    SessionInterface,
    AbstractSession,
    BackendSession,
    MemoryBackend,
    FileBackend,
    create_session,
)

__all__ = [
    "__version__",
    # Config
    "ConfigLoader",
    "ConfigError",
    "SessionConfig",
    # Faults
    "Fault",
    "FaultDomain",
    "Severity",
    # Sessions
    "ParameterGroup",
    "Token",
    "SessionInterface",
    "AbstractSession",
    "BackendSession",
    "MemoryBackend",
    "FileBackend",
    "create_session",
]
