"""
KestrelSessions - Factories.

Build backends, sessions and transports from configuration.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

from kestrel.config import ConfigError, SessionConfig

from .backend import BaseBackend, FileBackend, MemoryBackend, SessionBackend
from .session import BackendSession
from .transport import CookieTransport, HeaderTransport, create_transport


def _as_config(config: SessionConfig | Mapping[str, Any]) -> SessionConfig:
    if isinstance(config, SessionConfig):
        return config
    return SessionConfig.from_dict(dict(config))


def create_backend(config: SessionConfig | Mapping[str, Any]) -> BaseBackend:
    """
    Create a storage backend from session config.

    Raises:
        ConfigError: Unknown backend type or missing file directory
    """
    config = _as_config(config)
    backend_type = config.backend.get("type", "memory")

    if backend_type == "memory":
        return MemoryBackend()
    elif backend_type == "file":
        directory = config.backend.get("directory")
        if not directory:
            raise ConfigError("File session backend requires 'directory'")
        return FileBackend(directory=directory)
    else:
        raise ConfigError(f"Unsupported session backend: {backend_type}")


def create_session(
    config: SessionConfig | Mapping[str, Any],
    backend: SessionBackend | None = None,
    *,
    clock: Callable[[], int] | None = None,
    logger: logging.Logger | None = None,
) -> BackendSession:
    """
    Create an unstarted session from config.

    Args:
        config: Session config
        backend: Shared backend (created from config when omitted)
        clock: Optional clock override
        logger: Optional logger

    Raises:
        SessionConfigurationFault: Options request backend-managed transport
    """
    config = _as_config(config)
    return BackendSession(
        backend if backend is not None else create_backend(config),
        name=config.name,
        options=config.options,
        id_expiration_interval=config.id_expiration_interval,
        clock=clock,
        logger=logger,
    )


def create_session_transport(config: SessionConfig | Mapping[str, Any]) -> CookieTransport | HeaderTransport:
    """Create the transport adapter described by session config."""
    return create_transport(_as_config(config).transport)
