"""
KestrelSessions - Transport adapters.

Sessions never emit cookies or headers themselves. Transports read the
session id from incoming request headers before ``start()`` and build the
outgoing header after ``commit()``:
- CookieTransport: HTTP cookies (most common)
- HeaderTransport: Custom headers (APIs, mobile apps)

Transports work on plain header mappings and return ``(name, value)``
header tuples, so they fit any request/response objects.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Literal, Mapping, Protocol, TYPE_CHECKING

from .faults import SessionNotStartedFault

if TYPE_CHECKING:
    from .session import BackendSession


Header = tuple[str, str]


def _header(headers: Mapping[str, str], name: str) -> str | None:
    """Case-insensitive header lookup."""
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


# ============================================================================
# TransportPolicy
# ============================================================================

@dataclass
class TransportPolicy:
    """
    Controls how session ids travel.

    Attributes:
        adapter: Transport adapter type
        cookie_name: Name of session cookie (None = session name)
        cookie_httponly: HttpOnly flag (prevents XSS)
        cookie_secure: Secure flag (HTTPS only)
        cookie_samesite: SameSite policy (CSRF protection)
        cookie_path: Cookie path
        cookie_domain: Cookie domain
        cookie_max_age: Max-Age in seconds (None = browser session cookie)
        header_name: Header name (if adapter=header)

    Example:
        >>> policy = TransportPolicy(
        ...     adapter="cookie",
        ...     cookie_secure=True,
        ...     cookie_samesite="lax"
        ... )
    """

    adapter: Literal["cookie", "header"] = "cookie"

    # Cookie options
    cookie_name: str | None = None
    cookie_httponly: bool = True
    cookie_secure: bool = True
    cookie_samesite: Literal["strict", "lax", "none"] | None = "lax"
    cookie_path: str | None = "/"
    cookie_domain: str | None = None
    cookie_max_age: int | None = None

    # Header options
    header_name: str = "X-Session-ID"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TransportPolicy:
        """Build a policy from a config mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})


# ============================================================================
# SessionTransport Protocol
# ============================================================================

class SessionTransport(Protocol):
    """
    Abstract transport interface for session id delivery.

    Transports are responsible for:
    - Extracting the session id from request headers
    - Building the header that carries the id in a response
    - Building the header that removes the id from the client

    Transports do NOT start, commit or validate sessions.
    """

    def extract(self, headers: Mapping[str, str], session: BackendSession) -> str | None:
        ...

    def inject(self, session: BackendSession) -> Header:
        ...

    def clear(self, session: BackendSession) -> Header | None:
        ...


# ============================================================================
# CookieTransport - HTTP Cookies
# ============================================================================

class CookieTransport:
    """
    Cookie-based session transport.

    Features:
    - HttpOnly flag (XSS protection)
    - Secure flag (HTTPS only)
    - SameSite policy (CSRF protection)
    - Configurable path, domain and Max-Age

    Example:
        >>> transport = CookieTransport(TransportPolicy(cookie_secure=False))
        >>> session.id = transport.extract(request_headers, session)
        >>> session.start()
        >>> ...
        >>> session.commit()
        >>> response_headers.append(transport.inject(session))
    """

    def __init__(self, policy: TransportPolicy | None = None):
        self.policy = policy or TransportPolicy()

    def cookie_name(self, session: BackendSession) -> str:
        return self.policy.cookie_name or session.name

    def extract(self, headers: Mapping[str, str], session: BackendSession) -> str | None:
        """Extract session id from the Cookie header."""
        cookie_header = _header(headers, "cookie")
        if not cookie_header:
            return None

        cookies = self._parse_cookies(cookie_header)
        return cookies.get(self.cookie_name(session)) or None

    def inject(self, session: BackendSession) -> Header:
        """Build the Set-Cookie header carrying the session id."""
        if not session.id:
            raise SessionNotStartedFault(message="Session has no id to send.")

        cookie_parts = [f"{self.cookie_name(session)}={session.id}"]

        if self.policy.cookie_path:
            cookie_parts.append(f"Path={self.policy.cookie_path}")

        if self.policy.cookie_domain:
            cookie_parts.append(f"Domain={self.policy.cookie_domain}")

        if self.policy.cookie_max_age is not None:
            cookie_parts.append(f"Max-Age={int(self.policy.cookie_max_age)}")

        if self.policy.cookie_httponly:
            cookie_parts.append("HttpOnly")

        if self.policy.cookie_secure:
            cookie_parts.append("Secure")

        if self.policy.cookie_samesite:
            cookie_parts.append(f"SameSite={self.policy.cookie_samesite.capitalize()}")

        return ("Set-Cookie", "; ".join(cookie_parts))

    def clear(self, session: BackendSession) -> Header:
        """Build a Set-Cookie header that deletes the session cookie."""
        cookie_parts = [
            f"{self.cookie_name(session)}=deleted",
            "Max-Age=0",
            "Expires=Thu, 01 Jan 1970 00:00:00 GMT",
        ]

        if self.policy.cookie_path:
            cookie_parts.append(f"Path={self.policy.cookie_path}")

        if self.policy.cookie_domain:
            cookie_parts.append(f"Domain={self.policy.cookie_domain}")

        return ("Set-Cookie", "; ".join(cookie_parts))

    @staticmethod
    def _parse_cookies(cookie_header: str) -> dict[str, str]:
        """
        Parse cookie header into dict.

        Args:
            cookie_header: Cookie header value

        Returns:
            Dict of cookie name -> value
        """
        cookies = {}

        for part in cookie_header.split(";"):
            part = part.strip()
            if "=" in part:
                name, value = part.split("=", 1)
                cookies[name.strip()] = value.strip().strip('"')

        return cookies


# ============================================================================
# HeaderTransport - Custom Header
# ============================================================================

class HeaderTransport:
    """
    Header-based session transport.

    Used for API clients, mobile apps and service-to-service calls.

    Example:
        >>> transport = HeaderTransport(TransportPolicy(adapter="header"))
        >>> session.id = transport.extract({"X-Session-ID": "abc"}, session)
    """

    def __init__(self, policy: TransportPolicy | None = None):
        self.policy = policy or TransportPolicy(adapter="header")
        self.header_name = self.policy.header_name

    def extract(self, headers: Mapping[str, str], session: BackendSession) -> str | None:
        return _header(headers, self.header_name) or None

    def inject(self, session: BackendSession) -> Header:
        if not session.id:
            raise SessionNotStartedFault(message="Session has no id to send.")
        return (self.header_name, session.id)

    def clear(self, session: BackendSession) -> None:
        # Nothing to emit; the client stops sending the header
        return None


# ============================================================================
# Transport Factory
# ============================================================================

def create_transport(policy: TransportPolicy | Mapping[str, Any]) -> CookieTransport | HeaderTransport:
    """
    Create transport adapter from policy.

    Args:
        policy: Transport policy or transport config mapping

    Returns:
        Transport adapter instance

    Raises:
        ValueError: If adapter type is unsupported
    """
    if not isinstance(policy, TransportPolicy):
        policy = TransportPolicy.from_dict(policy)

    if policy.adapter == "cookie":
        return CookieTransport(policy)
    elif policy.adapter == "header":
        return HeaderTransport(policy)
    else:
        raise ValueError(f"Unsupported transport adapter: {policy.adapter}")
