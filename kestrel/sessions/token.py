"""
KestrelSessions - CSRF token.
"""

from __future__ import annotations

import hmac
import secrets


class Token:
    """
    Opaque, cryptographically random token.

    The value is generated with ``secrets`` on first access unless one was
    supplied. ``None`` and ``""`` both mean "generate"; any other supplied
    value is used as-is without validation.

    Example:
        >>> token = Token()
        >>> token.value == token.value
        True
        >>> Token("abc").value
        'abc'
    """

    __slots__ = ("_value",)

    #: Bytes of entropy for generated values (43 chars base64).
    ENTROPY_BYTES = 32

    def __init__(self, value: str | None = None):
        self._value = value or None

    @property
    def value(self) -> str:
        if self._value is None:
            self._value = secrets.token_urlsafe(self.ENTROPY_BYTES)
        return self._value

    def matches(self, candidate: str | None) -> bool:
        """
        Compare a submitted value against this token in constant time.
        """
        if not candidate:
            return False
        return hmac.compare_digest(self.value.encode(), candidate.encode())

    def __str__(self) -> str:
        return self.value

    def __repr__(self) -> str:
        return "Token(...)" if self._value else "Token(<ungenerated>)"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Token):
            return NotImplemented
        return hmac.compare_digest(self.value.encode(), other.value.encode())

    def __hash__(self) -> int:
        return hash(self.value)
