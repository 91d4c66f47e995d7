"""
KestrelFaults - Structured fault types.

Exceptions in Kestrel are typed fault signals carrying a stable code,
a domain, a severity and retry semantics.
"""

from .core import (
    Fault,
    FaultDomain,
    Severity,
)

__all__ = [
    "Fault",
    "FaultDomain",
    "Severity",
]
