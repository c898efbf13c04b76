"""
Tessera Faults - Structured fault objects.

Errors in Tessera are typed fault signals with a stable code, a domain and a
severity, so that configuration mistakes, store outages and commit failures
can be told apart without string matching.

Core exports:
- Fault: Base fault class
- FaultContext: Runtime context wrapper
- FaultDomain: Domain taxonomy
- Severity: Severity levels
"""

from .core import (
    DOMAIN_DEFAULTS,
    Fault,
    FaultContext,
    FaultDomain,
    Severity,
)

__all__ = [
    "DOMAIN_DEFAULTS",
    "Fault",
    "FaultContext",
    "FaultDomain",
    "Severity",
]
