"""Discovery domain module.

This module contains the domain model for provider discovery results,
including entries, diagnostics and the immutable result value.
"""

from .discovery_result import DiscoveryDiagnostic, DiscoveryResult, ProviderEntry

__all__ = [
    "DiscoveryDiagnostic",
    "DiscoveryResult",
    "ProviderEntry",
]
