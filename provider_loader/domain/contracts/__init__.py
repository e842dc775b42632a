"""Domain contracts - interfaces for external dependencies.

This module defines contracts (abstract interfaces) that the domain layer
depends on. Implementations are provided by the infrastructure layer.
"""

from .resolution_context import IResolutionContext, RegistrySource

__all__ = [
    "IResolutionContext",
    "RegistrySource",
]
