"""Adapters — tool bindings for provisioning steps.

Public re-exports for convenient access.
"""

from provisioner.adapters.base import Adapter, CommandAdapter, ExecutionContext
from provisioner.adapters.mock import MockAdapter
from provisioner.adapters.registry import AdapterRegistry, default_registry

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "CommandAdapter",
    "ExecutionContext",
    "MockAdapter",
    "default_registry",
]
