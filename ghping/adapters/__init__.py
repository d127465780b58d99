"""Feed and alert sink adapters."""
from ghping.adapters.registry import AdapterConfig, AdapterRegistry

__all__ = ["AdapterRegistry", "AdapterConfig"]
