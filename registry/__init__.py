"""
Registry - catalog of capabilities available to the query planner
"""
from .capability_registry import CapabilityRegistry, build_registry, get_registry, version_key

__all__ = ["CapabilityRegistry", "build_registry", "get_registry", "version_key"]
