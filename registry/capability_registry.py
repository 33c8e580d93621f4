"""
Capability Registry
Catalog of versioned capabilities, built once at startup and read-only afterwards.

- get(name, version): exact match, or the highest version when version is omitted
- list / list_for_tier / list_by_category: latest version per capability name
- describe_for_prompt: deterministic catalog text embedded in planner prompts
"""
from __future__ import annotations

import re
from datetime import datetime
from typing import Callable, Iterable

from capabilities import Capability, CAPABILITY_TYPES, SubscriptionTier
from services import RetailDataSourceFactory
from utils import get_logger

logger = get_logger(__name__)


def version_key(version: str) -> tuple:
    """Sort key so that v10 > v2 > v1"""
    numbers = tuple(int(n) for n in re.findall(r"\d+", version or ""))
    return numbers, version or ""


class CapabilityRegistry:
    """
    Keyed map of name -> version -> capability.

    Registration happens at startup only; afterwards the registry is safe
    for unsynchronized concurrent reads.
    """

    def __init__(self, capabilities: Iterable[Capability] = ()):
        self._capabilities: dict[str, dict[str, Capability]] = {}
        for capability in capabilities:
            self.register(capability)

    def __len__(self) -> int:
        return sum(len(versions) for versions in self._capabilities.values())

    def register(self, capability: Capability) -> None:
        """Register a capability. Registering the same (name, version) twice is a no-op."""
        versions = self._capabilities.setdefault(capability.name, {})
        if capability.version in versions:
            logger.debug(f"Capability {capability.name}@{capability.version} already registered")
            return
        versions[capability.version] = capability
        logger.info(f"Registered capability {capability.name}@{capability.version}")

    def get(self, name: str, version: str | None = None) -> Capability | None:
        versions = self._capabilities.get(name)
        if not versions:
            return None
        if version:
            return versions.get(version)
        latest = max(versions, key=version_key)
        return versions[latest]

    def list(self) -> list[Capability]:
        """Latest version of every capability, sorted by category then name"""
        latest = [self.get(name) for name in self._capabilities]
        return sorted(latest, key=lambda c: (c.category, c.name))

    def list_for_tier(self, tier: SubscriptionTier) -> list[Capability]:
        return [c for c in self.list() if tier.allows(c.required_tier)]

    def list_by_category(self, category: str) -> list[Capability]:
        wanted = category.strip().lower()
        return [c for c in self.list() if c.category.lower() == wanted]

    def capability_infos(self, tier: SubscriptionTier | None = None) -> list[dict]:
        capabilities = self.list() if tier is None else self.list_for_tier(tier)
        return [c.to_info() for c in capabilities]

    def describe_for_prompt(self) -> str:
        """Catalog text grouped by category; identical for identical registries"""
        lines = ["Available Capabilities:"]
        current_category = None

        for capability in self.list():
            if capability.category != current_category:
                current_category = capability.category
                lines.append("")
                lines.append(f"## {current_category}")

            lines.append(f"### {capability.name} ({capability.version})")
            lines.append(f"Description: {capability.description}")
            lines.append(f"Required tier: {capability.required_tier.value}")

            if capability.parameters:
                lines.append("Parameters:")
                for param in capability.parameters:
                    requirement = "required" if param.required else "optional"
                    entry = f"  - {param.name}: {param.type.value} ({requirement})"
                    if param.default is not None:
                        entry += f", default: {param.default}"
                    entry += f" - {param.description}"
                    if param.examples:
                        entry += f" (e.g. {', '.join(str(e) for e in param.examples)})"
                    lines.append(entry)

            if capability.example_queries:
                lines.append("Example queries:")
                for example in capability.example_queries:
                    lines.append(f'  - "{example}"')

        return "\n".join(lines)


def build_registry(
    capability_types: Iterable[type[Capability]] = CAPABILITY_TYPES,
    data_sources: RetailDataSourceFactory | None = None,
    clock: Callable[[], datetime] | None = None,
) -> CapabilityRegistry:
    """Instantiate and register every capability type"""
    registry = CapabilityRegistry(cls(data_sources=data_sources, clock=clock) for cls in capability_types)
    logger.info(f"Capability registry built with {len(registry)} capabilities")
    return registry


# Singleton instance
_registry: CapabilityRegistry | None = None


def get_registry() -> CapabilityRegistry:
    """Get or create the capability registry singleton"""
    global _registry
    if _registry is None:
        _registry = build_registry()
    return _registry
