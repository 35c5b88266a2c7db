"""Registry of receipt scan agents, keyed by the name used in the ``scan_agent`` setting."""

from collections.abc import Callable
from typing import ClassVar

from app.agents.base import BaseScanAgent


class AgentRegistry:
    """Scan agent classes by name. Names are matched case-insensitively."""

    _registry: ClassVar[dict[str, type[BaseScanAgent]]] = {}

    @classmethod
    def register(cls, name: str) -> Callable[[type[BaseScanAgent]], type[BaseScanAgent]]:
        """Class decorator that registers a scan agent under ``name``."""

        def decorator(agent_cls: type[BaseScanAgent]) -> type[BaseScanAgent]:
            cls._registry[name.strip().lower()] = agent_cls
            return agent_cls

        return decorator

    @classmethod
    def lookup(cls, name: str) -> type[BaseScanAgent] | None:
        """Return the agent class registered as ``name``, or None when there is none."""
        return cls._registry.get(name.strip().lower())

    @classmethod
    def available(cls) -> list[str]:
        """List the registered agent names in alphabetical order."""
        return sorted(cls._registry)
