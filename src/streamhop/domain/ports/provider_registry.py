"""Port for the provider registry consumed by the orchestrator."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from streamhop.domain.entities.resolution import ProviderHealth
from streamhop.domain.providers.descriptor import ProviderDescriptor
from streamhop.domain.providers.exceptions import ResolutionError


class ProviderRegistryPort(Protocol):
    """Maps provider keys to descriptors and tracks their soft-disable state."""

    def get(self, provider_key: str) -> ProviderDescriptor:
        """Return the descriptor. Raises ProviderNotFoundError if unknown."""
        ...

    def list_enabled(self, sorted_by_priority: bool = True) -> list[ProviderDescriptor]:
        """Return descriptors currently allowed to run."""
        ...

    def disable(self, provider_key: str, seconds: float | None = None) -> None:
        """Soft-disable a provider (time-bounded)."""
        ...

    def enable(self, provider_key: str) -> None:
        """Clear any soft-disable on a provider."""
        ...

    def record_success(self, provider_key: str, at: datetime | None = None) -> None:
        ...

    def record_failure(self, provider_key: str, error: ResolutionError) -> int:
        """Record a failed attempt.

        Returns the number of consecutive validation failures, which the
        orchestrator uses to decide when to discard a derived keystream.
        """
        ...

    def health(self) -> list[ProviderHealth]:
        """Return a health snapshot for every known provider."""
        ...
