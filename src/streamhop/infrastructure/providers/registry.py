"""Provider registry: descriptors loaded once, plus soft-disable state."""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import structlog

from streamhop.domain.entities.resolution import ProviderHealth
from streamhop.domain.providers import (
    DuplicateProviderError,
    ProviderDescriptor,
    ProviderError,
    ProviderNotFoundError,
    ResolutionError,
    ValidationFailed,
)
from streamhop.domain.providers.exceptions import DRIFT_ERRORS

from .circuit_breaker import ProviderCircuitBreaker
from .loader import load_yaml_provider

log = structlog.get_logger(__name__)


@dataclass
class _Stats:
    successes: int = 0
    failures: int = 0
    consecutive_validation: int = 0
    last_error: str | None = None
    last_success_at: datetime | None = None


class ProviderRegistry:
    """
    In-memory map ``provider_key -> ProviderDescriptor``.

    Descriptors are immutable after construction.  The mutable parts are
    the circuit breaker (soft disable) and per-provider counters, both of
    which tolerate concurrent ``resolve()`` calls.
    """

    def __init__(
        self,
        descriptors: Iterable[ProviderDescriptor],
        *,
        breaker: ProviderCircuitBreaker | None = None,
        disabled: Iterable[str] = (),
    ) -> None:
        self._descriptors: dict[str, ProviderDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.key in self._descriptors:
                raise DuplicateProviderError(
                    f"Provider key '{descriptor.key}' already exists"
                )
            self._descriptors[descriptor.key] = descriptor

        self._breaker = breaker or ProviderCircuitBreaker()
        self._stats: dict[str, _Stats] = {k: _Stats() for k in self._descriptors}
        self._lock = threading.Lock()

        for key in disabled:
            if key not in self._descriptors:
                log.warning("disabled_provider_unknown", provider=key)
                continue
            self._breaker.disable(key)

    @classmethod
    def from_directory(
        cls,
        provider_dir: Path,
        *,
        breaker: ProviderCircuitBreaker | None = None,
        disabled: Iterable[str] = (),
    ) -> ProviderRegistry:
        """Load every ``*.yaml``/``*.yml`` in *provider_dir*.

        Invalid files are logged by the loader and skipped; a duplicate key
        keeps the first file (sorted by name).
        """
        descriptors: list[ProviderDescriptor] = []
        seen: set[str] = set()

        if not provider_dir.is_dir():
            log.warning("provider_directory_not_found", directory=str(provider_dir))
            return cls(descriptors, breaker=breaker, disabled=disabled)

        for path in sorted(provider_dir.iterdir(), key=lambda p: p.name):
            if path.is_dir() or path.suffix.lower() not in {".yaml", ".yml"}:
                continue
            try:
                descriptor = load_yaml_provider(path)
            except ProviderError:
                # already logged with file context
                continue
            if descriptor.key in seen:
                log.error(
                    "provider_duplicate_skipped",
                    provider=descriptor.key,
                    provider_file=str(path),
                )
                continue
            seen.add(descriptor.key)
            descriptors.append(descriptor)
            log.info(
                "provider_loaded",
                provider=descriptor.key,
                priority=descriptor.priority,
                hops=len(descriptor.hops),
                decode_steps=len(descriptor.decode),
            )

        log.info(
            "providers_discovered",
            count=len(descriptors),
            directory=str(provider_dir),
        )
        if not descriptors:
            log.warning("no_providers_found", directory=str(provider_dir))

        return cls(descriptors, breaker=breaker, disabled=disabled)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, provider_key: str) -> ProviderDescriptor:
        try:
            return self._descriptors[provider_key]
        except KeyError:
            raise ProviderNotFoundError(
                f"Provider '{provider_key}' not found"
            ) from None

    def keys(self) -> list[str]:
        return sorted(self._descriptors)

    def _ordered(self) -> list[ProviderDescriptor]:
        return sorted(self._descriptors.values(), key=lambda d: (d.priority, d.key))

    def list_enabled(self, sorted_by_priority: bool = True) -> list[ProviderDescriptor]:
        """Return descriptors whose static flag and breaker allow a run.

        An open breaker past its cooldown moves to half-open here, so the
        provider is included once as a probe.
        """
        source = (
            self._ordered() if sorted_by_priority else list(self._descriptors.values())
        )
        return [d for d in source if d.enabled and self._breaker.allow(d.key)]

    # ------------------------------------------------------------------
    # Soft disable
    # ------------------------------------------------------------------

    def disable(self, provider_key: str, seconds: float | None = None) -> None:
        """Skip *provider_key* for *seconds* (default: the breaker cooldown)."""
        self.get(provider_key)
        if seconds is None:
            seconds = self._breaker.cooldown_seconds
        self._breaker.disable(provider_key, seconds)
        log.warning("provider_disabled", provider=provider_key, seconds=seconds)

    def enable(self, provider_key: str) -> None:
        self.get(provider_key)
        self._breaker.enable(provider_key)
        log.info("provider_enabled", provider=provider_key)

    # ------------------------------------------------------------------
    # Outcomes
    # ------------------------------------------------------------------

    def record_success(self, provider_key: str, at: datetime | None = None) -> None:
        self._breaker.record_success(provider_key)
        with self._lock:
            stats = self._stats.setdefault(provider_key, _Stats())
            stats.successes += 1
            stats.consecutive_validation = 0
            stats.last_success_at = at or datetime.now(timezone.utc)

    def record_failure(self, provider_key: str, error: ResolutionError) -> int:
        with self._lock:
            stats = self._stats.setdefault(provider_key, _Stats())
            stats.failures += 1
            stats.last_error = error.describe()
            if isinstance(error, ValidationFailed):
                stats.consecutive_validation += 1
            else:
                stats.consecutive_validation = 0
            consecutive = stats.consecutive_validation

        if isinstance(error, DRIFT_ERRORS):
            before = self._breaker.state(provider_key)
            count = self._breaker.record_failure(provider_key)
            after = self._breaker.state(provider_key)
            if after == "open" and before != "open":
                log.warning(
                    "provider_circuit_opened",
                    provider=provider_key,
                    failures_in_window=count,
                    last_error=error.kind,
                )
        return consecutive

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def health(self) -> list[ProviderHealth]:
        out: list[ProviderHealth] = []
        for descriptor in self._ordered():
            state = self._breaker.state(descriptor.key)
            if not descriptor.enabled:
                state = "disabled"
            with self._lock:
                stats = self._stats.get(descriptor.key, _Stats())
                snapshot = _Stats(**vars(stats))
            out.append(
                ProviderHealth(
                    provider_key=descriptor.key,
                    enabled=descriptor.enabled and state in ("closed", "half_open"),
                    state=state,
                    priority=descriptor.priority,
                    last_error=snapshot.last_error,
                    last_success_at=snapshot.last_success_at,
                    successes=snapshot.successes,
                    failures=snapshot.failures,
                )
            )
        return out
