"""Cache of XOR keystreams recovered from known plaintext.

A provider whose keystream rotates is declared with
``XorKeystream(key_source="derived", known_prefix=...)``.  The first
ciphertext seen for that step is XOR-ed against the known prefix; the
resulting key is stored here and reused as a fixed key until the
orchestrator invalidates it after recurring validation failures.
"""

from __future__ import annotations

import threading

import structlog

from streamhop.domain.providers.descriptor import XorKeystream
from streamhop.infrastructure.decoding.primitives import Payload, derive_keystream

log = structlog.get_logger(__name__)


class KeystreamStore:
    """Thread-safe map ``(provider_key, step_index) -> keystream``."""

    def __init__(self) -> None:
        self._keys: dict[tuple[str, int], bytes] = {}
        self._lock = threading.Lock()

    def get(self, provider_key: str, step_index: int) -> bytes | None:
        with self._lock:
            return self._keys.get((provider_key, step_index))

    def get_or_derive(
        self,
        provider_key: str,
        step_index: int,
        step: XorKeystream,
        ciphertext: Payload,
    ) -> bytes:
        """Return the cached keystream, deriving it from *ciphertext* once."""
        slot = (provider_key, step_index)
        with self._lock:
            key = self._keys.get(slot)
            if key is not None:
                return key
            key = derive_keystream(ciphertext, step.known_prefix, step.key_length)
            self._keys[slot] = key
        log.info(
            "keystream_derived",
            provider=provider_key,
            step=step_index,
            key_length=len(key),
        )
        return key

    def invalidate(self, provider_key: str) -> int:
        """Forget every keystream of *provider_key*; returns how many."""
        with self._lock:
            slots = [s for s in self._keys if s[0] == provider_key]
            for slot in slots:
                del self._keys[slot]
        if slots:
            log.info("keystream_invalidated", provider=provider_key, count=len(slots))
        return len(slots)
